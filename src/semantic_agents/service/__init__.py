from .dispatch import Dispatch, RoutedAgentService
from .embedding_store import Embedder, InMemoryEmbeddingStore, OllamaEmbedder, QdrantEmbeddingStore
from .language_model import PydanticAIModel

__all__ = [
    "Dispatch",
    "Embedder",
    "InMemoryEmbeddingStore",
    "OllamaEmbedder",
    "PydanticAIModel",
    "QdrantEmbeddingStore",
    "RoutedAgentService",
]
