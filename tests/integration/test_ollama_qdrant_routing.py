"""
Integration tests for routing over real infrastructure.

Demonstrates:
- Ollama dense embeddings for route descriptions and queries
- Qdrant as the router's EmbeddingStore
- Selection by meaning, not by shared keywords

Test Environment:
- Requires Qdrant at localhost:6333 and Ollama at localhost:11434 with the
  embedding model pulled (ollama pull nomic-embed-text)
- Skipped when either service is unreachable
"""

from uuid import uuid4

import pytest
import pytest_asyncio
from qdrant_client import QdrantClient

from semantic_agents.config import Settings
from semantic_agents.domain.agent import Agent
from semantic_agents.domain.routing import Route, RouteMatch, SemanticRouter
from semantic_agents.service.embedding_store import OllamaEmbedder, QdrantEmbeddingStore

pytestmark = pytest.mark.integration


@pytest.fixture(scope="module")
def settings() -> Settings:
    return Settings(
        QDRANT_URL="http://localhost:6333",
        QDRANT_COLLECTION=f"test_routes_{uuid4().hex[:8]}",
        OLLAMA_BASE_URL="http://localhost:11434",
    )


@pytest_asyncio.fixture
async def store(settings: Settings):
    client = QdrantClient(url=settings.qdrant_url)
    embedder = OllamaEmbedder.from_settings(settings)
    try:
        client.get_collections()
        await embedder.embed("ping")
    except Exception as e:
        pytest.skip(f"Qdrant/Ollama not available: {e}")

    yield QdrantEmbeddingStore(client, settings.qdrant_collection, embedder)

    if client.collection_exists(settings.qdrant_collection):
        client.delete_collection(settings.qdrant_collection)


@pytest.mark.asyncio
async def test_routes_by_meaning(store: QdrantEmbeddingStore, billing_agent: Agent, support_agent: Agent):
    router = SemanticRouter(store, threshold=0.3, top_k=2)
    await router.register(
        Route(name="billing", description="Questions about invoices, payments, charges and refunds", agent=billing_agent)
    )
    await router.register(
        Route(name="support", description="Help with login problems, bugs and app crashes", agent=support_agent)
    )

    outcome = await router.route("My credit card was billed twice this month")

    assert isinstance(outcome, RouteMatch)
    assert outcome.route.name == "billing"
    assert outcome.candidates[0].score > outcome.candidates[-1].score
