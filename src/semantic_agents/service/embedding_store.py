"""Embedding Stores - Concrete EmbeddingStore Capabilities for the Router.

Two interchangeable stores over one Embedder:
    InMemoryEmbeddingStore → cosine similarity in-process (small registries, tests)
    QdrantEmbeddingStore   → Qdrant collection with cosine distance

Embedders:
    OllamaEmbedder → dense vectors from a local Ollama server (private, zero-cost)

Scores are cosine similarities in both stores, so router thresholds mean the
same thing regardless of the backend.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable
from uuid import NAMESPACE_URL, uuid5

import logfire
from pydantic import BaseModel, ConfigDict, Field

from ..domain.capabilities import SearchHit

if TYPE_CHECKING:
    from qdrant_client import QdrantClient

    from ..config import Settings


@runtime_checkable
class Embedder(Protocol):
    """Turns text into a dense vector."""

    async def embed(self, text: str) -> list[float]: ...


class OllamaEmbedder(BaseModel):
    """Dense embeddings via Ollama.

    Attributes:
        base_url: Ollama server (e.g., "http://localhost:11434")
        model: Embedding model (e.g., "nomic-embed-text")
    """

    base_url: str
    model: str = Field(min_length=1, max_length=200)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> OllamaEmbedder:
        return cls(base_url=settings.ollama_base_url, model=settings.ollama_embedding_model)

    async def embed(self, text: str) -> list[float]:
        import ollama

        client = ollama.AsyncClient(host=self.base_url)
        response = await client.embeddings(model=self.model, prompt=text)
        return list(response["embedding"])


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 if either is zero)."""
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    norm = math.sqrt(math.fsum(x * x for x in a)) * math.sqrt(math.fsum(y * y for y in b))
    if norm == 0:
        return 0.0
    return math.fsum(x * y for x, y in zip(a, b, strict=True)) / norm


class InMemoryEmbeddingStore:
    """EmbeddingStore keeping vectors in a dict.

    Search is a linear scan, which is fine for route registries (tens of
    entries). Ties keep insertion order, so results are deterministic.
    """

    def __init__(self, embedder: Embedder):
        self.embedder = embedder
        self._vectors: dict[str, list[float]] = {}

    def __len__(self) -> int:
        return len(self._vectors)

    async def add(self, item_id: str, text: str) -> None:
        self._vectors[item_id] = await self.embedder.embed(text)

    async def search(self, query: str, k: int) -> Sequence[SearchHit]:
        if k < 1 or not self._vectors:
            return []
        query_vector = await self.embedder.embed(query)
        hits = [
            SearchHit(item_id=item_id, score=cosine_similarity(query_vector, vector))
            for item_id, vector in self._vectors.items()
        ]
        # sorted() is stable: equal scores keep insertion order
        return sorted(hits, key=lambda hit: hit.score, reverse=True)[:k]


class QdrantEmbeddingStore:
    """EmbeddingStore backed by a Qdrant collection.

    Point Structure:
        - id: uuid5 of "<collection>:<item_id>" (re-adding an id overwrites it)
        - vector: dense embedding, cosine distance
        - payload: {"item_id": ..., "text": ...}

    The collection is created on the first add, sized from that embedding.
    ``QdrantClient(location=":memory:")`` gives a local, serverless store.
    """

    def __init__(self, client: QdrantClient, collection: str, embedder: Embedder):
        self.client = client
        self.collection = collection
        self.embedder = embedder

    @classmethod
    def from_settings(cls, settings: Settings, embedder: Embedder | None = None) -> QdrantEmbeddingStore:
        from qdrant_client import QdrantClient

        if settings.qdrant_url == ":memory:":
            client = QdrantClient(location=":memory:")
        else:
            client = QdrantClient(url=settings.qdrant_url)
        return cls(client, settings.qdrant_collection, embedder or OllamaEmbedder.from_settings(settings))

    def _point_id(self, item_id: str) -> str:
        return str(uuid5(NAMESPACE_URL, f"{self.collection}:{item_id}"))

    def _ensure_collection(self, dimension: int) -> None:
        from qdrant_client.models import Distance, VectorParams

        if not self.client.collection_exists(self.collection):
            self.client.create_collection(
                collection_name=self.collection,
                vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
            )
            logfire.info("Created Qdrant collection {collection}", collection=self.collection, dimension=dimension)

    async def add(self, item_id: str, text: str) -> None:
        from qdrant_client.models import PointStruct

        vector = await self.embedder.embed(text)
        self._ensure_collection(len(vector))
        point = PointStruct(id=self._point_id(item_id), vector=vector, payload={"item_id": item_id, "text": text})
        self.client.upsert(collection_name=self.collection, points=[point])

    async def search(self, query: str, k: int) -> Sequence[SearchHit]:
        if k < 1 or not self.client.collection_exists(self.collection):
            return []
        vector = await self.embedder.embed(query)
        response = self.client.query_points(
            collection_name=self.collection,
            query=vector,
            limit=k,
            with_payload=True,
        )
        return [
            SearchHit(item_id=str(point.payload["item_id"]), score=point.score)
            for point in response.points
            if point.payload and "item_id" in point.payload
        ]


__all__ = [
    "Embedder",
    "InMemoryEmbeddingStore",
    "OllamaEmbedder",
    "QdrantEmbeddingStore",
    "cosine_similarity",
]
