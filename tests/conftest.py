"""Shared fixtures: in-memory fakes of the cache collaborators."""

import hashlib

import numpy as np
import pytest

from stance_cache.config import Settings
from stance_cache.entities import CacheEntryEntity, CacheMatchEntity
from stance_cache.repositories import InMemoryMetricsStore
from stance_cache.services import CacheService, MetricsService

DIMENSION = 8


@pytest.fixture
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


def unit_vector(*components: float) -> list[float]:
    """Normalized vector padded with zeros to DIMENSION."""
    values = np.zeros(DIMENSION, dtype=np.float64)
    values[: len(components)] = components
    return (values / np.linalg.norm(values)).tolist()


class FakeEmbeddingProvider:
    """Deterministic embeddings: explicit vectors per text, hashed otherwise."""

    def __init__(self, vectors: dict[str, list[float]] | None = None) -> None:
        self.vectors = dict(vectors or {})
        self.calls: list[str] = []
        self.error: Exception | None = None

    @property
    def dimension(self) -> int:
        return DIMENSION

    @property
    def model_name(self) -> str:
        return "fake-embedding"

    async def encode(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if text in self.vectors:
            return self.vectors[text]
        digest = hashlib.sha256(text.encode()).digest()
        values = np.frombuffer(digest[: DIMENSION * 4], dtype=np.uint32).astype(np.float64) + 1.0
        return (values / np.linalg.norm(values)).tolist()

    async def is_available(self) -> bool:
        return self.error is None


class InMemoryCacheStore:
    """Exhaustive cosine search over a dict, with exact topic filtering."""

    def __init__(self) -> None:
        self.entries: dict[str, CacheEntryEntity] = {}
        self.search_error: Exception | None = None
        self.upsert_error: Exception | None = None
        self.forced_distance: float | None = None

    async def ensure_index(self) -> None:
        return None

    async def upsert(self, entry: CacheEntryEntity) -> str:
        if self.upsert_error is not None:
            raise self.upsert_error
        key = entry.key("cache:prompt:")
        self.entries[key] = entry
        return key

    async def search(self, vector: list[float], topic: str, k: int = 1) -> list[CacheMatchEntity]:
        if self.search_error is not None:
            raise self.search_error
        query = np.asarray(vector)
        matches = []
        for key, entry in self.entries.items():
            if entry.topic != topic:
                continue
            stored = np.asarray(entry.vector)
            cosine = float(query @ stored / (np.linalg.norm(query) * np.linalg.norm(stored)))
            distance = self.forced_distance if self.forced_distance is not None else 1.0 - cosine
            matches.append(
                CacheMatchEntity(
                    key=key,
                    prompt=entry.prompt,
                    response=entry.response,
                    topic=entry.topic,
                    distance=distance,
                    created_at=entry.created_at,
                    tokens_saved=entry.tokens_saved,
                )
            )
        matches.sort(key=lambda m: m.distance)
        return matches[:k]

    async def delete(self, key: str) -> bool:
        return self.entries.pop(key, None) is not None

    async def clear(self) -> int:
        count = len(self.entries)
        self.entries.clear()
        return count

    async def count(self) -> int:
        return len(self.entries)

    async def sweep_stale(self, older_than: float, batch_size: int = 500) -> int:
        stale = [key for key, entry in self.entries.items() if entry.created_at < older_than]
        for key in stale:
            del self.entries[key]
        return len(stale)

    async def health_check(self) -> bool:
        return self.search_error is None

    async def get_stats(self) -> dict:
        return {"index_name": "cache-index", "total_entries": len(self.entries)}


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        vector_dimension=DIMENSION,
        similarity_threshold=0.85,
        metrics_backend="memory",
        embedding_timeout=1.0,
        index_timeout=1.0,
        cost_per_1k_tokens=0.002,
        chars_per_token=4,
    )


@pytest.fixture
def embeddings() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def metrics() -> MetricsService:
    return MetricsService(InMemoryMetricsStore())


@pytest.fixture
def cache(store, embeddings, metrics, test_settings) -> CacheService:
    return CacheService.create(
        repository=store,
        embedding_provider=embeddings,
        metrics=metrics,
        config=test_settings,
    )
