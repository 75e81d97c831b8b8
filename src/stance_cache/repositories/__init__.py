"""Repository layer for data access.

This layer abstracts external dependencies (Redis, embedding and chat APIs)
behind protocol-based interfaces. The repositories are protocol-based
(structural typing), not inheritance-based.
"""

import redis.asyncio as redis

from stance_cache.config import Settings, settings
from stance_cache.protocols import CacheStore, EmbeddingProvider, MetricsStore

from .memory_metrics_store import InMemoryMetricsStore
from .openai_chat_generator import OpenAIChatGenerator
from .openai_embedding_provider import OpenAIEmbeddingProvider
from .redis_metrics_store import RedisMetricsStore
from .redis_repository import RedisCacheRepository


def create_embedding_provider(config: Settings | None = None) -> EmbeddingProvider:
    """Build the embedding provider selected by EMBEDDING_PROVIDER."""
    config = config or settings
    if config.embedding_provider == "local":
        # imported lazily: sentence-transformers pulls in torch
        from .local_embedding_provider import LocalEmbeddingProvider

        return LocalEmbeddingProvider.create(config)
    return OpenAIEmbeddingProvider.create(config)


def create_metrics_store(redis_client: redis.Redis, config: Settings | None = None) -> MetricsStore:
    """Build the metrics store selected by METRICS_BACKEND."""
    config = config or settings
    if config.metrics_backend == "memory":
        return InMemoryMetricsStore()
    return RedisMetricsStore.create(redis_client, config)


__all__ = [
    "CacheStore",
    "EmbeddingProvider",
    "MetricsStore",
    "RedisCacheRepository",
    "RedisMetricsStore",
    "InMemoryMetricsStore",
    "OpenAIEmbeddingProvider",
    "OpenAIChatGenerator",
    "create_embedding_provider",
    "create_metrics_store",
]
