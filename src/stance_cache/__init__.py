"""StanceStream semantic cache - reuse generated responses for similar prompts.

This package provides a layered architecture for semantic caching in front
of an expensive chat completion call:

Layers:
    - protocols: Interface contracts (CacheStore, EmbeddingProvider, MetricsStore, Generator)
    - repositories: Data access implementations (Redis, OpenAI, sentence-transformers)
    - services: Business logic (lookup, store, metrics)
    - handlers: HTTP endpoint handlers
    - dto: Data transfer objects (API contracts)
    - entities: Domain models (internal)

Usage:
    ```python
    from stance_cache import CacheService, MetricsService
    from stance_cache.repositories import OpenAIEmbeddingProvider, RedisCacheRepository, RedisMetricsStore

    client = get_redis_client()
    cache = CacheService.create(
        repository=await RedisCacheRepository.create(client),
        embedding_provider=OpenAIEmbeddingProvider.create(),
        metrics=MetricsService(RedisMetricsStore.create(client)),
    )
    result = await cache.get_or_generate(prompt, "climate_policy", generator.generate)
    ```

For HTTP API:
    ```python
    from stance_cache.api.app import app
    ```
"""

from stance_cache.config import Settings, get_redis_client, get_settings, settings
from stance_cache.entities import CacheEntryEntity, CacheMatchEntity, GenerationResult, LookupResult
from stance_cache.exceptions import (
    CacheWriteError,
    EmbeddingError,
    IndexUnavailableError,
    MetricsUpdateConflict,
    SchemaMismatchError,
    SemanticCacheError,
)
from stance_cache.models import CacheMetrics
from stance_cache.protocols import CacheStore, EmbeddingProvider, Generator, MetricsStore
from stance_cache.services import CacheService, MetricsService

__all__ = [
    # Configuration
    "Settings",
    "settings",
    "get_settings",
    "get_redis_client",
    # Protocols (interfaces)
    "CacheStore",
    "EmbeddingProvider",
    "Generator",
    "MetricsStore",
    # Services (business logic)
    "CacheService",
    "MetricsService",
    # Entities and models
    "CacheEntryEntity",
    "CacheMatchEntity",
    "CacheMetrics",
    "GenerationResult",
    "LookupResult",
    # Errors
    "SemanticCacheError",
    "EmbeddingError",
    "IndexUnavailableError",
    "SchemaMismatchError",
    "CacheWriteError",
    "MetricsUpdateConflict",
]
