"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from stance_cache.config import get_redis_client, get_settings
from stance_cache.handlers import CacheHandler
from stance_cache.log import configure_logging
from stance_cache.repositories import (
    RedisCacheRepository,
    create_embedding_provider,
    create_metrics_store,
)
from stance_cache.services import CacheService, MetricsService

logger = logging.getLogger(__name__)


def get_handler(request: Request) -> CacheHandler:
    """Dependency injection for CacheHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "cache_handler", None)
    if handler is None:
        raise RuntimeError("CacheHandler not initialized. Check lifespan setup.")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers and stores them in app.state:
    1. Redis client and embedding provider (external collaborators)
    2. Repository - the index is created or verified here; a schema
       mismatch aborts startup
    3. Metrics and cache services
    4. Handler (HTTP endpoints)

    Cleanup:
        Closes clients and removes all services from app.state on shutdown
    """
    config = get_settings()
    configure_logging(config.log_level)

    redis_client = get_redis_client(config)
    embedding_provider = create_embedding_provider(config)

    try:
        repository = await RedisCacheRepository.create(redis_client, config)
        metrics = MetricsService(create_metrics_store(redis_client, config))
        cache_service = CacheService.create(
            repository=repository,
            embedding_provider=embedding_provider,
            metrics=metrics,
            config=config,
        )
        cache_handler = CacheHandler(cache_service=cache_service)

        app.state.cache_handler = cache_handler

        logger.info(
            "Cache service initialized (index=%s, threshold=%.2f, embeddings=%s)",
            config.cache_index_name,
            cache_service.threshold,
            embedding_provider.model_name,
        )

        yield
    finally:
        if hasattr(app.state, "cache_handler"):
            del app.state.cache_handler
        close = getattr(embedding_provider, "close", None)
        if close is not None:
            await close()
        await redis_client.aclose()
        logger.info("Cache service shut down")


# Type alias for cleaner dependency injection
HandlerDep = Annotated[CacheHandler, Depends(get_handler)]
