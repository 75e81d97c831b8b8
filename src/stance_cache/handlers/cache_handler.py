"""HTTP handlers for cache operations.

Handlers convert between DTOs (API contracts) and service calls.
They handle HTTP concerns like status codes, validation, and error handling.
"""

import logging
import time

from fastapi import HTTPException, status

from stance_cache.dto import (
    CacheLookupResponse,
    CacheMatchItem,
    CacheMetricsResponse,
    CacheStatsResponse,
    CacheStoreResponse,
    HealthCheckResponse,
    LookupCacheRequest,
    StoreCacheRequest,
    SweepRequest,
    ThresholdRequest,
)
from stance_cache.exceptions import CacheWriteError, SemanticCacheError
from stance_cache.models import CacheMetrics
from stance_cache.services import CacheService

logger = logging.getLogger(__name__)


def _metrics_response(metrics: CacheMetrics) -> CacheMetricsResponse:
    return CacheMetricsResponse.model_validate(metrics.model_dump())


class CacheHandler:
    """HTTP handlers for cache operations.

    This handler delegates business logic to CacheService
    and handles HTTP-specific concerns like:
    - Converting entities to DTOs
    - Setting appropriate status codes
    - Error handling and responses
    """

    def __init__(self, cache_service: CacheService) -> None:
        """Initialize the cache handler.

        Args:
            cache_service: The cache service for business logic (required).
        """
        self._cache = cache_service

    async def lookup(self, request: LookupCacheRequest) -> CacheLookupResponse:
        """Handle POST /cache/lookup requests.

        Lookups never fail because of the cache backends; a failing
        collaborator shows up as ``degraded`` on a miss.

        Raises:
            HTTPException: 400 if the topic is not a valid tag
        """
        start_time = time.time()
        try:
            topic = self._cache.normalize_topic(request.topic)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
        result = await self._cache.lookup(request.prompt, topic)
        lookup_time_ms = (time.time() - start_time) * 1000

        best_match = None
        if result.match is not None:
            best_match = CacheMatchItem(
                key=result.match.key,
                prompt=result.match.prompt,
                topic=result.match.topic,
                vector_distance=min(2.0, max(0.0, result.match.distance)),
                similarity=result.match.similarity,
                cached_at=result.match.created_at,
            )

        return CacheLookupResponse(
            prompt=request.prompt,
            topic=topic,
            hit=result.hit,
            response=result.response,
            similarity=result.similarity,
            best_match=best_match,
            degraded=result.degraded,
            error=result.error.message if result.error else None,
            lookup_time_ms=lookup_time_ms,
        )

    async def store(self, request: StoreCacheRequest) -> CacheStoreResponse:
        """Handle POST /cache/store requests.

        Raises:
            HTTPException: 503 if the entry could not be written
        """
        try:
            entry = await self._cache.store(request.prompt, request.response, request.topic)
        except CacheWriteError as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=e.to_dict(),
            ) from e

        return CacheStoreResponse(
            success=True,
            id=entry.id,
            topic=entry.topic,
            tokens_saved=entry.tokens_saved,
            created_at=entry.created_at,
            message="Entry stored successfully",
        )

    async def get_stats(self) -> CacheStatsResponse:
        """Handle GET /cache/stats requests."""
        try:
            stats = await self._cache.get_stats()
            return CacheStatsResponse(
                index_name=stats.get("index_name", ""),
                total_cache_entries=stats.get("total_entries", 0),
                similarity_threshold=stats["similarity_threshold"],
                retention_seconds=stats["retention_seconds"],
                embedding_model=stats["embedding_model"],
                embedding_dimension=stats["embedding_dimension"],
                memory_saved_mb=stats["memory_saved_mb"],
                metrics=CacheMetricsResponse.model_validate(stats["metrics"]),
            )
        except Exception as e:
            logger.exception("Failed to get cache stats")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to get stats: {e}",
            ) from e

    async def get_metrics(self) -> CacheMetricsResponse:
        """Handle GET /metrics requests."""
        try:
            return _metrics_response(await self._cache.metrics.snapshot())
        except Exception as e:
            logger.exception("Failed to read cache metrics")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to read metrics: {e}",
            ) from e

    async def reset_metrics(self) -> CacheMetricsResponse:
        """Handle POST /metrics/reset requests."""
        try:
            return _metrics_response(await self._cache.metrics.reset())
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to reset metrics: {e}",
            ) from e

    async def clear_cache(self) -> dict:
        """Handle DELETE /cache requests."""
        try:
            count = await self._cache.clear()
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to clear cache: {e}",
            ) from e

        return {
            "success": True,
            "deleted_count": count,
            "message": "Cache cleared successfully",
        }

    async def delete_entry(self, key: str) -> dict:
        """Handle DELETE /cache/entries/{key} requests.

        Raises:
            HTTPException: 404 if no entry has this key
        """
        try:
            deleted = await self._cache.delete(key)
        except SemanticCacheError as e:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=e.to_dict(),
            ) from e

        if not deleted:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No cache entry {key}")
        return {"success": True, "key": key}

    async def sweep(self, request: SweepRequest) -> dict:
        """Handle POST /cache/sweep requests."""
        try:
            removed = await self._cache.sweep_stale(request.retention_seconds)
        except Exception as e:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to sweep cache: {e}",
            ) from e

        return {"success": True, "removed_count": removed}

    async def get_threshold(self) -> dict:
        """Handle GET /cache/threshold requests."""
        return {"threshold": self._cache.threshold}

    async def set_threshold(self, request: ThresholdRequest) -> dict:
        """Handle POST /cache/threshold requests.

        Raises:
            HTTPException: 400 if the threshold is outside 0-1
        """
        try:
            self._cache.set_threshold(request.threshold)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e),
            ) from e

        return {"message": "Threshold updated", "threshold": self._cache.threshold}

    async def health_check(self) -> HealthCheckResponse:
        """Handle GET /health requests."""
        health = await self._cache.is_healthy()
        healthy = all(health.values())

        return HealthCheckResponse(
            status="healthy" if healthy else "unhealthy",
            cache_healthy=health["repository"],
            embedding_healthy=health["embeddings"],
        )
