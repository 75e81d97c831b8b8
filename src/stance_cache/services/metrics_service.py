"""Metrics accumulator.

Keeps the cache metrics aggregate up to date. Metrics are best-effort
telemetry: recording never raises into the request path.
"""

import logging

from stance_cache.exceptions import SemanticCacheError
from stance_cache.models import CacheMetrics
from stance_cache.protocols import MetricsStore

logger = logging.getLogger(__name__)


class MetricsService:
    """Records hits and misses against a MetricsStore.

    Atomicity is the store's job; this service only decides what each event
    does to the record and swallows telemetry failures.
    """

    def __init__(self, store: MetricsStore) -> None:
        self._store = store

    async def record_hit(self, similarity: float, tokens_saved: int, cost_saved: float) -> CacheMetrics | None:
        """Count a hit and fold ``similarity`` into the running mean.

        Returns:
            The updated record, or None if the update was dropped
        """
        try:
            return await self._store.update(lambda m: m.with_hit(similarity, tokens_saved, cost_saved))
        except SemanticCacheError as e:
            logger.warning("Dropping cache hit metrics update: %s", e)
            return None

    async def record_miss(self) -> CacheMetrics | None:
        """Count a miss.

        Returns:
            The updated record, or None if the update was dropped
        """
        try:
            return await self._store.update(lambda m: m.with_miss())
        except SemanticCacheError as e:
            logger.warning("Dropping cache miss metrics update: %s", e)
            return None

    async def snapshot(self) -> CacheMetrics:
        """Consistent point-in-time view, creating a zeroed record on first use."""
        metrics = await self._store.read()
        if metrics is None:
            metrics = await self._store.update(lambda m: m)
        return metrics

    async def reset(self) -> CacheMetrics:
        """Zero every counter. Only called by explicit maintenance operations."""
        metrics = CacheMetrics.zeroed()
        await self._store.replace(metrics)
        logger.info("Cache metrics reset")
        return metrics

    @property
    def store(self) -> MetricsStore:
        """Get the underlying store (for testing)."""
        return self._store
