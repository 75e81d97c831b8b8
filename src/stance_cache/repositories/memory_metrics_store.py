"""In-memory implementation of MetricsStore.

Suitable for a single process (development, tests). Atomicity comes from an
asyncio lock, so it does not protect counters shared between processes.
"""

import asyncio

from stance_cache.models import CacheMetrics
from stance_cache.protocols import MetricsMutation


class InMemoryMetricsStore:
    """Metrics aggregate held in process memory."""

    def __init__(self) -> None:
        self._metrics: CacheMetrics | None = None
        self._lock = asyncio.Lock()

    async def read(self) -> CacheMetrics | None:
        return self._metrics

    async def update(self, mutate: MetricsMutation) -> CacheMetrics:
        async with self._lock:
            current = self._metrics or CacheMetrics.zeroed()
            self._metrics = mutate(current)
            return self._metrics

    async def replace(self, metrics: CacheMetrics) -> None:
        async with self._lock:
            self._metrics = metrics
