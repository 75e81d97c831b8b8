"""Metrics storage protocol.

The metrics aggregate is a single shared record mutated by every request.
Implementations must apply ``update`` atomically: concurrent callers may
never lose each other's increments.
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from stance_cache.models import CacheMetrics

MetricsMutation = Callable[[CacheMetrics], CacheMetrics]


@runtime_checkable
class MetricsStore(Protocol):
    """Protocol for the metrics aggregate backend."""

    async def read(self) -> CacheMetrics | None:
        """Read a consistent snapshot, or None if no record exists yet."""
        ...

    async def update(self, mutate: MetricsMutation) -> CacheMetrics:
        """Atomically apply ``mutate`` to the current record.

        A missing record is treated as a zeroed one.

        Returns:
            The record as written

        Raises:
            MetricsUpdateConflict: If the update could not be applied atomically
        """
        ...

    async def replace(self, metrics: CacheMetrics) -> None:
        """Overwrite the whole record."""
        ...
