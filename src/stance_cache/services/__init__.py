"""Service layer.

CacheService runs lookups, writes and maintenance against the protocols;
MetricsService keeps the shared hit/miss aggregate. Neither knows which
vector store, embedding model or metrics backend sits behind them.
"""

from .cache_service import CacheService
from .metrics_service import MetricsService

__all__ = [
    "CacheService",
    "MetricsService",
]
