"""Protocol interfaces for swappable implementations.

This package contains protocol definitions using structural typing.
Protocols enable:
- Easy swapping of implementations (Redis → another vector store, OpenAI → local, etc.)
- Unit testing with in-memory implementations
- Clear separation of concerns
"""

from .cache_store import CacheStore
from .embedding_provider import EmbeddingProvider
from .generator import Generator
from .metrics_store import MetricsMutation, MetricsStore

__all__ = [
    "CacheStore",
    "EmbeddingProvider",
    "Generator",
    "MetricsMutation",
    "MetricsStore",
]
