"""HTTP handlers for the cache API.

Handlers translate DTOs into CacheService calls and cache errors into
status codes (400 bad threshold, 503 failed write). They never touch
Redis or the embedding service directly.
"""

from .cache_handler import CacheHandler

__all__ = ["CacheHandler"]
