"""Domain entities for internal representation.

These are pure dataclasses (frozen) used internally by services
and repositories. They are NOT used for API contracts - use DTOs
from the dto package for that.
"""

from .cache_entry import CacheEntryEntity
from .cache_match import CacheMatchEntity
from .results import GenerationResult, LookupResult

__all__ = ["CacheEntryEntity", "CacheMatchEntity", "GenerationResult", "LookupResult"]
