"""Typed results returned by the cache service."""

from dataclasses import dataclass

from stance_cache.exceptions import CacheWriteError, SemanticCacheError

from .cache_entry import CacheEntryEntity
from .cache_match import CacheMatchEntity


@dataclass(frozen=True)
class LookupResult:
    """Outcome of a cache lookup.

    A lookup that failed because a collaborator was down is still a miss;
    the failure is kept in ``error`` instead of being raised.

    Attributes:
        hit: Whether a cached response can be reused
        response: Cached response (hits only)
        similarity: Similarity of the matched entry (hits only)
        match: The best candidate found, if any (also set on near misses)
        vector: The query embedding, reusable by a following store
        error: Error that degraded this lookup to a miss
    """

    hit: bool
    response: str | None = None
    similarity: float | None = None
    match: CacheMatchEntity | None = None
    vector: list[float] | None = None
    error: SemanticCacheError | None = None

    @classmethod
    def from_match(cls, match: CacheMatchEntity, vector: list[float]) -> "LookupResult":
        return cls(
            hit=True,
            response=match.response,
            similarity=match.similarity,
            match=match,
            vector=vector,
        )

    @classmethod
    def miss(
        cls,
        vector: list[float] | None = None,
        match: CacheMatchEntity | None = None,
        error: SemanticCacheError | None = None,
    ) -> "LookupResult":
        return cls(hit=False, match=match, vector=vector, error=error)

    @property
    def degraded(self) -> bool:
        """True when the miss was caused by a failing collaborator."""
        return self.error is not None


@dataclass(frozen=True)
class GenerationResult:
    """Response handed back to the caller of ``get_or_generate``.

    Attributes:
        response: The cached or freshly generated text
        cached: Whether the response came from the cache
        similarity: Similarity of the cache hit, 0.0 on a miss
        entry: The entry written after a miss, if the write succeeded
        cache_error: Write failure after a miss; the response is still valid
    """

    response: str
    cached: bool
    similarity: float = 0.0
    entry: CacheEntryEntity | None = None
    cache_error: CacheWriteError | None = None
