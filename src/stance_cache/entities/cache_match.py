"""Cache match domain entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class CacheMatchEntity:
    """Domain entity for a vector search result.

    Attributes:
        key: Storage key of the matched entry
        prompt: The matched prompt from the cache
        response: The cached response
        topic: Topic tag of the matched entry
        distance: Cosine distance (0 = identical, 2 = opposite)
        created_at: Unix timestamp when the entry was created
        tokens_saved: Token estimate stored with the entry
    """

    key: str
    prompt: str
    response: str
    topic: str
    distance: float
    created_at: float
    tokens_saved: int = 0

    @property
    def similarity(self) -> float:
        """Cosine distance converted to a 0-1 similarity."""
        return min(1.0, max(0.0, 1.0 - self.distance))
