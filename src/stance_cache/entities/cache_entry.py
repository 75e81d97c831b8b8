"""Cache entry domain entity."""

import time
import uuid
from dataclasses import dataclass, field


@dataclass(frozen=True)
class CacheEntryEntity:
    """Domain entity for a cached prompt-response pair.

    Entries are written once and never updated in place; a newer response
    for a similar prompt becomes a new entry.

    Attributes:
        id: Random identifier, also the suffix of the storage key
        prompt: The original prompt
        response: The cached generation output
        vector: The embedding vector for the prompt
        topic: Partition tag; lookups only ever match within one topic
        created_at: Unix timestamp of creation
        tokens_saved: Estimated tokens a hit on this entry avoids generating
    """

    prompt: str
    response: str
    vector: list[float]
    topic: str
    tokens_saved: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)

    def key(self, prefix: str) -> str:
        """Storage key for this entry under the given prefix."""
        return f"{prefix}{self.id}"

    def age(self, now: float | None = None) -> float:
        """Seconds elapsed since the entry was created."""
        return (now if now is not None else time.time()) - self.created_at
