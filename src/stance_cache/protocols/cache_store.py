"""Cache storage protocol.

Defines the interface for the vector index store that holds cache entries
and answers topic-filtered nearest-neighbor queries. The default
implementation is Redis Stack with an HNSW vector index.
"""

from typing import Protocol, runtime_checkable

from stance_cache.entities import CacheEntryEntity, CacheMatchEntity


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for vector index backends.

    Any type that implements these methods satisfies the protocol, no
    explicit inheritance needed.
    """

    async def ensure_index(self) -> None:
        """Create the index if missing, or verify an existing one.

        Raises:
            SchemaMismatchError: If an existing index does not match the schema
        """
        ...

    async def upsert(self, entry: CacheEntryEntity) -> str:
        """Write a new cache entry.

        Args:
            entry: The entry to write

        Returns:
            The storage key for the entry

        Raises:
            IndexUnavailableError: If the store cannot be reached
        """
        ...

    async def search(
        self,
        vector: list[float],
        topic: str,
        k: int = 1,
    ) -> list[CacheMatchEntity]:
        """Find the nearest entries within a single topic.

        Args:
            vector: The query embedding vector
            topic: Exact topic tag; entries from other topics never match
            k: Maximum number of results

        Returns:
            Matches sorted by distance, closest first

        Raises:
            IndexUnavailableError: If the store cannot be reached
        """
        ...

    async def delete(self, key: str) -> bool:
        """Delete one entry by storage key."""
        ...

    async def clear(self) -> int:
        """Delete every entry. Returns the number of entries removed."""
        ...

    async def count(self) -> int:
        """Count entries currently in the index."""
        ...

    async def sweep_stale(self, older_than: float, batch_size: int = 500) -> int:
        """Delete entries created before a Unix timestamp.

        Returns:
            Number of entries removed
        """
        ...

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        ...

    async def get_stats(self) -> dict:
        """Get store statistics (implementation-specific)."""
        ...
