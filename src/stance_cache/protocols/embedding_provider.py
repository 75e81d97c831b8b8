"""Embedding provider protocol.

Vectors produced here must have exactly the dimension the cache index was
created with; a provider switch means rebuilding the index.

Implementations:
- OpenAIEmbeddingProvider (default, text-embedding-ada-002, 1536 dimensions)
- LocalEmbeddingProvider (sentence-transformers, in-process)
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns prompt text into a fixed-length vector."""

    @property
    def dimension(self) -> int:
        """Length of every vector returned by ``encode``."""
        ...

    @property
    def model_name(self) -> str:
        """Model identifier, reported in cache stats."""
        ...

    async def encode(self, text: str) -> list[float]:
        """Embed one prompt.

        Raises:
            EmbeddingError: If the service is unreachable, rate limited,
                or returns something that is not a vector
        """
        ...

    async def is_available(self) -> bool:
        """Whether ``encode`` is currently expected to succeed."""
        ...
