"""Semantic cache exceptions.

The cache is an optimization layer: every runtime error here degrades to
"no cache benefit this time". Only schema problems found while provisioning
the index are fatal.
"""


class SemanticCacheError(Exception):
    """Base exception for all semantic cache errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "message": self.message,
            "details": self.details,
            "type": type(self).__name__,
        }


class EmbeddingError(SemanticCacheError):
    """Embedding service unreachable, rate limited, or returned a malformed vector."""


class IndexUnavailableError(SemanticCacheError):
    """Vector index store unreachable during lookup or write."""


class SchemaMismatchError(SemanticCacheError):
    """Vector dimensionality or field set does not match the index schema."""


class CacheWriteError(SemanticCacheError):
    """A new entry could not be written. Never fails the user-facing request."""


class MetricsUpdateConflict(SemanticCacheError):
    """Concurrent metrics update kept conflicting after all retries."""

    def __init__(self, message: str, attempts: int, details: dict | None = None):
        super().__init__(message, details)
        self.attempts = attempts

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["attempts"] = self.attempts
        return result
