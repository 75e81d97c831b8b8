from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, model_validator

from stance_cache.exceptions import SchemaMismatchError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _decode(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class CacheMetrics(BaseModel):
    """Process-wide cache metrics aggregate.

    Counters only ever grow until an explicit reset. ``hit_ratio`` is always
    derived from the counters and is never persisted.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    total_requests: int = Field(0, ge=0)
    cache_hits: int = Field(0, ge=0)
    cache_misses: int = Field(0, ge=0)
    total_tokens_saved: int = Field(0, ge=0)
    estimated_cost_saved: float = Field(0.0, ge=0.0)
    average_similarity: float = Field(0.0, ge=0.0, le=1.0)
    created_at: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def hit_ratio(self) -> float:
        """Fraction of requests served from cache (0 when there were none)."""
        if self.total_requests == 0:
            return 0.0
        return self.cache_hits / self.total_requests

    @model_validator(mode="after")
    def _check_counters(self) -> "CacheMetrics":
        if self.cache_hits + self.cache_misses != self.total_requests:
            raise ValueError(
                f"cache_hits ({self.cache_hits}) + cache_misses ({self.cache_misses}) "
                f"!= total_requests ({self.total_requests})"
            )
        return self

    @classmethod
    def zeroed(cls, now: datetime | None = None) -> "CacheMetrics":
        """Fresh record with all counters at zero."""
        now = now or utcnow()
        return cls(created_at=now, last_updated=now)

    def with_hit(
        self,
        similarity: float,
        tokens_saved: int,
        cost_saved: float,
        now: datetime | None = None,
    ) -> "CacheMetrics":
        """Return the record after one more cache hit."""
        cache_hits = self.cache_hits + 1
        # incremental mean over hits only
        average = self.average_similarity + (similarity - self.average_similarity) / cache_hits
        return self.model_copy(
            update={
                "total_requests": self.total_requests + 1,
                "cache_hits": cache_hits,
                "total_tokens_saved": self.total_tokens_saved + max(0, tokens_saved),
                "estimated_cost_saved": self.estimated_cost_saved + max(0.0, cost_saved),
                "average_similarity": min(1.0, max(0.0, average)),
                "last_updated": now or utcnow(),
            }
        )

    def with_miss(self, now: datetime | None = None) -> "CacheMetrics":
        """Return the record after one more cache miss."""
        return self.model_copy(
            update={
                "total_requests": self.total_requests + 1,
                "cache_misses": self.cache_misses + 1,
                "last_updated": now or utcnow(),
            }
        )

    def to_redis_hash(self) -> dict[str, str]:
        """Flatten into string fields for a Redis hash."""
        data = self.model_dump(mode="json", exclude={"hit_ratio"})
        return {name: str(value) for name, value in data.items()}

    @classmethod
    def from_redis_hash(cls, raw: dict[Any, Any]) -> "CacheMetrics | None":
        """Validate a Redis hash read back from storage.

        Returns:
            The metrics record, or None if the hash does not exist yet

        Raises:
            SchemaMismatchError: If the stored record is not a valid metrics record
        """
        if not raw:
            return None
        data = {_decode(name): _decode(value) for name, value in raw.items()}
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise SchemaMismatchError(
                f"Stored metrics record is invalid: {e.error_count()} error(s)",
                details={"errors": [error["msg"] for error in e.errors()]},
            ) from e
