"""Request DTOs for API endpoints."""

from pydantic import BaseModel, Field, field_validator

from stance_cache.schema import TAG_SEPARATOR


def _check_topic(topic: str | None) -> str | None:
    if topic is not None and TAG_SEPARATOR in topic:
        raise ValueError(f"topic must not contain {TAG_SEPARATOR!r}")
    return topic


class LookupCacheRequest(BaseModel):
    """Request DTO for a cache lookup.

    Empty prompts are allowed; they are embedded and looked up like any other.
    """

    prompt: str = Field(..., description="The prompt to search for")
    topic: str | None = Field(
        None,
        description="Topic tag; only entries with exactly this topic can match",
    )

    @field_validator("topic")
    @classmethod
    def check_topic(cls, topic: str | None) -> str | None:
        return _check_topic(topic)


class StoreCacheRequest(BaseModel):
    """Request DTO for storing in cache."""

    prompt: str = Field(..., description="The original prompt")
    response: str = Field(..., description="The generated response to cache", min_length=1)
    topic: str | None = Field(None, description="Topic tag for the new entry")

    @field_validator("topic")
    @classmethod
    def check_topic(cls, topic: str | None) -> str | None:
        return _check_topic(topic)


class ThresholdRequest(BaseModel):
    """Request DTO for updating the similarity threshold."""

    threshold: float = Field(
        ...,
        description="Minimum cosine similarity for a hit (0-1, higher = more strict)",
    )


class SweepRequest(BaseModel):
    """Request DTO for the stale-entry sweep."""

    retention_seconds: int | None = Field(
        None,
        description="Override the retention window; entries older than this are removed",
        ge=0,
    )
