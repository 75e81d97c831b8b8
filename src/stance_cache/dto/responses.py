"""Response DTOs for API endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class CacheMatchItem(BaseModel):
    """Best candidate found by a lookup."""

    key: str = Field(..., description="Storage key of the matched entry")
    prompt: str = Field(..., description="The matched prompt from cache")
    topic: str = Field(..., description="Topic tag of the matched entry")
    vector_distance: float = Field(
        ...,
        description="Cosine distance (0 = identical, 2 = opposite)",
        ge=0.0,
        le=2.0,
    )
    similarity: float = Field(..., description="1 - distance, clamped to 0-1", ge=0.0, le=1.0)
    cached_at: float = Field(..., description="Timestamp when the entry was cached (Unix timestamp)")


class CacheLookupResponse(BaseModel):
    """Response DTO for a cache lookup."""

    prompt: str = Field(..., description="The original query prompt")
    topic: str = Field(..., description="Topic the lookup was restricted to")
    hit: bool = Field(..., description="Whether a cached response can be reused")
    response: str | None = Field(None, description="Cached response (hits only)")
    similarity: float | None = Field(None, description="Similarity of the hit (hits only)")
    best_match: CacheMatchItem | None = Field(None, description="Closest candidate, also reported on near misses")
    degraded: bool = Field(False, description="Whether a failing collaborator forced this miss")
    error: str | None = Field(None, description="Error that degraded the lookup, if any")
    lookup_time_ms: float = Field(..., description="Time taken for the cache lookup in milliseconds")


class CacheStoreResponse(BaseModel):
    """Response DTO for cache store operation."""

    success: bool = Field(..., description="Whether the operation succeeded")
    id: str = Field(..., description="Identifier of the new entry")
    topic: str = Field(..., description="Topic tag of the new entry")
    tokens_saved: int = Field(..., description="Estimated tokens a future hit saves", ge=0)
    created_at: float = Field(..., description="Creation timestamp (Unix timestamp)")
    message: str = Field(..., description="Human-readable status message")


class CacheMetricsResponse(BaseModel):
    """Response DTO for the metrics aggregate."""

    total_requests: int = Field(..., ge=0)
    cache_hits: int = Field(..., ge=0)
    cache_misses: int = Field(..., ge=0)
    hit_ratio: float = Field(..., description="cache_hits / total_requests", ge=0.0, le=1.0)
    total_tokens_saved: int = Field(..., ge=0)
    estimated_cost_saved: float = Field(..., ge=0.0)
    average_similarity: float = Field(..., description="Mean similarity over hits", ge=0.0, le=1.0)
    created_at: datetime
    last_updated: datetime


class CacheStatsResponse(BaseModel):
    """Response DTO for cache statistics."""

    index_name: str = Field(..., description="Name of the vector index")
    total_cache_entries: int = Field(..., description="Total number of cached entries", ge=0)
    similarity_threshold: float = Field(..., description="Current similarity threshold", ge=0.0, le=1.0)
    retention_seconds: int = Field(..., description="Age after which entries are swept", ge=0)
    embedding_model: str = Field(..., description="Embedding model name")
    embedding_dimension: int = Field(..., description="Vector dimension", gt=0)
    memory_saved_mb: float = Field(..., description="Rough size of the text not regenerated", ge=0.0)
    metrics: CacheMetricsResponse


class HealthCheckResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    cache_healthy: bool = Field(..., description="Whether the vector index is reachable")
    embedding_healthy: bool = Field(..., description="Whether the embedding service is reachable")
