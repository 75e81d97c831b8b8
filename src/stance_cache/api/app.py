from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stance_cache.api.dependencies import HandlerDep, lifespan
from stance_cache.config import settings
from stance_cache.dto import (
    CacheLookupResponse,
    CacheMetricsResponse,
    CacheStatsResponse,
    CacheStoreResponse,
    HealthCheckResponse,
    LookupCacheRequest,
    StoreCacheRequest,
    SweepRequest,
    ThresholdRequest,
)

API_NAME = "StanceStream Semantic Cache API"
API_VERSION = "0.1.0"

app = FastAPI(
    title=API_NAME,
    description="Semantic response cache for debate message generation, backed by Redis vector search",
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": API_NAME,
        "version": API_VERSION,
        "endpoints": {
            "cache": "/cache",
            "metrics": "/metrics",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health", response_model=HealthCheckResponse)
async def health(handler: HandlerDep) -> HealthCheckResponse:
    """Health check endpoint."""
    return await handler.health_check()


@app.post("/cache/lookup", response_model=CacheLookupResponse)
async def lookup_cache(request: LookupCacheRequest, handler: HandlerDep) -> CacheLookupResponse:
    """Look up a semantically similar prompt within one topic."""
    return await handler.lookup(request)


@app.post("/cache/store", response_model=CacheStoreResponse)
async def store_cache(request: StoreCacheRequest, handler: HandlerDep) -> CacheStoreResponse:
    """Store a prompt/response pair in the cache."""
    return await handler.store(request)


@app.get("/cache/stats", response_model=CacheStatsResponse)
async def get_stats(handler: HandlerDep) -> CacheStatsResponse:
    """Get cache statistics."""
    return await handler.get_stats()


@app.delete("/cache")
async def clear_cache(handler: HandlerDep) -> dict[str, Any]:
    """Clear all entries from the cache and reset metrics."""
    return await handler.clear_cache()


@app.delete("/cache/entries/{key}")
async def delete_entry(key: str, handler: HandlerDep) -> dict[str, Any]:
    """Delete one cache entry by its storage key."""
    return await handler.delete_entry(key)


@app.post("/cache/sweep")
async def sweep_cache(handler: HandlerDep, request: SweepRequest | None = None) -> dict[str, Any]:
    """Remove entries older than the retention window."""
    return await handler.sweep(request or SweepRequest())


@app.get("/cache/threshold")
async def get_threshold(handler: HandlerDep) -> dict[str, float]:
    """Get the current similarity threshold."""
    return await handler.get_threshold()


@app.post("/cache/threshold")
async def set_threshold(request: ThresholdRequest, handler: HandlerDep) -> dict[str, Any]:
    """Update the similarity threshold."""
    return await handler.set_threshold(request)


@app.get("/metrics", response_model=CacheMetricsResponse)
async def get_metrics(handler: HandlerDep) -> CacheMetricsResponse:
    """Get the cache metrics aggregate."""
    return await handler.get_metrics()


@app.post("/metrics/reset", response_model=CacheMetricsResponse)
async def reset_metrics(handler: HandlerDep) -> CacheMetricsResponse:
    """Zero the cache metrics."""
    return await handler.reset_metrics()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stance_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
