"""
Tests for the semantic cache API.

The lifespan is not run: each test wires a CacheHandler over in-memory
fakes straight into app.state.
"""

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from stance_cache.api.app import API_NAME, app
from stance_cache.dto import LookupCacheRequest
from stance_cache.exceptions import EmbeddingError, IndexUnavailableError
from stance_cache.handlers import CacheHandler


@pytest.fixture
def client(cache):
    """Create a test client backed by in-memory collaborators."""
    app.state.cache_handler = CacheHandler(cache_service=cache)
    yield TestClient(app)
    del app.state.cache_handler


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["name"] == API_NAME


def test_health(client, store):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "cache_healthy": True, "embedding_healthy": True}

    store.search_error = IndexUnavailableError("down")
    response = client.get("/health")
    assert response.json()["status"] == "unhealthy"


def test_lookup_miss_then_hit(client):
    """A stored prompt is served from cache on the next lookup."""
    body = {"prompt": "What is your stance on climate policy?", "topic": "climate_policy"}

    miss = client.post("/cache/lookup", json=body)
    assert miss.status_code == 200
    assert miss.json()["hit"] is False
    assert miss.json()["degraded"] is False

    stored = client.post("/cache/store", json={**body, "response": "Balanced approach needed."})
    assert stored.status_code == 200
    assert stored.json()["topic"] == "climate_policy"
    assert stored.json()["tokens_saved"] == 7

    hit = client.post("/cache/lookup", json=body)
    data = hit.json()
    assert data["hit"] is True
    assert data["response"] == "Balanced approach needed."
    assert data["similarity"] == pytest.approx(1.0)
    assert data["best_match"]["topic"] == "climate_policy"


def test_lookup_uses_default_topic(client):
    response = client.post("/cache/lookup", json={"prompt": "Hello"})
    assert response.json()["topic"] == "general"


def test_lookup_degrades_when_embeddings_fail(client, embeddings):
    embeddings.error = EmbeddingError("service down")

    response = client.post("/cache/lookup", json={"prompt": "Hello", "topic": "general"})

    assert response.status_code == 200
    data = response.json()
    assert data["hit"] is False
    assert data["degraded"] is True
    assert data["error"] == "service down"


def test_store_failure_returns_503(client, store):
    store.upsert_error = IndexUnavailableError("redis down")

    response = client.post("/cache/store", json={"prompt": "p", "response": "r", "topic": "general"})

    assert response.status_code == 503
    assert response.json()["detail"]["type"] == "CacheWriteError"


def test_store_rejects_empty_response(client):
    response = client.post("/cache/store", json={"prompt": "p", "response": ""})
    assert response.status_code == 422


def test_threshold(client):
    """Test get and set threshold endpoints."""
    assert client.get("/cache/threshold").json() == {"threshold": 0.85}

    response = client.post("/cache/threshold", json={"threshold": 0.9})
    assert response.status_code == 200
    assert response.json()["threshold"] == 0.9

    response = client.post("/cache/threshold", json={"threshold": 1.2})
    assert response.status_code == 400


def test_metrics_and_reset(client):
    client.post("/cache/lookup", json={"prompt": "Hello", "topic": "general"})

    metrics = client.get("/metrics").json()
    assert metrics["total_requests"] == 1
    assert metrics["cache_misses"] == 1
    assert metrics["hit_ratio"] == 0.0

    reset = client.post("/metrics/reset")
    assert reset.status_code == 200
    assert reset.json()["total_requests"] == 0


def test_stats(client):
    client.post("/cache/store", json={"prompt": "p", "response": "r", "topic": "general"})

    response = client.get("/cache/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["total_cache_entries"] == 1
    assert data["similarity_threshold"] == 0.85
    assert data["metrics"]["total_requests"] == 0


def test_sweep_and_clear(client, store):
    client.post("/cache/store", json={"prompt": "p", "response": "r", "topic": "general"})

    sweep = client.post("/cache/sweep", json={"retention_seconds": 3600})
    assert sweep.json() == {"success": True, "removed_count": 0}

    cleared = client.delete("/cache")
    assert cleared.json()["deleted_count"] == 1
    assert store.entries == {}


def test_topic_with_tag_separator_is_rejected(client, store):
    lookup = client.post("/cache/lookup", json={"prompt": "p", "topic": "climate,policy"})
    stored = client.post("/cache/store", json={"prompt": "p", "response": "r", "topic": "climate,policy"})

    assert lookup.status_code == 422
    assert stored.status_code == 422
    assert store.entries == {}


@pytest.mark.anyio
async def test_handler_lookup_rejects_unvalidated_topic(cache):
    handler = CacheHandler(cache_service=cache)
    request = LookupCacheRequest.model_construct(prompt="p", topic="climate,policy")

    with pytest.raises(HTTPException) as exc_info:
        await handler.lookup(request)

    assert exc_info.value.status_code == 400


def test_delete_entry(client, store):
    entry_id = client.post("/cache/store", json={"prompt": "p", "response": "r", "topic": "general"}).json()["id"]

    deleted = client.delete(f"/cache/entries/cache:prompt:{entry_id}")
    assert deleted.status_code == 200
    assert deleted.json() == {"success": True, "key": f"cache:prompt:{entry_id}"}
    assert store.entries == {}

    missing = client.delete(f"/cache/entries/cache:prompt:{entry_id}")
    assert missing.status_code == 404
