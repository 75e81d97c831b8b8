"""Tests for the metrics accumulator and its stores."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

from stance_cache.exceptions import IndexUnavailableError, MetricsUpdateConflict, SchemaMismatchError
from stance_cache.models import CacheMetrics
from stance_cache.repositories import InMemoryMetricsStore, RedisMetricsStore
from stance_cache.services import MetricsService


def mock_redis(stored: dict | None = None, execute_side_effect=None):
    """Redis client whose transactional pipeline is an AsyncMock."""
    pipe = MagicMock()
    pipe.__aenter__ = AsyncMock(return_value=pipe)
    pipe.__aexit__ = AsyncMock(return_value=False)
    pipe.watch = AsyncMock()
    pipe.hgetall = AsyncMock(return_value=stored or {})
    pipe.multi = MagicMock()
    pipe.hset = MagicMock()
    pipe.delete = MagicMock()
    pipe.execute = AsyncMock(side_effect=execute_side_effect, return_value=[1])

    client = MagicMock()
    client.pipeline.return_value = pipe
    client.hgetall = AsyncMock(return_value=stored or {})
    return client, pipe


class TestMetricsService:
    """Accumulator behaviour over the in-memory store."""

    @pytest.mark.anyio
    async def test_snapshot_creates_zeroed_record(self, metrics):
        snapshot = await metrics.snapshot()

        assert snapshot.total_requests == 0
        assert snapshot.hit_ratio == 0.0
        assert await metrics.store.read() is not None

    @pytest.mark.anyio
    async def test_hits_and_misses(self, metrics):
        await metrics.record_hit(similarity=0.9, tokens_saved=100, cost_saved=0.0002)
        await metrics.record_hit(similarity=0.8, tokens_saved=50, cost_saved=0.0001)
        await metrics.record_miss()

        snapshot = await metrics.snapshot()

        assert snapshot.total_requests == 3
        assert snapshot.cache_hits == 2
        assert snapshot.cache_misses == 1
        assert snapshot.total_tokens_saved == 150
        assert snapshot.estimated_cost_saved == pytest.approx(0.0003)
        assert snapshot.average_similarity == pytest.approx(0.85)
        assert snapshot.hit_ratio == pytest.approx(2 / 3)

    @pytest.mark.anyio
    async def test_concurrent_updates_lose_nothing(self, metrics):
        """100 concurrent events all land in the aggregate."""
        events = [metrics.record_hit(0.9, 10, 0.00002) for _ in range(50)]
        events += [metrics.record_miss() for _ in range(50)]

        await asyncio.gather(*events)

        snapshot = await metrics.snapshot()
        assert snapshot.total_requests == 100
        assert snapshot.cache_hits == 50
        assert snapshot.cache_misses == 50
        assert snapshot.total_tokens_saved == 500

    @pytest.mark.anyio
    async def test_reset_zeroes_counters(self, metrics):
        await metrics.record_miss()

        await metrics.reset()

        snapshot = await metrics.snapshot()
        assert snapshot.total_requests == 0
        assert snapshot.cache_misses == 0

    @pytest.mark.anyio
    async def test_update_failure_is_swallowed(self):
        store = AsyncMock()
        store.update.side_effect = MetricsUpdateConflict("conflict", attempts=3)
        service = MetricsService(store)

        assert await service.record_hit(0.9, 10, 0.0) is None
        assert await service.record_miss() is None


class TestRedisMetricsStore:
    """Check-and-set transaction loop."""

    @pytest.mark.anyio
    async def test_update_writes_mutated_record(self):
        existing = CacheMetrics.zeroed().with_miss().to_redis_hash()
        client, pipe = mock_redis({k.encode(): v.encode() for k, v in existing.items()})
        store = RedisMetricsStore(client, key="cache:metrics", max_retries=2, retry_backoff=0)

        updated = await store.update(lambda m: m.with_hit(0.9, 10, 0.00002))

        assert updated.total_requests == 2
        assert updated.cache_hits == 1
        pipe.watch.assert_awaited_once_with("cache:metrics")
        pipe.multi.assert_called_once()
        key, = pipe.hset.call_args.args
        mapping = pipe.hset.call_args.kwargs["mapping"]
        assert key == "cache:metrics"
        assert mapping["total_requests"] == "2"
        assert "hit_ratio" not in mapping

    @pytest.mark.anyio
    async def test_update_starts_from_zero_when_missing(self):
        client, pipe = mock_redis()
        store = RedisMetricsStore(client, key="cache:metrics", max_retries=0, retry_backoff=0)

        updated = await store.update(lambda m: m.with_miss())

        assert updated.total_requests == 1
        assert updated.cache_misses == 1

    @pytest.mark.anyio
    async def test_update_retries_on_conflict(self):
        client, pipe = mock_redis(execute_side_effect=[WatchError(), WatchError(), [1]])
        store = RedisMetricsStore(client, key="cache:metrics", max_retries=3, retry_backoff=0)

        updated = await store.update(lambda m: m.with_miss())

        assert updated.total_requests == 1
        assert pipe.execute.await_count == 3

    @pytest.mark.anyio
    async def test_update_gives_up_after_max_retries(self):
        client, pipe = mock_redis(execute_side_effect=WatchError())
        store = RedisMetricsStore(client, key="cache:metrics", max_retries=2, retry_backoff=0)

        with pytest.raises(MetricsUpdateConflict) as exc_info:
            await store.update(lambda m: m.with_miss())

        assert exc_info.value.attempts == 3
        assert pipe.execute.await_count == 3

    @pytest.mark.anyio
    async def test_connection_error_becomes_index_unavailable(self):
        client, pipe = mock_redis()
        pipe.watch.side_effect = RedisConnectionError("refused")
        store = RedisMetricsStore(client, key="cache:metrics", max_retries=2, retry_backoff=0)

        with pytest.raises(IndexUnavailableError):
            await store.update(lambda m: m.with_miss())

    @pytest.mark.anyio
    async def test_read_single_round_trip(self):
        existing = CacheMetrics.zeroed().with_miss().to_redis_hash()
        client, _ = mock_redis(existing)
        store = RedisMetricsStore(client, key="cache:metrics")

        metrics = await store.read()

        assert metrics is not None
        assert metrics.cache_misses == 1
        client.hgetall.assert_awaited_once_with("cache:metrics")

    @pytest.mark.anyio
    async def test_read_rejects_corrupt_record(self):
        client, _ = mock_redis({b"total_requests": b"2", b"cache_hits": b"5", b"cache_misses": b"0"})
        store = RedisMetricsStore(client, key="cache:metrics")

        with pytest.raises(SchemaMismatchError):
            await store.read()

    @pytest.mark.anyio
    async def test_replace_overwrites_in_one_transaction(self):
        client, pipe = mock_redis()
        store = RedisMetricsStore(client, key="cache:metrics")

        await store.replace(CacheMetrics.zeroed())

        pipe.delete.assert_called_once_with("cache:metrics")
        pipe.hset.assert_called_once()
        pipe.execute.assert_awaited_once()


class TestInMemoryMetricsStore:
    @pytest.mark.anyio
    async def test_read_is_none_until_first_update(self):
        store = InMemoryMetricsStore()

        assert await store.read() is None
        await store.update(lambda m: m.with_miss())
        assert (await store.read()).cache_misses == 1
