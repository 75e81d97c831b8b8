"""Redis implementation of MetricsStore.

The aggregate lives in a single Redis hash. Updates use optimistic
WATCH/MULTI/EXEC transactions so concurrent requests never lose increments,
and reads are a single HGETALL so snapshots are never half-updated.
"""

import asyncio
import logging
import random

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError

from stance_cache.config import Settings, settings
from stance_cache.exceptions import IndexUnavailableError, MetricsUpdateConflict
from stance_cache.models import CacheMetrics
from stance_cache.protocols import MetricsMutation

logger = logging.getLogger(__name__)


class RedisMetricsStore:
    """Metrics aggregate stored as a Redis hash.

    Satisfies the MetricsStore protocol through structural typing.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key: str | None = None,
        max_retries: int | None = None,
        retry_backoff: float | None = None,
    ) -> None:
        """Initialize the metrics store.

        Args:
            redis_client: Async Redis client. The caller owns and closes it.
            key: Hash key of the aggregate. Defaults to settings.
            max_retries: Retries after a conflicting concurrent update.
            retry_backoff: Base delay in seconds for exponential backoff.
        """
        self._client = redis_client
        self._key = key or settings.cache_metrics_key
        self._max_retries = settings.metrics_max_retries if max_retries is None else max_retries
        self._retry_backoff = settings.metrics_retry_backoff if retry_backoff is None else retry_backoff

    @classmethod
    def create(cls, redis_client: redis.Redis, config: Settings | None = None) -> "RedisMetricsStore":
        """Factory method to create RedisMetricsStore from settings."""
        config = config or settings
        return cls(
            redis_client,
            key=config.cache_metrics_key,
            max_retries=config.metrics_max_retries,
            retry_backoff=config.metrics_retry_backoff,
        )

    def _backoff(self, attempt: int) -> float:
        return self._retry_backoff * (2**attempt) + random.uniform(0, self._retry_backoff)

    async def read(self) -> CacheMetrics | None:
        """Read the aggregate in one round trip."""
        try:
            raw = await self._client.hgetall(self._key)
        except (RedisError, OSError) as e:
            raise IndexUnavailableError(f"Metrics read failed: {e}", details={"key": self._key}) from e
        return CacheMetrics.from_redis_hash(raw)

    async def update(self, mutate: MetricsMutation) -> CacheMetrics:
        """Apply ``mutate`` atomically using a check-and-set transaction.

        Raises:
            MetricsUpdateConflict: If every attempt raced with another writer
            IndexUnavailableError: If Redis cannot be reached
            SchemaMismatchError: If the stored record is invalid
        """
        attempts = self._max_retries + 1
        for attempt in range(attempts):
            try:
                async with self._client.pipeline(transaction=True) as pipe:
                    await pipe.watch(self._key)
                    raw = await pipe.hgetall(self._key)
                    current = CacheMetrics.from_redis_hash(raw) or CacheMetrics.zeroed()
                    updated = mutate(current)
                    pipe.multi()
                    pipe.hset(self._key, mapping=updated.to_redis_hash())
                    await pipe.execute()
                    return updated
            except WatchError:
                logger.debug("Metrics update conflict on %s (attempt %d/%d)", self._key, attempt + 1, attempts)
                if attempt + 1 < attempts:
                    await asyncio.sleep(self._backoff(attempt))
            except (RedisError, OSError) as e:
                raise IndexUnavailableError(f"Metrics update failed: {e}", details={"key": self._key}) from e

        raise MetricsUpdateConflict(
            f"Metrics update on {self._key} conflicted {attempts} times",
            attempts=attempts,
            details={"key": self._key},
        )

    async def replace(self, metrics: CacheMetrics) -> None:
        """Overwrite the aggregate in a single transaction."""
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.delete(self._key)
                pipe.hset(self._key, mapping=metrics.to_redis_hash())
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise IndexUnavailableError(f"Metrics reset failed: {e}", details={"key": self._key}) from e
