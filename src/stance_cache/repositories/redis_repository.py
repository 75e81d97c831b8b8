"""Redis implementation of CacheStore.

This repository uses Redis Stack with vector search capabilities (HNSW index).
It's the default implementation and satisfies the CacheStore protocol.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError
from redisvl.exceptions import RedisVLError
from redisvl.index import AsyncSearchIndex
from redisvl.query import FilterQuery, VectorQuery
from redisvl.query.filter import Num, Tag
from redisvl.schema import IndexSchema

from stance_cache.config import Settings, settings
from stance_cache.entities import CacheEntryEntity, CacheMatchEntity
from stance_cache.exceptions import IndexUnavailableError, SchemaMismatchError
from stance_cache.schema import (
    CHECKED_FIELD_ATTRS,
    CONTENT_FIELD,
    CREATED_AT_FIELD,
    RESPONSE_FIELD,
    RETURN_FIELDS,
    SCHEMA_FIELDS,
    TOKENS_SAVED_FIELD,
    TOPIC_FIELD,
    VECTOR_FIELD,
    build_index_schema,
    vector_to_bytes,
)

logger = logging.getLogger(__name__)


def _attr_value(attrs: Any, name: str) -> Any:
    value = getattr(attrs, name, None)
    # redisvl parses field types, algorithm, metric and datatype into str enums
    value = getattr(value, "value", value)
    return value.lower() if isinstance(value, str) else value


class RedisCacheRepository:
    """Redis implementation using an HNSW vector index.

    This class satisfies the CacheStore protocol through structural
    typing - no explicit inheritance needed.

    Uses Redis Stack's vector search with:
    - HNSW (Hierarchical Navigable Small World) algorithm
    - COSINE distance metric
    - An exact-match TAG filter on the topic field
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        config: Settings | None = None,
    ) -> None:
        """Initialize the Redis cache repository.

        Args:
            redis_client: Async Redis client. The caller owns and closes it.
            config: Settings with the index name, prefix and schema parameters.
        """
        self._client = redis_client
        self._config = config or settings
        self._index_name = self._config.cache_index_name
        self._prefix = self._config.cache_key_prefix
        self._index = AsyncSearchIndex.from_dict(
            build_index_schema(self._config),
            redis_client=redis_client,
        )

    @classmethod
    async def create(
        cls,
        redis_client: redis.Redis,
        config: Settings | None = None,
    ) -> "RedisCacheRepository":
        """Factory method that also provisions the index.

        Args:
            redis_client: Async Redis client.
            config: Settings. If None, uses global settings.

        Returns:
            Repository with a verified index

        Raises:
            SchemaMismatchError: If an existing index has a different schema
            IndexUnavailableError: If Redis cannot be reached
        """
        repository = cls(redis_client, config)
        await repository.ensure_index()
        return repository

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (RedisError, RedisVLError, OSError) as e:
            raise IndexUnavailableError(
                f"Redis {operation} failed: {e}",
                details={"index": self._index_name, "operation": operation},
            ) from e

    async def ensure_index(self) -> None:
        """Ensure the Redis vector index exists and matches the schema."""
        with self._translate_errors("ensure_index"):
            if await self._index.exists():
                existing = await AsyncSearchIndex.from_existing(
                    self._index_name, redis_client=self._client
                )
                self._check_existing_schema(existing)
                logger.info("Using existing index: %s", self._index_name)
                return

            await self._index.create(overwrite=False)
            logger.info(
                "Created new index: %s (dims=%d, prefix=%s)",
                self._index_name,
                self._config.vector_dimension,
                self._prefix,
            )

    async def rebuild_index(self) -> None:
        """Drop the index and all its entries, then recreate it from the schema.

        Used after a schema migration; existing entries cannot be kept
        because their vectors belong to the old schema.
        """
        with self._translate_errors("rebuild_index"):
            await self._index.create(overwrite=True, drop=True)
        logger.warning("Rebuilt index %s, all cached entries were dropped", self._index_name)

    def _check_existing_schema(self, existing: AsyncSearchIndex) -> None:
        fields = existing.schema.fields
        names = set(fields)
        if names != SCHEMA_FIELDS:
            raise SchemaMismatchError(
                f"Index {self._index_name} has fields {sorted(names)}, "
                f"expected {sorted(SCHEMA_FIELDS)}",
                details={"missing": sorted(SCHEMA_FIELDS - names), "extra": sorted(names - SCHEMA_FIELDS)},
            )

        expected_fields = IndexSchema.from_dict(build_index_schema(self._config)).fields
        mismatches: dict[str, dict[str, Any]] = {}
        for name, expected in expected_fields.items():
            actual = fields[name]
            field_type = _attr_value(expected, "type")
            if _attr_value(actual, "type") != field_type:
                mismatches[name] = {"expected": field_type, "actual": _attr_value(actual, "type")}
                continue
            for attr in CHECKED_FIELD_ATTRS.get(field_type, ()):
                want = _attr_value(expected.attrs, attr)
                got = _attr_value(actual.attrs, attr)
                if want != got:
                    mismatches[f"{name}.{attr}"] = {"expected": want, "actual": got}

        if mismatches:
            raise SchemaMismatchError(
                f"Index {self._index_name} does not match the cache schema: {', '.join(sorted(mismatches))}",
                details={"mismatches": mismatches},
            )

    async def upsert(self, entry: CacheEntryEntity) -> str:
        """Write a cache entry as a Redis hash.

        Args:
            entry: The entry to write. Its vector must already be validated.

        Returns:
            The storage key for the entry
        """
        key = entry.key(self._prefix)
        mapping = {
            CONTENT_FIELD: entry.prompt,
            RESPONSE_FIELD: entry.response,
            TOPIC_FIELD: entry.topic,
            VECTOR_FIELD: vector_to_bytes(entry.vector),
            CREATED_AT_FIELD: repr(entry.created_at),
            TOKENS_SAVED_FIELD: str(entry.tokens_saved),
        }

        with self._translate_errors("upsert"):
            await self._client.hset(key, mapping=mapping)

        return key

    async def search(
        self,
        vector: list[float],
        topic: str,
        k: int = 1,
    ) -> list[CacheMatchEntity]:
        """Find the nearest entries within one topic.

        Args:
            vector: The query embedding vector
            topic: Exact topic tag to filter on
            k: Maximum number of results to return

        Returns:
            Matches sorted by distance (closest first)
        """
        query = VectorQuery(
            vector=vector,
            vector_field_name=VECTOR_FIELD,
            return_fields=RETURN_FIELDS,
            num_results=k,
            filter_expression=Tag(TOPIC_FIELD) == topic,
        )

        with self._translate_errors("search"):
            results = await self._index.query(query)

        matches = []
        for result in results:
            match = self._parse_match(result)
            if match is None:
                continue
            if match.topic != topic:
                logger.warning(
                    "Skipping %s: topic %r does not equal requested topic %r",
                    match.key,
                    match.topic,
                    topic,
                )
                continue
            matches.append(match)

        matches.sort(key=lambda m: m.distance)
        return matches[:k]

    def _parse_match(self, result: dict[str, Any]) -> CacheMatchEntity | None:
        try:
            return CacheMatchEntity(
                key=result["id"],
                prompt=result[CONTENT_FIELD],
                response=result[RESPONSE_FIELD],
                topic=result[TOPIC_FIELD],
                distance=float(result["vector_distance"]),
                created_at=float(result.get(CREATED_AT_FIELD, 0) or 0),
                tokens_saved=int(float(result.get(TOKENS_SAVED_FIELD, 0) or 0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed cache entry %s: %r", result.get("id", "<unknown>"), e)
            return None

    async def delete(self, key: str) -> bool:
        """Delete a specific entry by key."""
        with self._translate_errors("delete"):
            result: int = await self._client.delete(key)
        return result > 0

    async def clear(self) -> int:
        """Delete every entry in the index, keeping the index itself."""
        with self._translate_errors("clear"):
            count = await self._index.clear()
        logger.info("Cleared %d entries from %s", count, self._index_name)
        return count

    async def count(self) -> int:
        """Count entries currently in the index."""
        with self._translate_errors("count"):
            info = await self._index.info()
        return int(info.get("num_docs", 0))

    async def sweep_stale(self, older_than: float, batch_size: int = 500) -> int:
        """Delete entries created before ``older_than`` (Unix timestamp).

        Args:
            older_than: Cutoff timestamp
            batch_size: Keys fetched and deleted per round trip

        Returns:
            Number of entries removed
        """
        query = FilterQuery(
            filter_expression=Num(CREATED_AT_FIELD) < older_than,
            return_fields=[CREATED_AT_FIELD],
            num_results=batch_size,
        )

        removed = 0
        with self._translate_errors("sweep"):
            while True:
                results = await self._index.query(query)
                keys = [result["id"] for result in results]
                if not keys:
                    break
                deleted = await self._client.delete(*keys)
                removed += deleted
                if deleted == 0 or len(keys) < batch_size:
                    break

        logger.info("Swept %d stale entries from %s", removed, self._index_name)
        return removed

    async def health_check(self) -> bool:
        """Check if Redis is accessible."""
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning("Redis health check failed: %s", e)
            return False

    async def get_stats(self) -> dict:
        """Get repository statistics."""
        return {
            "index_name": self._index_name,
            "key_prefix": self._prefix,
            "vector_dimension": self._config.vector_dimension,
            "total_entries": await self.count(),
        }

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client
