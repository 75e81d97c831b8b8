"""Cache service for core business logic.

This service orchestrates cache operations by coordinating the repository
(vector index), the embedding provider and the metrics accumulator.
Every failure of a collaborator degrades to "no cache benefit this time";
none of them fails the caller's request.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from stance_cache.config import Settings, settings
from stance_cache.entities import CacheEntryEntity, GenerationResult, LookupResult
from stance_cache.exceptions import (
    CacheWriteError,
    EmbeddingError,
    IndexUnavailableError,
    SchemaMismatchError,
    SemanticCacheError,
)
from stance_cache.protocols import CacheStore, EmbeddingProvider
from stance_cache.schema import TAG_SEPARATOR, validate_vector

from .metrics_service import MetricsService

logger = logging.getLogger(__name__)

GenerateFn = Callable[[str], Awaitable[str]]


class CacheService:
    """Core cache orchestration service.

    This service depends on PROTOCOLS, not concrete implementations:
    - CacheStore: Redis vector index, or any other store
    - EmbeddingProvider: OpenAI, local sentence-transformers, etc.

    Example:
        ```python
        from stance_cache.services import CacheService, MetricsService

        cache = CacheService.create(
            repository=await RedisCacheRepository.create(client),
            embedding_provider=OpenAIEmbeddingProvider.create(),
            metrics=MetricsService(RedisMetricsStore.create(client)),
        )

        result = await cache.lookup("What is your stance on climate policy?", "climate_policy")
        if not result.hit:
            response = await generate(...)
            await cache.store(prompt, response, "climate_policy", vector=result.vector)
        ```
    """

    def __init__(
        self,
        repository: CacheStore,
        embedding_provider: EmbeddingProvider,
        metrics: MetricsService,
        config: Settings | None = None,
        similarity_threshold: float | None = None,
    ) -> None:
        """Initialize the cache service.

        Args:
            repository: Vector index backend (required).
            embedding_provider: Embedding generation service (required).
            metrics: Metrics accumulator (required).
            config: Settings for timeouts, k, dimensions and estimates.
            similarity_threshold: Minimum similarity for a hit (0-1). Defaults to settings.
        """
        self._repository = repository
        self._embeddings = embedding_provider
        self._metrics = metrics
        self._config = config or settings
        self._threshold = (
            self._config.similarity_threshold if similarity_threshold is None else similarity_threshold
        )
        self._check_threshold(self._threshold)

    @classmethod
    def create(
        cls,
        repository: CacheStore,
        embedding_provider: EmbeddingProvider,
        metrics: MetricsService,
        config: Settings | None = None,
        similarity_threshold: float | None = None,
    ) -> "CacheService":
        """Factory method to create CacheService with settings defaults.

        Args:
            repository: Vector index backend (required).
            embedding_provider: Embedding generation service (required).
            metrics: Metrics accumulator (required).
            config: Settings. If None, uses global settings.
            similarity_threshold: Hit threshold. If None, uses settings.

        Returns:
            Configured CacheService instance
        """
        return cls(
            repository=repository,
            embedding_provider=embedding_provider,
            metrics=metrics,
            config=config,
            similarity_threshold=similarity_threshold,
        )

    def normalize_topic(self, topic: str | None) -> str:
        """Strip the topic; blank topics fall back to the default topic.

        Raises:
            ValueError: If the topic contains the tag separator
        """
        topic = (topic or "").strip()
        if TAG_SEPARATOR in topic:
            raise ValueError(f"Topic must not contain {TAG_SEPARATOR!r}: {topic!r}")
        return topic or self._config.default_topic

    async def _embed(self, text: str) -> list[float]:
        try:
            vector = await asyncio.wait_for(self._embeddings.encode(text), timeout=self._config.embedding_timeout)
        except asyncio.TimeoutError as e:
            raise EmbeddingError(
                f"Embedding timed out after {self._config.embedding_timeout}s",
                details={"timeout": self._config.embedding_timeout},
            ) from e

        try:
            return validate_vector(vector, self._config.vector_dimension)
        except SchemaMismatchError as e:
            raise EmbeddingError(f"Malformed embedding: {e.message}", details=e.details) from e

    async def lookup(self, prompt: str, topic: str | None) -> LookupResult:
        """Check the cache for a semantically similar prompt in the same topic.

        Business logic:
        1. Generate embedding for the prompt
        2. Query the k nearest entries filtered to exactly ``topic``
        3. Compare the best candidate's similarity with the threshold (inclusive)
        4. Record a hit or a miss in the metrics

        Collaborator failures are logged and reported as a miss with
        ``error`` set; they never raise.

        Args:
            prompt: The prompt to search for
            topic: Topic tag partitioning the search space

        Returns:
            LookupResult (hit with response and similarity, or miss)

        Raises:
            ValueError: If the topic contains the tag separator
        """
        topic = self.normalize_topic(topic)
        result = await self._lookup(prompt, topic)

        if result.hit and result.match is not None and result.similarity is not None:
            tokens_saved = result.match.tokens_saved or self._config.estimate_tokens(result.match.response)
            await self._metrics.record_hit(
                similarity=result.similarity,
                tokens_saved=tokens_saved,
                cost_saved=self._config.estimate_cost(tokens_saved),
            )
        else:
            await self._metrics.record_miss()

        return result

    async def _lookup(self, prompt: str, topic: str) -> LookupResult:
        try:
            vector = await self._embed(prompt)
        except EmbeddingError as e:
            logger.warning("Cache lookup degraded to miss (embedding): %s", e)
            return LookupResult.miss(error=e)

        try:
            matches = await asyncio.wait_for(
                self._repository.search(vector, topic, k=self._config.search_k),
                timeout=self._config.index_timeout,
            )
        except asyncio.TimeoutError as e:
            error = IndexUnavailableError(f"Index search timed out after {self._config.index_timeout}s")
            error.__cause__ = e
            logger.warning("Cache lookup degraded to miss (index): %s", error)
            return LookupResult.miss(vector=vector, error=error)
        except IndexUnavailableError as e:
            logger.warning("Cache lookup degraded to miss (index): %s", e)
            return LookupResult.miss(vector=vector, error=e)

        if not matches:
            logger.debug("Cache MISS for topic %s: no entries", topic)
            return LookupResult.miss(vector=vector)

        best = matches[0]
        if best.similarity >= self._threshold:
            logger.info("Cache HIT for topic %s: similarity %.3f", topic, best.similarity)
            return LookupResult.from_match(best, vector)

        logger.debug(
            "Cache MISS for topic %s: best similarity %.3f below threshold %.3f",
            topic,
            best.similarity,
            self._threshold,
        )
        return LookupResult.miss(vector=vector, match=best)

    async def store(
        self,
        prompt: str,
        response: str,
        topic: str | None,
        vector: list[float] | None = None,
    ) -> CacheEntryEntity:
        """Store a new prompt-response pair.

        Business logic:
        1. Reuse ``vector`` from a preceding lookup, or embed the prompt
        2. Validate its dimension against the index schema
        3. Build a new immutable entry and write it to the index

        Args:
            prompt: The original prompt text
            response: The generated response to cache
            topic: Topic tag for the entry
            vector: Embedding already computed for ``prompt``

        Returns:
            The written entry

        Raises:
            CacheWriteError: If the topic is invalid, or embedding, validation
                or the index write fails
        """
        try:
            topic = self.normalize_topic(topic)
        except ValueError as e:
            raise CacheWriteError(f"Cache write rejected: {e}", details={"topic": topic}) from e

        try:
            if vector is None:
                vector = await self._embed(prompt)
            else:
                vector = validate_vector(vector, self._config.vector_dimension)

            entry = CacheEntryEntity(
                prompt=prompt,
                response=response,
                vector=vector,
                topic=topic,
                tokens_saved=self._config.estimate_tokens(response),
            )
            key = await asyncio.wait_for(self._repository.upsert(entry), timeout=self._config.index_timeout)
        except asyncio.TimeoutError as e:
            raise CacheWriteError(
                f"Cache write timed out after {self._config.index_timeout}s",
                details={"topic": topic},
            ) from e
        except SemanticCacheError as e:
            raise CacheWriteError(
                f"Cache write failed: {e.message}",
                details={"topic": topic, "cause": type(e).__name__},
            ) from e

        logger.info("Cached response for topic %s under %s", topic, key)
        return entry

    async def get_or_generate(self, prompt: str, topic: str | None, generate: GenerateFn) -> GenerationResult:
        """Return a cached response, or generate and cache a new one.

        Generation errors propagate; cache errors never do. If writing the
        new entry fails, the generated response is still returned and the
        failure is attached as ``cache_error``.

        Args:
            prompt: The prompt to answer
            topic: Topic tag partitioning the cache
            generate: The expensive call, e.g. ``OpenAIChatGenerator.generate``

        Returns:
            GenerationResult with the response and how it was obtained
        """
        result = await self.lookup(prompt, topic)
        if result.hit and result.response is not None:
            return GenerationResult(response=result.response, cached=True, similarity=result.similarity or 0.0)

        response = await generate(prompt)

        try:
            entry = await self.store(prompt, response, topic, vector=result.vector)
        except CacheWriteError as e:
            logger.warning("Returning uncached response: %s", e)
            return GenerationResult(response=response, cached=False, cache_error=e)

        return GenerationResult(response=response, cached=False, entry=entry)

    async def sweep_stale(self, retention_seconds: int | None = None) -> int:
        """Delete entries older than the retention window.

        Args:
            retention_seconds: Override the configured retention window

        Returns:
            Number of entries removed
        """
        retention = self._config.retention_seconds if retention_seconds is None else retention_seconds
        return await self._repository.sweep_stale(time.time() - retention)

    async def delete(self, key: str) -> bool:
        """Delete a specific cache entry by key."""
        return await self._repository.delete(key)

    async def clear(self) -> int:
        """Delete all entries and reset the metrics.

        Returns:
            Number of entries deleted
        """
        count = await self._repository.clear()
        await self._metrics.reset()
        return count

    async def get_stats(self) -> dict:
        """Index statistics merged with the current metrics snapshot."""
        stats = await self._repository.get_stats()
        metrics = await self._metrics.snapshot()
        stats.update(
            {
                "similarity_threshold": self._threshold,
                "retention_seconds": self._config.retention_seconds,
                "embedding_model": self._embeddings.model_name,
                "embedding_dimension": self._embeddings.dimension,
                "metrics": metrics.model_dump(mode="json"),
                "memory_saved_mb": metrics.total_tokens_saved * self._config.chars_per_token / (1024 * 1024),
            }
        )
        return stats

    async def is_healthy(self) -> dict[str, bool]:
        """Health of each collaborator."""
        repo_healthy = await self._repository.health_check()
        embeddings_healthy = await self._embeddings.is_available()
        return {"repository": repo_healthy, "embeddings": embeddings_healthy}

    @staticmethod
    def _check_threshold(threshold: float) -> None:
        if not 0 <= threshold <= 1:
            raise ValueError("Threshold must be between 0 and 1")

    def set_threshold(self, threshold: float) -> None:
        """Update the similarity threshold.

        Args:
            threshold: New threshold value (0-1, higher = more strict)
        """
        self._check_threshold(threshold)
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        """Get current similarity threshold."""
        return self._threshold

    @property
    def repository(self) -> CacheStore:
        """Get the underlying repository (for testing)."""
        return self._repository

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        """Get the underlying embedding provider (for testing)."""
        return self._embeddings

    @property
    def metrics(self) -> MetricsService:
        """Get the metrics accumulator."""
        return self._metrics
