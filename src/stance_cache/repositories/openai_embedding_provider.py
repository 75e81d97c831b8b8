"""OpenAI embedding provider.

Uses the OpenAI embeddings endpoint (``POST /embeddings``) over httpx.
The default model, text-embedding-ada-002, returns 1536-dimensional
vectors, which is the dimension the cache index is created with.
"""

import logging

import httpx

from stance_cache.config import Settings, settings
from stance_cache.exceptions import EmbeddingError

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    """OpenAI implementation of the EmbeddingProvider protocol.

    This class satisfies the EmbeddingProvider protocol through structural
    typing - no explicit inheritance needed.

    Example:
        ```python
        provider = OpenAIEmbeddingProvider.create()
        embedding = await provider.encode("What is your stance on climate policy?")
        print(len(embedding))  # 1536
        ```
    """

    MODEL_DIMENSIONS = {
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
    }

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        base_url: str | None = None,
        dimension: int | None = None,
        max_input_length: int | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the OpenAI embedding provider.

        Args:
            api_key: OpenAI API key. Defaults to settings.openai_api_key.
            model_name: Embedding model. Defaults to settings.embedding_model.
            base_url: API base URL. Defaults to settings.openai_base_url.
            dimension: Expected vector length. Defaults to the known model
                dimension, then to settings.vector_dimension.
            max_input_length: Characters kept from the input text.
            timeout: Request timeout in seconds.
            client: Pre-built httpx client (mainly for tests).
        """
        self._api_key = api_key or settings.openai_api_key
        self._model_name = model_name or settings.embedding_model
        self._base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._dimension = dimension or self.MODEL_DIMENSIONS.get(self._model_name, settings.vector_dimension)
        self._max_input_length = max_input_length or settings.max_prompt_length
        self._timeout = timeout or settings.embedding_timeout
        self._client = client

    @classmethod
    def create(cls, config: Settings | None = None) -> "OpenAIEmbeddingProvider":
        """Factory method to create OpenAIEmbeddingProvider from settings."""
        config = config or settings
        return cls(
            api_key=config.openai_api_key,
            model_name=config.embedding_model,
            base_url=config.openai_base_url,
            dimension=config.vector_dimension,
            max_input_length=config.max_prompt_length,
            timeout=config.embedding_timeout,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._client

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension."""
        return self._dimension

    @property
    def model_name(self) -> str:
        """Get the model name/identifier."""
        return self._model_name

    async def encode(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Args:
            text: The text to encode (truncated to the configured length)

        Returns:
            The embedding vector as a list of floats

        Raises:
            EmbeddingError: On network failure, rate limiting, a non-2xx
                status, or a response that is not a vector of the
                expected length
        """
        payload = {"model": self._model_name, "input": text[: self._max_input_length]}

        try:
            response = await self.client.post("/embeddings", json=payload)
        except httpx.HTTPError as e:
            raise EmbeddingError(f"OpenAI embeddings request failed: {e}") from e

        if response.status_code == 429:
            raise EmbeddingError(
                "OpenAI embeddings rate limit exceeded",
                details={"status_code": 429, "retry_after": response.headers.get("retry-after")},
            )
        if response.is_error:
            raise EmbeddingError(
                f"OpenAI embeddings returned HTTP {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            embedding = response.json()["data"][0]["embedding"]
            vector = [float(value) for value in embedding]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EmbeddingError(f"Unexpected embeddings response format: {e}") from e

        if len(vector) != self._dimension:
            raise EmbeddingError(
                f"Embedding has {len(vector)} dimensions, expected {self._dimension}",
                details={"expected": self._dimension, "actual": len(vector)},
            )
        return vector

    async def is_available(self) -> bool:
        """Check that the API is reachable and knows the embedding model.

        Uses ``GET /models/{model}``, which is not billed, so health
        checks never spend embedding tokens.
        """
        try:
            response = await self.client.get(f"/models/{self._model_name}")
        except httpx.HTTPError as e:
            logger.warning("Embedding provider unavailable: %s", e)
            return False

        if response.is_error:
            logger.warning("Embedding provider unavailable: HTTP %d for model %s", response.status_code, self._model_name)
            return False
        return True

    async def close(self) -> None:
        """Close the async HTTP client.

        Should be called when shutting down the application.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
