import os
from dataclasses import dataclass
from functools import lru_cache

import redis.asyncio as redis
from dotenv import load_dotenv

load_dotenv()

EMBEDDING_PROVIDERS = ("openai", "local")
METRICS_BACKENDS = ("redis", "memory")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Cache index
    cache_index_name: str = os.getenv("CACHE_INDEX_NAME", "cache-index")
    cache_key_prefix: str = os.getenv("CACHE_KEY_PREFIX", "cache:prompt:")
    cache_metrics_key: str = os.getenv("CACHE_METRICS_KEY", "cache:metrics")
    vector_dimension: int = int(os.getenv("CACHE_VECTOR_DIMENSION", "1536"))
    hnsw_m: int = int(os.getenv("HNSW_M", "16"))
    hnsw_ef_construction: int = int(os.getenv("HNSW_EF_CONSTRUCTION", "200"))
    hnsw_initial_cap: int = int(os.getenv("HNSW_INITIAL_CAP", "100"))

    # Lookup
    similarity_threshold: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.85"))
    search_k: int = int(os.getenv("CACHE_SEARCH_K", "1"))
    default_topic: str = os.getenv("CACHE_DEFAULT_TOPIC", "general")
    max_prompt_length: int = int(os.getenv("CACHE_MAX_PROMPT_LENGTH", "8000"))
    retention_seconds: int = int(os.getenv("CACHE_RETENTION_SECONDS", "86400"))  # 24 hours

    # Embedding
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "openai")
    embedding_model: str = os.getenv("EMBEDDING_MODEL", "text-embedding-ada-002")

    # Timeouts (seconds)
    embedding_timeout: float = float(os.getenv("EMBEDDING_TIMEOUT", "5.0"))
    index_timeout: float = float(os.getenv("INDEX_TIMEOUT", "3.0"))

    # OpenAI
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    chat_model: str = os.getenv("CHAT_MODEL", "gpt-4")

    # Savings estimates
    cost_per_1k_tokens: float = float(os.getenv("COST_PER_1K_TOKENS", "0.002"))
    chars_per_token: int = int(os.getenv("CHARS_PER_TOKEN", "4"))

    # Metrics
    metrics_backend: str = os.getenv("METRICS_BACKEND", "redis")
    metrics_max_retries: int = int(os.getenv("METRICS_MAX_RETRIES", "5"))
    metrics_retry_backoff: float = float(os.getenv("METRICS_RETRY_BACKOFF", "0.01"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def estimate_tokens(self, text: str) -> int:
        """Rough token estimate for a piece of text (1 token ≈ 4 characters)."""
        return -(-len(text) // self.chars_per_token)

    def estimate_cost(self, tokens: int) -> float:
        """Estimated generation cost for a number of tokens."""
        return tokens / 1000 * self.cost_per_1k_tokens

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not 0 <= self.similarity_threshold <= 1:
            raise ValueError("CACHE_SIMILARITY_THRESHOLD must be between 0 and 1")

        if self.vector_dimension <= 0:
            raise ValueError(f"CACHE_VECTOR_DIMENSION must be positive, got {self.vector_dimension}")

        if self.search_k < 1:
            raise ValueError(f"CACHE_SEARCH_K must be at least 1, got {self.search_k}")

        if self.chars_per_token < 1:
            raise ValueError(f"CHARS_PER_TOKEN must be at least 1, got {self.chars_per_token}")

        if self.embedding_timeout <= 0 or self.index_timeout <= 0:
            raise ValueError("EMBEDDING_TIMEOUT and INDEX_TIMEOUT must be positive")

        if not self.default_topic.strip():
            raise ValueError("CACHE_DEFAULT_TOPIC must not be empty")

        if self.embedding_provider not in EMBEDDING_PROVIDERS:
            raise ValueError(
                f"EMBEDDING_PROVIDER must be one of {list(EMBEDDING_PROVIDERS)}, "
                f"got {self.embedding_provider!r}"
            )

        if self.metrics_backend not in METRICS_BACKENDS:
            raise ValueError(
                f"METRICS_BACKEND must be one of {list(METRICS_BACKENDS)}, "
                f"got {self.metrics_backend!r}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client(config: Settings | None = None) -> redis.Redis:
    """Create an async Redis client instance.

    The client is not connected until first use; callers own it and must
    close it with ``await client.aclose()``.
    """
    config = config or settings
    return redis.from_url(
        config.redis_url,
        password=config.redis_password,
        decode_responses=False,
        socket_timeout=config.index_timeout,
        socket_connect_timeout=config.index_timeout,
    )
