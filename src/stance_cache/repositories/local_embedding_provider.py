"""Local sentence-transformers embedding provider.

Runs a sentence-transformers model in-process, no API calls required.
Handy for offline development; remember to set CACHE_VECTOR_DIMENSION to
the model's dimension (384 for the default model) and rebuild the index.
"""

import asyncio
import logging
import time

import numpy as np
from sentence_transformers import SentenceTransformer

from stance_cache.config import Settings, settings
from stance_cache.exceptions import EmbeddingError

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_MODEL = "paraphrase-multilingual-MiniLM-L12-v2"


class LocalEmbeddingProvider:
    """Local sentence-transformers implementation of EmbeddingProvider.

    This class satisfies the EmbeddingProvider protocol through structural
    typing - no explicit inheritance needed.

    Encoding runs in a worker thread so the event loop keeps serving
    other requests while the model computes.
    """

    def __init__(self, model_name: str | None = None, max_input_length: int | None = None) -> None:
        """Initialize the local embedding provider.

        Args:
            model_name: Name of the sentence-transformers model.
            max_input_length: Characters kept from the input text.
        """
        self._model_name = model_name or DEFAULT_LOCAL_MODEL
        self._max_input_length = max_input_length or settings.max_prompt_length
        self._model: SentenceTransformer | None = None
        self._dimension: int | None = None

    @classmethod
    def create(cls, config: Settings | None = None) -> "LocalEmbeddingProvider":
        """Factory method to create LocalEmbeddingProvider from settings.

        The OpenAI default model name is not a sentence-transformers model,
        so it falls back to the local default.
        """
        config = config or settings
        model_name = config.embedding_model
        if model_name.startswith("text-embedding-"):
            model_name = DEFAULT_LOCAL_MODEL
        return cls(model_name=model_name, max_input_length=config.max_prompt_length)

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the embedding model."""
        if self._model is None:
            logger.info("Loading embedding model: %s", self._model_name)
            start_time = time.time()
            self._model = SentenceTransformer(self._model_name)
            logger.info("Model loaded in %.2fs", time.time() - start_time)
        return self._model

    @property
    def dimension(self) -> int:
        """Get the embedding vector dimension."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension

    @property
    def model_name(self) -> str:
        """Get the model name/identifier."""
        return self._model_name

    def _encode_sync(self, text: str) -> list[float]:
        embedding = self.model.encode(
            text[: self._max_input_length],
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        array = np.asarray(embedding, dtype=np.float32)
        if array.ndim > 1:
            array = array[0]
        return array.tolist()

    async def encode(self, text: str) -> list[float]:
        """Generate embedding vector for a single text.

        Raises:
            EmbeddingError: If the model cannot be loaded or encoding fails
        """
        try:
            return await asyncio.to_thread(self._encode_sync, text)
        except (OSError, RuntimeError, ValueError) as e:
            raise EmbeddingError(f"Local embedding failed: {e}", details={"model": self._model_name}) from e

    async def is_available(self) -> bool:
        """Check if the model can be loaded."""
        try:
            await asyncio.to_thread(lambda: self.model)
            return True
        except (OSError, RuntimeError, ValueError) as e:
            logger.warning("Local embedding model unavailable: %s", e)
            return False
