"""OpenAI chat completion generator.

The expensive call the semantic cache sits in front of. Errors here are
not cache errors and propagate to the caller unchanged.
"""

import httpx

from stance_cache.config import Settings, settings


class OpenAIChatGenerator:
    """Generator backed by ``POST /chat/completions``.

    Satisfies the Generator protocol through structural typing.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        base_url: str | None = None,
        system_prompt: str | None = None,
        max_tokens: int = 150,
        temperature: float = 0.7,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            api_key: OpenAI API key. Defaults to settings.openai_api_key.
            model_name: Chat model. Defaults to settings.chat_model.
            base_url: API base URL. Defaults to settings.openai_base_url.
            system_prompt: Optional system message sent before the prompt.
            max_tokens: Completion length limit.
            temperature: Sampling temperature.
            timeout: Request timeout in seconds.
            client: Pre-built httpx client (mainly for tests).
        """
        self._api_key = api_key or settings.openai_api_key
        self._model_name = model_name or settings.chat_model
        self._base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._system_prompt = system_prompt
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._timeout = timeout
        self._client = client

    @classmethod
    def create(cls, config: Settings | None = None, system_prompt: str | None = None) -> "OpenAIChatGenerator":
        """Factory method to create OpenAIChatGenerator from settings."""
        config = config or settings
        return cls(
            api_key=config.openai_api_key,
            model_name=config.chat_model,
            base_url=config.openai_base_url,
            system_prompt=system_prompt,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the async HTTP client."""
        if self._client is None:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
            self._client = httpx.AsyncClient(base_url=self._base_url, headers=headers, timeout=self._timeout)
        return self._client

    @property
    def model_name(self) -> str:
        return self._model_name

    async def generate(self, prompt: str) -> str:
        """Generate a completion for ``prompt``.

        Raises:
            httpx.HTTPError: If the request fails or returns a non-2xx status
            ValueError: If the response has no message content
        """
        messages = []
        if self._system_prompt:
            messages.append({"role": "system", "content": self._system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = await self.client.post(
            "/chat/completions",
            json={
                "model": self._model_name,
                "messages": messages,
                "max_tokens": self._max_tokens,
                "temperature": self._temperature,
            },
        )
        response.raise_for_status()

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ValueError(f"Unexpected chat completion format: {e}") from e
        if content is None:
            raise ValueError("Chat completion returned no content")
        return content.strip()

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
