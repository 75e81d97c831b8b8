"""Tests for the HTTP-backed embedding provider and chat generator."""

import json

import httpx
import pytest

from stance_cache.exceptions import EmbeddingError
from stance_cache.repositories import OpenAIChatGenerator, OpenAIEmbeddingProvider

BASE_URL = "https://api.openai.test/v1"


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


def embedding_provider(handler, dimension: int = 3, max_input_length: int = 8000) -> OpenAIEmbeddingProvider:
    return OpenAIEmbeddingProvider(
        api_key="test-key",
        model_name="text-embedding-ada-002",
        base_url=BASE_URL,
        dimension=dimension,
        max_input_length=max_input_length,
        client=make_client(handler),
    )


class TestOpenAIEmbeddingProvider:
    @pytest.mark.anyio
    async def test_encode(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})

        provider = embedding_provider(handler)

        vector = await provider.encode("What is your stance on climate policy?")

        assert vector == pytest.approx([0.1, 0.2, 0.3])
        assert requests == [
            {"model": "text-embedding-ada-002", "input": "What is your stance on climate policy?"}
        ]

    @pytest.mark.anyio
    async def test_encode_truncates_long_input(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content)["input"])
            return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})

        provider = embedding_provider(handler, max_input_length=10)

        await provider.encode("x" * 50)

        assert seen == ["x" * 10]

    @pytest.mark.anyio
    async def test_rate_limit(self):
        provider = embedding_provider(lambda request: httpx.Response(429, headers={"retry-after": "2"}))

        with pytest.raises(EmbeddingError) as exc_info:
            await provider.encode("prompt")

        assert exc_info.value.details == {"status_code": 429, "retry_after": "2"}

    @pytest.mark.anyio
    async def test_server_error(self):
        provider = embedding_provider(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(EmbeddingError, match="HTTP 500"):
            await provider.encode("prompt")

    @pytest.mark.anyio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = embedding_provider(handler)

        with pytest.raises(EmbeddingError):
            await provider.encode("prompt")

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "payload",
        [{"data": []}, {"unexpected": True}, {"data": [{"embedding": ["a", "b", "c"]}]}],
    )
    async def test_malformed_response(self, payload):
        provider = embedding_provider(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(EmbeddingError):
            await provider.encode("prompt")

    @pytest.mark.anyio
    async def test_wrong_dimension(self):
        provider = embedding_provider(
            lambda request: httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2]}]})
        )

        with pytest.raises(EmbeddingError, match="2 dimensions"):
            await provider.encode("prompt")

    @pytest.mark.anyio
    async def test_is_available_does_not_embed(self):
        """Health checks look the model up instead of paying for an embedding."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append((request.method, request.url.path))
            return httpx.Response(200, json={"id": "text-embedding-ada-002", "object": "model"})

        healthy = embedding_provider(handler)
        unhealthy = embedding_provider(lambda request: httpx.Response(503))

        assert await healthy.is_available() is True
        assert await unhealthy.is_available() is False
        assert requests == [("GET", "/v1/models/text-embedding-ada-002")]

    @pytest.mark.anyio
    async def test_is_available_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert await embedding_provider(handler).is_available() is False

    def test_known_model_dimension(self):
        provider = OpenAIEmbeddingProvider(api_key="k", model_name="text-embedding-3-large")

        assert provider.dimension == 3072


class TestOpenAIChatGenerator:
    @pytest.mark.anyio
    async def test_generate(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(
                200, json={"choices": [{"message": {"content": "  Balanced approach needed. "}}]}
            )

        generator = OpenAIChatGenerator(
            api_key="test-key",
            model_name="gpt-4",
            base_url=BASE_URL,
            system_prompt="You are a debater.",
            client=make_client(handler),
        )

        response = await generator.generate("What is your stance on climate policy?")

        assert response == "Balanced approach needed."
        assert bodies[0]["model"] == "gpt-4"
        assert [m["role"] for m in bodies[0]["messages"]] == ["system", "user"]

    @pytest.mark.anyio
    async def test_http_errors_propagate(self):
        generator = OpenAIChatGenerator(
            api_key="test-key",
            base_url=BASE_URL,
            client=make_client(lambda request: httpx.Response(500)),
        )

        with pytest.raises(httpx.HTTPStatusError):
            await generator.generate("prompt")
