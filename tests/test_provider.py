"""Tests for remote provider embedders (HTTP mocked with httpx.MockTransport)."""

import json
import math

import httpx
import pytest

from recollect.core.config import Settings
from recollect.embedding import create_embedder
from recollect.embedding.base import EmbedderType, EmbeddingConfigError, EmbeddingRequestError
from recollect.embedding.provider import ProviderEmbedder, WireFormat


def _norm(vector: list[float]) -> float:
    return math.sqrt(sum(x * x for x in vector))


@pytest.mark.asyncio
async def test_batch_wire_format():
    """OpenAI-style request carries all inputs; response order follows index."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "data": [
                    {"index": 1, "embedding": [0.0, 2.0]},
                    {"index": 0, "embedding": [3.0, 4.0]},
                ]
            },
        )

    embedder = ProviderEmbedder(
        "openai", api_key="sk-test", transport=httpx.MockTransport(handler)
    )
    vectors = await embedder.embed_batch(["first", "second"])
    await embedder.close()

    assert seen["url"] == "https://api.openai.com/v1/embeddings"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {"model": "text-embedding-3-small", "input": ["first", "second"]}
    assert vectors[0] == pytest.approx([0.6, 0.8])
    assert vectors[1] == pytest.approx([0.0, 1.0])


@pytest.mark.asyncio
async def test_single_wire_format():
    """Ollama-style provider gets one request per text."""
    prompts = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        prompts.append(body["prompt"])
        assert body["model"] == "nomic-embed-text"
        return httpx.Response(200, json={"embedding": [float(len(prompts)), 0.0, 0.0]})

    embedder = ProviderEmbedder("ollama", transport=httpx.MockTransport(handler))
    assert embedder.wire is WireFormat.SINGLE

    vectors = await embedder.embed_batch(["a", "b", "c"])
    await embedder.close()

    assert prompts == ["a", "b", "c"]
    assert len(vectors) == 3
    assert all(_norm(v) == pytest.approx(1.0) for v in vectors)


@pytest.mark.asyncio
async def test_embed_single_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"embedding": [1.0, 1.0]}]})

    embedder = ProviderEmbedder(
        "voyage", api_key="k", transport=httpx.MockTransport(handler)
    )
    vector = await embedder.embed("hello")
    await embedder.close()
    assert _norm(vector) == pytest.approx(1.0)
    assert embedder.dimension() == 1024


@pytest.mark.asyncio
async def test_http_error_is_request_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": "bad key"})

    embedder = ProviderEmbedder("openai", api_key="x", transport=httpx.MockTransport(handler))
    with pytest.raises(EmbeddingRequestError, match="401"):
        await embedder.embed("hello")
    await embedder.close()


@pytest.mark.asyncio
async def test_connection_error_is_request_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    embedder = ProviderEmbedder("ollama", transport=httpx.MockTransport(handler))
    with pytest.raises(EmbeddingRequestError):
        await embedder.embed("hello")
    assert await embedder.health_check() is False
    await embedder.close()


@pytest.mark.asyncio
async def test_malformed_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    embedder = ProviderEmbedder("openai", api_key="x", transport=httpx.MockTransport(handler))
    with pytest.raises(EmbeddingRequestError):
        await embedder.embed("hello")
    await embedder.close()


@pytest.mark.asyncio
async def test_result_count_mismatch():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

    embedder = ProviderEmbedder("openai", api_key="x", transport=httpx.MockTransport(handler))
    with pytest.raises(EmbeddingRequestError):
        await embedder.embed_batch(["one", "two"])
    await embedder.close()


@pytest.mark.asyncio
async def test_empty_batch_makes_no_request():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    embedder = ProviderEmbedder("openai", api_key="x", transport=httpx.MockTransport(handler))
    assert await embedder.embed_batch([]) == []


def test_unknown_provider_needs_endpoint():
    with pytest.raises(EmbeddingConfigError):
        ProviderEmbedder("mystery")

    embedder = ProviderEmbedder("mystery", endpoint="http://localhost:9999/embed", model="m")
    assert embedder.wire is WireFormat.BATCH
    assert embedder.endpoint == "http://localhost:9999/embed"
    assert embedder.embedder_type is EmbedderType.CUSTOM
    assert ProviderEmbedder("openai", api_key="x").embedder_type is EmbedderType.OPENAI


def test_api_key_from_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    assert ProviderEmbedder("openai").api_key == "sk-env"


def test_create_embedder_none():
    settings = Settings(embedding_provider="none", _env_file=None)
    assert create_embedder(settings) is None


def test_create_embedder_provider():
    settings = Settings(
        embedding_provider="Ollama",
        embedding_model="all-minilm",
        embedding_dimension=384,
        _env_file=None,
    )
    embedder = create_embedder(settings)
    assert isinstance(embedder, ProviderEmbedder)
    assert embedder.model == "all-minilm"
    assert embedder.dimension() == 384


def test_create_embedder_local_missing_model(tmp_path):
    settings = Settings(embedding_provider="local", model_dir=tmp_path, _env_file=None)
    with pytest.raises(EmbeddingConfigError):
        create_embedder(settings)
