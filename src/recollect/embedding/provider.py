"""Provider embedder - remote HTTP embedding APIs (OpenAI, Voyage, Ollama)."""

import os
from dataclasses import dataclass
from enum import Enum

import httpx

from recollect.core.config import Settings
from recollect.core.logging import get_logger
from recollect.embedding.base import (
    Embedder,
    EmbedderType,
    EmbeddingConfigError,
    EmbeddingRequestError,
)
from recollect.embedding.vectors import normalize

logger = get_logger("embedding.provider")


class WireFormat(Enum):
    BATCH = "batch"  # {"model", "input": [...]} -> {"data": [{"embedding"}]}
    SINGLE = "single"  # {"model", "prompt"} per text -> {"embedding"}


@dataclass(frozen=True)
class ProviderDefaults:
    endpoint: str
    model: str
    dimension: int
    key_env: str
    wire: WireFormat


PROVIDER_DEFAULTS: dict[str, ProviderDefaults] = {
    "openai": ProviderDefaults(
        endpoint="https://api.openai.com/v1/embeddings",
        model="text-embedding-3-small",
        dimension=1536,
        key_env="OPENAI_API_KEY",
        wire=WireFormat.BATCH,
    ),
    "voyage": ProviderDefaults(
        endpoint="https://api.voyageai.com/v1/embeddings",
        model="voyage-2",
        dimension=1024,
        key_env="VOYAGE_API_KEY",
        wire=WireFormat.BATCH,
    ),
    "ollama": ProviderDefaults(
        endpoint="http://localhost:11434/api/embeddings",
        model="nomic-embed-text",
        dimension=768,
        key_env="",
        wire=WireFormat.SINGLE,
    ),
}


class ProviderEmbedder(Embedder):
    """Embeddings from a remote provider over HTTP.

    Results are L2-normalized so they compare consistently with local ones.
    """

    def __init__(
        self,
        provider: str,
        api_key: str = "",
        model: str = "",
        endpoint: str = "",
        dimension: int = 0,
        wire: WireFormat | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        defaults = PROVIDER_DEFAULTS.get(provider)
        if defaults is None and not endpoint:
            raise EmbeddingConfigError(
                f"Unknown embedding provider {provider!r} and no endpoint specified"
            )

        self.provider = provider
        self.endpoint = endpoint or defaults.endpoint
        self.model = model or (defaults.model if defaults else "")
        self.wire = wire or (defaults.wire if defaults else WireFormat.BATCH)
        self._dimension = dimension or (defaults.dimension if defaults else 0)
        if not api_key and defaults and defaults.key_env:
            api_key = os.getenv(defaults.key_env, "")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        try:
            self.embedder_type = EmbedderType(provider)
        except ValueError:
            self.embedder_type = EmbedderType.CUSTOM

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "ProviderEmbedder":
        return cls(
            provider=settings.embedding_provider.lower(),
            api_key=settings.embedding_api_key,
            model=settings.embedding_model,
            endpoint=settings.embedding_endpoint,
            dimension=settings.embedding_dimension,
            timeout=settings.embedding_timeout,
            transport=transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        logger.debug(
            f"Embedding request: provider={self.provider}, model={self.model}, "
            f"texts={len(texts)}"
        )
        if self.wire is WireFormat.SINGLE:
            vectors = [await self._embed_single(text) for text in texts]
        else:
            vectors = await self._embed_batch(texts)

        if len(vectors) != len(texts):
            raise EmbeddingRequestError(
                f"Provider returned {len(vectors)} embeddings for {len(texts)} inputs"
            )
        return [normalize(v) for v in vectors]

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        data = await self._post({"model": self.model, "input": texts})
        try:
            items = data["data"]
            # Some providers return items out of order; index restores it
            if all("index" in item for item in items):
                items = sorted(items, key=lambda item: item["index"])
            return [[float(x) for x in item["embedding"]] for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingRequestError(f"Malformed embedding response: {e}") from e

    async def _embed_single(self, text: str) -> list[float]:
        data = await self._post({"model": self.model, "prompt": text})
        try:
            return [float(x) for x in data["embedding"]]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingRequestError(f"Malformed embedding response: {e}") from e

    async def _post(self, payload: dict) -> dict:
        try:
            response = await self.client.post(self.endpoint, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Embedding API error {e.response.status_code}: {e.response.text[:200]}"
            )
            raise EmbeddingRequestError(
                f"API error {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Embedding provider not reachable at {self.endpoint}: {e}")
            raise EmbeddingRequestError(f"Request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingRequestError(f"Failed to decode response: {e}") from e

    async def health_check(self) -> bool:
        """Check if the provider answers a one-text request."""
        try:
            await self.embed("ping")
            return True
        except EmbeddingRequestError as e:
            logger.debug(f"Embedding provider health check failed: {e}")
            return False

    def dimension(self) -> int:
        return self._dimension

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
