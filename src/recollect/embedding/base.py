"""
Embedder interface.
"""

from abc import ABC, abstractmethod
from enum import Enum

# Dimension of all-MiniLM-L6-v2, the default local model
DEFAULT_DIMENSION = 384


class EmbedderType(Enum):
    LOCAL = "local"
    OPENAI = "openai"
    VOYAGE = "voyage"
    OLLAMA = "ollama"
    CUSTOM = "custom"  # Any other endpoint speaking a known wire format
    NONE = "none"


class EmbeddingError(Exception):
    """Embedding could not be produced."""


class EmbeddingConfigError(EmbeddingError):
    """Embedder cannot be constructed (missing model files, unknown provider)."""


class ModelNotLoadedError(EmbeddingError):
    """Embedder used after close()."""


class EmbeddingRequestError(EmbeddingError):
    """Remote provider call failed or returned an unusable response."""


class Embedder(ABC):
    """Turns text into fixed-length, L2-normalized vectors."""

    embedder_type: EmbedderType

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        vectors = await self.embed_batch([text])
        if not vectors:
            raise EmbeddingError("No embedding returned")
        return vectors[0]

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, one vector per input in input order."""
        ...

    @abstractmethod
    def dimension(self) -> int:
        """Embedding dimension."""
        ...

    async def close(self) -> None:
        """Release resources."""
        return None
