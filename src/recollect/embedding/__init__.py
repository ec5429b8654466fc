"""
Embedding module - text to vectors for semantic search.

Variants:
- local: ONNX model run in-process with the bundled WordPiece tokenizer
- provider: remote HTTP APIs (openai, voyage, ollama)
"""

from recollect.core.config import Settings
from recollect.core.logging import get_logger
from recollect.embedding.base import (
    Embedder,
    EmbedderType,
    EmbeddingConfigError,
    EmbeddingError,
    EmbeddingRequestError,
    ModelNotLoadedError,
)

logger = get_logger("embedding")

__all__ = [
    "Embedder",
    "EmbedderType",
    "EmbeddingConfigError",
    "EmbeddingError",
    "EmbeddingRequestError",
    "ModelNotLoadedError",
    "create_embedder",
]


def create_embedder(settings: Settings) -> Embedder | None:
    """Build the configured embedder. Returns None when embeddings are disabled."""
    provider = settings.embedding_provider.lower()

    if provider == EmbedderType.NONE.value:
        logger.info("Embeddings disabled; semantic search will return no results")
        return None

    if provider == EmbedderType.LOCAL.value:
        from recollect.embedding.local import LocalEmbedder

        return LocalEmbedder.from_settings(settings)

    from recollect.embedding.provider import ProviderEmbedder

    return ProviderEmbedder.from_settings(settings)
