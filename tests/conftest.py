"""Shared fixtures: temporary SQLite backend and a deterministic embedder."""

import re
from pathlib import Path

import pytest

from recollect.embedding.base import Embedder, EmbedderType, EmbeddingError
from recollect.embedding.vectors import normalize
from recollect.memory.sqlite import SQLiteMemoryBackend
from recollect.memory.store import MemoryStore

WORD_RE = re.compile(r"[a-z0-9']+")


class KeywordEmbedder(Embedder):
    """Each distinct word gets its own axis; vectors are normalized word counts.

    Texts sharing n of their words have cosine similarity n / sqrt(|a| * |b|),
    so identical texts score 1.0 and texts with no common word score 0.
    """

    embedder_type = EmbedderType.NONE

    def __init__(self, dimension: int = 512):
        self._dimension = dimension
        self._axes: dict[str, int] = {}
        self.calls = 0

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        return [self._vector(text) for text in texts]

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in WORD_RE.findall(text.lower()):
            axis = self._axes.setdefault(word, len(self._axes))
            vector[axis % self._dimension] += 1.0
        return normalize(vector)

    def dimension(self) -> int:
        return self._dimension


class FailingEmbedder(Embedder):
    """Embedder whose every call fails, like an unreachable provider."""

    embedder_type = EmbedderType.NONE

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        raise EmbeddingError("provider unreachable")

    def dimension(self) -> int:
        return 512


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
async def backend(tmp_path: Path):
    """Create a temporary SQLite memory backend."""
    backend = SQLiteMemoryBackend(tmp_path / "memories.db")
    await backend.connect()
    yield backend
    await backend.close()


@pytest.fixture
def store(backend: SQLiteMemoryBackend, embedder: KeywordEmbedder) -> MemoryStore:
    return MemoryStore(backend, embedder)
