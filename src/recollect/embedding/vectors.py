"""
Vector operations for similarity search.

Embeddings are persisted as little-endian float32 blobs, 4 bytes per element.
"""

import math
import struct
from collections.abc import Sequence
from typing import Protocol, TypeVar


class _Scored(Protocol):
    similarity: float


S = TypeVar("S", bound=_Scored)


def serialize(vector: Sequence[float]) -> bytes:
    """Encode a vector as little-endian float32 bytes."""
    return struct.pack(f"<{len(vector)}f", *vector)


def deserialize(data: bytes | None) -> list[float]:
    """Decode little-endian float32 bytes.

    Returns an empty list for missing data or a length that is not a
    multiple of 4.
    """
    if not data or len(data) % 4 != 0:
        return []
    return list(struct.unpack(f"<{len(data) // 4}f", data))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0 for mismatched, empty or zero vectors."""
    if len(a) != len(b) or not a:
        return 0.0

    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Float error can push identical vectors a hair past 1
    return max(-1.0, min(1.0, similarity))


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine distance (1 - similarity), in [0, 2]."""
    return 1.0 - cosine_similarity(a, b)


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """L2 distance; 0 for mismatched or empty vectors."""
    if len(a) != len(b) or not a:
        return 0.0
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a, b)))


def normalize(vector: Sequence[float]) -> list[float]:
    """Scale to unit length. Zero vectors are returned unchanged."""
    norm = math.sqrt(sum(x * x for x in vector))
    if norm == 0:
        return list(vector)
    return [x / norm for x in vector]


def top_k(results: list[S], k: int) -> list[S]:
    """Best k results by similarity."""
    return sorted(results, key=lambda r: r.similarity, reverse=True)[:k]


def threshold_filter(results: list[S], threshold: float) -> list[S]:
    """Keep results whose similarity is at least threshold."""
    return [r for r in results if r.similarity >= threshold]
