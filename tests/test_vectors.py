"""Tests for vector operations."""

import math
import struct
from dataclasses import dataclass

import pytest

from recollect.embedding.vectors import (
    cosine_distance,
    cosine_similarity,
    deserialize,
    euclidean_distance,
    normalize,
    serialize,
    threshold_filter,
    top_k,
)


@dataclass
class Scored:
    name: str
    similarity: float


def test_serialize_is_little_endian_float32():
    data = serialize([1.0, -2.5])
    assert len(data) == 8
    assert data == struct.pack("<ff", 1.0, -2.5)


def test_serialize_roundtrip():
    vector = [0.0, 1.5, -3.25, 1e-3, 123456.0]
    result = deserialize(serialize(vector))
    assert result == pytest.approx(vector, rel=1e-6)


def test_deserialize_bad_length_is_empty():
    assert deserialize(b"\x00\x00\x00") == []
    assert deserialize(serialize([1.0]) + b"\x01") == []


def test_deserialize_empty():
    assert deserialize(b"") == []
    assert deserialize(None) == []


def test_cosine_identical():
    v = [0.3, -1.2, 4.0]
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_cosine_orthogonal_and_opposite():
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_cosine_degenerate_inputs():
    """Mismatched, empty and zero vectors score 0."""
    assert cosine_similarity([1.0, 2.0], [1.0]) == 0.0
    assert cosine_similarity([], []) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0


def test_cosine_stays_in_range():
    a = [1e-20, 3.0, 7.0]
    b = [2e-20, 6.0, 14.0]
    similarity = cosine_similarity(a, b)
    assert -1.0 <= similarity <= 1.0


def test_cosine_distance():
    a, b = [1.0, 2.0, 3.0], [3.0, 1.0, 0.5]
    assert cosine_distance(a, b) == pytest.approx(1.0 - cosine_similarity(a, b))


def test_euclidean_distance():
    assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)
    assert euclidean_distance([1.0], [1.0, 2.0]) == 0.0


def test_normalize():
    result = normalize([3.0, 4.0])
    assert result == pytest.approx([0.6, 0.8])
    assert math.sqrt(sum(x * x for x in result)) == pytest.approx(1.0)


def test_normalize_zero_vector_unchanged():
    assert normalize([0.0, 0.0]) == [0.0, 0.0]


def test_top_k_and_threshold_filter():
    results = [Scored("a", 0.2), Scored("b", 0.9), Scored("c", 0.6)]
    assert [r.name for r in top_k(results, 2)] == ["b", "c"]
    assert [r.name for r in threshold_filter(results, 0.6)] == ["b", "c"]
