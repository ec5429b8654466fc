"""Tests for the WordPiece tokenizer."""

import json
from pathlib import Path

import pytest

from recollect.embedding.base import EmbeddingConfigError
from recollect.embedding.tokenizer import Tokenizer

VOCAB = {
    "[PAD]": 0,
    "[UNK]": 100,
    "[CLS]": 101,
    "[SEP]": 102,
    "hello": 7592,
    "world": 2088,
    "play": 2377,
    "##ing": 2075,
    "un": 4895,
    "##aff": 10354,
    "##able": 3085,
    ",": 1010,
    "!": 999,
    "$": 1002,
}


@pytest.fixture
def tokenizer_file(tmp_path: Path) -> Path:
    path = tmp_path / "tokenizer.json"
    data = {
        "model": {"type": "WordPiece", "vocab": {k: v for k, v in VOCAB.items() if k != "[SEP]"}},
        # Special tokens may only appear here
        "added_tokens": [{"id": 102, "content": "[SEP]", "special": True}],
    }
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def tokenizer(tokenizer_file: Path) -> Tokenizer:
    return Tokenizer.from_file(tokenizer_file)


def test_load_special_tokens(tokenizer: Tokenizer):
    assert tokenizer.cls_id == 101
    assert tokenizer.sep_id == 102
    assert tokenizer.unk_id == 100
    assert tokenizer.pad_id == 0


def test_encode_basic(tokenizer: Tokenizer):
    output = tokenizer.encode("Hello World", 16)
    assert output.input_ids == [101, 7592, 2088, 102]
    assert output.attention_mask == [1, 1, 1, 1]
    assert output.token_type_ids == [0, 0, 0, 0]


def test_punctuation_split(tokenizer: Tokenizer):
    output = tokenizer.encode("hello,world!", 16)
    assert output.input_ids == [101, 7592, 1010, 2088, 999, 102]


def test_symbols_are_tokens(tokenizer: Tokenizer):
    output = tokenizer.encode("$hello", 16)
    assert output.input_ids == [101, 1002, 7592, 102]


def test_word_piece(tokenizer: Tokenizer):
    assert tokenizer.encode("playing", 16).input_ids == [101, 2377, 2075, 102]
    assert tokenizer.encode("unaffable", 16).input_ids == [101, 4895, 10354, 3085, 102]


def test_unknown_characters(tokenizer: Tokenizer):
    output = tokenizer.encode("hello xyz", 16)
    assert output.input_ids == [101, 7592, 100, 100, 100, 102]


def test_control_chars_and_whitespace(tokenizer: Tokenizer):
    output = tokenizer.encode("  hello\t\x00\n  world\u0007 ", 16)
    assert output.input_ids == [101, 7592, 2088, 102]


def test_truncation_keeps_sentinels(tokenizer: Tokenizer):
    output = tokenizer.encode("hello world hello world hello", 4)
    assert output.input_ids == [101, 7592, 2088, 102]
    assert len(output) == 4


def test_truncation_after_word_piece(tokenizer: Tokenizer):
    """A word that expands to several pieces still respects max_length."""
    output = tokenizer.encode("unaffable", 4)
    assert output.input_ids == [101, 4895, 10354, 102]


def test_length_bounds(tokenizer: Tokenizer):
    text = "hello, playing world! " * 20
    for max_length in (2, 3, 8, 32):
        output = tokenizer.encode(text, max_length)
        assert len(output) <= max_length
        assert output.input_ids[0] == 101
        assert output.input_ids[-1] == 102
        assert len(output.attention_mask) == len(output.input_ids)
        assert len(output.token_type_ids) == len(output.input_ids)


def test_empty_text(tokenizer: Tokenizer):
    assert tokenizer.encode("", 8).input_ids == [101, 102]


def test_missing_file(tmp_path: Path):
    with pytest.raises(EmbeddingConfigError):
        Tokenizer.from_file(tmp_path / "missing.json")


def test_invalid_file(tmp_path: Path):
    path = tmp_path / "tokenizer.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(EmbeddingConfigError):
        Tokenizer.from_file(path)


def test_empty_vocab(tmp_path: Path):
    path = tmp_path / "tokenizer.json"
    path.write_text(json.dumps({"model": {"vocab": {}}}), encoding="utf-8")
    with pytest.raises(EmbeddingConfigError):
        Tokenizer.from_file(path)


@pytest.mark.parametrize(
    "data",
    [
        ["not", "an", "object"],
        {"model": {"vocab": {"a": 1}}, "added_tokens": [{"content": "[SEP]"}]},
        {"model": {"vocab": {"a": 1}}, "added_tokens": [{"content": "[SEP]", "id": "x"}]},
        {"model": "wordpiece"},
    ],
)
def test_malformed_structure(tmp_path: Path, data):
    path = tmp_path / "tokenizer.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(EmbeddingConfigError):
        Tokenizer.from_file(path)
