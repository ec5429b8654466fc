"""WordPiece tokenizer for BERT-style embedding models.

Reads the vocabulary from a HuggingFace ``tokenizer.json`` file and
produces unpadded token id sequences. Padding to a fixed batch width is
done by the embedder.
"""

import json
import unicodedata
from dataclasses import dataclass, field
from pathlib import Path

from recollect.core.logging import get_logger
from recollect.embedding.base import EmbeddingConfigError

logger = get_logger("embedding.tokenizer")

UNK_TOKEN = "[UNK]"
CLS_TOKEN = "[CLS]"
SEP_TOKEN = "[SEP]"
PAD_TOKEN = "[PAD]"

CONTINUATION_PREFIX = "##"


@dataclass
class TokenizerOutput:
    """Token ids for one text fragment. All three lists have equal length."""

    input_ids: list[int] = field(default_factory=list)
    attention_mask: list[int] = field(default_factory=list)
    token_type_ids: list[int] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.input_ids)


class Tokenizer:
    """Lower-casing WordPiece tokenizer."""

    def __init__(self, vocab: dict[str, int]):
        self.vocab = vocab
        self.unk_id = vocab.get(UNK_TOKEN, 0)
        self.cls_id = vocab.get(CLS_TOKEN, 0)
        self.sep_id = vocab.get(SEP_TOKEN, 0)
        self.pad_id = vocab.get(PAD_TOKEN, 0)

    @classmethod
    def from_file(cls, path: Path) -> "Tokenizer":
        """Load vocabulary and added special tokens from tokenizer.json."""
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise EmbeddingConfigError(f"Tokenizer not found at {path}") from e
        except json.JSONDecodeError as e:
            raise EmbeddingConfigError(f"Invalid tokenizer file {path}: {e}") from e

        try:
            vocab = dict(data.get("model", {}).get("vocab") or {})
            for token in data.get("added_tokens") or []:
                vocab[token["content"]] = int(token["id"])
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise EmbeddingConfigError(f"Malformed tokenizer file {path}: {e!r}") from e

        if not vocab:
            raise EmbeddingConfigError(f"Tokenizer file {path} has no vocabulary")

        logger.debug(f"Loaded tokenizer vocabulary: {len(vocab)} tokens from {path}")
        return cls(vocab)

    def encode(self, text: str, max_length: int) -> TokenizerOutput:
        """Tokenize text into [CLS] body [SEP], never exceeding max_length ids."""
        text = self._clean_text(text.lower())

        body: list[int] = []
        for token in self._split(text):
            token_id = self.vocab.get(token)
            if token_id is not None:
                body.append(token_id)
                continue
            for piece in self._word_piece(token):
                body.append(self.vocab.get(piece, self.unk_id))

        body = body[: max(max_length - 2, 0)]
        input_ids = [self.cls_id, *body, self.sep_id][:max_length]

        return TokenizerOutput(
            input_ids=input_ids,
            attention_mask=[1] * len(input_ids),
            token_type_ids=[0] * len(input_ids),
        )

    def _clean_text(self, text: str) -> str:
        """Drop control characters and collapse whitespace runs to one space."""
        chars = []
        for ch in text:
            # Tabs and newlines are whitespace here, not control characters
            if ch.isspace():
                chars.append(" ")
            elif ch == "\ufffd" or unicodedata.category(ch) == "Cc":
                continue
            else:
                chars.append(ch)
        return " ".join("".join(chars).split())

    def _split(self, text: str) -> list[str]:
        """Split on whitespace; each punctuation or symbol char is its own token."""
        tokens: list[str] = []
        current: list[str] = []

        for ch in text:
            if ch.isspace():
                if current:
                    tokens.append("".join(current))
                    current = []
            elif unicodedata.category(ch)[0] in ("P", "S"):
                if current:
                    tokens.append("".join(current))
                    current = []
                tokens.append(ch)
            else:
                current.append(ch)

        if current:
            tokens.append("".join(current))
        return tokens

    def _word_piece(self, word: str) -> list[str]:
        """Greedy longest-match decomposition into vocabulary pieces.

        Characters that start no known piece become [UNK], one per character.
        """
        pieces: list[str] = []
        start = 0

        while start < len(word):
            end = len(word)
            match = None
            while end > start:
                candidate = word[start:end]
                if start > 0:
                    candidate = CONTINUATION_PREFIX + candidate
                if candidate in self.vocab:
                    match = candidate
                    break
                end -= 1

            if match is None:
                pieces.append(UNK_TOKEN)
                start += 1
            else:
                pieces.append(match)
                start = end

        return pieces
