"""Local embedder - ONNX sentence-transformer model run in-process."""

import asyncio
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from recollect.core.config import Settings
from recollect.core.logging import get_logger
from recollect.embedding.base import (
    DEFAULT_DIMENSION,
    Embedder,
    EmbedderType,
    EmbeddingConfigError,
    EmbeddingError,
    ModelNotLoadedError,
)
from recollect.embedding.tokenizer import Tokenizer

if TYPE_CHECKING:
    import onnxruntime

logger = get_logger("embedding.local")

DEFAULT_MAX_LENGTH = 256

INPUT_NAMES = ("input_ids", "attention_mask", "token_type_ids")
OUTPUT_NAME = "last_hidden_state"


class TensorRuntime:
    """One-shot onnxruntime environment shared by local embedders.

    The runtime is initialized on first use, exactly once even under
    concurrent first use, and caches loaded tokenizers by path.
    """

    def __init__(self, intra_op_threads: int = 0):
        self.intra_op_threads = intra_op_threads
        self._lock = threading.Lock()
        self._ort: Any = None
        self._options: "onnxruntime.SessionOptions | None" = None
        self._tokenizers: dict[Path, Tokenizer] = {}

    @property
    def initialized(self) -> bool:
        return self._ort is not None

    def initialize(self) -> None:
        """Import onnxruntime and build shared session options."""
        with self._lock:
            if self._ort is not None:
                return
            try:
                import onnxruntime as ort
            except ImportError as e:
                raise EmbeddingConfigError(
                    "onnxruntime is required for local embeddings"
                ) from e

            options = ort.SessionOptions()
            if self.intra_op_threads:
                options.intra_op_num_threads = self.intra_op_threads
            self._options = options
            self._ort = ort
            logger.info(f"Initialized onnxruntime {ort.__version__}")

    def create_session(self, model_path: Path) -> "onnxruntime.InferenceSession":
        """Open an inference session for an ONNX model file."""
        self.initialize()
        try:
            return self._ort.InferenceSession(
                str(model_path),
                sess_options=self._options,
                providers=["CPUExecutionProvider"],
            )
        except Exception as e:
            raise EmbeddingConfigError(f"Failed to load ONNX model {model_path}: {e}") from e

    def load_tokenizer(self, path: Path) -> Tokenizer:
        """Load a tokenizer once per path."""
        path = Path(path)
        with self._lock:
            tokenizer = self._tokenizers.get(path)
            if tokenizer is None:
                tokenizer = Tokenizer.from_file(path)
                self._tokenizers[path] = tokenizer
            return tokenizer

    def shutdown(self) -> None:
        """Drop cached state; the next use initializes again."""
        with self._lock:
            self._tokenizers.clear()
            self._options = None
            self._ort = None


_runtime: TensorRuntime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> TensorRuntime:
    """Get or create the global tensor runtime."""
    global _runtime
    with _runtime_lock:
        if _runtime is None:
            _runtime = TensorRuntime()
        return _runtime


def shutdown_runtime() -> None:
    """Shut down the global tensor runtime, if one was created."""
    global _runtime
    with _runtime_lock:
        if _runtime is not None:
            _runtime.shutdown()
            _runtime = None


def is_model_available(settings: Settings) -> bool:
    """Check whether the local model and tokenizer files are present."""
    return settings.model_path.exists() and settings.tokenizer_path.exists()


def mean_pool(hidden: np.ndarray, attention_mask: np.ndarray) -> np.ndarray:
    """Masked mean over the sequence axis, then L2-normalize each row.

    hidden: [batch, seq_len, hidden_size]; attention_mask: [batch, >= seq_len].
    """
    seq_len = hidden.shape[1]
    mask = attention_mask[:, :seq_len].astype(np.float32)[:, :, None]

    summed = (hidden * mask).sum(axis=1)
    counts = mask.sum(axis=1)
    pooled = summed / np.maximum(counts, 1.0)

    norms = np.linalg.norm(pooled, axis=1, keepdims=True)
    norms = np.where(norms == 0, 1.0, norms)
    return pooled / norms


class LocalEmbedder(Embedder):
    """Sentence embeddings from a local ONNX model (all-MiniLM-L6-v2 by default).

    All calls are serialized; the inference session is not assumed to be
    safe for concurrent use.
    """

    embedder_type = EmbedderType.LOCAL

    def __init__(
        self,
        model_path: Path,
        tokenizer_path: Path,
        dimension: int = DEFAULT_DIMENSION,
        max_length: int = DEFAULT_MAX_LENGTH,
        runtime: TensorRuntime | None = None,
    ):
        model_path = Path(model_path)
        tokenizer_path = Path(tokenizer_path)
        if not model_path.exists():
            raise EmbeddingConfigError(f"Embedding model not found at {model_path}")
        if not tokenizer_path.exists():
            raise EmbeddingConfigError(f"Tokenizer not found at {tokenizer_path}")

        self.model_path = model_path
        self.max_length = max_length
        self._dimension = dimension
        self._runtime = runtime or get_runtime()
        self._tokenizer = self._runtime.load_tokenizer(tokenizer_path)
        self._session = self._runtime.create_session(model_path)
        self._input_names = {i.name for i in self._session.get_inputs()}
        self._lock = asyncio.Lock()
        # Held by the worker thread; outlives a cancelled awaiting caller
        self._run_lock = threading.Lock()
        logger.info(f"Loaded local embedding model: {model_path.name}")

    @classmethod
    def from_settings(
        cls, settings: Settings, runtime: TensorRuntime | None = None
    ) -> "LocalEmbedder":
        return cls(
            model_path=settings.model_path,
            tokenizer_path=settings.tokenizer_path,
            dimension=settings.embedding_dimension or DEFAULT_DIMENSION,
            max_length=settings.max_length,
            runtime=runtime,
        )

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if self._session is None:
            raise ModelNotLoadedError("Embedding model not loaded")
        if not texts:
            return []

        async with self._lock:
            return await asyncio.to_thread(self._run, texts)

    def _run(self, texts: list[str]) -> list[list[float]]:
        batch = len(texts)
        input_ids = np.zeros((batch, self.max_length), dtype=np.int64)
        attention_mask = np.zeros((batch, self.max_length), dtype=np.int64)
        token_type_ids = np.zeros((batch, self.max_length), dtype=np.int64)

        # Pad each row with zeros up to max_length
        for row, text in enumerate(texts):
            tokens = self._tokenizer.encode(text, self.max_length)
            n = len(tokens)
            input_ids[row, :n] = tokens.input_ids
            attention_mask[row, :n] = tokens.attention_mask
            token_type_ids[row, :n] = tokens.token_type_ids

        # Some exports drop token_type_ids from the graph
        feeds = {
            name: value
            for name, value in zip(INPUT_NAMES, (input_ids, attention_mask, token_type_ids))
            if name in self._input_names
        }

        with self._run_lock:
            session = self._session
            if session is None:
                raise ModelNotLoadedError("Embedding model not loaded")
            try:
                outputs = session.run([OUTPUT_NAME], feeds)
            except Exception as e:
                raise EmbeddingError(f"Inference failed: {e}") from e

        hidden = np.asarray(outputs[0], dtype=np.float32)
        if hidden.ndim != 3 or hidden.shape[0] != batch:
            raise EmbeddingError(f"Unexpected output shape {hidden.shape}")

        return mean_pool(hidden, attention_mask).tolist()

    def dimension(self) -> int:
        return self._dimension

    async def close(self) -> None:
        async with self._lock:
            self._session = None
