"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: RECOLLECT_
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MODEL_DIR = Path.home() / ".local" / "share" / "recollect" / "models"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RECOLLECT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="recollect.db", description="SQLite database name")

    # Embedding
    embedding_provider: str = Field(
        default="local",
        description="Embedder variant: local, openai, voyage, ollama or none",
    )
    embedding_model: str = Field(default="", description="Provider model override")
    embedding_endpoint: str = Field(default="", description="Provider endpoint override")
    embedding_api_key: str = Field(default="", description="Provider API key")
    embedding_dimension: int = Field(default=0, description="Embedding dimension override")
    embedding_timeout: float = Field(default=30.0, description="Provider request timeout (s)")

    # Local model files
    model_dir: Path = Field(default=DEFAULT_MODEL_DIR, description="Local model directory")
    model_file: str = Field(default="all-MiniLM-L6-v2.onnx", description="ONNX model file")
    tokenizer_file: str = Field(default="tokenizer.json", description="Tokenizer description")
    max_length: int = Field(default=256, description="Max token sequence length")

    # Formation pipeline
    queue_buffer_size: int = Field(default=100, description="Formation queue capacity")
    formation_timeout: float = Field(default=30.0, description="Per-item formation timeout (s)")
    shutdown_grace: float = Field(default=5.0, description="Queue drain grace period (s)")

    # Retrieval
    retrieval_threshold: float = Field(default=0.5, description="Min similarity for retrieval")
    retrieval_limit: int = Field(default=10, description="Max memories injected per prompt")
    memory_scope: str = Field(default="hybrid", description="agent, global or hybrid")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def model_path(self) -> Path:
        return self.model_dir / self.model_file

    @property
    def tokenizer_path(self) -> Path:
        return self.model_dir / self.tokenizer_file


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
