"""Configuration management for stackscan."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable overrides.

    All settings can be overridden via environment variables
    prefixed with STACKSCAN_ (e.g. STACKSCAN_DATA_DIR, STACKSCAN_SUPADATA_API_KEY).
    """

    model_config = {"env_prefix": "STACKSCAN_"}

    # Storage
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".stackscan",
        description="Root directory for all stackscan data",
    )
    max_archive_items: int = 50
    keep_thumbnails_count: int = 5
    storage_quota_chars: int = 5_000_000

    # Server
    host: str = "127.0.0.1"
    port: int = 9094

    # Transcript service
    supadata_api_key: str = ""
    transcript_endpoint: str = "https://api.supadata.ai/v1/transcript"
    http_timeout: float = 60.0
    transcript_poll_attempts: int = 10
    transcript_poll_interval: float = 2.0

    # LLM
    gemini_api_key: str | None = None
    extraction_model: str = "gemini/gemini-2.5-pro"
    visual_model: str = "gemini/imagen-4.0-generate-001"
    extraction_temperature: float = 0.15
    max_transcript_chunks: int = 500
    max_tools: int = 12
    generate_visuals: bool = True

    @property
    def db_path(self) -> Path:
        """SQLite database path."""
        return self.data_dir / "stackscan.db"

    def ensure_dirs(self) -> None:
        """Create all required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton: import this throughout the app
settings = Settings()
