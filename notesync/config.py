"""Application configuration using Pydantic Settings."""

import logging
import warnings

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    app_name: str = "NoteSync"
    debug: bool = True
    sql_echo: bool = False

    # Document backend (remote) and on-device cache
    database_url: str = "sqlite:///./notesync.db"
    local_cache_url: str = "sqlite:///./notesync_cache.db"

    # Owner id stamped on entities created without a signed-in user
    local_user_id: str = "default_user"

    # Max wait for the first snapshot of every collection while binding
    bind_timeout_seconds: float = 10.0

    # Policy limits
    max_note_title: int = 100
    max_block_content: int = 10000

    # Gemini
    gemini_api_key: str | None = None
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    gemini_model: str = "gemini-pro"
    gemini_temperature: float = 0.7
    gemini_top_k: int = 40
    gemini_top_p: float = 0.95
    gemini_max_output_tokens: int = 2048

    # YouTube Data API
    youtube_api_key: str | None = None
    youtube_base_url: str = "https://www.googleapis.com/youtube/v3"

    http_timeout_seconds: float = 60.0

    # Object storage
    storage_root: str = "./storage"
    storage_base_url: str = "http://localhost:8000/storage"
    max_download_size: int = 50 * 1024 * 1024

    def __init__(self, **kwargs):
        """Initialize settings and validate production configuration."""
        super().__init__(**kwargs)
        self._validate_production_settings()

    def _validate_production_settings(self) -> None:
        """Warn about a production setup that still syncs against a local file."""
        if not self.debug and self.database_url.startswith("sqlite:///"):
            warnings.warn(
                "DATABASE_URL points at a local SQLite file. Configure the shared document backend in production!",
                UserWarning,
                stacklevel=2,
            )
            logger.warning(
                "DATABASE_URL points at a local SQLite file. Configure the shared document backend in production!"
            )


settings = Settings()
