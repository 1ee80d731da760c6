"""Application settings from environment variables."""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings from environment."""

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"

    # Downloader executable
    downloader_name: str = "youtube-dl"
    downloader_path: Optional[str] = None
    output_dir: Optional[str] = None
    output_template: str = "%(title)s.%(ext)s"
    audio_format: str = "mp3"
    merge_output_format: str = "mp4"

    # Job processing
    job_timeout_seconds: float = 60 * 60
    reader_grace_seconds: float = 5.0

    # Static front end mounted at /, when present
    frontend_dir: Optional[str] = None

    model_config = {"env_file": ".env"}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
