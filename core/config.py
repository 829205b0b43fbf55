"""
Application settings for the Bubble Map API.

All tunables are read from environment variables (or a local `.env` file) via
pydantic-settings. Intervals are expressed in seconds, windows in hours.
"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./bubbles.db"

    # Application
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    CORS_ORIGINS: List[str] = ["*"]

    # Bubble lifecycle
    RETENTION_HOURS: int = 24
    SWEEP_INTERVAL_SECONDS: int = 5 * 60
    DECAY_TICK_SECONDS: int = 30

    # Bot importer
    ENABLE_SCHEDULER: bool = True
    IMPORT_INTERVAL_SECONDS: int = 30 * 60
    IMPORT_STARTUP_DELAY_SECONDS: int = 5
    SOURCE_TIMEOUT_SECONDS: float = 60.0
    DEDUP_EPSILON_DEGREES: float = 0.001
    GEOCODER: str = "nominatim"  # nominatim | static
    GEOCODER_CITY: str = "Amsterdam"

    # Suggestions
    SUGGESTION_TITLE_MIN_LENGTH: int = 5

    # Media uploads
    UPLOADS_DIR: str = "public/uploads"
    MEDIA_URL_PREFIX: str = "/uploads"
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024

    # Distance cleanup
    MAP_CENTER_LAT: float = 52.3676
    MAP_CENTER_LNG: float = 4.9041
    MAX_DISTANCE_KM: float = 50.0

    @property
    def uploads_path(self) -> Path:
        return Path(self.UPLOADS_DIR)


@lru_cache
def get_settings() -> Settings:
    return Settings()
