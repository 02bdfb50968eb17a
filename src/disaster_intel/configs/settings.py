"""Centralized settings management for the disaster ingestion service."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """
    Application settings powered by pydantic-settings.

    Loads configuration from environment variables and a ``.env`` file in
    the working directory.
    """

    # -------------------------------------------------------------------------
    # ENVIRONMENT
    # -------------------------------------------------------------------------
    ENV: str = "development"
    DEBUG: bool = False

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    INGESTION_CONFIG_PATH: Path = CONFIG_DIR / "ingestion.yaml"
    # Overrides sources.emdat.file_path when set
    EMDAT_FILE_PATH: Optional[str] = None

    # -------------------------------------------------------------------------
    # INGESTION
    # -------------------------------------------------------------------------
    REQUEST_TIMEOUT: float = Field(default=30.0, gt=0)
    FUTURE_TOLERANCE_DAYS: int = Field(default=7, ge=0)
    MERGE_STRICT_CONTRACTS: bool = False

    # -------------------------------------------------------------------------
    # CONFIGURATION
    # -------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        # Allow extra fields in .env but ignore them in the model
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
