"""Configuration management for BillBreak."""

from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BILLBREAK_",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI API (only needed for text/voice expense extraction)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    transcription_model: str = "whisper-1"

    # Balance settings
    settlement_epsilon: Decimal = Field(default=Decimal("0.005"), gt=0)  # Half a cent
    unknown_member_policy: Literal["raise", "warn", "ignore"] = "warn"
    malformed_split_policy: Literal["raise", "warn", "ignore"] = "raise"

    # Database path
    database_path: Path = Path.home() / ".billbreak" / "billbreak.db"

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and BILLBREAK_* "
            f"environment variables.\n"
            f"Error: {e}"
        ) from e
