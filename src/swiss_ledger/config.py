"""Configuration management for Swiss Ledger."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Currency used for records that don't carry one
    default_currency: str = "USD"

    # Subscriptions billing within this many days are "due"
    due_soon_days: int = Field(default=7, ge=0)

    # Viewer used by the CLI when --viewer is not given
    current_user_id: str | None = None

    # Ledger snapshot read and written by the CLI
    snapshot_path: Path = Path.home() / ".swiss_ledger" / "ledger.json"

    def __init__(self, **kwargs):
        """Initialize settings and create the snapshot directory if needed."""
        super().__init__(**kwargs)
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings(**overrides) -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings(**overrides)
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check your .env file and environment "
            f"variables.\n"
            f"Error: {e}"
        ) from e
