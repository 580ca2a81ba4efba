"""Application configuration via environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Team Agenda"
    debug: bool = False
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all
    log_dir: Path = Path.home() / ".logs" / "agenda"

    # Database (any SQLAlchemy async driver URL)
    database_url: str = "sqlite+aiosqlite:///./agenda.db"

    # Participation rules
    admin_role: str = "Administrador"
    default_duration_minutes: int = 60

    # Live sync: pending change events buffered per subscription
    feed_queue_size: int = 256


settings = Settings()
