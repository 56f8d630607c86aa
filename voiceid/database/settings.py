"""Database settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Speaker storage settings.

    Supports a JSON file store and a SQLite database.
    """

    model_config = SettingsConfigDict(
        env_prefix="VOICEID_DB_",
        env_file=".env",
        extra="ignore",
    )

    backend: str = "file"  # "file" or "sqlite"
    storage_dir: Path = Path("./data/speakers")
    sqlite_path: str = "./data/voiceid.db"

    @property
    def database_url(self) -> str:
        """SQLite database URL."""
        return f"sqlite:///{self.sqlite_path}"


settings = DatabaseSettings()
