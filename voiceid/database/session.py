"""Database engine management."""

from pathlib import Path

from sqlalchemy import Engine
from sqlmodel import SQLModel, create_engine

from voiceid.database.settings import settings


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create an engine and make sure the tables exist.

    Args:
        database_url: SQLAlchemy URL. Defaults to the configured SQLite file.
    """
    if database_url is None:
        Path(settings.sqlite_path).parent.mkdir(parents=True, exist_ok=True)
        database_url = settings.database_url

    engine = create_engine(
        database_url,
        echo=False,
        connect_args={"check_same_thread": False},
    )
    SQLModel.metadata.create_all(engine)
    return engine
