"""Database connection management for SQLModel ORM.

Supports both SQLite (local dev) and PostgreSQL (production) via DATABASE_URL.
"""

from __future__ import annotations

from pathlib import Path
from typing import Generator

from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from backend.core.config import get_settings

# Global engine instance
_engine: Engine | None = None
_DB_PATH: Path | None = None


def get_db_path() -> Path:
    """Get the SQLite database file path (used when DATABASE_URL not set)."""
    global _DB_PATH
    if _DB_PATH is None:
        # core/database.py -> backend/ -> project_root/
        project_root = Path(__file__).parent.parent.parent
        data_dir = project_root / "data"
        data_dir.mkdir(exist_ok=True)
        _DB_PATH = data_dir / "civix.db"
    return _DB_PATH


def set_db_path(path: Path | str) -> None:
    """Set a custom database path (useful for testing)."""
    global _DB_PATH, _engine
    _DB_PATH = Path(path)
    _engine = None  # Reset engine when path changes


def get_database_url() -> str:
    """Get database URL from settings or default to SQLite.

    Handles the legacy postgres:// scheme by converting to postgresql://.
    """
    database_url = get_settings().database_url
    if database_url and _DB_PATH is None:
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url
    return f"sqlite:///{get_db_path()}"


def get_engine() -> Engine:
    """Get SQLAlchemy engine for SQLModel operations."""
    global _engine
    if _engine is None:
        database_url = get_database_url()

        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        _engine = create_engine(database_url, echo=False, connect_args=connect_args)
    return _engine


def reset_engine() -> None:
    """Reset the engine (useful for testing or reconfiguration)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def get_session() -> Generator[Session, None, None]:
    """Yield a SQLModel session for dependency injection."""
    with Session(get_engine()) as session:
        yield session


def init_db(engine: Engine | None = None) -> None:
    """Create all tables if they don't exist. Safe to call multiple times."""
    # Table classes register themselves on SQLModel.metadata when imported
    from backend.storage import models  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())


def reset_db(engine: Engine | None = None) -> None:
    """Drop all tables and recreate schema. USE WITH CAUTION."""
    from backend.storage import models  # noqa: F401

    engine = engine or get_engine()
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
