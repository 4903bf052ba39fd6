"""SQLAlchemy database setup for prdpad."""

import os
from pathlib import Path
from typing import Final

from sqlalchemy import Engine, create_engine, event, inspect
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from prdpad.utils import get_app_data_path

#: The default database name.
DEFAULT_DB_NAME: Final[str] = "prdpad.db"
#: Environment variable that overrides the database location.
DB_PATH_ENV: Final[str] = "PRDPAD_DB_PATH"
#: Path to the Alembic configuration file.
ALEMBIC_INI_PATH: Final[Path] = Path(__file__).parent / "etc" / "alembic.ini"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


def get_db_path() -> Path:
    """
    Get the path to the notes database.

    If the ``PRDPAD_DB_PATH`` environment variable is set, it is used as is.
    Otherwise the database lives in the per-platform application data
    directory (see :func:`prdpad.utils.get_app_data_path`).

    Returns:
        Path to the database file

    """
    if DB_PATH_ENV in os.environ:
        return Path(os.environ[DB_PATH_ENV])
    return get_app_data_path() / DEFAULT_DB_NAME


def create_engine_with_path(db_path: Path | None = None) -> Engine:
    """
    Create SQLAlchemy engine with proper SQLite settings.

    Args:
        db_path: Optional path to database file. If None, uses default path.

    Returns:
        SQLAlchemy engine

    """
    if db_path is None:
        db_path = get_db_path()

    db_path.parent.mkdir(parents=True, exist_ok=True)
    db_path.touch(exist_ok=True)

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        """Set SQLite pragmas on connection."""
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


# Create default engine and session factory
_engine = create_engine_with_path()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)


def get_session():
    """
    Get a database session.

    Yields:
        SQLAlchemy session

    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_alembic_config(engine: Engine):
    """
    Build the Alembic configuration for ``engine``.

    Args:
        engine: The engine whose database should be migrated

    Returns:
        An :class:`alembic.config.Config`

    """
    from alembic.config import Config  # noqa: PLC0415

    config = Config(str(ALEMBIC_INI_PATH))
    config.set_main_option(
        "sqlalchemy.url", engine.url.render_as_string(hide_password=False)
    )
    return config


def apply_migrations(engine: Engine | None = None) -> None:
    """
    Apply pending Alembic migrations.

    This should be called on application startup.  A fresh database (no
    ``alembic_version`` table) is created directly from the models and stamped
    with the head revision; an existing database is upgraded to head.

    Keyword Args:
        engine: The engine to migrate (default: the application engine)

    """
    from alembic import command  # noqa: PLC0415

    import prdpad.models  # noqa: F401, PLC0415

    if engine is None:
        engine = _engine
    config = get_alembic_config(engine)
    existing_tables = inspect(engine).get_table_names()
    if "alembic_version" not in existing_tables:
        Base.metadata.create_all(engine)
        command.stamp(config, "head")
    else:
        command.upgrade(config, "head")
