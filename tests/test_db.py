"""Tests for database setup and migrations."""

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session

from prdpad.db import (
    DB_PATH_ENV,
    DEFAULT_DB_NAME,
    apply_migrations,
    create_engine_with_path,
    get_db_path,
    get_session,
)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine_with_path(tmp_path / "data" / "notes.db")
    yield engine
    engine.dispose()


def test_get_db_path_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "custom.db"))
    assert get_db_path() == tmp_path / "custom.db"


def test_get_db_path_default(monkeypatch, tmp_path):
    monkeypatch.delenv(DB_PATH_ENV, raising=False)
    monkeypatch.setattr("prdpad.db.get_app_data_path", lambda: tmp_path)
    assert get_db_path() == tmp_path / DEFAULT_DB_NAME


def test_create_engine_creates_database_file(tmp_path, engine):
    assert (tmp_path / "data" / "notes.db").exists()
    with engine.connect() as connection:
        assert connection.execute(text("PRAGMA foreign_keys")).scalar() == 1


def test_apply_migrations_on_fresh_database(engine):
    apply_migrations(engine)

    tables = set(inspect(engine).get_table_names())
    assert {"notes", "projects", "alembic_version"} <= tables
    with engine.connect() as connection:
        version = connection.execute(
            text("SELECT version_num FROM alembic_version")
        ).scalar()
    assert version == "4e2b9c1d7a03"


def test_apply_migrations_twice(engine):
    apply_migrations(engine)
    apply_migrations(engine)

    assert "notes" in inspect(engine).get_table_names()


def test_migration_matches_models(engine):
    """The initial migration creates the same columns as the models."""
    from alembic import command

    from prdpad.db import get_alembic_config

    command.upgrade(get_alembic_config(engine), "head")

    columns = {column["name"] for column in inspect(engine).get_columns("notes")}
    assert {"id", "title", "content", "canvas_data", "is_deleted"} <= columns


def test_get_session_closes_session():
    sessions = get_session()
    session = next(sessions)
    assert isinstance(session, Session)

    with pytest.raises(StopIteration):
        next(sessions)
