"""
Integration tests for the migrate helper against throwaway SQLite files.

These run alembic synchronously, so they are plain (non-async) tests.
"""

import pytest
from sqlalchemy import create_engine, inspect, text

from fileshare import models  # noqa: F401
from fileshare.core.database import Base
from fileshare.scripts.db_migrate import CORE_TABLES, migrate

HEAD = "20261019_01"


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'migrate.db'}"


def sync_engine(url):
    return create_engine(url.replace("+aiosqlite", ""))


def current_revision(url):
    engine = sync_engine(url)
    try:
        with engine.connect() as conn:
            return conn.execute(text("SELECT version_num FROM alembic_version")).scalar_one()
    finally:
        engine.dispose()


class TestMigrate:
    def test_fresh_database_is_upgraded(self, db_url):
        assert migrate(db_url) is False

        engine = sync_engine(db_url)
        try:
            insp = inspect(engine)
            assert all(insp.has_table(t) for t in CORE_TABLES)
            assert insp.has_table("shared_with")
            assert insp.has_table("download_history")
            with engine.connect() as conn:
                row = conn.execute(text("SELECT max_file_size_mb, default_validity_days FROM system_policy WHERE id = 1")).one()
            assert tuple(row) == (50, 7)
        finally:
            engine.dispose()
        assert current_revision(db_url) == HEAD

    def test_tables_from_create_all_are_stamped(self, db_url):
        engine = sync_engine(db_url)
        Base.metadata.create_all(engine)
        engine.dispose()

        assert migrate(db_url) is True
        assert current_revision(db_url) == HEAD

    def test_second_run_is_a_no_op(self, db_url):
        migrate(db_url)

        assert migrate(db_url) is False
        assert current_revision(db_url) == HEAD
