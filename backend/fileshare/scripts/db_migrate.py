import logging
import os
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import SQLAlchemyError

from fileshare.core.database import DATABASE_URL

logger = logging.getLogger("fileshare.db-migrate")

CORE_TABLES = ("users", "files", "file_statistics", "system_policy")
ALEMBIC_INI = Path(os.getenv("ALEMBIC_CONFIG", Path(__file__).resolve().parents[2] / "alembic.ini"))


def alembic_config(database_url: str = DATABASE_URL, ini_path: Path = ALEMBIC_INI) -> Config:
    cfg = Config(str(ini_path))
    cfg.set_main_option("script_location", str(ini_path.parent / "alembic"))
    cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    cfg.attributes["configure_logger"] = False
    return cfg


def migrate(database_url: str = DATABASE_URL, ini_path: Path = ALEMBIC_INI) -> bool:
    """
    Brings the database to the latest revision.

    A database created by ``create_all`` (the app's startup path) has the
    tables but no ``alembic_version``; it is stamped at head first instead
    of re-running the initial migration. Returns True when it stamped.
    """
    engine = create_engine(database_url.replace("+aiosqlite", ""))
    try:
        insp = inspect(engine)
        has_alembic = insp.has_table("alembic_version")
        existing_core_tables = [t for t in CORE_TABLES if insp.has_table(t)]
    finally:
        engine.dispose()

    cfg = alembic_config(database_url, ini_path)
    stamped = False
    if existing_core_tables and not has_alembic:
        logger.info("Existing tables %s without alembic_version, stamping head", ", ".join(existing_core_tables))
        command.stamp(cfg, "head")
        stamped = True
    else:
        logger.info("has_alembic=%s existing_core_tables=%s", has_alembic, existing_core_tables)

    command.upgrade(cfg, "head")
    logger.info("Database is at head")
    return stamped


def main():
    logging.basicConfig(level=logging.INFO, format="[db-migrate] %(message)s")
    try:
        migrate()
    except (CommandError, SQLAlchemyError) as e:
        logger.error("Migration failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
