"""SQLite ledger connection and schema migration."""

import logging
import sqlite3
from pathlib import Path

import aiosqlite
from alembic import command
from alembic.config import Config
from sqlalchemy.exc import SQLAlchemyError

from permctl.domain.exceptions import StorageError

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def upgrade_database(db_path: Path) -> None:
    """Create or upgrade the ledger schema to the latest revision."""
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Cannot create ledger directory {db_path.parent}: {exc}") from exc

    config = Config()
    config.set_main_option("script_location", _escape(str(MIGRATIONS_DIR)))
    config.set_main_option("sqlalchemy.url", _escape(f"sqlite:///{db_path}"))
    try:
        command.upgrade(config, "head")
    except SQLAlchemyError as exc:
        raise StorageError(f"Failed to migrate ledger at {db_path}: {exc}") from exc
    logger.debug("Ledger schema at %s is up to date", db_path)


async def open_connection(db_path: Path, busy_timeout: float) -> aiosqlite.Connection:
    """Open an autocommit connection; stores issue BEGIN IMMEDIATE for writes.

    WAL lets readers proceed while a writer holds the lock; busy_timeout bounds
    how long a writer waits for another writer before failing.
    """
    conn = await aiosqlite.connect(str(db_path), timeout=busy_timeout, isolation_level=None)
    try:
        conn.row_factory = sqlite3.Row
        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute("PRAGMA synchronous=FULL")
    except BaseException:
        await conn.close()
        raise
    return conn


def _escape(value: str) -> str:
    # alembic Config values go through ConfigParser interpolation
    return value.replace("%", "%%")
