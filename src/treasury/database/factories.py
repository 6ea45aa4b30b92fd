"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from treasury.database.sqlalchemy_db import SQLAlchemyDatabase

DATA_DIR_NAME = ".treasury"
DEFAULT_DB_FILENAME = "treasury.db"


def default_data_dir(create: bool = False) -> Path:
    """Return the per-user directory holding the ledger and client state.

    Args:
        create: Create the directory when it does not exist yet
    """
    data_dir = Path.home() / DATA_DIR_NAME
    if create:
        data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def resolve_database_path(database_path: Optional[str] = None) -> str:
    """Resolve the ledger file from the argument, TREASURY_DB_PATH, or the data dir."""
    if database_path:
        return database_path
    env_path = os.environ.get("TREASURY_DB_PATH")
    if env_path:
        return env_path
    return str(default_data_dir(create=True) / DEFAULT_DB_FILENAME)


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to the ledger file, or ":memory:" for a throwaway
            store. Falls back to TREASURY_DB_PATH, then ~/.treasury/treasury.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    path = resolve_database_path(database_path)
    if path == ":memory:":
        return SQLAlchemyDatabase("sqlite://")
    return SQLAlchemyDatabase(f"sqlite:///{path}")
