"""Database layer for treasury application."""

from treasury.database.base import Database
from treasury.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
