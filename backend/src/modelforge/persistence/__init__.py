"""Persistence layer - store interfaces and the SQLite reference store."""

from modelforge.persistence.config import DatabaseConfig, create_store
from modelforge.persistence.sqlite import SQLiteStore
from modelforge.persistence.store import (
    CurrentUserProvider,
    FieldRef,
    PersistenceStore,
    StaticUserProvider,
)

__all__ = [
    "CurrentUserProvider",
    "DatabaseConfig",
    "FieldRef",
    "PersistenceStore",
    "SQLiteStore",
    "StaticUserProvider",
    "create_store",
]
