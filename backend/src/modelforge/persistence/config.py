"""Database configuration and store factory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modelforge.persistence.sqlite import SQLiteStore


@dataclass
class DatabaseConfig:
    """Database connection configuration.

    Only the sqlite:/// URL scheme has a bundled store.
    """

    url: str
    timeout: float = 5.0

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """Create config from environment variables.

        Resolution order:
        1. DATABASE_URL env var (standard)
        2. MODELFORGE_DB_PATH env var (converted to sqlite:/// URL)
        3. Default: sqlite:///{base_path}/data/modelforge.db
        4. Default: sqlite:///modelforge.db
        """
        timeout = float(os.environ.get("MODELFORGE_DB_TIMEOUT", "5.0"))

        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url, timeout=timeout)

        db_path = os.environ.get("MODELFORGE_DB_PATH")
        if db_path:
            return cls(url=f"sqlite:///{db_path}", timeout=timeout)

        if base_path:
            return cls(url=f"sqlite:///{base_path / 'data' / 'modelforge.db'}", timeout=timeout)

        return cls(url="sqlite:///modelforge.db", timeout=timeout)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def sqlite_path(self) -> str:
        """File path from a sqlite:/// URL (``:memory:`` when empty)."""
        db_path = self.url.replace("sqlite:///", "", 1)
        return db_path or ":memory:"


def create_store(config: DatabaseConfig) -> SQLiteStore:
    """Create a persistence store based on the database URL scheme.

    Returns:
        A store instance (not yet connected).

    Raises:
        ValueError: For unsupported URL schemes.
    """
    if config.is_sqlite:
        from modelforge.persistence.sqlite import SQLiteStore

        return SQLiteStore(config.sqlite_path, timeout=config.timeout)

    raise ValueError(f"Unsupported database URL scheme: {config.url}")
