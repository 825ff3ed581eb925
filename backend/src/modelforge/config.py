"""Runtime settings and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from modelforge.fields.password import DEFAULT_ROUNDS
from modelforge.metadata.sources import CORE_FIELDS_TEMPLATE
from modelforge.persistence.config import DatabaseConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Settings:
    """Settings resolved from the environment.

    Attributes:
        metadata_path: Directory holding ``models/*.yaml``
        core_fields_path: Core fields template merged into every model
        database: Database configuration
        log_level: Level name for the ``modelforge`` logger
        password_rounds: pbkdf2 work factor for password hashes
    """

    metadata_path: Path
    core_fields_path: Path = CORE_FIELDS_TEMPLATE
    database: DatabaseConfig = field(default_factory=lambda: DatabaseConfig(url="sqlite:///modelforge.db"))
    log_level: str = "INFO"
    password_rounds: int = DEFAULT_ROUNDS

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> Settings:
        """Create settings from environment variables.

        MODELFORGE_METADATA_PATH   default: {base_path}/metadata
        MODELFORGE_CORE_FIELDS     default: packaged core_fields.yaml
        MODELFORGE_LOG_LEVEL       default: INFO
        MODELFORGE_PASSWORD_ROUNDS default: 29000
        Database settings: see DatabaseConfig.from_env
        """
        base = base_path or Path.cwd()

        metadata_path = os.environ.get("MODELFORGE_METADATA_PATH")
        core_fields = os.environ.get("MODELFORGE_CORE_FIELDS")
        rounds = os.environ.get("MODELFORGE_PASSWORD_ROUNDS")

        try:
            password_rounds = int(rounds) if rounds else DEFAULT_ROUNDS
        except ValueError:
            raise ValueError(f"MODELFORGE_PASSWORD_ROUNDS must be an integer, got {rounds!r}") from None

        return cls(
            metadata_path=Path(metadata_path) if metadata_path else base / "metadata",
            core_fields_path=Path(core_fields) if core_fields else CORE_FIELDS_TEMPLATE,
            database=DatabaseConfig.from_env(base_path),
            log_level=os.environ.get("MODELFORGE_LOG_LEVEL", "INFO").upper(),
            password_rounds=password_rounds,
        )


def configure_logging(level: str | int = "INFO") -> None:
    """Attach a stream handler to the ``modelforge`` logger.

    Safe to call more than once; the handler is only added the first time.
    """
    logger = logging.getLogger("modelforge")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        level = resolved
    logger.setLevel(level)

    if not any(getattr(h, "_modelforge", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._modelforge = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
