"""ModelForge CLI entry point."""

import os

import click

from modelforge.config import configure_logging


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Log level for modelforge loggers (default: MODELFORGE_LOG_LEVEL or WARNING).",
)
def cli(log_level: str | None):
    """ModelForge: metadata-driven models CLI."""
    level = log_level or os.environ.get("MODELFORGE_LOG_LEVEL", "WARNING")
    try:
        configure_logging(level)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="--log-level")


# Register subcommand groups
from modelforge.cli.db_cmd import db  # noqa: E402
from modelforge.cli.metadata_cmd import metadata  # noqa: E402

cli.add_command(metadata)
cli.add_command(db)
