"""Database CLI commands: init."""

from pathlib import Path

import click

from modelforge.cli.metadata_cmd import _engine, _resolve_paths
from modelforge.exceptions import MetadataError, PersistenceError
from modelforge.models.factory import ModelFactory
from modelforge.persistence.config import create_store


@click.group()
def db():
    """Database commands."""
    pass


@db.command()
@click.option(
    "--model",
    "model_names",
    multiple=True,
    help="Only create the table for this model (repeatable). Default: every model.",
)
def init(model_names: tuple[str, ...]):
    """Create missing tables for the metadata models.

    Existing tables are left untouched; this never alters or drops columns.
    """
    _, metadata_path, settings = _resolve_paths()

    if not metadata_path.exists():
        click.echo(f"Error: Metadata directory not found at {metadata_path}", err=True)
        raise SystemExit(1)

    try:
        store = create_store(settings.database)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    if store.db_path != ":memory:":
        Path(store.db_path).parent.mkdir(parents=True, exist_ok=True)

    factory = ModelFactory(_engine(metadata_path, settings), store)
    names = list(model_names) or factory.list_models()

    store.connect()
    try:
        for name in names:
            model = factory.new(name)
            store.initialize_model(model)
            click.echo(f"  ✓ {name} (table: {model.table})")
    except (MetadataError, PersistenceError) as e:
        click.echo(click.style(f"\nError: {e}", fg="red"), err=True)
        raise SystemExit(1)
    finally:
        store.close()

    click.echo(click.style(f"\nInitialized {len(names)} table(s) at {settings.database.url}", fg="green"))
