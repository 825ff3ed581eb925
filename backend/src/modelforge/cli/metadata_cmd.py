"""Metadata CLI commands: validate, show and rules."""

from pathlib import Path

import click
import yaml

from modelforge.config import Settings
from modelforge.exceptions import MetadataError
from modelforge.fields.registry import FieldRegistry
from modelforge.metadata.engine import MetadataEngine
from modelforge.metadata.sources import YamlSourceLoader
from modelforge.metadata.validator import _SUBDIR_SCHEMA, validate_metadata_dir, validate_yaml_file
from modelforge.validation.registry import RuleRegistry


def _resolve_paths():
    """Resolve base and metadata paths from cwd (or MODELFORGE_METADATA_PATH)."""
    cwd = Path.cwd()
    if cwd.name == "backend":
        base_path = cwd.parent
    else:
        base_path = cwd
    settings = Settings.from_env(base_path)
    return base_path, settings.metadata_path, settings


def _engine(metadata_path: Path, settings: Settings) -> MetadataEngine:
    return MetadataEngine(YamlSourceLoader(metadata_path, settings.core_fields_path))


@click.group()
def metadata():
    """Metadata commands."""
    pass


@metadata.command()
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Treat warnings as errors.",
)
@click.option(
    "--path",
    "target_path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="Validate a single YAML file instead of the whole metadata directory.",
)
def validate(strict: bool, target_path: Path | None):
    """Validate model YAML files against the JSON Schema, then resolve them."""
    _, metadata_path, settings = _resolve_paths()

    # ── Schema (JSON Schema) validation ─────────────────────────────────────
    if target_path is not None:
        # Single-file mode: infer schema from parent directory name
        parent = target_path.parent.name
        schema_name = _SUBDIR_SCHEMA.get(parent)
        if schema_name is None:
            click.echo(
                f"Warning: cannot determine schema for directory '{parent}'. "
                "Expected: models.",
                err=True,
            )
            schema_issues = []
        else:
            schema_issues = validate_yaml_file(target_path, schema_name)
    else:
        if not metadata_path.exists():
            click.echo(f"Error: Metadata directory not found at {metadata_path}", err=True)
            raise SystemExit(1)
        schema_issues = validate_metadata_dir(metadata_path, strict=strict)

    # Report schema issues
    errors = [i for i in schema_issues if i.severity == "error"]
    warnings = [i for i in schema_issues if i.severity == "warning"]

    for issue in schema_issues:
        colour = "red" if issue.severity == "error" else "yellow"
        click.echo(click.style(str(issue), fg=colour))

    if errors:
        click.echo(
            click.style(
                f"\n{len(errors)} schema error(s) found"
                + (f", {len(warnings)} warning(s)" if warnings else ""),
                fg="red",
                bold=True,
            )
        )
        raise SystemExit(1)

    if warnings:
        click.echo(
            click.style(f"{len(warnings)} warning(s) found.", fg="yellow")
        )

    # ── Semantic (engine) validation ─────────────────────────────────────────
    # Only runs when validating the full directory (target_path is None)
    if target_path is None:
        engine = _engine(metadata_path, settings)
        models = engine.list_models()
        click.echo(f"\nResolved {len(models)} models:")
        for name in sorted(models):
            try:
                model = engine.resolve_model(name)
            except MetadataError as e:
                location = f" ({e.key})" if e.key else ""
                click.echo(
                    click.style(f"\nSemantic validation failed for {name}{location}: {e}", fg="red"),
                    err=True,
                )
                raise SystemExit(1)
            click.echo(f"  ✓ {name} ({len(model.fields)} fields, table: {model.table})")

    click.echo(click.style("\nAll metadata is valid.", fg="green", bold=True))


@metadata.command("show")
@click.argument("model_name")
def show_cmd(model_name: str):
    """Print a model's merged definition as YAML."""
    _, metadata_path, settings = _resolve_paths()

    try:
        model = _engine(metadata_path, settings).resolve_model(model_name)
    except MetadataError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    document = {
        "name": model.name,
        "table": model.table,
        "fields": {name: fd.to_dict() for name, fd in model.fields.items()},
    }
    if model.display_columns:
        document["displayColumns"] = model.display_columns
    if model.relationships:
        document["relationships"] = model.relationships
    if model.permissions:
        document["permissions"] = model.permissions

    click.echo(yaml.safe_dump(document, sort_keys=False, allow_unicode=True).rstrip())


@metadata.command("rules")
def rules_cmd():
    """List registered field types and validation rules."""
    # Building an engine registers the built-ins
    _, metadata_path, settings = _resolve_paths()
    _engine(metadata_path, settings)

    click.echo("Field types:")
    for name in FieldRegistry.list_registered():
        field_class = FieldRegistry.get(name)
        implicit = ", ".join(field_class.implicit_rules) or "-"
        click.echo(f"  {name:<16} storage: {field_class.storage_type:<8} implicit rules: {implicit}")

    click.echo("\nValidation rules:")
    for name in RuleRegistry.list_registered():
        rule_class = RuleRegistry.get(name)
        flags = [
            flag
            for flag, enabled in (
                ("stop_on_failure", rule_class.stop_on_failure),
                ("skip_if_empty", rule_class.skip_if_empty),
                ("context_sensitive", rule_class.context_sensitive),
            )
            if enabled
        ]
        suffix = f"  [{', '.join(flags)}]" if flags else ""
        click.echo(f"  {name:<18} priority: {rule_class.priority:<4}{suffix}")
