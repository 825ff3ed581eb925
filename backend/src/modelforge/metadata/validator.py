"""
Structural checks for model metadata files.

Every ``models/*.yaml`` document is checked against
``schemas/model.schema.json`` with jsonschema. Field types and rule
identifiers are not known to the schema; the MetadataEngine rejects those
when a model is resolved.

Usage:
    from modelforge.metadata.validator import validate_metadata_dir

    for issue in validate_metadata_dir(Path("metadata"), strict=True):
        print(issue)

YAML 1.1 turns bare ``on``/``off`` keys into booleans and numeric option
keys into ints. Documents are normalized to string keys before checking.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator

import yaml
from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError, ValidationError, best_match

logger = logging.getLogger(__name__)

_SCHEMAS_DIR = Path(__file__).parent / "schemas"

# metadata subdirectory -> schema file checked against its documents
_SUBDIR_SCHEMA: dict[str, str] = {
    "models": "model.schema.json",
}

ERROR = "error"
WARNING = "warning"


@dataclass
class ValidationIssue:
    """One finding for a metadata file.

    ``path`` points inside the document (``fields/email/type``, ``fields[2]``).
    """

    file: Path
    message: str
    path: str = ""
    severity: str = ERROR

    def __str__(self) -> str:
        where = f"{self.file} at {self.path}" if self.path else str(self.file)
        return f"[{self.severity.upper()}] {where}: {self.message}"


@lru_cache(maxsize=None)
def _schema_validator(schema_name: str) -> Draft202012Validator:
    with (_SCHEMAS_DIR / schema_name).open() as fh:
        schema = json.load(fh)
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def _stringify_keys(obj: Any) -> Any:
    """Return ``obj`` with every mapping key turned into a string.

    ``True``/``False`` keys map back to ``"on"``/``"off"``; anything else
    goes through ``str()``.
    """
    if isinstance(obj, list):
        return [_stringify_keys(item) for item in obj]
    if not isinstance(obj, dict):
        return obj

    converted: dict[str, Any] = {}
    for key, value in obj.items():
        if key is True:
            key = "on"
        elif key is False:
            key = "off"
        converted[str(key)] = _stringify_keys(value)
    return converted


def _format_path(error: ValidationError) -> str:
    text = ""
    for part in error.absolute_path:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text += f"/{part}" if text else str(part)
    return text


def _read_document(yaml_path: Path) -> tuple[Any, ValidationIssue | None]:
    try:
        with yaml_path.open() as fh:
            document = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        return None, ValidationIssue(yaml_path, f"YAML parse error: {exc}")
    except OSError as exc:
        return None, ValidationIssue(yaml_path, f"Cannot read file: {exc}")

    if document is None:
        return None, ValidationIssue(yaml_path, "File is empty or contains only whitespace")
    return document, None


def _schema_issues(document: Any, schema_name: str, source: Path) -> Iterator[ValidationIssue]:
    validator = _schema_validator(schema_name)
    errors = validator.iter_errors(_stringify_keys(document))
    for error in sorted(errors, key=lambda e: [str(p) for p in e.absolute_path]):
        # Combinator failures say nothing useful; report the closest branch error
        if error.context:
            error = best_match(error.context)
        yield ValidationIssue(source, error.message, _format_path(error))


def _table_issues(document: Any, source: Path) -> Iterator[ValidationIssue]:
    # A missing table is legal: the lower-cased model name is used
    if isinstance(document, dict) and document.get("name") and "table" not in document:
        table = str(document["name"]).lower()
        yield ValidationIssue(
            source,
            f"No 'table' declared; defaulting to '{table}'",
            "table",
            WARNING,
        )


def validate_document(document: Any, schema_name: str, source: Path) -> list[ValidationIssue]:
    """Check an already-parsed document against ``schema_name``."""
    return list(_schema_issues(document, schema_name, source))


def validate_yaml_file(yaml_path: Path, schema_name: str = "model.schema.json") -> list[ValidationIssue]:
    """Parse ``yaml_path`` and check it against ``schema_name``.

    Returns:
        Issues found; an empty list means the file is structurally valid.
    """
    document, problem = _read_document(yaml_path)
    if problem is not None:
        return [problem]
    return validate_document(document, schema_name, yaml_path)


def validate_metadata_dir(metadata_dir: Path, *, strict: bool = False) -> list[ValidationIssue]:
    """Check every YAML file in the known subdirectories of ``metadata_dir``.

    Unknown subdirectories are ignored. Models without a ``table`` key get a
    warning; with ``strict`` every warning is reported as an error.
    """
    if not metadata_dir.is_dir():
        return [ValidationIssue(metadata_dir, f"Metadata directory does not exist: {metadata_dir}")]

    try:
        for schema_name in _SUBDIR_SCHEMA.values():
            _schema_validator(schema_name)
    except (OSError, ValueError, SchemaError) as exc:
        logger.error("Cannot load metadata schemas from %s: %s", _SCHEMAS_DIR, exc)
        return [ValidationIssue(_SCHEMAS_DIR, f"Failed to load JSON Schema files: {exc}")]

    issues: list[ValidationIssue] = []
    for subdir, schema_name in _SUBDIR_SCHEMA.items():
        folder = metadata_dir / subdir
        if not folder.is_dir():
            continue
        for yaml_file in sorted(folder.glob("*.yaml")):
            document, problem = _read_document(yaml_file)
            if problem is not None:
                issues.append(problem)
                continue
            issues.extend(_schema_issues(document, schema_name, yaml_file))
            issues.extend(_table_issues(document, yaml_file))

    if strict:
        for issue in issues:
            issue.severity = ERROR

    logger.debug("Checked metadata in %s: %d issue(s)", metadata_dir, len(issues))
    return issues
