"""Resolved metadata types: field and model definitions."""

import copy
import re
from dataclasses import dataclass, field
from typing import Any

# Field names: alphanumeric plus underscore, non-empty
FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

# camelCase metadata key -> FieldDefinition attribute
_KEY_MAP: dict[str, str] = {
    "name": "name",
    "type": "type",
    "label": "label",
    "required": "required",
    "defaultValue": "default_value",
    "validationRules": "validation_rules",
    "errorMessages": "error_messages",
    "isDBField": "is_db_field",
    "readOnly": "read_only",
    "unique": "unique",
    "relatedModel": "related_model",
    "relatedFieldName": "related_field_name",
    "minLength": "min_length",
    "maxLength": "max_length",
    "minValue": "min_value",
    "maxValue": "max_value",
    "options": "options",
}


@dataclass(frozen=True)
class FieldDefinition:
    """Immutable definition of one model attribute.

    Produced by the MetadataEngine after merging all sources. A later
    source's definition for the same name replaces the earlier one whole.
    """

    name: str
    type: str
    label: str = ""
    required: bool = False
    default_value: Any = None
    validation_rules: tuple[str, ...] = ()
    error_messages: dict[str, str] = field(default_factory=dict)
    is_db_field: bool = True
    read_only: bool = False
    unique: bool = False
    related_model: str | None = None
    related_field_name: str | None = None
    min_length: int | None = None
    max_length: int | None = None
    min_value: float | None = None
    max_value: float | None = None
    options: dict[str, str] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldDefinition":
        """Build a definition from a raw metadata dict (camelCase keys).

        The input is deep-copied so the source is never shared or mutated.
        Keys without a dedicated attribute are kept in ``extra``.
        """
        data = copy.deepcopy(data)
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            attr = _KEY_MAP.get(key)
            if attr is None:
                extra[key] = value
            else:
                kwargs[attr] = value

        rules = kwargs.get("validation_rules") or ()
        if isinstance(rules, str):
            rules = (rules,)
        kwargs["validation_rules"] = tuple(rules)

        kwargs["error_messages"] = dict(kwargs.get("error_messages") or {})
        kwargs["options"] = _normalize_options(kwargs.get("options"))
        kwargs.setdefault("label", kwargs.get("name", ""))
        kwargs["required"] = bool(kwargs.get("required", False))
        kwargs["is_db_field"] = kwargs.get("is_db_field", True) is not False
        kwargs["read_only"] = bool(kwargs.get("read_only", False))
        kwargs["unique"] = bool(kwargs.get("unique", False))

        return cls(extra=extra, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert back to camelCase metadata form (used by the CLI)."""
        result: dict[str, Any] = {}
        for key, attr in _KEY_MAP.items():
            value = getattr(self, attr)
            if attr == "validation_rules":
                value = list(value)
            if value is None or value == {} or value == []:
                continue
            result[key] = copy.deepcopy(value)
        result.update(copy.deepcopy(self.extra))
        return result


def _normalize_options(options: Any) -> dict[str, str] | None:
    """Options may be declared as a mapping or as a plain list of values."""
    if options is None:
        return None
    if isinstance(options, dict):
        return {str(k): str(v) for k, v in options.items()}
    return {str(v): str(v) for v in options}


@dataclass
class ModelDefinition:
    """Canonical shape of a model after merging all metadata sources.

    Attributes:
        name: Model name (e.g. "Users")
        table: Storage table name
        fields: Field definitions in canonical declaration order
        display_columns: Fields used as a human-readable label
        relationships: Declared relationship names (declarative only)
        permissions: Role -> allowed actions (declarative only)
    """

    name: str
    table: str
    fields: dict[str, FieldDefinition]
    display_columns: list[str] = field(default_factory=list)
    relationships: list[str] = field(default_factory=list)
    permissions: dict[str, list[str]] = field(default_factory=dict)
