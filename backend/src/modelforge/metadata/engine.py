"""Metadata engine: merges layered sources into canonical definitions."""

import copy
import logging
from typing import Any

from modelforge.exceptions import MetadataError
from modelforge.fields.registry import FieldRegistry, register_builtin_fields
from modelforge.metadata.definitions import (
    FIELD_NAME_PATTERN,
    FieldDefinition,
    ModelDefinition,
)
from modelforge.metadata.sources import MetadataSource, MetadataSourceLoader
from modelforge.validation.registry import RuleRegistry, register_builtin_rules

logger = logging.getLogger(__name__)

# Top-level keys carried onto ModelDefinition; the last source defining one wins
_MODEL_KEYS = ("name", "table", "displayColumns", "relationships", "permissions")


class MetadataEngine:
    """Resolves a model's field definitions from layered metadata sources.

    Sources are merged in the order the loader returns them. A field name
    appearing in a later source replaces the earlier definition object
    entirely; there is no per-property patching. Resolution never mutates
    the sources, so resolving twice yields equal results.
    """

    def __init__(self, loader: MetadataSourceLoader):
        self.loader = loader
        register_builtin_fields()
        register_builtin_rules()

    def resolve_field_definitions(self, model_name: str) -> dict[str, FieldDefinition]:
        """Return the merged, checked field definitions for a model.

        Raises:
            MetadataError: On any malformed, missing or unknown metadata
        """
        sources = self._load_sources(model_name)
        return self._merge_fields(model_name, sources)

    def resolve_model(self, model_name: str) -> ModelDefinition:
        """Return the full model definition (fields plus model-level keys)."""
        sources = self._load_sources(model_name)
        fields = self._merge_fields(model_name, sources)

        top: dict[str, Any] = {}
        for source in sources:
            for key in _MODEL_KEYS:
                if key in source.data:
                    top[key] = copy.deepcopy(source.data[key])

        name = str(top.get("name") or model_name)
        definition = ModelDefinition(
            name=name,
            table=str(top.get("table") or name.lower()),
            fields=fields,
            display_columns=list(top.get("displayColumns") or []),
            relationships=list(top.get("relationships") or []),
            permissions=dict(top.get("permissions") or {}),
        )
        logger.debug(
            "Resolved model %s (table=%s, %d fields)",
            definition.name,
            definition.table,
            len(definition.fields),
        )
        return definition

    def list_models(self) -> list[str]:
        return self.loader.list_models()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_sources(self, model_name: str) -> list[MetadataSource]:
        try:
            sources = self.loader.load_sources(model_name)
        except MetadataError:
            logger.error("Metadata sources for %s could not be loaded", model_name)
            raise
        except Exception as exc:
            raise self._error(
                f"Metadata sources for '{model_name}' are unreadable: {exc}",
                model_name,
            ) from exc

        if not sources:
            raise self._error(f"No metadata sources found for '{model_name}'", model_name)

        for source in sources:
            if not isinstance(source.data, dict):
                raise self._error(
                    f"Metadata source must be a mapping, got {type(source.data).__name__}",
                    model_name,
                    source.name,
                )
            if "fields" not in source.data:
                raise self._error(
                    "Metadata source is missing 'fields'",
                    model_name,
                    source.name,
                    "fields",
                )
        return sources

    def _merge_fields(
        self, model_name: str, sources: list[MetadataSource]
    ) -> dict[str, FieldDefinition]:
        # name -> (source name, raw definition); a replaced name keeps its slot
        merged: dict[str, tuple[str, dict[str, Any]]] = {}
        for source in sources:
            for name, raw in self._field_entries(model_name, source):
                merged[name] = (source.name, raw)

        return {
            name: self._build_definition(model_name, source_name, name, raw)
            for name, (source_name, raw) in merged.items()
        }

    def _field_entries(self, model_name: str, source: MetadataSource):
        fields = source.data["fields"]

        if fields is None:
            return
        if isinstance(fields, dict):
            items = list(fields.items())
        elif isinstance(fields, list):
            items = [(None, raw) for raw in fields]
        else:
            raise self._error(
                "'fields' must be a mapping or a list",
                model_name,
                source.name,
                "fields",
            )

        for key, raw in items:
            label = key if key is not None else "?"
            if not isinstance(raw, dict):
                raise self._error(
                    f"Field definition '{label}' must be a mapping",
                    model_name,
                    source.name,
                    f"fields.{label}",
                )

            name = raw.get("name", key)
            if not name:
                raise self._error(
                    "Field definition is missing 'name'",
                    model_name,
                    source.name,
                    f"fields.{label}.name",
                )
            if key is not None and str(name) != str(key):
                raise self._error(
                    f"Field key '{key}' does not match its name '{name}'",
                    model_name,
                    source.name,
                    f"fields.{key}.name",
                )
            name = str(name)
            if not FIELD_NAME_PATTERN.match(name):
                raise self._error(
                    f"Field name '{name}' must be alphanumeric or underscore",
                    model_name,
                    source.name,
                    f"fields.{name}.name",
                )
            if not raw.get("type"):
                raise self._error(
                    f"Field '{name}' is missing 'type'",
                    model_name,
                    source.name,
                    f"fields.{name}.type",
                )

            raw = copy.deepcopy(raw)
            raw["name"] = name
            yield name, raw

    def _build_definition(
        self,
        model_name: str,
        source_name: str,
        name: str,
        raw: dict[str, Any],
    ) -> FieldDefinition:
        field_type = str(raw["type"])
        if not FieldRegistry.is_registered(field_type):
            raise self._error(
                f"Unknown field type '{field_type}' for field '{name}'",
                model_name,
                source_name,
                f"fields.{name}.type",
            )

        definition = FieldDefinition.from_dict(raw)
        for rule_name in definition.validation_rules:
            if not RuleRegistry.is_registered(rule_name):
                raise self._error(
                    f"Unknown validation rule '{rule_name}' for field '{name}'",
                    model_name,
                    source_name,
                    f"fields.{name}.validationRules",
                )
        return definition

    def _error(
        self,
        message: str,
        model_name: str,
        source: str | None = None,
        key: str | None = None,
    ) -> MetadataError:
        logger.error(
            "Metadata error for %s (source=%s, key=%s): %s",
            model_name,
            source,
            key,
            message,
        )
        return MetadataError(message, model_name=model_name, source=source, key=key)
