"""Field base class.

A Field holds one attribute value of one ModelEntity plus the rules that
guard it. ``set`` stores first and validates second: a rejected value is
kept and only flagged, never reverted.
"""

import logging
from typing import TYPE_CHECKING, Any

from modelforge.metadata.definitions import FieldDefinition

if TYPE_CHECKING:
    from modelforge.validation.base import ValidationRule

logger = logging.getLogger(__name__)


class Field:
    """Typed value container bound to one model attribute.

    Subclasses set ``type_name``, ``storage_type`` and ``implicit_rules``
    and may override the storage conversions.

    Attributes:
        definition: The immutable FieldDefinition this field was built from
        name: Field name
        table_name: Table of the owning model (used by store lookups)
        value: Current value
        validation_rules: Bound rules in ascending priority order
    """

    type_name: str = ""
    storage_type: str = "TEXT"
    implicit_rules: tuple[str, ...] = ()

    def __init__(self, definition: FieldDefinition, model: Any = None):
        self.definition = definition
        self.name = definition.name
        self.label = definition.label or definition.name
        self.model = model
        self.table_name: str | None = getattr(model, "table", None)
        self.value: Any = None
        self.validation_rules: list["ValidationRule"] = []
        self._errors: dict[str, None] = {}

    @classmethod
    def check_definition(cls, definition: FieldDefinition, model_name: str | None = None) -> None:
        """Reject definitions this field type cannot work with. Override as needed."""

    @property
    def is_db_field(self) -> bool:
        return self.definition.is_db_field

    def attach_rules(self, rules: list["ValidationRule"]) -> None:
        """Attach rules sorted by priority; equal priorities keep their order."""
        self.validation_rules = sorted(rules, key=lambda rule: rule.priority)

    def get(self) -> Any:
        return self.value

    def set(self, value: Any) -> None:
        """Store ``value``, then run the rule chain. Never raises for invalid input."""
        self.value = value
        self._run_rules(value)

    def set_value_from_db(self, value: Any) -> None:
        """Store a trusted value without validation."""
        self.value = value

    def validate(self) -> bool:
        """Re-run the rule chain on the current value."""
        return self._run_rules(self.value)

    def get_validation_errors(self) -> list[str]:
        return list(self._errors)

    def to_db_value(self) -> Any:
        """Value the store should write."""
        return self.value

    def from_db_value(self, raw: Any) -> Any:
        """Convert a raw storage value back to the field's value."""
        return raw

    def _run_rules(self, value: Any) -> bool:
        self._errors.clear()
        view = getattr(self.model, "view", None)
        for rule in self.validation_rules:
            if not rule.is_applicable(value, self, view):
                continue
            if rule.validate(value, view):
                continue

            message = rule.get_formatted_error_message()
            self._record_error(message)
            logger.debug("Field %s failed %s: %s", self.name, rule.name, message)

            if rule.stop_on_failure:
                break

        return not self._errors

    def _record_error(self, message: str) -> None:
        self._errors[message] = None
        if self.model is not None:
            self.model.record_validation_error(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, value={self.value!r})"
