"""Ad hoc validation over plain dicts.

Used where a full ModelEntity is unnecessary (request pre-checks, imports).
Unlike a Field's rule chain, every rule for a field runs even after an
earlier one fails, so callers see all problems at once. Code relies on
that complete report; do not add stop-on-failure here.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from modelforge.validation.base import ValidationRule

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of ValidationEngine.validate.

    Attributes:
        is_valid: True when no rule failed
        errors: Field name -> formatted messages, only for fields that failed
    """

    is_valid: bool
    errors: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.is_valid, "errors": {k: list(v) for k, v in self.errors.items()}}


class ValidationEngine:
    """Holds field-keyed rules and checks arbitrary input maps against them.

    Example:
        engine = ValidationEngine()
        engine.add_rule("email", RequiredRule())
        engine.add_rule("email", EmailRule())
        result = engine.validate({"email": "nope"})
    """

    def __init__(self):
        self._rules: dict[str, list[ValidationRule]] = {}

    def add_rule(self, field_name: str, rule: ValidationRule) -> None:
        self._rules.setdefault(field_name, []).append(rule)

    def add_rules(self, field_name: str, rules: list[ValidationRule]) -> None:
        for rule in rules:
            self.add_rule(field_name, rule)

    def get_rules(self, field_name: str) -> list[ValidationRule]:
        return list(self._rules.get(field_name, []))

    @property
    def field_names(self) -> list[str]:
        return list(self._rules.keys())

    def validate(self, data: dict[str, Any]) -> ValidationResult:
        """Run every registered rule against ``data[field]``.

        Missing keys are validated as None. There is no model here, so
        context-sensitive rules are inapplicable and skipped.
        """
        errors: dict[str, list[str]] = {}

        for field_name, rules in self._rules.items():
            value = data.get(field_name)
            for rule in rules:
                if not rule.is_applicable(value, rule.field, None):
                    continue
                if rule.validate(value):
                    continue
                message = rule.get_formatted_error_message({"fieldName": field_name})
                errors.setdefault(field_name, []).append(message)

        if errors:
            logger.info("Ad hoc validation failed for fields: %s", ", ".join(errors))
        return ValidationResult(is_valid=not errors, errors=errors)
