"""Field factory: builds live Fields (with bound rules) from definitions."""

import logging
from typing import Any, Callable

from modelforge.exceptions import MetadataError
from modelforge.fields.base import Field
from modelforge.fields.password import PasswordHasher
from modelforge.fields.registry import FieldRegistry, register_builtin_fields
from modelforge.fields.types import PasswordField
from modelforge.metadata.definitions import FieldDefinition, ModelDefinition
from modelforge.validation.base import RuleContext, ValidationRule
from modelforge.validation.registry import RuleRegistry, register_builtin_rules

logger = logging.getLogger(__name__)


class FieldFactory:
    """Turns FieldDefinitions into Fields.

    Collaborators needed by rules (the persistence store, a resolver for
    related models) are injected here and handed to every rule built.

    Rules attached to a field are, before priority sorting:
    the declared ``validationRules``, then the field type's implicit rules,
    then rules implied by ``required``, ``minLength``/``maxLength``,
    ``minValue``/``maxValue`` and ``unique``. Duplicates are dropped.
    """

    def __init__(
        self,
        store: Any = None,
        model_resolver: Callable[[str], ModelDefinition] | None = None,
        password_hasher: PasswordHasher | None = None,
    ):
        register_builtin_fields()
        register_builtin_rules()
        self.rule_context = RuleContext(store=store, model_resolver=model_resolver)
        self.password_hasher = password_hasher

    @property
    def store(self) -> Any:
        return self.rule_context.store

    def build_field(self, definition: FieldDefinition, owning_model: Any = None) -> Field:
        """Build the Field for ``definition``, owned by ``owning_model``.

        Raises:
            MetadataError: Unknown field type, incomplete definition, or an
                unresolvable rule identifier
        """
        model_name = getattr(owning_model, "name", None)

        try:
            field_class = FieldRegistry.get(definition.type)
        except ValueError as exc:
            logger.error("Unknown field type %s for %s.%s", definition.type, model_name, definition.name)
            raise MetadataError(
                str(exc),
                model_name=model_name,
                key=f"fields.{definition.name}.type",
            ) from exc

        field_class.check_definition(definition, model_name)

        if issubclass(field_class, PasswordField) and self.password_hasher is not None:
            field = field_class(definition, owning_model, hasher=self.password_hasher)
        else:
            field = field_class(definition, owning_model)

        view = getattr(owning_model, "view", None)
        rules = []
        for rule_name in self.rule_names(definition, field_class):
            rule = self.build_rule(rule_name, definition, model_name)
            rule.bind(field, view)
            rules.append(rule)
        field.attach_rules(rules)
        return field

    def build_rule(
        self,
        rule_name: str,
        definition: FieldDefinition,
        model_name: str | None = None,
    ) -> ValidationRule:
        try:
            rule_class = RuleRegistry.get(rule_name)
        except ValueError as exc:
            logger.error(
                "Unresolvable rule %s for %s.%s", rule_name, model_name, definition.name
            )
            raise MetadataError(
                str(exc),
                model_name=model_name,
                key=f"fields.{definition.name}.validationRules",
            ) from exc
        return rule_class.from_definition(definition, self.rule_context)

    def rule_names(self, definition: FieldDefinition, field_class: type[Field]) -> list[str]:
        """Rule identifiers for a field, canonicalized and deduplicated."""
        requested = list(definition.validation_rules)
        requested.extend(field_class.implicit_rules)
        if definition.required:
            requested.append("Required")
        if definition.min_length is not None:
            requested.append("MinLength")
        if definition.max_length is not None:
            requested.append("MaxLength")
        if definition.min_value is not None or definition.max_value is not None:
            requested.append("Range")
        if definition.unique:
            requested.append("Unique")

        names: list[str] = []
        for name in requested:
            canonical = RuleRegistry.resolve_name(name) or name
            if canonical not in names:
                names.append(canonical)
        return names
