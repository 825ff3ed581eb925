"""Rule registry for ModelForge.

Maps the rule identifiers used in metadata (``validationRules``) to rule
classes. Built-in rules are registered by ``register_builtin_rules()``;
applications register their own rules at startup the same way.
"""

from modelforge.validation.base import ValidationRule

_SUFFIX = "Validation"


def _candidates(name: str) -> list[str]:
    """Identifiers to try, in order: as given, then without the conventional suffix."""
    names = [name]
    if name.endswith(_SUFFIX) and len(name) > len(_SUFFIX):
        names.append(name[: -len(_SUFFIX)])
    return names


class RuleRegistry:
    """Registry for validation rule types.

    Lookup is exact first, then case-insensitive, and accepts the
    ``<Name>Validation`` spelling for every registered ``<Name>``.

    Example:
        RuleRegistry.register("NoSpaces", NoSpacesRule)

        rule_class = RuleRegistry.get("NoSpacesValidation")
    """

    _rules: dict[str, type[ValidationRule]] = {}

    @classmethod
    def register(cls, name: str, rule_class: type[ValidationRule]) -> None:
        """Register a rule class by identifier.

        Idempotent - re-registering the same name is a no-op.
        """
        if name in cls._rules:
            return
        cls._rules[name] = rule_class

    @classmethod
    def resolve_name(cls, name: str) -> str | None:
        """Return the registered identifier ``name`` refers to, or None."""
        for candidate in _candidates(name):
            if candidate in cls._rules:
                return candidate
            lowered = candidate.lower()
            for registered in cls._rules:
                if registered.lower() == lowered:
                    return registered
        return None

    @classmethod
    def get(cls, name: str) -> type[ValidationRule]:
        """Get a registered rule class.

        Raises:
            ValueError: If no registered rule matches the identifier
        """
        resolved = cls.resolve_name(name)
        if resolved is None:
            raise ValueError(
                f"Validation rule '{name}' is not registered. "
                "Available rules: " + ", ".join(cls.list_registered())
            )
        return cls._rules[resolved]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return cls.resolve_name(name) is not None

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered rule identifiers."""
        return sorted(cls._rules.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._rules.clear()


def register_builtin_rules() -> None:
    """Register all built-in rules with the RuleRegistry."""
    from modelforge.validation.rules import BUILTIN_RULES

    for rule_class in BUILTIN_RULES:
        RuleRegistry.register(rule_class.name, rule_class)
