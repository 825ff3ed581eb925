"""Base class and shared helpers for validation rules.

A rule is a named predicate plus an error template and a client-side
expression of the same predicate. Rules are configured once when a field
is built and then invoked repeatedly; ``value`` holds the value most
recently passed to ``validate``.
"""

import json
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Protocol

if TYPE_CHECKING:
    from modelforge.metadata.definitions import FieldDefinition, ModelDefinition
    from modelforge.persistence.store import PersistenceStore

_TOKEN_PATTERN = re.compile(r"\{(\w+)\}")

# Client-side emptiness test, kept in step with is_empty()
JS_IS_EMPTY = (
    "function isEmpty(value) {"
    " if (value === null || value === undefined) return true;"
    ' if (typeof value === "string") return value.trim() === "";'
    " if (Array.isArray(value)) return value.length === 0;"
    ' if (typeof value === "object") return Object.keys(value).length === 0;'
    " return false; }"
)

ALWAYS_PASS_JS = "function(value) { return true; }"


def is_empty(value: Any) -> bool:
    """Check if a value is considered empty."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, tuple, dict, set)) and len(value) == 0:
        return True
    return False


def js_regex(pattern: str, flags: str = "") -> str:
    """Render a Python regex source as a JavaScript RegExp constructor."""
    return f"new RegExp({json.dumps(pattern)}, {json.dumps(flags)})"


class ModelReader(Protocol):
    """Read-only view of a model, as seen by context-sensitive rules."""

    name: str

    def get(self, field_name: str) -> Any: ...

    def has_field(self, field_name: str) -> bool: ...


@dataclass
class RuleContext:
    """Collaborators injected into rules that need them.

    Attributes:
        store: Persistence store used by round-trip rules (Unique, ForeignKeyExists)
        model_resolver: Callable returning the ModelDefinition for a model name
    """

    store: "PersistenceStore | None" = None
    model_resolver: Callable[[str], "ModelDefinition"] | None = None


class ValidationRule:
    """Base class for validation rules.

    Subclasses set the class-level defaults and implement ``check``.
    Round-trip rules must catch store errors, log them and return False.

    Example:
        class NoSpaces(ValidationRule):
            name = "NoSpaces"
            error_message = "{fieldName} must not contain spaces"

            def check(self, value, model):
                return is_empty(value) or " " not in str(value)
    """

    name: str = ""
    error_message: str = "{fieldName} is invalid"
    priority: int = 100
    stop_on_failure: bool = False
    skip_if_empty: bool = False
    context_sensitive: bool = False

    def __init__(
        self,
        error_message: str | None = None,
        *,
        is_enabled: bool = True,
        priority: int | None = None,
        stop_on_failure: bool | None = None,
        skip_if_empty: bool | None = None,
        context: RuleContext | None = None,
    ):
        self.error_message = error_message or type(self).error_message
        self.is_enabled = is_enabled
        if priority is not None:
            self.priority = priority
        if stop_on_failure is not None:
            self.stop_on_failure = stop_on_failure
        if skip_if_empty is not None:
            self.skip_if_empty = skip_if_empty
        self.context = context or RuleContext()

        self.value: Any = None
        self.field: Any = None
        self.model: ModelReader | None = None
        self._failure_message: str | None = None

    @classmethod
    def from_definition(
        cls,
        definition: "FieldDefinition",
        context: RuleContext,
    ) -> "ValidationRule":
        """Build the rule for a field. Parameterized rules override this."""
        return cls(definition.error_messages.get(cls.name), context=context)

    def bind(self, field: Any, model: ModelReader | None) -> None:
        """Attach the owning field and a read-only view of its model."""
        self.field = field
        self.model = model

    @property
    def field_name(self) -> str | None:
        return getattr(self.field, "name", None)

    def is_applicable(
        self,
        value: Any,
        field: Any = None,
        model: ModelReader | None = None,
    ) -> bool:
        """Decide whether the rule runs at all for this value."""
        if not self.is_enabled:
            return False
        if self.skip_if_empty and is_empty(value):
            return False
        if self.context_sensitive and model is None:
            return False
        return True

    def validate(self, value: Any, model: ModelReader | None = None) -> bool:
        """Run the predicate against ``value``."""
        self.value = value
        self._failure_message = None
        if model is None:
            model = self.model
        return bool(self.check(value, model))

    def check(self, value: Any, model: ModelReader | None) -> bool:
        raise NotImplementedError("Subclasses must implement check()")

    def fail(self, message: str | None = None) -> bool:
        """Record a failure, optionally with a more specific message."""
        self._failure_message = message
        return False

    def message_tokens(self) -> dict[str, Any]:
        """Rule-specific substitution tokens. Override in subclasses."""
        return {}

    def get_formatted_error_message(self, extra_tokens: dict[str, Any] | None = None) -> str:
        """Substitute tokens into the error template.

        Tokens with no available value are left as literal text.
        """
        template = self._failure_message or self.error_message
        tokens: dict[str, Any] = dict(self.message_tokens())
        if self.field_name is not None:
            tokens["fieldName"] = self.field_name
        if self.value is not None:
            tokens["value"] = self.value
        if extra_tokens:
            tokens.update(extra_tokens)

        def replace(match: re.Match) -> str:
            key = match.group(1)
            if key in tokens and tokens[key] is not None:
                return str(tokens[key])
            return match.group(0)

        return _TOKEN_PATTERN.sub(replace, template)

    def get_client_validation_expression(self) -> str:
        """JavaScript function source mirroring ``check``; empty if none."""
        return ""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(priority={self.priority}, enabled={self.is_enabled})"
