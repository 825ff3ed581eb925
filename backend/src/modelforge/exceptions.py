"""Exception taxonomy for ModelForge.

Only programmer errors are raised. Bad user input is never an exception:
it is recorded on the model as validation errors and a ``failed`` status.
"""

from typing import Any


class ModelForgeError(Exception):
    """Base class for all ModelForge errors.

    Attributes:
        message: Human-readable description
        context: Structured details for logging (model name, field, etc.)
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})


class MetadataError(ModelForgeError):
    """Malformed or missing metadata.

    Raised for unreadable sources, missing ``fields``/``name``/``type`` keys,
    unknown field types and unresolvable validation rule identifiers. Always
    fatal to model construction.
    """

    def __init__(
        self,
        message: str,
        model_name: str | None = None,
        source: str | None = None,
        key: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        details = dict(context or {})
        details.update({"model_name": model_name, "source": source, "key": key})
        super().__init__(message, details)
        self.model_name = model_name
        self.source = source
        self.key = key


class StateError(ModelForgeError):
    """An operation was invoked in a state that forbids it."""


class PersistenceError(ModelForgeError):
    """The persistence store failed. Propagated unchanged, never retried here."""
