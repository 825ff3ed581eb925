"""Field type registry.

Maps the ``type`` names used in metadata to Field classes. Built-in types
are registered by ``register_builtin_fields()``.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modelforge.fields.base import Field

_SUFFIX = "Field"


class FieldRegistry:
    """Registry for field types.

    Lookup is exact first, then case-insensitive; ``TextField`` resolves
    to ``Text``.

    Example:
        FieldRegistry.register("Currency", CurrencyField)

        field_class = FieldRegistry.get("CurrencyField")
    """

    _fields: dict[str, type["Field"]] = {}

    @classmethod
    def register(cls, name: str, field_class: type["Field"]) -> None:
        """Register a field class by type name.

        Idempotent - re-registering the same name is a no-op.
        """
        if name in cls._fields:
            return
        cls._fields[name] = field_class

    @classmethod
    def resolve_name(cls, name: str) -> str | None:
        """Return the registered type name ``name`` refers to, or None."""
        candidates = [name]
        if name.endswith(_SUFFIX) and len(name) > len(_SUFFIX):
            candidates.append(name[: -len(_SUFFIX)])
        for candidate in candidates:
            if candidate in cls._fields:
                return candidate
            lowered = candidate.lower()
            for registered in cls._fields:
                if registered.lower() == lowered:
                    return registered
        return None

    @classmethod
    def get(cls, name: str) -> type["Field"]:
        """Get a registered field class.

        Raises:
            ValueError: If the type is not registered
        """
        resolved = cls.resolve_name(name)
        if resolved is None:
            raise ValueError(
                f"Field type '{name}' is not registered. "
                "Available types: " + ", ".join(cls.list_registered())
            )
        return cls._fields[resolved]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        return cls.resolve_name(name) is not None

    @classmethod
    def list_registered(cls) -> list[str]:
        """List all registered type names."""
        return sorted(cls._fields.keys())

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._fields.clear()


def register_builtin_fields() -> None:
    """Register all built-in field types with the FieldRegistry."""
    from modelforge.fields.types import BUILTIN_FIELDS

    for field_class in BUILTIN_FIELDS:
        FieldRegistry.register(field_class.type_name, field_class)
