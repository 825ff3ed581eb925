"""Persistence collaborator interfaces.

Models never build query text. They hand the store themselves (or a
field plus a value) and the store decides how to read and write.
"""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class FieldRef:
    """Minimal field handle for lookups against another model's table.

    Anything with ``name`` and ``table_name`` attributes (including a live
    Field) can be passed to ``record_exists``.
    """

    name: str
    table_name: str


@runtime_checkable
class PersistenceStore(Protocol):
    """Interface all persistence stores must implement.

    Stores own the storage representation: they write ``field.to_db_value()``
    and hand rows back already converted with ``field.from_db_value()``.
    Timeouts and transactions are the store's responsibility.
    """

    def create(self, model: Any) -> bool: ...

    def update(self, model: Any) -> bool: ...

    def soft_delete(self, model: Any) -> bool: ...

    def hard_delete(self, model: Any) -> bool: ...

    def retrieve(self, model: Any) -> dict[str, Any] | None: ...

    def record_exists(self, field: Any, value: Any, exclude_id: Any = None) -> bool: ...

    def find(
        self,
        model: Any,
        criteria: dict[str, Any] | None = None,
        order_by: list[dict[str, str]] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]: ...


@runtime_checkable
class CurrentUserProvider(Protocol):
    """Supplies the acting user's id for audit stamps."""

    def get_current_user_id(self) -> str | None: ...


class StaticUserProvider:
    """Always reports the same user (or None for anonymous)."""

    def __init__(self, user_id: str | None = None):
        self.user_id = user_id

    def get_current_user_id(self) -> str | None:
        return self.user_id
