"""ModelEntity: a runtime model assembled from metadata.

Validation state and persistence state are tracked independently:

    validation:   pending -> passed | failed
    persistence:  transient -> persisted -> soft-deleted -> (restored) persisted
                                         -> hard-deleted (terminal)

Bad input is never an exception. It shows up in ``validation_errors`` and a
``failed`` status, and ``create``/``update`` return False. StateError is
reserved for calls the current state forbids (for example update without id).
"""

import copy
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from modelforge.exceptions import PersistenceError, StateError
from modelforge.fields.base import Field
from modelforge.fields.factory import FieldFactory
from modelforge.fields.types import PasswordField
from modelforge.metadata.definitions import ModelDefinition
from modelforge.persistence.store import CurrentUserProvider, PersistenceStore
from modelforge.validation.base import is_empty

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
SYSTEM_USER = "system"


class ValidationStatus(str, Enum):
    """Aggregate validation state of a model."""

    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class ModelView:
    """Read-only view of a model handed to validation rules.

    Rules may read sibling values through it but cannot set anything.
    """

    __slots__ = ("_model",)

    def __init__(self, model: "ModelEntity"):
        self._model = model

    @property
    def name(self) -> str:
        return self._model.name

    def get(self, field_name: str) -> Any:
        return self._model.get(field_name)

    def has_field(self, field_name: str) -> bool:
        return self._model.has_field(field_name)

    def __repr__(self) -> str:
        return f"ModelView({self._model.name})"


class ModelEntity:
    """Aggregates Fields under a model name and drives the CRUD lifecycle.

    Attributes:
        name: Model name
        table: Storage table name
        fields: Field name -> Field, in canonical declaration order
        validation_status: PENDING, PASSED or FAILED
        record_exists_in_db: True once created or retrieved
    """

    def __init__(
        self,
        definition: ModelDefinition,
        field_factory: FieldFactory,
        store: PersistenceStore | None = None,
        current_user_provider: CurrentUserProvider | None = None,
    ):
        self.definition = definition
        self.name = definition.name
        self.table = definition.table
        self.field_factory = field_factory
        self.store = store
        self.current_user_provider = current_user_provider

        self.view = ModelView(self)
        self.validation_status = ValidationStatus.PENDING
        self.record_exists_in_db = False
        self.fields: dict[str, Field] = {}
        self._errors: dict[str, None] = {}
        self._fields_ready = False
        self._hard_deleted = False

        self._initialize_fields()

    def _initialize_fields(self) -> None:
        # MetadataError from the factory propagates: no half-built model
        fields: dict[str, Field] = {}
        for name, field_definition in self.definition.fields.items():
            fields[name] = self.field_factory.build_field(field_definition, self)
        self.fields = fields

        for field in self.fields.values():
            default = field.definition.default_value
            if default is not None:
                field.set_value_from_db(copy.deepcopy(default))

        self._fields_ready = True
        logger.debug("Initialized %s with %d fields", self.name, len(self.fields))

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    @property
    def validation_errors(self) -> list[str]:
        return list(self._errors)

    def has_field(self, field_name: str) -> bool:
        return field_name in self.fields

    def get_field(self, field_name: str) -> Field:
        if field_name not in self.fields:
            raise StateError(
                f"Model {self.name} has no field '{field_name}'",
                {"model": self.name, "field": field_name},
            )
        return self.fields[field_name]

    def get(self, field_name: str) -> Any:
        return self.get_field(field_name).get()

    def set(self, field_name: str, value: Any) -> None:
        """Set a value through its field's rule chain.

        Raises:
            StateError: Unknown field, or an attempt to change an assigned id
        """
        field = self.get_field(field_name)
        if field_name == "id":
            self._guard_id(value)
        field.set(value)

    def record_validation_error(self, message: str) -> None:
        """Called by fields when a rule fails. Duplicates are kept once."""
        self._errors[message] = None
        self.validation_status = ValidationStatus.FAILED

    def populate_from_request(self, data: dict[str, Any]) -> None:
        """Set every known key through validation; unknown keys are ignored."""
        for key, value in data.items():
            if key in self.fields:
                self.set(key, value)

    def populate_from_db(self, row: dict[str, Any]) -> None:
        """Load trusted stored values without validation.

        Raises:
            StateError: The row carries an id other than the one assigned
        """
        if "id" in row:
            self._guard_id(row["id"])
        for key, value in row.items():
            field = self.fields.get(key)
            if field is not None:
                field.set_value_from_db(value)

    def validate(self) -> bool:
        """Validate every field and set the aggregate status."""
        self._require_fields()
        self._errors.clear()
        for field in self.fields.values():
            field.validate()

        if self._errors:
            self.validation_status = ValidationStatus.FAILED
            logger.info(
                "Validation failed for %s: %s", self.name, "; ".join(self._errors)
            )
        else:
            self.validation_status = ValidationStatus.PASSED
        return self.validation_status == ValidationStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        """Field values by name. Password fields are never included."""
        return {
            name: field.get()
            for name, field in self.fields.items()
            if not isinstance(field, PasswordField)
        }

    def is_deleted(self) -> bool:
        return self.has_field("deleted_at") and not is_empty(self.get("deleted_at"))

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self) -> bool:
        """Validate, assign id and audit stamps, then insert via the store."""
        self._require_writable()
        if not self._passes_validation("create"):
            return False

        if self.has_field("id") and is_empty(self.get("id")):
            self.fields["id"].set_value_from_db(str(uuid.uuid4()))

        now = self._now()
        user_id = self._current_user_id()
        self._stamp("created_at", now)
        self._stamp("updated_at", now)
        self._stamp("created_by", user_id)
        self._stamp("updated_by", user_id)

        created = bool(self._call_store("create"))
        if created:
            self.record_exists_in_db = True
            logger.info("Created %s %s", self.name, self.get("id"))
        return created

    def update(self) -> bool:
        """Validate, stamp ``updated_*`` and write via the store."""
        self._require_writable()
        self._require_id("update")
        if not self._passes_validation("update"):
            return False

        self._stamp("updated_at", self._now())
        self._stamp("updated_by", self._current_user_id())
        return bool(self._call_store("update"))

    def delete(self) -> bool:
        """Soft delete. Use hard_delete() to remove the row."""
        return self.soft_delete()

    def soft_delete(self) -> bool:
        self._require_writable()
        self._require_id("delete")

        self._stamp("deleted_at", self._now())
        self._stamp("deleted_by", self._current_user_id())
        deleted = bool(self._call_store("soft_delete"))
        if deleted:
            logger.info("Soft deleted %s %s", self.name, self.get("id"))
        return deleted

    def hard_delete(self) -> bool:
        """Irreversibly delete the row. The instance accepts no further CRUD."""
        self._require_writable()
        self._require_id("hard delete")

        deleted = bool(self._call_store("hard_delete"))
        if deleted:
            self._hard_deleted = True
            self.record_exists_in_db = False
            logger.info("Hard deleted %s %s", self.name, self.get("id"))
        return deleted

    def restore(self) -> bool:
        """Clear ``deleted_*`` and persist through update()."""
        self._require_writable()
        self._require_id("restore")

        self._stamp("deleted_at", None)
        self._stamp("deleted_by", None)
        return self.update()

    def retrieve(self, record_id: Any) -> bool:
        """Load the stored record with ``record_id`` into this instance.

        Returns:
            True on a hit; False on a miss (fields keep their defaults)
        """
        self._require_writable()
        current = self.get("id")
        if not is_empty(current) and current != record_id:
            raise StateError(
                f"Cannot retrieve {self.name} {record_id} into an instance holding id {current}",
                {"model": self.name, "id": current},
            )
        self.get_field("id").set_value_from_db(record_id)

        row = self._call_store("retrieve")
        if row is None:
            self.record_exists_in_db = False
            return False

        self.populate_from_db(row)
        self.record_exists_in_db = True
        return True

    # ------------------------------------------------------------------
    # Finders
    # ------------------------------------------------------------------

    def find(
        self,
        criteria: dict[str, Any] | None = None,
        order_by: list[dict[str, str]] | None = None,
        limit: int | None = None,
        offset: int = 0,
        include_deleted: bool = False,
    ) -> list["ModelEntity"]:
        """Query the store and return fully populated instances."""
        self._require_fields()
        criteria = dict(criteria or {})
        if not include_deleted and self.has_field("deleted_at"):
            criteria.setdefault("deleted_at", None)

        rows = self._call_store("find", criteria, order_by, limit, offset)
        return [self._spawn(row) for row in rows]

    def find_by_id(self, record_id: Any, include_deleted: bool = False) -> "ModelEntity | None":
        found = self.find({"id": record_id}, limit=1, include_deleted=include_deleted)
        return found[0] if found else None

    def find_first(
        self,
        criteria: dict[str, Any] | None = None,
        order_by: list[dict[str, str]] | None = None,
        include_deleted: bool = False,
    ) -> "ModelEntity | None":
        found = self.find(criteria, order_by, limit=1, include_deleted=include_deleted)
        return found[0] if found else None

    def find_all(
        self,
        order_by: list[dict[str, str]] | None = None,
        include_deleted: bool = False,
    ) -> list["ModelEntity"]:
        return self.find(None, order_by, include_deleted=include_deleted)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _spawn(self, row: dict[str, Any]) -> "ModelEntity":
        entity = type(self)(
            self.definition,
            self.field_factory,
            self.store,
            self.current_user_provider,
        )
        entity.populate_from_db(row)
        entity.record_exists_in_db = True
        return entity

    def _passes_validation(self, operation: str) -> bool:
        if self.validation_status != ValidationStatus.PASSED:
            self.validate()
        if self.validation_status != ValidationStatus.PASSED:
            logger.info(
                "Refusing %s of %s: %d validation error(s)",
                operation,
                self.name,
                len(self._errors),
            )
            return False
        return True

    def _require_fields(self) -> None:
        if not self._fields_ready or not self.fields:
            raise StateError(
                f"Model {self.name} fields are not initialized",
                {"model": self.name},
            )

    def _require_writable(self) -> None:
        self._require_fields()
        if self._hard_deleted:
            raise StateError(
                f"{self.name} {self.get('id')} was hard deleted",
                {"model": self.name},
            )

    def _require_id(self, operation: str) -> None:
        if not self.has_field("id") or is_empty(self.get("id")):
            raise StateError(f"Cannot {operation} without id", {"model": self.name})

    def _guard_id(self, new_id: Any) -> None:
        current = self.get("id") if self.has_field("id") else None
        if not is_empty(current) and new_id != current:
            raise StateError(
                f"Cannot change id of {self.name} once assigned",
                {"model": self.name, "id": current},
            )

    def _stamp(self, field_name: str, value: Any) -> None:
        # Audit values are trusted and bypass validation
        if field_name in self.fields:
            self.fields[field_name].set_value_from_db(value)

    def _now(self) -> str:
        return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)

    def _current_user_id(self) -> str:
        if self.current_user_provider is None:
            return SYSTEM_USER
        try:
            user_id = self.current_user_provider.get_current_user_id()
        except Exception:
            logger.warning("Current user lookup failed; stamping as %s", SYSTEM_USER, exc_info=True)
            return SYSTEM_USER
        return user_id if not is_empty(user_id) else SYSTEM_USER

    def _call_store(self, operation: str, *args: Any) -> Any:
        if self.store is None:
            raise StateError(
                f"No persistence store configured for {self.name}",
                {"model": self.name, "operation": operation},
            )
        try:
            return getattr(self.store, operation)(self, *args)
        except PersistenceError:
            logger.error("Store %s failed for %s", operation, self.name)
            raise
        except Exception as exc:
            logger.error("Store %s failed for %s: %s", operation, self.name, exc)
            raise PersistenceError(
                f"Store {operation} failed for {self.name}: {exc}",
                {"model": self.name, "operation": operation},
            ) from exc

    def __repr__(self) -> str:
        id_value = self.get("id") if self.has_field("id") else None
        return f"{type(self).__name__}(name={self.name!r}, id={id_value!r}, status={self.validation_status.value})"
