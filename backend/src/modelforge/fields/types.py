"""Concrete field types."""

import json
import logging
from typing import Any

from modelforge.exceptions import MetadataError
from modelforge.fields.base import Field
from modelforge.fields.password import PasswordHasher
from modelforge.metadata.definitions import FieldDefinition

logger = logging.getLogger(__name__)

_FALSE_STRINGS = {"", "0", "false", "no", "off"}


class IDField(Field):
    """Identifier (UUID text). Also used for audit actor columns."""

    type_name = "ID"


class TextField(Field):
    type_name = "Text"


class BigTextField(Field):
    type_name = "BigText"


class EmailField(Field):
    type_name = "Email"
    implicit_rules = ("Email",)


class ImageField(Field):
    """Image location (path or URL)."""

    type_name = "Image"


class VideoField(Field):
    type_name = "Video"
    implicit_rules = ("VideoURL",)


class DateField(Field):
    type_name = "Date"
    implicit_rules = ("Date",)


class DateTimeField(Field):
    type_name = "DateTime"
    implicit_rules = ("DateTime",)


class IntegerField(Field):
    type_name = "Integer"
    storage_type = "INTEGER"
    implicit_rules = ("Integer",)

    def to_db_value(self) -> Any:
        if self.value is None or self.value == "":
            return None
        try:
            return int(self.value)
        except (TypeError, ValueError):
            return self.value

    def from_db_value(self, raw: Any) -> Any:
        if raw is None or isinstance(raw, int):
            return raw
        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.warning("Field %s: stored value %r is not an integer", self.name, raw)
            return raw


class FloatField(Field):
    type_name = "Float"
    storage_type = "REAL"
    implicit_rules = ("Float",)

    def to_db_value(self) -> Any:
        if self.value is None or self.value == "":
            return None
        try:
            return float(self.value)
        except (TypeError, ValueError):
            return self.value

    def from_db_value(self, raw: Any) -> Any:
        if raw is None or isinstance(raw, float):
            return raw
        try:
            return float(raw)
        except (TypeError, ValueError):
            logger.warning("Field %s: stored value %r is not a number", self.name, raw)
            return raw


class BooleanField(Field):
    """Stored as 0/1."""

    type_name = "Boolean"
    storage_type = "INTEGER"

    def to_db_value(self) -> Any:
        if self.value is None:
            return None
        if isinstance(self.value, str):
            return 0 if self.value.strip().lower() in _FALSE_STRINGS else 1
        return 1 if self.value else 0

    def from_db_value(self, raw: Any) -> Any:
        if raw is None:
            return None
        return bool(raw)


class EnumField(Field):
    """Single choice from ``options``."""

    type_name = "Enum"
    implicit_rules = ("Options",)


class RadioButtonSetField(EnumField):
    type_name = "RadioButtonSet"


class MultiEnumField(Field):
    """Several choices from ``options``; stored as JSON text."""

    type_name = "MultiEnum"
    implicit_rules = ("MultiOptions",)

    def to_db_value(self) -> Any:
        if self.value is None:
            return None
        if isinstance(self.value, (list, tuple)):
            return json.dumps(list(self.value))
        return self.value

    def from_db_value(self, raw: Any) -> Any:
        if not isinstance(raw, str):
            return raw
        try:
            decoded = json.loads(raw)
        except ValueError:
            logger.warning("Field %s: stored value %r is not JSON", self.name, raw)
            return raw
        return decoded if isinstance(decoded, list) else raw


class RelatedRecordField(Field):
    """Reference to a record of ``relatedModel`` by ``relatedFieldName``."""

    type_name = "RelatedRecord"
    implicit_rules = ("ForeignKeyExists",)

    @classmethod
    def check_definition(cls, definition: FieldDefinition, model_name: str | None = None) -> None:
        for key, value in (
            ("relatedModel", definition.related_model),
            ("relatedFieldName", definition.related_field_name),
        ):
            if not value:
                raise MetadataError(
                    f"RelatedRecord field '{definition.name}' missing required metadata: {key}",
                    model_name=model_name,
                    key=f"fields.{definition.name}.{key}",
                )

    @property
    def related_model(self) -> str:
        return self.definition.related_model or ""

    @property
    def related_field_name(self) -> str:
        return self.definition.related_field_name or "id"


class PasswordField(Field):
    """Plain text in memory until written; the store receives a hash.

    Only hashes loaded through ``set_value_from_db`` are trusted: they skip
    the strength rules and are written back unchanged. A hash arriving
    through ``set`` is refused, since its strength cannot be checked.
    """

    type_name = "Password"
    implicit_rules = ("PasswordStrength",)
    precomputed_hash_message = "Password must be given in plain text, not as a hash."

    def __init__(self, definition: FieldDefinition, model: Any = None, hasher: PasswordHasher | None = None):
        super().__init__(definition, model)
        self.hasher = hasher or PasswordHasher()
        self._trusted = False

    def set(self, value: Any) -> None:
        self._trusted = False
        super().set(value)

    def set_value_from_db(self, value: Any) -> None:
        super().set_value_from_db(value)
        self._trusted = True

    @property
    def holds_stored_hash(self) -> bool:
        return self._trusted and self.hasher.is_hash(self.value)

    def to_db_value(self) -> Any:
        if self.value is None or self.value == "":
            return None
        if self.holds_stored_hash:
            return self.value
        return self.hasher.hash(str(self.value))

    def verify(self, plain: str) -> bool:
        """Check ``plain`` against the stored hash. False when nothing is stored yet.

        A match against an outdated hash replaces it with a fresh one; the
        next update() persists it.
        """
        if not self.holds_stored_hash:
            return False
        if not self.hasher.verify(plain, self.value):
            return False
        if self.hasher.needs_rehash(self.value):
            logger.info("Rehashing outdated password hash for %s", self.name)
            self.set_value_from_db(self.hasher.hash(plain))
        return True

    def _run_rules(self, value: Any) -> bool:
        if not self.hasher.is_hash(value):
            return super()._run_rules(value)
        self._errors.clear()
        if self._trusted:
            return True
        self._record_error(self.precomputed_hash_message)
        logger.debug("Field %s refused a precomputed hash", self.name)
        return False

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


BUILTIN_FIELDS: tuple[type[Field], ...] = (
    IDField,
    TextField,
    BigTextField,
    EmailField,
    PasswordField,
    IntegerField,
    FloatField,
    BooleanField,
    DateField,
    DateTimeField,
    EnumField,
    MultiEnumField,
    RadioButtonSetField,
    RelatedRecordField,
    ImageField,
    VideoField,
)
