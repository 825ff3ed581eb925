"""Field types, the field registry and the FieldFactory."""

from modelforge.fields.base import Field
from modelforge.fields.factory import FieldFactory
from modelforge.fields.password import PasswordHasher
from modelforge.fields.registry import FieldRegistry, register_builtin_fields
from modelforge.fields.types import (
    BigTextField,
    BooleanField,
    DateField,
    DateTimeField,
    EmailField,
    EnumField,
    FloatField,
    IDField,
    ImageField,
    IntegerField,
    MultiEnumField,
    PasswordField,
    RadioButtonSetField,
    RelatedRecordField,
    TextField,
    VideoField,
)

__all__ = [
    "BigTextField",
    "BooleanField",
    "DateField",
    "DateTimeField",
    "EmailField",
    "EnumField",
    "Field",
    "FieldFactory",
    "FieldRegistry",
    "FloatField",
    "IDField",
    "ImageField",
    "IntegerField",
    "MultiEnumField",
    "PasswordField",
    "PasswordHasher",
    "RadioButtonSetField",
    "RelatedRecordField",
    "TextField",
    "VideoField",
    "register_builtin_fields",
]
