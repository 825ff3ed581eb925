"""Validation rules, the rule registry and the ad hoc ValidationEngine."""

from modelforge.validation.base import (
    ModelReader,
    RuleContext,
    ValidationRule,
    is_empty,
)
from modelforge.validation.engine import ValidationEngine, ValidationResult
from modelforge.validation.registry import RuleRegistry, register_builtin_rules
from modelforge.validation.rules import (
    AlphanumericRule,
    DateRule,
    DateTimeRule,
    EmailRule,
    FloatRule,
    ForeignKeyExistsRule,
    IntegerRule,
    ISBN10Rule,
    ISBN13Rule,
    MaxLengthRule,
    MinLengthRule,
    MultiOptionsRule,
    OptionsRule,
    PasswordStrengthRule,
    RangeRule,
    RequiredRule,
    UniqueRule,
    URLRule,
    VideoURLRule,
)

__all__ = [
    "AlphanumericRule",
    "DateRule",
    "DateTimeRule",
    "EmailRule",
    "FloatRule",
    "ForeignKeyExistsRule",
    "ISBN10Rule",
    "ISBN13Rule",
    "IntegerRule",
    "MaxLengthRule",
    "MinLengthRule",
    "ModelReader",
    "MultiOptionsRule",
    "OptionsRule",
    "PasswordStrengthRule",
    "RangeRule",
    "RequiredRule",
    "RuleContext",
    "RuleRegistry",
    "URLRule",
    "UniqueRule",
    "ValidationEngine",
    "ValidationResult",
    "ValidationRule",
    "VideoURLRule",
    "is_empty",
    "register_builtin_rules",
]
