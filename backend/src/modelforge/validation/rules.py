"""Built-in validation rules.

Each rule mirrors its server predicate in a client-side JavaScript function
built from the same patterns, so both runtimes reach the same decision.
Unique and ForeignKeyExists need a store round trip; their client
expression always passes and the server check is authoritative.

Available rules:
- Required: value must be non-empty (stops the chain on failure)
- Alphanumeric, Email, URL, VideoURL: format checks
- DateTime, Date: strict format plus calendar round trip
- Integer, Float: numeric format
- MinLength, MaxLength, Range: bounds taken from field metadata
- Options, MultiOptions: value(s) must be option keys
- ISBN10_Format, ISBN13_Format: structure plus checksum
- PasswordStrength: context-sensitive on ``auth_provider``
- Unique, ForeignKeyExists: store round trips, fail closed
"""

import json
import logging
import math
import re
from datetime import datetime
from typing import Any

from modelforge.validation.base import (
    ALWAYS_PASS_JS,
    JS_IS_EMPTY,
    ModelReader,
    ValidationRule,
    is_empty,
    js_regex,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Patterns shared by server and client
# =============================================================================

EMAIL_PATTERN = (
    r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+(?:\.[A-Za-z0-9!#$%&'*+/=?^_`{|}~-]+)*"
    r"@(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,}$"
)
URL_PATTERN = r"^(https?|ftp)://[^\s/$.?#].[^\s]*$"
YOUTUBE_PATTERN = r"^https?://(www\.)?(youtube\.com/watch\?v=|youtu\.be/)"
VIMEO_PATTERN = r"^https?://(www\.)?vimeo\.com/[0-9]+"
ALPHANUMERIC_PATTERN = r"^[A-Za-z0-9]*$"
DATETIME_PATTERN = r"^([0-9]{4})-([0-9]{2})-([0-9]{2}) ([0-9]{2}):([0-9]{2}):([0-9]{2})$"
DATE_PATTERN = r"^([0-9]{4})-([0-9]{2})-([0-9]{2})$"
INTEGER_PATTERN = r"^-?[0-9]+$"
FLOAT_PATTERN = r"^-?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)$"
ISBN10_PATTERN = r"^[0-9]{9}[0-9X]$"
ISBN13_PATTERN = r"^[0-9]{13}$"
ISBN_SEPARATORS = r"[\s-]"

_EMAIL_RE = re.compile(EMAIL_PATTERN)
_URL_RE = re.compile(URL_PATTERN, re.IGNORECASE)
_YOUTUBE_RE = re.compile(YOUTUBE_PATTERN)
_VIMEO_RE = re.compile(VIMEO_PATTERN)
_ALPHANUMERIC_RE = re.compile(ALPHANUMERIC_PATTERN)
_DATETIME_RE = re.compile(DATETIME_PATTERN)
_DATE_RE = re.compile(DATE_PATTERN)
_INTEGER_RE = re.compile(INTEGER_PATTERN)
_FLOAT_RE = re.compile(FLOAT_PATTERN)
_ISBN10_RE = re.compile(ISBN10_PATTERN)
_ISBN13_RE = re.compile(ISBN13_PATTERN)
_ISBN_SEPARATORS_RE = re.compile(ISBN_SEPARATORS)


def _js_pattern_rule(pattern: str, flags: str = "") -> str:
    """Client expression for rules that pass empty values and otherwise match a pattern."""
    return (
        "function(value) { "
        f"{JS_IS_EMPTY} "
        "if (isEmpty(value)) return true; "
        f"return {js_regex(pattern, flags)}.test(String(value)); }}"
    )


def _js_calendar_rule(pattern: str, with_time: bool) -> str:
    """Client expression for DateTime/Date: null passes, anything else must round-trip."""
    time_check = (
        " && dt.getUTCHours() === +m[4] && dt.getUTCMinutes() === +m[5]"
        " && dt.getUTCSeconds() === +m[6]"
        if with_time
        else ""
    )
    set_time = "dt.setUTCHours(+m[4], +m[5], +m[6], 0); " if with_time else ""
    return (
        "function(value) { "
        "if (value === null || value === undefined) return true; "
        'if (typeof value !== "string") return false; '
        f"var m = {js_regex(pattern)}.exec(value); "
        "if (!m) return false; "
        "var y = +m[1], mo = +m[2] - 1, d = +m[3]; "
        "if (y < 1) return false; "
        "var dt = new Date(Date.UTC(2000, 0, 1)); "
        "dt.setUTCFullYear(y, mo, d); "
        f"{set_time}"
        "return dt.getUTCFullYear() === y && dt.getUTCMonth() === mo"
        f" && dt.getUTCDate() === d{time_check}; }}"
    )


def _as_number(value: Any) -> float | None:
    """Numeric value of ``value``, or None when it is not a plain number.

    Strings must match FLOAT_PATTERN, so Python-only spellings such as
    ``"1_0"`` or ``"inf"`` are refused just as the client refuses ``"0x10"``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    if isinstance(value, str) and _FLOAT_RE.fullmatch(value.strip()):
        return float(value.strip())
    return None


def _calendar_round_trip(value: str, pattern: re.Pattern, fmt: str) -> bool:
    match = pattern.fullmatch(value)
    if match is None:
        return False
    try:
        parsed = datetime.strptime(value, fmt)
    except ValueError:
        return False
    canonical = f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}"
    if len(match.groups()) > 3:
        canonical += f" {parsed.hour:02d}:{parsed.minute:02d}:{parsed.second:02d}"
    return canonical == value


# =============================================================================
# Presence and format rules
# =============================================================================


class RequiredRule(ValidationRule):
    """Value must be present and non-blank."""

    name = "Required"
    error_message = "{fieldName} is required"
    priority = 0
    stop_on_failure = True

    def check(self, value, model):
        return not is_empty(value)

    def get_client_validation_expression(self) -> str:
        return f"function(value) {{ {JS_IS_EMPTY} return !isEmpty(value); }}"


class AlphanumericRule(ValidationRule):
    """Letters and digits only; whitespace is ignored."""

    name = "Alphanumeric"
    error_message = "Value must contain only letters and numbers."

    def check(self, value, model):
        if is_empty(value):
            return True
        return _ALPHANUMERIC_RE.fullmatch(re.sub(r"\s", "", str(value))) is not None

    def get_client_validation_expression(self) -> str:
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            f'return {js_regex(ALPHANUMERIC_PATTERN)}.test(String(value).replace(/\\s/g, "")); }}'
        )


class EmailRule(ValidationRule):
    """local@domain form; empty values are left to Required."""

    name = "Email"
    error_message = "Invalid email address."

    def check(self, value, model):
        if is_empty(value):
            return True
        if not isinstance(value, str):
            return False
        return _EMAIL_RE.fullmatch(value) is not None

    def get_client_validation_expression(self) -> str:
        return _js_pattern_rule(EMAIL_PATTERN)


class URLRule(ValidationRule):
    name = "URL"
    error_message = "Invalid URL format."

    def check(self, value, model):
        if is_empty(value):
            return True
        return isinstance(value, str) and _URL_RE.fullmatch(value) is not None

    def get_client_validation_expression(self) -> str:
        return _js_pattern_rule(URL_PATTERN, "i")


class VideoURLRule(ValidationRule):
    """YouTube or Vimeo links."""

    name = "VideoURL"
    error_message = "Invalid video URL format. Please enter a valid YouTube or Vimeo URL."

    def check(self, value, model):
        if is_empty(value):
            return True
        if not isinstance(value, str):
            return False
        return bool(_YOUTUBE_RE.match(value) or _VIMEO_RE.match(value))

    def get_client_validation_expression(self) -> str:
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            f"return {js_regex(YOUTUBE_PATTERN)}.test(String(value))"
            f" || {js_regex(VIMEO_PATTERN)}.test(String(value)); }}"
        )


class DateTimeRule(ValidationRule):
    """``YYYY-MM-DD HH:MM:SS`` that survives a parse/format round trip.

    None passes. An empty string does not: it is not a date-time.
    """

    name = "DateTime"
    error_message = "Invalid date-time format."

    def check(self, value, model):
        if value is None:
            return True
        if not isinstance(value, str):
            return False
        return _calendar_round_trip(value, _DATETIME_RE, "%Y-%m-%d %H:%M:%S")

    def get_client_validation_expression(self) -> str:
        return _js_calendar_rule(DATETIME_PATTERN, with_time=True)


class DateRule(ValidationRule):
    name = "Date"
    error_message = "{fieldName} must be a valid date (YYYY-MM-DD)"

    def check(self, value, model):
        if value is None:
            return True
        if not isinstance(value, str):
            return False
        return _calendar_round_trip(value, _DATE_RE, "%Y-%m-%d")

    def get_client_validation_expression(self) -> str:
        return _js_calendar_rule(DATE_PATTERN, with_time=False)


class IntegerRule(ValidationRule):
    name = "Integer"
    error_message = "{fieldName} must be a whole number"

    def check(self, value, model):
        if is_empty(value):
            return True
        if isinstance(value, bool):
            return False
        if isinstance(value, int):
            return True
        if isinstance(value, float):
            return value.is_integer()
        if isinstance(value, str):
            return _INTEGER_RE.fullmatch(value.strip()) is not None
        return False

    def get_client_validation_expression(self) -> str:
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            'if (typeof value === "number") return Number.isInteger(value); '
            'if (typeof value === "string")'
            f" return {js_regex(INTEGER_PATTERN)}.test(value.trim()); "
            "return false; }"
        )


class FloatRule(ValidationRule):
    name = "Float"
    error_message = "{fieldName} must be a number"

    def check(self, value, model):
        if is_empty(value):
            return True
        if isinstance(value, bool):
            return False
        if isinstance(value, (int, float)):
            return math.isfinite(value)
        if isinstance(value, str):
            return _FLOAT_RE.fullmatch(value.strip()) is not None
        return False

    def get_client_validation_expression(self) -> str:
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            'if (typeof value === "number") return Number.isFinite(value); '
            'if (typeof value === "string")'
            f" return {js_regex(FLOAT_PATTERN)}.test(value.trim()); "
            "return false; }"
        )


# =============================================================================
# Parameterized rules (configured from field metadata)
# =============================================================================


class MinLengthRule(ValidationRule):
    name = "MinLength"
    error_message = "{fieldName} must be at least {minLength} characters long"

    def __init__(self, min_length: int | None = None, error_message: str | None = None, **kwargs):
        super().__init__(error_message, **kwargs)
        self.min_length = min_length

    @classmethod
    def from_definition(cls, definition, context):
        return cls(
            definition.min_length,
            definition.error_messages.get(cls.name),
            context=context,
        )

    def message_tokens(self) -> dict[str, Any]:
        return {"minLength": self.min_length}

    def check(self, value, model):
        if self.min_length is None or is_empty(value):
            return True
        return len(str(value)) >= self.min_length

    def get_client_validation_expression(self) -> str:
        if self.min_length is None:
            return ALWAYS_PASS_JS
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            f"return Array.from(String(value)).length >= {int(self.min_length)}; }}"
        )


class MaxLengthRule(ValidationRule):
    name = "MaxLength"
    error_message = "{fieldName} must be no more than {maxLength} characters long"

    def __init__(self, max_length: int | None = None, error_message: str | None = None, **kwargs):
        super().__init__(error_message, **kwargs)
        self.max_length = max_length

    @classmethod
    def from_definition(cls, definition, context):
        return cls(
            definition.max_length,
            definition.error_messages.get(cls.name),
            context=context,
        )

    def message_tokens(self) -> dict[str, Any]:
        return {"maxLength": self.max_length}

    def check(self, value, model):
        if self.max_length is None or is_empty(value):
            return True
        return len(str(value)) <= self.max_length

    def get_client_validation_expression(self) -> str:
        if self.max_length is None:
            return ALWAYS_PASS_JS
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            f"return Array.from(String(value)).length <= {int(self.max_length)}; }}"
        )


class RangeRule(ValidationRule):
    """Numeric bounds. Non-numeric values fail here as well as in the type rule."""

    name = "Range"

    def __init__(
        self,
        min_value: float | None = None,
        max_value: float | None = None,
        error_message: str | None = None,
        **kwargs,
    ):
        if error_message is None:
            if min_value is not None and max_value is not None:
                error_message = "{fieldName} must be between {minValue} and {maxValue}"
            elif min_value is not None:
                error_message = "{fieldName} must be at least {minValue}"
            else:
                error_message = "{fieldName} must be at most {maxValue}"
        super().__init__(error_message, **kwargs)
        self.min_value = min_value
        self.max_value = max_value

    @classmethod
    def from_definition(cls, definition, context):
        return cls(
            definition.min_value,
            definition.max_value,
            definition.error_messages.get(cls.name),
            context=context,
        )

    def message_tokens(self) -> dict[str, Any]:
        return {"minValue": self.min_value, "maxValue": self.max_value}

    def check(self, value, model):
        if is_empty(value):
            return True
        number = _as_number(value)
        if number is None:
            return False
        if self.min_value is not None and number < self.min_value:
            return False
        if self.max_value is not None and number > self.max_value:
            return False
        return True

    def get_client_validation_expression(self) -> str:
        checks = []
        if self.min_value is not None:
            checks.append(f"if (n < {json.dumps(self.min_value)}) return false; ")
        if self.max_value is not None:
            checks.append(f"if (n > {json.dumps(self.max_value)}) return false; ")
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            "var n; "
            'if (typeof value === "number") n = value; '
            'else if (typeof value === "string"'
            f" && {js_regex(FLOAT_PATTERN)}.test(value.trim())) n = Number(value.trim()); "
            "else return false; "
            "if (Number.isNaN(n)) return false; "
            f"{''.join(checks)}"
            "return true; }"
        )


class OptionsRule(ValidationRule):
    """Value must be one of the field's option keys."""

    name = "Options"
    error_message = "Value is not in the allowed options."

    def __init__(self, options: dict[str, str] | None = None, error_message: str | None = None, **kwargs):
        super().__init__(error_message, **kwargs)
        self.options = dict(options or {})

    @classmethod
    def from_definition(cls, definition, context):
        return cls(
            definition.options,
            definition.error_messages.get(cls.name),
            context=context,
        )

    def check(self, value, model):
        if not self.options or value is None or value == "":
            return True
        if isinstance(value, (list, tuple, dict, set)):
            return False
        return str(value) in self.options

    def get_client_validation_expression(self) -> str:
        return (
            "function(value) { "
            f"var options = {json.dumps(list(self.options))}; "
            'if (options.length === 0 || value === null || value === undefined || value === "") return true; '
            'if (typeof value === "object") return false; '
            "return options.indexOf(String(value)) !== -1; }"
        )


class MultiOptionsRule(OptionsRule):
    """Every selected value must be an option key."""

    name = "MultiOptions"
    error_message = "One or more selected values are not in the allowed options."

    def check(self, value, model):
        if not self.options or is_empty(value):
            return True
        if not isinstance(value, (list, tuple)):
            return False
        return all(
            not isinstance(item, (list, tuple, dict)) and str(item) in self.options
            for item in value
        )

    def get_client_validation_expression(self) -> str:
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            f"var options = {json.dumps(list(self.options))}; "
            "if (options.length === 0 || isEmpty(value)) return true; "
            "if (!Array.isArray(value)) return false; "
            "return value.every(function(item) {"
            ' return typeof item !== "object" && options.indexOf(String(item)) !== -1; }); }'
        )


# =============================================================================
# Checksummed identifiers
# =============================================================================


class ISBN10Rule(ValidationRule):
    """Nine digits plus a digit or X, with the modulo-11 checksum."""

    name = "ISBN10_Format"
    error_message = "Invalid ISBN-10 format. Must be 10 digits (last character may be X)."
    checksum_message = "Invalid ISBN-10 checksum."

    def check(self, value, model):
        if is_empty(value):
            return True
        isbn = _ISBN_SEPARATORS_RE.sub("", str(value)).upper()
        if _ISBN10_RE.fullmatch(isbn) is None:
            return False

        total = sum(int(digit) * (10 - i) for i, digit in enumerate(isbn[:9]))
        expected = (11 - total % 11) % 11
        actual = 10 if isbn[9] == "X" else int(isbn[9])
        if expected != actual:
            return self.fail(self.checksum_message)
        return True

    def get_client_validation_expression(self) -> str:
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            f'var isbn = String(value).replace(new RegExp({json.dumps(ISBN_SEPARATORS)}, "g"), "").toUpperCase(); '
            f"if (!{js_regex(ISBN10_PATTERN)}.test(isbn)) return false; "
            "var total = 0; "
            "for (var i = 0; i < 9; i++) { total += parseInt(isbn[i], 10) * (10 - i); } "
            "var expected = (11 - total % 11) % 11; "
            'var actual = isbn[9] === "X" ? 10 : parseInt(isbn[9], 10); '
            "return expected === actual; }"
        )


class ISBN13Rule(ValidationRule):
    """Thirteen digits with the alternating 1/3 weighted modulo-10 checksum."""

    name = "ISBN13_Format"
    error_message = "Invalid ISBN-13 format. Must be 13 digits."
    checksum_message = "Invalid ISBN-13 checksum."

    def check(self, value, model):
        if is_empty(value):
            return True
        isbn = _ISBN_SEPARATORS_RE.sub("", str(value))
        if _ISBN13_RE.fullmatch(isbn) is None:
            return False

        total = sum(int(digit) * (1 if i % 2 == 0 else 3) for i, digit in enumerate(isbn[:12]))
        expected = (10 - total % 10) % 10
        if expected != int(isbn[12]):
            return self.fail(self.checksum_message)
        return True

    def get_client_validation_expression(self) -> str:
        return (
            "function(value) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) return true; "
            f'var isbn = String(value).replace(new RegExp({json.dumps(ISBN_SEPARATORS)}, "g"), ""); '
            f"if (!{js_regex(ISBN13_PATTERN)}.test(isbn)) return false; "
            "var total = 0; "
            "for (var i = 0; i < 12; i++) { total += parseInt(isbn[i], 10) * (i % 2 === 0 ? 1 : 3); } "
            "return (10 - total % 10) % 10 === parseInt(isbn[12], 10); }"
        )


# =============================================================================
# Context-sensitive rules
# =============================================================================


class PasswordStrengthRule(ValidationRule):
    """Minimum length plus upper, lower and digit.

    An empty password is allowed when the model authenticates through an
    external provider (``auth_provider`` set to anything but "local").
    """

    name = "PasswordStrength"
    error_message = (
        "Password must be at least 8 characters long and contain at least one "
        "uppercase letter, one lowercase letter, and one number."
    )
    context_sensitive = True
    min_length = 8

    def check(self, value, model):
        if is_empty(value):
            provider = _read_sibling(model, "auth_provider")
            if provider and provider != "local":
                return True
            return self.fail(f"Password must be at least {self.min_length} characters long.")

        password = str(value)
        if len(password) < self.min_length:
            return self.fail(f"Password must be at least {self.min_length} characters long.")
        if not re.search(r"[A-Z]", password):
            return self.fail("Password must contain at least one uppercase letter.")
        if not re.search(r"[a-z]", password):
            return self.fail("Password must contain at least one lowercase letter.")
        if not re.search(r"[0-9]", password):
            return self.fail("Password must contain at least one number.")
        return True

    def get_client_validation_expression(self) -> str:
        return (
            "function(value, model) { "
            f"{JS_IS_EMPTY} "
            "if (isEmpty(value)) { "
            'var provider = model ? model["auth_provider"] : null; '
            'return !!provider && provider !== "local"; } '
            "var password = String(value); "
            f"if (Array.from(password).length < {self.min_length}) return false; "
            "return /[A-Z]/.test(password) && /[a-z]/.test(password) && /[0-9]/.test(password); }"
        )


# =============================================================================
# Store round-trip rules
# =============================================================================


class UniqueRule(ValidationRule):
    """No other stored record may hold the same value for this field.

    The current record (by id) is excluded so updates do not collide with
    themselves. Store errors fail closed.
    """

    name = "Unique"
    error_message = "{fieldName} must be unique."
    priority = 50

    def check(self, value, model):
        if is_empty(value):
            return True

        store = self.context.store
        if store is None or self.field is None:
            logger.error(
                "Unique rule for %s has no store or field context; failing closed",
                self.field_name,
            )
            return False

        exclude_id = _read_sibling(model, "id") or None
        try:
            exists = store.record_exists(self.field, value, exclude_id=exclude_id)
        except Exception:
            logger.exception(
                "Unique check failed for %s=%r; failing closed", self.field_name, value
            )
            return False

        if exists:
            logger.info(
                "Unique validation failed: %s=%r already exists (excluding id=%s)",
                self.field_name,
                value,
                exclude_id,
            )
            return False
        return True

    def get_client_validation_expression(self) -> str:
        # Needs a server round trip; the server result is authoritative
        return ALWAYS_PASS_JS


class ForeignKeyExistsRule(ValidationRule):
    """The referenced record must exist in the related model's table."""

    name = "ForeignKeyExists"
    error_message = "The selected {fieldName} does not exist."
    priority = 50
    context_sensitive = True
    skip_if_empty = True

    def __init__(
        self,
        related_model: str | None = None,
        related_field_name: str | None = None,
        error_message: str | None = None,
        **kwargs,
    ):
        super().__init__(error_message, **kwargs)
        self.related_model = related_model
        self.related_field_name = related_field_name or "id"

    @classmethod
    def from_definition(cls, definition, context):
        return cls(
            definition.related_model,
            definition.related_field_name,
            definition.error_messages.get(cls.name),
            context=context,
        )

    def message_tokens(self) -> dict[str, Any]:
        return {"relatedModel": self.related_model}

    def check(self, value, model):
        if is_empty(value):
            return True

        store = self.context.store
        resolver = self.context.model_resolver
        if store is None or resolver is None or not self.related_model:
            logger.error(
                "ForeignKeyExists rule for %s has no store, resolver or related model; failing closed",
                self.field_name,
            )
            return False

        # Imported here to keep validation importable without the persistence package
        from modelforge.persistence.store import FieldRef

        try:
            related = resolver(self.related_model)
            target = FieldRef(name=self.related_field_name, table_name=related.table)
            exists = store.record_exists(target, value)
        except Exception:
            logger.exception(
                "Foreign key check failed for %s=%r -> %s.%s; failing closed",
                self.field_name,
                value,
                self.related_model,
                self.related_field_name,
            )
            return False

        if not exists:
            logger.info(
                "Foreign key %s=%r not found in %s", self.field_name, value, self.related_model
            )
        return bool(exists)

    def get_client_validation_expression(self) -> str:
        # Needs a server round trip; the server result is authoritative
        return ALWAYS_PASS_JS


def _read_sibling(model: ModelReader | None, field_name: str) -> Any:
    if model is None or not model.has_field(field_name):
        return None
    return model.get(field_name)


BUILTIN_RULES: tuple[type[ValidationRule], ...] = (
    RequiredRule,
    AlphanumericRule,
    EmailRule,
    URLRule,
    VideoURLRule,
    DateTimeRule,
    DateRule,
    IntegerRule,
    FloatRule,
    MinLengthRule,
    MaxLengthRule,
    RangeRule,
    OptionsRule,
    MultiOptionsRule,
    ISBN10Rule,
    ISBN13Rule,
    PasswordStrengthRule,
    UniqueRule,
    ForeignKeyExistsRule,
)
