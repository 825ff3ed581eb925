"""Tests for the built-in validation rules and the rule registry.

Each rule is checked on its own (no model), with a small read-only model
stub for the context-sensitive ones, and stub stores for the round trips.
"""

import pytest

from modelforge.metadata.definitions import ModelDefinition
from modelforge.persistence.store import FieldRef
from modelforge.validation import (
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
    RuleContext,
    RuleRegistry,
    UniqueRule,
    URLRule,
    ValidationRule,
    VideoURLRule,
    register_builtin_rules,
)
from modelforge.validation.base import ALWAYS_PASS_JS, js_regex
from modelforge.validation.rules import FLOAT_PATTERN


class FakeModel:
    """Read-only model stand-in exposing name/get/has_field."""

    def __init__(self, name="Users", **values):
        self.name = name
        self._values = values

    def get(self, field_name):
        return self._values.get(field_name)

    def has_field(self, field_name):
        return field_name in self._values


class RecordingStore:
    """Stub store answering record_exists from a fixed set of (table, column, value)."""

    def __init__(self, rows=(), error=None):
        self.rows = set(rows)
        self.error = error
        self.calls = []

    def record_exists(self, field, value, exclude_id=None):
        self.calls.append((field.table_name, field.name, value, exclude_id))
        if self.error is not None:
            raise self.error
        return (field.table_name, field.name, value) in self.rows


def _bound(rule, field_name="username", table_name="users", model=None):
    rule.bind(FieldRef(name=field_name, table_name=table_name), model)
    return rule


class TestRequiredRule:
    def test_rejects_empty_values(self):
        rule = RequiredRule()
        for value in (None, "", "   ", [], {}):
            assert rule.validate(value) is False

    def test_accepts_present_values(self):
        rule = RequiredRule()
        for value in ("x", 0, False, ["a"]):
            assert rule.validate(value) is True

    def test_message_uses_field_name(self):
        rule = _bound(RequiredRule(), "name")
        rule.validate("")
        assert rule.get_formatted_error_message() == "name is required"

    def test_stops_chain_and_runs_first(self):
        assert RequiredRule.stop_on_failure is True
        assert RequiredRule.priority < EmailRule.priority


class TestEmailRule:
    def test_valid_address(self):
        assert EmailRule().validate("a@b.co") is True

    def test_empty_defers_to_required(self):
        assert EmailRule().validate("") is True
        assert EmailRule().validate(None) is True

    def test_invalid_address_uses_configured_message(self):
        rule = EmailRule()
        assert rule.validate("not-an-email") is False
        assert rule.get_formatted_error_message() == "Invalid email address."

    def test_custom_message(self):
        rule = EmailRule("{fieldName} must be an email")
        _bound(rule, "contact")
        rule.validate("nope")
        assert rule.get_formatted_error_message() == "contact must be an email"

    @pytest.mark.parametrize("value", ["a@b", "@b.co", "a b@c.co", "a@b..co", 42])
    def test_rejects_malformed(self, value):
        assert EmailRule().validate(value) is False


class TestDateTimeRule:
    def test_valid_date_time(self):
        assert DateTimeRule().validate("2023-02-28 10:00:00") is True

    def test_impossible_calendar_date(self):
        assert DateTimeRule().validate("2023-02-30 10:00:00") is False

    def test_leap_day(self):
        assert DateTimeRule().validate("2024-02-29 23:59:59") is True
        assert DateTimeRule().validate("2023-02-29 23:59:59") is False

    @pytest.mark.parametrize(
        "value",
        ["2023-02-28", "2023-02-28T10:00:00", "2023-2-28 10:00:00", "2023-02-28 24:00:00", ""],
    )
    def test_rejects_other_shapes(self, value):
        assert DateTimeRule().validate(value) is False

    def test_none_passes(self):
        assert DateTimeRule().validate(None) is True


class TestDateRule:
    def test_valid_and_invalid(self):
        rule = DateRule()
        assert rule.validate("2023-12-31") is True
        assert rule.validate("2023-04-31") is False
        assert rule.validate("2023-12-31 00:00:00") is False

    def test_message(self):
        rule = _bound(DateRule(), "publication_date")
        rule.validate("yesterday")
        assert rule.get_formatted_error_message() == "publication_date must be a valid date (YYYY-MM-DD)"


class TestISBNRules:
    def test_isbn10_valid_checksum(self):
        assert ISBN10Rule().validate("0306406152") is True

    def test_isbn10_checksum_mismatch(self):
        rule = ISBN10Rule()
        assert rule.validate("0306406153") is False
        assert rule.get_formatted_error_message() == "Invalid ISBN-10 checksum."

    def test_isbn10_x_check_digit(self):
        assert ISBN10Rule().validate("080442957X") is True

    def test_isbn10_bad_structure(self):
        rule = ISBN10Rule()
        assert rule.validate("030640615") is False
        assert rule.get_formatted_error_message().startswith("Invalid ISBN-10 format")

    def test_isbn10_message_resets_between_calls(self):
        rule = ISBN10Rule()
        rule.validate("0306406153")
        rule.validate("12345")
        assert rule.get_formatted_error_message().startswith("Invalid ISBN-10 format")

    def test_isbn13_valid_with_separators(self):
        rule = ISBN13Rule()
        assert rule.validate("9780306406157") is True
        assert rule.validate("978-0-306-40615-7") is True

    def test_isbn13_checksum_mismatch(self):
        rule = ISBN13Rule()
        assert rule.validate("9780306406158") is False
        assert rule.get_formatted_error_message() == "Invalid ISBN-13 checksum."

    def test_empty_passes(self):
        assert ISBN10Rule().validate("") is True
        assert ISBN13Rule().validate(None) is True


class TestPasswordStrengthRule:
    def test_external_provider_allows_empty_password(self):
        rule = PasswordStrengthRule()
        assert rule.validate("", FakeModel(auth_provider="google")) is True

    def test_local_provider_requires_password(self):
        rule = PasswordStrengthRule()
        assert rule.validate("", FakeModel(auth_provider="local")) is False
        assert rule.get_formatted_error_message() == "Password must be at least 8 characters long."

    def test_strong_password_passes_for_any_provider(self):
        rule = PasswordStrengthRule()
        for provider in ("local", "google", None):
            assert rule.validate("Abc12345", FakeModel(auth_provider=provider)) is True

    @pytest.mark.parametrize(
        "password,message",
        [
            ("Abc123", "Password must be at least 8 characters long."),
            ("abc12345", "Password must contain at least one uppercase letter."),
            ("ABC12345", "Password must contain at least one lowercase letter."),
            ("Abcdefgh", "Password must contain at least one number."),
        ],
    )
    def test_specific_failure_messages(self, password, message):
        rule = PasswordStrengthRule()
        assert rule.validate(password, FakeModel(auth_provider="local")) is False
        assert rule.get_formatted_error_message() == message

    def test_length_counts_code_points(self):
        rule = PasswordStrengthRule()
        model = FakeModel(auth_provider="local")
        assert rule.validate("Abc1\U0001F600\U0001F600", model) is False
        assert rule.validate("Abc1\U0001F600\U0001F600\U0001F600\U0001F600", model) is True

    def test_inapplicable_without_model(self):
        rule = PasswordStrengthRule()
        assert rule.is_applicable("", None, None) is False
        assert rule.is_applicable("", None, FakeModel()) is True


class TestFormatRules:
    def test_alphanumeric_ignores_whitespace(self):
        rule = AlphanumericRule()
        assert rule.validate("Ada Lovelace 1815") is True
        assert rule.validate("Ada-Lovelace") is False

    def test_url(self):
        rule = URLRule()
        assert rule.validate("https://example.com/path?q=1") is True
        assert rule.validate("example.com") is False

    def test_video_url(self):
        rule = VideoURLRule()
        assert rule.validate("https://www.youtube.com/watch?v=dQw4w9WgXcQ") is True
        assert rule.validate("https://youtu.be/dQw4w9WgXcQ") is True
        assert rule.validate("https://vimeo.com/76979871") is True
        assert rule.validate("https://example.com/video.mp4") is False

    def test_integer(self):
        rule = IntegerRule()
        assert rule.validate("42") is True
        assert rule.validate(-7) is True
        assert rule.validate(3.0) is True
        assert rule.validate("1.5") is False
        assert rule.validate(True) is False

    def test_float(self):
        rule = FloatRule()
        assert rule.validate("1.5") is True
        assert rule.validate(".5") is True
        assert rule.validate(2) is True
        assert rule.validate("abc") is False
        assert rule.validate(float("inf")) is False


class TestParameterizedRules:
    def test_min_and_max_length(self):
        assert MinLengthRule(3).validate("ab") is False
        assert MinLengthRule(3).validate("abc") is True
        assert MaxLengthRule(3).validate("abcd") is False
        assert MaxLengthRule(3).validate("") is True

    def test_length_message_tokens(self):
        rule = _bound(MaxLengthRule(5), "title")
        rule.validate("too long")
        assert rule.get_formatted_error_message() == "title must be no more than 5 characters long"

    def test_range(self):
        rule = RangeRule(1, 10000)
        assert rule.validate("250") is True
        assert rule.validate(0) is False
        assert rule.validate(10001) is False
        assert rule.validate("many") is False

    @pytest.mark.parametrize("value", ["1_0", "inf", "Infinity", "0x10", "1e3", "NaN", True])
    def test_range_refuses_non_decimal_spellings(self, value):
        # Only FLOAT_PATTERN spellings count as numbers, as on the client
        assert RangeRule(0, 10000).validate(value) is False

    def test_range_accepts_decimal_spellings(self):
        rule = RangeRule(0, 100)
        for value in ("10", " 10 ", "-0", ".5", "99.", 42, 0.25):
            assert rule.validate(value) is True, value

    def test_range_messages(self):
        rule = _bound(RangeRule(1, 5), "obscurity_score")
        rule.validate(9)
        assert rule.get_formatted_error_message() == "obscurity_score must be between 1 and 5"

        rule = _bound(RangeRule(min_value=0), "ratings_count")
        rule.validate(-1)
        assert rule.get_formatted_error_message() == "ratings_count must be at least 0"

    def test_options(self):
        rule = OptionsRule({"local": "Local", "google": "Google"})
        assert rule.validate("google") is True
        assert rule.validate("github") is False
        assert rule.validate(None) is True

    def test_multi_options(self):
        rule = MultiOptionsRule({"a": "A", "b": "B"})
        assert rule.validate(["a", "b"]) is True
        assert rule.validate(["a", "c"]) is False
        assert rule.validate("a") is False
        assert rule.validate([]) is True


class TestUniqueRule:
    def test_passes_when_value_is_free(self):
        store = RecordingStore()
        rule = _bound(UniqueRule(context=RuleContext(store=store)))
        assert rule.validate("ada@example.com") is True
        assert store.calls == [("users", "username", "ada@example.com", None)]

    def test_fails_when_value_is_taken(self):
        store = RecordingStore(rows={("users", "username", "ada@example.com")})
        rule = _bound(UniqueRule(context=RuleContext(store=store)))
        assert rule.validate("ada@example.com") is False
        assert rule.get_formatted_error_message() == "username must be unique."

    def test_excludes_the_current_record(self):
        store = RecordingStore()
        rule = _bound(UniqueRule(context=RuleContext(store=store)), model=FakeModel(id="abc"))
        rule.validate("ada@example.com")
        assert store.calls[0][3] == "abc"

    def test_store_error_fails_closed(self):
        store = RecordingStore(error=RuntimeError("connection lost"))
        rule = _bound(UniqueRule(context=RuleContext(store=store)))
        assert rule.validate("ada@example.com") is False

    def test_missing_store_fails_closed(self):
        rule = _bound(UniqueRule())
        assert rule.validate("ada@example.com") is False

    def test_empty_value_skips_round_trip(self):
        store = RecordingStore()
        rule = _bound(UniqueRule(context=RuleContext(store=store)))
        assert rule.validate("") is True
        assert store.calls == []


class TestForeignKeyExistsRule:
    @staticmethod
    def _resolver(name):
        return ModelDefinition(name=name, table=name.lower(), fields={})

    def _rule(self, store):
        rule = ForeignKeyExistsRule(
            "Movies",
            "id",
            context=RuleContext(store=store, model_resolver=self._resolver),
        )
        return _bound(rule, "movie_id", "movie_quotes", FakeModel("Movie_Quotes"))

    def test_existing_reference(self):
        store = RecordingStore(rows={("movies", "id", "m-1")})
        assert self._rule(store).validate("m-1") is True
        assert store.calls == [("movies", "id", "m-1", None)]

    def test_missing_reference(self):
        rule = self._rule(RecordingStore())
        assert rule.validate("m-404") is False
        assert rule.get_formatted_error_message() == "The selected movie_id does not exist."

    def test_store_error_fails_closed(self):
        rule = self._rule(RecordingStore(error=RuntimeError("timeout")))
        assert rule.validate("m-1") is False

    def test_skips_empty_values(self):
        rule = self._rule(RecordingStore())
        assert rule.is_applicable("", None, FakeModel()) is False


class TestClientValidationExpressions:
    def test_round_trip_rules_always_pass_on_the_client(self):
        # Uniqueness and foreign keys need the store; the server decides
        assert UniqueRule().get_client_validation_expression() == ALWAYS_PASS_JS
        assert ForeignKeyExistsRule("Movies").get_client_validation_expression() == ALWAYS_PASS_JS

    def test_pattern_rules_share_the_server_pattern(self):
        expression = EmailRule().get_client_validation_expression()
        assert expression.startswith("function(value)")
        assert "isEmpty" in expression
        assert "new RegExp(" in expression

    def test_parameterized_rules_embed_bounds(self):
        assert ">= 3" in MinLengthRule(3).get_client_validation_expression()
        assert "n > 5" in RangeRule(1, 5).get_client_validation_expression()
        assert '"local"' in OptionsRule({"local": "Local"}).get_client_validation_expression()

    def test_password_expression_reads_auth_provider(self):
        expression = PasswordStrengthRule().get_client_validation_expression()
        assert "function(value, model)" in expression
        assert "auth_provider" in expression
        assert "Array.from(password).length < 8" in expression

    def test_range_expression_uses_the_float_pattern(self):
        expression = RangeRule(0, 100).get_client_validation_expression()
        assert js_regex(FLOAT_PATTERN) in expression
        assert "var n = Number(value)" not in expression

    def test_base_rule_has_no_expression(self):
        class Custom(ValidationRule):
            name = "Custom"

            def check(self, value, model):
                return True

        assert Custom().get_client_validation_expression() == ""


class TestErrorMessageFormatting:
    def test_unknown_tokens_stay_literal(self):
        rule = RequiredRule("{fieldName} {mystery} is required")
        rule.validate("")
        assert rule.get_formatted_error_message() == "{fieldName} {mystery} is required"

    def test_value_token(self):
        rule = _bound(OptionsRule({"a": "A"}, "{value} is not a valid {fieldName}"), "grade")
        rule.validate("z")
        assert rule.get_formatted_error_message() == "z is not a valid grade"

    def test_extra_tokens_override(self):
        rule = _bound(RequiredRule(), "name")
        rule.validate(None)
        assert rule.get_formatted_error_message({"fieldName": "Title"}) == "Title is required"

    def test_disabled_rule_is_inapplicable(self):
        assert RequiredRule(is_enabled=False).is_applicable("", None, None) is False


class TestRuleRegistry:
    @pytest.fixture(autouse=True)
    def builtin_rules(self):
        register_builtin_rules()
        yield
        register_builtin_rules()

    def test_builtins_registered(self):
        for name in ("Required", "Email", "ISBN10_Format", "Unique", "ForeignKeyExists"):
            assert RuleRegistry.is_registered(name)

    def test_partial_identifier_resolution(self):
        assert RuleRegistry.get("EmailValidation") is EmailRule
        assert RuleRegistry.get("required") is RequiredRule
        assert RuleRegistry.resolve_name("ISBN13_FormatValidation") == "ISBN13_Format"
        assert RuleRegistry.resolve_name("isbn13_format") == "ISBN13_Format"

    def test_unknown_rule_raises(self):
        with pytest.raises(ValueError, match="not registered"):
            RuleRegistry.get("Telepathy")

    def test_register_is_idempotent(self):
        class Other(ValidationRule):
            name = "Required"

        RuleRegistry.register("Required", Other)
        assert RuleRegistry.get("Required") is RequiredRule

    def test_custom_rule(self):
        class NoSpacesRule(ValidationRule):
            name = "NoSpaces"

            def check(self, value, model):
                return " " not in str(value or "")

        RuleRegistry.register("NoSpaces", NoSpacesRule)
        try:
            assert RuleRegistry.get("NoSpacesValidation") is NoSpacesRule
        finally:
            RuleRegistry._rules.pop("NoSpaces", None)
