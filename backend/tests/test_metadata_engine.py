"""Tests for MetadataEngine, source loaders and definition types."""

import copy
from pathlib import Path

import pytest

from modelforge.exceptions import MetadataError
from modelforge.metadata import (
    DictSourceLoader,
    FieldDefinition,
    MetadataEngine,
    YamlSourceLoader,
)

# Path to the real metadata directory
METADATA_DIR = Path(__file__).resolve().parents[2] / "metadata"


def _books():
    return {
        "name": "Books",
        "fields": {
            "title": {"type": "Text", "label": "Title", "required": True, "maxLength": 500},
            "isbn_10": {"type": "Text", "validationRules": ["ISBN10_Format"]},
        },
    }


@pytest.fixture
def models():
    return {"Books": _books()}


@pytest.fixture
def dict_engine(models, core_fields):
    return MetadataEngine(DictSourceLoader(models, core_fields=core_fields))


class TestResolveFieldDefinitions:
    def test_core_fields_come_first(self, dict_engine):
        fields = dict_engine.resolve_field_definitions("Books")
        names = list(fields)
        assert names[:7] == [
            "id",
            "created_at",
            "updated_at",
            "deleted_at",
            "created_by",
            "updated_by",
            "deleted_by",
        ]
        assert names[7:] == ["title", "isbn_10"]

    def test_definitions_are_typed(self, dict_engine):
        fields = dict_engine.resolve_field_definitions("Books")
        title = fields["title"]
        assert isinstance(title, FieldDefinition)
        assert title.type == "Text"
        assert title.required is True
        assert title.max_length == 500
        assert fields["isbn_10"].validation_rules == ("ISBN10_Format",)

    def test_later_source_replaces_whole_definition(self, models, core_fields):
        models["Books"]["fields"]["id"] = {"type": "ID", "label": "Key"}
        engine = MetadataEngine(DictSourceLoader(models, core_fields=core_fields))

        fields = engine.resolve_field_definitions("Books")

        assert fields["id"].label == "Key"
        # Not a per-key patch: readOnly from the core definition is gone
        assert fields["id"].read_only is False
        assert "description" not in fields["id"].extra
        # A replaced field keeps its original slot
        assert list(fields)[0] == "id"

    def test_resolving_twice_is_identical(self, dict_engine):
        first = dict_engine.resolve_field_definitions("Books")
        second = dict_engine.resolve_field_definitions("Books")
        assert first == second

    def test_sources_are_not_mutated(self, models, core_fields):
        models_before = copy.deepcopy(models)
        core_before = copy.deepcopy(core_fields)
        engine = MetadataEngine(DictSourceLoader(models, core_fields=core_fields))

        engine.resolve_field_definitions("Books")

        assert models == models_before
        assert core_fields == core_before

    def test_list_form_fields(self, core_fields):
        models = {
            "Tags": {
                "name": "Tags",
                "fields": [
                    {"name": "label", "type": "Text"},
                    {"name": "weight", "type": "Integer"},
                ],
            }
        }
        engine = MetadataEngine(DictSourceLoader(models, core_fields=core_fields))
        fields = engine.resolve_field_definitions("Tags")
        assert list(fields)[-2:] == ["label", "weight"]

    def test_rule_identifier_with_suffix_is_accepted(self, core_fields):
        models = {"Notes": {"fields": {"body": {"type": "Text", "validationRules": ["RequiredValidation"]}}}}
        engine = MetadataEngine(DictSourceLoader(models, core_fields=core_fields))
        fields = engine.resolve_field_definitions("Notes")
        assert fields["body"].validation_rules == ("RequiredValidation",)


class TestMetadataErrors:
    def _engine(self, model_data, core_fields=None):
        return MetadataEngine(DictSourceLoader({"Broken": model_data}, core_fields=core_fields))

    def test_missing_fields_key(self):
        with pytest.raises(MetadataError) as exc_info:
            self._engine({"name": "Broken"}).resolve_field_definitions("Broken")
        assert exc_info.value.key == "fields"
        assert exc_info.value.model_name == "Broken"

    def test_missing_type(self):
        engine = self._engine({"fields": {"title": {"label": "Title"}}})
        with pytest.raises(MetadataError) as exc_info:
            engine.resolve_field_definitions("Broken")
        assert exc_info.value.key == "fields.title.type"

    def test_unknown_type(self):
        engine = self._engine({"fields": {"title": {"type": "Hologram"}}})
        with pytest.raises(MetadataError, match="Unknown field type 'Hologram'"):
            engine.resolve_field_definitions("Broken")

    def test_unknown_rule(self):
        engine = self._engine({"fields": {"title": {"type": "Text", "validationRules": ["Telepathy"]}}})
        with pytest.raises(MetadataError, match="Unknown validation rule 'Telepathy'") as exc_info:
            engine.resolve_field_definitions("Broken")
        assert exc_info.value.key == "fields.title.validationRules"

    def test_key_and_name_mismatch(self):
        engine = self._engine({"fields": {"title": {"name": "heading", "type": "Text"}}})
        with pytest.raises(MetadataError, match="does not match"):
            engine.resolve_field_definitions("Broken")

    def test_invalid_field_name(self):
        engine = self._engine({"fields": {"bad-name": {"type": "Text"}}})
        with pytest.raises(MetadataError, match="alphanumeric"):
            engine.resolve_field_definitions("Broken")

    def test_list_entry_without_name(self):
        engine = self._engine({"fields": [{"type": "Text"}]})
        with pytest.raises(MetadataError, match="missing 'name'"):
            engine.resolve_field_definitions("Broken")

    def test_source_must_be_mapping(self):
        engine = self._engine(["not", "a", "mapping"])
        with pytest.raises(MetadataError, match="must be a mapping"):
            engine.resolve_field_definitions("Broken")

    def test_unknown_model(self):
        engine = self._engine({"fields": {}})
        with pytest.raises(MetadataError, match="No metadata registered"):
            engine.resolve_field_definitions("Nope")

    def test_error_carries_source(self, core_fields):
        engine = self._engine({"fields": {"title": {"type": "Hologram"}}}, core_fields)
        with pytest.raises(MetadataError) as exc_info:
            engine.resolve_field_definitions("Broken")
        assert exc_info.value.source == "memory:Broken"


class TestResolveModel:
    def test_table_defaults_to_lower_name(self, dict_engine):
        model = dict_engine.resolve_model("Books")
        assert model.name == "Books"
        assert model.table == "books"

    def test_model_keys_from_source(self, core_fields):
        models = {
            "Books": {
                **_books(),
                "table": "library_books",
                "displayColumns": ["title"],
                "permissions": {"admin": ["create"]},
            }
        }
        engine = MetadataEngine(DictSourceLoader(models, core_fields=core_fields))
        model = engine.resolve_model("Books")
        assert model.table == "library_books"
        assert model.display_columns == ["title"]
        assert model.permissions == {"admin": ["create"]}
        assert "title" in model.fields


class TestYamlSourceLoader:
    def test_lists_example_models(self):
        loader = YamlSourceLoader(METADATA_DIR)
        assert set(loader.list_models()) == {"Books", "Movie_Quotes", "Movies", "Users"}

    def test_resolves_by_declared_name(self, engine):
        model = engine.resolve_model("Movie_Quotes")
        assert model.table == "movie_quotes"
        assert model.fields["movie_id"].related_model == "Movies"
        assert model.fields["movie_name"].is_db_field is False

    def test_lookup_is_case_insensitive(self, engine):
        assert engine.resolve_model("users").name == "Users"

    def test_core_fields_can_be_disabled(self):
        engine = MetadataEngine(YamlSourceLoader(METADATA_DIR, core_fields_path=None))
        fields = engine.resolve_field_definitions("Movies")
        assert "id" not in fields

    def test_missing_model_file(self, tmp_path):
        (tmp_path / "models").mkdir()
        engine = MetadataEngine(YamlSourceLoader(tmp_path))
        with pytest.raises(MetadataError, match="No metadata file found"):
            engine.resolve_model("Ghosts")

    def test_invalid_yaml(self, tmp_path):
        models_dir = tmp_path / "models"
        models_dir.mkdir()
        (models_dir / "ghosts.yaml").write_text("name: Ghosts\nfields: [unclosed\n")
        engine = MetadataEngine(YamlSourceLoader(tmp_path))
        with pytest.raises(MetadataError, match="Invalid YAML") as exc_info:
            engine.resolve_model("Ghosts")
        assert exc_info.value.source.endswith("ghosts.yaml")


class TestFieldDefinition:
    def test_options_list_is_normalized(self):
        definition = FieldDefinition.from_dict(
            {"name": "rating", "type": "Enum", "options": ["G", "PG"]}
        )
        assert definition.options == {"G": "G", "PG": "PG"}

    def test_single_rule_string(self):
        definition = FieldDefinition.from_dict(
            {"name": "email", "type": "Email", "validationRules": "Email"}
        )
        assert definition.validation_rules == ("Email",)

    def test_label_defaults_to_name(self):
        assert FieldDefinition.from_dict({"name": "title", "type": "Text"}).label == "title"

    def test_unknown_keys_kept_as_extra(self):
        definition = FieldDefinition.from_dict(
            {"name": "title", "type": "Text", "searchable": True}
        )
        assert definition.extra == {"searchable": True}
        assert definition.to_dict()["searchable"] is True

    def test_to_dict_uses_metadata_keys(self):
        definition = FieldDefinition.from_dict(
            {"name": "movie_id", "type": "RelatedRecord", "relatedModel": "Movies", "isDBField": True}
        )
        data = definition.to_dict()
        assert data["relatedModel"] == "Movies"
        assert data["isDBField"] is True
        assert "options" not in data
