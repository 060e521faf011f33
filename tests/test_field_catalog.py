"""Tests for the static field catalog."""

import pytest

from tank_intake.exceptions import UnknownFieldError
from tank_intake.models.extracted_field import FieldCategory
from tank_intake.schemas.field_catalog import (
    FIELD_CATALOG,
    FieldDefinition,
    field_label,
    field_question,
    get_field_definition,
    known_field_keys,
    require_field_definition,
)


class TestLookups:
    def test_label_and_category(self):
        definition = get_field_definition("siteAddress")
        assert definition.label == "敷地住所"
        assert definition.category == FieldCategory.SITE
        assert field_label("siteAddress") == "敷地住所"

    def test_unknown_key_falls_back(self):
        assert get_field_definition("bogus") is None
        assert field_label("bogus") == "bogus"
        assert field_question("bogus") == "bogusを入力してください。"

    def test_require_unknown(self):
        with pytest.raises(UnknownFieldError):
            require_field_definition("bogus")

    def test_question_for_building_use(self):
        assert "建物の用途は何ですか" in field_question("buildingUse")

    def test_keys_in_declaration_order(self):
        keys = known_field_keys()
        assert keys == list(FIELD_CATALOG)
        assert len(keys) == len(set(keys))
        assert keys[0] == "projectName"


class TestDefinitions:
    def test_every_definition_is_usable(self):
        for definition in FIELD_CATALOG.values():
            assert definition.keywords
            assert callable(definition.normalizer)
            assert definition.follow_up_question

    def test_definition_needs_keywords(self):
        with pytest.raises(ValueError):
            FieldDefinition("x", "X", FieldCategory.OTHER, (), ())

    def test_unknown_normalizer_fails_early(self):
        with pytest.raises(KeyError):
            FieldDefinition("x", "X", FieldCategory.OTHER, ("x",), (), normalizer_name="nope")
