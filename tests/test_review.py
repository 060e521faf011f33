"""Tests for review operations on the field set."""

import pytest
from conftest import make_field

from tank_intake.exceptions import UnknownFieldError
from tank_intake.models.extracted_field import FieldCategory, FieldSource, FieldStatus
from tank_intake.services.extraction_merger import merge
from tank_intake.services.review import confirm_fields, edit_field, form_entry, reset_field


class TestEditField:
    def test_edit_existing(self):
        fields = edit_field([make_field("buildingUse", "倉庫", 0.55)], "buildingUse", " 事務所 ")
        edited = fields[0]
        assert edited.value == "事務所"
        assert edited.status == FieldStatus.EDITED
        assert edited.confidence == 1.0
        assert edited.source == FieldSource.PATTERN

    def test_edit_appends_catalog_field(self):
        fields = edit_field([], "tankHeight", "15")
        assert fields[0].key == "tankHeight"
        assert fields[0].label == "タンク高さ"
        assert fields[0].source == FieldSource.FORM
        assert fields[0].required is True

    def test_unknown_key(self):
        with pytest.raises(UnknownFieldError):
            edit_field([], "bogus", "x")

    def test_empty_value(self):
        with pytest.raises(ValueError):
            edit_field([make_field("a")], "a", "  ")

    def test_edited_value_is_locked(self):
        fields = edit_field([make_field("buildingUse", "倉庫", 0.55)], "buildingUse", "事務所")
        merged = merge(fields, [make_field("buildingUse", "工場", 0.9)])
        assert merged[0].value == "事務所"


class TestConfirmFields:
    def test_confirm_all_valued(self):
        fields = [make_field("a"), make_field("b", value=None), make_field("c", status=FieldStatus.EDITED)]
        confirmed = confirm_fields(fields)
        assert [f.status for f in confirmed] == [FieldStatus.CONFIRMED, FieldStatus.MISSING, FieldStatus.CONFIRMED]

    def test_confirm_selected(self):
        confirmed = confirm_fields([make_field("a"), make_field("b")], keys=["b"])
        assert [f.status for f in confirmed] == [FieldStatus.EXTRACTED, FieldStatus.CONFIRMED]


class TestResetField:
    def test_reset(self):
        assert [f.key for f in reset_field([make_field("a"), make_field("b")], "a")] == ["b"]

    def test_reset_absent(self):
        with pytest.raises(UnknownFieldError):
            reset_field([], "a")


class TestFormEntry:
    def test_catalog_key(self):
        entry = form_entry("siteAddress", "東京都")
        assert entry.status == FieldStatus.CONFIRMED
        assert entry.source == FieldSource.FORM
        assert entry.category == FieldCategory.SITE
        assert entry.is_locked is True

    def test_unknown_key(self):
        entry = form_entry("memo", "x")
        assert entry.category == FieldCategory.OTHER
        assert entry.label == "memo"

    def test_unknown_key_with_fallback_category(self):
        entry = form_entry("memo", "x", FieldCategory.SITE)
        assert entry.category == FieldCategory.SITE
        assert entry.required is False
