"""Tests for the ProjectInfo projection."""

from conftest import make_field

from tank_intake.models.project_info import ProjectInfo


class TestFromFields:
    def test_numeric_and_text_attributes(self):
        info = ProjectInfo.from_fields(
            [
                make_field("siteAddress", "東京都港区六本木1-1-1"),
                make_field("totalFloorArea", "5000㎡"),
                make_field("numberOfFloors", "地上10階"),
                make_field("floorAreaRatio", "400%"),
                make_field("tankDiameter", "20.5"),
            ]
        )
        assert info.site_address == "東京都港区六本木1-1-1"
        assert info.total_floor_area == 5000.0
        assert info.number_of_floors == "地上10階"
        assert info.floor_area_ratio == 400.0
        assert info.tank_diameter == 20.5

    def test_keyword_only_entries_ignored(self):
        info = ProjectInfo.from_fields([make_field("tankCapacity", value=None)])
        assert info.tank_capacity is None

    def test_load_cases_split(self):
        info = ProjectInfo.from_fields([make_field("loadCases", "常時, 地震時, ")])
        assert info.load_cases == ["常時", "地震時"]

    def test_empty(self):
        info = ProjectInfo.from_fields([])
        assert info.site_address is None
        assert info.load_cases == []


class TestFormDefaults:
    def test_only_known_sections(self):
        info = ProjectInfo.from_fields([make_field("siteAddress", "大阪府"), make_field("tankCapacity", "500")])
        assert info.form_defaults() == {
            "site": {"location": "大阪府"},
            "tank": {"capacity_kl": 500.0},
        }

    def test_load_cases_in_criteria(self):
        info = ProjectInfo.from_fields([make_field("loadCases", "常時")])
        assert info.form_defaults() == {"criteria": {"load_cases": ["常時"]}}
