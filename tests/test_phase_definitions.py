"""Tests for the phase registry and its YAML loading."""

import pytest

from tank_intake.exceptions import InvalidPhaseTransition
from tank_intake.schemas.phase_definitions import (
    DEFAULT_PHASES,
    PhaseDefinition,
    clear_cache,
    list_phases,
    next_phase_id,
    parse_phase_config,
    phase_definition_for,
)


class TestBundledTable:
    def test_bundled_yaml_matches_defaults(self):
        assert {p.phase_id: p for p in list_phases()} == DEFAULT_PHASES

    def test_p1(self):
        p1 = phase_definition_for("p1")
        assert p1.required_fields == ("siteAddress", "buildingUse", "totalFloorArea")
        assert p1.completion_threshold == 0.75
        assert p1.gated is True

    def test_calculation_phases_not_gated(self):
        assert [p.gated for p in list_phases()] == [True, True, True, False, False, False, False, False]


class TestNextPhase:
    def test_linear_sequence(self):
        assert next_phase_id("p1") == "p2"
        assert next_phase_id("p7") == "p8"

    def test_last(self):
        assert next_phase_id("p8") is None

    def test_unknown(self):
        with pytest.raises(InvalidPhaseTransition):
            next_phase_id("p0")

    def test_unknown_definition(self):
        with pytest.raises(InvalidPhaseTransition, match="No phase definition"):
            phase_definition_for("design")


class TestPhaseDefinitionValidation:
    def test_threshold_out_of_range(self):
        with pytest.raises(ValueError, match="completion_threshold"):
            PhaseDefinition(phase_id="p1", name="x", required_fields=("siteAddress",), completion_threshold=0)

    def test_overlap(self):
        with pytest.raises(ValueError, match="both required and optional"):
            PhaseDefinition(
                phase_id="p1", name="x", required_fields=("siteAddress",), optional_fields=("siteAddress",)
            )


class TestParseConfig:
    def test_missing_phases_fall_back_to_defaults(self):
        registry = parse_phase_config({"phases": {"p1": {"name": "確認", "required_fields": ["siteAddress"]}}})
        assert registry["p1"].required_fields == ("siteAddress",)
        assert registry["p1"].completion_threshold == 1.0
        assert registry["p2"] == DEFAULT_PHASES["p2"]

    def test_unknown_field_key(self):
        with pytest.raises(ValueError, match="unknown fields"):
            parse_phase_config({"phases": {"p1": {"required_fields": ["bogus"]}}})

    def test_unknown_phase_id(self):
        with pytest.raises(ValueError, match="Unknown phase ids"):
            parse_phase_config({"phases": {"p9": {}}})

    def test_empty_document(self):
        with pytest.raises(ValueError, match="non-empty 'phases'"):
            parse_phase_config(None)


class TestConfigFile:
    def test_custom_file_from_env(self, tmp_path, monkeypatch):
        config = tmp_path / "phases.yaml"
        config.write_text(
            "phases:\n  p1:\n    name: 敷地\n    required_fields: [siteAddress]\n    completion_threshold: 0.5\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("TANK_INTAKE_PHASES_FILE", str(config))
        clear_cache()

        p1 = phase_definition_for("p1")
        assert p1.name == "敷地"
        assert p1.required_fields == ("siteAddress",)

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TANK_INTAKE_PHASES_FILE", str(tmp_path / "absent.yaml"))
        clear_cache()

        assert phase_definition_for("p2") == DEFAULT_PHASES["p2"]
