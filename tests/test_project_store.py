"""Tests for the JSON file project store."""

import json
from datetime import datetime, timezone

import pytest
from conftest import make_field

from tank_intake.db.project_store import JsonFileProjectStore, generate_project_id
from tank_intake.exceptions import PersistenceFailure
from tank_intake.models.extracted_field import FieldSource, FieldStatus
from tank_intake.models.session import SessionState


@pytest.fixture
def store(tmp_path):
    return JsonFileProjectStore(tmp_path)


class TestProjects:
    def test_generate_project_id(self):
        project_id = generate_project_id()
        assert project_id.startswith("TF-")
        assert len(project_id) == 15

    def test_round_trip(self, store):
        fields = [
            make_field("siteAddress", "東京都港区", 0.55),
            make_field("buildingUse", "事務所", 1.0, source=FieldSource.FORM, status=FieldStatus.CONFIRMED),
            make_field("tankCapacity", value=None, confidence=0.4),
        ]
        project_id = store.persist_fields(None, fields)

        assert store.load_fields(project_id) == fields
        assert store.list_projects() == [project_id]

    def test_upsert_keeps_created_at(self, store, tmp_path):
        store.persist_fields("TF-abc", [make_field("a")])
        created = json.loads((tmp_path / "projects" / "TF-abc.json").read_text(encoding="utf-8"))["created_at"]

        store.persist_fields("TF-abc", [make_field("a"), make_field("b")])
        data = json.loads((tmp_path / "projects" / "TF-abc.json").read_text(encoding="utf-8"))

        assert data["created_at"] == created
        assert [f["key"] for f in data["fields"]] == ["a", "b"]

    def test_non_ascii_written_verbatim(self, store, tmp_path):
        store.persist_fields("TF-jp", [make_field("siteAddress", "六本木")])
        assert "六本木" in (tmp_path / "projects" / "TF-jp.json").read_text(encoding="utf-8")

    def test_unknown_project(self, store):
        with pytest.raises(PersistenceFailure, match="not found"):
            store.load_fields("TF-missing")

    def test_corrupt_project(self, store, tmp_path):
        (tmp_path / "projects").mkdir()
        (tmp_path / "projects" / "TF-bad.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(PersistenceFailure):
            store.load_fields("TF-bad")

    def test_path_traversal_rejected(self, store):
        with pytest.raises(PersistenceFailure, match="Invalid identifier"):
            store.persist_fields("../escape", [])

    def test_list_empty(self, store):
        assert store.list_projects() == []


class TestSessions:
    def test_round_trip(self, store):
        session = SessionState(project_id="TF-1", phase="p2", fields=[make_field("a")], phase_satisfied=True)
        store.save_session(session)
        assert store.load_session(session.session_id) == session

    def test_unknown_session(self, store):
        with pytest.raises(PersistenceFailure):
            store.load_session("nope")

    def test_latest_session_for_project(self, store):
        older = SessionState(project_id="TF-1", phase="p1", updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
        newer = SessionState(project_id="TF-1", phase="p2", updated_at=datetime(2026, 2, 1, tzinfo=timezone.utc))
        other = SessionState(project_id="TF-2", phase="p3")
        for session in (newer, older, other):
            store.save_session(session)

        assert store.latest_session("TF-1").phase == "p2"
        assert store.latest_session("TF-3") is None

    def test_latest_session_skips_corrupt_files(self, store, tmp_path):
        store.save_session(SessionState(project_id="TF-1", phase="p2"))
        (tmp_path / "sessions" / "broken.json").write_text("{", encoding="utf-8")
        assert store.latest_session("TF-1").phase == "p2"

    def test_latest_session_without_sessions(self, store):
        assert store.latest_session("TF-1") is None
