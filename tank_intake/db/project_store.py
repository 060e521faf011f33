"""
Persistence gateway for canonical field sets and sessions.

The engine only depends on the PersistenceGateway protocol. The bundled
JsonFileProjectStore keeps one JSON document per project and per session
under the data directory:

    <data_dir>/projects/<project_id>.json
    <data_dir>/sessions/<session_id>.json
"""

import json
import logging
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Protocol, Sequence

from pydantic import ValidationError

from ..config import get_data_dir
from ..constants import PROJECT_ID_HEX_LENGTH, PROJECT_ID_PREFIX
from ..exceptions import PersistenceFailure
from ..models.extracted_field import ExtractedField
from ..models.session import SessionState

logger = logging.getLogger(__name__)


class PersistenceGateway(Protocol):
    """Save/load of canonical field sets."""

    def persist_fields(self, project_id: Optional[str], fields: Sequence[ExtractedField]) -> str:
        """Idempotent upsert. Returns the (possibly newly assigned) project id."""
        ...

    def load_fields(self, project_id: str) -> List[ExtractedField]:
        """Load the field set of an existing project."""
        ...


def _serialize_json(value: Any) -> str:
    """Serialize a value to a JSON string for storage."""
    return json.dumps(value, ensure_ascii=False, indent=2)


def _deserialize_json(value: str | bytes) -> Any:
    """Deserialize a JSON string from storage."""
    if isinstance(value, bytes):
        value = value.decode("utf-8")
    return json.loads(value)


def generate_project_id() -> str:
    """Generate a project id like 'TF-3f2a9c1b7d4e'."""
    return f"{PROJECT_ID_PREFIX}{uuid.uuid4().hex[:PROJECT_ID_HEX_LENGTH]}"


class JsonFileProjectStore:
    """File-backed PersistenceGateway with session snapshots."""

    def __init__(self, data_dir: Optional[Path] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else get_data_dir()
        self.projects_dir = self.data_dir / "projects"
        self.sessions_dir = self.data_dir / "sessions"

    def _project_path(self, project_id: str) -> Path:
        return self.projects_dir / f"{_safe_name(project_id)}.json"

    def _session_path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{_safe_name(session_id)}.json"

    def _write(self, path: Path, payload: Any) -> None:
        """Write atomically so a crash never leaves a half-written file."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(_serialize_json(payload))
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceFailure(f"Failed to write {path}: {e}") from e

    def _read(self, path: Path, what: str) -> Any:
        if not path.exists():
            raise PersistenceFailure(f"{what} not found: {path.stem}")
        try:
            return _deserialize_json(path.read_bytes())
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"Failed to read {path}: {e}") from e

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def persist_fields(self, project_id: Optional[str], fields: Sequence[ExtractedField]) -> str:
        """
        Upsert the canonical field set of a project.

        Raises:
            PersistenceFailure: the file could not be written
        """
        project_id = project_id or generate_project_id()
        path = self._project_path(project_id)

        created_at = datetime.now(timezone.utc).isoformat()
        if path.exists():
            try:
                created_at = _deserialize_json(path.read_bytes()).get("created_at", created_at)
            except (OSError, ValueError):
                logger.warning(f"Overwriting unreadable project file {path}")

        self._write(
            path,
            {
                "project_id": project_id,
                "created_at": created_at,
                "updated_at": datetime.now(timezone.utc).isoformat(),
                "fields": [f.model_dump(mode="json") for f in fields],
            },
        )
        logger.debug(f"Persisted {len(fields)} fields for project {project_id}")
        return project_id

    def load_fields(self, project_id: str) -> List[ExtractedField]:
        """
        Load a project's field set.

        Raises:
            PersistenceFailure: unknown project or corrupt file
        """
        data = self._read(self._project_path(project_id), "Project")
        try:
            return [ExtractedField.model_validate(item) for item in data.get("fields", [])]
        except (ValidationError, AttributeError) as e:
            raise PersistenceFailure(f"Corrupt project file for {project_id}: {e}") from e

    def list_projects(self) -> List[str]:
        """Ids of all stored projects."""
        if not self.projects_dir.exists():
            return []
        return sorted(p.stem for p in self.projects_dir.glob("*.json"))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def save_session(self, session: SessionState) -> None:
        """Store a session snapshot (phase, flags and fields)."""
        self._write(self._session_path(session.session_id), session.model_dump(mode="json"))

    def load_session(self, session_id: str) -> SessionState:
        """
        Load a session snapshot.

        Raises:
            PersistenceFailure: unknown session or corrupt file
        """
        data = self._read(self._session_path(session_id), "Session")
        try:
            return SessionState.model_validate(data)
        except ValidationError as e:
            raise PersistenceFailure(f"Corrupt session file for {session_id}: {e}") from e

    def latest_session(self, project_id: str) -> Optional[SessionState]:
        """Most recently updated session snapshot of a project, or None."""
        if not self.sessions_dir.exists():
            return None
        latest: Optional[SessionState] = None
        for path in self.sessions_dir.glob("*.json"):
            try:
                session = SessionState.model_validate(_deserialize_json(path.read_bytes()))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable session file {path}: {e}")
                continue
            if session.project_id != project_id:
                continue
            if latest is None or session.updated_at > latest.updated_at:
                latest = session
        return latest


def _safe_name(identifier: str) -> str:
    if not identifier or any(sep in identifier for sep in ("/", "\\", "..")):
        raise PersistenceFailure(f"Invalid identifier: {identifier!r}")
    return identifier
