"""
Session state and interaction records.

SessionState is passed into and returned from every orchestration call; the
coordinator never keeps it between calls.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..constants import INITIAL_PHASE
from .extracted_field import ExtractedField
from .progress import ProgressStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_session_id() -> str:
    return str(uuid.uuid4())


class SessionState(BaseModel):
    """Explicit per-session state: phase plus the canonical field set."""

    session_id: str = Field(default_factory=_new_session_id)
    project_id: Optional[str] = Field(None, description="Persistence id once the project has been saved")
    phase: str = Field(INITIAL_PHASE, description="Current phase id")
    fields: List[ExtractedField] = Field(default_factory=list, description="Canonical field set")
    phase_satisfied: bool = Field(
        False, description="can_proceed as observed on the previous interaction in this phase"
    )
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)

    def get_field(self, key: str) -> Optional[ExtractedField]:
        for item in self.fields:
            if item.key == key:
                return item
        return None

    def known_values(self) -> Dict[str, str]:
        """Key -> value for every entry that has a value."""
        return {f.key: f.value for f in self.fields if f.value is not None}


# ----------------------------------------------------------------------------
# Inputs
# ----------------------------------------------------------------------------


class TextInput(BaseModel):
    """Free text typed into the chat."""

    text: str

    model_config = ConfigDict(frozen=True)


class FormInput(BaseModel):
    """Structured form submission: field key -> raw value."""

    values: Dict[str, Any] = Field(default_factory=dict)
    form_type: Optional[str] = Field(None, description="site_info, building_overview, tank_spec or dynamic")

    model_config = ConfigDict(frozen=True)


class FileInput(BaseModel):
    """Uploaded document, converted to text by the document parser."""

    content: bytes
    mime_type: str = "text/plain"
    file_name: Optional[str] = None

    model_config = ConfigDict(frozen=True)


Interaction = Union[TextInput, FormInput, FileInput]


# ----------------------------------------------------------------------------
# Outputs
# ----------------------------------------------------------------------------


class ActionType(str, Enum):
    """UI-facing actions emitted by the coordinator."""

    PROCEED_PHASE = "proceed_phase"
    SHOW_FORM = "show_form"
    UPDATE_STATUS = "update_status"


class Action(BaseModel):
    """One UI-facing action."""

    type: ActionType
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class InteractionResult(BaseModel):
    """Everything produced by one handled interaction."""

    session: SessionState
    updated_fields: List[ExtractedField]
    progress: ProgressStatus
    actions: List[Action] = Field(default_factory=list)
    message: str = ""
    warnings: List[str] = Field(default_factory=list)

    def action(self, action_type: ActionType) -> Optional[Action]:
        for action in self.actions:
            if action.type == action_type:
                return action
        return None

    def action_types(self) -> List[str]:
        return [a.type.value for a in self.actions]
