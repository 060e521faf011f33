"""Pydantic records shared across the intake engine."""

from .conflict import ConflictRecord
from .extracted_field import ExtractedField, FieldCategory, FieldSource, FieldStatus
from .progress import ProgressStatus
from .project_info import ProjectInfo
from .session import (
    Action,
    ActionType,
    FileInput,
    FormInput,
    Interaction,
    InteractionResult,
    SessionState,
    TextInput,
)

__all__ = [
    "Action",
    "ActionType",
    "ConflictRecord",
    "ExtractedField",
    "FieldCategory",
    "FieldSource",
    "FieldStatus",
    "FileInput",
    "FormInput",
    "Interaction",
    "InteractionResult",
    "ProgressStatus",
    "ProjectInfo",
    "SessionState",
    "TextInput",
]
