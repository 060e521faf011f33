"""Derived per-phase progress. Recomputed on every interaction, never stored."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgressStatus(BaseModel):
    """Completion state of one phase for a given canonical field set."""

    phase: str = Field(..., description="Phase id, e.g. 'p1'")
    phase_name: str = Field("", description="Display name of the phase")
    completed_fields: List[str] = Field(default_factory=list, description="Required or optional keys with a usable value")
    missing_fields: List[str] = Field(default_factory=list, description="Required keys still without a usable value")
    missing_optional_fields: List[str] = Field(default_factory=list)
    progress: int = Field(..., ge=0, le=100, description="Percent of required fields complete")
    can_proceed: bool = Field(..., description="progress >= threshold * 100")
    gated: bool = Field(True, description="False when the phase has no required fields")
    next_phase: Optional[str] = Field(None, description="Immediate successor, None for the last phase")
    suggestions: List[str] = Field(default_factory=list, description="Human-readable hints")

    model_config = ConfigDict(frozen=True)
