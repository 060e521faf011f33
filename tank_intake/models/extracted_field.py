"""
Pydantic model for a single extracted project fact.

An ExtractedField is one entry of the canonical field set: a key from the
field catalog, a normalized value, how much we trust it, where it came from
and whether the user has looked at it.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FieldCategory(str, Enum):
    """Grouping used for UI routing. Not used by merge logic."""

    SITE = "site"
    BUILDING = "building"
    REGULATION = "regulation"
    TANK = "tank"
    PROGRAM = "program"
    OTHER = "other"


class FieldSource(str, Enum):
    """Provenance of a value."""

    PATTERN = "pattern"  # Keyword / regex matcher
    LLM = "llm"  # Language-model extraction
    FORM = "form"  # Manual form entry or review edit


class FieldStatus(str, Enum):
    """Review state of a value."""

    MISSING = "missing"  # Keyword evidence only, no value
    EXTRACTED = "extracted"  # Found automatically, not yet reviewed
    CONFIRMED = "confirmed"  # Accepted by the user
    EDITED = "edited"  # Changed by the user, awaiting confirmation


class ExtractedField(BaseModel):
    """One fact about a project."""

    key: str = Field(..., min_length=1, description="Stable field identifier (e.g. 'siteAddress')")
    label: str = Field("", description="Display label from the field catalog")
    category: FieldCategory = Field(FieldCategory.OTHER, description="Owning category")
    value: Optional[str] = Field(None, description="Normalized value, None when only keywords matched")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Trust in the value, used for merge resolution")
    source: FieldSource = Field(..., description="Where the value came from")
    status: FieldStatus = Field(FieldStatus.EXTRACTED, description="Review state")
    required: bool = Field(False, description="Required by some phase, fixed per key by the catalog")
    evidence: Optional[str] = Field(None, description="Matched text or matched keywords")
    note: Optional[str] = Field(None, description="Free-form note for reviewers")

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "key": "siteAddress",
                "label": "敷地住所",
                "category": "site",
                "value": "東京都港区六本木1-1-1",
                "confidence": 0.55,
                "source": "pattern",
                "status": "extracted",
                "required": True,
                "evidence": "所在地：東京都港区六本木1-1-1",
                "note": None,
            }
        },
    )

    @model_validator(mode="after")
    def _check_status_value(self) -> "ExtractedField":
        if self.status == FieldStatus.MISSING and self.value is not None:
            raise ValueError(f"{self.key}: status 'missing' requires value=None")
        if self.status != FieldStatus.MISSING and self.value is None:
            raise ValueError(f"{self.key}: status '{self.status.value}' requires a value")
        return self

    @property
    def has_value(self) -> bool:
        return self.value is not None

    @property
    def is_locked(self) -> bool:
        """Locked entries are never replaced by pattern or LLM re-extraction."""
        return self.source == FieldSource.FORM or self.status in (FieldStatus.CONFIRMED, FieldStatus.EDITED)

    @property
    def is_complete(self) -> bool:
        """Counts toward phase progress."""
        return self.has_value and self.status in (FieldStatus.EXTRACTED, FieldStatus.CONFIRMED)
