"""
Pydantic model for merge conflicts.

A conflict is recorded whenever two sources disagree on a non-empty value for
the same field, whether or not the incoming value won.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ConflictRecord(BaseModel):
    """Records a value conflict between extraction sources for audit purposes."""

    field_name: str = Field(..., description="Field that has conflicting values")
    source_values: Dict[str, Optional[str]] = Field(
        ..., description="Map of 'existing:<source>' / 'incoming:<source>' -> value"
    )
    selected_source: str = Field(..., description="Which side was kept ('existing' or 'incoming')")
    selected_value: Optional[str] = Field(None, description="The value that was kept")
    selection_reason: str = Field(..., description="Why this side was kept")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "field_name": "siteAddress",
                "source_values": {
                    "existing:pattern": "東京都港区六本木1-1-1",
                    "incoming:llm": "東京都港区六本木一丁目1番1号",
                },
                "selected_source": "incoming",
                "selected_value": "東京都港区六本木一丁目1番1号",
                "selection_reason": "higher confidence (0.80 > 0.55)",
                "timestamp": "2026-01-15T10:30:00Z",
            }
        }
    )
