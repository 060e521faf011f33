"""
Review operations on the canonical field set.

Used when the user reviews extracted values: editing a value marks it
"edited", confirming moves values to "confirmed", and resetting removes an
entry so re-extraction can fill it again.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from ..constants import FORM_CONFIDENCE
from ..exceptions import UnknownFieldError
from ..extractors.normalizers import normalize_text
from ..models.extracted_field import ExtractedField, FieldCategory, FieldSource, FieldStatus
from ..schemas.field_catalog import get_field_definition, require_field_definition

logger = logging.getLogger(__name__)

_CONFIRMABLE = (FieldStatus.EXTRACTED, FieldStatus.EDITED)


def edit_field(fields: Sequence[ExtractedField], key: str, value: str) -> List[ExtractedField]:
    """
    Replace a field value with a user edit.

    The entry becomes status "edited" with full confidence. Keys not yet in
    the set are appended if the catalog knows them.

    Raises:
        UnknownFieldError: key is neither in the set nor in the catalog
        ValueError: value is empty
    """
    cleaned = normalize_text(str(value)) if value is not None else None
    if not cleaned:
        raise ValueError(f"Edited value for '{key}' must not be empty")

    result: List[ExtractedField] = []
    found = False
    for item in fields:
        if item.key == key:
            result.append(
                item.model_copy(
                    update={
                        "value": cleaned,
                        "status": FieldStatus.EDITED,
                        "confidence": FORM_CONFIDENCE,
                        "note": None,
                    }
                )
            )
            found = True
        else:
            result.append(item)

    if not found:
        definition = require_field_definition(key)
        result.append(
            ExtractedField(
                key=key,
                label=definition.label,
                category=definition.category,
                value=cleaned,
                confidence=FORM_CONFIDENCE,
                source=FieldSource.FORM,
                status=FieldStatus.EDITED,
                required=definition.required,
            )
        )

    logger.debug(f"Edited field '{key}'")
    return result


def confirm_fields(fields: Sequence[ExtractedField], keys: Optional[Iterable[str]] = None) -> List[ExtractedField]:
    """
    Confirm extracted or edited values.

    Args:
        fields: Canonical field set
        keys: Only confirm these keys (default: every valued entry)

    Returns:
        New field set; keyword-only entries are left untouched
    """
    selected = set(keys) if keys is not None else None
    result: List[ExtractedField] = []
    confirmed = 0
    for item in fields:
        if item.has_value and item.status in _CONFIRMABLE and (selected is None or item.key in selected):
            result.append(item.model_copy(update={"status": FieldStatus.CONFIRMED}))
            confirmed += 1
        else:
            result.append(item)
    logger.debug(f"Confirmed {confirmed} fields")
    return result


def reset_field(fields: Sequence[ExtractedField], key: str) -> List[ExtractedField]:
    """
    Remove an entry so later extractions can fill it again.

    Raises:
        UnknownFieldError: key is not in the field set
    """
    if not any(item.key == key for item in fields):
        raise UnknownFieldError(f"Field '{key}' is not in the field set")
    return [item for item in fields if item.key != key]


def form_entry(key: str, value: str, fallback_category: FieldCategory = FieldCategory.OTHER) -> ExtractedField:
    """Build the locked entry for one submitted form value.

    Keys outside the catalog are kept, not required, under ``fallback_category``.
    """
    definition = get_field_definition(key)
    if definition is None:
        logger.warning(f"Form submitted unknown field '{key}', storing as category '{fallback_category.value}'")
        return ExtractedField(
            key=key,
            label=key,
            category=fallback_category,
            value=value,
            confidence=FORM_CONFIDENCE,
            source=FieldSource.FORM,
            status=FieldStatus.CONFIRMED,
            required=False,
        )
    return ExtractedField(
        key=key,
        label=definition.label,
        category=definition.category,
        value=value,
        confidence=FORM_CONFIDENCE,
        source=FieldSource.FORM,
        status=FieldStatus.CONFIRMED,
        required=definition.required,
    )
