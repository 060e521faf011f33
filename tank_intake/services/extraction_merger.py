"""
Extraction merger - reconciles candidate fields from several sources into one
canonical field set.

Policy, applied per key in arrival order:
1. An incoming locked entry (form submission or user confirmation) replaces
   whatever is there. Explicit user input is the only way to change a locked
   value.
2. An existing locked entry (confirmed, edited or form-sourced) is retained
   against any pattern or LLM candidate, whatever its confidence.
3. Otherwise the incoming entry replaces the existing one only when its rank
   (has value, confidence) is strictly higher. Any valued entry outranks a
   keyword-only one.
4. Ties keep the existing entry, so the first applied wins.

Properties that follow:
- merge(merge(A, B), B) == merge(A, B)
- merging B then C equals C then B when no two candidates for a key share a
  rank (two form submissions for the same key: the later one wins)
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.conflict import ConflictRecord
from ..models.extracted_field import ExtractedField

logger = logging.getLogger(__name__)


def _rank(item: ExtractedField) -> Tuple[bool, float]:
    return (item.has_value, item.confidence)


def resolve(existing: Optional[ExtractedField], incoming: ExtractedField) -> Tuple[bool, str]:
    """
    Decide whether ``incoming`` replaces ``existing`` for the same key.

    Returns:
        (replace, reason)
    """
    if existing is None:
        return True, "new field"
    if incoming.is_locked:
        return True, f"explicit user input ({incoming.source.value}/{incoming.status.value})"
    if existing.is_locked:
        return False, f"existing value locked ({existing.source.value}/{existing.status.value})"
    if _rank(incoming) > _rank(existing):
        if incoming.has_value and not existing.has_value:
            return True, "value found where only keywords matched"
        return True, f"higher confidence ({incoming.confidence:.2f} > {existing.confidence:.2f})"
    return False, f"not higher confidence ({incoming.confidence:.2f} <= {existing.confidence:.2f})"


class ExtractionMerger:
    """Applies the merge policy and keeps an audit trail of value conflicts."""

    def merge(self, existing: Sequence[ExtractedField], incoming: Iterable[ExtractedField]) -> List[ExtractedField]:
        """
        Merge incoming candidates into an existing canonical set.

        Args:
            existing: Current canonical field set
            incoming: Candidates from one source

        Returns:
            New canonical set with exactly one entry per key. Existing keys keep
            their order; new keys follow in arrival order.
        """
        merged, _ = self.merge_with_conflicts(existing, incoming)
        return merged

    def merge_all(self, existing: Sequence[ExtractedField], *sources: Iterable[ExtractedField]) -> List[ExtractedField]:
        """Fold several sources into the canonical set, one at a time, in order."""
        result = list(existing)
        for source in sources:
            result = self.merge(result, source)
        return result

    def merge_with_conflicts(
        self, existing: Sequence[ExtractedField], incoming: Iterable[ExtractedField]
    ) -> Tuple[List[ExtractedField], List[ConflictRecord]]:
        """Merge and return the conflicts that were resolved along the way."""
        by_key: Dict[str, ExtractedField] = {}
        for item in existing:
            # A canonical set has one entry per key; keep the first if it doesn't
            by_key.setdefault(item.key, item)

        conflicts: List[ConflictRecord] = []
        for candidate in incoming:
            current = by_key.get(candidate.key)
            replace, reason = resolve(current, candidate)

            if current is not None and self.detect_conflicts(current, candidate):
                conflicts.append(self._record_conflict(current, candidate, replace, reason))

            if replace:
                by_key[candidate.key] = candidate
            elif current is not None:
                logger.debug(f"Kept existing '{candidate.key}': {reason}")

        return list(by_key.values()), conflicts

    def detect_conflicts(self, existing: ExtractedField, incoming: ExtractedField) -> bool:
        """
        Check if two entries for the same key carry different non-empty values.

        Values are compared after trimming and case-folding.
        """
        if not existing.has_value or not incoming.has_value:
            return False
        return existing.value.strip().casefold() != incoming.value.strip().casefold()

    def _record_conflict(
        self, existing: ExtractedField, incoming: ExtractedField, replaced: bool, reason: str
    ) -> ConflictRecord:
        selected = incoming if replaced else existing
        conflict = ConflictRecord(
            field_name=existing.key,
            source_values={
                f"existing:{existing.source.value}": existing.value,
                f"incoming:{incoming.source.value}": incoming.value,
            },
            selected_source="incoming" if replaced else "existing",
            selected_value=selected.value,
            selection_reason=reason,
        )
        logger.info(
            f"Conflict resolved for field '{existing.key}': kept {conflict.selected_source} "
            f"{selected.source.value} value ({reason})"
        )
        return conflict


_default_merger = ExtractionMerger()


def merge(existing: Sequence[ExtractedField], incoming: Iterable[ExtractedField]) -> List[ExtractedField]:
    """Module-level convenience wrapper around ExtractionMerger.merge."""
    return _default_merger.merge(existing, incoming)
