"""
Keyword and regex extraction driven by the field catalog.

For every catalog field:
1. Count catalog keywords present in the case-folded text.
2. Try the field's patterns against the raw text in declaration order. The
   first match supplies the raw value (group 1, or the whole match when the
   pattern has no capture group), which is run through the field normalizer.
3. confidence = min(1, matched/total + 0.3) when a value was found, otherwise
   matched/total.
4. Fields with neither keyword nor pattern evidence are omitted.

Keyword-only evidence is reported as status "missing" with value None and a
note naming the matched keywords. It never counts toward progress and ranks
below any valued entry when merged.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from ..constants import EVIDENCE_MAX_LENGTH, PATTERN_MATCH_BONUS
from ..exceptions import ExtractionFailure
from ..models.extracted_field import ExtractedField, FieldSource, FieldStatus
from ..schemas.field_catalog import FIELD_CATALOG, FieldDefinition

logger = logging.getLogger(__name__)


def keyword_confidence(matched: int, total: int, has_value: bool) -> float:
    """Confidence from keyword coverage plus the pattern bonus."""
    if total <= 0:
        return 0.0
    score = matched / total
    if has_value:
        score += PATTERN_MATCH_BONUS
    return min(score, 1.0)


class PatternExtractor:
    """
    Pure, catalog-driven extractor.

    Holds only the (immutable) list of field definitions it applies, so one
    instance can be shared across sessions and threads.
    """

    def __init__(self, definitions: Optional[Iterable[FieldDefinition]] = None):
        self.definitions: Tuple[FieldDefinition, ...] = tuple(
            definitions if definitions is not None else FIELD_CATALOG.values()
        )

    def extract(self, text: str) -> List[ExtractedField]:
        """
        Extract candidate fields from free text.

        Args:
            text: Raw user text or parsed document text

        Returns:
            One ExtractedField per field with any evidence, in catalog order
        """
        if not text or not text.strip():
            return []

        folded = text.casefold()
        results: List[ExtractedField] = []

        for definition in self.definitions:
            try:
                item = self._extract_field(definition, text, folded)
            except ExtractionFailure as e:
                logger.warning(f"Skipping field after extraction failure: {e}")
                continue
            if item is not None:
                results.append(item)

        logger.debug(
            f"Pattern extraction found {sum(1 for r in results if r.has_value)} values, "
            f"{sum(1 for r in results if not r.has_value)} keyword-only hits"
        )
        return results

    def _extract_field(self, definition: FieldDefinition, text: str, folded: str) -> Optional[ExtractedField]:
        matched_keywords = [kw for kw in definition.keywords if kw.casefold() in folded]

        value, evidence = self._match_value(definition, text)

        if not matched_keywords and value is None:
            return None

        confidence = keyword_confidence(len(matched_keywords), len(definition.keywords), value is not None)

        if value is None:
            return ExtractedField(
                key=definition.key,
                label=definition.label,
                category=definition.category,
                value=None,
                confidence=confidence,
                source=FieldSource.PATTERN,
                status=FieldStatus.MISSING,
                required=definition.required,
                evidence=", ".join(matched_keywords),
                note=f"キーワード: {', '.join(matched_keywords)}",
            )

        return ExtractedField(
            key=definition.key,
            label=definition.label,
            category=definition.category,
            value=value,
            confidence=confidence,
            source=FieldSource.PATTERN,
            status=FieldStatus.EXTRACTED,
            required=definition.required,
            evidence=evidence,
        )

    def _match_value(self, definition: FieldDefinition, text: str) -> Tuple[Optional[str], Optional[str]]:
        """First matching pattern -> (normalized value, matched text)."""
        for pattern in definition.patterns:
            try:
                match = pattern.search(text)
                if not match:
                    continue
                raw = match.group(1) if match.re.groups and match.group(1) is not None else match.group(0)
                value = definition.normalizer(raw)
            except Exception as e:
                raise ExtractionFailure(definition.key, f"{type(e).__name__}: {e}") from e

            evidence = match.group(0).strip()[:EVIDENCE_MAX_LENGTH]
            # A match that normalizes to nothing is keyword-level evidence only
            return value, evidence if value is not None else None
        return None, None


_default_extractor: Optional[PatternExtractor] = None


def get_pattern_extractor() -> PatternExtractor:
    """Shared extractor over the full catalog."""
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = PatternExtractor()
    return _default_extractor


def extract_fields(text: str) -> List[ExtractedField]:
    """Convenience wrapper around the shared extractor."""
    return get_pattern_extractor().extract(text)
