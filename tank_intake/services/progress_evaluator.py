"""
Phase progress evaluation.

Pure functions of (phase definition, canonical field set). Nothing here is
cached or stored; ProgressStatus is recomputed on every interaction.
"""

import logging
from typing import Any, Dict, List, Sequence

from ..constants import MAX_SUGGESTION_LABELS
from ..models.extracted_field import ExtractedField
from ..models.progress import ProgressStatus
from ..schemas.field_catalog import field_label, field_question
from ..schemas.phase_definitions import PhaseDefinition, next_phase_id, phase_definition_for
from ..utils.numbers import round_half_up

logger = logging.getLogger(__name__)

# Shown when a gated phase reaches its threshold
PHASE_COMPLETION_MESSAGES = {
    "p1": "プロジェクトの基本情報を確認しました。次は設計方針を決定します。",
    "p2": "タンク仕様と設計条件を確認しました。設計計算を開始できます。",
    "p3": "設計条件の設定が完了しました。計算を実行します。",
}


def _labels(keys: Sequence[str]) -> str:
    return "、".join(field_label(k) for k in keys[:MAX_SUGGESTION_LABELS])


class PhaseProgressEvaluator:
    """Computes completion, missing fields and next-step hints for a phase."""

    def evaluate(self, phase: PhaseDefinition, fields: Sequence[ExtractedField]) -> ProgressStatus:
        """
        Evaluate one phase against the canonical field set.

        Args:
            phase: Phase definition
            fields: Canonical field set

        Returns:
            ProgressStatus for the phase
        """
        complete_keys = {f.key for f in fields if f.is_complete}

        completed = [k for k in phase.tracked_fields if k in complete_keys]
        missing = [k for k in phase.required_fields if k not in complete_keys]
        missing_optional = [k for k in phase.optional_fields if k not in complete_keys]

        if phase.required_fields:
            done = len(phase.required_fields) - len(missing)
            progress = round_half_up(100 * done / len(phase.required_fields))
        else:
            progress = 100

        # Rounded so 0.55 * 100 == 55.00000000000001 still compares as 55
        can_proceed = progress >= round(phase.completion_threshold * 100, 9)

        suggestions: List[str] = []
        if missing:
            suggestions.append(f"次の必須項目が不足しています: {_labels(missing)}")
        elif missing_optional:
            suggestions.append(f"以下の項目も入力すると、より正確な設計が可能です: {_labels(missing_optional)}")

        return ProgressStatus(
            phase=phase.phase_id,
            phase_name=phase.name,
            completed_fields=completed,
            missing_fields=missing,
            missing_optional_fields=missing_optional,
            progress=progress,
            can_proceed=can_proceed,
            gated=phase.gated,
            next_phase=next_phase_id(phase.phase_id),
            suggestions=suggestions,
        )

    def evaluate_phase(self, phase_id: str, fields: Sequence[ExtractedField]) -> ProgressStatus:
        """
        Evaluate a phase by id.

        Raises:
            InvalidPhaseTransition: phase_id has no definition
        """
        status = self.evaluate(phase_definition_for(phase_id), fields)
        logger.debug(
            f"Phase {phase_id}: progress={status.progress}% can_proceed={status.can_proceed} "
            f"missing={status.missing_fields}"
        )
        return status

    def follow_up_questions(self, status: ProgressStatus) -> List[str]:
        """One question per missing required field, in phase order."""
        return [field_question(key) for key in status.missing_fields]

    def completion_message(self, status: ProgressStatus, fields: Sequence[ExtractedField]) -> str:
        """Message shown when a phase's threshold is first met."""
        message = PHASE_COMPLETION_MESSAGES.get(status.phase)
        if message:
            return message
        item_count = sum(1 for f in fields if f.is_complete)
        return f"{status.phase_name}が完了しました（{item_count}項目を確認）。"

    def progress_display(self, status: ProgressStatus) -> Dict[str, Any]:
        """
        Build the progress panel contents.

        Returns:
            dict with ``requirements`` (key, label, status in
            complete/missing/optional), ``overall_progress`` and ``next_steps``
        """
        phase = phase_definition_for(status.phase)
        completed = set(status.completed_fields)

        requirements = [
            {
                "key": key,
                "label": field_label(key),
                "status": "complete" if key in completed else "missing",
            }
            for key in phase.required_fields
        ]
        requirements.extend(
            {
                "key": key,
                "label": field_label(key),
                "status": "complete" if key in completed else "optional",
            }
            for key in phase.optional_fields
        )

        next_steps = []
        if status.missing_fields:
            next_steps.append(f"残り{len(status.missing_fields)}項目の情報を入力")
        if status.can_proceed and status.next_phase:
            next_steps.append("次のフェーズに進む準備ができています")

        return {
            "phase": status.phase,
            "phase_name": status.phase_name,
            "requirements": requirements,
            "overall_progress": status.progress,
            "next_steps": next_steps,
        }


_default_evaluator = PhaseProgressEvaluator()


def evaluate_phase(phase_id: str, fields: Sequence[ExtractedField]) -> ProgressStatus:
    """Module-level convenience wrapper around PhaseProgressEvaluator.evaluate_phase."""
    return _default_evaluator.evaluate_phase(phase_id, fields)
