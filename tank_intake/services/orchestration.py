"""
Orchestration coordinator - the per-interaction decision function.

One call handles one user interaction end to end:

    interaction -> pattern extraction (+ LLM extraction on the worker pool)
                -> merge into the canonical field set
                -> evaluate the current phase
                -> actions (proceed_phase / show_form / update_status) + message

The coordinator keeps no per-session state. Every call takes a SessionState
and returns a new one inside the InteractionResult, so independent sessions
can share one coordinator.
"""

import logging
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..config import Settings
from ..constants import (
    DEFAULT_LLM_TIMEOUT_SECONDS,
    DOCUMENT_PARSE_NOTICE,
    FORM_DISPLAY_THRESHOLD,
    INITIAL_PHASE,
    LLM_MAX_WORKERS,
    MAX_SUGGESTION_LABELS,
    SIMPLIFIED_EXTRACTION_NOTICE,
)
from ..db.project_store import PersistenceGateway
from ..exceptions import CollaboratorUnavailable, InvalidPhaseTransition, PersistenceFailure
from ..extractors.normalizers import normalize_text
from ..extractors.pattern_extractor import PatternExtractor
from ..models.conflict import ConflictRecord
from ..models.extracted_field import ExtractedField, FieldCategory
from ..models.progress import ProgressStatus
from ..models.project_info import ProjectInfo
from ..models.session import (
    Action,
    ActionType,
    FileInput,
    FormInput,
    Interaction,
    InteractionResult,
    SessionState,
    TextInput,
)
from ..schemas.field_catalog import field_label, field_question, get_field_definition, known_field_keys
from ..schemas.phase_definitions import next_phase_id, phase_definition_for
from ..utils.logger import IntakeLogger
from ..utils.worker_pool import WorkerPool
from .document_parser import DocumentParser, PlainTextDocumentParser
from .extraction_merger import ExtractionMerger
from .progress_evaluator import PhaseProgressEvaluator
from .review import confirm_fields, edit_field, form_entry, reset_field

logger = logging.getLogger(__name__)

LLMExtractor = Callable[[str, Sequence[str]], List[ExtractedField]]

PERSISTENCE_FAILURE_NOTICE = "保存に失敗しました。入力内容は保持されていますが、再度保存してください"

# Confirmation per submitted form
FORM_RESPONSES = {
    "site_info": "敷地情報を登録しました。",
    "building_overview": "建物概要を登録しました。",
    "tank_spec": "タンク仕様を登録しました。",
}
DEFAULT_FORM_RESPONSE = "情報を登録しました。"

# Category for form keys missing from the catalog
FORM_CATEGORIES = {
    "site_info": FieldCategory.SITE,
    "building_overview": FieldCategory.BUILDING,
    "tank_spec": FieldCategory.TANK,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _join_labels(keys: Sequence[str]) -> str:
    return "、".join(field_label(k) for k in keys[:MAX_SUGGESTION_LABELS])


def select_form_type(phase_id: str, progress: ProgressStatus) -> str:
    """
    Pick the form to show for the fields still missing.

    - tank_spec: design policy phase (tank dimensions and conditions)
    - site_info: both the site address and site area are unknown
    - building_overview: floor area or floor count is unknown
    - dynamic: anything else, built from the missing field list
    """
    incomplete = set(progress.missing_fields) | set(progress.missing_optional_fields)
    if phase_id == "p2":
        return "tank_spec"
    if {"siteAddress", "siteArea"} <= incomplete:
        return "site_info"
    if {"totalFloorArea", "numberOfFloors"} & incomplete:
        return "building_overview"
    return "dynamic"


class OrchestrationCoordinator:
    """Stateless (per session) interaction handler."""

    def __init__(
        self,
        pattern_extractor: Optional[PatternExtractor] = None,
        llm_extractor: Optional[LLMExtractor] = None,
        document_parser: Optional[DocumentParser] = None,
        persistence: Optional[PersistenceGateway] = None,
        merger: Optional[ExtractionMerger] = None,
        evaluator: Optional[PhaseProgressEvaluator] = None,
        llm_timeout_seconds: float = DEFAULT_LLM_TIMEOUT_SECONDS,
        form_display_threshold: int = FORM_DISPLAY_THRESHOLD,
        worker_pool: Optional[WorkerPool] = None,
        interaction_logger: Optional[IntakeLogger] = None,
    ):
        """
        Args:
            pattern_extractor: Keyword/regex extractor (default: full catalog)
            llm_extractor: Optional callable (text, known_keys) -> fields; may raise
            document_parser: Callable (bytes, mime_type) -> text
            persistence: Optional gateway; when set, every interaction is saved
            merger: Merge policy implementation
            evaluator: Phase progress evaluator
            llm_timeout_seconds: Bound on the LLM join
            form_display_threshold: Show a form when more required fields are missing
            worker_pool: Pool running the LLM extractor
            interaction_logger: Optional structured logger for per-interaction records
        """
        self.pattern_extractor = pattern_extractor or PatternExtractor()
        self.llm_extractor = llm_extractor
        self.document_parser = document_parser or PlainTextDocumentParser()
        self.persistence = persistence
        self.merger = merger or ExtractionMerger()
        self.evaluator = evaluator or PhaseProgressEvaluator()
        self.llm_timeout_seconds = llm_timeout_seconds
        self.form_display_threshold = form_display_threshold
        self.pool = worker_pool or WorkerPool(max_workers=LLM_MAX_WORKERS)
        self.interaction_logger = interaction_logger

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        persistence: Optional[PersistenceGateway] = None,
        llm_extractor: Optional[LLMExtractor] = None,
        interaction_logger: Optional[IntakeLogger] = None,
    ) -> "OrchestrationCoordinator":
        """Build a coordinator from runtime settings."""
        if llm_extractor is None and settings.llm_enabled:
            from ..llm.field_extractor import LanguageModelFieldExtractor

            llm_extractor = LanguageModelFieldExtractor(
                model=settings.llm_model, timeout_seconds=settings.llm_timeout_seconds
            )
        return cls(
            llm_extractor=llm_extractor,
            persistence=persistence,
            llm_timeout_seconds=settings.llm_timeout_seconds,
            form_display_threshold=settings.form_display_threshold,
            interaction_logger=interaction_logger,
        )

    def close(self) -> None:
        """Release worker threads. Abandoned LLM calls are not waited for."""
        self.pool.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def new_session(self, project_id: Optional[str] = None) -> SessionState:
        """Fresh session at the first phase with an empty field set."""
        return SessionState(project_id=project_id, phase=INITIAL_PHASE)

    def resume_session(self, project_id: str, phase: str = INITIAL_PHASE) -> SessionState:
        """
        Rebuild a session from persisted fields.

        The phase is marked satisfied if the loaded fields already meet its
        threshold, so resuming does not re-propose the same transition.

        Raises:
            PersistenceFailure: no gateway configured, or the load failed
            InvalidPhaseTransition: unknown phase
        """
        if self.persistence is None:
            raise PersistenceFailure("No persistence gateway configured")
        try:
            fields = self.persistence.load_fields(project_id)
        except PersistenceFailure:
            raise
        except Exception as e:
            raise PersistenceFailure(f"Failed to load project {project_id}: {e}") from e

        progress = self.evaluator.evaluate_phase(phase, fields)
        logger.info(f"Resumed project {project_id} at {phase} with {len(fields)} fields ({progress.progress}%)")
        return SessionState(
            project_id=project_id,
            phase=phase,
            fields=fields,
            phase_satisfied=progress.gated and progress.can_proceed,
        )

    def advance_phase(self, session: SessionState) -> SessionState:
        """
        Move to the immediate next phase.

        Raises:
            InvalidPhaseTransition: unknown phase or already at the last phase
        """
        phase_definition_for(session.phase)
        target = next_phase_id(session.phase)
        if target is None:
            raise InvalidPhaseTransition(f"'{session.phase}' is the last phase")

        progress = self.evaluator.evaluate_phase(session.phase, session.fields)
        if progress.gated and not progress.can_proceed:
            logger.warning(
                f"Advancing from {session.phase} to {target} below threshold ({progress.progress}%)"
            )
        logger.info(f"Phase transition {session.phase} -> {target}")
        return session.model_copy(update={"phase": target, "phase_satisfied": False, "updated_at": _utcnow()})

    def progress_for(self, session: SessionState) -> ProgressStatus:
        """Current progress of a session's phase."""
        return self.evaluator.evaluate_phase(session.phase, session.fields)

    def progress_display(self, session: SessionState) -> Dict[str, Any]:
        """Progress panel contents for a session's current phase."""
        return self.evaluator.progress_display(self.progress_for(session))

    # ------------------------------------------------------------------
    # Interactions
    # ------------------------------------------------------------------

    def handle_interaction(self, interaction: Interaction, session: SessionState) -> InteractionResult:
        """
        Handle one user interaction.

        Args:
            interaction: TextInput, FormInput or FileInput
            session: Current session state (not modified)

        Returns:
            InteractionResult with the new session state

        Raises:
            InvalidPhaseTransition: session.phase has no definition
            PersistenceFailure: persistence is configured and the save failed;
                ``.result`` holds the computed InteractionResult
        """
        # Fail fast on a bad phase before doing any work
        phase_definition_for(session.phase)

        warnings: List[str] = []
        if isinstance(interaction, TextInput):
            kind = "text"
            sources, warnings = self._extract_from_text(interaction.text)
        elif isinstance(interaction, FormInput):
            kind = "form"
            sources = [self._form_fields(interaction)]
        elif isinstance(interaction, FileInput):
            kind = "file"
            sources, warnings = self._extract_from_file(interaction)
        else:
            raise TypeError(f"Unsupported interaction type: {type(interaction).__name__}")

        updated = list(session.fields)
        conflicts: List[ConflictRecord] = []
        for source in sources:
            updated, found = self.merger.merge_with_conflicts(updated, source)
            conflicts.extend(found)

        form_type = interaction.form_type if isinstance(interaction, FormInput) else None
        return self._finalize(session, updated, warnings, kind, conflicts, form_type)

    def confirm_review(self, session: SessionState, edits: Optional[Dict[str, str]] = None) -> InteractionResult:
        """
        Apply review edits, confirm every valued field and re-evaluate.

        Raises:
            UnknownFieldError: an edit names a key outside the catalog and field set
        """
        phase_definition_for(session.phase)
        fields = list(session.fields)
        for key, value in (edits or {}).items():
            fields = edit_field(fields, key, value)
        fields = confirm_fields(fields)
        return self._finalize(session, fields, [], "review", [])

    def reset_field(self, session: SessionState, key: str) -> InteractionResult:
        """
        Drop one field from the canonical set, releasing any lock on it.

        Raises:
            UnknownFieldError: the key is not in the session's field set
        """
        phase_definition_for(session.phase)
        fields = reset_field(session.fields, key)
        logger.info(f"Reset field {key} in session {session.session_id}")
        return self._finalize(session, fields, [], "reset", [])

    def _extract_from_text(self, text: str) -> Tuple[List[List[ExtractedField]], List[str]]:
        """Pattern extraction here, LLM extraction on the pool, joined with a timeout."""
        warnings: List[str] = []
        future = None
        if self.llm_extractor is not None and text.strip():
            future = self.pool.submit(self.llm_extractor, text, known_field_keys())

        pattern_fields = self.pattern_extractor.extract(text)

        llm_fields: List[ExtractedField] = []
        if future is not None:
            try:
                llm_fields = list(future.result(timeout=self.llm_timeout_seconds))
            except FuturesTimeoutError:
                future.cancel()
                logger.warning(f"LLM extraction timed out after {self.llm_timeout_seconds}s, using pattern results only")
                warnings.append(SIMPLIFIED_EXTRACTION_NOTICE)
            except CollaboratorUnavailable as e:
                logger.warning(f"LLM extraction unavailable, using pattern results only: {e}")
                warnings.append(SIMPLIFIED_EXTRACTION_NOTICE)
            except Exception as e:
                logger.warning(
                    f"LLM extractor raised {type(e).__name__}: {e}, using pattern results only", exc_info=True
                )
                warnings.append(SIMPLIFIED_EXTRACTION_NOTICE)

        return [pattern_fields, llm_fields], warnings

    def _extract_from_file(self, file_input: FileInput) -> Tuple[List[List[ExtractedField]], List[str]]:
        try:
            text = self.document_parser(file_input.content, file_input.mime_type)
        except CollaboratorUnavailable as e:
            logger.warning(f"Document parser failed for {file_input.file_name or file_input.mime_type}: {e}")
            return [], [DOCUMENT_PARSE_NOTICE]
        except Exception as e:
            logger.warning(f"Document parser raised {type(e).__name__}: {e}", exc_info=True)
            return [], [DOCUMENT_PARSE_NOTICE]
        return self._extract_from_text(text)

    def _form_fields(self, form_input: FormInput) -> List[ExtractedField]:
        """Map submitted values 1:1 to confirmed form entries. Empty values are skipped."""
        fields: List[ExtractedField] = []
        for key, raw in form_input.values.items():
            if raw is None:
                continue
            if isinstance(raw, (list, tuple)):
                raw = ", ".join(str(v) for v in raw if v is not None and str(v).strip())
            value = normalize_text(str(raw))
            if not value:
                continue
            fields.append(form_entry(key, value, FORM_CATEGORIES.get(form_input.form_type, FieldCategory.OTHER)))
        return fields

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    def _finalize(
        self,
        session: SessionState,
        updated: List[ExtractedField],
        warnings: List[str],
        kind: str,
        conflicts: List[ConflictRecord],
        form_type: Optional[str] = None,
    ) -> InteractionResult:
        progress = self.evaluator.evaluate_phase(session.phase, updated)
        first_completion = (
            progress.gated and progress.can_proceed and not session.phase_satisfied and progress.next_phase is not None
        )
        changed = self._changed_fields(session.fields, updated)

        new_session = session.model_copy(
            update={"fields": updated, "phase_satisfied": progress.can_proceed, "updated_at": _utcnow()}
        )

        persistence_error: Optional[Exception] = None
        if self.persistence is not None:
            try:
                project_id = self.persistence.persist_fields(session.project_id, updated)
                new_session = new_session.model_copy(update={"project_id": project_id})
            except Exception as e:
                logger.error(f"Failed to persist fields for project {session.project_id}: {e}")
                persistence_error = e
                warnings = warnings + [PERSISTENCE_FAILURE_NOTICE]

        actions = self._decide_actions(new_session, progress, first_completion, conflicts)
        message = self._compose_message(kind, changed, progress, first_completion, warnings, updated, form_type)

        result = InteractionResult(
            session=new_session,
            updated_fields=updated,
            progress=progress,
            actions=actions,
            message=message,
            warnings=warnings,
        )

        logger.info(
            f"Handled {kind} interaction [phase={session.phase} progress={progress.progress}% "
            f"changed={len(changed)} actions={','.join(result.action_types())}]"
        )

        if self.interaction_logger is not None:
            self.interaction_logger.log_interaction(
                kind, session.phase, progress.progress, len(changed), result.action_types()
            )

        if persistence_error is not None:
            raise PersistenceFailure(f"Failed to persist fields: {persistence_error}", result=result) from persistence_error
        return result

    def _decide_actions(
        self,
        session: SessionState,
        progress: ProgressStatus,
        first_completion: bool,
        conflicts: List[ConflictRecord],
    ) -> List[Action]:
        actions: List[Action] = []
        project_info = ProjectInfo.from_fields(session.fields)

        if first_completion:
            actions.append(
                Action(
                    type=ActionType.PROCEED_PHASE,
                    payload={
                        "current_phase": progress.phase,
                        "next_phase": progress.next_phase,
                        "phase_name": phase_definition_for(progress.next_phase).name,
                    },
                )
            )

        if len(progress.missing_fields) > self.form_display_threshold:
            actions.append(
                Action(
                    type=ActionType.SHOW_FORM,
                    payload={
                        "form_type": select_form_type(progress.phase, progress),
                        "phase": progress.phase,
                        "fields": [self._form_field_spec(key) for key in progress.missing_fields],
                        "defaults": project_info.form_defaults(),
                    },
                )
            )

        actions.append(
            Action(
                type=ActionType.UPDATE_STATUS,
                payload={
                    "project_id": session.project_id,
                    "fields": [f.model_dump(mode="json") for f in session.fields],
                    "progress": progress.model_dump(mode="json"),
                    "project_info": project_info.model_dump(mode="json"),
                    "conflicts": [c.model_dump(mode="json") for c in conflicts],
                },
            )
        )
        return actions

    @staticmethod
    def _form_field_spec(key: str) -> Dict[str, Any]:
        definition = get_field_definition(key)
        return {
            "key": key,
            "label": field_label(key),
            "category": definition.category.value if definition else "other",
            "question": field_question(key),
            "required": True,
        }

    @staticmethod
    def _changed_fields(before: Sequence[ExtractedField], after: Sequence[ExtractedField]) -> List[ExtractedField]:
        """Valued entries that are new or whose value changed."""
        previous = {f.key: f for f in before}
        changed = []
        for item in after:
            if not item.has_value:
                continue
            old = previous.get(item.key)
            if old is None or old.value != item.value or old.status != item.status:
                changed.append(item)
        return changed

    def _compose_message(
        self,
        kind: str,
        changed: List[ExtractedField],
        progress: ProgressStatus,
        first_completion: bool,
        warnings: List[str],
        fields: Sequence[ExtractedField],
        form_type: Optional[str] = None,
    ) -> str:
        lines: List[str] = []

        if kind == "form":
            lines.append(FORM_RESPONSES.get(form_type or "", DEFAULT_FORM_RESPONSE))
        elif kind == "review":
            lines.append("抽出内容を確定しました。")
        elif kind == "reset":
            lines.append("指定の項目をリセットしました。")
        elif changed:
            lines.append("以下の情報を抽出しました：")
        else:
            lines.append("新しい情報は見つかりませんでした。")

        for item in changed:
            lines.append(f"・{item.label or field_label(item.key)}: {item.value}")

        if first_completion:
            lines.append("")
            lines.append(self.evaluator.completion_message(progress, fields))
            if progress.progress < 100:
                lines.append(f"現在の進捗: {progress.progress}%")
            if progress.missing_fields:
                lines.append(f"未入力の必須項目: {_join_labels(progress.missing_fields)}")
            lines.append(f"「{phase_definition_for(progress.next_phase).name}」に進みますか？")
        elif not progress.gated:
            lines.append("")
            lines.append(f"「{progress.phase_name}」では追加の情報入力は不要です。")
        else:
            lines.append("")
            if progress.progress < 100:
                lines.append(f"現在の進捗: {progress.progress}%")
            if progress.missing_fields:
                remaining = len(progress.missing_fields)
                if kind == "form":
                    lines.append(f"残り{remaining}項目の入力が必要です。")
                lines.append(f"不足している項目: {_join_labels(progress.missing_fields)}")
                lines.append(field_question(progress.missing_fields[0]))
            else:
                lines.append("必須項目はすべて揃っています。")

        for warning in warnings:
            lines.append(f"※ {warning}")

        return "\n".join(lines).strip()
