"""
Terminal front end for the intake engine.

Usage:
    python -m tank_intake chat                         # New project, LLM enabled
    python -m tank_intake chat --project-id TF-1a2b    # Resume a stored project
    python -m tank_intake chat --no-llm                # Pattern extraction only
    python -m tank_intake extract requirements.txt     # Print pattern extraction as JSON

Chat commands:
    :form key=value ...   submit a form
    :file PATH            load a text/CSV/JSON document
    :confirm              confirm every extracted field
    :reset KEY            drop a field so it can be extracted again
    :next                 move to the next phase
    :status               show the progress panel
    :quit                 exit
"""

import argparse
import json
import mimetypes
import shlex
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from .config import load_settings
from .constants import INITIAL_PHASE
from .db.project_store import JsonFileProjectStore
from .exceptions import IntakeError, PersistenceFailure
from .extractors.pattern_extractor import extract_fields
from .models.session import ActionType, FileInput, FormInput, InteractionResult, SessionState, TextInput
from .services.orchestration import OrchestrationCoordinator
from .utils.logger import IntakeLogger, configure_global_logging

PROMPT = "you> "
STATUS_MARKS = {"complete": "✓", "missing": "✗", "optional": "-"}


def parse_form_args(tokens: List[str]) -> Dict[str, str]:
    """Parse ``key=value`` tokens into a form payload."""
    values: Dict[str, str] = {}
    for token in tokens:
        if "=" not in token:
            raise ValueError(f"Expected key=value, got '{token}'")
        key, value = token.split("=", 1)
        values[key.strip()] = value.strip()
    return values


def read_file_input(path: str) -> FileInput:
    """Load a local file as a FileInput, guessing its MIME type from the name."""
    file_path = Path(path).expanduser()
    mime_type, _ = mimetypes.guess_type(file_path.name)
    return FileInput(
        content=file_path.read_bytes(),
        mime_type=mime_type or "text/plain",
        file_name=file_path.name,
    )


def print_result(result: InteractionResult) -> None:
    print(f"\nassistant> {result.message}\n")
    form = result.action(ActionType.SHOW_FORM)
    if form:
        print(f"[form: {form.payload['form_type']}]")
        for spec in form.payload["fields"]:
            print(f"  {spec['key']}: {spec['label']} - {spec['question']}")
        print("  (:form key=value ... で入力できます)\n")
    proceed = result.action(ActionType.PROCEED_PHASE)
    if proceed:
        print(f"[:next で「{proceed.payload['phase_name']}」に進みます]\n")


def print_status(coordinator: OrchestrationCoordinator, session: SessionState) -> None:
    display = coordinator.progress_display(session)
    print(f"\n{display['phase_name']} ({display['phase']}): {display['overall_progress']}%")
    for item in display["requirements"]:
        print(f"  {STATUS_MARKS[item['status']]} {item['label']}")
    for step in display["next_steps"]:
        print(f"  → {step}")
    if session.project_id:
        print(f"  project: {session.project_id}")
    print()


def run_chat(args: argparse.Namespace) -> int:
    settings = load_settings()
    if args.no_llm:
        settings = replace(settings, llm_enabled=False)
    log_level = args.log_level or settings.log_level

    configure_global_logging(log_level)
    logger = IntakeLogger("tank_intake.chat", log_level=log_level)

    store = JsonFileProjectStore(settings.data_dir)
    coordinator = OrchestrationCoordinator.from_settings(settings, persistence=store, interaction_logger=logger)

    try:
        if args.project_id:
            session = _resume(coordinator, store, args.project_id)
            print(f"Resumed project {args.project_id} at {session.phase}")
        else:
            session = coordinator.new_session()
    except IntakeError as e:
        logger.error("Failed to start session", exception=e)
        known = store.list_projects()
        if known:
            print(f"Known projects: {', '.join(known)}")
        coordinator.close()
        return 1

    print("タンク基礎設計の情報を入力してください (:quit で終了)")
    try:
        while True:
            try:
                line = input(PROMPT).strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break
            if not line:
                continue
            if line == ":quit":
                break

            try:
                session = _dispatch(coordinator, session, line)
                store.save_session(session)
            except PersistenceFailure as e:
                logger.error("Save failed", exception=e)
                if e.result is not None:
                    print_result(e.result)
                    session = e.result.session
            except (IntakeError, ValueError, OSError) as e:
                print(f"error: {e}")
    finally:
        coordinator.close()
        summary = logger.get_error_summary()
        if summary["total_errors"] or summary["total_warnings"]:
            print(f"{summary['total_errors']} errors, {summary['total_warnings']} warnings this session")
    return 0


def _resume(coordinator: OrchestrationCoordinator, store: JsonFileProjectStore, project_id: str) -> SessionState:
    """Resume a project in the phase of its latest session snapshot."""
    snapshot = store.latest_session(project_id)
    phase = snapshot.phase if snapshot else INITIAL_PHASE
    return coordinator.resume_session(project_id, phase=phase)


def _dispatch(coordinator: OrchestrationCoordinator, session: SessionState, line: str) -> SessionState:
    """Run one chat line and return the new session."""
    if not line.startswith(":"):
        result = coordinator.handle_interaction(TextInput(text=line), session)
        print_result(result)
        return result.session

    command, *rest = shlex.split(line)
    if command == ":form":
        result = coordinator.handle_interaction(FormInput(values=parse_form_args(rest)), session)
    elif command == ":file":
        if len(rest) != 1:
            raise ValueError(":file takes exactly one path")
        result = coordinator.handle_interaction(read_file_input(rest[0]), session)
    elif command == ":confirm":
        result = coordinator.confirm_review(session)
    elif command == ":reset":
        if len(rest) != 1:
            raise ValueError(":reset takes exactly one field key")
        result = coordinator.reset_field(session, rest[0])
    elif command == ":next":
        session = coordinator.advance_phase(session)
        print_status(coordinator, session)
        return session
    elif command == ":status":
        print_status(coordinator, session)
        return session
    else:
        raise ValueError(f"Unknown command: {command}")

    print_result(result)
    return result.session


def run_extract(args: argparse.Namespace) -> int:
    path = Path(args.file).expanduser()
    if not path.exists():
        print(f"Error: File not found: {path}")
        return 1
    text = path.read_text(encoding="utf-8")
    fields = extract_fields(text)
    print(json.dumps([f.model_dump(mode="json") for f in fields], ensure_ascii=False, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tank-intake", description="Tank foundation project intake")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Interactive intake chat")
    chat.add_argument("--project-id", type=str, help="Resume a stored project")
    chat.add_argument("--no-llm", action="store_true", help="Use pattern extraction only")
    chat.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override TANK_INTAKE_LOG_LEVEL",
    )
    chat.set_defaults(handler=run_chat)

    extract = subparsers.add_parser("extract", help="Print pattern extraction of a text file as JSON")
    extract.add_argument("file", type=str, help="UTF-8 text file")
    extract.set_defaults(handler=run_extract)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
