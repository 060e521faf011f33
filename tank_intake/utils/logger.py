"""
Logging infrastructure for the intake engine.

Provides:
- Structured console (and optional file) output with millisecond timestamps
- key=value suffixes for structured data
- Warning/error tracking for the end-of-session summary

Library modules log through ``logging.getLogger(__name__)``; entry points
call ``configure_global_logging`` once so those records share this format.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

_FORMAT = "%(asctime)s | %(levelname)-8s | %(filename)s:%(lineno)d | %(message)s"
_PHASE_FORMAT = "%(asctime)s | %(levelname)-8s | {phase} | %(filename)s:%(lineno)d | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S,%f"

# Third-party loggers routed through the root handler at WARNING
_QUIET_LIBRARIES = ["LiteLLM", "litellm", "httpx", "httpcore", "urllib3"]


class MillisecondsFormatter(logging.Formatter):
    """Formatter that includes milliseconds."""

    def formatTime(self, record, datefmt=None):  # noqa: N802 - must match parent class method name
        ct = datetime.fromtimestamp(record.created)
        if datefmt and "%f" in datefmt:
            return ct.strftime(datefmt.replace(",%f", "")) + f",{int(record.msecs):03d}"
        elif datefmt:
            return ct.strftime(datefmt)
        return ct.strftime("%Y-%m-%d %H:%M:%S") + f",{int(record.msecs):03d}"


def _format_kwargs(message: str, kwargs: Dict[str, Any]) -> str:
    if not kwargs:
        return message
    formatted_data = " ".join(f"{k}={v}" for k, v in kwargs.items())
    return f"{message} [{formatted_data}]"


def _build_formatter(phase: Optional[str]) -> MillisecondsFormatter:
    fmt_str = _PHASE_FORMAT.format(phase=phase) if phase else _FORMAT
    return MillisecondsFormatter(fmt_str, datefmt=_DATEFMT)


class IntakeLogger:
    """Session logger with structured output and warning/error tracking."""

    def __init__(
        self,
        name: str = "tank_intake",
        log_level: str = "INFO",
        log_file: Optional[str] = None,
        log_dir: Optional[Path] = None,
        phase: Optional[str] = None,
    ):
        """
        Initialize the logger.

        Args:
            name: Logger name
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional log file name
            log_dir: Directory for log files (defaults to ./logs)
            phase: Optional phase label added to every line (e.g. "p1")
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, log_level.upper()))
        self.phase = phase

        # Prevent propagation to root logger to avoid duplicate lines
        self.logger.propagate = False
        if self.logger.handlers:
            self.logger.handlers.clear()

        formatter = _build_formatter(phase)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, log_level.upper()))
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            if log_dir is None:
                log_dir = Path.cwd() / "logs"
            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / log_file

            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

            self.info(f"Logging to file: {log_path}")

        self.errors: List[Dict[str, Any]] = []
        self.warnings: List[Dict[str, Any]] = []

    def debug(self, message: str, **kwargs):
        """Log debug message with optional structured data."""
        self.logger.debug(_format_kwargs(message, kwargs), stacklevel=2)

    def info(self, message: str, **kwargs):
        """Log info message with optional structured data."""
        self.logger.info(_format_kwargs(message, kwargs), stacklevel=2)

    def warning(self, message: str, **kwargs):
        """Log warning message and track for reporting."""
        message = _format_kwargs(message, kwargs)
        self.logger.warning(message, stacklevel=2)
        self.warnings.append({"message": message, "timestamp": datetime.now().isoformat(), "data": kwargs})

    def error(self, message: str, exception: Optional[Exception] = None, **kwargs):
        """Log error message and track for reporting."""
        if exception:
            message = f"{message} | Exception: {exception}"
        message = _format_kwargs(message, kwargs)
        self.logger.error(message, exc_info=exception is not None, stacklevel=2)
        self.errors.append(
            {
                "message": message,
                "exception": str(exception) if exception else None,
                "timestamp": datetime.now().isoformat(),
                "data": kwargs,
            }
        )

    def log_interaction(self, kind: str, phase: str, progress: int, new_fields: int, actions: List[str]):
        """Log the outcome of one handled interaction."""
        self.info(
            "Interaction handled",
            kind=kind,
            phase=phase,
            progress=f"{progress}%",
            new_fields=new_fields,
            actions=",".join(actions),
        )

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of errors and warnings for reporting."""
        return {
            "total_errors": len(self.errors),
            "total_warnings": len(self.warnings),
            "errors": self.errors,
            "warnings": self.warnings,
        }

    def clear_tracking(self):
        """Clear tracked errors and warnings."""
        self.errors = []
        self.warnings = []


def configure_global_logging(log_level: str = "INFO", phase: Optional[str] = None):
    """
    Configure the root logger with the unified format.

    Call this early in application startup so library modules that log via
    ``logging.getLogger(__name__)`` share the same output.

    Args:
        log_level: Logging level to apply globally
        phase: Optional phase label
    """
    level = getattr(logging, log_level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    root_handler = logging.StreamHandler(sys.stdout)
    root_handler.setLevel(level)
    root_handler.setFormatter(_build_formatter(phase))
    root_logger.addHandler(root_handler)

    for lib_name in _QUIET_LIBRARIES:
        lib_logger = logging.getLogger(lib_name)
        lib_logger.handlers.clear()
        lib_logger.propagate = True
        lib_logger.setLevel(max(level, logging.WARNING))
