"""
Error taxonomy for the intake engine.

- ExtractionFailure: a single field pattern or normalizer blew up. Recovered
  locally by skipping that field; logged, never shown to the user.
- CollaboratorUnavailable: the language model or document parser failed or
  timed out. Recovered by degrading to pattern-only extraction.
- PersistenceFailure: a save or load failed. Raised to the caller with the
  computed interaction result attached so nothing extracted is lost.
- InvalidPhaseTransition: a phase id without a definition, or an attempt to
  move past the last phase. Configuration bug, always raised.
"""

from typing import Any, Optional


class IntakeError(Exception):
    """Base class for all intake engine errors."""

    pass


class ExtractionFailure(IntakeError):
    """Raised when a field pattern or normalizer fails on some input."""

    def __init__(self, field_key: str, message: str):
        super().__init__(f"{field_key}: {message}")
        self.field_key = field_key


class CollaboratorUnavailable(IntakeError):
    """Raised when an external collaborator (LLM, document parser) fails or times out."""

    pass


class PersistenceFailure(IntakeError):
    """Raised when the persistence gateway fails.

    ``result`` carries the fully computed InteractionResult when the failure
    happened after an interaction was processed, so callers can retry the save
    or keep working in memory.
    """

    def __init__(self, message: str, result: Optional[Any] = None):
        super().__init__(message)
        self.result = result


class InvalidPhaseTransition(IntakeError):
    """Raised for unknown phase ids or moves outside the linear p1..p8 sequence."""

    pass


class UnknownFieldError(IntakeError, KeyError):
    """Raised when a field key is not present in the catalog or the field set."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
