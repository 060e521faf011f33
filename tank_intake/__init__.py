"""Conversational intake and phase-progress orchestration for tank-foundation projects."""

__version__ = "0.1.0"
