"""
Services for the intake engine.

- extraction_merger: confidence-policy reconciliation of field candidates
- review: user edit / confirm / reset operations on the field set
- progress_evaluator: per-phase completion and next-step hints
- document_parser: bytes -> text for uploaded documents
- orchestration: the per-interaction decision function
"""
