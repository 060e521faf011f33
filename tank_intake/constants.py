"""
Global constants for the intake engine.

Centralizes magic numbers used by extraction, merging, progress evaluation
and orchestration for easier tuning.
"""

# Extraction
PATTERN_MATCH_BONUS = 0.3  # Added to keyword ratio when a regex supplied a value
LLM_CONFIDENCE = 0.8  # Fixed confidence for language-model extractions
FORM_CONFIDENCE = 1.0  # Form submissions and manual edits
EVIDENCE_MAX_LENGTH = 120  # Truncate matched text kept as evidence

# Orchestration
FORM_DISPLAY_THRESHOLD = 3  # Show a form when more than this many required fields are missing
MAX_SUGGESTION_LABELS = 3  # Labels named in a single suggestion / message
DEFAULT_LLM_TIMEOUT_SECONDS = 15.0  # Bounded join on the LLM fan-out
LLM_MAX_WORKERS = 2  # Worker threads reserved for LLM extraction
LLM_INPUT_MAX_CHARS = 12000  # Text passed to the language model after sanitizing

# Phases
PHASE_ORDER = ("p1", "p2", "p3", "p4", "p5", "p6", "p7", "p8")
INITIAL_PHASE = "p1"

# Persistence
PROJECT_ID_PREFIX = "TF-"
PROJECT_ID_HEX_LENGTH = 12

# Document parsing
TEXT_MIME_TYPES = {
    "text/plain",
    "text/csv",
    "text/markdown",
    "text/tab-separated-values",
    "application/json",
}
TEXT_ENCODINGS = ("utf-8-sig", "cp932")  # utf-8-sig also accepts plain UTF-8

# User-facing soft warnings
SIMPLIFIED_EXTRACTION_NOTICE = "簡易抽出モードで処理しました（AI解析が利用できませんでした）"
DOCUMENT_PARSE_NOTICE = "ファイルを読み取れませんでした。テキストで情報を入力してください"
