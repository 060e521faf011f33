"""Prompt utilities for LLM interactions.

Shared helpers for sanitizing user text before it is placed in a prompt.
"""

import re
from typing import Any

_DANGEROUS_PATTERNS = [
    r"\n-{3,}\n",  # Markdown horizontal rules (----)
    r"\n#{1,6}\s",  # Markdown headers that could inject sections
    r"<\|.*?\|>",  # Special tokens like <|im_start|>
    r"\[INST\]|\[/INST\]",  # Llama instruction markers
    r"<<SYS>>|<</SYS>>",  # Llama system markers
    r"Human:|Assistant:",  # Chat-style role markers
    r"<<<|>>>",  # Our own text delimiters
]


def sanitize_for_prompt(text: Any, max_length: int = 5000) -> str:
    """Sanitize text to prevent prompt injection.

    Removes patterns that could break prompt boundaries or inject
    instructions, then truncates excessively long content. Line breaks are
    kept because the extraction patterns rely on them.

    Args:
        text: The text to sanitize (converted to string if not already)
        max_length: Maximum allowed length before truncation

    Returns:
        Sanitized string safe for prompt insertion
    """
    if text is None:
        return ""
    if not isinstance(text, str):
        text = str(text)

    result = text
    for pattern in _DANGEROUS_PATTERNS:
        result = re.sub(pattern, "\n", result, flags=re.IGNORECASE)

    if len(result) > max_length:
        result = result[:max_length] + "... [truncated]"

    return result.strip()
