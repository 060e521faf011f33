"""
Prompt loader with versioning and content hashing.

Prompts use a frontmatter format:
```
# PROMPT: prompt_name
# VERSION: 1.0.0
# LAST_UPDATED: 2026-01-10
# DESCRIPTION: Brief description
# ---PROMPT_START---
[actual prompt content]
```

The hash is computed from content below the separator only, so the
(version, hash) pair recorded with each LLM response identifies the exact
template text that was used.

Usage:
    from tank_intake.llm.prompt_loader import load_prompt

    prompt = load_prompt("field_extraction")
    prompt.version        # "1.0.0"
    prompt.render(text="...", fields="...")
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_SEPARATOR_RE = re.compile(r"^#\s*---PROMPT_START---\s*$", re.MULTILINE)
_META_RE = re.compile(r"^#\s*(\w+):\s*(.+)$")

# Loaded prompts by (directory, name)
_prompt_cache: Dict[str, "PromptInfo"] = {}


@dataclass(frozen=True)
class PromptInfo:
    """Loaded prompt with metadata."""

    name: str
    version: str
    content: str
    content_hash: str
    last_updated: Optional[str] = None
    description: Optional[str] = None
    file_path: Optional[str] = None

    @property
    def version_tag(self) -> str:
        return f"{self.name}@{self.version}+{self.content_hash[:8]}"

    def render(self, **values: str) -> str:
        """Substitute ``{{name}}`` placeholders. Unknown placeholders are left as is."""
        text = self.content
        for key, value in values.items():
            text = text.replace("{{" + key + "}}", value)
        return text


def _compute_hash(content: str) -> str:
    """Compute SHA256 hash of content, truncated to 16 chars."""
    return hashlib.sha256(content.strip().encode()).hexdigest()[:16]


def _parse_frontmatter(text: str) -> tuple[Dict[str, str], str]:
    """
    Split frontmatter from prompt content.

    Returns:
        (metadata_dict, content_string)
    """
    match = _SEPARATOR_RE.search(text)
    if not match:
        return {}, text.strip()

    metadata = {}
    for line in text[: match.start()].strip().split("\n"):
        line_match = _META_RE.match(line.strip())
        if line_match:
            metadata[line_match.group(1).lower()] = line_match.group(2).strip()

    return metadata, text[match.end() :].strip()


def _get_prompts_dir() -> Path:
    """Get the prompts directory path."""
    return Path(__file__).parent / "prompts"


def load_prompt(name: str, prompts_dir: Optional[Path] = None) -> PromptInfo:
    """
    Load a prompt file with version and hash tracking.

    Args:
        name: Prompt name (without .txt extension)
        prompts_dir: Optional custom prompts directory

    Returns:
        PromptInfo with metadata and content

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    if prompts_dir is None:
        prompts_dir = _get_prompts_dir()

    file_path = prompts_dir / f"{name}.txt"
    cache_key = str(file_path)
    if cache_key in _prompt_cache:
        return _prompt_cache[cache_key]

    if not file_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {file_path}")

    metadata, content = _parse_frontmatter(file_path.read_text(encoding="utf-8"))

    info = PromptInfo(
        name=metadata.get("prompt", name),
        version=metadata.get("version", "0.0.0"),
        content=content,
        content_hash=_compute_hash(content),
        last_updated=metadata.get("last_updated"),
        description=metadata.get("description"),
        file_path=str(file_path),
    )
    _prompt_cache[cache_key] = info
    logger.debug(f"Loaded prompt {info.version_tag}")
    return info


def clear_cache():
    """Clear loaded prompts (useful for testing)."""
    _prompt_cache.clear()
