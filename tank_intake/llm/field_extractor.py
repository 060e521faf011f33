"""
Language-model field extraction.

Sends the text to the LLM with the ``field_extraction`` prompt and turns the
JSON reply into ExtractedField candidates (source "llm", fixed confidence).
Parsing tolerates markdown fences and the usual LLM JSON breakage.

The extractor raises CollaboratorUnavailable on any failure; the coordinator
runs it behind a bounded timeout and degrades to pattern-only extraction.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from ..constants import LLM_CONFIDENCE, LLM_INPUT_MAX_CHARS
from ..exceptions import CollaboratorUnavailable
from ..models.extracted_field import ExtractedField, FieldSource, FieldStatus
from ..schemas.field_catalog import get_field_definition
from ..utils.prompt_utils import sanitize_for_prompt
from .prompt_loader import PromptInfo, load_prompt

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def _is_empty(val: Any) -> bool:
    """Check if a value is empty, including LLM artifacts like the string 'null'."""
    if val is None or val == "" or val == []:
        return True
    if isinstance(val, str) and val.strip().lower() in ("null", "none", "n/a", "不明", "なし"):
        return True
    return False


def repair_json(json_str: str) -> str:
    """
    Attempt to repair common JSON syntax errors from LLM output.

    Handles:
    - Trailing commas before } or ]
    - Control characters in strings
    - Truncated JSON (attempts to close brackets)
    """
    json_str = json_str.strip()

    json_str = re.sub(r",\s*}", "}", json_str)
    json_str = re.sub(r",\s*]", "]", json_str)

    json_str = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f]", "", json_str)

    open_braces = json_str.count("{") - json_str.count("}")
    open_brackets = json_str.count("[") - json_str.count("]")

    if open_braces > 0 or open_brackets > 0:
        stripped = json_str.rstrip()
        if stripped and stripped[-1] not in '{}[],":\n':
            quote_count = len(re.findall(r'(?<!\\)"', json_str))
            if quote_count % 2 == 1:
                json_str += '"'
        json_str += "]" * open_brackets
        json_str += "}" * open_braces

    return json_str


def extract_json_text(response_text: str) -> str:
    """Pull the JSON payload out of a reply that may wrap it in markdown fences or prose."""
    fenced = _FENCE_RE.search(response_text)
    if fenced:
        return fenced.group(1).strip()
    start = response_text.find("{")
    if start >= 0:
        return response_text[start:].strip()
    return response_text.strip()


def parse_field_response(response_text: str, known_keys: Sequence[str]) -> Dict[str, str]:
    """
    Parse an LLM reply into key -> raw value.

    Accepts ``{"fields": {...}}`` or a flat object. Unknown keys and empty
    values are dropped; lists are joined with ", ".

    Raises:
        ValueError: reply holds no parseable JSON object
    """
    json_str = extract_json_text(response_text)
    if not json_str:
        raise ValueError("Empty JSON in LLM response")

    try:
        data = json.loads(json_str)
    except json.JSONDecodeError:
        data = json.loads(repair_json(json_str))

    if not isinstance(data, dict):
        raise ValueError(f"Expected JSON object, got {type(data).__name__}")

    payload = data.get("fields", data)
    if not isinstance(payload, dict):
        raise ValueError("'fields' must be a JSON object")

    allowed = set(known_keys)
    result: Dict[str, str] = {}
    for key, value in payload.items():
        if key not in allowed or _is_empty(value):
            continue
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value if not _is_empty(v))
        result[key] = str(value).strip()
    return result


def _describe_fields(known_keys: Sequence[str]) -> str:
    lines = []
    for key in known_keys:
        definition = get_field_definition(key)
        if definition is not None:
            lines.append(f"- {key}: {definition.label}")
    return "\n".join(lines)


class LanguageModelFieldExtractor:
    """Callable collaborator: (text, known_keys) -> list of LLM-sourced fields."""

    def __init__(
        self,
        client=None,
        model: Optional[str] = None,
        timeout_seconds: float = 60.0,
        prompt_name: str = "field_extraction",
    ):
        """
        Args:
            client: Object with ``generate(prompt, ..., json_mode=True)`` returning
                something with ``.text``. Defaults to an LLMClient built on first use.
            model: Model name for the default client
            timeout_seconds: Request timeout for the default client
            prompt_name: Prompt template to render
        """
        self._client = client
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.prompt_name = prompt_name

    @property
    def client(self):
        if self._client is None:
            from .llm_client import get_extraction_client

            self._client = get_extraction_client(model=self.model, timeout_seconds=self.timeout_seconds)
        return self._client

    def __call__(self, text: str, known_keys: Sequence[str]) -> List[ExtractedField]:
        """
        Extract fields with the language model.

        Raises:
            CollaboratorUnavailable: the call or the response parsing failed
        """
        if not text or not text.strip():
            return []

        try:
            prompt: PromptInfo = load_prompt(self.prompt_name)
            rendered = prompt.render(
                fields=_describe_fields(known_keys),
                text=sanitize_for_prompt(text, max_length=LLM_INPUT_MAX_CHARS),
            )
            response = self.client.generate(
                rendered, temperature=0.0, json_mode=True, prompt_version=prompt.version_tag
            )
            raw_values = parse_field_response(response.text, known_keys)
        except Exception as e:
            raise CollaboratorUnavailable(f"LLM extraction failed: {type(e).__name__}: {e}") from e

        fields = self._to_fields(raw_values)
        logger.debug(f"LLM extraction returned {len(fields)} fields")
        return fields

    def _to_fields(self, raw_values: Dict[str, str]) -> List[ExtractedField]:
        fields: List[ExtractedField] = []
        for key, raw in raw_values.items():
            definition = get_field_definition(key)
            if definition is None:
                continue
            try:
                value = definition.normalizer(raw)
            except Exception as e:
                logger.warning(f"Dropping LLM value for '{key}': {type(e).__name__}: {e}")
                continue
            if value is None:
                continue
            fields.append(
                ExtractedField(
                    key=key,
                    label=definition.label,
                    category=definition.category,
                    value=value,
                    confidence=LLM_CONFIDENCE,
                    source=FieldSource.LLM,
                    status=FieldStatus.EXTRACTED,
                    required=definition.required,
                    evidence=raw[:120],
                )
            )
        return fields
