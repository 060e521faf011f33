"""
Document parsing collaborator: uploaded bytes -> plain text.

Only text formats are handled here. OCR and PDF parsing happen upstream; any
other MIME type raises CollaboratorUnavailable so the coordinator can answer
with a soft note instead of failing the interaction.
"""

import json
import logging
from typing import Protocol

from ..constants import TEXT_ENCODINGS, TEXT_MIME_TYPES
from ..exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)


class DocumentParser(Protocol):
    """Anything that turns document bytes into text."""

    def __call__(self, content: bytes, mime_type: str) -> str: ...


def _base_mime_type(mime_type: str) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


def decode_text(content: bytes) -> str:
    """
    Decode bytes as UTF-8 (with or without BOM), falling back to CP932.

    Raises:
        CollaboratorUnavailable: no supported encoding decodes the bytes
    """
    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise CollaboratorUnavailable(f"Could not decode document as any of {TEXT_ENCODINGS}")


def _flatten_json(value, prefix: str = "") -> list[str]:
    """Render a JSON document as 'key：value' lines the pattern extractor can read."""
    lines: list[str] = []
    if isinstance(value, dict):
        for key, item in value.items():
            lines.extend(_flatten_json(item, str(key)))
    elif isinstance(value, list):
        if all(not isinstance(v, (dict, list)) for v in value):
            lines.append(f"{prefix}：{'、'.join(str(v) for v in value)}")
        else:
            for item in value:
                lines.extend(_flatten_json(item, prefix))
    elif value is not None:
        lines.append(f"{prefix}：{value}" if prefix else str(value))
    return lines


class PlainTextDocumentParser:
    """Default parser for text/*, CSV and JSON uploads."""

    def __call__(self, content: bytes, mime_type: str) -> str:
        """
        Convert an uploaded document to text.

        Raises:
            CollaboratorUnavailable: unsupported MIME type or undecodable content
        """
        base_type = _base_mime_type(mime_type)
        if base_type not in TEXT_MIME_TYPES:
            raise CollaboratorUnavailable(f"Unsupported document type: {mime_type}")

        text = decode_text(content)

        if base_type == "application/json":
            try:
                text = "\n".join(_flatten_json(json.loads(text)))
            except json.JSONDecodeError as e:
                raise CollaboratorUnavailable(f"Invalid JSON document: {e}") from e
        elif base_type in ("text/csv", "text/tab-separated-values"):
            delimiter = "\t" if base_type == "text/tab-separated-values" else ","
            text = "\n".join(self._row_to_line(row, delimiter) for row in text.splitlines() if row.strip())

        logger.debug(f"Parsed {len(content)} bytes of {base_type} into {len(text)} chars")
        return text

    @staticmethod
    def _row_to_line(row: str, delimiter: str) -> str:
        # Two-column rows read as "label：value"
        cells = [cell.strip().strip('"') for cell in row.split(delimiter)]
        if len(cells) == 2 and cells[0] and cells[1]:
            return f"{cells[0]}：{cells[1]}"
        return " ".join(cell for cell in cells if cell)
