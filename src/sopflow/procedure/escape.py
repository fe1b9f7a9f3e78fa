"""Markdown escaping and cell encoding for SOP documents."""

import json
import re

from pydantic import JsonValue

# A table cell boundary is a pipe not preceded by a backslash.
_CELL_SPLIT = re.compile(r"(?<!\\)\|")

NO_DEFAULT = "-"


def escape_pipe(text: str) -> str:
    """Escape pipe characters for table cells."""
    return text.replace("|", "\\|")


def unescape_pipe(text: str) -> str:
    """Reverse escape_pipe."""
    return text.replace("\\|", "|")


def escape_table_cell(text: str) -> str:
    """Escape content for safe use in markdown table cells.

    Newlines become spaces and pipes are escaped. Runs of inner whitespace
    are kept so encoded values survive a round trip.
    """
    text = text.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")
    return escape_pipe(text).strip()


def escape_inline_code(text: str) -> str:
    """Escape content for use in inline code spans.

    If text contains backticks, uses double backticks with spacing.
    """
    if "`" not in text:
        return f"`{text}`"
    return f"`` {text} ``"


def unwrap_inline_code(text: str) -> str:
    """Strip an inline code span written by escape_inline_code."""
    text = text.strip()
    if text.startswith("`` ") and text.endswith(" ``"):
        return text[3:-3]
    if len(text) >= 2 and text.startswith("`") and text.endswith("`"):
        return text[1:-1]
    return text


def split_table_row(line: str) -> list[str]:
    """Split a ``| a | b |`` row into unescaped, stripped cells."""
    body = line.strip()
    if body.startswith("|"):
        body = body[1:]
    if body.endswith("|") and not body.endswith("\\|"):
        body = body[:-1]
    return [unescape_pipe(cell.strip()) for cell in _CELL_SPLIT.split(body)]


def _is_plain_string(value: str) -> bool:
    if not value or value == NO_DEFAULT:
        return False
    if value != value.strip():
        return False
    if any(ch in value for ch in ("\n", "\r", "\\")):
        return False
    try:
        json.loads(value)
    except ValueError:
        return True
    return False


def encode_cell_value(value: JsonValue) -> str:
    """Encode a JSON value for a table cell so decode_cell_value inverts it.

    ``None`` is written as ``-``. Strings that cannot be mistaken for JSON
    are written verbatim; everything else is written as JSON.
    """
    if value is None:
        return NO_DEFAULT
    if isinstance(value, str) and _is_plain_string(value):
        return value
    return json.dumps(value, ensure_ascii=False)


def decode_cell_value(cell: str) -> JsonValue:
    """Decode a table cell written by encode_cell_value."""
    if cell == NO_DEFAULT or cell == "":
        return None
    try:
        return json.loads(cell)
    except ValueError:
        return cell
