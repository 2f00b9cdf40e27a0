"""Frontmatter codec for the restricted YAML dialect used in content files.

Supported constructs:

- ``key: value`` scalars (strings, numbers, booleans, ``null``)
- ``key:`` followed by ``- item`` lines (flat string lists)
- ``key: [a, b]`` flow sequences, normalised to lists on read

Anchors, multi-document streams and nested mappings are not supported.
Lines using them are skipped rather than half-parsed, and a document
without a closed block yields ``None``.  Block scalars (``|`` / ``>``) are
read as a single plain string and never written back in block form.

Serialisation is deterministic: the same document always renders to the
same text, so a file that is already tidy is never rewritten.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

DELIMITER = "---"

FieldValue = str | int | float | bool | list[str] | None

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?([eE][-+]?\d+)?$")
_RESERVED_RE = re.compile(r"[:#>|{}\[\],&*!?<=%@`\t]")
_NEWLINES_RE = re.compile(r"[ \t]*(\r\n|\r|\n)+[ \t]*")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:$|[T ])")
_DOUBLE_ESCAPE_RE = re.compile(r'\\(["\\])')
_BLOCK_SCALAR_RE = re.compile(r"^[|>][-+]?\d*$")
_LINE_BREAKS = "\r\n"
BOM = "\ufeff"

_DATE_FORMATS = ("%Y/%m/%d", "%m/%d/%Y", "%B %d, %Y", "%b %d, %Y", "%d %B %Y")


# ---------------------------------------------------------------------------
# Block location
# ---------------------------------------------------------------------------


def _is_delimiter(line: str) -> bool:
    return line.rstrip() == DELIMITER


def _block_lines(text: str) -> list[str] | None:
    """Return the lines between the delimiters, or None without a closed block."""
    lines = text.removeprefix(BOM).replace("\r\n", "\n").split("\n")
    if not lines or not _is_delimiter(lines[0]):
        return None
    for i in range(1, len(lines)):
        if _is_delimiter(lines[i]):
            return lines[1:i]
    return None


def _block_end(text: str) -> int | None:
    """Offset just past the closing delimiter token (before its newline)."""
    offset = 0
    for index, line in enumerate(text.splitlines(keepends=True)):
        content = line.rstrip("\r\n")
        if index == 0:
            if not _is_delimiter(content.removeprefix(BOM)):
                return None
        elif _is_delimiter(content):
            return offset + len(content)
        offset += len(line)
    return None


def has_unclosed_block(text: str) -> bool:
    """True when *text* opens a frontmatter block that never closes."""
    first = text.removeprefix(BOM).split("\n", 1)[0]
    return _is_delimiter(first) and _block_end(text) is None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _dequote(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1].replace("''", "'")
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        return _DOUBLE_ESCAPE_RE.sub(r"\1", raw[1:-1])
    return raw


def _split_flow(inner: str) -> list[str]:
    """Split the inside of ``[a, 'b, c']`` on commas outside quotes."""
    items: list[str] = []
    current: list[str] = []
    quote: str | None = None
    for char in inner:
        if quote:
            current.append(char)
            if char == quote:
                quote = None
        elif char in "'\"":
            quote = char
            current.append(char)
        elif char == ",":
            items.append("".join(current))
            current = []
        else:
            current.append(char)
    items.append("".join(current))
    return [_dequote(item.strip()) for item in items if item.strip()]


def parse_scalar(raw: str) -> FieldValue:
    """Coerce a raw scalar token to its typed value."""
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "'\"":
        return _dequote(raw)
    if raw.startswith("[") and raw.endswith("]"):
        return _split_flow(raw[1:-1])
    if raw == "true":
        return True
    if raw == "false":
        return False
    if raw in ("null", "~"):
        return None
    if _NUMBER_RE.match(raw) and not raw.startswith("0"):
        if "." in raw or "e" in raw or "E" in raw:
            return float(raw)
        return int(raw)
    return raw


def _parse_block(lines: Iterable[str]) -> dict[str, FieldValue]:
    frontmatter: dict[str, FieldValue] = {}
    current_list: list[str] | None = None
    folding: tuple[str, list[str]] | None = None

    for line in lines:
        stripped = line.strip()
        if folding is not None:
            if not stripped or line[0].isspace():
                if stripped:
                    folding[1].append(stripped)
                continue
            frontmatter[folding[0]] = " ".join(folding[1])
            folding = None

        if not stripped or stripped.startswith("#"):
            continue

        if stripped == "-" or stripped.startswith("- "):
            if current_list is not None:
                item = stripped[1:].strip()
                if item:
                    current_list.append(_dequote(item))
            continue

        current_list = None
        if line[0].isspace():
            # Nested mapping or block-scalar continuation: unsupported.
            continue

        key, sep, rest = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue

        rest = rest.strip()
        if not rest:
            current_list = []
            frontmatter[key] = current_list
        elif _BLOCK_SCALAR_RE.match(rest):
            # Block scalars are folded into one plain string.
            folding = (key, [])
            frontmatter[key] = ""
        else:
            frontmatter[key] = parse_scalar(rest)

    if folding is not None:
        frontmatter[folding[0]] = " ".join(folding[1])
    return frontmatter


def extract(text: str) -> dict[str, FieldValue] | None:
    """Parse the leading frontmatter block of *text*.

    Returns ``None`` when the document does not start with the delimiter
    line or the block is never closed.  An empty block yields ``{}``.
    """
    lines = _block_lines(text)
    if lines is None:
        return None
    return _parse_block(lines)


def body_offset(text: str) -> int:
    """Index where the body starts: past the closing delimiter's line break, or 0."""
    end = _block_end(text)
    if end is None:
        return 0
    if text.startswith("\r\n", end):
        return end + 2
    if text.startswith("\n", end):
        return end + 1
    return end


def split(text: str) -> tuple[dict[str, FieldValue] | None, str]:
    """Return ``(frontmatter, body)``; body is *text* itself when there is no block."""
    offset = body_offset(text)
    if offset == 0:
        return None, text
    return extract(text), text[offset:]


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


def coerce_date(value: Any) -> str | None:
    """Render *value* as ``YYYY-MM-DD`` or return None if it is not a date."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = _ISO_DATE_RE.match(text)
    if match:
        try:
            return date(int(match[1]), int(match[2]), int(match[3])).isoformat()
        except ValueError:
            return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def _needs_quoting(text: str) -> bool:
    if not text or text != text.strip():
        return True
    if _RESERVED_RE.search(text):
        return True
    if text[0] in "-?:'\"":
        return True
    # Anything that would read back as a non-string must stay a string.
    return not isinstance(parse_scalar(text), str)


def quote_for_yaml(value: str) -> str:
    """Render a string scalar, quoting only when the bare form is unsafe.

    Single quotes are preferred; a value that itself contains a single
    quote is double-quoted with backslashes and double quotes escaped.
    Newlines are collapsed to single spaces, so block scalars are never
    produced.
    """
    text = _NEWLINES_RE.sub(" ", value)
    if not _needs_quoting(text):
        return text
    if "'" not in text:
        return f"'{text}'"
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _single_quote(value: str) -> str:
    text = _NEWLINES_RE.sub(" ", value)
    return "'" + text.replace("'", "''") + "'"


def _render_scalar(key: str, value: Any, is_date: bool) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if is_date or isinstance(value, date):
        formatted = coerce_date(value)
        if formatted is not None:
            return formatted
    text = value if isinstance(value, str) else str(value)
    if key.endswith("_error"):
        return _single_quote(text)
    return quote_for_yaml(text)


def _render_field(key: str, value: Any, is_date: bool) -> list[str]:
    if isinstance(value, (list, tuple)):
        lines = [f"{key}:"]
        for item in value:
            if item is None:
                continue
            rendered = item if isinstance(item, str) else _render_scalar(key, item, False)
            lines.append(f"  - {quote_for_yaml(rendered)}")
        return lines
    return [f"{key}: {_render_scalar(key, value, is_date)}"]


def serialize(
    frontmatter: Mapping[str, Any],
    field_order: Iterable[str] | None = None,
    *,
    date_fields: Iterable[str] = (),
) -> str:
    """Render *frontmatter* as block text (without delimiters).

    Keys listed in *field_order* come first, the rest follow in document
    order.  Keys named ``date_*`` or listed in *date_fields* render as bare
    ``YYYY-MM-DD`` when their value is a recognisable date.
    """
    keys = [key for key in dict.fromkeys(field_order or ()) if key in frontmatter]
    keys.extend(key for key in frontmatter if key not in keys)
    dates = set(date_fields)

    lines: list[str] = []
    for key in keys:
        is_date = key.startswith("date_") or key in dates
        lines.extend(_render_field(key, frontmatter[key], is_date))
    return "".join(f"{line}\n" for line in lines)


def replace_block(text: str, frontmatter_text: str) -> str:
    """Swap the frontmatter block of *text* for *frontmatter_text*.

    Everything after the closing delimiter is preserved byte for byte, as
    is a leading byte-order mark.  The block uses the line ending of the
    document's first line.  Without an existing block, a new one is
    prepended and separated from the body by exactly one blank line.
    """
    bom = BOM if text.startswith(BOM) else ""
    first_line = text.split("\n", 1)[0]
    newline = "\r\n" if first_line.endswith("\r") else "\n"

    if frontmatter_text and not frontmatter_text.endswith("\n"):
        frontmatter_text += "\n"
    if newline != "\n":
        frontmatter_text = frontmatter_text.replace("\n", newline)
    block = f"{bom}{DELIMITER}{newline}{frontmatter_text}{DELIMITER}"

    end = _block_end(text)
    if end is None:
        body = text.removeprefix(bom).lstrip(_LINE_BREAKS)
        return f"{block}{newline}{newline}{body}"
    return block + text[end:]
