"""Footnote citation rewriting for Markdown bodies.

Numeric footnotes (``[^1]``) are renamed to stable hex ids
(``[^a1b2c3]``) so a citation keeps its identity when it moves between
documents.  Bare numeric references (``[1]``) are promoted to footnotes,
references without a definition get a placeholder definition, and a
footnotes section header is inserted ahead of the first definition.

Code is never rewritten: fenced blocks, indented blocks and inline code
spans are masked before any other step and restored at the end.

All functions here are pure text transforms; id allocation and the
registry of known citations live in :mod:`mdtidy.services.citations`.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from functools import lru_cache

PLACEHOLDER_TEXT = "Citation text needed"

_MASK = "\x00{}\x00"
_MASK_RE = re.compile(r"\x00(\d+)\x00")
_FENCE_OPEN_RE = re.compile(r"^ {0,3}(`{3,}|~{3,})")
_INDENTED_RE = re.compile(r"^(?: {4}|\t)")
_INLINE_CODE_RE = re.compile(r"``[^\n]*?``|`[^`\n]+`")

_BARE_NUMBER_RE = re.compile(r"(?<![\[\]\\!])\[(\d+)\](?![\[\](:])")
_BARE_DEFINITION_RE = re.compile(r"^( {0,3})\[(\d+)\]:", re.MULTILINE)
_LINK_LABEL_RE = re.compile(r"\]\[(\d+)\]")
_NUMERIC_REF_RE = re.compile(r"\[\^(\d+)\]")
_DEFINITION_RE = re.compile(r"^ {0,3}\[\^([^\]\s]+)\]:", re.MULTILINE)
_GLUED_BEFORE_RE = re.compile(r"(?<=[^\s\[(])(?=\[\^[^\]\s]+\](?!:))")
_GLUED_AFTER_RE = re.compile(r"(\[\^[^\]\s]+\])(?=[^\s:.,;!?)\]'\"\[])")


# ---------------------------------------------------------------------------
# Code masking
# ---------------------------------------------------------------------------


def _closes(line: str, marker: str) -> bool:
    stripped = line.strip()
    return stripped.startswith(marker) and not stripped.strip(marker[0])


def mask_code(text: str) -> tuple[str, list[str]]:
    """Swap every code region for an opaque token.

    Returns the masked text and the saved regions for :func:`restore_code`.
    Line breaks ending a region stay outside its token, so line-anchored
    patterns still see line starts after a code block.
    """
    saved: list[str] = []

    def stash(chunk: str) -> str:
        inner = chunk.rstrip("\r\n")
        saved.append(inner)
        return _MASK.format(len(saved) - 1) + chunk[len(inner) :]

    lines = text.splitlines(keepends=True)
    out: list[str] = []
    after_blank = True
    i = 0
    while i < len(lines):
        line = lines[i]
        fence = _FENCE_OPEN_RE.match(line)
        if fence:
            j = i + 1
            while j < len(lines) and not _closes(lines[j], fence.group(1)):
                j += 1
            end = min(j + 1, len(lines))
            out.append(stash("".join(lines[i:end])))
            i, after_blank = end, False
            continue
        if after_blank and line.strip() and _INDENTED_RE.match(line):
            j = i
            while j < len(lines) and (not lines[j].strip() or _INDENTED_RE.match(lines[j])):
                j += 1
            while not lines[j - 1].strip():
                j -= 1
            out.append(stash("".join(lines[i:j])))
            i, after_blank = j, False
            continue
        out.append(_INLINE_CODE_RE.sub(lambda m: stash(m.group(0)), line))
        after_blank = not line.strip()
        i += 1
    return "".join(out), saved


def restore_code(text: str, saved: list[str]) -> str:
    return _MASK_RE.sub(lambda m: saved[int(m.group(1))], text)


# ---------------------------------------------------------------------------
# Reference rewriting
# ---------------------------------------------------------------------------


@lru_cache(maxsize=8)
def hex_reference_re(length: int) -> re.Pattern[str]:
    """Pattern for ``[^id]`` references whose id is *length* hex digits."""
    return re.compile(rf"\[\^([0-9a-f]{{{length}}})\]")


def promote_bare_numbers(text: str) -> str:
    """``[3]`` -> ``[^3]``, and ``[3]: source`` -> ``[^3]: source``.

    Inline links, wiki links and ``[text][3]`` reference links are left
    alone, as is the ``[3]:`` definition a reference link points at.
    """
    link_labels = set(_LINK_LABEL_RE.findall(text))
    text = _BARE_DEFINITION_RE.sub(
        lambda m: m.group(0) if m.group(2) in link_labels else f"{m.group(1)}[^{m.group(2)}]:",
        text,
    )
    return _BARE_NUMBER_RE.sub(r"[^\1]", text)


def space_references(text: str) -> str:
    """Put one space before a footnote reference and after it when glued to a word.

    Examples:
        >>> space_references("claim[^1]and more")
        'claim [^1] and more'
        >>> space_references("end of sentence [^1].")
        'end of sentence [^1].'
    """
    text = _GLUED_BEFORE_RE.sub(" ", text)
    return _GLUED_AFTER_RE.sub(r"\1 ", text)


def definition_text(text: str, label: str) -> str | None:
    """The text of the ``[^label]:`` definition in *text*, if any."""
    pattern = rf"^ {{0,3}}\[\^{re.escape(label)}\]:[ \t]*(.*?)[ \t\r]*$"
    match = re.search(pattern, text, re.MULTILINE)
    if match is None or not match.group(1):
        return None
    return match.group(1)


def defined_labels(text: str) -> set[str]:
    return set(_DEFINITION_RE.findall(text))


def renumber(text: str, id_for: Callable[[str, str | None], str]) -> tuple[str, dict[str, str]]:
    """Rename numeric footnotes, references and definitions alike.

    *id_for* receives each distinct number with its definition text (None
    when undefined) and returns the replacement id.  Returns the new text
    and the ``number -> id`` mapping.
    """
    numbers = dict.fromkeys(_NUMERIC_REF_RE.findall(text))
    mapping = {number: id_for(number, definition_text(text, number)) for number in numbers}
    if not mapping:
        return text, mapping
    renamed = _NUMERIC_REF_RE.sub(lambda m: f"[^{mapping[m.group(1)]}]", text)
    return renamed, mapping


def _newline(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def ensure_definitions(
    text: str, hex_length: int, text_for: Callable[[str], str | None]
) -> tuple[str, list[str]]:
    """Append a definition for every hex reference that has none.

    The definition text comes from *text_for* (the registry) and falls
    back to :data:`PLACEHOLDER_TEXT`.  Returns the new text and the ids
    that were given definitions.
    """
    defined = defined_labels(text)
    referenced = dict.fromkeys(hex_reference_re(hex_length).findall(text))
    missing = [label for label in referenced if label not in defined]
    if not missing:
        return text, []

    nl = _newline(text)
    definitions = (nl * 2).join(
        f"[^{label}]: {text_for(label) or PLACEHOLDER_TEXT}" for label in missing
    )
    body = text.rstrip(" \t\r\n")
    return f"{body}{nl}{nl}{definitions}{nl}", missing


def ensure_section(text: str, header: str, separator: str) -> tuple[str, bool]:
    """Insert *header* and *separator* ahead of the first footnote definition.

    Nothing happens when the document has no definitions or already
    carries the header line.
    """
    first = _DEFINITION_RE.search(text)
    if first is None:
        return text, False
    if re.search(rf"^{re.escape(header)}[ \t]*\r?$", text, re.MULTILINE | re.IGNORECASE):
        return text, False

    nl = _newline(text)
    section = f"{header}{nl}{nl}{separator}{nl}{nl}"
    before = text[: first.start()].rstrip(" \t\r\n")
    after = text[first.start() :]
    if not before:
        return section + after, True
    return f"{before}{nl}{nl}{section}{after}", True
