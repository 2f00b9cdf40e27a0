"""Citation pass — footnote renaming backed by a project-wide registry.

The registry (``.mdtidy/citation-registry.json`` by default) maps each hex
footnote id to its source text and the files that cite it.  When a
document's numeric footnote has the same definition text as a known
citation, the known id is reused, so one source keeps one id across the
whole corpus.

INVARIANT: processing an already-processed body changes nothing.

INVARIANT: the registry file is replaced atomically; a failed save
leaves the previous registry in place.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic.alias_generators import to_camel

from mdtidy.config.models import CitationConfig
from mdtidy.domain.footnotes import (
    PLACEHOLDER_TEXT,
    definition_text,
    defined_labels,
    ensure_definitions,
    ensure_section,
    hex_reference_re,
    mask_code,
    promote_bare_numbers,
    renumber,
    restore_code,
    space_references,
)
from mdtidy.services._helpers import now_iso

logger = logging.getLogger(__name__)


class CitationRegistryError(ValueError):
    """The registry file exists but cannot be read."""


class CitationRecord(BaseModel):
    """One known citation.  Unknown keys in the file are kept on save."""

    model_config = {
        "frozen": True,
        "extra": "allow",
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    hex_id: str
    source_text: str
    date_created: str
    date_updated: str
    files: list[str] = Field(default_factory=list)


class CitationRegistry:
    """Hex id -> :class:`CitationRecord`, persisted as JSON.

    Args:
        path: Registry file; None keeps the registry in memory only.
        records: Initial contents.
        clock: Timestamp source for ``date_created``/``date_updated``.
    """

    def __init__(
        self,
        path: Path | None = None,
        records: dict[str, CitationRecord] | None = None,
        *,
        clock: Callable[[], str] = now_iso,
    ) -> None:
        self.path = path
        self._records = dict(records or {})
        self._by_text = {r.source_text: hex_id for hex_id, r in self._records.items()}
        self._clock = clock
        self.dirty = False

    @classmethod
    def load(cls, path: Path, *, clock: Callable[[], str] = now_iso) -> CitationRegistry:
        """Read *path*; a missing file is an empty registry."""
        if not path.exists():
            return cls(path, clock=clock)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                msg = "top level is not an object"
                raise TypeError(msg)
            records = {key: CitationRecord.model_validate(value) for key, value in raw.items()}
        except (OSError, TypeError, ValueError, ValidationError) as exc:
            msg = f"Cannot read citation registry {path}: {exc}"
            raise CitationRegistryError(msg) from exc
        logger.debug("Loaded %d citations from %s", len(records), path)
        return cls(path, records, clock=clock)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, hex_id: object) -> bool:
        return hex_id in self._records

    def get(self, hex_id: str) -> CitationRecord | None:
        return self._records.get(hex_id)

    def id_for_text(self, source_text: str) -> str | None:
        return self._by_text.get(source_text)

    def text_for(self, hex_id: str) -> str | None:
        record = self._records.get(hex_id)
        return record.source_text if record else None

    def record(self, hex_id: str, source_text: str, file: str) -> None:
        """Add or update a citation; a no-op when nothing would change."""
        existing = self._records.get(hex_id)
        if existing is None:
            stamp = self._clock()
            self._store(
                CitationRecord(
                    hex_id=hex_id,
                    source_text=source_text,
                    date_created=stamp,
                    date_updated=stamp,
                    files=[file],
                )
            )
            return
        if existing.source_text == source_text and file in existing.files:
            return
        files = existing.files if file in existing.files else [*existing.files, file]
        if self._by_text.get(existing.source_text) == hex_id:
            del self._by_text[existing.source_text]
        self._store(
            existing.model_copy(
                update={"source_text": source_text, "files": files, "date_updated": self._clock()}
            )
        )

    def _store(self, record: CitationRecord) -> None:
        self._records[record.hex_id] = record
        self._by_text.setdefault(record.source_text, record.hex_id)
        self.dirty = True

    def to_dict(self) -> dict[str, Any]:
        return {
            hex_id: record.model_dump(by_alias=True)
            for hex_id, record in sorted(self._records.items())
        }

    def save(self) -> None:
        """Write the registry through a temp file and an atomic rename."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(f"{self.path.name}.tmp")
        tmp.write_text(json.dumps(self.to_dict(), indent=2) + "\n", encoding="utf-8")
        os.replace(tmp, self.path)
        self.dirty = False
        logger.info("Saved %d citations to %s", len(self._records), self.path)


@dataclass(frozen=True)
class CitationResult:
    body: str
    changed: bool
    converted: int = 0
    definitions_added: int = 0
    section_added: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "converted": self.converted,
            "definitions_added": self.definitions_added,
            "section_added": self.section_added,
        }


class CitationProcessor:
    """Run the footnote rewrite over a document body.

    Steps, in order: mask code; promote ``[N]`` to ``[^N]``; space
    references; rename numeric footnotes to hex ids; add missing
    definitions; add the footnotes section; restore code.

    Args:
        registry: Known citations; updated by :meth:`process` when
            *record* is true.
        config: Id length and section layout.
        new_id: Id generator, injectable for tests.
    """

    def __init__(
        self,
        registry: CitationRegistry,
        *,
        config: CitationConfig | None = None,
        new_id: Callable[[int], str] | None = None,
    ) -> None:
        self.registry = registry
        self._config = config or CitationConfig()
        self._new_id = new_id or _random_hex

    def process(self, body: str, file: str, *, record: bool = True) -> CitationResult:
        length = self._config.hex_length
        masked, saved = mask_code(body)
        text = space_references(promote_bare_numbers(masked))

        taken = set(hex_reference_re(length).findall(text)) | defined_labels(text)

        def id_for(_number: str, source_text: str | None) -> str:
            known = self.registry.id_for_text(source_text) if source_text else None
            if known is not None and known not in taken:
                taken.add(known)
                return known
            return self._allocate(taken)

        text, mapping = renumber(text, id_for)
        text, added = ensure_definitions(text, length, self.registry.text_for)
        text, section_added = ensure_section(
            text, self._config.section_header, self._config.section_separator
        )

        if record:
            for hex_id in dict.fromkeys(hex_reference_re(length).findall(text)):
                source_text = definition_text(text, hex_id)
                if source_text and source_text != PLACEHOLDER_TEXT:
                    self.registry.record(hex_id, source_text, file)

        result = restore_code(text, saved)
        return CitationResult(
            body=result,
            changed=result != body,
            converted=len(mapping),
            definitions_added=len(added),
            section_added=section_added,
        )

    def _allocate(self, taken: set[str]) -> str:
        length = self._config.hex_length
        while True:
            candidate = self._new_id(length)
            # An all-digit id would read back as a numeric footnote.
            if candidate.isdigit() or candidate in taken or candidate in self.registry:
                continue
            taken.add(candidate)
            return candidate


def _random_hex(length: int) -> str:
    return secrets.token_hex((length + 1) // 2)[:length]
