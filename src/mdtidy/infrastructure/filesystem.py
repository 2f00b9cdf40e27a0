"""Filesystem operations for content files and reports.

Pure parsing/rendering lives in :mod:`mdtidy.domain.frontmatter`
(dependency direction: infrastructure -> domain).  This module handles
actual file I/O and discovery.

INVARIANT: a content file is written with exactly one write call of its
complete new text.  A failed write leaves the previous contents in place
as far as the OS allows; nothing ever writes a partial document.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from pathlib import Path

REPORT_PREFIX = "frontmatter-observer-"

# Directories to skip when discovering content files.
_SKIP_DIRS = frozenset({".mdtidy", ".obsidian", ".git", "node_modules", ".trash"})


def read_text(path: Path) -> str:
    # newline="" on both sides: line endings pass through untranslated.
    with path.open(encoding="utf-8", newline="") as fh:
        return fh.read()


def write_text(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as fh:
        fh.write(text)


async def read_text_async(path: Path) -> str:
    return await asyncio.to_thread(read_text, path)


async def write_text_async(path: Path, text: str) -> None:
    await asyncio.to_thread(write_text, path, text)


def find_markdown_files(root: Path) -> list[Path]:
    """All ``.md`` files under *root*, sorted, skipping tool/VCS directories."""
    if root.is_file():
        return [root] if root.suffix == ".md" else []
    if not root.is_dir():
        return []
    results: list[Path] = []
    for path in root.rglob("*.md"):
        if not path.is_file():
            continue
        if any(part in _SKIP_DIRS for part in path.relative_to(root).parts):
            continue
        results.append(path)
    return sorted(results)


def report_filename(now: datetime) -> str:
    return f"{REPORT_PREFIX}{now.strftime('%Y-%m-%d-%H-%M-%S')}.md"


def write_report(text: str, directory: Path, *, now: datetime | None = None) -> Path:
    """Write a batch report to ``frontmatter-observer-<timestamp>.md`` in *directory*.

    Creates *directory* if it doesn't exist.
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / report_filename(now or datetime.now().astimezone())
    write_text(path, text)
    return path
