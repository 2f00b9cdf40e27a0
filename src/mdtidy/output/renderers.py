"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO).  The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json as _json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from mdtidy.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from mdtidy.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode.

    ``check``/``fix`` print only the paths of files that need (or got)
    attention; ``templates`` prints template ids.
    """
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} - {msg}"

    if result.op == "templates":
        return "\n".join(str(item["id"]) for item in result.data.get("items", []))

    files = result.data.get("files")
    if isinstance(files, list):
        return "\n".join(f["path"] for f in files if _needs_attention(f))

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _needs_attention(file: dict[str, Any]) -> bool:
    return bool(file.get("issues") or file.get("changed") or file.get("error"))


def _status_line(console: Console, result: ServiceResult) -> None:
    """Print the OK status line."""
    console.print(Text.assemble(("OK", "md.ok"), (f"  {result.op}", "md.op")))


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    style = "md.path" if key.endswith("path") else ""
    console.print(Text.assemble((f"  {key}: ", "md.key"), (str(value), style)))


def _summary(console: Console, data: dict[str, Any]) -> None:
    for key in ("count", "changed", "written", "issue_count", "failed", "report_path"):
        if key in data:
            _field(console, key, data[key])


def _issue_table(files: list[dict[str, Any]]) -> Table:
    """One row per (file, field) issue."""
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("File", style="md.path")
    table.add_column("Field", style="md.field", no_wrap=True)
    table.add_column("Status")
    table.add_column("Message")

    for file in files:
        name = Path(file["path"]).name
        for issue in file.get("issues", []):
            status = str(issue.get("status", ""))
            table.add_row(
                Text(name),
                Text(str(issue.get("field", ""))),
                Text(status, style=style_for_status(status)),
                Text(str(issue.get("message", ""))),
            )
    return table


def _citation_summary(citations: dict[str, Any]) -> str:
    parts = [
        f"{citations.get('converted', 0)} renamed",
        f"{citations.get('definitions_added', 0)} definitions added",
    ]
    if citations.get("section_added"):
        parts.append("footnotes section added")
    return ", ".join(parts)


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    console.print(Text.assemble(("ERROR", "md.error"), (f"  {result.op}", "md.op"), f" - {msg}"))

    failed_files = err.detail.get("files", {}) if err else {}
    for path, reason in failed_files.items():
        console.print(f"  [md.path]{path}[/md.path]: {reason}")

    if verbose and result.data:
        console.print()
        _summary(console, result.data)
    if verbose and err:
        for k, v in err.detail.items():
            if k != "files":
                console.print(f"    {k}: {v}")


# ── Batch renderers ───────────────────────────────────────────────────


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check results as an issue table."""
    files = result.data.get("files", [])
    count = result.data.get("count", len(files))
    issue_count = result.data.get("issue_count", 0)

    if issue_count == 0:
        console.print(f"[md.ok]OK[/md.ok]  {count} files checked, no issues found.")
        return

    console.print(_issue_table(files))
    if verbose:
        for file in files:
            extra = file.get("extra_fields", [])
            if extra:
                console.print(f"  [md.path]{file['path']}[/md.path] extra: {', '.join(extra)}")
    affected = sum(1 for f in files if f.get("issues"))
    console.print(f"\n{issue_count} issues in {affected} of {count} files")


def _render_fix(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render fix results: summary, then per-file changes."""
    _status_line(console, result)
    _summary(console, result.data)

    for file in result.data.get("files", []):
        if not file.get("changed"):
            continue
        console.print(f"  [md.path]{file['path']}[/md.path]")
        added = file.get("added", [])
        if added:
            console.print(f"    added: {', '.join(added)}")
        for conversion in file.get("conversions", []):
            console.print(f"    renamed: {conversion}")
        citations = file.get("citations")
        if citations:
            console.print(f"    citations: {_citation_summary(citations)}")
        if verbose:
            for group, outcome in file.get("enrichment", {}).items():
                console.print(f"    {group}: {outcome}")


def _render_templates(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render the template registry as a table."""
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    table.add_column("ID", style="md.template", no_wrap=True)
    table.add_column("Name")
    table.add_column("Directories", style="md.path")
    table.add_column("Required")
    if verbose:
        table.add_column("Optional", style="dim")

    for item in result.data.get("items", []):
        row = [
            str(item["id"]),
            str(item["name"]),
            ", ".join(item.get("directories", [])),
            ", ".join(f["name"] for f in item.get("required", [])),
        ]
        if verbose:
            row.append(", ".join(f["name"] for f in item.get("optional", [])))
        table.add_row(*row)

    console.print(table)
    console.print(f"\n{result.data.get('count', 0)} templates")


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        if isinstance(value, (dict, list)):
            _field(console, key, _json.dumps(value, separators=(",", ":")))
        else:
            _field(console, key, value)
    if verbose and result.meta:
        for k, v in result.meta.items():
            console.print(f"    {k}: {v}")


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "check": _render_check,
    "fix": _render_fix,
    "templates": _render_templates,
}
