"""
Reporting helpers (table or JSON) for synchronisation results.

`print_results` renders the grouped added/updated/removed summary and
`print_records` the refreshed collection listing. Table mode produces a
compact pipe table for CLI usage; JSON is also supported for machine
consumption.
"""
from __future__ import annotations

import json
import sys
from typing import Any, Dict, List, Optional, Sequence, TextIO

from ..core.models import OperationSet, SourceEntry, StoredRecord

ENTRY_COLUMNS: Sequence[str] = ("browserid", "name", "status", "version")
RECORD_COLUMNS: Sequence[str] = ("id", "browserid", "name", "status", "version")


def _fmt(v: Any) -> str:
    s = "" if v is None else str(v)
    return s if s else "—"


def render_table(rows: List[Dict[str, Any]], columns: Sequence[str], indent: str = "") -> List[str]:
    """Return the lines of a pipe table with one column per name in `columns`."""
    widths = {c: len(c) for c in columns}
    for r in rows:
        for c in columns:
            widths[c] = max(widths[c], len(_fmt(r.get(c))))

    header = "| " + " | ".join(c.ljust(widths[c]) for c in columns) + " |"
    sep = "| " + " | ".join("-" * widths[c] for c in columns) + " |"
    lines = [indent + header, indent + sep]
    for r in rows:
        lines.append(indent + "| " + " | ".join(_fmt(r.get(c)).ljust(widths[c]) for c in columns) + " |")
    return lines


def _entry_rows(entries: List[SourceEntry]) -> List[Dict[str, Any]]:
    return [e.to_payload() for e in entries]


def _record_rows(records: List[StoredRecord]) -> List[Dict[str, Any]]:
    return [r.to_row() for r in records]


def print_results(ops: OperationSet, fmt: str = "table", out: Optional[TextIO] = None) -> None:
    """Render the operations of a run.

    Args:
        ops: Successful operations.
        fmt: Either ``"table"`` (default) or ``"json"``.
        out: Stream to write to (stdout by default).
    """
    out = out or sys.stdout
    if fmt == "json":
        doc = {
            "added": _entry_rows(ops.added),
            "updated": _entry_rows(ops.updated),
            "removed": _record_rows(ops.removed),
        }
        print(json.dumps(doc, indent=2), file=out)
        return

    print("Results", file=out)
    sections = (
        ("Added", _entry_rows(ops.added), ENTRY_COLUMNS),
        ("Updated", _entry_rows(ops.updated), ENTRY_COLUMNS),
        ("Removed", _record_rows(ops.removed), RECORD_COLUMNS),
    )
    for title, rows, columns in sections:
        print(f"  {title}: {len(rows)}", file=out)
        if rows:
            for line in render_table(rows, columns, indent="  "):
                print(line, file=out)
    if ops.is_empty:
        print("No changes detected", file=out)


def print_records(
    records: List[StoredRecord],
    fmt: str = "table",
    out: Optional[TextIO] = None,
    title: Optional[str] = None,
) -> None:
    """Render a record listing (used for the post-sync refresh)."""
    out = out or sys.stdout
    rows = _record_rows(records)
    if fmt == "json":
        print(json.dumps({"records": rows}, indent=2), file=out)
        return
    if title:
        print(title, file=out)
    for line in render_table(rows, RECORD_COLUMNS):
        print(line, file=out)
