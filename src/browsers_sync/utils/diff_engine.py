"""
Diff engine for browsers-sync.

Decides, for one source entry and its matching stored record (if any),
whether the record should be created, updated, deleted or left as-is (NOOP).
Only `name` and `status` are compared; the key fields match by construction.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Tuple

from ..core.models import SourceEntry, StoredRecord

Op = Literal["NOOP", "CREATE", "UPDATE", "DELETE"]

COMPARE_KEYS: Tuple[str, ...] = ("status", "name")


@dataclass(frozen=True)
class Decision:
    """Represents a diff outcome for a single source entry.

    Attributes:
        op: One of ``"NOOP"``, ``"CREATE"``, ``"UPDATE"`` or ``"DELETE"``.
        reason: Human-friendly explanation of the decision.
    """
    op: Op
    reason: str


def decide(entry: SourceEntry, record: Optional[StoredRecord]) -> Decision:
    """Compute a :class:`Decision` for `entry` against its stored counterpart."""
    if entry.is_retired:
        if record is None:
            return Decision(op="NOOP", reason="Retired, not stored")
        return Decision(op="DELETE", reason="Retired")

    if record is None:
        return Decision(op="CREATE", reason="Not found")

    for k in COMPARE_KEYS:
        if getattr(entry, k) != getattr(record, k):
            return Decision(op="UPDATE", reason=f"Field differs: {k}")

    return Decision(op="NOOP", reason="Identical")
