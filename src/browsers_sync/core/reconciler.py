"""
Reconciler - two passes that converge the collection towards the source.

Pass 1 walks the source entries and applies each decision right away
(delete retired, create missing, update drifted). Pass 2 walks the stored
records and deletes the ones whose key no longer exists upstream at all.

Only successful operations land in the returned OperationSet; a failed call
leaves that key out of sync until the next run.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Protocol, Set

from ..utils.diff_engine import decide
from .logging_utils import get_logger
from .models import Key, OperationSet, SourceEntry, StoredRecord

log = get_logger(__name__)


class RecordsWriter(Protocol):
    def create(self, entry: SourceEntry) -> bool: ...
    def update(self, record: StoredRecord, entry: SourceEntry) -> bool: ...
    def delete(self, record: StoredRecord) -> bool: ...


def index_records(records: Iterable[StoredRecord]) -> Dict[Key, StoredRecord]:
    """Index records by (browserid, version); the first record wins on duplicates."""
    index: Dict[Key, StoredRecord] = {}
    for record in records:
        if record.key in index:
            log.debug("Duplicate stored record for %s (id=%s), keeping id=%s",
                      record.key, record.id, index[record.key].id)
            continue
        index[record.key] = record
    return index


def reconcile(
    records: List[StoredRecord],
    entries: List[SourceEntry],
    client: RecordsWriter,
) -> OperationSet:
    ops = OperationSet()
    current = index_records(records)

    for entry in entries:
        record = current.get(entry.key)
        decision = decide(entry, record)
        log.debug("%s %s: %s (%s)", entry.browserid, entry.version, decision.op, decision.reason)

        if decision.op == "DELETE" and record is not None:
            if client.delete(record):
                ops.removed.append(record)
        elif decision.op == "CREATE":
            if client.create(entry):
                ops.added.append(entry)
        elif decision.op == "UPDATE" and record is not None:
            if client.update(record, entry):
                ops.updated.append(entry)

    # retired entries still count as present upstream
    source_keys: Set[Key] = {entry.key for entry in entries}
    for record in records:
        if record.key not in source_keys:
            log.debug("%s %s: DELETE (Not in source)", record.browserid, record.version)
            if client.delete(record):
                ops.removed.append(record)

    log.info("Reconciled %d entries against %d records: %s", len(entries), len(records), ops.counts())
    return ops
