from browsers_sync.core.models import SourceEntry, StoredRecord
from browsers_sync.core.reconciler import index_records, reconcile


class _MemoryStore:
    """Records writer applying operations to an in-memory list."""

    def __init__(self, records=(), fail_keys=()):
        self.records = list(records)
        self.fail_keys = set(fail_keys)
        self.calls = []
        self._next = 100

    def _ok(self, op, key):
        self.calls.append((op, key))
        return key not in self.fail_keys

    def create(self, entry):
        if not self._ok("create", entry.key):
            return False
        self._next += 1
        self.records.append(StoredRecord(str(self._next), entry.browserid, entry.name, entry.status, entry.version))
        return True

    def update(self, record, entry):
        if not self._ok("update", record.key):
            return False
        self.records = [
            StoredRecord(r.id, entry.browserid, entry.name, entry.status, entry.version) if r.id == record.id else r
            for r in self.records
        ]
        return True

    def delete(self, record):
        if not self._ok("delete", record.key):
            return False
        self.records = [r for r in self.records if r.id != record.id]
        return True


def _entry(browserid, version, status="current", name=None):
    return SourceEntry(browserid, name or browserid.capitalize(), status, version)


def _rec(rid, browserid, version, status="current", name=None):
    return StoredRecord(rid, browserid, name or browserid.capitalize(), status, version)


def test_new_entry_is_created():
    store = _MemoryStore()
    ops = reconcile([], [_entry("chrome", "90", name="Chrome")], store)
    assert ops.added == [_entry("chrome", "90", name="Chrome")]
    assert ops.updated == [] and ops.removed == []
    assert store.calls == [("create", ("chrome", "90"))]


def test_retired_entry_deletes_its_record():
    record = _rec("5", "firefox", "60")
    store = _MemoryStore([record])
    ops = reconcile([record], [_entry("firefox", "60", status="retired")], store)
    assert [r.id for r in ops.removed] == ["5"]
    assert store.calls == [("delete", ("firefox", "60"))]


def test_retired_entry_without_record_is_never_created():
    store = _MemoryStore()
    ops = reconcile([], [_entry("firefox", "3", status="retired")], store)
    assert ops.is_empty
    assert store.calls == []


def test_drift_is_updated_and_identical_is_left_alone():
    records = [_rec("1", "edge", "18"), _rec("2", "edge", "79", status="beta")]
    store = _MemoryStore(records)
    entries = [_entry("edge", "18"), _entry("edge", "79", status="current")]
    ops = reconcile(records, entries, store)
    assert ops.updated == [_entry("edge", "79", status="current")]
    assert ops.added == [] and ops.removed == []
    assert store.calls == [("update", ("edge", "79"))]


def test_orphan_record_is_removed_in_second_pass():
    records = [_rec("1", "edge", "18"), _rec("9", "ie", "11")]
    store = _MemoryStore(records)
    ops = reconcile(records, [_entry("edge", "18")], store)
    assert [r.id for r in ops.removed] == ["9"]


def test_retired_record_is_deleted_once():
    record = _rec("5", "firefox", "60")
    store = _MemoryStore([record])
    reconcile([record], [_entry("firefox", "60", status="retired")], store)
    assert store.calls.count(("delete", ("firefox", "60"))) == 1


def test_failed_operations_are_left_out():
    records = [_rec("1", "edge", "18", status="beta"), _rec("9", "ie", "11")]
    store = _MemoryStore(records, fail_keys={("chrome", "90"), ("edge", "18"), ("ie", "11")})
    ops = reconcile(records, [_entry("chrome", "90"), _entry("edge", "18")], store)
    assert ops.is_empty
    assert len(store.calls) == 3


def test_second_run_is_a_noop():
    records = [_rec("1", "edge", "18", status="beta"), _rec("2", "ie", "11"), _rec("3", "firefox", "60")]
    entries = [_entry("edge", "18"), _entry("chrome", "90"), _entry("firefox", "60", status="retired")]
    store = _MemoryStore(records)

    first = reconcile(records, entries, store)
    assert first.counts() == {"added": 1, "updated": 1, "removed": 2}

    second = reconcile(list(store.records), entries, store)
    assert second.is_empty


def test_key_matching_is_exact():
    records = [_rec("1", "Edge", "18")]
    store = _MemoryStore(records)
    ops = reconcile(records, [_entry("edge", "18.0")], store)
    assert len(ops.added) == 1 and len(ops.removed) == 1


def test_duplicate_records_first_match_wins():
    first, dup = _rec("1", "edge", "18", status="beta"), _rec("2", "edge", "18", status="beta")
    assert index_records([first, dup])[("edge", "18")].id == "1"

    store = _MemoryStore([first, dup])
    ops = reconcile([first, dup], [_entry("edge", "18")], store)
    assert store.calls == [("update", ("edge", "18"))]
    assert ops.removed == []
