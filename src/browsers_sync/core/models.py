"""
Data model shared by the normalizer, the records client and the reconciler.

- SourceEntry: one browser release flattened from browser-compat-data.
- StoredRecord: one record of the Remote Settings collection.
- OperationSet: what a run actually changed (successful operations only).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Tuple

Key = Tuple[str, str]

RETIRED = "retired"


@dataclass(frozen=True)
class SourceEntry:
    """A browser release as published upstream. Identity is (browserid, version)."""
    browserid: str
    name: str
    status: str
    version: str

    @property
    def key(self) -> Key:
        return (self.browserid, self.version)

    @property
    def is_retired(self) -> bool:
        return self.status == RETIRED

    def to_payload(self) -> Dict[str, Any]:
        """Record body sent to the store (under the `data` wrapper)."""
        return asdict(self)


@dataclass(frozen=True)
class StoredRecord:
    """A record fetched from the store. `id` only addresses update/delete calls."""
    id: str
    browserid: str
    name: str
    status: str
    version: str
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def key(self) -> Key:
        return (self.browserid, self.version)

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> "StoredRecord":
        known = {"id", "browserid", "name", "status", "version"}
        return cls(
            id=str(obj.get("id", "")),
            browserid=str(obj.get("browserid", "")),
            name=str(obj.get("name", "")),
            status=str(obj.get("status", "")),
            version=str(obj.get("version", "")),
            extra={k: v for k, v in obj.items() if k not in known},
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "browserid": self.browserid,
            "name": self.name,
            "status": self.status,
            "version": self.version,
        }


@dataclass
class OperationSet:
    """Successful operations of one run, in the order they were applied."""
    added: List[SourceEntry] = field(default_factory=list)
    updated: List[SourceEntry] = field(default_factory=list)
    removed: List[StoredRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.added) + len(self.updated) + len(self.removed)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def counts(self) -> Dict[str, int]:
        return {"added": len(self.added), "updated": len(self.updated), "removed": len(self.removed)}
