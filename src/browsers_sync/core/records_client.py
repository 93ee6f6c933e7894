"""
RecordsClient - thin accessor over one Remote Settings collection.

This module provides a single, reusable HTTP client with:
  * `list_records` (fatal on failure: raises FetchError)
  * `create`, `update`, `delete` returning a success boolean
  * collection status transitions `request_review` (to-review) and `approve` (to-sign)
  * a dry-run mode where every mutating call is logged with a `[DRY_RUN]`
    prefix and reported as successful without touching the network

Mutating calls never raise: a non-success status or a transport error is
logged as a warning and reported as `False`, so one failed record never
aborts a run.

Example:
    client = RecordsClient(server, authorization, bucket="main-workspace",
                           collection="devtools-compatibility-browsers")
    records = client.list_records()
    client.create(entry)
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from .config import DEFAULT_BUCKET, DEFAULT_COLLECTION, Config, build_authorization_header
from .logging_utils import get_logger
from .models import SourceEntry, StoredRecord

log = get_logger(__name__)

DRY_RUN_PREFIX = "[DRY_RUN]"

STATUS_TO_REVIEW = "to-review"
STATUS_TO_SIGN = "to-sign"


@dataclass
class FetchError(Exception):
    """The record listing could not be retrieved."""
    status: int
    url: str
    reason: str = ""

    def __str__(self) -> str:
        return f'Can\'t retrieve records: "[{self.status}] {self.reason}"'


class RecordsClient:
    """Remote Settings client scoped to a single bucket/collection.

    Args:
        server: Writer server URL (API root, e.g. ``https://remote-settings.allizom.org/v1``).
        authorization: Raw credential; see :func:`build_authorization_header`.
        bucket: Bucket holding the collection.
        collection: Collection to synchronise.
        dry_run: When True, mutating calls only log what they would do.
        timeout: Optional per-request timeout in seconds (None: transport default).
        session: Optional pre-built :class:`requests.Session`.
    """

    def __init__(
        self,
        server: str,
        authorization: str,
        *,
        bucket: str = DEFAULT_BUCKET,
        collection: str = DEFAULT_COLLECTION,
        dry_run: bool = False,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not server:
            raise ValueError("server is required")
        self.collection_endpoint = f"{server.rstrip('/')}/buckets/{bucket}/collections/{collection}"
        self.records_endpoint = f"{self.collection_endpoint}/records"
        self.dry_run = dry_run
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Authorization": build_authorization_header(authorization),
        })

    @classmethod
    def from_config(cls, cfg: Config, *, session: Optional[requests.Session] = None) -> "RecordsClient":
        return cls(
            cfg.server,
            cfg.authorization,
            bucket=cfg.bucket,
            collection=cfg.collection,
            dry_run=cfg.dry_run,
            timeout=cfg.timeout_sec,
            session=session,
        )

    # ---------------- read ----------------
    def list_records(self) -> List[StoredRecord]:
        """Return every record of the collection.

        Raises:
            FetchError: On any status other than 200, or a transport error (status 0).
        """
        log.info("Get existing records from %s", self.collection_endpoint)
        try:
            resp = self.session.get(self.records_endpoint, timeout=self.timeout)
        except requests.RequestException as exc:
            raise FetchError(status=0, url=self.records_endpoint, reason=str(exc)) from exc
        if resp.status_code != 200:
            raise FetchError(status=resp.status_code, url=self.records_endpoint, reason=resp.reason or "")
        try:
            data = resp.json().get("data") or []
        except (ValueError, AttributeError) as exc:
            raise FetchError(status=resp.status_code, url=self.records_endpoint, reason=f"invalid body: {exc}") from exc
        records = [StoredRecord.from_json(obj) for obj in data if isinstance(obj, dict)]
        log.debug("Fetched %d records", len(records))
        return records

    # ---------------- record CRUD ----------------
    def create(self, entry: SourceEntry) -> bool:
        """POST a new record. Success means 201 Created."""
        self._log_intent("Create", entry.browserid, entry.version)
        if self.dry_run:
            return True
        return self._send("POST", self.records_endpoint, {"data": entry.to_payload()}, 201, "create record")

    def update(self, record: StoredRecord, entry: SourceEntry) -> bool:
        """PUT `entry` into `record` (addressed by id). Success means 200."""
        self._log_intent("Update", record.browserid, record.version)
        if self.dry_run:
            return True
        url = f"{self.records_endpoint}/{record.id}"
        return self._send("PUT", url, {"data": entry.to_payload()}, 200, "update record")

    def delete(self, record: StoredRecord) -> bool:
        """DELETE `record` (addressed by id). Success means 200."""
        self._log_intent("Delete", record.browserid, record.version)
        if self.dry_run:
            return True
        return self._send("DELETE", f"{self.records_endpoint}/{record.id}", None, 200, "delete record")

    # ---------------- collection status ----------------
    def request_review(self) -> None:
        """Ask for review on the collection (status -> to-review). Best effort."""
        self._log_intent("Requesting review")
        if self.dry_run:
            return
        if self._patch_status(STATUS_TO_REVIEW, "request review"):
            log.info("Review requested")

    def approve(self) -> None:
        """Approve pending changes (status -> to-sign). Only honoured by the dev server."""
        self._log_intent("Approving changes")
        if self.dry_run:
            return
        if self._patch_status(STATUS_TO_SIGN, "automatically approve changes"):
            log.info("Changes approved")

    # ---------------- internal ----------------
    def _patch_status(self, status: str, what: str) -> bool:
        return self._send("PATCH", self.collection_endpoint, {"data": {"status": status}}, 200, what)

    def _send(self, method: str, url: str, body: Optional[Dict[str, Any]], expected: int, what: str) -> bool:
        try:
            resp = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            log.warning('Couldn\'t %s: "[0] %s"', what, exc)
            return False
        log.debug("%s %s -> %s", method, url, resp.status_code)
        if resp.status_code != expected:
            log.warning('Couldn\'t %s: "[%s] %s"', what, resp.status_code, resp.reason)
            return False
        return True

    def _log_intent(self, action: str, *details: str) -> None:
        prefix = f"{DRY_RUN_PREFIX} " if self.dry_run else ""
        log.info("%s%s", prefix, " ".join([action, *details]))
