"""
Workflow driver: one synchronisation run, start to finish.

    list records -> fetch + flatten source -> reconcile (applies changes)
      -> report -> [changes] refresh listing, approve (dev) or request review

The collection status is only touched when something actually changed, and
the transition is fire-and-forget: acceptance is not polled.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Dict, List, Optional, TextIO

from ..utils.reporting import print_records, print_results
from .config import Config
from .logging_utils import get_logger
from .models import OperationSet, StoredRecord
from .reconciler import reconcile
from .records_client import RecordsClient
from .source import fetch_source, flatten_browsers

log = get_logger(__name__)

SourceFetcher = Callable[[], Dict[str, Any]]

TRANSITION_APPROVE = "approve"
TRANSITION_REVIEW = "request-review"


@dataclass
class SyncResult:
    """Outcome of :func:`run_sync`."""
    operations: OperationSet
    refreshed: List[StoredRecord]
    transition: Optional[str] = None


def run_sync(
    cfg: Config,
    *,
    client: Optional[RecordsClient] = None,
    fetch: Optional[SourceFetcher] = None,
    fmt: str = "table",
    out: Optional[TextIO] = None,
) -> SyncResult:
    """Run one synchronisation.

    Args:
        cfg: Resolved configuration.
        client: Records client (built from `cfg` when omitted).
        fetch: Callable returning the source `browsers` mapping (downloads
            `cfg.source_url` when omitted).
        fmt: Report format, ``"table"`` or ``"json"``.
        out: Report stream (stdout by default).

    Raises:
        FetchError: The record listing could not be retrieved.
        SourceError: The source dataset could not be retrieved.
    """
    client = client or RecordsClient.from_config(cfg)
    if fetch is None:
        fetch = partial(fetch_source, cfg.source_url, timeout=cfg.source_timeout_sec)

    log.info("Starting browsers sync (environment=%s, dry_run=%s)", cfg.environment or "-", cfg.dry_run)

    records = client.list_records()
    entries = flatten_browsers(fetch())

    ops = reconcile(records, entries, client)
    print_results(ops, fmt, out)

    if ops.is_empty:
        log.info("No changes detected")
        return SyncResult(operations=ops, refreshed=records)

    refreshed = client.list_records()
    log.info("Browsers data synced, %d records after refresh", len(refreshed))
    print_records(refreshed, fmt, out, title="Browsers data synced\nRefreshed records:")

    if cfg.is_dev:
        client.approve()
        transition = TRANSITION_APPROVE
    else:
        client.request_review()
        transition = TRANSITION_REVIEW
    return SyncResult(operations=ops, refreshed=refreshed, transition=transition)
