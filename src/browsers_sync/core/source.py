"""
Source dataset: MDN browser-compat-data.

`fetch_source` downloads the published `data.json` and returns its `browsers`
mapping:

    {"firefox": {"name": "Firefox", "releases": {"60": {"status": "retired", ...}, ...}}, ...}

`flatten_browsers` turns that mapping into a flat list of SourceEntry, one per
(browser, release). Malformed releases are logged and skipped one by one.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional

import requests

from .logging_utils import get_logger
from .models import SourceEntry

log = get_logger(__name__)

_HAS_DIGIT = re.compile(r"\d")


class SourceError(RuntimeError):
    """Raised when the source dataset cannot be fetched or has no `browsers` mapping."""


def fetch_source(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """GET the browser-compat-data JSON and return its `browsers` mapping."""
    http = session or requests.Session()
    log.info("Fetch browsers data from %s", url)
    try:
        resp = http.get(url, timeout=timeout)
    except requests.RequestException as exc:
        raise SourceError(f"Can't retrieve browsers data from {url}: {exc}") from exc
    if resp.status_code != 200:
        raise SourceError(f'Can\'t retrieve browsers data: "[{resp.status_code}] {resp.reason}"')
    try:
        payload = resp.json()
    except ValueError as exc:
        raise SourceError(f"Browsers data from {url} is not valid JSON: {exc}") from exc

    browsers = payload.get("browsers") if isinstance(payload, dict) else None
    if not isinstance(browsers, dict):
        raise SourceError(f"Browsers data from {url} has no 'browsers' mapping")
    return browsers


def flatten_browsers(browsers: Mapping[str, Any]) -> List[SourceEntry]:
    """Flatten `{browserid: {name, releases: {version: {status}}}}` into SourceEntry items.

    Output keeps the insertion order of the source. A release is skipped (with an
    error log naming the browser) when the browser has no `name`, the release has
    no `status`, or the version has no digit in it.
    """
    entries: List[SourceEntry] = []
    for browserid, info in browsers.items():
        info = info if isinstance(info, dict) else {}
        releases = info.get("releases")
        if not isinstance(releases, dict):
            log.error('%s "releases" property is expected but wasn\'t found', browserid)
            continue

        for version, release in releases.items():
            name = info.get("name")
            if not name:
                log.error('%s "name" property is expected but wasn\'t found: %s', browserid, _preview(info))
                continue

            status = release.get("status") if isinstance(release, dict) else None
            if not status:
                log.error('%s "status" property is expected but wasn\'t found: %s', browserid, release)
                continue

            if not version or not _HAS_DIGIT.search(str(version)):
                log.error('%s "releaseNumber" doesn\'t have expected shape: %r', browserid, version)
                continue

            entries.append(SourceEntry(browserid=browserid, name=name, status=status, version=str(version)))

    log.debug("Flattened %d browser releases", len(entries))
    return entries


def _preview(info: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in info.items() if k != "releases"}
