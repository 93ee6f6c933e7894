"""
Command-line interface for browsers-sync.

Usage (examples):
  - Dry-run (reads the collection, logs intended changes, writes nothing):
      AUTHORIZATION='Bearer XXX' SERVER=https://remote-settings.allizom.org/v1 DRY_RUN=1 \
        python -m browsers_sync.cli

  - Real sync on the dev server (approves its own changes):
      AUTHORIZATION='user:pass' SERVER=http://localhost:8888/v1 ENVIRONMENT=dev browsers-sync
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, Iterable, Optional

import requests

from .core.config import VALID_ENVIRONMENTS, Config, ConfigError
from .core.logging_utils import get_logger, setup_logging
from .core.records_client import FetchError
from .core.source import SourceError
from .core.workflow import run_sync

EXIT_OK = 0
EXIT_FAILURE = 1

log = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="browsers-sync",
        description="Sync MDN browser releases into a Remote Settings collection",
    )
    p.add_argument("--dry-run", action="store_true", help="Log intended changes, make none (same as DRY_RUN=1)")
    p.add_argument("--environment", choices=VALID_ENVIRONMENTS, help="Overrides ENVIRONMENT")
    p.add_argument("--format", choices=["table", "json"], default="table", help="Report format")
    p.add_argument("--config", help="YAML settings file (default: ./browsers_sync.yml if present)")
    p.add_argument("--log-dir", help="Also write a log file in this directory")
    return p


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if args.dry_run:
        out.setdefault("run", {})["dry_run"] = True
    if args.environment:
        out.setdefault("run", {})["environment"] = args.environment
    if args.log_dir:
        out.setdefault("logging", {})["log_dir"] = args.log_dir
    return out


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    # console-only until the configuration tells us more
    setup_logging()

    try:
        kwargs: Dict[str, Any] = {"overrides": _overrides(args)}
        if args.config:
            kwargs["files"] = (args.config,)
        cfg = Config.from_env(**kwargs)
    except ConfigError as exc:
        log.error("Configuration error: %s", exc)
        return EXIT_FAILURE

    logfile = setup_logging(cfg.console_level, log_dir=cfg.log_dir or None, file_level=cfg.file_level)
    if logfile:
        log.debug("Logging to %s", logfile)
    log.debug("Resolved %r", cfg)

    try:
        run_sync(cfg, fmt=args.format)
    except FetchError as exc:
        log.error("%s", exc)
        return EXIT_FAILURE
    except SourceError as exc:
        log.error("%s", exc)
        return EXIT_FAILURE
    except requests.RequestException as exc:
        log.error("Network/HTTP error: %s", exc)
        return EXIT_FAILURE
    except Exception as exc:  # pragma: no cover - safety net
        log.error("Unexpected error: %s", exc, exc_info=True)
        return EXIT_FAILURE
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
