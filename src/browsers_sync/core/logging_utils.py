"""Logging utilities for browsers-sync.

Dual-channel logging:
- Console handler: INFO and above to stderr (human-friendly).
- File handler: only when a log directory is configured, written as
  <log_dir>/browsers-sync-YYYY-MM-DD.log at the file level (DEBUG by default).

Both handlers carry a filter that masks credentials (Basic/Bearer headers,
authorization/token/password assignments) in messages and %-args.

`setup_logging(...)` is idempotent: calling it again reconfigures the root
logger without duplicating handlers.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

DEF_CONSOLE_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
DEF_FILE_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s "
    "[%(filename)s:%(lineno)d %(funcName)s] - %(message)s"
)


class MaskSecretsFilter(logging.Filter):
    """
    Redact credentials from log records.
    """

    _patterns = [
        re.compile(r"(\b(?:Bearer|Basic)\s+)([A-Za-z0-9._~+/=-]+)", re.IGNORECASE),
        re.compile(r"(\bauthorization\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
        re.compile(r"(\btoken\s*[=:]\s*)([A-Za-z0-9._-]+)", re.IGNORECASE),
        re.compile(r"(password\s*[=:]\s*)([^,\s]+)", re.IGNORECASE),
    ]

    @staticmethod
    def _mask(text: str) -> str:
        masked = text
        for pat in MaskSecretsFilter._patterns:
            masked = pat.sub(r"\1***REDACTED***", masked)
        return masked

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = {k: self._mask(str(v)) for k, v in record.args.items()}
        elif isinstance(record.args, tuple) and record.args:
            record.args = tuple(self._mask(a) if isinstance(a, str) else a for a in record.args)
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        return True


def _level(name: Optional[str], default: int) -> int:
    return getattr(logging, (name or "").upper(), default)


def _build_log_filename() -> str:
    """browsers-sync-YYYY-MM-DD.log (one file per day, appended by each run)."""
    return f"browsers-sync-{datetime.now().strftime('%Y-%m-%d')}.log"


def setup_logging(
    console_level: str = "INFO",
    *,
    log_dir: Optional[str] = None,
    file_level: str = "DEBUG",
) -> Optional[Path]:
    """Configure the root logger with a console handler and an optional file handler.

    Args:
        console_level: Threshold of the stderr handler.
        log_dir: Directory for the file handler; no file is written when empty.
        file_level: Threshold of the file handler.

    Returns:
        The log file path when a file handler was installed, else None.

    The root level is the minimum of both handler levels so the file handler
    is never starved by the root filter.
    """
    logging.captureWarnings(True)

    c_level = _level(console_level, logging.INFO)
    f_level = _level(file_level, logging.DEBUG)
    mask = MaskSecretsFilter()

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(c_level)
    console_handler.setFormatter(logging.Formatter(DEF_CONSOLE_FORMAT))
    console_handler.addFilter(mask)
    root.addHandler(console_handler)

    logfile: Optional[Path] = None
    if log_dir:
        logs = Path(log_dir)
        logs.mkdir(parents=True, exist_ok=True)
        logfile = logs / _build_log_filename()
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setLevel(f_level)
        file_handler.setFormatter(logging.Formatter(DEF_FILE_FORMAT))
        file_handler.addFilter(mask)
        root.addHandler(file_handler)
        root.setLevel(min(c_level, f_level))
    else:
        root.setLevel(c_level)

    # chatty transport debug lines are not useful at our call volume
    logging.getLogger("urllib3").setLevel(max(logging.INFO, root.level))
    return logfile


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a child logger with the given name."""
    return logging.getLogger(name or "browsers_sync")
