"""
Configuration loader for browsers-sync.

The runtime contract is a handful of process variables:
  * AUTHORIZATION (required) - raw credential; `Bearer ...` is sent verbatim,
    anything else is sent as HTTP Basic (base64-encoded).
  * SERVER (required) - Remote Settings writer URL, e.g. https://remote-settings.allizom.org/v1
  * ENVIRONMENT (optional) - dev, stage or prod. `dev` approves its own changes.
  * DRY_RUN (optional) - "1" disables every mutating call.

Non-secret knobs (bucket, collection, source URL, timeouts, logging) come from
built-in defaults, an optional YAML settings file and BROWSERS_SYNC_* variables.
Everything is captured once into a frozen :class:`Config` passed to the workflow.
"""
from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml
from dotenv import find_dotenv, load_dotenv

from .logging_utils import get_logger

log = get_logger(__name__)

VALID_ENVIRONMENTS: Tuple[str, ...] = ("dev", "stage", "prod")
DEV_ENVIRONMENT = "dev"

DEFAULT_BUCKET = "main-workspace"
DEFAULT_COLLECTION = "devtools-compatibility-browsers"
DEFAULT_SOURCE_URL = "https://unpkg.com/@mdn/browser-compat-data/data.json"

ENV_PREFIX = "BROWSERS_SYNC_"

_DEFAULT_FILES: Tuple[str, ...] = (
    "./browsers_sync.yml",
    os.path.expanduser("~/.config/browsers_sync/config.yml"),
)

_DEFAULTS: Dict[str, Any] = {
    "remote_settings": {
        "server": "",
        "authorization": "",   # secret, never log in clear text
        "bucket": DEFAULT_BUCKET,
        "collection": DEFAULT_COLLECTION,
        "timeout_sec": None,
    },
    "source": {"url": DEFAULT_SOURCE_URL, "timeout_sec": None},
    "run": {"environment": "", "dry_run": False},
    "logging": {"console_level": "INFO", "file_level": "DEBUG", "log_dir": ""},
}

# process variable -> (section, key)
_PROCESS_VARS: Dict[str, Tuple[str, str]] = {
    "AUTHORIZATION": ("remote_settings", "authorization"),
    "SERVER": ("remote_settings", "server"),
    "ENVIRONMENT": ("run", "environment"),
    "DRY_RUN": ("run", "dry_run"),
}


class ConfigError(Exception):
    """Raised when runtime configuration cannot be resolved."""
    pass


@dataclass(frozen=True)
class Config:
    """Runtime configuration for one synchronisation run."""
    server: str
    authorization: str
    environment: Optional[str] = None
    dry_run: bool = False
    bucket: str = DEFAULT_BUCKET
    collection: str = DEFAULT_COLLECTION
    source_url: str = DEFAULT_SOURCE_URL
    timeout_sec: Optional[float] = None
    source_timeout_sec: Optional[float] = None
    console_level: str = "INFO"
    file_level: str = "DEBUG"
    log_dir: str = ""

    def __repr__(self) -> str:
        return (
            f"Config(server={self.server!r}, environment={self.environment!r}, "
            f"dry_run={self.dry_run}, bucket={self.bucket!r}, collection={self.collection!r})"
        )

    @property
    def is_dev(self) -> bool:
        return self.environment == DEV_ENVIRONMENT

    @property
    def authorization_header(self) -> str:
        return build_authorization_header(self.authorization)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        files: Tuple[str, ...] = _DEFAULT_FILES,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "Config":
        """Build a :class:`Config` from (in precedence order):
          1) `overrides` (CLI flags)
          2) AUTHORIZATION / SERVER / ENVIRONMENT / DRY_RUN
          3) BROWSERS_SYNC_<SECTION>__<KEY> variables
          4) the first existing YAML settings file
          5) built-in defaults

        When `environ` is None the live process environment is used, after
        loading a `.env` file (real variables win over the file).

        Raises:
            ConfigError: On missing required variables, an unknown ENVIRONMENT
                or an unreadable settings file.
        """
        if environ is None:
            env_path = find_dotenv(usecwd=True) or ""
            if env_path:
                load_dotenv(env_path, override=False)
            environ = os.environ

        merged = _deep_merge(_DEFAULTS, _load_first_existing(files))
        merged = _deep_merge(merged, _prefixed_env_to_dict(environ))
        merged = _deep_merge(merged, _process_vars_to_dict(environ))
        merged = _deep_merge(merged, overrides or {})
        merged = _interpolate_env(merged, environ)
        merged = _coerce_types(merged)

        _validate(merged)

        rs, src, run, lg = merged["remote_settings"], merged["source"], merged["run"], merged["logging"]
        return cls(
            server=str(rs["server"]).rstrip("/"),
            authorization=str(rs["authorization"]),
            environment=run["environment"] or None,
            dry_run=run["dry_run"],
            bucket=str(rs["bucket"]),
            collection=str(rs["collection"]),
            source_url=str(src["url"]),
            timeout_sec=rs["timeout_sec"],
            source_timeout_sec=src["timeout_sec"],
            console_level=str(lg["console_level"]),
            file_level=str(lg["file_level"]),
            log_dir=str(lg["log_dir"] or ""),
        )


def build_authorization_header(raw: str) -> str:
    """Pass `Bearer` credentials through, encode anything else as Basic."""
    if raw.startswith("Bearer "):
        return raw
    return "Basic " + base64.b64encode(raw.encode("utf-8")).decode("ascii")


# ---------- Utilities ----------

def _deep_merge(base: Dict[str, Any], ext: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge for dicts: maps merge recursively, lists/scalars override.
    `ext` wins over `base`. Returns a new dict.
    """
    out: Dict[str, Any] = {k: (dict(v) if isinstance(v, dict) else v) for k, v in base.items()}
    for k, v in (ext or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _read_yaml_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read settings file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML must be a mapping: {path}")
    return data


def _load_first_existing(files: Tuple[str, ...]) -> Dict[str, Any]:
    for p in files:
        if os.path.exists(p):
            log.debug("Loading settings from %s", p)
            return _read_yaml_file(p)
    return {}


def _prefixed_env_to_dict(environ: Mapping[str, str], prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    """
    Convert BROWSERS_SYNC_SOURCE__URL=val to {"source": {"url": "val"}} (lowercased keys).
    """
    out: Dict[str, Any] = {}
    plen = len(prefix)
    for key, val in environ.items():
        if not key.startswith(prefix):
            continue
        path = key[plen:].lower().split("__")
        cursor = out
        for part in path[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[path[-1]] = val
    return out


def _process_vars_to_dict(environ: Mapping[str, str]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for var, (section, key) in _PROCESS_VARS.items():
        if var not in environ:
            continue
        val: Any = environ[var]
        if var == "DRY_RUN":
            # only the literal "1" enables dry-run
            val = val == "1"
        out.setdefault(section, {})[key] = val
    return out


def _interpolate_env(cfg: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    """
    Replace values like "${VAR}" with environ["VAR"] when present.
    """
    def repl(v: Any) -> Any:
        if isinstance(v, str) and v.startswith("${") and v.endswith("}"):
            return environ.get(v[2:-1], "")
        return v

    def walk(obj: Any) -> Any:
        if isinstance(obj, dict):
            return {k: walk(repl(v)) for k, v in obj.items()}
        if isinstance(obj, list):
            return [walk(x) for x in obj]
        return repl(obj)

    return walk(cfg)


def _coerce_types(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Minimal type coercion for booleans and timeouts in known keys.
    """
    def to_bool(x: Any) -> bool:
        if isinstance(x, bool):
            return x
        return str(x).strip().lower() in {"1", "true", "yes", "y", "on"}

    def to_timeout(x: Any) -> Optional[float]:
        if x is None or (isinstance(x, str) and not x.strip()):
            return None
        try:
            return float(x)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid timeout value: {x!r}") from exc

    def walk(obj: Any, key_path: Tuple[str, ...] = ()) -> Any:
        if isinstance(obj, dict):
            return {k: walk(v, key_path + (k,)) for k, v in obj.items()}
        if key_path[-1:] == ("dry_run",):
            return to_bool(obj)
        if key_path[-1:] == ("timeout_sec",):
            return to_timeout(obj)
        return obj

    return walk(cfg)


def _validate(cfg: Dict[str, Any]) -> None:
    rs = cfg.get("remote_settings", {})
    missing = [
        var for var, value in (("AUTHORIZATION", rs.get("authorization")), ("SERVER", rs.get("server")))
        if not value
    ]
    if missing:
        hint = (
            "Export them in your shell or create a .env in the working directory. "
            "Example:\n"
            "  AUTHORIZATION='Bearer ***'\n"
            "  SERVER=https://remote-settings.allizom.org/v1\n"
        )
        raise ConfigError(
            "Missing required environment variables: " + ", ".join(missing) + ". " + hint
        )

    environment = cfg.get("run", {}).get("environment")
    if environment and environment not in VALID_ENVIRONMENTS:
        raise ConfigError(
            "ENVIRONMENT environment variable needs to be set to one of the following values: "
            + ", ".join(VALID_ENVIRONMENTS)
        )
