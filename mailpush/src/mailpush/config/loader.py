"""Locate, parse, validate and cache the mailpush runtime configuration.

What:
  Resolve ``config.yaml`` from an explicit path, the ``MAILPUSH_CONFIG_PATH``
  environment variable, or well-known defaults, and turn it into a validated
  :class:`~mailpush.config.schema.RuntimeConfig`.

Why:
  Configuration is loaded once at startup and then read for the lifetime of the
  process. Validating everything up front (credentials present, weights above
  the filter sentinel, sane timings) turns typos into a clear startup error
  instead of a watcher that silently never notifies.

How:
  Walk the candidate paths in precedence order, parse the first existing file
  with PyYAML's ``safe_load``, translate the flat layout used by earlier
  releases into the nested schema, and validate with pydantic. The result is
  memoised until :func:`reset_runtime_config` or ``reload=True``.

Interfaces:
  :func:`load_runtime_config`, :func:`get_runtime_config`,
  :func:`reset_runtime_config`, :func:`parse_config_text`,
  :func:`from_legacy_layout`.

Invariants:
  - Only schema-validated models are returned to callers.
  - Filesystem and YAML failures surface as :class:`RuntimeConfigError` with the
    offending path in the message.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

import yaml
from pydantic import ValidationError

from ..errors import ConfigLoadError, RuntimeConfigError
from .schema import RuntimeConfig


_CONFIG_ENV = "MAILPUSH_CONFIG_PATH"
_DEFAULT_LOCATIONS: Tuple[Path, ...] = (
    Path("config.yaml"),
    Path("~/.config/mailpush/config.yaml"),
    Path("/etc/mailpush/config.yaml"),
)
_RUNTIME_CACHE: Optional[Tuple[Path, RuntimeConfig]] = None

_LEGACY_IMAP_KEYS = {
    "server": "host",
    "port": "port",
    "ssl": "ssl",
    "username": "username",
    "password": "password",
    "folder": "folder",
}
_LEGACY_PUSHOVER_PREFIX = "pushover_"


def _candidate_paths(path: Optional[Path]) -> Iterable[Path]:
    """Yield configuration locations from most to least specific, deduplicated."""

    seen: set[Path] = set()
    candidates = []
    if path is not None:
        candidates.append(path)
    env_path = os.environ.get(_CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path))
    candidates.extend(_DEFAULT_LOCATIONS)
    for candidate in candidates:
        expanded = candidate.expanduser()
        if expanded not in seen:
            seen.add(expanded)
            yield expanded


def from_legacy_layout(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Translate the flat key layout of earlier releases into the nested schema.

    What:
      Maps ``server``/``port``/``ssl``/``username``/``password``/``folder`` under
      ``imap``, ``sleep_time`` under ``watch``, ``notify_words`` and
      ``body_length`` under ``notify``, and every ``pushover_*`` key under
      ``pushover``.

    Why:
      Existing deployments keep their configuration file when upgrading; the
      nested layout is only required for new settings.

    How:
      Payloads that already contain an ``imap`` section are returned untouched.
      Otherwise keys are moved section by section; unknown keys stay at the top
      level so that schema validation reports them.

    Args:
      payload: Parsed YAML mapping.

    Returns:
      A mapping shaped like :class:`RuntimeConfig`.
    """

    if "imap" in payload:
        return payload
    remaining = dict(payload)
    imap: Dict[str, Any] = {}
    for legacy, key in _LEGACY_IMAP_KEYS.items():
        if legacy in remaining:
            imap[key] = remaining.pop(legacy)
    pushover: Dict[str, Any] = {}
    for legacy in [key for key in remaining if key.startswith(_LEGACY_PUSHOVER_PREFIX)]:
        pushover[legacy[len(_LEGACY_PUSHOVER_PREFIX):]] = remaining.pop(legacy)
    watch: Dict[str, Any] = {}
    if "sleep_time" in remaining:
        watch["sleep_time"] = remaining.pop("sleep_time")
    notify: Dict[str, Any] = {}
    if "notify_words" in remaining:
        notify["words"] = remaining.pop("notify_words") or {}
    if "body_length" in remaining:
        notify["body_length"] = remaining.pop("body_length")

    result: Dict[str, Any] = {"imap": imap, "pushover": pushover}
    if watch:
        result["watch"] = watch
    if notify:
        result["notify"] = notify
    result.update(remaining)
    return result


def parse_config_text(text: str, source: Path | str = "<string>") -> RuntimeConfig:
    """Parse and validate configuration text.

    Raises:
      RuntimeConfigError: If the YAML is malformed, is not a mapping, or fails
        schema validation.
    """

    try:
        payload = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise RuntimeConfigError(f"Invalid YAML in {source}: {exc}") from exc
    if not isinstance(payload, dict):
        raise RuntimeConfigError(f"{source} must contain a mapping at the top-level")
    try:
        return RuntimeConfig.model_validate(from_legacy_layout(payload))
    except ValidationError as exc:
        raise RuntimeConfigError(f"Invalid configuration in {source}: {exc}") from exc


def _load_runtime_from_path(path: Path) -> RuntimeConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise RuntimeConfigError(f"Configuration file missing: {path}") from exc
    except OSError as exc:  # pragma: no cover - filesystem surface
        raise RuntimeConfigError(f"Unable to read configuration file {path}: {exc}") from exc
    return parse_config_text(text, path)


def load_runtime_config(
    path: Optional[Path | str] = None,
    *,
    reload: bool = False,
) -> RuntimeConfig:
    """Resolve, parse, and cache the runtime configuration.

    What:
      Returns the validated configuration, loading it on first use.

    Why:
      The CLI, the watch loop and tests all need the same configuration object;
      caching keeps it load-once while ``reload`` allows deterministic refreshes.

    How:
      A cached entry is reused unless ``reload`` is set or a different explicit
      path is requested. Otherwise the first existing candidate path wins.

    Args:
      path: Optional explicit location of ``config.yaml``.
      reload: Bypass the cache.

    Raises:
      RuntimeConfigError: If no candidate exists or the file is invalid.
    """

    global _RUNTIME_CACHE

    requested_path = Path(path).expanduser() if isinstance(path, (str, Path)) else None
    if not reload and _RUNTIME_CACHE is not None:
        cached_path, cached_config = _RUNTIME_CACHE
        if requested_path is None or cached_path == requested_path:
            return cached_config

    if requested_path is not None and not requested_path.exists():
        raise RuntimeConfigError(f"Configuration file missing: {requested_path}")

    searched: list[str] = []
    for candidate in _candidate_paths(requested_path):
        if not candidate.exists():
            searched.append(str(candidate))
            continue
        config = _load_runtime_from_path(candidate)
        _RUNTIME_CACHE = (candidate, config)
        return config

    raise RuntimeConfigError(
        f"Unable to locate config.yaml (searched: {', '.join(searched) or '<none>'})"
    )


def get_runtime_config() -> RuntimeConfig:
    """Return the cached runtime configuration, loading it on demand."""

    return load_runtime_config()


def reset_runtime_config() -> None:
    """Forget the cached configuration so the next load reads from disk."""

    global _RUNTIME_CACHE
    _RUNTIME_CACHE = None
