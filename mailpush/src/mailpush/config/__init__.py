"""mailpush configuration package.

What:
  Expose the loader helpers and pydantic models that make up the supported
  configuration API.

Why:
  Callers (CLI, watch loop, tests) should depend on this namespace rather than
  on the module layout so validation can never be bypassed by importing a
  lower-level helper.

Interfaces:
  - load_runtime_config / get_runtime_config / reset_runtime_config
  - parse_config_text
  - RuntimeConfig, ImapSettings, WatchSettings, NotifySettings,
    PushoverSettings, NO_MATCH
"""

from .loader import (
    get_runtime_config,
    load_runtime_config,
    parse_config_text,
    reset_runtime_config,
)
from .schema import (
    NO_MATCH,
    ImapSettings,
    NotifySettings,
    PushoverSettings,
    RuntimeConfig,
    WatchSettings,
)

__all__ = [
    "load_runtime_config",
    "get_runtime_config",
    "reset_runtime_config",
    "parse_config_text",
    "RuntimeConfig",
    "ImapSettings",
    "WatchSettings",
    "NotifySettings",
    "PushoverSettings",
    "NO_MATCH",
]
