"""Helper utilities bridging the CLI with runtime subsystems.

What:
  Provide the small calculations and factories shared by :mod:`mailpush.cli`
  and :mod:`mailpush.core.watch`: sleep-time resolution, reconnection backoff,
  and construction of the notifier from configuration.

Why:
  Keeping these out of the command bodies keeps the CLI thin and lets unit
  tests cover edge cases (zero overrides, backoff caps) without a mailbox.

How:
  Pure functions taking the validated runtime configuration; nothing here
  performs network I/O.

Interfaces:
  ``resolve_sleep_time``, ``exponential_backoff``, ``build_notifier``.

Invariants & Safety:
  - ``exponential_backoff`` clamps between ``base`` and ``cap``.
  - ``resolve_sleep_time`` always returns at least ``1``.
"""
from __future__ import annotations

from typing import Optional

from .config.schema import RuntimeConfig
from .notify.pushover import PushoverNotifier
from .utils.logging import JsonLogger


def resolve_sleep_time(runtime: RuntimeConfig, override: Optional[int]) -> int:
    """Return the IDLE cycle length: a positive override, else the configured value."""

    if override is not None and override > 0:
        return override
    return max(int(runtime.watch.sleep_time), 1)


def exponential_backoff(
    *,
    base: int = 5,
    factor: float = 2.0,
    cap: int = 60,
    failures: int = 0,
) -> int:
    """Return ``base * factor**failures`` clamped to ``[base, cap]`` in whole seconds.

    Args:
      base: Smallest delay returned.
      factor: Multiplicative growth factor.
      cap: Largest delay returned.
      failures: Consecutive failures so far, zero-indexed.
    """

    delay = base * (factor ** max(failures, 0))
    if delay < base:
        delay = base
    if delay > cap:
        delay = cap
    return int(delay)


def build_notifier(runtime: RuntimeConfig, *, logger: Optional[JsonLogger] = None) -> PushoverNotifier:
    """Create the Pushover notifier configured by ``runtime``."""

    return PushoverNotifier(
        runtime.pushover,
        body_length=runtime.notify.body_length,
        logger=logger,
    )
