"""Pytest configuration shared by every suite.

What:
  Put the in-repo source tree on ``sys.path`` and point the configuration
  loader at the canned ``tests/data/config.yaml`` for every test.

Why:
  Tests must exercise the working tree rather than an installed wheel, and the
  loader caches configuration globally; without explicit resets one test's
  configuration would leak into the next.

How:
  Insert ``mailpush/src`` at import time when present, and provide the autouse
  :func:`runtime_config` fixture that sets ``MAILPUSH_CONFIG_PATH`` and clears
  the cache before and after each test.

Interfaces:
  :data:`CONFIG_PATH`, :func:`runtime_config` (autouse fixture).
"""

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "mailpush" / "src"
if SRC_DIR.exists():
    sys.path.insert(0, str(SRC_DIR))

import pytest

from mailpush.config.loader import reset_runtime_config

CONFIG_PATH = Path(__file__).resolve().parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def runtime_config(monkeypatch: pytest.MonkeyPatch):
    """Apply the canned configuration file for every test."""

    monkeypatch.setenv("MAILPUSH_CONFIG_PATH", str(CONFIG_PATH))
    reset_runtime_config()
    try:
        yield
    finally:
        reset_runtime_config()
