"""End-to-end tests asserting CLI commands execute successfully.

What:
  Launch the ``mailpush.cli`` module through ``python -m`` and validate the
  observable behaviour of ``check-config`` with valid and invalid files.

Why:
  These tests ensure the entry point wiring and environment bootstrapping work
  when invoked the same way operators do from a service unit.

How:
  Construct subprocess invocations with a controlled ``PYTHONPATH`` pointing to
  the in-repo source tree, feed configuration files, and assert that return
  codes and output match expectations.

Interfaces:
  ``test_cli_check_config``, ``test_cli_rejects_invalid_config``.

Invariants & Safety:
  - Tests run against the local source tree to avoid depending on installed
    packages.
  - Commands must succeed without requiring network access.
"""

import os
import pathlib
import subprocess
import sys


PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
CONFIG_PATH = PROJECT_ROOT / "tests" / "data" / "config.yaml"


def _run_cli(*args: str) -> subprocess.CompletedProcess[str]:
    """Execute the mailpush CLI with the provided arguments.

    How:
      Clones the current environment, points ``PYTHONPATH`` at the repository
      source tree and runs ``python -m mailpush.cli`` capturing output.
    """

    cmd = [sys.executable, "-m", "mailpush.cli", *args]
    env = dict(os.environ)
    env["PYTHONPATH"] = f"{PROJECT_ROOT / 'mailpush' / 'src'}{os.pathsep}{env.get('PYTHONPATH', '')}"
    env.pop("MAILPUSH_CONFIG_PATH", None)
    return subprocess.run(cmd, text=True, capture_output=True, cwd=PROJECT_ROOT, env=env)


def test_cli_check_config() -> None:
    result = _run_cli("check-config", "--config", str(CONFIG_PATH))
    assert result.returncode == 0, result.stderr
    assert "imap.example.test" in result.stdout
    assert "hunter2" not in result.stdout


def test_cli_rejects_invalid_config(tmp_path: pathlib.Path) -> None:
    """A configuration with a weight at the filter sentinel is refused."""

    config = tmp_path / "config.yaml"
    config.write_text(
        "imap:\n  host: h\n  username: u\n  password: p\n"
        "pushover:\n  user: u\n  token: t\n"
        "notify:\n  words:\n    spam: -1000\n"
    )
    result = _run_cli("check-config", "--config", str(config))
    assert result.returncode == 1
    assert "Configuration error" in result.stderr
