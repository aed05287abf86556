"""mailpush command-line interface.

What:
  Provide a Typer-based entry point with the ``watch``, ``once`` and
  ``check-config`` commands operators use to run the watcher as a service, to
  trigger a single catch-up scan, and to validate a configuration file.

Why:
  Every execution path must load configuration the same way, build the same
  notifier, and map fatal failures to the same exit codes so that systemd
  units, cron jobs and manual runs behave identically.

How:
  Load the runtime configuration (optionally from ``--config``), build the
  Pushover notifier, and either run :class:`~mailpush.core.watch.WatchLoop`
  forever or open one session and run :func:`~mailpush.core.scanner.scan_unread`.

Interfaces:
  ``app`` (Typer application), ``watch``, ``once``, ``check_config``.

Invariants & Safety:
  - Exit codes: ``0`` success or interrupt, ``1`` configuration or fatal
    session failure.
  - ``check-config`` never prints credentials or the Pushover token.
"""
from __future__ import annotations

import logging
from typing import Optional

import typer

from ._wiring import build_notifier, resolve_sleep_time
from .config.loader import load_runtime_config
from .core.scanner import SeenMessageSet, scan_unread
from .core.watch import WatchLoop
from .errors import ConfigLoadError, ConnectError, ProtocolUnsupportedError, SessionError
from .imap.client import SessionErrors, open_session
from .utils.ids import new_run_id
from .utils.logging import get_logger


app = typer.Typer(help="Push notifications for important mail, driven by IMAP IDLE")

LOGGER = logging.getLogger("mailpush.cli")


def _load(config_path: Optional[str]):
    try:
        return load_runtime_config(config_path)
    except ConfigLoadError as exc:
        LOGGER.error("runtime_load_failed: %s", exc)
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command("watch")
def watch(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
    sleep_time: Optional[int] = typer.Option(
        None,
        "--sleep-time",
        help="Override the IDLE cycle length in seconds",
    ),
) -> None:
    """Watch the mailbox with IMAP IDLE and notify until interrupted."""

    runtime = _load(config_path)
    logger = get_logger("mailpush.watch")
    notifier = build_notifier(runtime, logger=logger.child("mailpush.notify"))
    loop = WatchLoop(
        runtime,
        notifier=notifier,
        logger=logger,
        sleep_time=resolve_sleep_time(runtime, sleep_time),
    )
    try:
        loop.run_forever()
    except KeyboardInterrupt:
        logger.info("watch_stopped", cycles=loop.cycles, seen=len(loop.seen))
        raise typer.Exit(code=0) from None
    except ProtocolUnsupportedError as exc:
        logger.error("idle_unsupported", error=str(exc))
        typer.echo(f"Fatal: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except ConnectError as exc:
        logger.error("watch_aborted", error=str(exc))
        typer.echo(f"Fatal: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        notifier.close()


@app.command("once")
def once(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """Run a single unread scan and exit."""

    runtime = _load(config_path)
    run_id = new_run_id()
    logger = get_logger("mailpush.once")
    notifier = build_notifier(runtime, logger=logger.child("mailpush.notify"))
    try:
        with open_session(runtime.imap, logger=logger.child("mailpush.imap")) as session:
            stats = scan_unread(
                session,
                SeenMessageSet(),
                runtime.notify.words,
                notifier,
                logger=logger.child("mailpush.scanner"),
            )
    except SessionError as exc:
        logger.error("once_failed", run_id=run_id, error=str(exc))
        typer.echo(f"Fatal: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except SessionErrors as exc:
        logger.error("once_failed", run_id=run_id, error=str(exc))
        raise typer.Exit(code=1) from exc
    finally:
        notifier.close()
    logger.info(
        "once_completed",
        run_id=run_id,
        processed=stats.processed,
        notified=stats.notified,
        dispatch_failures=stats.dispatch_failures,
    )


@app.command("check-config")
def check_config(
    config_path: Optional[str] = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """Validate the configuration and print a summary without secrets."""

    runtime = _load(config_path)
    imap = runtime.imap
    scheme = "imaps" if imap.ssl else "imap"
    typer.echo(f"server: {scheme}://{imap.username}@{imap.host}:{imap.port}/{imap.folder}")
    typer.echo(f"sleep_time: {runtime.watch.sleep_time}s")
    typer.echo(f"body_length: {runtime.notify.body_length}")
    typer.echo(f"rules: {len(runtime.notify.words)}")
    for word, weight in sorted(runtime.notify.words.items(), key=lambda item: (-item[1], item[0])):
        typer.echo(f"  {weight:>6}  {word}")
    device = runtime.pushover.device or "<all devices>"
    typer.echo(f"pushover device: {device}")


def main() -> None:
    """Execute the Typer application entry point."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
