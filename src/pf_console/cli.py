from __future__ import annotations

import asyncio
from pathlib import Path

import typer

from .aggregator import failed_listeners
from .cli_common import (
    console_context,
    fetch_or_exit,
    finish,
    gateway_from_env,
    load_config_callback,
    print_json,
    run_async,
)
from .cli_dns import dns_app
from .cli_listeners import listener_app
from .configmanager import ConfigManager
from .models import Action
from .monitor import StatsMonitor, StatsView
from .snapshot import export_snapshot, load_snapshot
from .utils import format_bytes

logger = ConfigManager.get_logger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
    pretty_exceptions_short=True,
)
app.add_typer(dns_app, name="dns", help="DNS overrides")
app.add_typer(listener_app, name="listener", help="Listener definitions and rules")


@app.callback()
def main(
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        envvar="PF_ENV_FILE",
        is_eager=True,
        callback=load_config_callback,
        help="Env file to load before reading configuration",
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR, CRITICAL"),
    log_file: str | None = typer.Option(None, "--log-file", help="Also log to this file (or directory)"),
) -> None:
    """Operator console for the port forwarder admin API."""
    try:
        ConfigManager.configure_logging(
            log_level or ConfigManager.log_level(),
            log_file=log_file,
            file_level="DEBUG" if log_file else None,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def _run_action(action: Action, force: bool) -> None:
    async def _run() -> None:
        async with console_context(force=force) as console:
            finish(await console.run(action))

    run_async(_run())


@app.command("save")
def save(force: bool = typer.Option(False, "--force", help="Do not ask for confirmation")) -> None:
    """Write the server's current in-memory configuration to its config file."""

    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            finish(await console.save())

    run_async(_run())


@app.command("start")
def start(force: bool = typer.Option(False, "--force", help="Do not ask for confirmation")) -> None:
    """Start all listeners from the saved configuration."""
    _run_action(Action.START, force)


@app.command("stop")
def stop(force: bool = typer.Option(False, "--force", help="Do not ask for confirmation")) -> None:
    """Stop all listeners."""
    _run_action(Action.STOP, force)


@app.command("restart")
def restart(force: bool = typer.Option(False, "--force", help="Do not ask for confirmation")) -> None:
    """Restart all listeners with the saved configuration."""
    _run_action(Action.RESTART, force)


@app.command("restore")
def restore(force: bool = typer.Option(False, "--force", help="Do not ask for confirmation")) -> None:
    """Discard unapplied changes and restore the last applied configuration."""
    _run_action(Action.RESTORE, force)


def _print_view(view: StatsView) -> None:
    stamp = view.updated_at.isoformat(timespec="seconds") if view.updated_at else "-"
    print(f"# updated {stamp} (cycle {view.cycles})")
    for s in view.stats:
        print(
            f"{s.name}\t{view.bind_of(s.name)}\t{s.total}\t{s.active}\t"
            f"{format_bytes(s.downloaded_bytes)}\t{format_bytes(s.uploaded_bytes)}"
        )
    for name, reason in view.failed:
        print(f"FAILED\t{name}\t{reason}")


@app.command("stats")
def stats(
    watch: bool = typer.Option(False, "--watch", help="Keep refreshing until interrupted"),
    interval: float | None = typer.Option(None, "--interval", help="Seconds between refreshes"),
    json_out: bool = typer.Option(False, "--json", help="Print JSON (single refresh only)"),
) -> None:
    """Show per-listener connection and traffic statistics."""
    try:
        interval_s = interval if interval is not None else ConfigManager.stats_interval_s()
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None
    if interval_s <= 0:
        raise typer.BadParameter("--interval must be > 0")

    async def _run() -> None:
        async with gateway_from_env() as gateway:
            if not watch:
                view = await StatsMonitor(gateway, interval_s=interval_s).refresh_once()
                if json_out:
                    print_json(
                        {
                            "stats": [s.to_json() for s in view.stats],
                            "failed": {name: reason for name, reason in view.failed},
                        }
                    )
                    return
                _print_view(view)
                return

            monitor = StatsMonitor(gateway, interval_s=interval_s)
            monitor.start()
            try:
                while True:
                    await asyncio.sleep(interval_s)
                    _print_view(monitor.view)
            finally:
                await monitor.stop()

    try:
        run_async(_run())
    except KeyboardInterrupt:
        raise typer.Exit(code=0) from None


@app.command("status")
def status(json_out: bool = typer.Option(False, "--json", help="Print JSON")) -> None:
    """Show listeners that failed to start."""

    async def _run() -> None:
        async with gateway_from_env() as gateway:
            statuses = await gateway.get_listener_statuses()
        failed = failed_listeners(statuses)
        if json_out:
            print_json({name: reason for name, reason in failed})
            return
        typer.echo(f"{len(statuses.statuses) - len(failed)} listeners OK, {len(failed)} failed")
        for name, reason in failed:
            print(f"{name}\t{reason}")

    run_async(_run())


@app.command("export")
def export(file: Path = typer.Argument(..., dir_okay=False, help="YAML file to write")) -> None:
    """Write the server's DNS overrides and listeners to a YAML file."""

    async def _run() -> None:
        async with console_context() as console:
            await fetch_or_exit(console)
            export_snapshot(file, console.buffer.dns.to_mapping(), console.buffer.listeners.to_mapping())
        typer.echo(f"Exported to {file}")

    run_async(_run())


@app.command("import")
def import_(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="YAML file from `export`"),
    force: bool = typer.Option(False, "--force", help="Do not ask for confirmation"),
) -> None:
    """Replace the server's DNS overrides and listeners with a YAML file's contents."""
    try:
        dns, listeners = load_snapshot(file)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None

    async def _run() -> None:
        async with console_context(force=force) as console:
            console.buffer.replace(dns, listeners)
            finish(await console.save())

    run_async(_run())


if __name__ == "__main__":
    app()
