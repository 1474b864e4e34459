from __future__ import annotations

import typer

from .cli_common import console_context, fetch_or_exit, print_json, run_async, save_if_changed

dns_app = typer.Typer(no_args_is_help=True)


@dns_app.command("list")
def dns_list(json_out: bool = typer.Option(False, "--json", help="Print JSON")) -> None:
    async def _run() -> None:
        async with console_context() as console:
            await fetch_or_exit(console)
            if json_out:
                print_json(console.buffer.dns.to_mapping())
                return
            for source, target in console.buffer.dns:
                print(f"{source}\t{target}")

    run_async(_run())


@dns_app.command("set")
def dns_set(
    source: str = typer.Argument(..., metavar="FROM", help="Host name to override"),
    target: str = typer.Argument(..., metavar="TO", help="Replacement address (empty string deletes)"),
    force: bool = typer.Option(False, "--force", help="Save without asking"),
) -> None:
    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            dns = console.buffer.dns
            before = dns.to_mapping()
            dns.upsert(source, target)
            await save_if_changed(console, dns.to_mapping() != before)

    run_async(_run())


@dns_app.command("delete")
def dns_delete(
    source: str = typer.Argument(..., metavar="FROM"),
    force: bool = typer.Option(False, "--force", help="Save without asking"),
) -> None:
    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            dns = console.buffer.dns
            before = len(dns)
            dns.remove(source)
            await save_if_changed(console, len(dns) != before)

    run_async(_run())
