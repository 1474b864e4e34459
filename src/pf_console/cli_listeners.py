from __future__ import annotations

import typer

from .cli_common import console_context, fetch_or_exit, print_json, run_async, save_if_changed
from .models import Listener, RuleList

listener_app = typer.Typer(no_args_is_help=True)


def _rule_list(value: str) -> RuleList:
    try:
        return RuleList.parse(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def _describe(listener: Listener) -> list[str]:
    lines = [
        f"name\t{listener.name}",
        f"bind\t{listener.bind}",
        f"target_port\t{listener.target_port if listener.target_port is not None else ''}",
        f"max_idle_time_ms\t{listener.max_idle_time_ms}",
        f"policy\t{listener.policy.value}",
    ]
    for rule_list in RuleList:
        lines.append(f"{rule_list.value}\t{','.join(listener.entries(rule_list))}")
    return lines


@listener_app.command("list")
def listener_list(json_out: bool = typer.Option(False, "--json", help="Print JSON")) -> None:
    async def _run() -> None:
        async with console_context() as console:
            await fetch_or_exit(console)
            listeners = console.buffer.listeners
            if json_out:
                print_json({name: listener.to_json() for name, listener in listeners})
                return
            for name, listener in listeners:
                print(f"{name}\t{listener.bind}\t{listener.policy.value}\t{','.join(listener.targets)}")

    run_async(_run())


@listener_app.command("show")
def listener_show(
    name: str = typer.Argument(...),
    json_out: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    async def _run() -> None:
        async with console_context() as console:
            await fetch_or_exit(console)
            listener = console.buffer.listeners.get(name)
            if listener is None:
                raise typer.BadParameter(f"Unknown listener: {name}")
            if json_out:
                print_json(listener.to_json())
                return
            for line in _describe(listener):
                print(line)

    run_async(_run())


@listener_app.command("add")
def listener_add(
    name: str = typer.Argument(...),
    bind: str = typer.Argument(..., help="Bind address, e.g. 0.0.0.0:443"),
    target_port: int | None = typer.Option(None, "--target-port"),
    max_idle_ms: int | None = typer.Option(None, "--max-idle-ms"),
    policy: str | None = typer.Option(None, "--policy", help="ALLOW or DENY"),
    force: bool = typer.Option(False, "--force", help="Save without asking"),
) -> None:
    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            added = console.buffer.editor.add_listener(
                name, bind, target_port=target_port, max_idle_time_ms=max_idle_ms, policy=policy
            )
            if not added:
                typer.echo(f"Listener not added: {name!r} exists or input is invalid", err=True)
                raise typer.Exit(code=1)
            await save_if_changed(console, True)

    run_async(_run())


@listener_app.command("update")
def listener_update(
    name: str = typer.Argument(...),
    bind: str | None = typer.Option(None, "--bind"),
    target_port: int | None = typer.Option(None, "--target-port"),
    max_idle_ms: int | None = typer.Option(None, "--max-idle-ms"),
    policy: str | None = typer.Option(None, "--policy", help="ALLOW or DENY"),
    force: bool = typer.Option(False, "--force", help="Save without asking"),
) -> None:
    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            changed = console.buffer.editor.update_listener(
                name, bind=bind, target_port=target_port, max_idle_time_ms=max_idle_ms, policy=policy
            )
            await save_if_changed(console, changed)

    run_async(_run())


@listener_app.command("delete")
def listener_delete(
    name: str = typer.Argument(...),
    force: bool = typer.Option(False, "--force", help="Save without asking"),
) -> None:
    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            await save_if_changed(console, console.buffer.editor.delete_listener(name))

    run_async(_run())


@listener_app.command("rule-add")
def listener_rule_add(
    name: str = typer.Argument(...),
    rule_list: str = typer.Argument(..., metavar="LIST", help="targets, static_hosts or patterns"),
    value: str = typer.Argument(...),
    force: bool = typer.Option(False, "--force", help="Save without asking"),
) -> None:
    selected = _rule_list(rule_list)

    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            await save_if_changed(console, console.buffer.editor.add_entry(name, selected, value))

    run_async(_run())


@listener_app.command("rule-edit")
def listener_rule_edit(
    name: str = typer.Argument(...),
    rule_list: str = typer.Argument(..., metavar="LIST", help="targets, static_hosts or patterns"),
    old_value: str = typer.Argument(..., metavar="OLD"),
    new_value: str = typer.Argument(..., metavar="NEW", help="Empty string removes the entry"),
    force: bool = typer.Option(False, "--force", help="Save without asking"),
) -> None:
    selected = _rule_list(rule_list)

    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            changed = console.buffer.editor.edit_entry(name, selected, old_value, new_value)
            await save_if_changed(console, changed)

    run_async(_run())


@listener_app.command("rule-remove")
def listener_rule_remove(
    name: str = typer.Argument(...),
    rule_list: str = typer.Argument(..., metavar="LIST", help="targets, static_hosts or patterns"),
    value: str = typer.Argument(...),
    force: bool = typer.Option(False, "--force", help="Save without asking"),
) -> None:
    selected = _rule_list(rule_list)

    async def _run() -> None:
        async with console_context(force=force) as console:
            await fetch_or_exit(console)
            await save_if_changed(console, console.buffer.editor.remove_entry(name, selected, value))

    run_async(_run())
