from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator, Coroutine
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import typer

from .aggregator import Notification
from .configmanager import ConfigManager
from .gateway import PFAuthError, PFError, PFGateway
from .orchestrator import ActionOrchestrator, ConfirmationRequest, Confirmer, LoadingTracker

logger = ConfigManager.get_logger(__name__)

T = TypeVar("T")


def load_config_callback(value: str | None) -> str | None:
    """Eager callback to load env file before other options are processed."""
    ConfigManager.load_dotenv(value)
    return value


def print_json(value: Any) -> None:
    print(json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2))


def gateway_from_env() -> PFGateway:
    base_url = ConfigManager.base_url()
    if not base_url:
        raise typer.BadParameter("PF_BASE_URL is required (set in environment or .env)")
    try:
        return PFGateway(
            base_url=base_url,
            auth=ConfigManager.credentials(),
            verify_tls=ConfigManager.verify_tls(),
            timeout_s=ConfigManager.timeout_s(),
            retry_count=ConfigManager.http_retry_count(),
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def make_confirmer(*, force: bool) -> Confirmer:
    def _confirm(request: ConfirmationRequest) -> bool:
        if force:
            logger.debug("%s confirmed by --force", request.action.value)
            return True
        typer.echo(request.message)
        return typer.confirm(f"{request.confirm_label}?", default=False)

    return _confirm


def echo_notification(notification: Notification) -> None:
    typer.echo(notification.render(), err=not notification.ok)


def _log_loading(active: bool) -> None:
    logger.debug("Loading %s", "started" if active else "finished")


@asynccontextmanager
async def console_context(*, force: bool = False) -> AsyncGenerator[ActionOrchestrator, None]:
    async with gateway_from_env() as gateway:
        yield ActionOrchestrator(
            gateway,
            confirm=make_confirmer(force=force),
            notify=echo_notification,
            loading=LoadingTracker(_log_loading),
        )


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except PFAuthError as e:
        typer.echo(f"Authentication failed: {e}", err=True)
        raise typer.Exit(code=2) from None
    except PFError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(code=1) from None


async def fetch_or_exit(console: ActionOrchestrator) -> None:
    if not await console.fetch():
        raise typer.Exit(code=1)


def finish(notification: Notification | None) -> None:
    """Exit non-zero when the action was declined or reported a failure."""
    if notification is None:
        typer.echo("Cancelled", err=True)
        raise typer.Exit(code=1)
    if not notification.ok:
        raise typer.Exit(code=1)


async def save_if_changed(console: ActionOrchestrator, changed: bool) -> None:
    if not changed:
        typer.echo("No changes")
        return
    finish(await console.save())
