from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Generator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from .aggregator import Level, Notification, aggregate, summarize
from .configmanager import ConfigManager
from .gateway import PFError, PFGateway
from .models import Action, Listener, OperationOutcome
from .record_store import DnsStore, ListenerStore
from .rule_editor import ListenerRuleEditor

logger = ConfigManager.get_logger(__name__)

FETCH_ERROR_MESSAGE = "Error fetching data"


class ActionState(str, Enum):
    IDLE = "idle"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    IN_FLIGHT = "in-flight"


@dataclass(frozen=True)
class ConfirmationRequest:
    action: Action
    message: str
    confirm_label: str
    cancel_label: str

    @classmethod
    def for_action(cls, action: Action) -> ConfirmationRequest:
        return cls(
            action=action,
            message=action.confirmation,
            confirm_label=action.confirm_label,
            cancel_label=f"Don't {action.value}",
        )


class Confirmer(Protocol):
    def __call__(self, request: ConfirmationRequest) -> bool: ...


class Notifier(Protocol):
    def __call__(self, notification: Notification) -> None: ...


class LoadingTracker:
    """Reference-counted "loading" indicator.

    Every `scope()` entry is released exactly once, whatever the outcome;
    `on_change` fires when the indicator turns on or off.
    """

    def __init__(self, on_change: Callable[[bool], None] | None = None) -> None:
        self._depth = 0
        self._on_change = on_change

    @property
    def active(self) -> bool:
        return self._depth > 0

    @property
    def depth(self) -> int:
        return self._depth

    @contextmanager
    def scope(self) -> Generator[None, None, None]:
        self._depth += 1
        if self._depth == 1 and self._on_change is not None:
            self._on_change(True)
        try:
            yield
        finally:
            self._depth -= 1
            if self._depth == 0 and self._on_change is not None:
                self._on_change(False)


@dataclass
class EditBuffer:
    """The editable local copy of the server's DNS and listener configuration."""

    dns: DnsStore = field(default_factory=DnsStore)
    listeners: ListenerStore = field(default_factory=ListenerStore)

    def __post_init__(self) -> None:
        self.editor = ListenerRuleEditor(self.listeners)

    def replace(self, dns: Mapping[str, str], listeners: Mapping[str, Listener]) -> None:
        self.dns.replace_all(dns)
        self.listeners.replace_all(listeners)


class ActionOrchestrator:
    """Runs lifecycle actions: confirm, call the gateway, notify, re-fetch.

    Transport and server errors never escape an action; they become error
    notifications and the local edit buffer is left as it was.
    """

    def __init__(
        self,
        gateway: PFGateway,
        *,
        confirm: Confirmer,
        notify: Notifier,
        buffer: EditBuffer | None = None,
        loading: LoadingTracker | None = None,
    ) -> None:
        self.gateway = gateway
        self.confirm = confirm
        self.notify = notify
        self.buffer = buffer if buffer is not None else EditBuffer()
        self.loading = loading if loading is not None else LoadingTracker()
        self.state = ActionState.IDLE
        self.in_flight: Action | None = None

    async def fetch(self) -> bool:
        """Reload DNS and listeners from the server.

        Both reads run concurrently and both are awaited; a failed read
        leaves its store untouched.
        """
        with self.loading.scope():
            results = await asyncio.gather(
                self.gateway.get_dns(),
                self.gateway.get_listeners(),
                return_exceptions=True,
            )
        dns_result, listeners_result = results
        ok = True
        for label, result in (("dns", dns_result), ("listeners", listeners_result)):
            if isinstance(result, PFError):
                logger.warning("Fetching %s failed: %s", label, result)
                self.notify(Notification(Level.ERROR, FETCH_ERROR_MESSAGE, (str(result),)))
                ok = False
            elif isinstance(result, BaseException):
                raise result
        if not isinstance(dns_result, BaseException):
            self.buffer.dns.replace_all(dns_result)
        if not isinstance(listeners_result, BaseException):
            self.buffer.listeners.replace_all(listeners_result)
        return ok

    def _confirmed(self, action: Action) -> bool:
        if self.in_flight is not None:
            logger.info("Ignoring %s while %s is in flight", action.value, self.in_flight.value)
            return False
        self.state = ActionState.AWAITING_CONFIRMATION
        confirmed = bool(self.confirm(ConfirmationRequest.for_action(action)))
        if not confirmed:
            logger.info("%s cancelled", action.value.capitalize())
            self.state = ActionState.IDLE
        return confirmed

    async def _perform(self, action: Action, operation: Callable[[], Awaitable[Notification]]) -> Notification | None:
        if not self._confirmed(action):
            return None
        self.state = ActionState.IN_FLIGHT
        self.in_flight = action
        logger.debug("%s in flight", action.value)
        try:
            with self.loading.scope():
                notification = await operation()
        except PFError as e:
            logger.warning("%s failed: %s", action.value.capitalize(), e)
            notification = Notification(Level.ERROR, f"Failed to {action.value}: {e}")
            self.notify(notification)
            return notification
        finally:
            self.state = ActionState.IDLE
            self.in_flight = None
        self.notify(notification)
        await self.fetch()
        return notification

    async def save(self) -> Notification | None:
        async def _save() -> Notification:
            dns = self.buffer.dns.to_mapping()
            listeners = self.buffer.listeners.to_mapping()
            logger.info("Saving %s dns overrides", len(dns))
            await self.gateway.put_dns(dns)
            logger.info("Saving %s listeners", len(listeners))
            await self.gateway.put_listeners(listeners)
            return Notification(Level.SUCCESS, "Configuration saved successfully")

        return await self._perform(Action.SAVE, _save)

    async def _lifecycle(
        self, action: Action, call: Callable[[], Awaitable[OperationOutcome]]
    ) -> Notification | None:
        async def _run() -> Notification:
            outcome = await call()
            summary = aggregate(outcome)
            logger.info(
                "%s result succeeded=%s failed=%s simple=%s",
                action.value,
                summary.succeeded,
                summary.failed,
                summary.simple,
            )
            return summarize(summary, action)

        return await self._perform(action, _run)

    async def start(self) -> Notification | None:
        return await self._lifecycle(Action.START, self.gateway.start)

    async def stop(self) -> Notification | None:
        return await self._lifecycle(Action.STOP, self.gateway.stop)

    async def restart(self) -> Notification | None:
        return await self._lifecycle(Action.RESTART, self.gateway.restart)

    async def restore(self) -> Notification | None:
        async def _restore() -> Notification:
            result = await self.gateway.restore()
            logger.debug("Restore result %r", result)
            return Notification(Level.SUCCESS, "Configuration restored successfully")

        return await self._perform(Action.RESTORE, _restore)

    async def run(self, action: Action) -> Notification | None:
        handlers: dict[Action, Callable[[], Awaitable[Notification | None]]] = {
            Action.SAVE: self.save,
            Action.START: self.start,
            Action.STOP: self.stop,
            Action.RESTART: self.restart,
            Action.RESTORE: self.restore,
        }
        return await handlers[action]()
