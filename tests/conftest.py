from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

import pytest

from pf_console.aggregator import Notification
from pf_console.gateway import PFError
from pf_console.models import Listener, ListenerStats, OperationOutcome, PerListenerResult, decode_outcome
from pf_console.orchestrator import ActionOrchestrator, ConfirmationRequest


@pytest.fixture(scope="session", autouse=True)
def _set_env_test_file() -> None:
    if "PF_ENV_FILE" not in os.environ:
        os.environ["PF_ENV_FILE"] = ".env.test"


def bool_env(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


def listener_payload(bind: str, **fields: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "bind": bind,
        "max_idle_time_ms": 600000,
        "policy": "ALLOW",
        "targets": [],
        "rules": {"static_hosts": [], "patterns": []},
    }
    payload.update(fields)
    return payload


class FakeGateway:
    """In-memory stand-in for PFGateway.

    `fail` maps a method name to the PFError it should raise.
    """

    def __init__(
        self,
        *,
        dns: Mapping[str, str] | None = None,
        listeners: Mapping[str, Mapping[str, Any]] | None = None,
        outcomes: Mapping[str, Any] | None = None,
        statuses: Mapping[str, Any] | None = None,
        stats: Mapping[str, Any] | None = None,
    ) -> None:
        self.dns = dict(dns or {})
        self.listeners = {name: Listener.from_json(name, body) for name, body in (listeners or {}).items()}
        self.outcomes = dict(outcomes or {})
        self.statuses = dict(statuses or {})
        self.stats = dict(stats or {})
        self.fail: dict[str, PFError] = {}
        self.calls: list[str] = []

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    async def get_dns(self) -> dict[str, str]:
        self._enter("get_dns")
        return dict(self.dns)

    async def put_dns(self, dns: Mapping[str, str]) -> dict[str, str]:
        self._enter("put_dns")
        self.dns = dict(dns)
        return dict(self.dns)

    async def get_listeners(self) -> dict[str, Listener]:
        self._enter("get_listeners")
        return {name: Listener.from_json(name, item.to_json()) for name, item in self.listeners.items()}

    async def put_listeners(self, listeners: Mapping[str, Listener]) -> dict[str, Listener]:
        self._enter("put_listeners")
        self.listeners = {name: Listener.from_json(name, item.to_json()) for name, item in listeners.items()}
        return {name: Listener.from_json(name, item.to_json()) for name, item in self.listeners.items()}

    async def get_listener_statuses(self) -> PerListenerResult:
        self._enter("get_listener_statuses")
        outcome = decode_outcome(self.statuses)
        assert isinstance(outcome, PerListenerResult)
        return outcome

    async def get_listener_stats(self) -> dict[str, ListenerStats]:
        self._enter("get_listener_stats")
        return {k: ListenerStats.from_json(k, v) for k, v in self.stats.items()}

    async def _outcome(self, name: str) -> OperationOutcome:
        self._enter(name)
        return decode_outcome(self.outcomes.get(name, {}))

    async def restart(self) -> OperationOutcome:
        return await self._outcome("restart")

    async def start(self) -> OperationOutcome:
        return await self._outcome("start")

    async def stop(self) -> OperationOutcome:
        return await self._outcome("stop")

    async def restore(self) -> str:
        self._enter("restore")
        return "OK"


class Recorder:
    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.requests: list[ConfirmationRequest] = []
        self.notifications: list[Notification] = []

    def confirm(self, request: ConfirmationRequest) -> bool:
        self.requests.append(request)
        return self.answer

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(
        dns={"b.example": "10.0.0.2", "a.example": "10.0.0.1"},
        listeners={
            "web": listener_payload("0.0.0.0:443", targets=["10.0.0.5:443"]),
            "Admin": listener_payload("0.0.0.0:8443"),
        },
    )


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def orchestrator(gateway: FakeGateway, recorder: Recorder) -> ActionOrchestrator:
    return ActionOrchestrator(gateway, confirm=recorder.confirm, notify=recorder.notify)  # type: ignore[arg-type]


@pytest.fixture(scope="session")
def pf_base_url() -> str:
    base_url = os.getenv("PF_BASE_URL")
    if not base_url:
        pytest.skip("PF_BASE_URL not set")
    return base_url
