from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .models import Action, ListenerErr, ListenerOk, OperationOutcome, PerListenerResult, SimpleResult


class Level(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: Level
    message: str
    details: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.level is Level.SUCCESS

    def render(self) -> str:
        return "\n".join([self.message, *(f"  {d}" for d in self.details)])


@dataclass(frozen=True)
class OperationSummary:
    succeeded: int = 0
    failed: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)
    simple: SimpleResult | None = None

    @property
    def ok(self) -> bool:
        if self.simple is not None:
            return self.simple.success
        return self.failed == 0


def failed_listeners(result: PerListenerResult) -> list[tuple[str, str]]:
    return [(name, status.message) for name, status in result.statuses.items() if isinstance(status, ListenerErr)]


def aggregate(outcome: OperationOutcome) -> OperationSummary:
    if isinstance(outcome, SimpleResult):
        return OperationSummary(simple=outcome)
    succeeded = sum(1 for status in outcome.statuses.values() if isinstance(status, ListenerOk))
    failures = failed_listeners(outcome)
    return OperationSummary(succeeded=succeeded, failed=len(failures), failures=failures)


def summarize(summary: OperationSummary, action: Action) -> Notification:
    simple = summary.simple
    if simple is not None:
        if not simple.success:
            reason = simple.message or "unknown error"
            return Notification(Level.ERROR, f"Failed to {action.value} server: {reason}")
        if not simple.changed:
            return Notification(Level.SUCCESS, f"Server already {action.steady_state}")
        return Notification(Level.SUCCESS, f"Server {action.past_tense}")

    if summary.failed == 0:
        return Notification(Level.SUCCESS, f"Server {action.past_tense}, {summary.succeeded} listeners OK")
    return Notification(
        Level.ERROR,
        f"Server {action.past_tense}. {summary.succeeded} listeners OK, {summary.failed} listeners failed",
        tuple(f"{name}: {reason}" for name, reason in summary.failures),
    )
