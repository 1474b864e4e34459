from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ListenerOk:
    value: bool = True


@dataclass(frozen=True)
class ListenerErr:
    message: str


ListenerStatus = Union[ListenerOk, ListenerErr]


@dataclass(frozen=True)
class SimpleResult:
    """Whole-service outcome, e.g. `start` when the server is already running."""

    success: bool
    changed: bool
    message: str | None = None


@dataclass(frozen=True)
class PerListenerResult:
    statuses: dict[str, ListenerStatus] = field(default_factory=dict)


OperationOutcome = Union[SimpleResult, PerListenerResult]


def is_simple_payload(payload: object) -> bool:
    return isinstance(payload, Mapping) and "success" in payload and "changed" in payload


def decode_listener_status(raw: object) -> ListenerStatus:
    """`{"Ok": true}` or `{"Err": {"message": "..."}}`.

    Presence of the `Ok` key decides success; anything else counts as a
    failure, with `Err.message` as the reason when the backend sent one.
    """
    if isinstance(raw, Mapping):
        if "Ok" in raw:
            return ListenerOk(bool(raw.get("Ok")))
        err = raw.get("Err")
        if isinstance(err, Mapping) and err.get("message") is not None:
            return ListenerErr(str(err.get("message")))
        if isinstance(err, str) and err:
            return ListenerErr(err)
    return ListenerErr(f"unrecognized status: {raw!r}")


def decode_statuses(payload: object) -> PerListenerResult:
    if not isinstance(payload, Mapping):
        raise ValueError(f"Expected listener status object, got {type(payload).__name__}")
    return PerListenerResult({str(name): decode_listener_status(raw) for name, raw in payload.items()})


def decode_outcome(payload: object) -> OperationOutcome:
    """Decode a lifecycle response once into its tagged variant.

    The backend returns either `{success, changed, message?}` or a
    per-listener status map from the same endpoint; the shape decides which.
    """
    if is_simple_payload(payload):
        assert isinstance(payload, Mapping)
        message = payload.get("message")
        return SimpleResult(
            success=bool(payload.get("success")),
            changed=bool(payload.get("changed")),
            message=None if message is None else str(message),
        )
    return decode_statuses(payload)


def outcome_to_json(outcome: OperationOutcome) -> dict[str, Any]:
    if isinstance(outcome, SimpleResult):
        return {"success": outcome.success, "changed": outcome.changed, "message": outcome.message}
    out: dict[str, Any] = {}
    for name, status in outcome.statuses.items():
        if isinstance(status, ListenerOk):
            out[name] = {"Ok": status.value}
        else:
            out[name] = {"Err": {"message": status.message}}
    return out
