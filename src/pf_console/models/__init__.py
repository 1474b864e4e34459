from .kinds import Action, Policy, RuleList
from .listener import DEFAULT_MAX_IDLE_TIME_MS, Listener
from .outcome import (
    ListenerErr,
    ListenerOk,
    ListenerStatus,
    OperationOutcome,
    PerListenerResult,
    SimpleResult,
    decode_listener_status,
    decode_outcome,
    decode_statuses,
    outcome_to_json,
)
from .stats import ListenerStats

__all__ = [
    "Action",
    "DEFAULT_MAX_IDLE_TIME_MS",
    "Listener",
    "ListenerErr",
    "ListenerOk",
    "ListenerStats",
    "ListenerStatus",
    "OperationOutcome",
    "PerListenerResult",
    "Policy",
    "RuleList",
    "SimpleResult",
    "decode_listener_status",
    "decode_outcome",
    "decode_statuses",
    "outcome_to_json",
]
