from __future__ import annotations

from enum import Enum


class Policy(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"

    @staticmethod
    def parse(value: object, *, default: Policy | None = None) -> Policy:
        if isinstance(value, Policy):
            return value
        s = str(value if value is not None else "").strip().upper()
        if not s:
            if default is None:
                raise ValueError("Missing policy")
            return default
        try:
            return Policy(s)
        except ValueError:
            allowed = ", ".join(p.value for p in Policy)
            raise ValueError(f"Invalid policy: {value!r}. Use one of: {allowed}") from None


class RuleList(str, Enum):
    """Selects one of a listener's editable string lists."""

    TARGETS = "targets"
    STATIC_HOSTS = "static_hosts"
    PATTERNS = "patterns"

    @staticmethod
    def parse(value: object) -> RuleList:
        if isinstance(value, RuleList):
            return value
        s = str(value or "").strip().lower().replace("-", "_")
        try:
            return RuleList(s)
        except ValueError:
            allowed = ", ".join(k.value for k in RuleList)
            raise ValueError(f"Unknown list: {value!r}. Use one of: {allowed}") from None


class Action(str, Enum):
    SAVE = "save"
    START = "start"
    STOP = "stop"
    RESTART = "restart"
    RESTORE = "restore"

    @property
    def past_tense(self) -> str:
        return _ACTION_TEXT[self][0]

    @property
    def steady_state(self) -> str:
        """Server state after the action, for "already ..." messages."""
        return _ACTION_TEXT[self][1]

    @property
    def confirmation(self) -> str:
        return _ACTION_TEXT[self][2]

    @property
    def confirm_label(self) -> str:
        return _ACTION_TEXT[self][3]


# past tense, steady state, confirmation prompt, confirm button
_ACTION_TEXT: dict[Action, tuple[str, str, str, str]] = {
    Action.SAVE: (
        "saved",
        "saved",
        "This will save the configuration to the server (write to file) but does not restart server.",
        "Save without restart",
    ),
    Action.START: (
        "started",
        "running",
        "This will start the server with the last saved configuration.",
        "Start",
    ),
    Action.STOP: (
        "stopped",
        "stopped",
        "This will stop all listeners. All connections will be interrupted.",
        "Stop anyway",
    ),
    Action.RESTART: (
        "restarted",
        "running",
        "This will restart server according to the last saved configuration. All connections will be interrupted.",
        "Restart anyway",
    ),
    Action.RESTORE: (
        "restored",
        "restored",
        "This will restore the server's config to last applied config and discard any unapplied config.",
        "Restore anyway",
    ),
}
