from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, ClassVar

from .. import utils
from .kinds import Policy, RuleList

DEFAULT_MAX_IDLE_TIME_MS = 600000


def _string_list(name: str, field: str, value: object) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Listener {name!r} {field} must be a list, got {type(value).__name__}")
    return list(value)


class Listener:
    """One listener definition as held by the console.

    The name is the record key and cannot change; renaming is delete + add.
    Fields the console does not model are kept in `extra` and written back
    untouched.
    """

    KNOWN_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"bind", "target_port", "max_idle_time_ms", "policy", "targets", "rules"}
    )

    def __init__(
        self,
        *,
        name: str,
        bind: object,
        target_port: object = None,
        max_idle_time_ms: object = DEFAULT_MAX_IDLE_TIME_MS,
        policy: object = Policy.ALLOW,
        targets: list[str] | None = None,
        static_hosts: list[str] | None = None,
        patterns: list[str] | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> None:
        name = utils.clean_str(name)
        if not name:
            raise ValueError("name must not be empty")
        self._name = name
        self.bind = bind
        self.target_port = target_port
        self.max_idle_time_ms = max_idle_time_ms
        self.policy = policy
        self._lists: dict[RuleList, list[str]] = {
            RuleList.TARGETS: utils.ensure_str_list(targets),
            RuleList.STATIC_HOSTS: utils.ensure_str_list(static_hosts),
            RuleList.PATTERNS: utils.ensure_str_list(patterns),
        }
        self.extra: dict[str, Any] = copy.deepcopy(dict(extra or {}))

    @property
    def name(self) -> str:
        return self._name

    @property
    def bind(self) -> str:
        return self._bind

    @bind.setter
    def bind(self, value: object) -> None:
        s = utils.clean_str(value)
        if not s:
            raise ValueError("bind must not be empty")
        self._bind = s

    @property
    def target_port(self) -> int | None:
        return self._target_port

    @target_port.setter
    def target_port(self, value: object) -> None:
        if value is None or utils.clean_str(value) == "":
            self._target_port = None
            return
        self._target_port = utils.parse_port(value, field="target_port")

    @property
    def max_idle_time_ms(self) -> int:
        return self._max_idle_time_ms

    @max_idle_time_ms.setter
    def max_idle_time_ms(self, value: object) -> None:
        if value is None:
            self._max_idle_time_ms = DEFAULT_MAX_IDLE_TIME_MS
            return
        self._max_idle_time_ms = utils.parse_non_negative_int(value, field="max_idle_time_ms")

    @property
    def policy(self) -> Policy:
        return self._policy

    @policy.setter
    def policy(self, value: object) -> None:
        self._policy = Policy.parse(value, default=Policy.ALLOW)

    @property
    def targets(self) -> list[str]:
        return self._lists[RuleList.TARGETS]

    @property
    def static_hosts(self) -> list[str]:
        return self._lists[RuleList.STATIC_HOSTS]

    @property
    def patterns(self) -> list[str]:
        return self._lists[RuleList.PATTERNS]

    def entries(self, rule_list: RuleList) -> list[str]:
        return self._lists[rule_list]

    def set_entries(self, rule_list: RuleList, values: list[str]) -> None:
        self._lists[rule_list] = list(values)

    @classmethod
    def from_json(cls, name: str, payload: Mapping[str, Any]) -> Listener:
        if not isinstance(payload, Mapping):
            raise ValueError(f"Listener {name!r} must be an object, got {type(payload).__name__}")
        rules = payload.get("rules")
        if rules is None:
            rules = {}
        if not isinstance(rules, Mapping):
            raise ValueError(f"Listener {name!r} rules must be an object")
        return cls(
            name=name,
            bind=payload.get("bind"),
            target_port=payload.get("target_port"),
            max_idle_time_ms=payload.get("max_idle_time_ms"),
            policy=payload.get("policy"),
            targets=_string_list(name, "targets", payload.get("targets")),
            static_hosts=_string_list(name, "static_hosts", rules.get("static_hosts")),
            patterns=_string_list(name, "patterns", rules.get("patterns")),
            extra={k: v for k, v in payload.items() if k not in cls.KNOWN_FIELDS},
        )

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = copy.deepcopy(self.extra)
        payload.update(
            {
                "bind": self.bind,
                "max_idle_time_ms": self.max_idle_time_ms,
                "policy": self.policy.value,
                "targets": list(self.targets),
                "rules": {
                    "static_hosts": list(self.static_hosts),
                    "patterns": list(self.patterns),
                },
            }
        )
        if self.target_port is not None:
            payload["target_port"] = self.target_port
        return payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Listener):
            return NotImplemented
        return self.name == other.name and self.to_json() == other.to_json()

    def __repr__(self) -> str:
        return f"Listener(name={self.name!r}, bind={self.bind!r})"
