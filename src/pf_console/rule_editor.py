from __future__ import annotations

from collections.abc import Sequence

from .configmanager import ConfigManager
from .models import Listener, Policy, RuleList
from .record_store import OrderedRecordStore

logger = ConfigManager.get_logger(__name__)


def add_entry(values: Sequence[str], value: str) -> list[str]:
    v = (value or "").strip()
    if not v or v in values:
        return list(values)
    return [*values, v]


def remove_entry(values: Sequence[str], value: str) -> list[str]:
    return [v for v in values if v != value]


def edit_entry(values: Sequence[str], old_value: str, new_value_raw: str) -> list[str]:
    new_value = (new_value_raw or "").strip()
    if not new_value:
        return remove_entry(values, old_value)
    out: list[str] = []
    for v in values:
        v = new_value if v == old_value else v
        # Renaming onto an existing entry collapses the two.
        if v not in out:
            out.append(v)
    return out


class ListenerRuleEditor:
    """Local edits against the listener store.

    Edits naming a listener that is no longer in the store are dropped
    silently, as are invalid inputs; each returns whether anything changed.
    """

    def __init__(self, store: OrderedRecordStore[Listener]) -> None:
        self.store = store

    def _find(self, name: str) -> Listener | None:
        name = (name or "").strip()
        for key, listener in self.store:
            if key == name:
                return listener
        logger.debug("Listener %s not found; edit ignored", name)
        return None

    def add_listener(
        self,
        name: str,
        bind: str,
        *,
        target_port: int | None = None,
        max_idle_time_ms: int | None = None,
        policy: Policy | str | None = None,
    ) -> bool:
        name = (name or "").strip()
        bind = (bind or "").strip()
        if not name or not bind:
            logger.debug("Rejected listener with empty name or bind")
            return False
        if name in self.store:
            logger.info("Listener %s already exists", name)
            return False
        try:
            listener = Listener(
                name=name,
                bind=bind,
                target_port=target_port,
                max_idle_time_ms=max_idle_time_ms,
                policy=policy,
            )
        except ValueError as e:
            logger.info("Rejected listener %s: %s", name, e)
            return False
        self.store.upsert(name, listener)
        return True

    def delete_listener(self, name: str) -> bool:
        name = (name or "").strip()
        if name not in self.store:
            return False
        self.store.remove(name)
        return True

    def update_listener(
        self,
        name: str,
        *,
        bind: str | None = None,
        target_port: int | None = None,
        max_idle_time_ms: int | None = None,
        policy: Policy | str | None = None,
    ) -> bool:
        listener = self._find(name)
        if listener is None:
            return False
        candidate = Listener.from_json(name, listener.to_json())
        try:
            if bind is not None:
                candidate.bind = bind
            if target_port is not None:
                candidate.target_port = target_port
            if max_idle_time_ms is not None:
                candidate.max_idle_time_ms = max_idle_time_ms
            if policy is not None:
                candidate.policy = policy
        except ValueError as e:
            logger.info("Rejected update of listener %s: %s", name, e)
            return False
        if candidate == listener:
            return False
        listener.bind = candidate.bind
        listener.target_port = candidate.target_port
        listener.max_idle_time_ms = candidate.max_idle_time_ms
        listener.policy = candidate.policy
        return True

    def add_entry(self, name: str, rule_list: RuleList, value: str) -> bool:
        listener = self._find(name)
        if listener is None:
            return False
        before = listener.entries(rule_list)
        after = add_entry(before, value)
        if after == before:
            return False
        listener.set_entries(rule_list, after)
        return True

    def edit_entry(self, name: str, rule_list: RuleList, old_value: str, new_value_raw: str) -> bool:
        listener = self._find(name)
        if listener is None:
            return False
        before = listener.entries(rule_list)
        after = edit_entry(before, old_value, new_value_raw)
        if after == before:
            return False
        listener.set_entries(rule_list, after)
        return True

    def remove_entry(self, name: str, rule_list: RuleList, value: str) -> bool:
        listener = self._find(name)
        if listener is None:
            return False
        before = listener.entries(rule_list)
        after = remove_entry(before, value)
        if after == before:
            return False
        listener.set_entries(rule_list, after)
        return True
