from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Generic, TypeVar

from .configmanager import ConfigManager
from .models import Listener

logger = ConfigManager.get_logger(__name__)

V = TypeVar("V")


def record_sort_key(key: str) -> tuple[str, str]:
    """Case-folded order first, exact ordinal order to break ties.

    Independent of the process locale, so every caller sorts the same way.
    """
    return key.casefold(), key


def _sorted(records: list[tuple[str, V]]) -> list[tuple[str, V]]:
    return sorted(records, key=lambda r: record_sort_key(r[0]))


def replace_all(mapping: Mapping[str, V]) -> list[tuple[str, V]]:
    return _sorted([(str(k), v) for k, v in mapping.items()])


def upsert(records: Sequence[tuple[str, V]], key: str, value: V) -> list[tuple[str, V]]:
    out: list[tuple[str, V]] = []
    found = False
    for k, v in records:
        if k == key:
            out.append((k, value))
            found = True
        else:
            out.append((k, v))
    if not found:
        out.append((key, value))
    return _sorted(out)


def remove_by_key(records: Sequence[tuple[str, V]], key: str) -> list[tuple[str, V]]:
    return [(k, v) for k, v in records if k != key]


def to_mapping(records: Sequence[tuple[str, V]]) -> dict[str, V]:
    return {k: v for k, v in records}


class OrderedRecordStore(Generic[V]):
    """Keyed records kept sorted by key after every mutation.

    `replace_all` is the fetch entry point and discards prior contents;
    `upsert`/`remove` are the edit entry points. There is no merge.
    """

    label = "records"

    def __init__(self) -> None:
        self._records: list[tuple[str, V]] = []

    @property
    def records(self) -> list[tuple[str, V]]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[tuple[str, V]]:
        return iter(list(self._records))

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self._records)

    def keys(self) -> list[str]:
        return [k for k, _ in self._records]

    def get(self, key: str) -> V | None:
        for k, v in self._records:
            if k == key:
                return v
        return None

    def index_of(self, key: str) -> int:
        for i, (k, _) in enumerate(self._records):
            if k == key:
                return i
        return -1

    def replace_all(self, mapping: Mapping[str, V]) -> None:
        self._records = replace_all(mapping)
        logger.debug("Loaded %s %s", len(self._records), self.label)

    def upsert(self, key: str, value: V) -> None:
        self._records = upsert(self._records, key, value)

    def remove(self, key: str) -> None:
        self._records = remove_by_key(self._records, key)

    def to_mapping(self) -> dict[str, V]:
        return to_mapping(self._records)


class DnsStore(OrderedRecordStore[str]):
    """DNS overrides; setting a blank target deletes the override."""

    label = "dns overrides"

    def upsert(self, key: str, value: str) -> None:
        key = (key or "").strip()
        value = (value or "").strip()
        if not key:
            logger.debug("Ignoring dns override with empty name")
            return
        if not value:
            logger.debug("Blank target for %s; removing override", key)
            self.remove(key)
            return
        super().upsert(key, value)

    def remove(self, key: str) -> None:
        super().remove((key or "").strip())


class ListenerStore(OrderedRecordStore[Listener]):
    label = "listeners"
