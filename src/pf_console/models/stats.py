from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .. import utils


@dataclass(frozen=True)
class ListenerStats:
    name: str
    total: int = 0
    active: int = 0
    downloaded_bytes: int = 0
    uploaded_bytes: int = 0

    @classmethod
    def from_json(cls, key: str, payload: Mapping[str, Any]) -> ListenerStats:
        if not isinstance(payload, Mapping):
            raise ValueError(f"Stats for {key!r} must be an object")
        name = utils.clean_str(payload.get("name")) or key
        return cls(
            name=name,
            total=utils.normalize_int(payload.get("total"), default=0),
            active=utils.normalize_int(payload.get("active"), default=0),
            downloaded_bytes=utils.normalize_int(payload.get("downloaded_bytes", payload.get("downloadedBytes")), default=0),
            uploaded_bytes=utils.normalize_int(payload.get("uploaded_bytes", payload.get("uploadedBytes")), default=0),
        )

    def to_json(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "total": self.total,
            "active": self.active,
            "downloaded_bytes": self.downloaded_bytes,
            "uploaded_bytes": self.uploaded_bytes,
        }
