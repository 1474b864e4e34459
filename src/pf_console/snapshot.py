from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import Listener


def dumps_deterministic(data: Any) -> str:
    # Stable across runs: sorted keys, block style, newline at EOF.
    return (
        yaml.safe_dump(
            data,
            allow_unicode=True,
            sort_keys=True,
            default_flow_style=False,
        )
        or ""
    )


def atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=path.name + ".", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        Path(tmp_path).replace(path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def snapshot_payload(dns: Mapping[str, str], listeners: Mapping[str, Listener]) -> dict[str, Any]:
    return {
        "dns": dict(dns),
        "listeners": {name: listener.to_json() for name, listener in listeners.items()},
    }


def export_snapshot(path: Path, dns: Mapping[str, str], listeners: Mapping[str, Listener]) -> None:
    atomic_write_text(path, dumps_deterministic(snapshot_payload(dns, listeners)))


def load_snapshot(path: Path) -> tuple[dict[str, str], dict[str, Listener]]:
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"{path}: invalid YAML ({e})") from e
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: snapshot must contain an object")

    dns_raw = payload.get("dns") or {}
    listeners_raw = payload.get("listeners") or {}
    if not isinstance(dns_raw, dict):
        raise ValueError(f"{path}: 'dns' must be an object")
    if not isinstance(listeners_raw, dict):
        raise ValueError(f"{path}: 'listeners' must be an object")

    dns: dict[str, str] = {}
    for k, v in dns_raw.items():
        key = str(k).strip()
        value = str(v if v is not None else "").strip()
        if not key or not value:
            raise ValueError(f"{path}: dns override {k!r} needs a name and a target")
        dns[key] = value

    parsed = [Listener.from_json(str(name), body) for name, body in listeners_raw.items()]
    listeners = {listener.name: listener for listener in parsed}
    return dns, listeners
