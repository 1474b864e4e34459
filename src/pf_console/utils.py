from __future__ import annotations

from collections.abc import Iterable


def normalize_int(value: object, *, default: int = -1) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def parse_port(value: object, *, field: str) -> int:
    if value is None:
        raise ValueError(f"Missing {field}")
    try:
        port = int(str(value).strip())
    except ValueError as e:
        raise ValueError(f"Invalid {field}") from e
    if port <= 0 or port > 65535:
        raise ValueError(f"Invalid {field}")
    return port


def parse_non_negative_int(value: object, *, field: str) -> int:
    try:
        v = int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid {field}") from e
    if v < 0:
        raise ValueError(f"{field} must be >= 0")
    return v


def clean_str(value: object) -> str:
    return str(value if value is not None else "").strip()


def ensure_str_list(values: Iterable[object] | None) -> list[str]:
    """Trimmed, non-empty strings with duplicates dropped; first occurrence wins."""
    if values is None:
        return []
    out: list[str] = []
    for v in values:
        s = clean_str(v)
        if s and s not in out:
            out.append(s)
    return out


def format_bytes(value: int) -> str:
    if value < 1024:
        return f"{value} B"
    size = value / 1024
    for unit in ("KiB", "MiB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"
