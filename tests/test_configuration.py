from __future__ import annotations

import logging
from pathlib import Path

import pytest

from pf_console.configmanager import (
    DEFAULT_HTTP_RETRY_COUNT,
    DEFAULT_STATS_INTERVAL_S,
    DEFAULT_TIMEOUT_S,
    ConfigManager,
)

_ENV = (
    "PF_BASE_URL",
    "PF_USERNAME",
    "PF_PASSWORD",
    "PF_VERIFY_TLS",
    "PF_TIMEOUT_S",
    "PF_HTTP_RETRY_COUNT",
    "PF_STATS_INTERVAL_S",
    "PF_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def _restore_root_logger():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        if h not in handlers:
            h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_defaults() -> None:
    assert ConfigManager.base_url() is None
    assert ConfigManager.verify_tls() is True
    assert ConfigManager.log_level() == "INFO"
    assert ConfigManager.timeout_s() == DEFAULT_TIMEOUT_S
    assert ConfigManager.http_retry_count() == DEFAULT_HTTP_RETRY_COUNT
    assert ConfigManager.stats_interval_s() == DEFAULT_STATS_INTERVAL_S
    assert ConfigManager.credentials() is None


def test_values_are_read_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PF_BASE_URL", "  http://pf.local:8080  ")
    monkeypatch.setenv("PF_VERIFY_TLS", "off")
    monkeypatch.setenv("PF_TIMEOUT_S", "2.5")
    monkeypatch.setenv("PF_HTTP_RETRY_COUNT", "0")
    monkeypatch.setenv("PF_STATS_INTERVAL_S", "1")
    monkeypatch.setenv("PF_LOG_LEVEL", "debug")
    assert ConfigManager.base_url() == "http://pf.local:8080"
    assert ConfigManager.verify_tls() is False
    assert ConfigManager.timeout_s() == 2.5
    assert ConfigManager.http_retry_count() == 0
    assert ConfigManager.stats_interval_s() == 1.0
    assert ConfigManager.log_level() == "DEBUG"


def test_credentials_need_both_parts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PF_USERNAME", "admin")
    with pytest.raises(ValueError):
        ConfigManager.credentials()
    monkeypatch.setenv("PF_PASSWORD", " s3cret ")
    assert ConfigManager.credentials() == ("admin", " s3cret ")


@pytest.mark.parametrize(
    "name,value",
    [
        ("PF_TIMEOUT_S", "fast"),
        ("PF_TIMEOUT_S", "0"),
        ("PF_HTTP_RETRY_COUNT", "-1"),
        ("PF_HTTP_RETRY_COUNT", "many"),
        ("PF_STATS_INTERVAL_S", "-3"),
    ],
)
def test_invalid_numbers_rejected(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    getter = {
        "PF_TIMEOUT_S": ConfigManager.timeout_s,
        "PF_HTTP_RETRY_COUNT": ConfigManager.http_retry_count,
        "PF_STATS_INTERVAL_S": ConfigManager.stats_interval_s,
    }[name]
    with pytest.raises(ValueError):
        getter()


def test_load_dotenv_reads_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / "pf.env"
    env_file.write_text("PF_BASE_URL=http://from-file:9000\n", encoding="utf-8")
    # Registers PF_BASE_URL with monkeypatch so the value loaded below is undone.
    monkeypatch.setenv("PF_BASE_URL", "placeholder")
    monkeypatch.delenv("PF_BASE_URL")
    ConfigManager.load_dotenv(str(env_file))
    assert ConfigManager.base_url() == "http://from-file:9000"


def test_load_dotenv_missing_file_is_ignored(tmp_path: Path) -> None:
    ConfigManager.load_dotenv(str(tmp_path / "missing.env"))
    assert ConfigManager.base_url() is None


def test_configure_logging_console_only(_restore_root_logger: logging.Logger) -> None:
    ConfigManager.configure_logging("WARNING")
    root = _restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert logging.getLogger("httpx").level == logging.WARNING


def test_configure_logging_with_file(tmp_path: Path, _restore_root_logger: logging.Logger) -> None:
    ConfigManager.configure_logging("INFO", log_file=str(tmp_path) + "/", file_level="DEBUG")
    root = _restore_root_logger
    assert root.level == logging.DEBUG
    file_handlers = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    assert len(file_handlers) == 1
    assert Path(file_handlers[0].baseFilename).name == "pf-console.log"


def test_configure_logging_rejects_unknown_level(_restore_root_logger: logging.Logger) -> None:
    with pytest.raises(ValueError):
        ConfigManager.configure_logging("LOUD")
