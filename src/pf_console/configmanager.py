from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

DEFAULT_ENV_FILE = ".env"
DEFAULT_VERIFY_TLS = True
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FILE_NAME = "pf-console.log"
DEFAULT_HTTP_RETRY_COUNT = 3
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_STATS_INTERVAL_S = 3.0


class ConfigManager:
    """Centralized configuration.

    - Loads `.env` (or `PF_ENV_FILE`) best-effort via python-dotenv.
    - Reads runtime config from environment variables.
    - Assigns project defaults consistently.
    """

    @staticmethod
    def _env_bool(value: str | None, *, default: bool) -> bool:
        if value is None:
            return default
        s = value.strip().lower()
        return s not in {"0", "false", "no", "off"}

    @staticmethod
    def _env_str(name: str) -> str | None:
        v = os.getenv(name)
        return v.strip() if v and v.strip() else None

    @staticmethod
    def load_dotenv(path: str | None = None) -> None:
        """Load env file into process env.

        A missing file does not break the CLI.
        """
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=path or os.getenv("PF_ENV_FILE") or DEFAULT_ENV_FILE)

    @staticmethod
    def base_url() -> str | None:
        return ConfigManager._env_str("PF_BASE_URL")

    @staticmethod
    def username() -> str | None:
        return ConfigManager._env_str("PF_USERNAME")

    @staticmethod
    def password() -> str | None:
        # Passwords are not stripped.
        v = os.getenv("PF_PASSWORD")
        return v if v else None

    @staticmethod
    def verify_tls() -> bool:
        return ConfigManager._env_bool(os.getenv("PF_VERIFY_TLS"), default=DEFAULT_VERIFY_TLS)

    @staticmethod
    def log_level() -> str:
        v = os.getenv("PF_LOG_LEVEL")
        return (v or DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL

    @staticmethod
    def timeout_s() -> float:
        raw = ConfigManager._env_str("PF_TIMEOUT_S")
        if raw is None:
            return DEFAULT_TIMEOUT_S
        try:
            v = float(raw)
        except ValueError as e:
            raise ValueError("PF_TIMEOUT_S must be a number") from e
        if v <= 0:
            raise ValueError("PF_TIMEOUT_S must be > 0")
        return v

    @staticmethod
    def http_retry_count() -> int:
        """How many times to retry an HTTP request on disconnect/transport errors."""
        raw = ConfigManager._env_str("PF_HTTP_RETRY_COUNT")
        if raw is None:
            return DEFAULT_HTTP_RETRY_COUNT
        try:
            v = int(raw)
        except ValueError as e:
            raise ValueError("PF_HTTP_RETRY_COUNT must be an integer") from e
        if v < 0:
            raise ValueError("PF_HTTP_RETRY_COUNT must be >= 0")
        return v

    @staticmethod
    def stats_interval_s() -> float:
        raw = ConfigManager._env_str("PF_STATS_INTERVAL_S")
        if raw is None:
            return DEFAULT_STATS_INTERVAL_S
        try:
            v = float(raw)
        except ValueError as e:
            raise ValueError("PF_STATS_INTERVAL_S must be a number") from e
        if v <= 0:
            raise ValueError("PF_STATS_INTERVAL_S must be > 0")
        return v

    @staticmethod
    def credentials() -> tuple[str, str] | None:
        username = ConfigManager.username()
        password = ConfigManager.password()
        if username is None and password is None:
            return None
        if username is None or password is None:
            raise ValueError("Provide both PF_USERNAME and PF_PASSWORD, or neither")
        return username, password

    @staticmethod
    def _parse_log_level(level: str | None) -> int:
        name = (level or DEFAULT_LOG_LEVEL).strip().upper()
        value = logging.getLevelName(name)
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level {level!r}; use DEBUG, INFO, WARNING, ERROR or CRITICAL")
        return value

    @staticmethod
    def _log_file_path(value: str | os.PathLike[str] | None) -> Path | None:
        raw = str(value).strip() if value is not None else ""
        if not raw:
            return None
        p = Path(raw).expanduser()
        if p.is_dir() or raw.endswith(("/", os.sep)):
            return p / DEFAULT_LOG_FILE_NAME
        return p

    @staticmethod
    def _file_handler(path: Path, level: int) -> logging.Handler | None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as e:
            logging.getLogger(__name__).warning("File logging to %s disabled: %s", path, e)
            return None
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        return handler

    @staticmethod
    def configure_logging(
        console_level: str,
        *,
        log_file: str | os.PathLike[str] | None = None,
        file_level: str | None = None,
    ) -> None:
        """Route log records to stderr and, optionally, a file.

        Replaces any handlers already on the root logger. The file handler
        may run at a lower level than the console one; the root logger is
        set to the lower of the two.
        """
        console = ConfigManager._parse_log_level(console_level)
        to_file = ConfigManager._parse_log_level(file_level) if file_level else console

        root = logging.getLogger()
        for h in list(root.handlers):
            root.removeHandler(h)

        stderr_handler = logging.StreamHandler(stream=sys.stderr)
        stderr_handler.setLevel(console)
        stderr_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s: %(message)s", datefmt="%H:%M:%S"))
        root.addHandler(stderr_handler)
        root.setLevel(console)

        path = ConfigManager._log_file_path(log_file)
        if path is not None:
            handler = ConfigManager._file_handler(path, to_file)
            if handler is not None:
                root.addHandler(handler)
                root.setLevel(min(console, to_file))

        # httpx logs every request at INFO; the gateway's own hooks cover that.
        for noisy in ("httpx", "httpcore"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

    @staticmethod
    def get_logger(name: str) -> logging.Logger:
        return logging.getLogger(name)
