from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from .configmanager import ConfigManager
from .models import (
    Listener,
    ListenerStats,
    OperationOutcome,
    PerListenerResult,
    decode_outcome,
    decode_statuses,
)

logger = ConfigManager.get_logger(__name__)

API_PREFIX = "/apiserver"


class PFError(RuntimeError):
    pass


class PFAuthError(PFError):
    pass


class PFTransportError(PFError):
    pass


def normalize_base_url(base_url: str) -> str:
    url = (base_url or "").strip()
    if not url:
        raise ValueError("base_url is required")
    url = url.rstrip("/")
    if url.endswith(API_PREFIX):
        return url
    return url + API_PREFIX


@dataclass
class PFGateway:
    """Async client for the forwarder's admin API.

    The admin server uses HTTP basic auth. All write endpoints are safe to
    re-issue with the same body.
    """

    base_url: str
    auth: tuple[str, str] | None = None
    verify_tls: bool = True
    timeout_s: float = 30.0
    transport: httpx.AsyncBaseTransport | None = None
    retry_count: int = 3
    retry_backoff_s: float = 0.25

    def __post_init__(self) -> None:
        self.base_url = normalize_base_url(self.base_url)
        if self.retry_count < 0:
            raise ValueError("retry_count must be >= 0")
        logger.debug(
            "Initializing PFGateway base_url=%s verify_tls=%s timeout_s=%s",
            self.base_url,
            self.verify_tls,
            self.timeout_s,
        )
        self._request_seq = 0

        async def _log_request(request: httpx.Request) -> None:
            if not logger.isEnabledFor(logging.DEBUG):
                return
            self._request_seq += 1
            req_id = self._request_seq
            request.extensions["pf.req_id"] = req_id
            request.extensions["pf.start"] = time.perf_counter()
            logger.debug(
                "HTTP -> #%s %s %s body_bytes=%s",
                req_id,
                request.method,
                request.url,
                len(request.content),
            )

        async def _log_response(response: httpx.Response) -> None:
            if not logger.isEnabledFor(logging.DEBUG):
                return
            req = response.request
            start = req.extensions.get("pf.start")
            ms: float | None = None
            if isinstance(start, (int, float)):
                ms = (time.perf_counter() - float(start)) * 1000.0
            logger.debug(
                "HTTP <- #%s %s %s status=%s elapsed_ms=%s",
                req.extensions.get("pf.req_id"),
                req.method,
                req.url,
                response.status_code,
                f"{ms:.1f}" if ms is not None else None,
            )

        self._client = httpx.AsyncClient(
            base_url=self.base_url + "/",
            timeout=self.timeout_s,
            verify=self.verify_tls,
            auth=self.auth,
            headers={"accept": "application/json"},
            transport=self.transport,
            event_hooks={"request": [_log_request], "response": [_log_response]},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> PFGateway:
        return self

    async def __aexit__(self, _exc_type, _exc, _tb) -> None:  # type: ignore[no-untyped-def]
        await self.aclose()

    async def _web_request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute an HTTP request, retrying transport errors.

        Total attempts = retry_count + 1.
        """
        attempts = self.retry_count + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._client.request(method, path, **kwargs)
            except httpx.TransportError as e:
                if attempt >= attempts:
                    raise PFTransportError(f"{method} {path} failed: {e}") from e
                logger.debug(
                    "HTTP transport error on %s %s (attempt %s/%s): %s; retrying",
                    method,
                    path,
                    attempt,
                    attempts,
                    str(e),
                )
                await asyncio.sleep(min(self.retry_backoff_s * attempt, 2.0))
        raise PFTransportError(f"{method} {path} failed")

    async def _request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await self._web_request(method, path, **kwargs)
        if resp.status_code in (401, 403):
            logger.warning("Unauthorized status_code=%s for %s %s", resp.status_code, method, path)
            raise PFAuthError(f"Unauthorized ({resp.status_code}) for {method} {path}")
        self._raise_for_status(resp)
        if not resp.content.strip():
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise PFError(f"Invalid JSON from {method} {path}") from e

    async def _get_object(self, path: str) -> dict[str, Any]:
        data = await self._request_json("GET", path)
        if not isinstance(data, dict):
            raise PFError(f"Expected object response from GET {path}, got {type(data).__name__}")
        return data

    async def _put_object(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        data = await self._request_json("PUT", path, json=dict(payload))
        if data is None:
            return dict(payload)
        if not isinstance(data, dict):
            raise PFError(f"Expected object response from PUT {path}, got {type(data).__name__}")
        return data

    @staticmethod
    def _raise_for_status(resp: httpx.Response) -> None:
        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            msg = f"HTTP {resp.status_code} for {resp.request.method} {resp.request.url}"
            try:
                detail: Any = resp.json()
            except ValueError:
                # Plain-text error bodies carry the reason as-is.
                detail = resp.text.strip()
            if detail in (None, ""):
                raise PFError(msg) from e
            raise PFError(f"{msg}: {detail}") from e

    @staticmethod
    def _decode_dns(data: Mapping[str, Any]) -> dict[str, str]:
        return {str(k): str(v) for k, v in data.items()}

    @staticmethod
    def _decode_listeners(data: Mapping[str, Any]) -> dict[str, Listener]:
        try:
            listeners = [Listener.from_json(str(name), payload) for name, payload in data.items()]
        except ValueError as e:
            raise PFError(f"Invalid listener configuration: {e}") from e
        # Keyed by the cleaned name so store keys match Listener.name.
        return {listener.name: listener for listener in listeners}

    # --- Configuration ---
    async def get_dns(self) -> dict[str, str]:
        return self._decode_dns(await self._get_object("config/dns"))

    async def put_dns(self, dns: Mapping[str, str]) -> dict[str, str]:
        logger.debug("PUT config/dns entries=%s", len(dns))
        return self._decode_dns(await self._put_object("config/dns", dns))

    async def get_listeners(self) -> dict[str, Listener]:
        return self._decode_listeners(await self._get_object("config/listeners"))

    async def put_listeners(self, listeners: Mapping[str, Listener]) -> dict[str, Listener]:
        logger.debug("PUT config/listeners names=%s", sorted(listeners))
        payload = {name: listener.to_json() for name, listener in listeners.items()}
        return self._decode_listeners(await self._put_object("config/listeners", payload))

    # --- Status ---
    async def get_listener_statuses(self) -> PerListenerResult:
        data = await self._get_object("status/listeners")
        return decode_statuses(data)

    async def get_listener_stats(self) -> dict[str, ListenerStats]:
        data = await self._get_object("stats/listeners")
        try:
            return {str(k): ListenerStats.from_json(str(k), v) for k, v in data.items()}
        except ValueError as e:
            raise PFError(f"Invalid listener stats: {e}") from e

    # --- Lifecycle ---
    async def _post_outcome(self, path: str) -> OperationOutcome:
        data = await self._request_json("POST", path)
        try:
            return decode_outcome(data)
        except ValueError as e:
            raise PFError(f"Unexpected response from POST {path}: {e}") from e

    async def restart(self) -> OperationOutcome:
        return await self._post_outcome("config/apply")

    async def start(self) -> OperationOutcome:
        return await self._post_outcome("config/start")

    async def stop(self) -> OperationOutcome:
        return await self._post_outcome("config/stop")

    async def restore(self) -> str:
        data = await self._request_json("POST", "config/reset")
        return "" if data is None else str(data)
