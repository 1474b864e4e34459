from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Callable

import httpx
import pytest

from pf_console.gateway import PFAuthError, PFError, PFGateway, PFTransportError, normalize_base_url
from pf_console.models import Listener, ListenerErr, ListenerOk, PerListenerResult, SimpleResult

Handler = Callable[[httpx.Request], httpx.Response]


def _gateway(handler: Handler, **kwargs: object) -> PFGateway:
    return PFGateway(
        base_url="http://pf.local:8080",
        transport=httpx.MockTransport(handler),
        retry_backoff_s=0,
        **kwargs,  # type: ignore[arg-type]
    )


def _call(gateway: PFGateway, method: str, *args: object) -> object:
    async def run() -> object:
        async with gateway:
            return await getattr(gateway, method)(*args)

    return asyncio.run(run())


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("http://pf.local:8080", "http://pf.local:8080/apiserver"),
        ("http://pf.local:8080/", "http://pf.local:8080/apiserver"),
        (" http://pf.local/apiserver/ ", "http://pf.local/apiserver"),
    ],
)
def test_normalize_base_url(raw: str, expected: str) -> None:
    assert normalize_base_url(raw) == expected


def test_normalize_base_url_requires_value() -> None:
    with pytest.raises(ValueError):
        normalize_base_url("  ")


def test_get_dns_uses_prefixed_path_and_basic_auth() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"a.example": "10.0.0.1"})

    result = _call(_gateway(handler, auth=("admin", "secret")), "get_dns")

    assert result == {"a.example": "10.0.0.1"}
    assert seen[0].method == "GET"
    assert seen[0].url.path == "/apiserver/config/dns"
    expected = "Basic " + base64.b64encode(b"admin:secret").decode()
    assert seen[0].headers["authorization"] == expected


def test_put_listeners_sends_wire_form() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PUT"
        assert request.url.path == "/apiserver/config/listeners"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=bodies[-1])

    listener = Listener(name="web", bind="0.0.0.0:443", targets=["10.0.0.1:443"], extra={"protocol": "tcp"})
    result = _call(_gateway(handler), "put_listeners", {"web": listener})

    assert bodies[0] == {
        "web": {
            "bind": "0.0.0.0:443",
            "max_idle_time_ms": 600000,
            "policy": "ALLOW",
            "targets": ["10.0.0.1:443"],
            "rules": {"static_hosts": [], "patterns": []},
            "protocol": "tcp",
        }
    }
    assert isinstance(result, dict)
    assert result["web"] == listener


def test_put_dns_with_empty_response_echoes_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    assert _call(_gateway(handler), "put_dns", {"a.example": "10.0.0.1"}) == {"a.example": "10.0.0.1"}


@pytest.mark.parametrize(
    "method,path",
    [
        ("restart", "/apiserver/config/apply"),
        ("start", "/apiserver/config/start"),
        ("stop", "/apiserver/config/stop"),
    ],
)
def test_lifecycle_endpoints_decode_per_listener_outcome(method: str, path: str) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == path
        return httpx.Response(200, json={"a": {"Ok": True}, "b": {"Err": {"message": "bad address"}}})

    outcome = _call(_gateway(handler), method)
    assert outcome == PerListenerResult({"a": ListenerOk(True), "b": ListenerErr("bad address")})


def test_lifecycle_decodes_simple_outcome() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "changed": False})

    assert _call(_gateway(handler), "start") == SimpleResult(success=True, changed=False)


def test_restore_returns_text() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/apiserver/config/reset"
        return httpx.Response(200, json="OK")

    assert _call(_gateway(handler), "restore") == "OK"


def test_listener_statuses_and_stats() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("status/listeners"):
            return httpx.Response(200, json={"web": {"Err": {"message": "port in use"}}})
        return httpx.Response(200, json={"web": {"total": 3, "active": 1, "downloaded_bytes": 10, "uploaded_bytes": 5}})

    statuses = _call(_gateway(handler), "get_listener_statuses")
    assert statuses == PerListenerResult({"web": ListenerErr("port in use")})
    stats = _call(_gateway(handler), "get_listener_stats")
    assert isinstance(stats, dict)
    assert stats["web"].total == 3
    assert stats["web"].uploaded_bytes == 5


@pytest.mark.parametrize("status", [401, 403])
def test_unauthorized_raises_auth_error(status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status)

    with pytest.raises(PFAuthError):
        _call(_gateway(handler), "get_dns")


def test_server_error_raises_pf_error_with_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "disk full"})

    with pytest.raises(PFError, match="disk full"):
        _call(_gateway(handler), "put_dns", {"a": "b"})


def test_invalid_json_raises_pf_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>")

    with pytest.raises(PFError, match="Invalid JSON"):
        _call(_gateway(handler), "get_dns")


def test_non_object_response_raises_pf_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["a"])

    with pytest.raises(PFError):
        _call(_gateway(handler), "get_listeners")


def test_invalid_listener_payload_raises_pf_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"web": {"bind": ""}})

    with pytest.raises(PFError, match="Invalid listener configuration"):
        _call(_gateway(handler), "get_listeners")


def test_transport_errors_are_retried() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={})

    assert _call(_gateway(handler, retry_count=2), "get_dns") == {}
    assert len(attempts) == 3


def test_transport_error_after_last_attempt() -> None:
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PFTransportError):
        _call(_gateway(handler, retry_count=1), "get_dns")
    assert len(attempts) == 2


def test_negative_retry_count_rejected() -> None:
    with pytest.raises(ValueError):
        PFGateway(base_url="http://pf.local", retry_count=-1)


def test_plain_text_error_body_is_kept() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="invalid socket address")

    with pytest.raises(PFError, match="HTTP 500 for PUT .*: invalid socket address"):
        _call(_gateway(handler), "put_dns", {"a": "b"})


def test_blank_error_body_leaves_bare_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="  ")

    with pytest.raises(PFError) as excinfo:
        _call(_gateway(handler), "get_dns")
    assert str(excinfo.value).endswith("/apiserver/config/dns")


def test_listener_keys_match_cleaned_names() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={" web ": {"bind": "0.0.0.0:443"}})

    listeners = _call(_gateway(handler), "get_listeners")
    assert isinstance(listeners, dict)
    assert list(listeners) == ["web"]
    assert listeners["web"].name == "web"
