import asyncio
import json

import httpx
import pytest

from trading_dashboard.client.api import DashboardApiClient, DashboardApiError, api_delete, api_post
from trading_dashboard.settings import Settings
from trading_dashboard.types import Account, ChartPoint, StatsDocument


def _client(handler, **kwargs) -> DashboardApiClient:
    return DashboardApiClient(
        base_url="https://dash.example/api",
        anon_key="anon",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_post_sends_bearer_and_json_body() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["auth"] = request.headers.get("Authorization")
        captured["content_type"] = request.headers.get("Content-Type")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True})

    client = _client(handler)
    try:
        result = asyncio.run(client.post_json("/dashboard/chart", [{"day": 1, "value": 2}]))
    finally:
        asyncio.run(client.aclose())

    assert result == {"success": True}
    assert captured == {
        "path": "/api/dashboard/chart",
        "auth": "Bearer anon",
        "content_type": "application/json",
        "body": [{"day": 1, "value": 2}],
    }


def test_delete_sends_bearer_without_body() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["path"] = request.url.path
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = request.content
        return httpx.Response(200, json={"success": True})

    client = _client(handler)
    try:
        result = asyncio.run(client.delete_account("42"))
    finally:
        asyncio.run(client.aclose())

    assert result == {"success": True}
    assert captured == {
        "method": "DELETE",
        "path": "/api/accounts/42",
        "auth": "Bearer anon",
        "body": b"",
    }


def test_delete_account_percent_encodes_the_id() -> None:
    raw_paths: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        raw_paths.append(request.url.raw_path)
        return httpx.Response(200, json={"success": True})

    client = _client(handler)
    try:
        for account_id in ("desk/1", "a?b#c", "50%"):
            asyncio.run(client.delete_account(account_id))
    finally:
        asyncio.run(client.aclose())

    assert raw_paths == [
        b"/api/accounts/desk%2F1",
        b"/api/accounts/a%3Fb%23c",
        b"/api/accounts/50%25",
    ]


def test_non_ok_status_raises_with_status_and_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Failed to update dashboard stats"})

    client = _client(handler)
    try:
        with pytest.raises(DashboardApiError) as excinfo:
            asyncio.run(client.update_stats(StatsDocument.zero()))
    finally:
        asyncio.run(client.aclose())

    assert excinfo.value.status_code == 500
    assert excinfo.value.payload == {"error": "Failed to update dashboard stats"}
    assert "500" in str(excinfo.value)


def test_transport_fault_propagates_without_retry() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler)
    try:
        with pytest.raises(httpx.ConnectError):
            asyncio.run(client.delete("/accounts/1"))
    finally:
        asyncio.run(client.aclose())

    assert calls["n"] == 1


def test_upsert_account_returns_resolved_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert "id" not in body
        assert body["chartData"] == [1.0, 2.0]
        return httpx.Response(200, json={"success": True, "accountId": "1700000000000-abcd1234"})

    client = _client(handler)
    try:
        account = Account(name="Swing", trend="down", chartData=[1, 2])
        account_id = asyncio.run(client.upsert_account(account))
    finally:
        asyncio.run(client.aclose())

    assert account_id == "1700000000000-abcd1234"


def test_update_chart_serializes_models_in_order() -> None:
    captured: list[object] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(json.loads(request.content))
        return httpx.Response(200, json={"success": True})

    client = _client(handler)
    try:
        asyncio.run(
            client.update_chart([ChartPoint(day=2, value=10.5), {"day": 1, "value": 3}])
        )
    finally:
        asyncio.run(client.aclose())

    assert captured == [[{"day": 2, "value": 10.5}, {"day": 1, "value": 3}]]


def test_timeout_is_configurable() -> None:
    client = _client(lambda request: httpx.Response(200, json={}), timeout_seconds=2.5)
    try:
        assert client._client.timeout.read == 2.5
    finally:
        asyncio.run(client.aclose())


def test_one_shot_helpers_use_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[tuple[str, str, str | None]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, str(request.url), request.headers.get("Authorization")))
        return httpx.Response(200, json={"success": True})

    original = DashboardApiClient.from_settings.__func__  # type: ignore[attr-defined]

    def _from_settings(cls, settings, *, transport=None):  # type: ignore[no-untyped-def]
        return original(cls, settings, transport=httpx.MockTransport(handler))

    monkeypatch.setattr(DashboardApiClient, "from_settings", classmethod(_from_settings))
    settings = Settings(DASHBOARD_API_URL="https://dash.example/api", DASHBOARD_ANON_KEY="k")

    assert asyncio.run(api_post(settings, "/dashboard/activity", [])) == {"success": True}
    assert asyncio.run(api_delete(settings, "/accounts/9")) == {"success": True}
    assert seen == [
        ("POST", "https://dash.example/api/dashboard/activity", "Bearer k"),
        ("DELETE", "https://dash.example/api/accounts/9", "Bearer k"),
    ]
