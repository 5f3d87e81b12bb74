from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from trading_dashboard.settings import Settings
from trading_dashboard.types import Account, StatsDocument

logger = logging.getLogger("trading_dashboard.client")


class DashboardApiError(RuntimeError):
    def __init__(self, *, status_code: int, payload: Any):
        super().__init__(f"HTTP error! status: {status_code}")
        self.status_code = status_code
        self.payload = payload


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class DashboardApiClient:
    """Async client for the dashboard REST API.

    Every request carries ``Authorization: Bearer <anon_key>``. Non-OK
    responses raise :class:`DashboardApiError`; transport faults propagate
    as ``httpx.TransportError``. Nothing is retried.
    """

    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        kwargs: dict[str, Any] = {}
        if timeout_seconds is not None:
            kwargs["timeout"] = httpx.Timeout(timeout_seconds)
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {anon_key}"},
            transport=transport,
            **kwargs,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> DashboardApiClient:
        return cls(
            base_url=settings.api_base_url,
            anon_key=settings.anon_key,
            timeout_seconds=settings.request_timeout_seconds,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> DashboardApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def get_json(self, endpoint: str) -> Any:
        return await self._request("GET", endpoint)

    async def post_json(self, endpoint: str, body: Any) -> Any:
        try:
            return await self._request("POST", endpoint, json=body)
        except Exception as exc:
            logger.error(f"Error posting to {endpoint}: {exc}", extra={"endpoint": endpoint})
            raise

    async def delete(self, endpoint: str) -> Any:
        try:
            return await self._request("DELETE", endpoint)
        except Exception as exc:
            logger.error(f"Error deleting {endpoint}: {exc}", extra={"endpoint": endpoint})
            raise

    async def update_stats(self, stats: StatsDocument | dict[str, Any]) -> Any:
        body = stats.to_json() if isinstance(stats, StatsDocument) else stats
        return await self.post_json("/dashboard/stats", body)

    async def update_chart(self, points: list[Any]) -> Any:
        return await self.post_json("/dashboard/chart", [_dump(p) for p in points])

    async def update_activity(self, items: list[Any]) -> Any:
        return await self.post_json("/dashboard/activity", [_dump(i) for i in items])

    async def upsert_account(self, account: Account | dict[str, Any]) -> str:
        body = account.to_json() if isinstance(account, Account) else account
        data = await self.post_json("/accounts", body)
        return str(data["accountId"])

    async def delete_account(self, account_id: str) -> Any:
        return await self.delete(f"/accounts/{quote(str(account_id), safe='')}")

    async def _request(self, method: str, endpoint: str, *, json: Any = None) -> Any:
        kwargs: dict[str, Any] = {}
        if method == "POST":
            kwargs["json"] = json
        response = await self._client.request(method, endpoint, **kwargs)
        if response.status_code >= 400:
            logger.debug(
                f"{method} {endpoint} answered {response.status_code}",
                extra={"endpoint": endpoint, "status_code": response.status_code},
            )
            raise DashboardApiError(status_code=response.status_code, payload=_payload(response))
        return response.json()


def _dump(item: Any) -> Any:
    if hasattr(item, "model_dump"):
        return item.model_dump(by_alias=True)
    return item


async def api_post(settings: Settings, endpoint: str, body: Any) -> Any:
    async with DashboardApiClient.from_settings(settings) as client:
        return await client.post_json(endpoint, body)


async def api_delete(settings: Settings, endpoint: str) -> Any:
    async with DashboardApiClient.from_settings(settings) as client:
        return await client.delete(endpoint)
