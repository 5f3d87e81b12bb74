import asyncio
from typing import Any

import httpx

from app.core.store import InMemoryKeyValueStore
from app.main import create_app
from trading_dashboard.client import DashboardApiClient, ResourceFetcher
from trading_dashboard.settings import Settings
from trading_dashboard.types import Account, parse_accounts


def _client_for(store: InMemoryKeyValueStore) -> DashboardApiClient:
    app = create_app(settings=Settings(DASHBOARD_ANON_KEY="anon"), store=store)
    return DashboardApiClient(
        base_url="http://dashboard.test/api",
        anon_key="anon",
        transport=httpx.ASGITransport(app=app),
    )


def test_bot_writes_are_visible_to_fetchers_after_refresh() -> None:
    store = InMemoryKeyValueStore()

    async def _run() -> tuple[Any, Any, Any]:
        client = _client_for(store)
        try:
            stats: ResourceFetcher[Any] = ResourceFetcher(client)
            first = await stats.refresh("/dashboard/stats")

            await client.update_stats({"topCards": [], "metrics": {"totalTrades": 3}})
            # No optimistic update: the fetcher still holds the old value.
            before_refresh = stats.data
            after = await stats.refresh()
            return first.data, before_refresh, after.data
        finally:
            await client.aclose()

    first, before_refresh, after = asyncio.run(_run())
    assert first["metrics"]["totalTrades"] == 0
    assert before_refresh == first
    assert after == {"topCards": [], "metrics": {"totalTrades": 3}}


def test_account_lifecycle_through_client() -> None:
    store = InMemoryKeyValueStore()

    async def _run() -> tuple[str, list[Account], list[Account]]:
        client = _client_for(store)
        try:
            accounts = ResourceFetcher(client, parse=parse_accounts)
            created = await asyncio.gather(
                client.upsert_account(Account(name="Alpha", balance="$1,000")),
                client.upsert_account(Account(name="Beta", balance="$2,000", trend="down")),
            )
            listed = (await accounts.refresh("/accounts")).data or []
            await client.delete_account(created[0])
            await client.delete_account(created[0])
            remaining = (await accounts.refresh()).data or []
            return created[0], listed, remaining
        finally:
            await client.aclose()

    alpha_id, listed, remaining = asyncio.run(_run())
    assert len({a.id for a in listed}) == 2
    assert alpha_id in {a.id for a in listed}
    assert [a.name for a in remaining] == ["Beta"]


def test_client_deletes_ids_with_reserved_url_characters() -> None:
    store = InMemoryKeyValueStore()

    async def _run() -> list[str]:
        client = _client_for(store)
        try:
            created = [await client.upsert_account({"id": i, "name": i}) for i in ("desk/1", "a?b#c", "50%")]
            for account_id in created:
                await client.delete_account(account_id)
            return created
        finally:
            await client.aclose()

    assert asyncio.run(_run()) == ["desk/1", "a?b#c", "50%"]
    assert store.keys() == []
