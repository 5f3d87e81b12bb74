from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import quote

import httpx
import typer

from trading_dashboard.client import (
    DashboardApiClient,
    DashboardApiError,
    FetchState,
    ResourceFetcher,
    api_delete,
    api_post,
)
from trading_dashboard.logging_utils import configure_logging
from trading_dashboard.settings import Settings
from trading_dashboard.types import (
    Account,
    ActivityItem,
    ChartPoint,
    StatsDocument,
    parse_accounts,
    parse_activity,
    parse_chart,
    parse_stats,
)

app = typer.Typer(no_args_is_help=True, add_completion=False)
logger = logging.getLogger("trading_dashboard")


def _load_json_file(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise typer.BadParameter(f"cannot read {path}: {e}") from e
    except ValueError as e:
        raise typer.BadParameter(f"{path} is not valid JSON: {e}") from e


def _echo_json(value: Any) -> None:
    typer.echo(json.dumps(value, indent=2, ensure_ascii=False))


def _fail(message: str) -> None:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _cell(value: Any) -> str:
    return "-" if value is None else str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _chart_summary(points: list[ChartPoint]) -> str:
    values = [p.value for p in points if _is_number(p.value)]
    if not values:
        return "no chart data yet"
    first, last = values[0], values[-1]
    low, high = min(values), max(values)
    return f"{len(values)} points  first={first:g}  last={last:g}  low={low:g}  high={high:g}"


def render_dashboard(
    *,
    stats: StatsDocument,
    chart: list[ChartPoint],
    activity: list[ActivityItem],
    now: datetime | None = None,
) -> str:
    now = now or datetime.now()
    m = stats.metrics
    lines = [f"Dashboard (last updated {now.strftime('%H:%M:%S')})", ""]
    for card in stats.top_cards:
        lines.append(f"  {_cell(card.label):<16} {_cell(card.value):>12}  ({_cell(card.change)})")
    lines += [
        "",
        "Metrics",
        f"  Total trades    {m.total_trades}",
        f"  Winning trades  {m.winning_trades}",
        f"  Losing trades   {m.losing_trades}",
        f"  Average win     {m.average_win}",
        f"  Average loss    {m.average_loss}",
        f"  Max drawdown    {m.max_drawdown}",
        "",
        "Performance",
        f"  {_chart_summary(chart)}",
        "",
        "Recent activity",
    ]
    if not activity:
        lines.append("  no activity yet")
    for item in activity:
        lines.append(f"  {_cell(item.date):<12} profit {_cell(item.profit):>10}  drawdown {_cell(item.drawdown):>8}")
    return "\n".join(lines)


def render_accounts(accounts: list[Account]) -> str:
    if not accounts:
        return "No accounts yet"
    lines: list[str] = []
    for a in accounts:
        arrow = {"up": "▲", "down": "▼"}.get(a.trend, "-") if isinstance(a.trend, str) else "-"
        lines.append(
            f"{_cell(a.id)}  {_cell(a.name):<20} balance {_cell(a.balance):>12}  "
            f"profit {_cell(a.profit):>10}  roi {_cell(a.roi):>7} {arrow}"
        )
    return "\n".join(lines)


def _errors(states: dict[str, FetchState[Any]]) -> list[str]:
    return [f"{endpoint}: {s.error}" for endpoint, s in states.items() if s.error is not None]


def _run_mutation(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except DashboardApiError as e:
        _fail(f"{e} {e.payload!r}")
    except httpx.HTTPError as e:
        _fail(f"Network error: {e}")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address."),
    port: int = typer.Option(8000, help="Bind port."),
    memory: bool = typer.Option(False, "--memory", help="Use a process-local store instead of the database."),
) -> None:
    """
    Run the dashboard REST API.
    """
    import uvicorn

    from app.core.store import InMemoryKeyValueStore
    from app.main import create_app

    settings = Settings()
    store = InMemoryKeyValueStore() if memory else None
    uvicorn.run(
        create_app(settings=settings, store=store),
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
    )


@app.command()
def show_config() -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    redacted = settings.model_dump()
    redacted["anon_key"] = "***" if redacted["anon_key"] else ""
    logger.info("loaded_config", extra={"endpoint": settings.api_base_url})
    typer.echo(redacted)


@app.command()
def health() -> None:
    """
    Check that the configured API answers.
    """
    settings = Settings()
    configure_logging(settings.log_level)

    async def _run() -> Any:
        root = httpx.URL(settings.api_base_url).copy_with(path="/health", query=None)
        async with httpx.AsyncClient() as client:
            response = await client.get(root)
            response.raise_for_status()
            return response.json()

    data = _run_mutation(_run())
    typer.echo({"ok": True, "api": settings.api_base_url, "health": data})


@app.command()
def get(endpoint: str = typer.Argument(..., help="Resource path, e.g. /dashboard/stats")) -> None:
    """
    Fetch one resource and print it as JSON.
    """
    settings = Settings()
    configure_logging(settings.log_level)

    async def _run() -> FetchState[Any]:
        async with DashboardApiClient.from_settings(settings) as client:
            fetcher: ResourceFetcher[Any] = ResourceFetcher(client)
            return await fetcher.refresh(endpoint)

    state = asyncio.run(_run())
    if state.error is not None:
        _fail(state.error)
    _echo_json(state.data)


@app.command()
def push_stats(path: Path = typer.Argument(..., help="JSON file with the stats document.")) -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    _echo_json(_run_mutation(api_post(settings, "/dashboard/stats", _load_json_file(path))))


@app.command()
def push_chart(path: Path = typer.Argument(..., help="JSON file with the chart series.")) -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    _echo_json(_run_mutation(api_post(settings, "/dashboard/chart", _load_json_file(path))))


@app.command()
def push_activity(path: Path = typer.Argument(..., help="JSON file with the activity log.")) -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    _echo_json(_run_mutation(api_post(settings, "/dashboard/activity", _load_json_file(path))))


@app.command()
def add_account(path: Path = typer.Argument(..., help="JSON file with one account.")) -> None:
    """
    Create or replace an account; prints the resolved account id.
    """
    settings = Settings()
    configure_logging(settings.log_level)
    body = _load_json_file(path)

    async def _run() -> str:
        async with DashboardApiClient.from_settings(settings) as client:
            return await client.upsert_account(body)

    typer.echo(_run_mutation(_run()))


@app.command()
def delete_account(account_id: str = typer.Argument(..., help="Account id to delete.")) -> None:
    settings = Settings()
    configure_logging(settings.log_level)
    _echo_json(_run_mutation(api_delete(settings, f"/accounts/{quote(account_id, safe='')}")))


@app.command()
def dashboard(
    watch: float = typer.Option(0.0, help="Re-fetch and redraw every N seconds (0 = once)."),
) -> None:
    """
    Render stats, chart summary and recent activity.
    """
    settings = Settings()
    configure_logging(settings.log_level)

    async def _run() -> list[str]:
        async with DashboardApiClient.from_settings(settings) as client:
            fetchers: dict[str, ResourceFetcher[Any]] = {
                "/dashboard/stats": ResourceFetcher(client, parse=parse_stats),
                "/dashboard/chart": ResourceFetcher(client, parse=parse_chart),
                "/dashboard/activity": ResourceFetcher(client, parse=parse_activity),
            }
            while True:
                states = dict(
                    zip(
                        fetchers,
                        await asyncio.gather(
                            *(f.refresh(endpoint) for endpoint, f in fetchers.items())
                        ),
                    )
                )
                errors = _errors(states)
                if errors:
                    return errors
                typer.echo(
                    render_dashboard(
                        stats=states["/dashboard/stats"].data,
                        chart=states["/dashboard/chart"].data,
                        activity=states["/dashboard/activity"].data,
                    )
                )
                if watch <= 0:
                    return []
                await asyncio.sleep(watch)
                typer.echo("")

    errors = asyncio.run(_run())
    if errors:
        _fail("\n".join(errors))


@app.command()
def accounts() -> None:
    """
    Render all accounts.
    """
    settings = Settings()
    configure_logging(settings.log_level)

    async def _run() -> FetchState[list[Account]]:
        async with DashboardApiClient.from_settings(settings) as client:
            fetcher = ResourceFetcher(client, parse=parse_accounts)
            return await fetcher.refresh("/accounts")

    state = asyncio.run(_run())
    if state.error is not None:
        _fail(state.error)
    typer.echo(render_accounts(state.data or []))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
