from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger("trading_dashboard.types")

# Store keys
STATS_KEY = "dashboard_stats"
CHART_KEY = "chart_data"
ACTIVITY_KEY = "recent_activity"
ACCOUNT_KEY_PREFIX = "account_"


class _Document(BaseModel):
    # Writers own the payload shape; unknown fields pass through untouched.
    # Field values are not checked either: the server stores whatever it is sent.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class TopCard(_Document):
    label: Any = ""
    value: Any = "0"
    change: Any = "0%"


class TradeMetrics(_Document):
    total_trades: Any = Field(default=0, alias="totalTrades")
    winning_trades: Any = Field(default=0, alias="winningTrades")
    losing_trades: Any = Field(default=0, alias="losingTrades")
    average_win: Any = Field(default="$0", alias="averageWin")
    average_loss: Any = Field(default="$0", alias="averageLoss")
    max_drawdown: Any = Field(default="0%", alias="maxDrawdown")


class StatsDocument(_Document):
    top_cards: list[TopCard] = Field(default_factory=list, alias="topCards")
    metrics: TradeMetrics = Field(default_factory=TradeMetrics)

    @classmethod
    def zero(cls) -> StatsDocument:
        return cls(
            topCards=[
                TopCard(label="Total Return", value="0%", change="0%"),
                TopCard(label="Total Balance", value="$0", change="0%"),
                TopCard(label="Win Rate", value="0%", change="0%"),
            ],
            metrics=TradeMetrics(),
        )

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ChartPoint(_Document):
    day: Any = None
    value: Any = None


class ActivityItem(_Document):
    date: Any = None
    profit: Any = None
    drawdown: Any = None


class Account(_Document):
    id: Any = None
    name: Any = ""
    balance: Any = "$0"
    profit: Any = "$0"
    roi: Any = "0%"
    trend: Any = "up"
    chart_data: Any = Field(default_factory=list, alias="chartData")

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


M = TypeVar("M", bound=_Document)


def _records(model: type[M], raw: Any, what: str) -> list[M]:
    """Validate a stored list, skipping entries that are not JSON objects."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning(f"Ignoring {what}: expected a list, got {type(raw).__name__}")
        return []
    records: list[M] = []
    for index, item in enumerate(raw):
        try:
            records.append(model.model_validate(item))
        except ValidationError:
            logger.warning(f"Skipping {what} entry {index}: expected an object, got {type(item).__name__}")
    return records


def parse_stats(raw: Any) -> StatsDocument:
    try:
        return StatsDocument.model_validate(raw)
    except ValidationError:
        logger.warning("Stats document has an unexpected shape; rendering what is usable")
    if not isinstance(raw, dict):
        return StatsDocument()
    metrics = raw.get("metrics")
    return StatsDocument(
        topCards=_records(TopCard, raw.get("topCards"), "top card"),
        metrics=TradeMetrics.model_validate(metrics) if isinstance(metrics, dict) else TradeMetrics(),
    )


def parse_chart(raw: Any) -> list[ChartPoint]:
    return _records(ChartPoint, raw, "chart point")


def parse_activity(raw: Any) -> list[ActivityItem]:
    return _records(ActivityItem, raw, "activity")


def parse_accounts(raw: Any) -> list[Account]:
    return _records(Account, raw, "account")
