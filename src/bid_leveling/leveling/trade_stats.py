"""Per-trade bid statistics: low, spread, coverage, and risk flags."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from bid_leveling.db.models import BidStatus
from bid_leveling.leveling.records import BidRecord

SPREAD_RISK_THRESHOLD_PCT = 10.0
MIN_COVERAGE_FOR_SAFETY = 2
NEAR_LOW_THRESHOLD_PCT = 5.0


@dataclass(frozen=True, slots=True)
class TradeStats:
    low: float | None
    high: float | None
    spread_amount: float | None
    spread_percent: float | None
    average: float | None
    budget_delta_amount: float | None
    budget_delta_percent: float | None
    coverage_count: int

    @property
    def spread_risk(self) -> bool:
        return self.spread_percent is not None and self.spread_percent > SPREAD_RISK_THRESHOLD_PCT

    @property
    def coverage_risk(self) -> bool:
        return self.coverage_count < MIN_COVERAGE_FOR_SAFETY

    @property
    def at_risk(self) -> bool:
        return self.spread_risk or self.coverage_risk

    @property
    def risk_score(self) -> int:
        return int(self.spread_risk) + int(self.coverage_risk)

    @property
    def over_budget(self) -> bool:
        return self.budget_delta_amount is not None and self.budget_delta_amount > 0


EMPTY_STATS = TradeStats(
    low=None,
    high=None,
    spread_amount=None,
    spread_percent=None,
    average=None,
    budget_delta_amount=None,
    budget_delta_percent=None,
    coverage_count=0,
)


def is_priced_submission(bid: BidRecord) -> bool:
    return bid.status == BidStatus.SUBMITTED and bid.base_bid_amount is not None


def submitted_amounts(bids: Iterable[BidRecord]) -> list[float]:
    return [float(bid.base_bid_amount) for bid in bids if is_priced_submission(bid)]


def compute_trade_stats(
    bids: Iterable[BidRecord], budget_amount: float | None = None
) -> TradeStats:
    """Summarize one trade's bids.

    Only submitted bids carrying an amount count toward coverage. With no
    coverage every derived value is None; nothing here raises.
    """
    values = submitted_amounts(bids)
    if not values:
        return EMPTY_STATS

    low = min(values)
    high = max(values)
    spread_amount = high - low
    spread_percent = (spread_amount / low) * 100.0 if low > 0 else None
    average = sum(values) / len(values)

    budget_delta_amount = low - budget_amount if budget_amount is not None else None
    budget_delta_percent = (
        (budget_delta_amount / budget_amount) * 100.0
        if budget_amount and budget_amount > 0 and budget_delta_amount is not None
        else None
    )

    return TradeStats(
        low=low,
        high=high,
        spread_amount=spread_amount,
        spread_percent=spread_percent,
        average=average,
        budget_delta_amount=budget_delta_amount,
        budget_delta_percent=budget_delta_percent,
        coverage_count=len(values),
    )


def is_trade_at_risk(stats: TradeStats) -> bool:
    return stats.at_risk


class CellTone(str, Enum):
    EMPTY = "empty"
    NEUTRAL = "neutral"
    LOW = "low"
    NEAR_LOW = "near_low"
    HIGH = "high"


def classify_cell(bid: BidRecord | None, low_amount: float | None) -> CellTone:
    """Grade one cell against the trade low for grid highlighting."""
    if bid is None or bid.base_bid_amount is None:
        return CellTone.EMPTY
    if bid.status != BidStatus.SUBMITTED or low_amount is None:
        return CellTone.NEUTRAL

    pct_over_low = (
        ((bid.base_bid_amount - low_amount) / low_amount) * 100.0 if low_amount > 0 else 0.0
    )
    if pct_over_low <= 0:
        return CellTone.LOW
    if pct_over_low <= NEAR_LOW_THRESHOLD_PCT:
        return CellTone.NEAR_LOW
    if pct_over_low > SPREAD_RISK_THRESHOLD_PCT:
        return CellTone.HIGH
    return CellTone.NEUTRAL
