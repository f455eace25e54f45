"""Portfolio coverage report and the project risk badge derived from it.

A coverage report is an ephemeral rollup recomputed on every read. It is
unrelated to leveling snapshots, which are persisted freezes of the matrix.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from enum import Enum

from bid_leveling.config.settings import DEFAULT_TARGET_BIDS_PER_TRADE
from bid_leveling.db.models import AWAITING_STATUSES
from bid_leveling.leveling.records import BidRecord, TradeRecord
from bid_leveling.leveling.trade_stats import MIN_COVERAGE_FOR_SAFETY, is_priced_submission
from bid_leveling.utils.dates import days_until
from bid_leveling.utils.money import round_half_up

TARGET_BIDS_PER_TRADE = DEFAULT_TARGET_BIDS_PER_TRADE


@dataclass(frozen=True, slots=True)
class CoverageReport:
    coverage_pct: int
    coverage_numerator: int
    coverage_denominator: int
    trades_thin: tuple[TradeRecord, ...]
    awaiting_responses_count: int
    target_bids_per_trade: int
    submitted_count: int


def _submitted_by_trade(bids: Iterable[BidRecord]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for bid in bids:
        if is_priced_submission(bid):
            counts[bid.trade_id] = counts.get(bid.trade_id, 0) + 1
    return counts


def compute_coverage_report(
    trades: Sequence[TradeRecord],
    bids: Sequence[BidRecord],
    target_bids_per_trade: int = TARGET_BIDS_PER_TRADE,
) -> CoverageReport:
    if target_bids_per_trade < 1:
        target_bids_per_trade = TARGET_BIDS_PER_TRADE

    submitted = _submitted_by_trade(bids)
    denominator = len(trades) * target_bids_per_trade
    # Capped per trade so one crowded trade cannot hide thin ones.
    numerator = sum(
        min(submitted.get(trade.id, 0), target_bids_per_trade) for trade in trades
    )
    if denominator == 0:
        coverage_pct = 0
    else:
        coverage_pct = max(0, min(100, round_half_up(100 * numerator / denominator)))

    trades_thin = tuple(
        trade for trade in trades if submitted.get(trade.id, 0) < MIN_COVERAGE_FOR_SAFETY
    )
    awaiting = sum(1 for bid in bids if bid.status in AWAITING_STATUSES)
    known_trade_ids = {trade.id for trade in trades}
    submitted_count = sum(
        count for trade_id, count in submitted.items() if trade_id in known_trade_ids
    )

    return CoverageReport(
        coverage_pct=coverage_pct,
        coverage_numerator=numerator,
        coverage_denominator=denominator,
        trades_thin=trades_thin,
        awaiting_responses_count=awaiting,
        target_bids_per_trade=target_bids_per_trade,
        submitted_count=submitted_count,
    )


class RiskStatus(str, Enum):
    HEALTHY = "Healthy"
    AT_RISK = "At Risk"
    CRITICAL = "Critical"


def risk_status(coverage_pct: int | float, due_in_days: int | None) -> RiskStatus:
    """Badge for a project; ``due_in_days=None`` means no due date is set."""
    if due_in_days is not None:
        if due_in_days <= 3 and coverage_pct < 65:
            return RiskStatus.CRITICAL
        if due_in_days <= 7 and coverage_pct < 75:
            return RiskStatus.AT_RISK
    if coverage_pct < 45:
        return RiskStatus.CRITICAL
    if coverage_pct < 65:
        return RiskStatus.AT_RISK
    return RiskStatus.HEALTHY


def project_risk_status(
    report: CoverageReport, due_date: date | None, *, as_of: date | None = None
) -> RiskStatus:
    return risk_status(report.coverage_pct, days_until(due_date, as_of=as_of))
