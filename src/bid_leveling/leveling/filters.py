"""Trade triage: search, status and quick filters, sorting, and the summary strip."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

from bid_leveling.db.models import BidStatus
from bid_leveling.leveling.matrix import LevelingMatrix, trade_sort_key
from bid_leveling.leveling.records import BidRecord, TradeRecord
from bid_leveling.leveling.trade_stats import (
    MIN_COVERAGE_FOR_SAFETY,
    TradeStats,
    compute_trade_stats,
    is_priced_submission,
)
from bid_leveling.utils.money import format_currency, format_percent

MISSING_STATUSES = frozenset({BidStatus.INVITED, BidStatus.BIDDING, BidStatus.NO_RESPONSE})
HIGH_RISK_SCORE = 2
TOP_EXCEPTIONS = 5


class StatusFilter(str, Enum):
    ALL = "all"
    MISSING = "missing"
    SUBMITTED = "submitted"
    LT2 = "lt2"


class QuickFilter(str, Enum):
    OVER_BUDGET = "over_budget"
    NO_BIDS = "no_bids"
    ONLY_SUBMITTED = "only_submitted"
    HIGH_RISK = "high_risk"
    TWO_PLUS_BIDS = "two_plus_bids"


class TradeSort(str, Enum):
    DIVISION = "division"
    ALPHABETIC = "alphabetic"
    RISK = "risk"


@dataclass(frozen=True, slots=True)
class TradeRow:
    trade: TradeRecord
    bids: tuple[BidRecord, ...]
    stats: TradeStats


def trade_rows(
    matrix: LevelingMatrix, budgets: Mapping[str, float | None] | None = None
) -> list[TradeRow]:
    budgets = budgets or {}
    return [
        TradeRow(
            trade=trade,
            bids=tuple(matrix.bids_for_trade(trade.id)),
            stats=compute_trade_stats(matrix.bids_for_trade(trade.id), budgets.get(trade.id)),
        )
        for trade in matrix.trades
    ]


def _matches_status(row: TradeRow, status: StatusFilter) -> bool:
    if status == StatusFilter.MISSING:
        return not row.bids or any(bid.status in MISSING_STATUSES for bid in row.bids)
    if status == StatusFilter.SUBMITTED:
        return any(bid.status == BidStatus.SUBMITTED for bid in row.bids)
    if status == StatusFilter.LT2:
        priced = sum(1 for bid in row.bids if is_priced_submission(bid))
        return priced < MIN_COVERAGE_FOR_SAFETY
    return True


def _matches_quick(row: TradeRow, quick: QuickFilter) -> bool:
    if quick == QuickFilter.OVER_BUDGET:
        return row.stats.over_budget
    if quick == QuickFilter.NO_BIDS:
        return row.stats.coverage_count == 0
    if quick == QuickFilter.ONLY_SUBMITTED:
        return bool(row.bids) and all(bid.status == BidStatus.SUBMITTED for bid in row.bids)
    if quick == QuickFilter.HIGH_RISK:
        return row.stats.risk_score >= HIGH_RISK_SCORE
    if quick == QuickFilter.TWO_PLUS_BIDS:
        return row.stats.coverage_count >= MIN_COVERAGE_FOR_SAFETY
    return True


def filter_trades(
    rows: Iterable[TradeRow],
    *,
    search: str = "",
    status: StatusFilter | str = StatusFilter.ALL,
    risk_only: bool = False,
    quick: Iterable[QuickFilter | str] = (),
) -> list[TradeRow]:
    """Apply every filter; quick filters must all hold."""
    needle = search.strip().casefold()
    status = StatusFilter(status)
    quick_filters = [QuickFilter(value) for value in quick]

    kept: list[TradeRow] = []
    for row in rows:
        if needle and needle not in row.trade.name.casefold():
            continue
        if not _matches_status(row, status):
            continue
        if risk_only and row.stats.risk_score == 0:
            continue
        if not all(_matches_quick(row, value) for value in quick_filters):
            continue
        kept.append(row)
    return kept


def sort_trades(rows: Iterable[TradeRow], sort: TradeSort | str = TradeSort.DIVISION) -> list[TradeRow]:
    sort = TradeSort(sort)
    if sort == TradeSort.ALPHABETIC:
        return sorted(rows, key=lambda row: (row.trade.name.casefold(), row.trade.id))
    if sort == TradeSort.RISK:
        return sorted(rows, key=lambda row: (-row.stats.risk_score, trade_sort_key(row.trade)))
    return sorted(rows, key=lambda row: trade_sort_key(row.trade))


@dataclass(frozen=True, slots=True)
class TradeException:
    trade: TradeRecord
    reason: str
    severity: int


@dataclass(frozen=True, slots=True)
class SummaryMetrics:
    total_trades: int
    trades_with_bids: int
    over_budget_trades: int
    average_spread_percent: float | None
    high_risk_trades: int
    exceptions: tuple[TradeException, ...]


def _exception_reason(stats: TradeStats) -> str:
    if stats.over_budget:
        return f"Over budget by {format_currency(stats.budget_delta_amount)}"
    if stats.spread_risk:
        return f"Wide spread ({format_percent(stats.spread_percent)})"
    suffix = "" if stats.coverage_count == 1 else "s"
    return f"Low coverage ({stats.coverage_count} bid{suffix})"


def summary_metrics(rows: Sequence[TradeRow], top: int = TOP_EXCEPTIONS) -> SummaryMetrics:
    spreads: list[float] = []
    exceptions: list[TradeException] = []
    with_bids = over_budget = high_risk = 0

    for row in rows:
        stats = row.stats
        if stats.coverage_count > 0:
            with_bids += 1
        if stats.over_budget:
            over_budget += 1
        if stats.risk_score >= HIGH_RISK_SCORE:
            high_risk += 1
        if stats.spread_percent is not None:
            spreads.append(stats.spread_percent)
        if stats.risk_score == 0 and not stats.over_budget:
            continue
        severity = (2 if stats.over_budget else 0) + stats.risk_score
        exceptions.append(
            TradeException(trade=row.trade, reason=_exception_reason(stats), severity=severity)
        )

    exceptions.sort(key=lambda item: (-item.severity, item.trade.name.casefold()))
    return SummaryMetrics(
        total_trades=len(rows),
        trades_with_bids=with_bids,
        over_budget_trades=over_budget,
        average_spread_percent=sum(spreads) / len(spreads) if spreads else None,
        high_risk_trades=high_risk,
        exceptions=tuple(exceptions[:top]),
    )
