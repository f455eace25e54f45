from __future__ import annotations

import math

from bid_leveling.db.models import BidStatus
from bid_leveling.leveling.records import BidRecord
from bid_leveling.leveling.trade_stats import (
    EMPTY_STATS,
    CellTone,
    classify_cell,
    compute_trade_stats,
    is_trade_at_risk,
)


def _bid(sub_id: str, status: BidStatus, amount: float | None) -> BidRecord:
    return BidRecord(
        id=f"bid-{sub_id}",
        project_id="p1",
        trade_id="electrical",
        sub_id=sub_id,
        status=status,
        base_bid_amount=amount,
    )


def test_electrical_trade_low_spread_and_risk():
    bids = [
        _bid("x", BidStatus.SUBMITTED, 100000.0),
        _bid("y", BidStatus.SUBMITTED, 120000.0),
        _bid("z", BidStatus.INVITED, None),
    ]

    stats = compute_trade_stats(bids)

    assert stats.low == 100000.0
    assert stats.high == 120000.0
    assert stats.spread_amount == 20000.0
    assert math.isclose(stats.spread_percent, 20.0)
    assert math.isclose(stats.average, 110000.0)
    assert stats.coverage_count == 2
    assert stats.spread_risk is True
    assert stats.coverage_risk is False
    assert is_trade_at_risk(stats) is True
    assert stats.risk_score == 1


def test_no_priced_submissions_gives_empty_stats():
    bids = [
        _bid("x", BidStatus.INVITED, None),
        _bid("y", BidStatus.DECLINED, 90000.0),
        _bid("z", BidStatus.SUBMITTED, None),
    ]

    stats = compute_trade_stats(bids, budget_amount=50000.0)

    assert stats == EMPTY_STATS
    assert stats.low is None
    assert stats.spread_amount is None
    assert stats.spread_percent is None
    assert stats.budget_delta_amount is None
    assert stats.coverage_count == 0
    assert stats.at_risk is True


def test_single_bid_has_zero_spread_but_thin_coverage():
    stats = compute_trade_stats([_bid("x", BidStatus.SUBMITTED, 75000.0)])

    assert stats.spread_amount == 0.0
    assert stats.spread_percent == 0.0
    assert stats.coverage_count == 1
    assert stats.coverage_risk is True
    assert stats.spread_risk is False


def test_zero_low_leaves_spread_percent_undefined():
    stats = compute_trade_stats(
        [_bid("x", BidStatus.SUBMITTED, 0.0), _bid("y", BidStatus.SUBMITTED, 500.0)]
    )

    assert stats.low == 0.0
    assert stats.spread_amount == 500.0
    assert stats.spread_percent is None
    assert stats.spread_risk is False


def test_budget_delta_compares_low_against_budget():
    bids = [_bid("x", BidStatus.SUBMITTED, 100000.0), _bid("y", BidStatus.SUBMITTED, 104000.0)]

    over = compute_trade_stats(bids, budget_amount=90000.0)
    assert over.budget_delta_amount == 10000.0
    assert math.isclose(over.budget_delta_percent, 100.0 * 10000.0 / 90000.0)
    assert over.over_budget is True

    under = compute_trade_stats(bids, budget_amount=120000.0)
    assert under.budget_delta_amount == -20000.0
    assert under.over_budget is False

    zero_budget = compute_trade_stats(bids, budget_amount=0.0)
    assert zero_budget.budget_delta_amount == 100000.0
    assert zero_budget.budget_delta_percent is None


def test_spread_values_never_negative():
    bids = [
        _bid("x", BidStatus.SUBMITTED, 300.0),
        _bid("y", BidStatus.SUBMITTED, 100.0),
        _bid("z", BidStatus.SUBMITTED, 200.0),
    ]

    stats = compute_trade_stats(bids)

    assert stats.spread_amount >= 0
    assert stats.spread_percent >= 0
    assert stats.low == 100.0


def test_classify_cell_tones_against_trade_low():
    low = 100000.0

    assert classify_cell(None, low) == CellTone.EMPTY
    assert classify_cell(_bid("x", BidStatus.SUBMITTED, None), low) == CellTone.EMPTY
    assert classify_cell(_bid("x", BidStatus.BIDDING, 90000.0), low) == CellTone.NEUTRAL
    assert classify_cell(_bid("x", BidStatus.SUBMITTED, 100000.0), None) == CellTone.NEUTRAL
    assert classify_cell(_bid("x", BidStatus.SUBMITTED, 100000.0), low) == CellTone.LOW
    assert classify_cell(_bid("x", BidStatus.SUBMITTED, 104000.0), low) == CellTone.NEAR_LOW
    assert classify_cell(_bid("x", BidStatus.SUBMITTED, 108000.0), low) == CellTone.NEUTRAL
    assert classify_cell(_bid("x", BidStatus.SUBMITTED, 120000.0), low) == CellTone.HIGH
