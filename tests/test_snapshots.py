from __future__ import annotations

from datetime import date

from bid_leveling.db.models import BidStatus
from bid_leveling.leveling.matrix import build_leveling_matrix
from bid_leveling.leveling.records import (
    BidRecord,
    ProjectSubRecord,
    SnapshotItemRecord,
    TradeRecord,
)
from bid_leveling.leveling.snapshots import (
    build_snapshot_items,
    effective_matrix,
    is_placeholder_bid,
    merge_snapshot,
    snapshot_notes,
)

TRADES = [TradeRecord(id="t1", name="Electrical", sort_order=1)]
SUB_A = ProjectSubRecord(id="ps-a", subcontractor_id="a", company_name="Apex Electric")
SUB_B = ProjectSubRecord(id="ps-b", subcontractor_id="b", company_name="Bright Power")
SUB_C = ProjectSubRecord(id="ps-c", subcontractor_id="c", company_name="Circuit Pros")


def _bid(sub_id: str, status: BidStatus, amount: float | None, notes: str | None = None) -> BidRecord:
    return BidRecord(
        id=f"bid-{sub_id}",
        project_id="p1",
        trade_id="t1",
        sub_id=sub_id,
        status=status,
        base_bid_amount=amount,
        received_at=date(2025, 4, 1) if status == BidStatus.SUBMITTED else None,
        notes=notes,
    )


def _items(drafts) -> list[SnapshotItemRecord]:
    return [
        SnapshotItemRecord(
            id=f"item-{index}",
            snapshot_id="snap-1",
            trade_id=draft.trade_id,
            sub_id=draft.sub_id,
            base_bid_amount=draft.base_bid_amount,
            notes=draft.notes,
        )
        for index, draft in enumerate(drafts, start=1)
    ]


def test_snapshot_view_ignores_later_live_changes():
    live_then = build_leveling_matrix(
        TRADES,
        [SUB_A, SUB_B],
        [_bid("ps-a", BidStatus.SUBMITTED, 50000.0), _bid("ps-b", BidStatus.INVITED, None)],
    )
    items = _items(build_snapshot_items(live_then))

    # B's bid is removed and a new sub C bids after the freeze.
    live_now = build_leveling_matrix(
        TRADES,
        [SUB_A, SUB_B, SUB_C],
        [_bid("ps-a", BidStatus.SUBMITTED, 47000.0), _bid("ps-c", BidStatus.SUBMITTED, 45000.0)],
    )
    view = merge_snapshot(live_now, items, "p1")

    assert sorted(view.bids_by_trade_sub) == ["t1:ps-a", "t1:ps-b"]
    assert view.cell("t1", "ps-a").base_bid_amount == 50000.0
    assert view.cell("t1", "ps-b").base_bid_amount is None
    assert view.cell("t1", "ps-c") is None
    assert [sub.id for sub in view.subs] == ["ps-a", "ps-b"]


def test_snapshot_view_keeps_column_for_uninvited_sub():
    live_then = build_leveling_matrix(TRADES, [SUB_A, SUB_B], [_bid("ps-b", BidStatus.SUBMITTED, 52000.0)])
    items = _items(build_snapshot_items(live_then))

    # B's invitation is deleted after the freeze.
    live_now = build_leveling_matrix(TRADES, [SUB_A, SUB_C], [])
    view = merge_snapshot(live_now, items, "p1")

    assert [sub.id for sub in view.subs] == ["ps-a", "ps-b"]
    stand_in = view.sub_by_id("ps-b")
    assert stand_in.company_name == ""
    assert view.cell("t1", "ps-b").base_bid_amount == 52000.0
    assert view.sub_by_id("ps-c") is None


def test_live_bid_keeps_status_but_takes_frozen_amount_and_notes():
    live_bid = _bid("ps-a", BidStatus.SUBMITTED, 47000.0, notes="revised")
    live = build_leveling_matrix(TRADES, [SUB_A], [live_bid])
    items = [
        SnapshotItemRecord(
            id="item-1",
            snapshot_id="snap-1",
            trade_id="t1",
            sub_id="ps-a",
            base_bid_amount=50000.0,
            notes="original",
        )
    ]

    view = merge_snapshot(live, items, "p1")
    shown = view.cell("t1", "ps-a")

    assert shown.id == "bid-ps-a"
    assert shown.status == BidStatus.SUBMITTED
    assert shown.received_at == date(2025, 4, 1)
    assert shown.base_bid_amount == 50000.0
    assert shown.notes == "original"
    assert live.cell("t1", "ps-a").base_bid_amount == 47000.0
    assert live_bid.notes == "revised"


def test_placeholder_for_frozen_cell_without_live_bid():
    live = build_leveling_matrix(TRADES, [SUB_A], [])
    items = [
        SnapshotItemRecord(
            id="item-7",
            snapshot_id="snap-1",
            trade_id="t1",
            sub_id="ps-a",
            base_bid_amount=61000.0,
            notes=None,
        )
    ]

    placeholder = merge_snapshot(live, items, "p1").cell("t1", "ps-a")

    assert placeholder.id == "snapshot-item-7"
    assert is_placeholder_bid(placeholder)
    assert placeholder.status == BidStatus.SUBMITTED
    assert placeholder.is_low is False
    assert placeholder.base_bid_amount == 61000.0


def test_returning_to_live_view_is_idempotent():
    live = build_leveling_matrix(TRADES, [SUB_A, SUB_B], [_bid("ps-a", BidStatus.SUBMITTED, 50000.0)])
    items = _items(build_snapshot_items(live))

    first = effective_matrix(live, items, "p1")
    second = effective_matrix(live, items, "p1")

    assert first.bids_by_trade_sub == second.bids_by_trade_sub
    assert effective_matrix(live, None, "p1") is live


def test_snapshot_items_cover_every_trade_and_sub():
    trades = TRADES + [TradeRecord(id="t2", name="Plumbing", sort_order=2)]
    live = build_leveling_matrix(
        trades,
        [SUB_A, SUB_B, ProjectSubRecord(id="ps-a2", subcontractor_id="a", company_name="Apex Electric")],
        [_bid("ps-a", BidStatus.SUBMITTED, 50000.0, notes="incl. permits")],
    )

    drafts = build_snapshot_items(live, snapshot_note="  Round 1  ")

    assert len(drafts) == 4
    first = drafts[0]
    assert (first.trade_id, first.sub_id) == ("t1", "ps-a")
    assert first.base_bid_amount == 50000.0
    assert first.notes == "Round 1\nincl. permits"
    assert all(draft.sub_id != "ps-a2" for draft in drafts)
    assert drafts[1].base_bid_amount is None
    assert drafts[1].notes == "Round 1"


def test_snapshot_notes_drop_empty_parts():
    assert snapshot_notes(None, None) is None
    assert snapshot_notes("   ", None) is None
    assert snapshot_notes("", "bid only") == "bid only"
    assert snapshot_notes(" Round 2 ", "") == "Round 2"
