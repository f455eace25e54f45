from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bid_leveling.db.models import (
    BidStatus,
    LevelingSnapshot,
    LevelingSnapshotItem,
    ProjectTradeBudget,
    TradeBid,
    TradeBidItem,
    UnitType,
)
from bid_leveling.db.repository import SqlLevelingStore
from bid_leveling.leveling.errors import NotFoundFailure, PersistenceFailure
from bid_leveling.leveling.matrix import build_leveling_matrix
from bid_leveling.leveling.records import (
    AlternateRecord,
    BaseItemRecord,
    BidUpsert,
    SnapshotItemDraft,
)


def _upsert(seed, sub_id: str, amount: float | None, status: BidStatus = BidStatus.SUBMITTED, **kwargs):
    return BidUpsert(
        project_id=seed.project_id,
        trade_id=kwargs.get("trade_id", seed.electrical_id),
        sub_id=sub_id,
        status=status,
        base_bid_amount=amount,
        notes=kwargs.get("notes"),
        received_at=kwargs.get("received_at"),
    )


def _line(item_id: str, description: str, sort_order: int) -> BaseItemRecord:
    return BaseItemRecord(
        id=item_id,
        description=description,
        qty=1.0,
        unit=UnitType.LS,
        unit_price=1000.0,
        amount_override=None,
        notes=None,
        sort_order=sort_order,
    )


def test_matrix_read_returns_seeded_rows(store: SqlLevelingStore, seeded_project):
    data = store.get_project_bid_matrix(seeded_project.project_id)

    assert data.project.name == "Harbor Tower"
    assert data.project.due_date == date(2025, 6, 30)
    assert [trade.name for trade in data.trades] == ["Electrical", "Plumbing"]
    assert [trade.sort_order for trade in data.trades] == [1, 2]
    assert [sub.company_name for sub in data.project_subs] == [
        "Xeno Electric",
        "Yellow Power",
        "Zeta Mechanical",
    ]
    assert data.bids == ()
    assert data.snapshots == ()


def test_upsert_keeps_one_bid_per_cell(
    store: SqlLevelingStore, db_session: Session, seeded_project
):
    store.upsert_bid(_upsert(seeded_project, seeded_project.sub_x, None, BidStatus.INVITED))
    updated = store.upsert_bid(
        _upsert(seeded_project, seeded_project.sub_x, 98000.0, received_at=date(2025, 5, 20))
    )

    count = db_session.scalar(select(func.count()).select_from(TradeBid))
    assert count == 1
    assert updated.status == BidStatus.SUBMITTED
    assert updated.base_bid_amount == 98000.0
    assert updated.received_at == date(2025, 5, 20)


def test_low_flags_follow_cheapest_submission(store: SqlLevelingStore, seeded_project):
    seed = seeded_project
    store.upsert_bid(_upsert(seed, seed.sub_x, 100000.0))
    store.upsert_bid(_upsert(seed, seed.sub_y, 90000.0))
    store.upsert_bid(_upsert(seed, seed.sub_z, 80000.0, BidStatus.DECLINED))

    flags = {bid.sub_id: bid.is_low for bid in store.get_project_bid_matrix(seed.project_id).bids}
    assert flags == {seed.sub_x: False, seed.sub_y: True, seed.sub_z: False}

    store.remove_bid(seed.project_id, seed.electrical_id, seed.sub_y)

    flags = {bid.sub_id: bid.is_low for bid in store.get_project_bid_matrix(seed.project_id).bids}
    assert flags == {seed.sub_x: True, seed.sub_z: False}


def test_remove_returns_full_record_and_drops_breakdown(
    store: SqlLevelingStore, db_session: Session, seeded_project
):
    seed = seeded_project
    store.upsert_bid(
        _upsert(seed, seed.sub_x, 5000.0, notes="Includes permits", received_at=date(2025, 5, 2))
    )
    store.save_bid_breakdown(
        seed.project_id, seed.electrical_id, seed.sub_x, [_line("i1", "Base", 1)], []
    )

    removed = store.remove_bid(seed.project_id, seed.electrical_id, seed.sub_x)

    assert removed.base_bid_amount == 5000.0
    assert removed.notes == "Includes permits"
    assert removed.received_at == date(2025, 5, 2)
    assert db_session.scalar(select(func.count()).select_from(TradeBidItem)) == 0
    with pytest.raises(NotFoundFailure):
        store.remove_bid(seed.project_id, seed.electrical_id, seed.sub_x)


def test_upsert_rejects_unknown_trade(store: SqlLevelingStore, seeded_project):
    with pytest.raises(NotFoundFailure):
        store.upsert_bid(_upsert(seeded_project, seeded_project.sub_x, 1.0, trade_id="missing"))


def test_budget_upsert_is_keyed_by_trade(
    store: SqlLevelingStore, db_session: Session, seeded_project
):
    seed = seeded_project
    store.upsert_budget(seed.project_id, seed.electrical_id, 90000.0, "initial")
    store.upsert_budget(seed.project_id, seed.electrical_id, 95000.0, "revised")

    assert db_session.scalar(select(func.count()).select_from(ProjectTradeBudget)) == 1
    budget = store.get_project_bid_matrix(seed.project_id).budget_for(seed.electrical_id)
    assert budget.amount == 95000.0
    assert budget.notes == "revised"


def test_snapshot_items_round_trip(store: SqlLevelingStore, seeded_project):
    seed = seeded_project
    record = store.create_snapshot(
        seed.project_id,
        "Round 1",
        [
            SnapshotItemDraft(seed.electrical_id, seed.sub_x, 50000.0, "frozen"),
            SnapshotItemDraft(seed.electrical_id, seed.sub_y, None, None),
        ],
        created_by="estimator",
    )

    items = store.get_snapshot_items(record.id)

    assert record.title == "Round 1"
    assert record.created_by == "estimator"
    assert {(item.sub_id, item.base_bid_amount) for item in items} == {
        (seed.sub_x, 50000.0),
        (seed.sub_y, None),
    }
    assert [snap.id for snap in store.get_project_bid_matrix(seed.project_id).snapshots] == [
        record.id
    ]


def test_snapshot_creation_is_all_or_nothing(
    store: SqlLevelingStore, db_session: Session, seeded_project
):
    seed = seeded_project
    duplicate = SnapshotItemDraft(seed.electrical_id, seed.sub_x, 1.0, None)

    with pytest.raises(PersistenceFailure):
        store.create_snapshot(seed.project_id, "Broken", [duplicate, duplicate])

    assert db_session.scalar(select(func.count()).select_from(LevelingSnapshot)) == 0
    assert db_session.scalar(select(func.count()).select_from(LevelingSnapshotItem)) == 0


def test_unknown_snapshot_is_not_found(store: SqlLevelingStore):
    with pytest.raises(NotFoundFailure):
        store.get_snapshot_items("nope")


def test_breakdown_save_replaces_removed_rows(store: SqlLevelingStore, seeded_project):
    seed = seeded_project
    store.upsert_bid(_upsert(seed, seed.sub_x, 3000.0))
    alternate = AlternateRecord(
        id="a1", title="LED upgrade", accepted=True, amount=450.0, notes=None, sort_order=1
    )

    first = store.save_bid_breakdown(
        seed.project_id,
        seed.electrical_id,
        seed.sub_x,
        [_line("i1", "Rough-in", 1), _line("i2", "Trim", 2)],
        [alternate],
    )
    second = store.save_bid_breakdown(
        seed.project_id, seed.electrical_id, seed.sub_x, [_line("i2", "Trim out", 1)], []
    )

    assert [item.id for item in first.base_items] == ["i1", "i2"]
    assert first.alternates[0].accepted is True
    assert [(item.id, item.description) for item in second.base_items] == [("i2", "Trim out")]
    assert second.alternates == ()


def test_breakdown_for_missing_bid(store: SqlLevelingStore, seeded_project):
    seed = seeded_project

    assert store.get_bid_breakdown(seed.project_id, seed.electrical_id, seed.sub_y).bid_id is None
    with pytest.raises(NotFoundFailure):
        store.save_bid_breakdown(seed.project_id, seed.electrical_id, seed.sub_y, [], [])


def test_repeat_invitation_keeps_the_first_one(store: SqlLevelingStore):
    company_id = store.add_subcontractor("Nova Electric")

    for attempt in range(5):
        project = store.create_project(f"Depot {attempt}")
        trade = store.add_trade(project.id, "Electrical")
        first = store.invite_sub(project.id, company_id)
        second = store.invite_sub(project.id, company_id)

        assert first.invited_at is not None
        assert (first.sort_order, second.sort_order) == (1, 2)

        data = store.get_project_bid_matrix(project.id)
        assert [sub.id for sub in data.project_subs] == [first.id, second.id]

        matrix = build_leveling_matrix(data.trades, data.project_subs, data.bids)
        assert [sub.id for sub in matrix.subs] == [first.id]
        assert matrix.trades[0].id == trade.id
