from __future__ import annotations

import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bid_leveling.db.migrate import migrate
from bid_leveling.db.models import (
    Base,
    BidProject,
    BidProjectSub,
    BidTrade,
    LevelingSnapshot,
    LevelingSnapshotItem,
    Subcontractor,
    TradeBid,
)


def test_schema_has_leveling_tables():
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)

    table_names = set(inspect(engine).get_table_names())
    expected = {
        "bid_projects",
        "subcontractors",
        "bid_trades",
        "bid_project_subs",
        "trade_bids",
        "trade_bid_items",
        "trade_bid_alternates",
        "project_trade_budgets",
        "leveling_snapshots",
        "leveling_snapshot_items",
    }
    assert expected.issubset(table_names)


def test_migrate_creates_file_database_with_extra_indexes(tmp_path):
    db_path = tmp_path / "nested" / "leveling.db"
    engine = migrate(f"sqlite:///{db_path.as_posix()}")

    assert db_path.exists()
    index_names = {index["name"] for index in inspect(engine).get_indexes("trade_bids")}
    assert "ix_trade_bids_project_trade_status" in index_names

    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

    # Running again is a no-op.
    migrate(f"sqlite:///{db_path.as_posix()}")
    engine.dispose()


def test_one_live_bid_per_cell():
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        project = BidProject(project_name="Depot")
        company = Subcontractor(company_name="Acme")
        session.add_all([project, company])
        session.flush()
        trade = BidTrade(project_id=project.id, trade_name="Roofing", sort_order=1)
        sub = BidProjectSub(project_id=project.id, subcontractor_id=company.id)
        session.add_all([trade, sub])
        session.flush()

        session.add_all(
            [
                TradeBid(project_id=project.id, trade_id=trade.id, sub_id=sub.id),
                TradeBid(project_id=project.id, trade_id=trade.id, sub_id=sub.id),
            ]
        )
        with pytest.raises(IntegrityError):
            session.flush()


def test_one_snapshot_item_per_cell():
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        project = BidProject(project_name="Depot")
        session.add(project)
        session.flush()
        snapshot = LevelingSnapshot(project_id=project.id, title="Round 1")
        session.add(snapshot)
        session.flush()

        session.add_all(
            [
                LevelingSnapshotItem(snapshot_id=snapshot.id, trade_id="t1", sub_id="s1"),
                LevelingSnapshotItem(snapshot_id=snapshot.id, trade_id="t1", sub_id="s1"),
            ]
        )
        with pytest.raises(IntegrityError):
            session.flush()
