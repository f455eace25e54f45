"""SQLAlchemy-backed entity store for projects, trades, subs, bids, budgets, and snapshots."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bid_leveling.db.models import (
    BidProject,
    BidProjectSub,
    BidStatus,
    BidTrade,
    LevelingSnapshot,
    LevelingSnapshotItem,
    ProjectTradeBudget,
    Subcontractor,
    TradeBid,
    TradeBidAlternate,
    TradeBidItem,
)
from bid_leveling.leveling.errors import NotFoundFailure, PersistenceFailure
from bid_leveling.leveling.records import (
    AlternateRecord,
    BaseItemRecord,
    BidBreakdown,
    BidMatrixData,
    BidRecord,
    BidUpsert,
    BudgetRecord,
    ProjectRecord,
    ProjectSubRecord,
    SnapshotItemDraft,
    SnapshotItemRecord,
    SnapshotRecord,
    TradeRecord,
)
from bid_leveling.utils.dates import utc_now_naive
from bid_leveling.utils.logging import get_logger

logger = get_logger(__name__)


def _bid_record(row: TradeBid) -> BidRecord:
    return BidRecord(
        id=row.id,
        project_id=row.project_id,
        trade_id=row.trade_id,
        sub_id=row.sub_id,
        status=BidStatus.parse(row.status),
        base_bid_amount=float(row.base_bid_amount) if row.base_bid_amount is not None else None,
        received_at=row.received_at,
        is_low=bool(row.is_low),
        notes=row.notes,
    )


def _snapshot_record(row: LevelingSnapshot) -> SnapshotRecord:
    return SnapshotRecord(
        id=row.id,
        project_id=row.project_id,
        title=row.title,
        created_at=row.created_at,
        created_by=row.created_by,
    )


def _base_item_record(row: TradeBidItem) -> BaseItemRecord:
    return BaseItemRecord(
        id=row.id,
        description=row.description or "",
        qty=row.qty,
        unit=row.unit,
        unit_price=row.unit_price,
        amount_override=row.amount_override,
        notes=row.notes,
        sort_order=int(row.sort_order or 0),
    )


def _alternate_record(row: TradeBidAlternate) -> AlternateRecord:
    return AlternateRecord(
        id=row.id,
        title=row.title or "",
        accepted=bool(row.accepted),
        amount=float(row.amount or 0.0),
        notes=row.notes,
        sort_order=int(row.sort_order or 0),
    )


class SqlLevelingStore:
    """Store adapter over one ORM session; each public write is its own transaction."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except NotFoundFailure:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Store operation %s failed: %s", operation, exc)
            raise PersistenceFailure(operation, str(exc)) from exc

    @contextmanager
    def _read(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Store read %s failed: %s", operation, exc)
            raise PersistenceFailure(operation, str(exc)) from exc

    # -- setup helpers used by seeding, the CLI, and tests -------------------

    def create_project(self, name: str, due_date: date | None = None) -> ProjectRecord:
        with self._transaction("create_project"):
            row = BidProject(project_name=name, due_date=due_date)
            self.session.add(row)
            self.session.flush()
        return ProjectRecord(id=row.id, name=row.project_name, due_date=row.due_date)

    def add_trade(self, project_id: str, name: str, sort_order: int | None = None) -> TradeRecord:
        with self._transaction("add_trade"):
            self._require_project(project_id)
            if sort_order is None:
                current = self.session.scalar(
                    select(func.max(BidTrade.sort_order)).where(BidTrade.project_id == project_id)
                )
                sort_order = int(current or 0) + 1
            row = BidTrade(project_id=project_id, trade_name=name, sort_order=sort_order)
            self.session.add(row)
            self.session.flush()
        return TradeRecord(id=row.id, name=row.trade_name, sort_order=row.sort_order)

    def add_subcontractor(self, company_name: str, **contact: str | None) -> str:
        with self._transaction("add_subcontractor"):
            row = Subcontractor(company_name=company_name, **contact)
            self.session.add(row)
            self.session.flush()
        return row.id

    def invite_sub(
        self,
        project_id: str,
        subcontractor_id: str,
        *,
        sort_order: int | None = None,
        invited_at: datetime | None = None,
    ) -> ProjectSubRecord:
        with self._transaction("invite_sub"):
            self._require_project(project_id)
            company = self.session.get(Subcontractor, subcontractor_id)
            if company is None:
                raise NotFoundFailure("subcontractor", subcontractor_id)
            if sort_order is None:
                current = self.session.scalar(
                    select(func.max(BidProjectSub.sort_order)).where(
                        BidProjectSub.project_id == project_id
                    )
                )
                sort_order = int(current or 0) + 1
            row = BidProjectSub(
                project_id=project_id,
                subcontractor_id=subcontractor_id,
                sort_order=sort_order,
                invited_at=invited_at or utc_now_naive(),
            )
            self.session.add(row)
            self.session.flush()
        return ProjectSubRecord(
            id=row.id,
            subcontractor_id=row.subcontractor_id,
            company_name=company.company_name,
            sort_order=row.sort_order,
            invited_at=row.invited_at,
        )

    # -- lookups ------------------------------------------------------------

    def _require_project(self, project_id: str) -> BidProject:
        project = self.session.get(BidProject, project_id)
        if project is None:
            raise NotFoundFailure("project", project_id)
        return project

    def _require_trade(self, project_id: str, trade_id: str) -> BidTrade:
        trade = self.session.get(BidTrade, trade_id)
        if trade is None or trade.project_id != project_id:
            raise NotFoundFailure("trade", trade_id)
        return trade

    def _require_project_sub(self, project_id: str, sub_id: str) -> BidProjectSub:
        sub = self.session.get(BidProjectSub, sub_id)
        if sub is None or sub.project_id != project_id:
            raise NotFoundFailure("project sub", sub_id)
        return sub

    def _find_bid(self, project_id: str, trade_id: str, sub_id: str) -> TradeBid | None:
        return self.session.scalar(
            select(TradeBid).where(
                TradeBid.project_id == project_id,
                TradeBid.trade_id == trade_id,
                TradeBid.sub_id == sub_id,
            )
        )

    def _recalc_low_flags(self, project_id: str, trade_id: str) -> None:
        rows = list(
            self.session.scalars(
                select(TradeBid).where(
                    TradeBid.project_id == project_id, TradeBid.trade_id == trade_id
                )
            ).all()
        )
        priced = [
            float(row.base_bid_amount)
            for row in rows
            if row.status == BidStatus.SUBMITTED and row.base_bid_amount is not None
        ]
        low = min(priced) if priced else None
        for row in rows:
            row.is_low = (
                low is not None
                and row.status == BidStatus.SUBMITTED
                and row.base_bid_amount is not None
                and float(row.base_bid_amount) == low
            )

    # -- store contract -----------------------------------------------------

    def get_project_bid_matrix(self, project_id: str) -> BidMatrixData:
        with self._read("get_project_bid_matrix"):
            project = self._require_project(project_id)
            trades = self.session.scalars(
                select(BidTrade)
                .where(BidTrade.project_id == project_id)
                .order_by(BidTrade.sort_order.is_(None), BidTrade.sort_order, BidTrade.trade_name)
            ).all()
            sub_rows = self.session.execute(
                select(BidProjectSub, Subcontractor.company_name)
                .join(Subcontractor, Subcontractor.id == BidProjectSub.subcontractor_id)
                .where(BidProjectSub.project_id == project_id)
                .order_by(
                    BidProjectSub.invited_at.is_(None),
                    BidProjectSub.invited_at,
                    BidProjectSub.sort_order.is_(None),
                    BidProjectSub.sort_order,
                    BidProjectSub.id,
                )
            ).all()
            bids = self.session.scalars(
                select(TradeBid).where(TradeBid.project_id == project_id)
            ).all()
            budgets = self.session.scalars(
                select(ProjectTradeBudget).where(ProjectTradeBudget.project_id == project_id)
            ).all()
            snapshots = self.session.scalars(
                select(LevelingSnapshot)
                .where(LevelingSnapshot.project_id == project_id)
                .order_by(LevelingSnapshot.created_at.desc(), LevelingSnapshot.id.desc())
            ).all()

            return BidMatrixData(
                project=ProjectRecord(
                    id=project.id, name=project.project_name, due_date=project.due_date
                ),
                trades=tuple(
                    TradeRecord(id=row.id, name=row.trade_name, sort_order=row.sort_order)
                    for row in trades
                ),
                project_subs=tuple(
                    ProjectSubRecord(
                        id=row.id,
                        subcontractor_id=row.subcontractor_id,
                        company_name=company_name or "",
                        sort_order=row.sort_order,
                        invited_at=row.invited_at,
                    )
                    for row, company_name in sub_rows
                ),
                bids=tuple(_bid_record(row) for row in bids),
                budgets=tuple(
                    BudgetRecord(
                        trade_id=row.trade_id, amount=row.budget_amount, notes=row.budget_notes
                    )
                    for row in budgets
                ),
                snapshots=tuple(_snapshot_record(row) for row in snapshots),
            )

    def upsert_bid(self, payload: BidUpsert) -> BidRecord:
        with self._transaction("upsert_bid"):
            self._require_trade(payload.project_id, payload.trade_id)
            self._require_project_sub(payload.project_id, payload.sub_id)
            row = self._find_bid(payload.project_id, payload.trade_id, payload.sub_id)
            if row is None:
                row = TradeBid(
                    project_id=payload.project_id,
                    trade_id=payload.trade_id,
                    sub_id=payload.sub_id,
                )
                self.session.add(row)
            row.status = payload.status
            row.base_bid_amount = payload.base_bid_amount
            row.notes = payload.notes
            row.received_at = payload.received_at
            self.session.flush()
            self._recalc_low_flags(payload.project_id, payload.trade_id)
            self.session.flush()
            record = _bid_record(row)
        return record

    def remove_bid(self, project_id: str, trade_id: str, sub_id: str) -> BidRecord:
        with self._transaction("remove_bid"):
            row = self._find_bid(project_id, trade_id, sub_id)
            if row is None:
                raise NotFoundFailure("bid", f"{trade_id}:{sub_id}")
            removed = _bid_record(row)
            self.session.execute(delete(TradeBidItem).where(TradeBidItem.bid_id == row.id))
            self.session.execute(
                delete(TradeBidAlternate).where(TradeBidAlternate.bid_id == row.id)
            )
            self.session.delete(row)
            self.session.flush()
            self._recalc_low_flags(project_id, trade_id)
        return removed

    def upsert_budget(
        self, project_id: str, trade_id: str, amount: float | None, notes: str | None
    ) -> BudgetRecord:
        with self._transaction("upsert_budget"):
            self._require_trade(project_id, trade_id)
            row = self.session.scalar(
                select(ProjectTradeBudget).where(
                    ProjectTradeBudget.project_id == project_id,
                    ProjectTradeBudget.trade_id == trade_id,
                )
            )
            if row is None:
                row = ProjectTradeBudget(project_id=project_id, trade_id=trade_id)
                self.session.add(row)
            row.budget_amount = amount
            row.budget_notes = notes
        return BudgetRecord(trade_id=trade_id, amount=amount, notes=notes)

    def create_snapshot(
        self,
        project_id: str,
        title: str,
        items: Sequence[SnapshotItemDraft],
        created_by: str | None = None,
    ) -> SnapshotRecord:
        # Header and items share one transaction: a failure leaves no partial freeze.
        with self._transaction("create_snapshot"):
            self._require_project(project_id)
            snapshot = LevelingSnapshot(
                project_id=project_id, title=title, created_by=created_by, locked=True
            )
            self.session.add(snapshot)
            self.session.flush()
            self.session.add_all(
                LevelingSnapshotItem(
                    snapshot_id=snapshot.id,
                    trade_id=item.trade_id,
                    sub_id=item.sub_id,
                    base_bid_amount=item.base_bid_amount,
                    notes=item.notes,
                )
                for item in items
            )
            self.session.flush()
            record = _snapshot_record(snapshot)
        logger.info("Created leveling snapshot %s with %d item(s)", record.id, len(items))
        return record

    def get_snapshot_items(self, snapshot_id: str) -> list[SnapshotItemRecord]:
        with self._read("get_snapshot_items"):
            if self.session.get(LevelingSnapshot, snapshot_id) is None:
                raise NotFoundFailure("snapshot", snapshot_id)
            rows = self.session.scalars(
                select(LevelingSnapshotItem)
                .where(LevelingSnapshotItem.snapshot_id == snapshot_id)
                .order_by(LevelingSnapshotItem.trade_id, LevelingSnapshotItem.sub_id)
            ).all()
            return [
                SnapshotItemRecord(
                    id=row.id,
                    snapshot_id=row.snapshot_id,
                    trade_id=row.trade_id,
                    sub_id=row.sub_id,
                    base_bid_amount=row.base_bid_amount,
                    notes=row.notes,
                )
                for row in rows
            ]

    def get_bid_breakdown(self, project_id: str, trade_id: str, sub_id: str) -> BidBreakdown:
        with self._read("get_bid_breakdown"):
            bid = self._find_bid(project_id, trade_id, sub_id)
            if bid is None:
                return BidBreakdown(bid_id=None)
            items = self.session.scalars(
                select(TradeBidItem)
                .where(TradeBidItem.bid_id == bid.id)
                .order_by(TradeBidItem.sort_order, TradeBidItem.id)
            ).all()
            alternates = self.session.scalars(
                select(TradeBidAlternate)
                .where(TradeBidAlternate.bid_id == bid.id)
                .order_by(TradeBidAlternate.sort_order, TradeBidAlternate.id)
            ).all()
            return BidBreakdown(
                bid_id=bid.id,
                base_items=tuple(_base_item_record(row) for row in items),
                alternates=tuple(_alternate_record(row) for row in alternates),
            )

    def save_bid_breakdown(
        self,
        project_id: str,
        trade_id: str,
        sub_id: str,
        base_items: Sequence[BaseItemRecord],
        alternates: Sequence[AlternateRecord],
    ) -> BidBreakdown:
        with self._transaction("save_bid_breakdown"):
            bid = self._find_bid(project_id, trade_id, sub_id)
            if bid is None:
                raise NotFoundFailure("bid", f"{trade_id}:{sub_id}")

            keep_item_ids = sorted({item.id for item in base_items})
            keep_alternate_ids = sorted({alternate.id for alternate in alternates})
            self.session.execute(
                delete(TradeBidItem).where(
                    TradeBidItem.bid_id == bid.id, TradeBidItem.id.not_in(keep_item_ids)
                )
            )
            self.session.execute(
                delete(TradeBidAlternate).where(
                    TradeBidAlternate.bid_id == bid.id,
                    TradeBidAlternate.id.not_in(keep_alternate_ids),
                )
            )

            for index, item in enumerate(base_items, start=1):
                row = self.session.get(TradeBidItem, item.id)
                if row is None:
                    row = TradeBidItem(id=item.id, bid_id=bid.id)
                    self.session.add(row)
                row.description = item.description
                row.qty = item.qty
                row.unit = item.unit
                row.unit_price = item.unit_price
                row.amount_override = item.amount_override
                row.notes = item.notes
                row.sort_order = item.sort_order or index

            for index, alternate in enumerate(alternates, start=1):
                row = self.session.get(TradeBidAlternate, alternate.id)
                if row is None:
                    row = TradeBidAlternate(id=alternate.id, bid_id=bid.id)
                    self.session.add(row)
                row.title = alternate.title
                row.accepted = alternate.accepted
                row.amount = alternate.amount
                row.notes = alternate.notes
                row.sort_order = alternate.sort_order or index
        return self.get_bid_breakdown(project_id, trade_id, sub_id)
