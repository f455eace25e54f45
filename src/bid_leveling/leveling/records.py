"""Plain value records shared by the store adapter and the leveling engine.

Records are frozen so the engine can override fields with ``dataclasses.replace``
without ever touching live rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from bid_leveling.db.models import BidStatus, UnitType


@dataclass(frozen=True, slots=True)
class ProjectRecord:
    id: str
    name: str
    due_date: date | None = None


@dataclass(frozen=True, slots=True)
class TradeRecord:
    id: str
    name: str
    sort_order: int | None = None


@dataclass(frozen=True, slots=True)
class ProjectSubRecord:
    id: str
    subcontractor_id: str
    company_name: str = ""
    sort_order: int | None = None
    invited_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class BidRecord:
    id: str
    project_id: str
    trade_id: str
    sub_id: str
    status: BidStatus = BidStatus.INVITED
    base_bid_amount: float | None = None
    received_at: date | None = None
    is_low: bool = False
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class BudgetRecord:
    trade_id: str
    amount: float | None = None
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class SnapshotRecord:
    id: str
    project_id: str
    title: str
    created_at: datetime
    created_by: str | None = None


@dataclass(frozen=True, slots=True)
class SnapshotItemRecord:
    id: str
    snapshot_id: str
    trade_id: str
    sub_id: str
    base_bid_amount: float | None = None
    notes: str | None = None


@dataclass(frozen=True, slots=True)
class SnapshotItemDraft:
    """One cell to freeze; ids are assigned by the store."""

    trade_id: str
    sub_id: str
    base_bid_amount: float | None
    notes: str | None


@dataclass(frozen=True, slots=True)
class BidUpsert:
    project_id: str
    trade_id: str
    sub_id: str
    status: BidStatus
    base_bid_amount: float | None
    notes: str | None
    received_at: date | None


@dataclass(frozen=True, slots=True)
class BaseItemRecord:
    id: str
    description: str
    qty: float | None
    unit: UnitType
    unit_price: float | None
    amount_override: float | None
    notes: str | None
    sort_order: int


@dataclass(frozen=True, slots=True)
class AlternateRecord:
    id: str
    title: str
    accepted: bool
    amount: float
    notes: str | None
    sort_order: int


@dataclass(frozen=True, slots=True)
class BidBreakdown:
    bid_id: str | None
    base_items: tuple[BaseItemRecord, ...] = ()
    alternates: tuple[AlternateRecord, ...] = ()


@dataclass(frozen=True, slots=True)
class BidMatrixData:
    """Consolidated read of everything the leveling view needs for one project."""

    project: ProjectRecord
    trades: tuple[TradeRecord, ...] = ()
    project_subs: tuple[ProjectSubRecord, ...] = ()
    bids: tuple[BidRecord, ...] = ()
    budgets: tuple[BudgetRecord, ...] = ()
    snapshots: tuple[SnapshotRecord, ...] = field(default_factory=tuple)

    def budget_for(self, trade_id: str) -> BudgetRecord | None:
        for budget in self.budgets:
            if budget.trade_id == trade_id:
                return budget
        return None
