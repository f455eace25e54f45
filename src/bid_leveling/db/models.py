from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SqlEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


class BidStatus(str, Enum):
    INVITED = "invited"
    BIDDING = "bidding"
    SUBMITTED = "submitted"
    DECLINED = "declined"
    NO_RESPONSE = "no_response"

    @classmethod
    def parse(cls, raw: str | BidStatus) -> BidStatus:
        if isinstance(raw, BidStatus):
            return raw
        text = str(raw or "").strip().lower()
        if text == "ghosted":
            return cls.NO_RESPONSE
        return cls(text)


AWAITING_STATUSES = frozenset({BidStatus.INVITED, BidStatus.BIDDING})


class UnitType(str, Enum):
    LF = "LF"
    SF = "SF"
    SY = "SY"
    CY = "CY"
    EA = "EA"
    HR = "HR"
    DAY = "DAY"
    LS = "LS"
    ALLOW = "ALLOW"
    UNIT = "UNIT"
    OTHER = "OTHER"


LUMP_UNITS = frozenset({UnitType.LS, UnitType.ALLOW})


class BidProject(Base):
    __tablename__ = "bid_projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_name: Mapped[str] = mapped_column(String(256), nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class Subcontractor(Base):
    __tablename__ = "subcontractors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    company_name: Mapped[str] = mapped_column(String(256), nullable=False, index=True)
    primary_contact: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)


class BidTrade(Base):
    __tablename__ = "bid_trades"
    __table_args__ = (Index("ix_bid_trades_project_sort", "project_id", "sort_order"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bid_projects.id"), nullable=False, index=True
    )
    trade_name: Mapped[str] = mapped_column(String(128), nullable=False)
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)


class BidProjectSub(Base):
    __tablename__ = "bid_project_subs"
    __table_args__ = (
        Index("ix_bid_project_subs_project_sub", "project_id", "subcontractor_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bid_projects.id"), nullable=False, index=True
    )
    subcontractor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subcontractors.id"), nullable=False, index=True
    )
    sort_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    invited_at: Mapped[datetime | None] = mapped_column(DateTime, default=_utcnow, nullable=True)


class TradeBid(Base):
    __tablename__ = "trade_bids"
    __table_args__ = (
        UniqueConstraint("project_id", "trade_id", "sub_id", name="uq_trade_bids_cell"),
        Index("ix_trade_bids_project_trade", "project_id", "trade_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bid_projects.id"), nullable=False, index=True
    )
    trade_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bid_trades.id"), nullable=False
    )
    sub_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bid_project_subs.id"), nullable=False
    )
    status: Mapped[BidStatus] = mapped_column(
        SqlEnum(BidStatus, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BidStatus.INVITED,
    )
    base_bid_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    received_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_low: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )


class TradeBidItem(Base):
    __tablename__ = "trade_bid_items"
    __table_args__ = (Index("ix_trade_bid_items_bid_sort", "bid_id", "sort_order"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    bid_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trade_bids.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    qty: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit: Mapped[UnitType] = mapped_column(
        SqlEnum(UnitType, native_enum=False), nullable=False, default=UnitType.EA
    )
    unit_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    amount_override: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class TradeBidAlternate(Base):
    __tablename__ = "trade_bid_alternates"
    __table_args__ = (Index("ix_trade_bid_alternates_bid_sort", "bid_id", "sort_order"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    bid_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("trade_bids.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProjectTradeBudget(Base):
    __tablename__ = "project_trade_budgets"
    __table_args__ = (
        UniqueConstraint("project_id", "trade_id", name="uq_project_trade_budgets_trade"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bid_projects.id"), nullable=False, index=True
    )
    trade_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bid_trades.id"), nullable=False
    )
    budget_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    budget_notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class LevelingSnapshot(Base):
    __tablename__ = "leveling_snapshots"
    __table_args__ = (
        Index("ix_leveling_snapshots_project_created", "project_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("bid_projects.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class LevelingSnapshotItem(Base):
    __tablename__ = "leveling_snapshot_items"
    __table_args__ = (
        UniqueConstraint(
            "snapshot_id", "trade_id", "sub_id", name="uq_leveling_snapshot_items_cell"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    snapshot_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("leveling_snapshots.id"), nullable=False, index=True
    )
    # Plain ids: frozen cells outlive the trades and subs they point at.
    trade_id: Mapped[str] = mapped_column(String(36), nullable=False)
    sub_id: Mapped[str] = mapped_column(String(36), nullable=False)
    base_bid_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
