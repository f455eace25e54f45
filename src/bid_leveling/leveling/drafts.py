"""Editable bid-detail drafts: base-bid line items, alternates, and notes."""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, replace
from uuid import uuid4

from bid_leveling.db.models import LUMP_UNITS, BidStatus, UnitType
from bid_leveling.leveling.records import (
    AlternateRecord,
    BaseItemRecord,
    BidBreakdown,
    BidRecord,
)
from bid_leveling.utils.money import parse_money

INCLUSIONS_MARKER = "\n\n---INCLUSIONS---\n"


@dataclass(frozen=True, slots=True)
class BaseItemDraft:
    id: str
    description: str = ""
    qty: str = ""
    unit: UnitType = UnitType.EA
    unit_price: str = ""
    amount_override: str = ""
    notes: str = ""
    sort_order: int = 0


@dataclass(frozen=True, slots=True)
class AlternateDraft:
    id: str
    title: str = ""
    accepted: bool = False
    amount: str = "0"
    notes: str = ""
    sort_order: int = 0


@dataclass(frozen=True, slots=True)
class BidDraft:
    status: BidStatus = BidStatus.INVITED
    base_items: tuple[BaseItemDraft, ...] = ()
    alternates: tuple[AlternateDraft, ...] = ()
    inclusions: str = ""
    notes: str = ""
    received_at: str = ""


EMPTY_DRAFT = BidDraft()


def new_line_item(sort_order: int, unit: UnitType = UnitType.EA) -> BaseItemDraft:
    return BaseItemDraft(id=str(uuid4()), unit=unit, sort_order=sort_order)


def new_alternate(sort_order: int) -> AlternateDraft:
    return AlternateDraft(id=str(uuid4()), sort_order=sort_order)


def with_lump_qty(item: BaseItemDraft) -> BaseItemDraft:
    if item.unit in LUMP_UNITS and item.qty != "1":
        return replace(item, qty="1")
    return item


def compute_line_total(item: BaseItemDraft) -> float:
    unit_price = parse_money(item.unit_price) or 0.0
    if item.unit in LUMP_UNITS:
        return unit_price
    try:
        qty = float(item.qty or 0)
    except ValueError:
        return 0.0
    if not math.isfinite(qty):
        return 0.0
    return qty * unit_price


def compute_base_items_total(items: tuple[BaseItemDraft, ...] | list[BaseItemDraft]) -> float:
    return sum((compute_line_total(item) for item in items), 0.0)


def split_bid_notes(raw: str | None) -> tuple[str, str]:
    """Return ``(notes, inclusions)`` from the single stored notes column."""
    value = raw or ""
    index = value.find(INCLUSIONS_MARKER)
    if index == -1:
        return value, ""
    return value[:index], value[index + len(INCLUSIONS_MARKER) :]


def merge_bid_notes(notes: str, inclusions: str) -> str | None:
    notes_trimmed = notes.strip()
    inclusions_trimmed = inclusions.strip()
    if not notes_trimmed and not inclusions_trimmed:
        return None
    if not inclusions_trimmed:
        return notes_trimmed or None
    return f"{notes_trimmed}{INCLUSIONS_MARKER}{inclusions_trimmed}".strip()


def _number_text(value: float | None) -> str:
    if value is None:
        return ""
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def fallback_base_item(amount: float) -> BaseItemDraft:
    return BaseItemDraft(
        id=str(uuid4()),
        description="Base Bid",
        qty="1",
        unit=UnitType.LS,
        unit_price=_number_text(amount),
        sort_order=1,
    )


def base_item_draft(row: BaseItemRecord) -> BaseItemDraft:
    return BaseItemDraft(
        id=row.id,
        description=row.description or "",
        qty=_number_text(row.qty),
        unit=row.unit,
        unit_price=_number_text(row.unit_price),
        amount_override=_number_text(row.amount_override),
        notes=row.notes or "",
        sort_order=row.sort_order or 0,
    )


def alternate_draft(row: AlternateRecord) -> AlternateDraft:
    return AlternateDraft(
        id=row.id,
        title=row.title or "",
        accepted=row.accepted,
        amount=_number_text(row.amount or 0.0),
        notes=row.notes or "",
        sort_order=row.sort_order or 0,
    )


def draft_from_bid(bid: BidRecord | None, breakdown: BidBreakdown | None = None) -> BidDraft:
    """Seed a draft from the live bid, then overlay any stored breakdown."""
    notes, inclusions = split_bid_notes(bid.notes if bid is not None else None)
    amount = bid.base_bid_amount if bid is not None else None

    base_items: tuple[BaseItemDraft, ...] = ()
    alternates: tuple[AlternateDraft, ...] = ()
    if breakdown is not None:
        base_items = tuple(base_item_draft(row) for row in breakdown.base_items)
        alternates = tuple(alternate_draft(row) for row in breakdown.alternates)
    if not base_items and amount is not None:
        base_items = (fallback_base_item(amount),)

    received = bid.received_at.isoformat() if bid is not None and bid.received_at else ""
    return BidDraft(
        status=bid.status if bid is not None else BidStatus.INVITED,
        base_items=base_items,
        alternates=alternates,
        inclusions=inclusions,
        notes=notes,
        received_at=received,
    )


def serialize_draft(draft: BidDraft) -> str:
    """Canonical JSON used to decide whether a draft differs from its loaded state."""
    return json.dumps(asdict(draft), sort_keys=True, default=str)


def base_item_records(draft: BidDraft) -> list[BaseItemRecord]:
    """Line items ready for storage, renumbered 1..n in draft order."""
    records: list[BaseItemRecord] = []
    for index, item in enumerate(draft.base_items, start=1):
        qty_text = item.qty.strip()
        try:
            qty = float(qty_text) if qty_text else None
        except ValueError:
            qty = None
        records.append(
            BaseItemRecord(
                id=item.id,
                description=item.description.strip(),
                qty=qty,
                unit=item.unit,
                unit_price=parse_money(item.unit_price),
                amount_override=parse_money(item.amount_override),
                notes=item.notes.strip() or None,
                sort_order=index,
            )
        )
    return records


def alternate_records(draft: BidDraft) -> list[AlternateRecord]:
    return [
        AlternateRecord(
            id=alternate.id,
            title=alternate.title.strip(),
            accepted=alternate.accepted,
            amount=parse_money(alternate.amount) or 0.0,
            notes=alternate.notes.strip() or None,
            sort_order=index,
        )
        for index, alternate in enumerate(draft.alternates, start=1)
    ]
