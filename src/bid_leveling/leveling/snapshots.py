"""Point-in-time leveling snapshots: freezing the live matrix and viewing it later."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from bid_leveling.db.models import BidStatus
from bid_leveling.leveling.matrix import LevelingMatrix, build_leveling_matrix, cell_key
from bid_leveling.leveling.records import (
    BidRecord,
    ProjectSubRecord,
    SnapshotItemDraft,
    SnapshotItemRecord,
)

PLACEHOLDER_ID_PREFIX = "snapshot-"


def is_placeholder_bid(bid: BidRecord) -> bool:
    return bid.id.startswith(PLACEHOLDER_ID_PREFIX)


def _placeholder_bid(item: SnapshotItemRecord, project_id: str) -> BidRecord:
    return BidRecord(
        id=f"{PLACEHOLDER_ID_PREFIX}{item.id}",
        project_id=project_id,
        trade_id=item.trade_id,
        sub_id=item.sub_id,
        status=BidStatus.SUBMITTED,
        base_bid_amount=item.base_bid_amount,
        received_at=None,
        is_low=False,
        notes=item.notes,
    )


def frozen_subs(
    live: LevelingMatrix, items: Sequence[SnapshotItemRecord]
) -> list[ProjectSubRecord]:
    """Subs present when the snapshot was taken, in live invitation order.

    A frozen sub whose invitation row is gone gets a stand-in record so its
    column survives; subs invited after the freeze are left out.
    """
    frozen_ids = list(dict.fromkeys(item.sub_id for item in items))
    wanted = set(frozen_ids)
    live_ids = {sub.id for sub in live.subs}
    kept = [sub for sub in live.subs if sub.id in wanted]
    missing = [
        ProjectSubRecord(id=sub_id, subcontractor_id=sub_id)
        for sub_id in frozen_ids
        if sub_id not in live_ids
    ]
    return kept + missing


def merge_snapshot(
    live: LevelingMatrix,
    items: Sequence[SnapshotItemRecord],
    project_id: str,
) -> LevelingMatrix:
    """Overlay frozen cells onto the live matrix.

    Only frozen cells and frozen subs appear. A live bid at a frozen key keeps
    its status and dates but shows the frozen amount and notes; a frozen key
    with no live bid becomes a read-only placeholder. The live matrix is never modified.
    """
    effective: list[BidRecord] = []
    for item in items:
        live_bid = live.bids_by_trade_sub.get(cell_key(item.trade_id, item.sub_id))
        if live_bid is not None:
            effective.append(
                replace(live_bid, base_bid_amount=item.base_bid_amount, notes=item.notes)
            )
        else:
            effective.append(_placeholder_bid(item, project_id))

    return build_leveling_matrix(live.trades, frozen_subs(live, items), effective)


def effective_matrix(
    live: LevelingMatrix,
    items: Sequence[SnapshotItemRecord] | None,
    project_id: str,
) -> LevelingMatrix:
    if items is None:
        return live
    return merge_snapshot(live, items, project_id)


def snapshot_notes(snapshot_note: str | None, bid_notes: str | None) -> str | None:
    parts = [(snapshot_note or "").strip(), bid_notes or ""]
    joined = "\n".join(part for part in parts if part)
    return joined or None


def build_snapshot_items(
    live: LevelingMatrix, snapshot_note: str | None = None
) -> list[SnapshotItemDraft]:
    """One frozen cell per trade x deduped sub, populated or not."""
    items: list[SnapshotItemDraft] = []
    for trade in live.trades:
        for sub in live.subs:
            bid = live.cell(trade.id, sub.id)
            items.append(
                SnapshotItemDraft(
                    trade_id=trade.id,
                    sub_id=sub.id,
                    base_bid_amount=bid.base_bid_amount if bid is not None else None,
                    notes=snapshot_notes(snapshot_note, bid.notes if bid is not None else None),
                )
            )
    return items
