"""Leveling session: the single owner of mutable leveling state.

The session holds the last loaded project matrix, unsaved budget edits, the one
open bid draft, the selected snapshot, and the pending undo of a removal. State
changes only through the command methods below; derived numbers (trade stats,
coverage) are recomputed from current state on every call.

Store calls are issued strictly one after another. A failing call stops the
command, leaves every dirty flag as it was, records a message in
``last_error``, and re-raises.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date

from bid_leveling.config.settings import Settings, get_settings
from bid_leveling.db.models import BidStatus
from bid_leveling.leveling.coverage import (
    CoverageReport,
    RiskStatus,
    compute_coverage_report,
    project_risk_status,
)
from bid_leveling.leveling.drafts import (
    EMPTY_DRAFT,
    BidDraft,
    alternate_records,
    base_item_records,
    compute_base_items_total,
    draft_from_bid,
    merge_bid_notes,
    serialize_draft,
    with_lump_qty,
)
from bid_leveling.leveling.errors import (
    LevelingError,
    NotFoundFailure,
    ValidationFailure,
)
from bid_leveling.leveling.matrix import LevelingMatrix, build_leveling_matrix, cell_key
from bid_leveling.leveling.records import (
    BidMatrixData,
    BidRecord,
    BidUpsert,
    SnapshotItemRecord,
    SnapshotRecord,
)
from bid_leveling.leveling.snapshots import build_snapshot_items, effective_matrix
from bid_leveling.leveling.store import LevelingStore
from bid_leveling.leveling.trade_stats import TradeStats, compute_trade_stats
from bid_leveling.utils import dates
from bid_leveling.utils.logging import get_logger
from bid_leveling.utils.money import parse_money, round_money

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PendingUndo:
    bid: BidRecord
    expires_at: float


@dataclass(frozen=True, slots=True)
class SaveOutcome:
    bid: BidRecord | None
    budgets_saved: int


class LevelingSession:
    def __init__(
        self,
        store: LevelingStore,
        project_id: str,
        *,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        today: Callable[[], date] = dates.today,
    ) -> None:
        self.store = store
        self.project_id = project_id
        self.settings = settings or get_settings()
        self._clock = clock
        self._today = today

        self.data: BidMatrixData | None = None
        self.live: LevelingMatrix | None = None
        self.selected_snapshot_id: str | None = None
        self.snapshot_items: list[SnapshotItemRecord] | None = None

        self.budgets: dict[str, float | None] = {}
        self.loaded_budgets: dict[str, float | None] = {}
        self.budget_notes: dict[str, str | None] = {}
        self.loaded_budget_notes: dict[str, str | None] = {}
        self.dirty_budget_trade_ids: set[str] = set()

        self.active_cell: tuple[str, str] | None = None
        self.draft: BidDraft = EMPTY_DRAFT
        self.loaded_draft: BidDraft = EMPTY_DRAFT
        self._draft_baseline = serialize_draft(EMPTY_DRAFT)

        self.last_error: str | None = None
        self._pending_undo: PendingUndo | None = None

    # -- loading --------------------------------------------------------------

    def load(self) -> LevelingSession:
        """Fetch the full project matrix; unsaved budget edits are kept."""
        try:
            data = self.store.get_project_bid_matrix(self.project_id)
        except LevelingError as exc:
            self.last_error = f"Could not load bids: {exc}"
            raise
        self._apply(data)
        return self

    refresh = load

    def _apply(self, data: BidMatrixData) -> None:
        self.data = data
        self.live = build_leveling_matrix(data.trades, data.project_subs, data.bids)

        loaded: dict[str, float | None] = {}
        notes: dict[str, str | None] = {}
        for trade in data.trades:
            budget = data.budget_for(trade.id)
            loaded[trade.id] = budget.amount if budget is not None else None
            notes[trade.id] = budget.notes if budget is not None else None
        self.loaded_budgets = loaded
        self.loaded_budget_notes = notes

        known = set(loaded)
        self.dirty_budget_trade_ids &= known
        edited = {
            trade_id: value
            for trade_id, value in self.budgets.items()
            if trade_id in self.dirty_budget_trade_ids
        }
        self.budgets = {**loaded, **edited}
        edited_notes = {
            trade_id: value
            for trade_id, value in self.budget_notes.items()
            if trade_id in self.dirty_budget_trade_ids
        }
        self.budget_notes = {**notes, **edited_notes}

    def _require_live(self) -> LevelingMatrix:
        if self.live is None:
            raise ValidationFailure("Session is not loaded")
        return self.live

    def _reload_after_write(self) -> None:
        try:
            data = self.store.get_project_bid_matrix(self.project_id)
        except LevelingError as exc:
            self.last_error = f"Saved, but could not reload bids: {exc}"
            raise
        self._apply(data)

    # -- snapshot view ----------------------------------------------------------

    @property
    def snapshots(self) -> tuple[SnapshotRecord, ...]:
        return self.data.snapshots if self.data is not None else ()

    @property
    def is_read_only(self) -> bool:
        return self.selected_snapshot_id is not None

    def select_snapshot(self, snapshot_id: str | None) -> None:
        """Switch to a frozen snapshot, or back to the live matrix with ``None``."""
        if snapshot_id is None:
            self.selected_snapshot_id = None
            self.snapshot_items = None
            return
        if snapshot_id not in {snapshot.id for snapshot in self.snapshots}:
            raise NotFoundFailure("snapshot", snapshot_id)
        try:
            items = self.store.get_snapshot_items(snapshot_id)
        except LevelingError as exc:
            self.last_error = f"Could not load snapshot: {exc}"
            raise
        self.selected_snapshot_id = snapshot_id
        self.snapshot_items = items

    @property
    def effective_matrix(self) -> LevelingMatrix:
        return effective_matrix(self._require_live(), self.snapshot_items, self.project_id)

    def _ensure_writable(self, action: str) -> LevelingMatrix:
        live = self._require_live()
        if self.is_read_only:
            raise ValidationFailure(f"Cannot {action} while viewing a snapshot")
        return live

    # -- budgets --------------------------------------------------------------

    def budget_for(self, trade_id: str) -> float | None:
        return self.budgets.get(trade_id)

    def set_budget(
        self, trade_id: str, amount: float | str | None, notes: str | None = None
    ) -> None:
        """Edit a trade budget; ``notes=None`` keeps the current notes and a blank string clears them."""
        live = self._ensure_writable("edit budgets")
        if trade_id not in live.bids_by_trade_id:
            raise NotFoundFailure("trade", trade_id)
        self.budgets[trade_id] = parse_money(amount)
        if notes is not None:
            self.budget_notes[trade_id] = notes.strip() or None
        self.dirty_budget_trade_ids.add(trade_id)

    # -- bid detail draft ---------------------------------------------------------

    def open_bid(self, trade_id: str, sub_id: str) -> BidDraft:
        """Open one cell for editing, seeding the draft from the live bid and its breakdown."""
        live = self._ensure_writable("edit bids")
        if self.active_cell not in (None, (trade_id, sub_id)) and self.draft_dirty:
            raise ValidationFailure("Save or discard the open bid before opening another")
        if trade_id not in live.bids_by_trade_id:
            raise NotFoundFailure("trade", trade_id)
        if live.sub_by_id(sub_id) is None and live.cell(trade_id, sub_id) is None:
            raise NotFoundFailure("project sub", sub_id)

        bid = live.cell(trade_id, sub_id)
        breakdown = None
        if bid is not None:
            try:
                breakdown = self.store.get_bid_breakdown(self.project_id, trade_id, sub_id)
            except LevelingError as exc:
                self.last_error = f"Could not load bid details: {exc}"
                raise
        draft = draft_from_bid(bid, breakdown)
        self.active_cell = (trade_id, sub_id)
        self._set_baseline(draft)
        return draft

    def _set_baseline(self, draft: BidDraft) -> None:
        self.draft = draft
        self.loaded_draft = draft
        self._draft_baseline = serialize_draft(draft)

    def update_draft(self, draft: BidDraft | None = None, **changes: object) -> BidDraft:
        self._ensure_writable("edit bids")
        if self.active_cell is None:
            raise ValidationFailure("No bid is open")
        updated = draft if draft is not None else self.draft
        if changes:
            updated = replace(updated, **changes)
        updated = replace(
            updated,
            status=BidStatus.parse(updated.status),
            base_items=tuple(with_lump_qty(item) for item in updated.base_items),
        )
        self.draft = updated
        return updated

    @property
    def draft_dirty(self) -> bool:
        return self.active_cell is not None and serialize_draft(self.draft) != self._draft_baseline

    @property
    def has_unsaved_changes(self) -> bool:
        return bool(self.dirty_budget_trade_ids) or self.draft_dirty

    @property
    def draft_total(self) -> float:
        return compute_base_items_total(self.draft.base_items)

    def close_bid(self, *, force: bool = False) -> None:
        if self.draft_dirty and not force:
            raise ValidationFailure("The open bid has unsaved changes")
        self.active_cell = None
        self._set_baseline(EMPTY_DRAFT)

    # -- save / discard -----------------------------------------------------------

    def _draft_upsert(self, trade_id: str, sub_id: str) -> BidUpsert:
        draft = self.draft
        received = dates.parse_date(draft.received_at) if draft.received_at.strip() else None
        if received is None and draft.status == BidStatus.SUBMITTED:
            received = self._today()
        amount = round_money(self.draft_total) if draft.base_items else None
        return BidUpsert(
            project_id=self.project_id,
            trade_id=trade_id,
            sub_id=sub_id,
            status=draft.status,
            base_bid_amount=amount,
            notes=merge_bid_notes(draft.notes, draft.inclusions),
            received_at=received,
        )

    def save(self) -> SaveOutcome:
        """Persist the open draft, its breakdown, then each dirty budget, in that order."""
        live = self._ensure_writable("save")
        if not self.has_unsaved_changes:
            return SaveOutcome(bid=None, budgets_saved=0)
        saved_bid: BidRecord | None = None

        if self.active_cell is not None and self.draft_dirty:
            trade_id, sub_id = self.active_cell
            try:
                payload = self._draft_upsert(trade_id, sub_id)
            except ValueError as exc:
                self.last_error = f"Invalid bid details: {exc}"
                raise ValidationFailure(str(exc)) from exc
            try:
                saved_bid = self.store.upsert_bid(payload)
            except LevelingError as exc:
                self.last_error = f"Could not save bid: {exc}"
                raise
            try:
                self.store.save_bid_breakdown(
                    self.project_id,
                    trade_id,
                    sub_id,
                    base_item_records(self.draft),
                    alternate_records(self.draft),
                )
            except LevelingError as exc:
                self.last_error = f"Bid saved, but line items failed to save: {exc}"
                raise

        pending = [trade.id for trade in live.trades if trade.id in self.dirty_budget_trade_ids]
        for trade_id in pending:
            try:
                self.store.upsert_budget(
                    self.project_id,
                    trade_id,
                    self.budgets.get(trade_id),
                    self.budget_notes.get(trade_id),
                )
            except LevelingError as exc:
                self.last_error = f"Could not save budget: {exc}"
                raise

        if saved_bid is not None:
            received = saved_bid.received_at.isoformat() if saved_bid.received_at else ""
            self._set_baseline(replace(self.draft, received_at=received))
        self.dirty_budget_trade_ids.clear()
        self.last_error = None
        logger.info(
            "Saved project %s: bid=%s budgets=%d",
            self.project_id,
            saved_bid.id if saved_bid is not None else "-",
            len(pending),
        )
        self._reload_after_write()
        return SaveOutcome(bid=saved_bid, budgets_saved=len(pending))

    def discard(self) -> None:
        """Drop unsaved edits without touching the store."""
        for trade_id in self.dirty_budget_trade_ids:
            self.budgets[trade_id] = self.loaded_budgets.get(trade_id)
            self.budget_notes[trade_id] = self.loaded_budget_notes.get(trade_id)
        self.dirty_budget_trade_ids.clear()
        self.draft = self.loaded_draft
        self.last_error = None

    # -- cell commands --------------------------------------------------------

    def change_status(self, trade_id: str, sub_id: str, status: BidStatus | str) -> BidRecord:
        live = self._ensure_writable("change bid status")
        new_status = BidStatus.parse(status)
        existing = live.cell(trade_id, sub_id)
        received = existing.received_at if existing is not None else None
        if new_status == BidStatus.SUBMITTED and received is None:
            received = self._today()
        payload = BidUpsert(
            project_id=self.project_id,
            trade_id=trade_id,
            sub_id=sub_id,
            status=new_status,
            base_bid_amount=existing.base_bid_amount if existing is not None else None,
            notes=existing.notes if existing is not None else None,
            received_at=received,
        )
        try:
            record = self.store.upsert_bid(payload)
        except LevelingError as exc:
            self.last_error = f"Could not update status: {exc}"
            raise
        self._reload_after_write()
        return record

    def add_sub_to_trade(self, trade_id: str, sub_id: str) -> BidRecord:
        live = self._ensure_writable("add a sub")
        existing = live.cell(trade_id, sub_id)
        if existing is not None:
            return existing
        payload = BidUpsert(
            project_id=self.project_id,
            trade_id=trade_id,
            sub_id=sub_id,
            status=BidStatus.INVITED,
            base_bid_amount=None,
            notes=None,
            received_at=None,
        )
        try:
            record = self.store.upsert_bid(payload)
        except LevelingError as exc:
            self.last_error = f"Could not add sub: {exc}"
            raise
        self._reload_after_write()
        return record

    # -- removal with undo --------------------------------------------------------

    def remove_bid(self, trade_id: str, sub_id: str) -> BidRecord:
        """Delete a bid immediately and open a timed undo window for it."""
        self._ensure_writable("remove bids")
        try:
            removed = self.store.remove_bid(self.project_id, trade_id, sub_id)
        except LevelingError as exc:
            self.last_error = f"Could not remove bid: {exc}"
            raise
        self._pending_undo = PendingUndo(
            bid=removed, expires_at=self._clock() + self.settings.undo_window_seconds
        )
        if self.active_cell == (trade_id, sub_id):
            self.active_cell = None
            self._set_baseline(EMPTY_DRAFT)
        logger.info("Removed bid %s at %s", removed.id, cell_key(trade_id, sub_id))
        self._reload_after_write()
        return removed

    @property
    def pending_undo(self) -> PendingUndo | None:
        pending = self._pending_undo
        if pending is not None and self._clock() >= pending.expires_at:
            self._pending_undo = None
            return None
        return pending

    @property
    def undo_available(self) -> bool:
        return self.pending_undo is not None

    def undo_remove(self) -> BidRecord:
        self._ensure_writable("undo")
        pending = self.pending_undo
        if pending is None:
            raise ValidationFailure("Nothing to undo")
        bid = pending.bid
        payload = BidUpsert(
            project_id=bid.project_id,
            trade_id=bid.trade_id,
            sub_id=bid.sub_id,
            status=bid.status,
            base_bid_amount=bid.base_bid_amount,
            notes=bid.notes,
            received_at=bid.received_at,
        )
        try:
            restored = self.store.upsert_bid(payload)
        except LevelingError as exc:
            self.last_error = f"Could not restore bid: {exc}"
            raise
        self._pending_undo = None
        logger.info("Restored bid at %s", cell_key(bid.trade_id, bid.sub_id))
        self._reload_after_write()
        return restored

    def dismiss_undo(self) -> None:
        self._pending_undo = None

    # -- snapshots ------------------------------------------------------------

    def create_snapshot(
        self, title: str = "", note: str | None = None, created_by: str | None = None
    ) -> SnapshotRecord:
        """Freeze the live matrix and switch the view to the new snapshot."""
        live = self._ensure_writable("create a snapshot")
        resolved_title = title.strip() or f"Leveling {self._today().isoformat()}"
        items = build_snapshot_items(live, note)
        try:
            record = self.store.create_snapshot(
                self.project_id, resolved_title, items, created_by=created_by
            )
        except LevelingError as exc:
            self.last_error = f"Could not create snapshot: {exc}"
            raise
        self._reload_after_write()
        self.select_snapshot(record.id)
        return record

    # -- derived views ------------------------------------------------------------

    def trade_stats(self, trade_id: str) -> TradeStats:
        matrix = self.effective_matrix
        return compute_trade_stats(matrix.bids_for_trade(trade_id), self.budget_for(trade_id))

    def all_trade_stats(self) -> dict[str, TradeStats]:
        matrix = self.effective_matrix
        return {
            trade.id: compute_trade_stats(matrix.bids_for_trade(trade.id), self.budget_for(trade.id))
            for trade in matrix.trades
        }

    def coverage_report(self) -> CoverageReport:
        matrix = self.effective_matrix
        return compute_coverage_report(
            matrix.trades, matrix.all_bids(), self.settings.target_bids_per_trade
        )

    def risk_status(self, *, as_of: date | None = None) -> RiskStatus:
        due_date = self.data.project.due_date if self.data is not None else None
        return project_risk_status(
            self.coverage_report(), due_date, as_of=as_of or self._today()
        )
