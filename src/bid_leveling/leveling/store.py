"""Entity store contract consumed by the leveling session.

Every call is an independent failure point: implementations raise
``PersistenceFailure`` when the write or read did not happen and
``NotFoundFailure`` when a referenced row is gone.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from bid_leveling.leveling.records import (
    AlternateRecord,
    BaseItemRecord,
    BidBreakdown,
    BidMatrixData,
    BidRecord,
    BidUpsert,
    BudgetRecord,
    SnapshotItemDraft,
    SnapshotItemRecord,
    SnapshotRecord,
)


class LevelingStore(Protocol):
    def get_project_bid_matrix(self, project_id: str) -> BidMatrixData: ...

    def upsert_bid(self, payload: BidUpsert) -> BidRecord: ...

    def remove_bid(self, project_id: str, trade_id: str, sub_id: str) -> BidRecord: ...

    def upsert_budget(
        self, project_id: str, trade_id: str, amount: float | None, notes: str | None
    ) -> BudgetRecord: ...

    def create_snapshot(
        self,
        project_id: str,
        title: str,
        items: Sequence[SnapshotItemDraft],
        created_by: str | None = None,
    ) -> SnapshotRecord: ...

    def get_snapshot_items(self, snapshot_id: str) -> list[SnapshotItemRecord]: ...

    def get_bid_breakdown(self, project_id: str, trade_id: str, sub_id: str) -> BidBreakdown: ...

    def save_bid_breakdown(
        self,
        project_id: str,
        trade_id: str,
        sub_id: str,
        base_items: Sequence[BaseItemRecord],
        alternates: Sequence[AlternateRecord],
    ) -> BidBreakdown: ...
