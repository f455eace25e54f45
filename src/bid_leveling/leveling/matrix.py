"""Trade x sub bid matrix with O(1) cell lookup.

Cells are keyed by the literal string ``f"{trade_id}:{sub_id}"`` (see
``cell_key``). Any other keying (nested dicts, tuples) must map one-to-one onto
that string so snapshot items and live bids keep lining up.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from bid_leveling.leveling.records import BidRecord, ProjectSubRecord, TradeRecord


def cell_key(trade_id: str, sub_id: str) -> str:
    return f"{trade_id}:{sub_id}"


def split_cell_key(key: str) -> tuple[str, str]:
    trade_id, _, sub_id = key.partition(":")
    return trade_id, sub_id


def trade_sort_key(trade: TradeRecord) -> tuple[bool, int, str]:
    return (trade.sort_order is None, trade.sort_order or 0, trade.name.casefold())


def order_trades(trades: Iterable[TradeRecord]) -> list[TradeRecord]:
    return sorted(trades, key=trade_sort_key)


def dedupe_project_subs(project_subs: Iterable[ProjectSubRecord]) -> list[ProjectSubRecord]:
    """Keep the first invitation per subcontractor, preserving invitation order."""
    seen: set[str] = set()
    deduped: list[ProjectSubRecord] = []
    for row in project_subs:
        if row.subcontractor_id in seen:
            continue
        seen.add(row.subcontractor_id)
        deduped.append(row)
    return deduped


@dataclass(frozen=True, slots=True)
class LevelingMatrix:
    trades: tuple[TradeRecord, ...]
    subs: tuple[ProjectSubRecord, ...]
    bids_by_trade_id: dict[str, list[BidRecord]]
    bids_by_trade_sub: dict[str, BidRecord]

    def cell(self, trade_id: str, sub_id: str) -> BidRecord | None:
        return self.bids_by_trade_sub.get(cell_key(trade_id, sub_id))

    def bids_for_trade(self, trade_id: str) -> list[BidRecord]:
        return self.bids_by_trade_id.get(trade_id, [])

    def all_bids(self) -> list[BidRecord]:
        return list(self.bids_by_trade_sub.values())

    def sub_by_id(self, sub_id: str) -> ProjectSubRecord | None:
        for sub in self.subs:
            if sub.id == sub_id:
                return sub
        return None


def build_leveling_matrix(
    trades: Sequence[TradeRecord],
    project_subs: Sequence[ProjectSubRecord],
    bids: Iterable[BidRecord],
) -> LevelingMatrix:
    ordered_trades = order_trades(trades)
    subs = dedupe_project_subs(project_subs)

    # Names come from every invitation row, not just the deduped ones, so a bid
    # filed under a duplicate invitation still sorts by its company.
    name_by_sub_id = {row.id: row.company_name for row in project_subs}

    bids_by_trade_sub: dict[str, BidRecord] = {}
    for bid in bids:
        bids_by_trade_sub[cell_key(bid.trade_id, bid.sub_id)] = bid

    bids_by_trade_id: dict[str, list[BidRecord]] = {trade.id: [] for trade in ordered_trades}
    for bid in bids_by_trade_sub.values():
        bids_by_trade_id.setdefault(bid.trade_id, []).append(bid)

    for rows in bids_by_trade_id.values():
        rows.sort(key=lambda bid: ((name_by_sub_id.get(bid.sub_id) or "").casefold(), bid.sub_id))

    return LevelingMatrix(
        trades=tuple(ordered_trades),
        subs=tuple(subs),
        bids_by_trade_id=bids_by_trade_id,
        bids_by_trade_sub=bids_by_trade_sub,
    )
