from __future__ import annotations

from collections.abc import Mapping

import pandas as pd

from bid_leveling.leveling.matrix import LevelingMatrix
from bid_leveling.leveling.records import ProjectSubRecord
from bid_leveling.leveling.trade_stats import compute_trade_stats


def sub_column_names(subs: tuple[ProjectSubRecord, ...]) -> list[str]:
    """One column label per sub; repeated company names get a numeric suffix."""
    seen: dict[str, int] = {}
    names: list[str] = []
    for sub in subs:
        base = sub.company_name or sub.id
        seen[base] = seen.get(base, 0) + 1
        names.append(base if seen[base] == 1 else f"{base} ({seen[base]})")
    return names


def leveling_frame(
    matrix: LevelingMatrix, budgets: Mapping[str, float | None] | None = None
) -> pd.DataFrame:
    budgets = budgets or {}
    sub_columns = sub_column_names(matrix.subs)
    columns = ["Trade", "Budget", *sub_columns, "Low", "Spread", "Spread %", "Coverage"]
    if not matrix.trades:
        return pd.DataFrame(columns=columns)

    rows: list[list[object]] = []
    for trade in matrix.trades:
        budget = budgets.get(trade.id)
        stats = compute_trade_stats(matrix.bids_for_trade(trade.id), budget)
        amounts = []
        for sub in matrix.subs:
            bid = matrix.cell(trade.id, sub.id)
            amounts.append(bid.base_bid_amount if bid is not None else None)
        rows.append(
            [
                trade.name,
                budget,
                *amounts,
                stats.low,
                stats.spread_amount,
                stats.spread_percent,
                stats.coverage_count,
            ]
        )

    frame = pd.DataFrame(rows, columns=columns)
    numeric = ["Budget", *sub_columns, "Low", "Spread", "Spread %"]
    frame[numeric] = frame[numeric].apply(pd.to_numeric, errors="coerce")
    frame["Coverage"] = frame["Coverage"].astype(int)
    return frame
