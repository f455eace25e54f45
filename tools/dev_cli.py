from __future__ import annotations

import argparse
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from bid_leveling.config.paths import DATA_DIR, EXPORTS_DIR, ensure_data_dirs


def _load_session(args: argparse.Namespace):
    from bid_leveling.db.migrate import open_session
    from bid_leveling.db.repository import SqlLevelingStore
    from bid_leveling.leveling.session import LevelingSession

    db = open_session(args.database_url)
    return LevelingSession(SqlLevelingStore(db), args.project_id).load()


def _cmd_init_db(args: argparse.Namespace) -> int:
    from bid_leveling.db.migrate import migrate

    migrate(args.database_url)
    print("Initialized database schema.")
    return 0


def _cmd_paths(_: argparse.Namespace) -> int:
    ensure_data_dirs()
    print(f"DATA_DIR={DATA_DIR}")
    print(f"EXPORTS_DIR={EXPORTS_DIR}")
    return 0


def _cmd_coverage(args: argparse.Namespace) -> int:
    from bid_leveling.utils.money import format_percent

    session = _load_session(args)
    report = session.coverage_report()
    print(f"Project: {session.data.project.name}")
    print(f"Coverage: {report.coverage_pct}% ({report.coverage_numerator}/{report.coverage_denominator})")
    print(f"Submitted bids: {report.submitted_count}")
    print(f"Awaiting responses: {report.awaiting_responses_count}")
    thin = ", ".join(trade.name for trade in report.trades_thin) or "none"
    print(f"Thin trades: {thin}")
    print(f"Risk: {session.risk_status().value}")
    for trade_id, stats in session.all_trade_stats().items():
        name = next(trade.name for trade in session.live.trades if trade.id == trade_id)
        flag = " *" if stats.at_risk else ""
        print(f"  {name}: {stats.coverage_count} bid(s), spread {format_percent(stats.spread_percent)}{flag}")
    return 0


def _cmd_leveling(args: argparse.Namespace) -> int:
    import pandas as pd

    from bid_leveling.leveling.table import leveling_frame

    session = _load_session(args)
    if args.snapshot:
        session.select_snapshot(args.snapshot)
    frame = leveling_frame(session.effective_matrix, session.budgets)
    view = "snapshot " + args.snapshot if args.snapshot else "live"
    print(f"{session.data.project.name} ({view})")
    with pd.option_context("display.max_columns", None, "display.width", 200):
        print(frame.to_string(index=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bid leveling developer CLI")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sp_init_db = subparsers.add_parser("init-db", help="Create/update local database schema")
    sp_init_db.set_defaults(func=_cmd_init_db)

    sp_paths = subparsers.add_parser("paths", help="Print configured project paths")
    sp_paths.set_defaults(func=_cmd_paths)

    sp_coverage = subparsers.add_parser(
        "coverage", help="Print the coverage report and risk badge for a project"
    )
    sp_coverage.add_argument("project_id")
    sp_coverage.set_defaults(func=_cmd_coverage)

    sp_leveling = subparsers.add_parser("leveling", help="Print the leveling table")
    sp_leveling.add_argument("project_id")
    sp_leveling.add_argument("--snapshot", default=None, help="Snapshot id to view instead of live")
    sp_leveling.set_defaults(func=_cmd_leveling)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
