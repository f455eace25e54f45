from __future__ import annotations

import os
from dataclasses import dataclass

from bid_leveling.config.paths import default_db_path

DEFAULT_TARGET_BIDS_PER_TRADE = 3
DEFAULT_UNDO_WINDOW_SECONDS = 4.5


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _env_float(name: str, default: float) -> float:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value >= 0.0 else default


@dataclass(frozen=True)
class Settings:
    app_env: str
    database_url: str
    target_bids_per_trade: int
    undo_window_seconds: float


def get_settings() -> Settings:
    db_default = f"sqlite:///{default_db_path().as_posix()}"
    return Settings(
        app_env=os.getenv("APP_ENV", "development"),
        database_url=os.getenv("DATABASE_URL", db_default),
        target_bids_per_trade=_env_int(
            "BID_TARGET_PER_TRADE", DEFAULT_TARGET_BIDS_PER_TRADE
        ),
        undo_window_seconds=_env_float(
            "BID_UNDO_WINDOW_SECONDS", DEFAULT_UNDO_WINDOW_SECONDS
        ),
    )
