"""Path helpers for local-first storage."""

from __future__ import annotations

import os
from pathlib import Path


ROOT_DIR = Path(__file__).resolve().parents[3]
DEFAULT_DATA_DIR = ROOT_DIR / "data"
DATA_DIR = Path(os.getenv("BID_LEVELING_DATA_DIR", "") or DEFAULT_DATA_DIR).expanduser()
EXPORTS_DIR = DATA_DIR / "exports"


def ensure_data_dirs() -> None:
    for directory in (DATA_DIR, EXPORTS_DIR):
        directory.mkdir(parents=True, exist_ok=True)


def default_db_path() -> Path:
    return DATA_DIR / "bid_leveling.db"
