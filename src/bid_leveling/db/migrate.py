from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from bid_leveling.config.paths import ensure_data_dirs
from bid_leveling.config.settings import get_settings
from bid_leveling.db.models import Base
from bid_leveling.utils.logging import get_logger

logger = get_logger(__name__)

SQLITE_EXTRA_INDEXES = [
    "CREATE INDEX IF NOT EXISTS ix_trade_bids_project_trade_status ON trade_bids (project_id, trade_id, status)",
    "CREATE INDEX IF NOT EXISTS ix_leveling_snapshot_items_snapshot_trade ON leveling_snapshot_items (snapshot_id, trade_id)",
]


def _enable_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragmas(dbapi_connection, _connection_record):  # pragma: no cover - driver callback
        cursor = dbapi_connection.cursor()
        pragmas = (
            "PRAGMA foreign_keys=ON",
            "PRAGMA busy_timeout=5000",
            "PRAGMA journal_mode=WAL",
            "PRAGMA synchronous=NORMAL",
        )
        for statement in pragmas:
            try:
                cursor.execute(statement)
            except Exception:
                # In-memory databases reject WAL; the remaining pragmas still apply.
                continue
        cursor.close()


def _ensure_sqlite_indexes(engine: Engine) -> None:
    if engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        for statement in SQLITE_EXTRA_INDEXES:
            conn.execute(text(statement))


def build_engine(database_url: str | None = None) -> Engine:
    settings = get_settings()
    url = database_url or settings.database_url

    if url.startswith("sqlite:///") and url != "sqlite:///:memory:":
        sqlite_path = Path(url.removeprefix("sqlite:///")).expanduser()
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, future=True)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_pragmas(engine)
    return engine


def migrate(database_url: str | None = None) -> Engine:
    if database_url is None:
        ensure_data_dirs()
    engine = build_engine(database_url=database_url)
    Base.metadata.create_all(bind=engine)
    _ensure_sqlite_indexes(engine)
    logger.info("Schema ready at %s", engine.url.render_as_string(hide_password=True))
    return engine


def open_session(database_url: str | None = None) -> Session:
    return Session(migrate(database_url))


if __name__ == "__main__":
    migrate()
