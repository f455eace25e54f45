from __future__ import annotations

from bid_leveling.config.settings import (
    DEFAULT_TARGET_BIDS_PER_TRADE,
    DEFAULT_UNDO_WINDOW_SECONDS,
    get_settings,
)


def test_defaults_when_env_unset(monkeypatch) -> None:
    monkeypatch.delenv("BID_TARGET_PER_TRADE", raising=False)
    monkeypatch.delenv("BID_UNDO_WINDOW_SECONDS", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    settings = get_settings()

    assert settings.target_bids_per_trade == DEFAULT_TARGET_BIDS_PER_TRADE == 3
    assert settings.undo_window_seconds == DEFAULT_UNDO_WINDOW_SECONDS == 4.5
    assert settings.database_url.startswith("sqlite:///")
    assert settings.database_url.endswith("bid_leveling.db")


def test_numeric_overrides_and_fallbacks(monkeypatch) -> None:
    monkeypatch.setenv("BID_TARGET_PER_TRADE", "5")
    monkeypatch.setenv("BID_UNDO_WINDOW_SECONDS", "2.5")
    settings = get_settings()
    assert settings.target_bids_per_trade == 5
    assert settings.undo_window_seconds == 2.5

    monkeypatch.setenv("BID_TARGET_PER_TRADE", "0")
    monkeypatch.setenv("BID_UNDO_WINDOW_SECONDS", "soon")
    settings = get_settings()
    assert settings.target_bids_per_trade == 3
    assert settings.undo_window_seconds == 4.5


def test_database_url_override(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    monkeypatch.setenv("APP_ENV", "test")

    settings = get_settings()

    assert settings.database_url == "sqlite:///:memory:"
    assert settings.app_env == "test"
