"""Date parsing and due-date helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone


DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%Y/%m/%d",
)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return date.today()


def parse_date(raw: str | datetime | date | None) -> date | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = raw.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unable to parse date: {raw}")


def days_until(due: date | None, *, as_of: date | None = None) -> int | None:
    """Whole calendar days from ``as_of`` (default today) to ``due``; negative when past due."""
    if due is None:
        return None
    reference = as_of or today()
    return (due - reference).days
