from __future__ import annotations

from datetime import UTC, datetime, timedelta

SHEET_TIME_FORMAT = "%d/%m/%Y, %H:%M:%S"


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.astimezone(UTC).isoformat()


def to_sheet_time(dt: datetime) -> str:
    """Render a timestamp the way the sheets show it (day first, local time)."""
    return dt.astimezone().strftime(SHEET_TIME_FORMAT)


def parse_sheet_time(value: object) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = datetime.strptime(text, SHEET_TIME_FORMAT).astimezone()
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_recent(moment: datetime | None, window: timedelta, now: datetime) -> bool:
    if moment is None:
        return False
    return now - moment < window
