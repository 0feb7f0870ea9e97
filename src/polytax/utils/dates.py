"""Date parsing and range helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone

from dateutil import parser as date_parser


DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
)


def from_epoch_seconds(value: float) -> datetime:
    """Venue activity feeds stamp events in unix seconds; returns naive UTC."""
    return datetime.fromtimestamp(float(value), tz=timezone.utc).replace(tzinfo=None)


def _looks_like_epoch(text: str) -> bool:
    # Compact dates such as 20250101 are eight digits; epoch seconds since
    # 1973 are at least nine.
    whole, _, fraction = text.partition(".")
    if not whole.isdigit() or (fraction and not fraction.isdigit()):
        return False
    return len(whole) >= 9 or bool(fraction)


def parse_datetime(raw: str | datetime | date | float) -> datetime:
    if isinstance(raw, datetime):
        return raw
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    if isinstance(raw, (int, float)):
        return from_epoch_seconds(raw)
    text = str(raw).strip()
    if _looks_like_epoch(text):
        return from_epoch_seconds(float(text))
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is not None:
        if parsed.tzinfo is not None:
            return parsed.replace(tzinfo=None) - parsed.utcoffset()
        return parsed
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = date_parser.parse(text)
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValueError(f"Unable to parse datetime: {raw}") from exc
    if parsed.tzinfo is not None:
        return parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(raw: str | datetime | date) -> date:
    return parse_datetime(raw).date()


def days_between(start: datetime | date, end: datetime | date) -> int:
    """Whole days elapsed from ``start`` to ``end`` (partial days are dropped)."""
    delta = parse_datetime(end) - parse_datetime(start)
    seconds = delta.total_seconds()
    if seconds >= 0:
        return int(seconds // 86400)
    return -int(-seconds // 86400)


def year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)
