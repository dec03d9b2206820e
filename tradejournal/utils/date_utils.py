from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tradejournal.config import DATE_FORMAT


def resolve_timezone(name: str) -> ZoneInfo:
    """Look up an IANA zone name, raising ValueError for unknown names."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown time zone '{name}'") from e


def to_local(ts: datetime, tz: ZoneInfo) -> datetime:
    # naive timestamps are stored as UTC
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(tz)


def day_key(ts: datetime, tz: ZoneInfo) -> str:
    return to_local(ts, tz).strftime(DATE_FORMAT)


def week_key(day: str) -> str:
    """ISO week of a YYYY-MM-DD key, e.g. 2024-W07."""
    iso = datetime.strptime(day, DATE_FORMAT).isocalendar()
    return f"{iso.year}-W{iso.week:02d}"


def round_down_to_n_mins(dt: datetime, n: int) -> datetime:
    return dt - timedelta(
        minutes=dt.minute % n,
        seconds=dt.second,
        microseconds=dt.microsecond
    )


def time_bucket_key(ts: datetime, tz: ZoneInfo, minutes: int = 30) -> str:
    return round_down_to_n_mins(to_local(ts, tz), minutes).strftime("%H:%M")
