from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

from .durations import resolve_timezone
from .entries import InvalidEdit


@dataclass(slots=True, frozen=True)
class DisplaySettings:
    """Presentation options handed to the pure rendering functions."""

    timestamp_format: str = "%y-%m-%d %H:%M:%S"
    editable_timestamp_format: str = "%Y-%m-%d %H:%M:%S"
    csv_delimiter: str = ","
    fine_grained_durations: bool = True
    reverse_segment_order: bool = False
    timestamp_durations: bool = False
    show_today: bool = False
    display_refresh_seconds: int = 1
    timezone: str = "UTC"

    @property
    def tzinfo(self) -> dt.tzinfo:
        return resolve_timezone(self.timezone)


def format_timestamp(value: dt.datetime, fmt: str, tz: dt.tzinfo) -> str:
    return value.astimezone(tz).strftime(fmt)


def parse_timestamp(text: str, fmt: str, tz: dt.tzinfo) -> dt.datetime:
    try:
        parsed = dt.datetime.strptime(text.strip(), fmt)
    except ValueError as exc:
        raise InvalidEdit(f"'{text}' does not match the timestamp format {fmt}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed.astimezone(dt.timezone.utc)


def format_duration(value: dt.timedelta, fine_grained: bool = True, clock_style: bool = False) -> str:
    seconds_total = max(int(round(value.total_seconds())), 0)
    days_total, remainder = divmod(seconds_total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    if not fine_grained:
        hours += days_total * 24

    if clock_style:
        prefix = f"{days_total}." if fine_grained and days_total > 0 else ""
        return f"{prefix}{hours:02d}:{minutes:02d}:{seconds:02d}"

    parts = []
    if fine_grained:
        years, day_rest = divmod(days_total, 365)
        months, days = divmod(day_rest, 30)
        if years > 0:
            parts.append(f"{years}y")
        if months > 0:
            parts.append(f"{months}M")
        if days > 0:
            parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)
