from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional, Sequence

from zoneinfo import ZoneInfo

from .entries import Container, Entry, Leaf, Tracker

ZERO = dt.timedelta(0)


def duration(entry: Entry, now: dt.datetime) -> dt.timedelta:
    if isinstance(entry, Container):
        return total_duration(entry.sub_entries, now)
    if entry.start_time is None:
        return ZERO
    end = entry.end_time or now
    return max(end - entry.start_time, ZERO)


def total_duration(entries: Iterable[Entry], now: dt.datetime) -> dt.timedelta:
    return sum((duration(entry, now) for entry in entries), ZERO)


def duration_today(entry: Entry, now: dt.datetime, today_start: dt.datetime) -> dt.timedelta:
    if isinstance(entry, Container):
        return total_duration_today(entry.sub_entries, now, today_start)
    if entry.start_time is None:
        return ZERO
    end = entry.end_time or now
    if end < today_start:
        return ZERO
    start = max(entry.start_time, today_start)
    return max(end - start, ZERO)


def total_duration_today(
    entries: Iterable[Entry], now: dt.datetime, today_start: dt.datetime
) -> dt.timedelta:
    return sum((duration_today(entry, now, today_start) for entry in entries), ZERO)


def find_running(entries: Sequence[Entry]) -> Optional[Leaf]:
    for entry in entries:
        if isinstance(entry, Container):
            running = find_running(entry.sub_entries)
            if running is not None:
                return running
        elif entry.is_running:
            return entry
    return None


def is_running(tracker: Tracker) -> bool:
    return find_running(tracker.entries) is not None


def start_of_day(now: dt.datetime, tz: dt.tzinfo) -> dt.datetime:
    """Local midnight of the day ``now`` falls on, expressed in UTC."""
    local = now.astimezone(tz)
    midnight = dt.datetime.combine(local.date(), dt.time.min, tzinfo=tz)
    return midnight.astimezone(dt.timezone.utc)


def resolve_timezone(name: str) -> dt.tzinfo:
    if name.upper() == "UTC":
        return dt.timezone.utc
    return ZoneInfo(name)
