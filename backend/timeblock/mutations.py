"""Start/stop/continue/remove transitions over one tracker.

Every function takes ``now`` from the caller. Preconditions on the running
state are checked here and reported as :class:`StateConflict`, so a tracker
can never end up with two running leaves.
"""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from .durations import find_running
from .entries import (
    Container,
    Entry,
    EntryNotFound,
    InvalidEdit,
    Leaf,
    StateConflict,
    Tracker,
    default_name,
    locate,
)


def _ensure_idle(tracker: Tracker) -> None:
    running = find_running(tracker.entries)
    if running is not None:
        raise StateConflict(f"'{running.name}' is still running")


def start_new_entry(tracker: Tracker, name: Optional[str], now: dt.datetime) -> Leaf:
    _ensure_idle(tracker)
    entry = Leaf(name=name or default_name("Segment", tracker.entries), start_time=now)
    tracker.entries.append(entry)
    return entry


def end_running_entry(tracker: Tracker, now: dt.datetime) -> Leaf:
    running = find_running(tracker.entries)
    if running is None:
        raise StateConflict("No entry is running")
    running.end_time = max(now, running.start_time)
    return running


def start_sub_entry(tracker: Tracker, entry_id: str, name: Optional[str], now: dt.datetime) -> Leaf:
    _ensure_idle(tracker)
    found = locate(tracker.entries, entry_id)
    if found is None:
        raise EntryNotFound(f"No entry with id {entry_id}")
    siblings, index = found
    target = siblings[index]

    if isinstance(target, Leaf):
        if target.start_time is None:
            # template entry, nothing to continue from
            if name:
                target.name = name
            target.start_time = now
            return target
        target = target.split()
        siblings[index] = target

    part = Leaf(name=name or default_name("Part", target.sub_entries), start_time=now)
    target.sub_entries.append(part)
    return part


def remove_entry(entries: List[Entry], entry_id: str) -> bool:
    for index, entry in enumerate(entries):
        if entry.id == entry_id:
            del entries[index]
            return True
    for index, entry in enumerate(entries):
        if isinstance(entry, Container) and remove_entry(entry.sub_entries, entry_id):
            if len(entry.sub_entries) <= 1:
                entries[index] = entry.collapse()
            return True
    return False


def edit_entry(
    tracker: Tracker,
    entry: Entry,
    name: Optional[str] = None,
    start: Optional[dt.datetime] = None,
    end: Optional[dt.datetime] = None,
) -> Entry:
    if isinstance(entry, Container):
        if start is not None or end is not None:
            raise InvalidEdit(f"'{entry.name}' has sub-entries, only its name can be changed")
    else:
        new_start = start if start is not None else entry.start_time
        new_end = end if end is not None else entry.end_time
        if new_end is not None and new_start is None:
            raise InvalidEdit("An entry needs a start time before it can have an end time")
        if new_start is not None and new_end is not None and new_end <= new_start:
            raise InvalidEdit("End time must be after start time")
        if new_start is not None and new_end is None and not entry.is_running:
            _ensure_idle(tracker)
        entry.start_time = new_start
        entry.end_time = new_end
    if name is not None:
        entry.name = name
    return entry


def set_collapsed(entry: Entry, collapsed: bool) -> Entry:
    entry.collapsed = collapsed
    return entry
