from __future__ import annotations

import datetime as dt
import math
from typing import Any, Dict, List

TIMESTAMP_KEYS = ("startTime", "endTime")


def _epoch_value(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _epoch_to_iso(seconds: float) -> str | None:
    try:
        moment = dt.datetime.fromtimestamp(seconds, tz=dt.timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def normalize_legacy_entries(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Rewrite older persisted entry shapes in place.

    Early trackers stored epoch seconds instead of ISO timestamps and always
    carried a ``subEntries`` list, even when empty. Running this twice is the
    same as running it once.
    """
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        for key in TIMESTAMP_KEYS:
            if key not in entry:
                continue
            value = entry[key]
            if value is None or value == "":
                del entry[key]
                continue
            seconds = _epoch_value(value)
            converted = _epoch_to_iso(seconds) if seconds is not None else None
            if converted is not None:
                entry[key] = converted
        sub_entries = entry.get("subEntries")
        if not sub_entries:
            entry.pop("subEntries", None)
        elif isinstance(sub_entries, list):
            normalize_legacy_entries(sub_entries)
    return entries


def normalize_legacy_tracker(raw: Dict[str, Any]) -> Dict[str, Any]:
    entries = raw.get("entries")
    if not isinstance(entries, list):
        raw["entries"] = []
    else:
        normalize_legacy_entries(entries)
    return raw
