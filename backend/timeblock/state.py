from __future__ import annotations

from threading import RLock
from typing import Any, Dict

from sqlalchemy.orm import Session

from .config import Settings
from .formatting import DisplaySettings
from .models import AppSetting

BOOL_KEYS = {
    "fine_grained_durations",
    "reverse_segment_order",
    "timestamp_durations",
    "show_today",
}
TEXT_KEYS = {"timestamp_format", "editable_timestamp_format", "csv_delimiter"}
INT_KEYS = {"display_refresh_seconds"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


class RuntimeState:
    """Display settings that can be adjusted while the service is running."""

    def __init__(self, base_settings: Settings):
        self._lock = RLock()
        self.timezone: str = base_settings.timezone
        self.timestamp_format: str = base_settings.timestamp_format
        self.editable_timestamp_format: str = base_settings.editable_timestamp_format
        self.csv_delimiter: str = base_settings.csv_delimiter
        self.fine_grained_durations: bool = base_settings.fine_grained_durations
        self.reverse_segment_order: bool = base_settings.reverse_segment_order
        self.timestamp_durations: bool = base_settings.timestamp_durations
        self.show_today: bool = base_settings.show_today
        self.display_refresh_seconds: int = max(1, int(base_settings.display_refresh_seconds))

    def snapshot(self) -> DisplaySettings:
        with self._lock:
            return DisplaySettings(
                timestamp_format=self.timestamp_format,
                editable_timestamp_format=self.editable_timestamp_format,
                csv_delimiter=self.csv_delimiter,
                fine_grained_durations=self.fine_grained_durations,
                reverse_segment_order=self.reverse_segment_order,
                timestamp_durations=self.timestamp_durations,
                show_today=self.show_today,
                display_refresh_seconds=self.display_refresh_seconds,
                timezone=self.timezone,
            )

    def apply(self, updates: Dict[str, Any]) -> None:
        with self._lock:
            for key in TEXT_KEYS:
                value = updates.get(key)
                if value:
                    setattr(self, key, value)
            for key in BOOL_KEYS:
                if key in updates and updates[key] is not None:
                    setattr(self, key, _as_bool(updates[key]))
            if "display_refresh_seconds" in updates and updates["display_refresh_seconds"] not in (None, ""):
                self.display_refresh_seconds = max(1, int(updates["display_refresh_seconds"]))

    def load_from_db(self, session: Session) -> None:
        records = session.query(AppSetting).all()
        if not records:
            return
        decoded: Dict[str, Any] = {}
        for record in records:
            if record.key in TEXT_KEYS:
                decoded[record.key] = record.value
            elif record.key in BOOL_KEYS:
                decoded[record.key] = _as_bool(record.value)
            elif record.key in INT_KEYS:
                decoded[record.key] = int(record.value) if record.value else 1
        if decoded:
            self.apply(decoded)

    def persist(self, session: Session, updates: Dict[str, Any]) -> None:
        for key, value in updates.items():
            if value is None:
                continue
            if key in BOOL_KEYS:
                value = "true" if _as_bool(value) else "false"
            elif key in INT_KEYS:
                value = str(max(1, int(value)))
            elif key not in TEXT_KEYS:
                continue
            record = session.query(AppSetting).filter(AppSetting.key == key).one_or_none()
            if record:
                record.value = value
            else:
                session.add(AppSetting(key=key, value=value))
        session.commit()
