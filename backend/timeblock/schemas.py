from __future__ import annotations

import datetime as dt
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_serializer


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


class EntryView(BaseModel):
    path: str
    name: str
    start_time: Optional[dt.datetime] = None
    end_time: Optional[dt.datetime] = None
    start_display: str = ""
    end_display: str = ""
    duration: str
    duration_seconds: int
    running: bool = False
    collapsed: bool = False
    sub_entries: List["EntryView"] = Field(default_factory=list)

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "start_time": _serialize_datetime(self.start_time) if self.start_time else None,
            "end_time": _serialize_datetime(self.end_time) if self.end_time else None,
            "start_display": self.start_display,
            "end_display": self.end_display,
            "duration": self.duration,
            "duration_seconds": self.duration_seconds,
            "running": self.running,
            "collapsed": self.collapsed,
            "sub_entries": [child._serialize() for child in self.sub_entries],
        }


class TrackerResponse(BaseModel):
    document: str
    index: int
    line_start: int
    line_end: int
    running: bool
    current: Optional[str] = None
    total: str
    total_today: Optional[str] = None
    entries: List[EntryView]


class LiveStatus(BaseModel):
    running: bool
    current: Optional[str] = None
    total: str
    total_today: Optional[str] = None


class RunningTrackerResponse(BaseModel):
    document: str
    index: int
    entry: str
    started_at: dt.datetime

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "document": self.document,
            "index": self.index,
            "entry": self.entry,
            "started_at": _serialize_datetime(self.started_at),
        }


class EntryStartRequest(BaseModel):
    name: Optional[str] = None


class EntryUpdateRequest(BaseModel):
    name: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class CollapseRequest(BaseModel):
    collapsed: bool


class SettingsResponse(BaseModel):
    environment: str
    timezone: str
    tracker_fence: str
    timestamp_format: str
    editable_timestamp_format: str
    csv_delimiter: str
    fine_grained_durations: bool
    reverse_segment_order: bool
    timestamp_durations: bool
    show_today: bool
    display_refresh_seconds: int


class SettingsUpdateRequest(BaseModel):
    timestamp_format: Optional[str] = Field(default=None, min_length=1)
    editable_timestamp_format: Optional[str] = Field(default=None, min_length=1)
    csv_delimiter: Optional[str] = Field(default=None, min_length=1, max_length=5)
    fine_grained_durations: Optional[bool] = None
    reverse_segment_order: Optional[bool] = None
    timestamp_durations: Optional[bool] = None
    show_today: Optional[bool] = None
    display_refresh_seconds: Optional[int] = Field(default=None, ge=1, le=3600)
