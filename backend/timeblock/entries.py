"""Tracker/entry tree.

An entry is either a :class:`Leaf` carrying its own interval or a
:class:`Container` whose time is derived from its sub-entries. The variant is
picked on parse by whether ``subEntries`` is present and non-empty, so an
empty list and a missing key are the same thing everywhere.
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, List, Optional, Sequence, Tuple, Union

from typing_extensions import Annotated

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, field_serializer, field_validator

UTC = dt.timezone.utc


class TrackerError(RuntimeError):
    """Base class for tracker rule violations."""


class StateConflict(TrackerError):
    """The requested transition would break the single-running-entry rule."""


class EntryNotFound(TrackerError, LookupError):
    pass


class InvalidEdit(TrackerError, ValueError):
    pass


def _new_id() -> str:
    return uuid.uuid4().hex


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _serialize_datetime(value: dt.datetime) -> str:
    return _as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class _EntryBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default_factory=_new_id, exclude=True)
    name: str = ""
    collapsed: Optional[bool] = None

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class Leaf(_EntryBase):
    start_time: Optional[dt.datetime] = Field(default=None, alias="startTime")
    end_time: Optional[dt.datetime] = Field(default=None, alias="endTime")

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_timezone(cls, value: Optional[dt.datetime]) -> Optional[dt.datetime]:
        return _as_utc(value) if value is not None else None

    @field_serializer("start_time", "end_time")
    def _serialize_time(self, value: Optional[dt.datetime]) -> Optional[str]:
        return _serialize_datetime(value) if value is not None else None

    @property
    def is_running(self) -> bool:
        return self.start_time is not None and self.end_time is None

    def split(self) -> "Container":
        """Turn this leaf into a container whose first part is the leaf's own interval."""
        first = Leaf(name="Part 1", start_time=self.start_time, end_time=self.end_time)
        return Container(id=self.id, name=self.name, collapsed=self.collapsed, sub_entries=[first])


class Container(_EntryBase):
    sub_entries: List["Entry"] = Field(alias="subEntries")

    def collapse(self) -> "Entry":
        """Reduce a container holding at most one child to the simplest equivalent entry."""
        if len(self.sub_entries) > 1:
            raise TrackerError(f"Cannot collapse '{self.name}' with {len(self.sub_entries)} sub-entries")
        if not self.sub_entries:
            return Leaf(id=self.id, name=self.name)
        survivor = self.sub_entries[0]
        if isinstance(survivor, Container):
            return Container(
                id=self.id,
                name=self.name,
                collapsed=self.collapsed,
                sub_entries=list(survivor.sub_entries),
            )
        return Leaf(
            id=self.id,
            name=self.name,
            collapsed=self.collapsed,
            start_time=survivor.start_time,
            end_time=survivor.end_time,
        )


def _entry_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "container" if value.get("subEntries") or value.get("sub_entries") else "leaf"
    return "container" if isinstance(value, Container) else "leaf"


Entry = Annotated[
    Union[Annotated[Leaf, Tag("leaf")], Annotated[Container, Tag("container")]],
    Discriminator(_entry_kind),
]

Container.model_rebuild()


class Tracker(BaseModel):
    entries: List[Entry] = Field(default_factory=list)


def default_name(prefix: str, siblings: Sequence[Any]) -> str:
    return f"{prefix} {len(siblings) + 1}"


def locate(entries: List[Entry], entry_id: str) -> Optional[Tuple[List[Entry], int]]:
    """Return the sibling list holding ``entry_id`` and its index in it."""
    for index, entry in enumerate(entries):
        if entry.id == entry_id:
            return entries, index
        if isinstance(entry, Container):
            found = locate(entry.sub_entries, entry_id)
            if found is not None:
                return found
    return None


def find_entry(entries: List[Entry], entry_id: str) -> Entry:
    found = locate(entries, entry_id)
    if found is None:
        raise EntryNotFound(f"No entry with id {entry_id}")
    siblings, index = found
    return siblings[index]


def entry_path(entries: Sequence[Entry], entry_id: str) -> Optional[Tuple[int, ...]]:
    for index, entry in enumerate(entries):
        if entry.id == entry_id:
            return (index,)
        if isinstance(entry, Container):
            below = entry_path(entry.sub_entries, entry_id)
            if below is not None:
                return (index,) + below
    return None


def resolve_entry(tracker: Tracker, path: Sequence[int]) -> Entry:
    if not path:
        raise EntryNotFound("Empty entry path")
    siblings: Sequence[Entry] = tracker.entries
    entry: Optional[Entry] = None
    for depth, index in enumerate(path):
        if index < 0 or index >= len(siblings):
            raise EntryNotFound(f"No entry at {'.'.join(str(i) for i in path[: depth + 1])}")
        entry = siblings[index]
        if depth < len(path) - 1:
            if not isinstance(entry, Container):
                raise EntryNotFound(f"Entry at {'.'.join(str(i) for i in path[: depth + 1])} has no sub-entries")
            siblings = entry.sub_entries
    assert entry is not None
    return entry
