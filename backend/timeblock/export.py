from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import List, Sequence, TypeVar

from typing_extensions import Literal

from .durations import duration, total_duration
from .entries import Container, Entry, Tracker
from .formatting import DisplaySettings, format_duration, format_timestamp

T = TypeVar("T")

TABLE_HEADER = ("Segment", "Start time", "End time", "Duration")
TOTAL_LABEL = "**Total**"


@dataclass(slots=True)
class TableRow:
    name: str
    start: str
    end: str
    duration: str
    depth: int = 0
    kind: Literal["leaf", "container", "total"] = "leaf"

    @property
    def cells(self) -> List[str]:
        return [self.name, self.start, self.end, self.duration]


def ordered_entries(entries: Sequence[T], reverse: bool) -> List[T]:
    return list(reversed(entries)) if reverse else list(entries)


def _entry_rows(entry: Entry, display: DisplaySettings, now: dt.datetime, depth: int) -> List[TableRow]:
    tz = display.tzinfo
    name = f"{'-' * depth} {entry.name}" if depth else entry.name
    elapsed = format_duration(duration(entry, now), display.fine_grained_durations, display.timestamp_durations)
    if isinstance(entry, Container):
        rows = [TableRow(name, "", "", elapsed, depth, "container")]
        for child in ordered_entries(entry.sub_entries, display.reverse_segment_order):
            rows.extend(_entry_rows(child, display, now, depth + 1))
        return rows
    start = format_timestamp(entry.start_time, display.timestamp_format, tz) if entry.start_time else ""
    end = format_timestamp(entry.end_time, display.timestamp_format, tz) if entry.end_time else ""
    return [TableRow(name, start, end, elapsed if entry.start_time else "", depth, "leaf")]


def to_table_rows(tracker: Tracker, display: DisplaySettings, now: dt.datetime) -> List[TableRow]:
    rows: List[TableRow] = []
    for entry in ordered_entries(tracker.entries, display.reverse_segment_order):
        rows.extend(_entry_rows(entry, display, now, 0))
    total = format_duration(
        total_duration(tracker.entries, now), display.fine_grained_durations, display.timestamp_durations
    )
    rows.append(TableRow(TOTAL_LABEL, "", "", f"**{total}**", 0, "total"))
    return rows


def to_padded_table(rows: Sequence[TableRow], bracket: bool = True) -> str:
    table = [list(TABLE_HEADER)] + [row.cells for row in rows]
    widths = [max(len(line[column]) for line in table) for column in range(len(TABLE_HEADER))]

    def _line(cells: Sequence[str]) -> str:
        body = " | ".join(cell.ljust(width) for cell, width in zip(cells, widths))
        return f"| {body} |" if bracket else body

    lines = [_line(table[0]), _line(["-" * width for width in widths])]
    lines.extend(_line(cells) for cells in table[1:])
    return "\n".join(lines) + "\n"


def to_delimited(rows: Sequence[TableRow], delimiter: str) -> str:
    return "".join(delimiter.join(row.cells) + "\n" for row in rows if row.kind == "leaf")


def create_markdown_table(tracker: Tracker, display: DisplaySettings, now: dt.datetime) -> str:
    return to_padded_table(to_table_rows(tracker, display, now))


def create_csv(tracker: Tracker, display: DisplaySettings, now: dt.datetime) -> str:
    return to_delimited(to_table_rows(tracker, display, now), display.csv_delimiter)
