from __future__ import annotations

import datetime as dt

import pytest

from timeblock.entries import Container, InvalidEdit, Leaf, Tracker
from timeblock.export import (
    create_csv,
    create_markdown_table,
    ordered_entries,
    to_delimited,
    to_padded_table,
    to_table_rows,
)
from timeblock.formatting import DisplaySettings, format_duration, format_timestamp, parse_timestamp

from conftest import T0

NOW = T0 + dt.timedelta(hours=3)


def _tracker() -> Tracker:
    return Tracker(
        entries=[
            Container(
                name="Task",
                sub_entries=[
                    Leaf(name="Part 1", start_time=T0, end_time=T0 + dt.timedelta(minutes=30)),
                    Leaf(
                        name="Part 2",
                        start_time=T0 + dt.timedelta(hours=1),
                        end_time=T0 + dt.timedelta(hours=1, minutes=30),
                    ),
                ],
            ),
            Leaf(
                name="Solo",
                start_time=T0 + dt.timedelta(hours=2),
                end_time=T0 + dt.timedelta(hours=2, minutes=10),
            ),
        ]
    )


def test_table_rows_flatten_in_pre_order_with_depth() -> None:
    rows = to_table_rows(_tracker(), DisplaySettings(), NOW)

    assert [row.cells for row in rows] == [
        ["Task", "", "", "1h 0s"],
        ["- Part 1", "24-03-04 09:00:00", "24-03-04 09:30:00", "30m 0s"],
        ["- Part 2", "24-03-04 10:00:00", "24-03-04 10:30:00", "30m 0s"],
        ["Solo", "24-03-04 11:00:00", "24-03-04 11:10:00", "10m 0s"],
        ["**Total**", "", "", "**1h 10m 0s**"],
    ]
    assert [row.depth for row in rows] == [0, 1, 1, 0, 0]
    assert [row.kind for row in rows] == ["container", "leaf", "leaf", "leaf", "total"]


def test_reverse_order_is_applied_per_level() -> None:
    rows = to_table_rows(_tracker(), DisplaySettings(reverse_segment_order=True), NOW)
    assert [row.name for row in rows] == ["Solo", "Task", "- Part 2", "- Part 1", "**Total**"]


def test_ordered_entries_does_not_touch_stored_order() -> None:
    tracker = _tracker()
    stored = list(tracker.entries)
    reversed_once = ordered_entries(tracker.entries, True)

    assert reversed_once == stored[::-1]
    assert ordered_entries(reversed_once, True) == stored
    assert tracker.entries == stored
    assert [c.name for c in reversed_once[1].sub_entries] == ["Part 1", "Part 2"]
    assert ordered_entries(tracker.entries, False) == stored


def test_running_and_unstarted_leaves_in_table() -> None:
    tracker = Tracker(entries=[Leaf(name="Planned"), Leaf(name="Now", start_time=NOW - dt.timedelta(seconds=5))])
    rows = to_table_rows(tracker, DisplaySettings(), NOW)
    assert rows[0].cells == ["Planned", "", "", ""]
    assert rows[1].cells[2:] == ["", "5s"]


def test_padded_table_layout() -> None:
    tracker = Tracker(
        entries=[Leaf(name="A", start_time=T0, end_time=T0 + dt.timedelta(minutes=1, seconds=5))]
    )
    display = DisplaySettings(timestamp_format="%H:%M")
    table = create_markdown_table(tracker, display, NOW)

    assert table.splitlines() == [
        "| Segment   | Start time | End time | Duration  |",
        "| " + " | ".join(["-" * 9, "-" * 10, "-" * 8, "-" * 9]) + " |",
        "| A         | 09:00      | 09:01    | 1m 5s     |",
        "| **Total** | " + " " * 10 + " | " + " " * 8 + " | **1m 5s** |",
    ]
    assert table.endswith("\n")


def test_padded_table_lines_share_width() -> None:
    lines = to_padded_table(to_table_rows(_tracker(), DisplaySettings(), NOW)).splitlines()
    assert len(lines) == 7
    assert len({len(line) for line in lines}) == 1
    assert set(lines[1]) <= {"|", " ", "-"}


def test_padded_table_without_brackets() -> None:
    rows = to_table_rows(_tracker(), DisplaySettings(), NOW)
    lines = to_padded_table(rows, bracket=False).splitlines()
    assert lines[0].startswith("Segment")
    assert not any(line.startswith("|") for line in lines)


def test_delimited_export_has_one_line_per_leaf() -> None:
    tracker = Tracker(entries=[_tracker().entries[0]])
    csv = create_csv(tracker, DisplaySettings(csv_delimiter=";"), NOW)

    lines = csv.splitlines()
    assert lines == [
        "- Part 1;24-03-04 09:00:00;24-03-04 09:30:00;30m 0s",
        "- Part 2;24-03-04 10:00:00;24-03-04 10:30:00;30m 0s",
    ]
    assert all(len(line.split(";")) == 4 for line in lines)


def test_delimited_rows_match_table_leaves() -> None:
    rows = to_table_rows(_tracker(), DisplaySettings(), NOW)
    table_leaves = [row for row in rows if row.kind == "leaf"]
    assert len(to_delimited(rows, ",").splitlines()) == len(table_leaves)


@pytest.mark.parametrize(
    ("value", "fine_grained", "clock_style", "expected"),
    [
        (dt.timedelta(seconds=65), False, False, "1m 5s"),
        (dt.timedelta(hours=2, minutes=5, seconds=3), True, False, "2h 5m 3s"),
        (dt.timedelta(days=1, hours=2, minutes=5, seconds=3), True, True, "1.02:05:03"),
        (dt.timedelta(days=1, hours=2, minutes=5, seconds=3), False, True, "26:05:03"),
        (dt.timedelta(days=1, hours=2), False, False, "26h 0s"),
        (dt.timedelta(days=400), True, False, "1y 1M 5d 0s"),
        (dt.timedelta(seconds=64.6), True, False, "1m 5s"),
        (dt.timedelta(0), True, True, "00:00:00"),
    ],
)
def test_format_duration(value, fine_grained, clock_style, expected) -> None:
    assert format_duration(value, fine_grained, clock_style) == expected


def test_timestamps_use_configured_format_and_zone() -> None:
    plus_two = dt.timezone(dt.timedelta(hours=2))
    assert format_timestamp(T0, "%Y-%m-%d %H:%M", plus_two) == "2024-03-04 11:00"
    assert parse_timestamp("2024-03-04 11:00", "%Y-%m-%d %H:%M", plus_two) == T0


def test_unparseable_timestamp_is_an_invalid_edit() -> None:
    with pytest.raises(InvalidEdit):
        parse_timestamp("yesterday-ish", "%Y-%m-%d %H:%M:%S", dt.timezone.utc)
