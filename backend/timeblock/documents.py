from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from pydantic import ValidationError

from .entries import Tracker
from .legacy import normalize_legacy_tracker

logger = logging.getLogger(__name__)

DEFAULT_FENCE = "time-tracker"


@dataclass(slots=True, frozen=True)
class SectionBounds:
    """Line indexes of the opening and closing fence of a tracker block."""

    line_start: int
    line_end: int


@dataclass(slots=True)
class LoadedTracker:
    bounds: SectionBounds
    tracker: Tracker


def parse_tracker(text: str) -> Tracker:
    if not text or not text.strip():
        return Tracker()
    raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError(f"Expected a JSON object, got {type(raw).__name__}")
    return Tracker.model_validate(normalize_legacy_tracker(raw))


def load_tracker(text: str) -> Tracker:
    try:
        return parse_tracker(text)
    except (ValueError, OverflowError, ValidationError) as exc:
        logger.warning("Failed to parse tracker from %r: %s", text, exc)
        return Tracker()


def dump_tracker(tracker: Tracker) -> str:
    return tracker.model_dump_json(by_alias=True, exclude_none=True)


def load_all_trackers(content: str, fence: str = DEFAULT_FENCE) -> List[LoadedTracker]:
    opening = f"```{fence}"
    trackers: List[LoadedTracker] = []
    start: Optional[int] = None
    body: List[str] = []
    for index, line in enumerate(content.split("\n")):
        stripped = line.rstrip()
        if start is None:
            if stripped == opening:
                start = index
                body = []
            continue
        if stripped == "```":
            try:
                tracker = parse_tracker("\n".join(body))
            except (ValueError, OverflowError, ValidationError) as exc:
                logger.warning("Skipping malformed tracker block at line %d: %s", start + 1, exc)
            else:
                trackers.append(LoadedTracker(SectionBounds(start, index), tracker))
            start = None
        else:
            body.append(line)
    if start is not None:
        logger.warning("Skipping unterminated tracker block at line %d", start + 1)
    return trackers


def replace_section(content: str, bounds: SectionBounds, text: str) -> str:
    lines = content.split("\n")
    if not 0 <= bounds.line_start < bounds.line_end < len(lines):
        raise ValueError(f"Section {bounds} is outside the document ({len(lines)} lines)")
    updated = lines[: bounds.line_start + 1] + [text] + lines[bounds.line_end :]
    return "\n".join(updated)


def insert_tracker_block(content: str, fence: str = DEFAULT_FENCE) -> str:
    block = f"```{fence}\n{dump_tracker(Tracker())}\n```\n"
    if not content:
        return block
    separator = "" if content.endswith("\n") else "\n"
    return f"{content}{separator}{block}"
