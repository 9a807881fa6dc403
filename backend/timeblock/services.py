from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from .config import settings
from .documents import LoadedTracker, insert_tracker_block, load_all_trackers
from .durations import (
    duration,
    find_running,
    start_of_day,
    total_duration,
    total_duration_today,
)
from .entries import (
    Container,
    Entry,
    EntryNotFound,
    InvalidEdit,
    StateConflict,
    Tracker,
    TrackerError,
    resolve_entry,
)
from .export import create_csv, create_markdown_table, ordered_entries
from .formatting import DisplaySettings, format_duration, format_timestamp, parse_timestamp
from .host import Confirmer, DocumentNotFound, DocumentStore, HostError, write_tracker
from .mutations import (
    edit_entry,
    end_running_entry,
    remove_entry,
    set_collapsed,
    start_new_entry,
    start_sub_entry,
)
from .schemas import EntryView, LiveStatus, RunningTrackerResponse, TrackerResponse
from .state import RuntimeState
from .utils import format_entry_path, parse_entry_path

logger = logging.getLogger(__name__)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, StateConflict):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (EntryNotFound, DocumentNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidEdit):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _format(value: dt.timedelta, display: DisplaySettings) -> str:
    return format_duration(value, display.fine_grained_durations, display.timestamp_durations)


def _entry_view(entry: Entry, path: Tuple[int, ...], display: DisplaySettings, now: dt.datetime) -> EntryView:
    elapsed = duration(entry, now)
    view = EntryView(
        path=format_entry_path(path),
        name=entry.name,
        duration=_format(elapsed, display),
        duration_seconds=int(round(elapsed.total_seconds())),
        collapsed=bool(entry.collapsed),
    )
    if isinstance(entry, Container):
        indexed = ordered_entries(list(enumerate(entry.sub_entries)), display.reverse_segment_order)
        view.sub_entries = [_entry_view(child, path + (i,), display, now) for i, child in indexed]
        view.running = find_running(entry.sub_entries) is not None
        return view
    tz = display.tzinfo
    view.start_time = entry.start_time
    view.end_time = entry.end_time
    view.running = entry.is_running
    if entry.start_time:
        view.start_display = format_timestamp(entry.start_time, display.timestamp_format, tz)
    if entry.end_time:
        view.end_display = format_timestamp(entry.end_time, display.timestamp_format, tz)
    return view


def _live_status(tracker: Tracker, display: DisplaySettings, now: dt.datetime) -> LiveStatus:
    running = find_running(tracker.entries)
    total_today = None
    if display.show_today:
        today_start = start_of_day(now, display.tzinfo)
        total_today = _format(total_duration_today(tracker.entries, now, today_start), display)
    return LiveStatus(
        running=running is not None,
        current=_format(duration(running, now), display) if running is not None else None,
        total=_format(total_duration(tracker.entries, now), display),
        total_today=total_today,
    )


def build_tracker_response(
    document: str,
    index: int,
    loaded: LoadedTracker,
    display: DisplaySettings,
    now: dt.datetime,
) -> TrackerResponse:
    live = _live_status(loaded.tracker, display, now)
    indexed = ordered_entries(list(enumerate(loaded.tracker.entries)), display.reverse_segment_order)
    return TrackerResponse(
        document=document,
        index=index,
        line_start=loaded.bounds.line_start,
        line_end=loaded.bounds.line_end,
        running=live.running,
        current=live.current,
        total=live.total,
        total_today=live.total_today,
        entries=[_entry_view(entry, (i,), display, now) for i, entry in indexed],
    )


async def _read_document(store: DocumentStore, document: str) -> str:
    try:
        return await store.read(document)
    except HostError as exc:
        raise _http_error(exc) from exc


async def _load_tracker_at(store: DocumentStore, document: str, index: int) -> LoadedTracker:
    content = await _read_document(store, document)
    trackers = load_all_trackers(content, settings.tracker_fence)
    if index < 0 or index >= len(trackers):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Tracker not found")
    return trackers[index]


def _resolve(tracker: Tracker, entry_path: str) -> Entry:
    path = parse_entry_path(entry_path)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Invalid entry path '{entry_path}'")
    try:
        return resolve_entry(tracker, path)
    except EntryNotFound as exc:
        raise _http_error(exc) from exc


def _document_lock(store: DocumentStore, document: str) -> asyncio.Lock:
    try:
        return store.lock(document)
    except HostError as exc:
        raise _http_error(exc) from exc


async def _save(store: DocumentStore, document: str, loaded: LoadedTracker) -> None:
    try:
        await write_tracker(store, document, loaded.tracker, loaded.bounds)
    except HostError as exc:
        logger.warning("Saving tracker in %s failed: %s", document, exc)
        raise _http_error(exc) from exc


async def _mutate(
    store: DocumentStore,
    state: RuntimeState,
    document: str,
    index: int,
    now: dt.datetime,
    action: Callable[[Tracker], Any],
) -> TrackerResponse:
    async with _document_lock(store, document):
        loaded = await _load_tracker_at(store, document, index)
        try:
            action(loaded.tracker)
        except TrackerError as exc:
            raise _http_error(exc) from exc
        await _save(store, document, loaded)
    return build_tracker_response(document, index, loaded, state.snapshot(), now)


async def list_document_trackers(
    store: DocumentStore, state: RuntimeState, document: str, now: dt.datetime
) -> List[TrackerResponse]:
    content = await _read_document(store, document)
    display = state.snapshot()
    return [
        build_tracker_response(document, index, loaded, display, now)
        for index, loaded in enumerate(load_all_trackers(content, settings.tracker_fence))
    ]


async def get_document_tracker(
    store: DocumentStore, state: RuntimeState, document: str, index: int, now: dt.datetime
) -> TrackerResponse:
    loaded = await _load_tracker_at(store, document, index)
    return build_tracker_response(document, index, loaded, state.snapshot(), now)


async def create_tracker_block(
    store: DocumentStore, state: RuntimeState, document: str, now: dt.datetime
) -> TrackerResponse:
    try:
        async with store.lock(document):
            try:
                content = await store.read(document)
            except DocumentNotFound:
                content = ""
            await store.write(document, insert_tracker_block(content, settings.tracker_fence))
    except HostError as exc:
        raise _http_error(exc) from exc
    trackers = await list_document_trackers(store, state, document, now)
    return trackers[-1]


async def start_tracker_entry(
    store: DocumentStore,
    state: RuntimeState,
    document: str,
    index: int,
    name: Optional[str],
    now: dt.datetime,
) -> TrackerResponse:
    return await _mutate(store, state, document, index, now, lambda tracker: start_new_entry(tracker, name, now))


async def stop_tracker_entry(
    store: DocumentStore, state: RuntimeState, document: str, index: int, now: dt.datetime
) -> TrackerResponse:
    return await _mutate(store, state, document, index, now, lambda tracker: end_running_entry(tracker, now))


async def continue_tracker_entry(
    store: DocumentStore,
    state: RuntimeState,
    document: str,
    index: int,
    entry_path: str,
    name: Optional[str],
    now: dt.datetime,
) -> TrackerResponse:
    def _continue(tracker: Tracker) -> None:
        entry = _resolve(tracker, entry_path)
        start_sub_entry(tracker, entry.id, name, now)

    return await _mutate(store, state, document, index, now, _continue)


async def update_tracker_entry(
    store: DocumentStore,
    state: RuntimeState,
    document: str,
    index: int,
    entry_path: str,
    changes: Dict[str, Any],
    now: dt.datetime,
) -> TrackerResponse:
    display = state.snapshot()

    def _parse(key: str) -> Optional[dt.datetime]:
        value = changes.get(key)
        if not value:
            return None
        return parse_timestamp(value, display.editable_timestamp_format, display.tzinfo)

    def _update(tracker: Tracker) -> None:
        entry = _resolve(tracker, entry_path)
        edit_entry(tracker, entry, name=changes.get("name"), start=_parse("start_time"), end=_parse("end_time"))

    return await _mutate(store, state, document, index, now, _update)


async def set_tracker_entry_collapsed(
    store: DocumentStore,
    state: RuntimeState,
    document: str,
    index: int,
    entry_path: str,
    collapsed: bool,
    now: dt.datetime,
) -> TrackerResponse:
    return await _mutate(
        store,
        state,
        document,
        index,
        now,
        lambda tracker: set_collapsed(_resolve(tracker, entry_path), collapsed),
    )


async def remove_tracker_entry(
    store: DocumentStore,
    state: RuntimeState,
    document: str,
    index: int,
    entry_path: str,
    confirmer: Confirmer,
    now: dt.datetime,
) -> TrackerResponse:
    async with _document_lock(store, document):
        loaded = await _load_tracker_at(store, document, index)
        entry = _resolve(loaded.tracker, entry_path)
        if not await confirmer.confirm(f"Are you sure you want to delete the entry '{entry.name}'?"):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Removal was not confirmed")
        remove_entry(loaded.tracker.entries, entry.id)
        await _save(store, document, loaded)
    return build_tracker_response(document, index, loaded, state.snapshot(), now)


async def export_tracker_table(
    store: DocumentStore, state: RuntimeState, document: str, index: int, now: dt.datetime
) -> str:
    loaded = await _load_tracker_at(store, document, index)
    return create_markdown_table(loaded.tracker, state.snapshot(), now)


async def export_tracker_csv(
    store: DocumentStore, state: RuntimeState, document: str, index: int, now: dt.datetime
) -> str:
    loaded = await _load_tracker_at(store, document, index)
    return create_csv(loaded.tracker, state.snapshot(), now)


async def tracker_live_status(
    store: DocumentStore, state: RuntimeState, document: str, index: int, now: dt.datetime
) -> LiveStatus:
    loaded = await _load_tracker_at(store, document, index)
    return _live_status(loaded.tracker, state.snapshot(), now)


async def find_running_trackers(store: DocumentStore) -> List[RunningTrackerResponse]:
    results: List[RunningTrackerResponse] = []
    for document in store.list_documents():
        try:
            content = await store.read(document)
        except HostError as exc:
            logger.warning("Skipping %s while scanning for running trackers: %s", document, exc)
            continue
        for index, loaded in enumerate(load_all_trackers(content, settings.tracker_fence)):
            running = find_running(loaded.tracker.entries)
            if running is not None and running.start_time is not None:
                results.append(
                    RunningTrackerResponse(
                        document=document,
                        index=index,
                        entry=running.name,
                        started_at=running.start_time,
                    )
                )
    return results


def update_runtime_settings(db: Session, state: RuntimeState, updates: dict) -> DisplaySettings:
    normalized = {key: value for key, value in updates.items() if value is not None}
    if normalized.get("csv_delimiter") == "\\t":
        normalized["csv_delimiter"] = "\t"
    state.apply(normalized)
    state.persist(db, normalized)
    return state.snapshot()
