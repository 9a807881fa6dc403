from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, List

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db, init_db, preferences_session
from .host import DocumentStore, FileDocumentStore, StaticConfirmer
from .models import utcnow
from .schemas import (
    CollapseRequest,
    EntryStartRequest,
    EntryUpdateRequest,
    RunningTrackerResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    TrackerResponse,
)
from .services import (
    continue_tracker_entry,
    create_tracker_block,
    export_tracker_csv,
    export_tracker_table,
    find_running_trackers,
    get_document_tracker,
    list_document_trackers,
    remove_tracker_entry,
    set_tracker_entry_collapsed,
    start_tracker_entry,
    stop_tracker_entry,
    tracker_live_status,
    update_runtime_settings,
    update_tracker_entry,
)
from .state import RuntimeState
from .ticker import DisplayTicker
from .utils import normalize_document_locator

logger = logging.getLogger(__name__)

init_db()

runtime_state = RuntimeState(settings)
with preferences_session() as session:
    try:
        runtime_state.load_from_db(session)
    except Exception:
        logger.exception("Stored display settings could not be loaded, using defaults")

document_store = FileDocumentStore(settings.documents_dir)

app = FastAPI(title=settings.app_name)
app.state.runtime_state = runtime_state


def get_store() -> DocumentStore:
    return document_store


def get_clock() -> Callable[[], dt.datetime]:
    return utcnow


def _state(request: Request) -> RuntimeState:
    return request.app.state.runtime_state


def _locator(document: str) -> str:
    locator = normalize_document_locator(document)
    if not locator:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return locator


def _settings_response(state: RuntimeState) -> SettingsResponse:
    snapshot = state.snapshot()
    return SettingsResponse(
        environment=settings.environment,
        timezone=snapshot.timezone,
        tracker_fence=settings.tracker_fence,
        timestamp_format=snapshot.timestamp_format,
        editable_timestamp_format=snapshot.editable_timestamp_format,
        csv_delimiter=snapshot.csv_delimiter,
        fine_grained_durations=snapshot.fine_grained_durations,
        reverse_segment_order=snapshot.reverse_segment_order,
        timestamp_durations=snapshot.timestamp_durations,
        show_today=snapshot.show_today,
        display_refresh_seconds=snapshot.display_refresh_seconds,
    )


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/settings", response_model=SettingsResponse)
def read_settings(request: Request) -> SettingsResponse:
    return _settings_response(_state(request))


@app.put("/settings", response_model=SettingsResponse)
def write_settings(payload: SettingsUpdateRequest, request: Request, db: Session = Depends(get_db)) -> SettingsResponse:
    state = _state(request)
    update_runtime_settings(db, state, payload.model_dump(exclude_unset=True))
    return _settings_response(state)


@app.get("/running", response_model=List[RunningTrackerResponse])
async def running_trackers(store: DocumentStore = Depends(get_store)) -> List[RunningTrackerResponse]:
    return await find_running_trackers(store)


@app.get("/documents/{document:path}/trackers", response_model=List[TrackerResponse])
async def list_trackers(
    document: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> List[TrackerResponse]:
    return await list_document_trackers(store, _state(request), _locator(document), clock())


@app.post(
    "/documents/{document:path}/trackers",
    response_model=TrackerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_tracker(
    document: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> TrackerResponse:
    return await create_tracker_block(store, _state(request), _locator(document), clock())


@app.get("/documents/{document:path}/trackers/{index:int}", response_model=TrackerResponse)
async def read_tracker(
    document: str,
    index: int,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> TrackerResponse:
    return await get_document_tracker(store, _state(request), _locator(document), index, clock())


@app.post(
    "/documents/{document:path}/trackers/{index:int}/start",
    response_model=TrackerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def tracker_start(
    document: str,
    index: int,
    payload: EntryStartRequest,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> TrackerResponse:
    return await start_tracker_entry(store, _state(request), _locator(document), index, payload.name, clock())


@app.post("/documents/{document:path}/trackers/{index:int}/stop", response_model=TrackerResponse)
async def tracker_stop(
    document: str,
    index: int,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> TrackerResponse:
    return await stop_tracker_entry(store, _state(request), _locator(document), index, clock())


@app.post(
    "/documents/{document:path}/trackers/{index:int}/entries/{entry_path}/continue",
    response_model=TrackerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def entry_continue(
    document: str,
    index: int,
    entry_path: str,
    payload: EntryStartRequest,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> TrackerResponse:
    return await continue_tracker_entry(
        store, _state(request), _locator(document), index, entry_path, payload.name, clock()
    )


@app.patch("/documents/{document:path}/trackers/{index:int}/entries/{entry_path}", response_model=TrackerResponse)
async def entry_update(
    document: str,
    index: int,
    entry_path: str,
    payload: EntryUpdateRequest,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> TrackerResponse:
    return await update_tracker_entry(
        store,
        _state(request),
        _locator(document),
        index,
        entry_path,
        payload.model_dump(exclude_unset=True),
        clock(),
    )


@app.put(
    "/documents/{document:path}/trackers/{index:int}/entries/{entry_path}/collapsed",
    response_model=TrackerResponse,
)
async def entry_collapse(
    document: str,
    index: int,
    entry_path: str,
    payload: CollapseRequest,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> TrackerResponse:
    return await set_tracker_entry_collapsed(
        store, _state(request), _locator(document), index, entry_path, payload.collapsed, clock()
    )


@app.delete("/documents/{document:path}/trackers/{index:int}/entries/{entry_path}", response_model=TrackerResponse)
async def entry_delete(
    document: str,
    index: int,
    entry_path: str,
    request: Request,
    confirm: bool = False,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> TrackerResponse:
    return await remove_tracker_entry(
        store,
        _state(request),
        _locator(document),
        index,
        entry_path,
        StaticConfirmer(confirm),
        clock(),
    )


@app.get("/documents/{document:path}/trackers/{index:int}/table", response_class=PlainTextResponse)
async def tracker_table(
    document: str,
    index: int,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> str:
    return await export_tracker_table(store, _state(request), _locator(document), index, clock())


@app.get("/documents/{document:path}/trackers/{index:int}/csv", response_class=PlainTextResponse)
async def tracker_csv(
    document: str,
    index: int,
    request: Request,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> PlainTextResponse:
    text = await export_tracker_csv(store, _state(request), _locator(document), index, clock())
    return PlainTextResponse(text, media_type="text/csv")


@app.websocket("/documents/{document:path}/trackers/{index:int}/live")
async def tracker_live(
    websocket: WebSocket,
    document: str,
    index: int,
    store: DocumentStore = Depends(get_store),
    clock: Callable[[], dt.datetime] = Depends(get_clock),
) -> None:
    state: RuntimeState = websocket.app.state.runtime_state
    locator = normalize_document_locator(document) or ""
    await websocket.accept()
    connected = True

    async def push() -> None:
        try:
            live = await tracker_live_status(store, state, locator, index, clock())
        except HTTPException as exc:
            await websocket.send_json({"error": exc.detail})
            return
        await websocket.send_json(live.model_dump(mode="json"))

    ticker = DisplayTicker(
        push,
        interval=state.snapshot().display_refresh_seconds,
        is_live=lambda: connected,
    )
    ticker.start()
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        connected = False
    finally:
        await ticker.stop()
