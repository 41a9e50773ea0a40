"""
FastAPI application: hosts interactive catalog-search sessions.

Run as a script:
    python app/app.py

Or as a module:
    uvicorn app.app:app --reload

On startup the catalog is fetched (falling back to the bundled dataset in
data/ when the live endpoints fail) and refreshed every
CATALOG_REFRESH_SECONDS. Each client opens a session and drives it:

    POST   /sessions                     {"view": "contests", "query": "rag"}
    GET    /sessions/{id}?wait=true      current page (wait = let expansion settle)
    PUT    /sessions/{id}/input          {"text": "의료", "submit": false}
    PUT    /sessions/{id}/facets         {"name": "status", "value": "ongoing"}
    PUT    /sessions/{id}/sort           {"criterion": "prize"}
    PUT    /sessions/{id}/view           {"view": "learning"}
    POST   /sessions/{id}/page           {"page": 2}
    POST   /sessions/{id}/reset
    DELETE /sessions/{id}
    GET    /sessions/{id}/suggestions
    GET    /popular/{view}
    GET    /preferences  ·  PUT /preferences/theme
    GET    /health

Invalid facet / sort / view values → 422, unknown session → 404. Sessions
left idle for SESSION_TTL_SECONDS are closed on the next request.

Logs each request and wall-clock response time to stdout and logs/app.log
(rotating, 5 MB max, 3 backups).
"""

import asyncio
import logging
import logging.handlers
import sys
import time
from collections.abc import Callable
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

# Ensure project root is on sys.path when running as a script (python app/app.py)
sys.path.insert(0, str(Path(__file__).parent.parent))

from discovery.catalog import CatalogStore
from discovery.config import (
    API_HOST,
    API_PORT,
    CATALOG_REFRESH_SECONDS,
    DEBOUNCE_SECONDS,
    LOG_DIR,
    LOG_LEVEL,
    PREFERENCES_FILE,
    SESSION_TTL_SECONDS,
)
from discovery.expansion import ExpansionOracle, build_oracle
from discovery.history import PreferenceStore, SearchHistory
from discovery.session import SearchSession
from discovery.state import CONTESTS, get_view
from etl import pipeline

LOG_FILE = LOG_DIR / "app.log"


def _setup_logging(log_file: Path = LOG_FILE, level: str = LOG_LEVEL) -> None:
    """Send discovery/etl/api records to stdout and a rotating file (5 MB x 3)."""
    root = logging.getLogger()
    root.setLevel(level)
    if any(getattr(h, "_discovery", False) for h in root.handlers):
        return  # already configured (module reloaded under uvicorn --reload)

    log_file.parent.mkdir(parents=True, exist_ok=True)
    fmt = logging.Formatter("%(asctime)s  %(levelname)-7s  %(name)s  %(message)s")
    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.handlers.RotatingFileHandler(
            log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
        ),
    ]
    for handler in handlers:
        handler.setFormatter(fmt)
        handler._discovery = True
        root.addHandler(handler)

_setup_logging()
log = logging.getLogger("api")


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

class SessionCreate(BaseModel):
    view: str = CONTESTS
    query: str = ""


class InputUpdate(BaseModel):
    text: str
    submit: bool = False


class FacetUpdate(BaseModel):
    name: str
    value: bool | str | None = None


class SortUpdate(BaseModel):
    criterion: str
    direction: str | None = None


class ViewUpdate(BaseModel):
    view: str


class PageRequest(BaseModel):
    page: int


class ThemeUpdate(BaseModel):
    theme: str


class SortState(BaseModel):
    criterion: str
    direction: str


class SearchTip(BaseModel):
    title: str
    content: str


class PageResponse(BaseModel):
    session_id: str
    view: str
    items: list[dict[str, Any]]
    page: int
    page_count: int
    total_items: int
    items_per_page: int
    reserved_slots: int
    result_count: int
    raw_input: str
    committed_query: str
    expanded_terms: list[str]
    is_expanding: bool
    has_active_filters: bool
    facets: dict[str, Any]
    sort: SortState
    notifications: list[str]
    errors: list[str]
    tip: SearchTip | None = None


class SuggestionResponse(BaseModel):
    recent: list[str] = []
    popular: list[str] = []
    filtered: list[str] = []


class PreferencesResponse(BaseModel):
    theme: str
    recent_searches: list[str]


# ---------------------------------------------------------------------------
# App factory + lifespan
# ---------------------------------------------------------------------------

def create_app(
    loader: Callable[[], pipeline.CatalogData] = pipeline.run,
    oracle_factory: Callable[[], ExpansionOracle | None] = build_oracle,
    preferences_path: Path = PREFERENCES_FILE,
    refresh_interval: float = CATALOG_REFRESH_SECONDS,
    debounce_delay: float = DEBOUNCE_SECONDS,
    session_ttl: float = SESSION_TTL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Loading catalog…")
        snapshot = await app.state.catalog.refresh()
        log.info("  %s loaded (%d degraded sources).", snapshot.counts(), len(snapshot.errors))

        app.state.oracle = oracle_factory()
        log.info("  Query expansion %s.", "enabled" if app.state.oracle else "disabled")

        refresher = asyncio.create_task(app.state.catalog.refresh_forever(refresh_interval))

        yield  # server runs here

        refresher.cancel()
        with suppress(asyncio.CancelledError):
            await refresher
        for session in app.state.sessions.values():
            session.close()
        app.state.sessions.clear()

    app = FastAPI(title="Catalog Discovery", lifespan=lifespan)
    app.state.catalog     = CatalogStore(loader)
    app.state.preferences = PreferenceStore(preferences_path)
    app.state.history     = SearchHistory(app.state.preferences)
    app.state.sessions    = {}
    app.state.oracle      = None

    def _expire_idle(sessions: dict[str, SearchSession]) -> None:
        cutoff = clock() - session_ttl
        for session_id, session in list(sessions.items()):
            if session.last_seen < cutoff:
                del sessions[session_id]
                session.close()
                log.info("session=%s expired (idle > %.0fs)", session_id[:8], session_ttl)

    def _session(request: Request, session_id: str) -> SearchSession:
        sessions = request.app.state.sessions
        _expire_idle(sessions)
        session = sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Unknown session {session_id!r}.")
        session.last_seen = clock()
        return session

    def _page(session: SearchSession, t0: float, action: str) -> PageResponse:
        payload = session.current_page()
        elapsed = time.perf_counter() - t0
        log.info(
            "session=%s  %s  view=%s  q=%r  hits=%d  page=%d/%d  %.3fs",
            session.id[:8], action, payload["view"], payload["committed_query"],
            payload["result_count"], payload["page"], payload["page_count"], elapsed,
        )
        return PageResponse(session_id=session.id, **payload)

    # -----------------------------------------------------------------------
    # Endpoints
    # -----------------------------------------------------------------------

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        snapshot = request.app.state.catalog.snapshot
        return {
            "status":    "ok",
            "loaded_at": snapshot.loaded_at.isoformat() if snapshot.loaded_at else None,
            "counts":    snapshot.counts(),
            "errors":    list(snapshot.errors),
            "sessions":  len(request.app.state.sessions),
        }

    @app.post("/sessions", response_model=PageResponse)
    async def open_session(req: SessionCreate, request: Request) -> PageResponse:
        t0 = time.perf_counter()
        state = request.app.state
        try:
            session = SearchSession(
                state.catalog,
                state.history,
                oracle=state.oracle,
                view=req.view,
                query=req.query,
                debounce_delay=debounce_delay,
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        _expire_idle(state.sessions)
        session.last_seen = clock()
        state.sessions[session.id] = session
        return _page(session, t0, "open")

    @app.get("/sessions/{session_id}", response_model=PageResponse)
    async def get_page(session_id: str, request: Request, wait: bool = False) -> PageResponse:
        t0 = time.perf_counter()
        session = _session(request, session_id)
        if wait:
            await session.wait_for_expansion()
        return _page(session, t0, "get")

    @app.put("/sessions/{session_id}/input", response_model=PageResponse)
    async def update_input(session_id: str, req: InputUpdate, request: Request) -> PageResponse:
        t0 = time.perf_counter()
        session = _session(request, session_id)
        session.type_input(req.text, submit=req.submit)
        return _page(session, t0, "input")

    @app.put("/sessions/{session_id}/facets", response_model=PageResponse)
    async def update_facet(session_id: str, req: FacetUpdate, request: Request) -> PageResponse:
        t0 = time.perf_counter()
        session = _session(request, session_id)
        try:
            session.set_facet(req.name, req.value)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _page(session, t0, f"facet {req.name}={req.value!r}")

    @app.put("/sessions/{session_id}/sort", response_model=PageResponse)
    async def update_sort(session_id: str, req: SortUpdate, request: Request) -> PageResponse:
        t0 = time.perf_counter()
        session = _session(request, session_id)
        try:
            session.set_sort(req.criterion, req.direction)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _page(session, t0, f"sort {req.criterion}")

    @app.put("/sessions/{session_id}/view", response_model=PageResponse)
    async def update_view(session_id: str, req: ViewUpdate, request: Request) -> PageResponse:
        t0 = time.perf_counter()
        session = _session(request, session_id)
        try:
            session.set_view(req.view)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _page(session, t0, "view")

    @app.post("/sessions/{session_id}/page", response_model=PageResponse)
    async def go_to_page(session_id: str, req: PageRequest, request: Request) -> PageResponse:
        t0 = time.perf_counter()
        session = _session(request, session_id)
        session.go_to_page(req.page)
        return _page(session, t0, f"page {req.page}")

    @app.post("/sessions/{session_id}/reset", response_model=PageResponse)
    async def reset(session_id: str, request: Request) -> PageResponse:
        t0 = time.perf_counter()
        session = _session(request, session_id)
        session.reset()
        return _page(session, t0, "reset")

    @app.delete("/sessions/{session_id}")
    async def close_session(session_id: str, request: Request) -> dict[str, str]:
        session = _session(request, session_id)
        session.close()
        del request.app.state.sessions[session_id]
        return {"closed": session_id}

    @app.get("/sessions/{session_id}/suggestions", response_model=SuggestionResponse)
    async def suggestions(session_id: str, request: Request) -> SuggestionResponse:
        return SuggestionResponse(**_session(request, session_id).suggestions())

    @app.get("/popular/{view}")
    def popular(view: str, request: Request) -> dict[str, Any]:
        try:
            get_view(view)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"view": view, "keywords": request.app.state.catalog.snapshot.popular_for(view)}

    @app.get("/preferences", response_model=PreferencesResponse)
    def preferences(request: Request) -> PreferencesResponse:
        prefs = request.app.state.preferences
        return PreferencesResponse(theme=prefs.theme, recent_searches=prefs.recent_searches)

    @app.put("/preferences/theme", response_model=PreferencesResponse)
    def set_theme(req: ThemeUpdate, request: Request) -> PreferencesResponse:
        prefs = request.app.state.preferences
        try:
            prefs.set_theme(req.theme)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        log.info("theme=%s", prefs.theme)
        return PreferencesResponse(theme=prefs.theme, recent_searches=prefs.recent_searches)

    return app


app = create_app()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    log.info(
        "Serving catalog discovery on http://%s:%d (debounce %.0f ms, session ttl %.0fs)",
        API_HOST, API_PORT, DEBOUNCE_SECONDS * 1000, SESSION_TTL_SECONDS,
    )
    # log_config=None keeps the handlers installed by _setup_logging
    uvicorn.run(app, host=API_HOST, port=API_PORT, log_config=None)


if __name__ == "__main__":
    main()
