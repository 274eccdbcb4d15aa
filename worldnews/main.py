from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Callable
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse
from jinja2 import Environment, FileSystemLoader, select_autoescape

from worldnews.core.connectivity import connectivity_check
from worldnews.core.date_range import TimeWindow
from worldnews.core.fetch_job import FetchJobRunner
from worldnews.core.loader import LoadEvent, LoaderController, LoaderPhase, LoaderSnapshot, ViewState
from worldnews.core.news_fetcher import NewsFetcher
from worldnews.core.settings import Settings
from worldnews.core.storage import get_db, init_db
from worldnews.providers.guardian import QueryTemplate

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

jinja = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)

# Global controller instance
_controller: LoaderController | None = None

# Zone for article dates; set from NEWS_TIMEZONE on startup
_display_tz: tzinfo = timezone.utc


def build_controller(
    settings: Settings,
    view_state: ViewState,
    is_network_reachable: Callable[[], bool] | None = None,
    fetcher: NewsFetcher | None = None,
) -> LoaderController:
    """Wire a LoaderController from settings."""
    tz = ZoneInfo(settings.timezone)
    return LoaderController(
        runner=FetchJobRunner(fetcher or NewsFetcher(timeout=settings.fetch_timeout)),
        query_template=QueryTemplate.from_settings(settings).render(),
        is_network_reachable=is_network_reachable or connectivity_check(settings),
        view_state=view_state,
        clock=lambda: datetime.now(tz),
        first_weekday=settings.week_start,
    )


def init_controller(controller: LoaderController) -> None:
    """Install the global LoaderController."""
    global _controller
    _controller = controller


def get_controller() -> LoaderController:
    """Get the global LoaderController. Must call init_controller first."""
    if _controller is None:
        raise RuntimeError("LoaderController not initialized. Call init_controller first.")
    return _controller


def _persist_view_state() -> None:
    get_db().save_view_state(get_controller().view_state)


async def _load_window(window: TimeWindow) -> LoaderSnapshot:
    """Check reachability off the event loop, then load ``window``."""
    controller = get_controller()
    reachable = await controller.check_network()
    snapshot = controller.load(window, reachable=reachable)
    _persist_view_state()
    return snapshot


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the persisted window on startup; reset and persist on shutdown."""
    global _display_tz
    init_db()
    settings = Settings.from_env()
    _display_tz = ZoneInfo(settings.timezone)
    view_state = get_db().get_view_state()
    controller = build_controller(settings, view_state)
    init_controller(controller)
    await _load_window(view_state.selected_window)

    yield

    controller.on_reset()
    _persist_view_state()
    await controller.close()


app = FastAPI(title="worldnews", lifespan=lifespan)


def render(template_name: str, **ctx) -> HTMLResponse:
    template = jinja.get_template(template_name)
    return HTMLResponse(template.render(**ctx))


@app.get("/", response_class=HTMLResponse)
async def news_list(request: Request):
    snapshot = get_controller().snapshot()
    return render(
        "news.html",
        request=request,
        windows=list(TimeWindow),
        selected=snapshot.window,
        loading=snapshot.phase == LoaderPhase.LOADING,
        result=snapshot.result,
        display_tz=_display_tz,
    )


@app.post("/windows/{window}")
async def select_window(window: TimeWindow):
    """Select a time window from the list page and reload."""
    await _load_window(window)
    return RedirectResponse("/", status_code=303)


# ==================== API Endpoints ====================


@app.get("/api/state")
async def api_state():
    """Current loader snapshot."""
    return get_controller().snapshot().to_dict(_display_tz)


@app.post("/api/windows/{window}")
async def api_select_window(window: TimeWindow):
    """Select a time window. Subscribe to /api/stream for the result."""
    snapshot = await _load_window(window)
    return snapshot.to_dict(_display_tz)


@app.get("/api/stream")
async def api_stream():
    """SSE stream of LoadResult transitions, starting with the current one."""
    controller = get_controller()

    async def event_generator():
        queue: asyncio.Queue[LoadEvent] = asyncio.Queue()
        unsubscribe = controller.subscribe(queue.put_nowait)
        try:
            snapshot = controller.snapshot()
            yield LoadEvent(generation=snapshot.generation, result=snapshot.result).to_sse(_display_tz)
            while True:
                event = await queue.get()
                yield event.to_sse(_display_tz)
        finally:
            unsubscribe()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@app.get("/articles/open")
async def open_article(url: str):
    """Hand an article URL to the browser."""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise HTTPException(status_code=400, detail="Article URL must be http(s)")
    return RedirectResponse(url, status_code=307)
