"""Loader state machine for the article list.

Coordinates fetch jobs against first activation, window changes, connectivity
loss and reset. Every fetch gets a generation token; a completion is applied
only while its generation is current and still loading, so a superseded
request can never overwrite a newer result.

Transition methods must be called from the event loop thread. The lock keeps
snapshots read from other threads consistent.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Callable

from worldnews.core.article_parser import MalformedResponseError, parse_articles
from worldnews.core.date_range import TimeWindow, resolve
from worldnews.core.fetch_job import FetchJob, FetchJobRunner
from worldnews.core.news_fetcher import FetchErrorType, FetchResult
from worldnews.core.query_url import build_query_url
from worldnews.providers.content_types import Article

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Why a load failed. CANCELLED is internal and never published."""

    NETWORK_UNREACHABLE = "network_unreachable"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    MALFORMED_ROOT = "malformed_root"
    CANCELLED = "cancelled"


class LoadResultKind(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    SUCCESS = "success"
    FAILURE = "failure"


class LoaderPhase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SETTLED = "settled"


EMPTY_STATE_MESSAGES = {
    ErrorKind.NETWORK_UNREACHABLE: "No internet connection.",
    ErrorKind.TIMEOUT: "The news server took too long to respond.",
    ErrorKind.HTTP_STATUS: "The news server returned an error.",
    ErrorKind.MALFORMED_ROOT: "The news server sent an unexpected response.",
}
NO_NEWS_MESSAGE = "No news found."


class LoaderStateError(RuntimeError):
    """Transition not valid in the current state."""


@dataclass(frozen=True)
class LoadResult:
    """The result currently presented. Replaced, never mutated."""

    kind: LoadResultKind
    articles: tuple[Article, ...] = ()
    error: ErrorKind | None = None
    http_status: int | None = None
    skipped: int = 0

    @classmethod
    def empty(cls) -> LoadResult:
        return cls(kind=LoadResultKind.EMPTY)

    @classmethod
    def loading(cls) -> LoadResult:
        return cls(kind=LoadResultKind.LOADING)

    @classmethod
    def success(cls, articles: tuple[Article, ...], skipped: int = 0) -> LoadResult:
        return cls(kind=LoadResultKind.SUCCESS, articles=tuple(articles), skipped=skipped)

    @classmethod
    def failure(cls, error: ErrorKind, http_status: int | None = None) -> LoadResult:
        return cls(kind=LoadResultKind.FAILURE, error=error, http_status=http_status)

    @property
    def message(self) -> str | None:
        """Empty-state text for the list, or None while there is nothing to say."""
        if self.kind == LoadResultKind.FAILURE and self.error is not None:
            text = EMPTY_STATE_MESSAGES.get(self.error)
            if self.error == ErrorKind.HTTP_STATUS and self.http_status:
                text = f"{text} (HTTP {self.http_status})"
            return text
        if self.kind == LoadResultKind.SUCCESS and not self.articles:
            return NO_NEWS_MESSAGE
        return None

    def to_dict(self, tz: tzinfo | None = None) -> dict[str, Any]:
        """Convert to dict for JSON serialization. Article dates are shown in ``tz`` (UTC if None)."""
        return {
            "kind": self.kind.value,
            "articles": [a.to_dict(tz) for a in self.articles],
            "error": self.error.value if self.error else None,
            "http_status": self.http_status,
            "skipped": self.skipped,
            "message": self.message,
        }


@dataclass(frozen=True)
class ViewState:
    """UI selection persisted across restarts by the presentation layer."""

    selected_window: TimeWindow = TimeWindow.TODAY
    has_activated_once: bool = False


@dataclass(frozen=True)
class LoaderSnapshot:
    phase: LoaderPhase
    generation: int
    window: TimeWindow | None
    url: str | None
    result: LoadResult

    def to_dict(self, tz: tzinfo | None = None) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "phase": self.phase.value,
            "generation": self.generation,
            "window": self.window.value if self.window else None,
            "url": self.url,
            "result": self.result.to_dict(tz),
        }


@dataclass
class LoadEvent:
    """A published LoadResult transition, for subscribers and SSE streaming."""

    generation: int
    result: LoadResult
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_sse(self, tz: tzinfo | None = None) -> str:
        """Format as Server-Sent Event."""
        event_data = {
            "generation": self.generation,
            "timestamp": self.timestamp.isoformat(),
            **self.result.to_dict(tz),
        }
        return f"event: {self.result.kind.value}\ndata: {json.dumps(event_data)}\n\n"


LoadListener = Callable[[LoadEvent], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoaderController:
    """Owns the generation counter and the published LoadResult."""

    def __init__(
        self,
        runner: FetchJobRunner,
        query_template: str,
        is_network_reachable: Callable[[], bool],
        view_state: ViewState | None = None,
        clock: Callable[[], datetime] = _utcnow,
        first_weekday: int = 0,
    ) -> None:
        view_state = view_state or ViewState()
        self._runner = runner
        self._template = query_template
        self._is_network_reachable = is_network_reachable
        self._clock = clock
        self._first_weekday = first_weekday

        self._lock = threading.RLock()
        self._generation = 0
        self._phase = LoaderPhase.IDLE
        self._result = LoadResult.empty()
        self._window: TimeWindow | None = view_state.selected_window
        self._activated = view_state.has_activated_once
        self._url: str | None = None
        self._job: FetchJob | None = None
        self._listeners: list[LoadListener] = []

    # ---- read side ----

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def phase(self) -> LoaderPhase:
        with self._lock:
            return self._phase

    @property
    def result(self) -> LoadResult:
        with self._lock:
            return self._result

    @property
    def current_job(self) -> FetchJob | None:
        with self._lock:
            return self._job

    @property
    def view_state(self) -> ViewState:
        with self._lock:
            return ViewState(
                selected_window=self._window or TimeWindow.TODAY,
                has_activated_once=self._activated,
            )

    def snapshot(self) -> LoaderSnapshot:
        with self._lock:
            return LoaderSnapshot(
                phase=self._phase,
                generation=self._generation,
                window=self._window,
                url=self._url,
                result=self._result,
            )

    def subscribe(self, listener: LoadListener) -> Callable[[], None]:
        """Register ``listener`` for every LoadResult transition. Returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # ---- transitions ----

    async def check_network(self) -> bool:
        """Run the reachability check in the default executor.

        The check may block on DNS and a TCP connect, so async callers run it
        here and pass the answer to a transition as ``reachable``.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._is_network_reachable)

    def load(self, window: TimeWindow, reachable: bool | None = None) -> LoaderSnapshot:
        """Initialize on first activation, restart otherwise."""
        with self._lock:
            if not self._activated:
                return self.activate_first_time(window, reachable)
            return self.select_window(window, reachable)

    def activate_first_time(self, window: TimeWindow, reachable: bool | None = None) -> LoaderSnapshot:
        """Start the first fetch. Valid once per controller.

        Args:
            window: Window to load
            reachable: Result of a prior check_network(); checked inline when None

        Raises:
            LoaderStateError: a fetch was already started by this controller
        """
        with self._lock:
            if self._activated:
                raise LoaderStateError("Loader was already activated; use select_window to restart")
            self._window = window
            if not self._reachable(reachable):
                # First activation is only consumed by a started fetch
                self._settle_unreachable()
            else:
                self._start_fetch(window)
            return self.snapshot()

    def select_window(self, window: TimeWindow, reachable: bool | None = None) -> LoaderSnapshot:
        """Supersede any in-flight fetch and load ``window``."""
        with self._lock:
            self._generation += 1
            self._cancel_in_flight()
            self._window = window
            if not self._reachable(reachable):
                self._settle_unreachable()
            else:
                self._start_fetch(window)
            return self.snapshot()

    def on_network_unavailable(self) -> LoaderSnapshot:
        """Settle on NETWORK_UNREACHABLE without issuing a request."""
        with self._lock:
            self._settle_unreachable()
            return self.snapshot()

    def on_fetch_complete(self, generation: int, outcome: FetchResult) -> bool:
        """Apply a finished fetch. Returns False when the completion was discarded."""
        with self._lock:
            if generation != self._generation or self._phase != LoaderPhase.LOADING:
                logger.debug(
                    f"Discarding stale completion for generation {generation} "
                    f"(current {self._generation}, {self._phase.value})"
                )
                return False
            if outcome.error_type == FetchErrorType.CANCELLED:
                return False

            self._job = None
            try:
                result = self._to_load_result(outcome)
            except Exception:
                logger.exception(f"Could not convert response for generation {generation}")
                result = LoadResult.failure(ErrorKind.MALFORMED_ROOT, http_status=outcome.http_status)
            self._settle(result)
            return True

    def on_reset(self) -> None:
        """Clear the published result, keeping the generation."""
        with self._lock:
            self._cancel_in_flight()
            self._settle(LoadResult.empty())

    async def close(self) -> None:
        with self._lock:
            self._cancel_in_flight()
        await self._runner.close()

    # ---- internals ----

    def _reachable(self, reachable: bool | None) -> bool:
        if reachable is None:
            return self._is_network_reachable()
        return reachable

    def _start_fetch(self, window: TimeWindow) -> None:
        start_date = resolve(window, self._clock(), self._first_weekday)
        url = build_query_url(self._template, start_date)
        job = self._runner.start(self._generation, url)
        self._url = url
        self._job = job
        self._activated = True
        self._phase = LoaderPhase.LOADING
        self._publish(LoadResult.loading())
        if job.task is not None:
            job.task.add_done_callback(lambda _task, job=job: self._on_job_done(job))

    def _on_job_done(self, job: FetchJob) -> None:
        if job.cancelled or job.task is None or job.task.cancelled():
            logger.debug(f"Fetch job {job.id} finished after cancellation; ignored")
            return
        exc = job.task.exception()
        if exc is not None:
            logger.error(f"Fetch job {job.id} failed", exc_info=exc)
            outcome = FetchResult(
                success=False,
                error_type=FetchErrorType.NETWORK_UNREACHABLE,
                error_message=str(exc),
            )
        else:
            outcome = job.task.result()
        self.on_fetch_complete(job.id, outcome)

    def _to_load_result(self, outcome: FetchResult) -> LoadResult:
        if not outcome.success:
            error_type = outcome.error_type or FetchErrorType.NETWORK_UNREACHABLE
            logger.info(f"Load failed ({error_type.value}): {outcome.error_message}")
            return LoadResult.failure(ErrorKind(error_type.value), http_status=outcome.http_status)
        try:
            parsed = parse_articles(outcome.body or b"")
        except MalformedResponseError as e:
            logger.warning(f"Malformed response for generation {self._generation}: {e}")
            return LoadResult.failure(ErrorKind.MALFORMED_ROOT, http_status=outcome.http_status)
        logger.info(f"Loaded {len(parsed.articles)} articles for generation {self._generation}")
        return LoadResult.success(parsed.articles, skipped=parsed.skipped)

    def _cancel_in_flight(self) -> None:
        if self._job is not None:
            self._runner.cancel(self._job)
            self._job = None

    def _settle_unreachable(self) -> None:
        self._cancel_in_flight()
        logger.warning("Network unreachable; not starting a fetch")
        self._settle(LoadResult.failure(ErrorKind.NETWORK_UNREACHABLE))

    def _settle(self, result: LoadResult) -> None:
        self._phase = LoaderPhase.SETTLED
        self._publish(result)

    def _publish(self, result: LoadResult) -> None:
        self._result = result
        event = LoadEvent(generation=self._generation, result=result)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Load listener failed")
