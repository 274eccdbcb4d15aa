"""Fetch job management for search requests.

Provides:
- FetchJob, one cancellable request identified by its generation token
- FetchJobRunner, which starts jobs as asyncio tasks and cancels them
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from worldnews.core.news_fetcher import FetchResult, NewsFetcher
from worldnews.core.query_url import redact_url

logger = logging.getLogger(__name__)


class FetchStatus(str, Enum):
    """Status of a fetch job."""

    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class FetchJob:
    """Tracks state of a single search request."""

    id: int  # Generation token
    url: str
    status: FetchStatus = FetchStatus.RUNNING
    cancelled: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    task: asyncio.Task[FetchResult] | None = field(default=None, repr=False, compare=False)

    @property
    def in_flight(self) -> bool:
        return self.status == FetchStatus.RUNNING

    async def wait(self) -> FetchResult:
        """Wait for the request to finish.

        A cancelled job resolves to a CANCELLED result instead of raising.
        """
        if self.task is None:
            raise RuntimeError(f"Fetch job {self.id} was never started")
        try:
            return await asyncio.shield(self.task)
        except asyncio.CancelledError:
            if self.cancelled and self.task.cancelled():
                return FetchResult.cancelled()
            raise

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "id": self.id,
            "url": self.url,
            "status": self.status.value,
            "cancelled": self.cancelled,
            "started_at": self.started_at.isoformat(),
        }


class FetchJobRunner:
    """Starts fetch jobs as independent tasks on the running event loop."""

    def __init__(self, fetcher: NewsFetcher) -> None:
        self._fetcher = fetcher

    def start(self, job_id: int, url: str) -> FetchJob:
        """Start fetching ``url`` and return the job handle immediately.

        Must be called from the event loop thread.
        """
        job = FetchJob(id=job_id, url=url)
        job.task = asyncio.get_running_loop().create_task(self._run(job))
        logger.info(f"Fetch job {job.id} started: {redact_url(url)}")
        return job

    async def _run(self, job: FetchJob) -> FetchResult:
        status = FetchStatus.FAILED
        try:
            result = await self._fetcher.fetch(job.url)
            status = FetchStatus.COMPLETED
            return result
        except asyncio.CancelledError:
            status = FetchStatus.CANCELLED
            raise
        finally:
            if job.status == FetchStatus.RUNNING:
                job.status = status

    def cancel(self, job: FetchJob) -> None:
        """Cancel ``job``. Idempotent and non-blocking."""
        if job.cancelled:
            return
        job.cancelled = True
        if job.status == FetchStatus.RUNNING:
            job.status = FetchStatus.CANCELLED
        if job.task is not None and not job.task.done():
            job.task.cancel()
        logger.debug(f"Fetch job {job.id} cancelled")

    async def close(self) -> None:
        await self._fetcher.close()
