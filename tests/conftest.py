import asyncio
import json

import pytest

from worldnews.core.news_fetcher import FetchResult


def results_body(*titles: str) -> bytes:
    """Search API body with one well-formed result per title."""
    results = [
        {
            "sectionName": "World news",
            "webPublicationDate": "2023-06-14T09:00:00Z",
            "webTitle": title,
            "webUrl": f"https://www.theguardian.com/world/{title.lower().replace(' ', '-')}",
        }
        for title in titles
    ]
    return json.dumps({"response": {"status": "ok", "results": results}}).encode()


class GatedFetcher:
    """Fetcher whose requests block until released by the test."""

    def __init__(self) -> None:
        self.requested: list[str] = []
        self.closed = False
        self._gates: dict[str, asyncio.Event] = {}
        self._results: dict[str, FetchResult] = {}

    def _gate(self, url: str) -> asyncio.Event:
        return self._gates.setdefault(url, asyncio.Event())

    async def fetch(self, url: str) -> FetchResult:
        self.requested.append(url)
        await self._gate(url).wait()
        return self._results[url]

    def release(self, url: str, result: FetchResult) -> None:
        self._results[url] = result
        self._gate(url).set()

    def release_body(self, url: str, body: bytes) -> None:
        self.release(url, FetchResult(success=True, body=body, http_status=200))

    async def close(self) -> None:
        self.closed = True


async def settle_tasks() -> None:
    """Let pending tasks and their done callbacks run."""
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.fixture
def gated_fetcher():
    return GatedFetcher()
