"""HTTP fetcher for search API responses.

Thin wrapper over httpx that classifies transport failures instead of raising.
Cancellation is left to the caller's task: cancelling the awaiting task aborts
the request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import httpx

from worldnews.core.query_url import redact_url

logger = logging.getLogger(__name__)


class FetchErrorType(str, Enum):
    """Classification of fetch errors."""

    NETWORK_UNREACHABLE = "network_unreachable"
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    CANCELLED = "cancelled"


@dataclass
class FetchResult:
    """Result of a single fetch."""

    success: bool
    body: bytes | None = None
    error_type: FetchErrorType | None = None
    error_message: str | None = None
    http_status: int | None = None

    @classmethod
    def cancelled(cls) -> FetchResult:
        return cls(
            success=False,
            error_type=FetchErrorType.CANCELLED,
            error_message="Request was superseded",
        )


# HTTP timeout
FETCH_TIMEOUT = 30.0


class NewsFetcher:
    """Fetches raw response bodies from the search API."""

    def __init__(self, timeout: float = FETCH_TIMEOUT, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                transport=self._transport,
                headers={
                    "User-Agent": "worldnews/1.0",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str) -> FetchResult:
        """Fetch ``url`` and return its body or a classified error.

        Args:
            url: Fully encoded request URL.

        Returns:
            FetchResult with the body or error information.
        """
        try:
            client = await self._get_client()
            response = await client.get(url)

            if response.status_code >= 400:
                return FetchResult(
                    success=False,
                    error_type=FetchErrorType.HTTP_STATUS,
                    error_message=f"HTTP error: {response.status_code}",
                    http_status=response.status_code,
                )

            return FetchResult(
                success=True,
                body=response.content,
                http_status=response.status_code,
            )

        except httpx.TimeoutException:
            return FetchResult(
                success=False,
                error_type=FetchErrorType.TIMEOUT,
                error_message=f"Request timed out after {self._timeout}s",
            )

        except httpx.ConnectError as e:
            return FetchResult(
                success=False,
                error_type=FetchErrorType.NETWORK_UNREACHABLE,
                error_message=f"Connection error: {e}",
            )

        except httpx.HTTPError as e:
            logger.exception(f"Unexpected transport error fetching {redact_url(url)}")
            return FetchResult(
                success=False,
                error_type=FetchErrorType.NETWORK_UNREACHABLE,
                error_message=f"Unexpected error: {type(e).__name__}: {e}",
            )
