"""Provider-agnostic content types for news articles."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

PUBLISHED_AT_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
DISPLAY_DATE_FORMAT = "%b. %d, %Y"


@dataclass(frozen=True)
class Article:
    """A news article from the search API."""

    title: str
    section: str
    published_at: str  # ISO-8601 UTC, e.g. 2023-05-01T09:00:00Z
    url: str

    @property
    def display_date(self) -> str | None:
        return format_published_date(self.published_at)

    def display_date_in(self, tz: tzinfo | None) -> str | None:
        return format_published_date(self.published_at, tz)

    def to_dict(self, tz: tzinfo | None = None) -> dict[str, str | None]:
        """Convert to dict for JSON serialization."""
        return {
            "title": self.title,
            "section": self.section,
            "published_at": self.published_at,
            "url": self.url,
            "display_date": self.display_date_in(tz),
        }


def format_published_date(value: str | None, tz: tzinfo | None = None) -> str | None:
    """Format an ISO publication instant as e.g. ``Jun. 14, 2023``.

    The calendar date is taken in ``tz``, or UTC when it is None.
    Returns None when the value does not match ``yyyy-MM-ddTHH:mm:ssZ``.
    """
    if not value:
        return None
    try:
        published = datetime.strptime(value, PUBLISHED_AT_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
    if tz is not None:
        published = published.astimezone(tz)
    return published.strftime(DISPLAY_DATE_FORMAT)
