"""Guardian content API query template."""

from __future__ import annotations

from dataclasses import dataclass

from worldnews.core.settings import Settings

GUARDIAN_SEARCH_URL = "https://content.guardianapis.com/search"


@dataclass(frozen=True)
class QueryTemplate:
    """Fixed part of a search request. The ``from-date`` filter is appended per request.

    The API caps results at 10 per page for the "test" key; pagination is not used.
    """

    endpoint: str = GUARDIAN_SEARCH_URL
    section: str = "world"
    order_by: str = "oldest"  # oldest first makes the from-date visible in the list
    output_format: str = "json"
    api_key: str = "test"

    @classmethod
    def from_settings(cls, settings: Settings) -> QueryTemplate:
        return cls(
            endpoint=settings.news_api_url,
            section=settings.news_section,
            order_by=settings.news_order_by,
            output_format=settings.news_format,
            api_key=settings.news_api_key,
        )

    def render(self) -> str:
        """Render the template as an unencoded URL string."""
        return (
            f"{self.endpoint}?section={self.section}"
            f"&order-by={self.order_by}"
            f"&format={self.output_format}"
            f"&api-key={self.api_key}"
        )
