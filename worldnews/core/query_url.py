"""Request URL construction for date-bounded searches.

The whole URL is percent-encoded first, then the delimiters the API's query
grammar needs literal are restored. Restored characters never contain ``%``,
so one restore step can never create a sequence matched by a later one.
"""

from __future__ import annotations

from datetime import date
from urllib.parse import quote, urlsplit, urlunsplit

from worldnews.core.date_range import format_date

FROM_DATE_PARAM = "from-date"
API_KEY_PARAM = "api-key"

# Applied in order. %20 becomes a literal "+"; a "+" in the input stays %2B.
RESTORE_SEQUENCES: tuple[tuple[str, str], ...] = (
    ("%21", "!"),
    ("%3A", ":"),
    ("%2F", "/"),
    ("%3F", "?"),
    ("%26", "&"),
    ("%3D", "="),
    ("%27", "'"),
    ("%28", "("),
    ("%29", ")"),
    ("%20", "+"),
    ("%7E", "~"),
)


def encode_url(raw: str) -> str:
    """Percent-encode ``raw`` and restore the structural characters."""
    encoded = quote(raw, safe="")
    for sequence, literal in RESTORE_SEQUENCES:
        encoded = encoded.replace(sequence, literal)
    return encoded


def build_query_url(base_template: str, start_date: date) -> str:
    """Append the from-date filter to ``base_template`` and encode the result.

    Args:
        base_template: Unencoded endpoint plus fixed query parameters
        start_date: First day of the requested window

    Returns:
        Absolute URL ready to send.
    """
    return encode_url(f"{base_template}&{FROM_DATE_PARAM}={format_date(start_date)}")


def redact_url(url: str) -> str:
    """Mask the ``api-key`` value in ``url`` for log output."""
    parts = urlsplit(url)
    pairs = [
        f"{API_KEY_PARAM}=***" if pair.startswith(f"{API_KEY_PARAM}=") else pair
        for pair in parts.query.split("&")
    ]
    return urlunsplit(parts._replace(query="&".join(pairs)))
