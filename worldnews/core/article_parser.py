"""Parsing of search API responses into Article records."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from worldnews.providers.content_types import Article

logger = logging.getLogger(__name__)

# API field name -> Article attribute
ARTICLE_FIELDS = {
    "webTitle": "title",
    "sectionName": "section",
    "webPublicationDate": "published_at",
    "webUrl": "url",
}


class MalformedResponseError(ValueError):
    """Response body does not contain the ``response.results`` envelope."""

    kind = "malformed_root"


@dataclass(frozen=True)
class ParsedArticles:
    """Articles in API order plus the number of entries that were skipped."""

    articles: tuple[Article, ...]
    skipped: int = 0


def _parse_entry(entry: Any) -> Article | None:
    if not isinstance(entry, dict):
        return None
    values: dict[str, str] = {}
    for api_name, attr in ARTICLE_FIELDS.items():
        value = entry.get(api_name)
        if not isinstance(value, str):
            return None
        values[attr] = value
    return Article(**values)


def parse_articles(body: bytes) -> ParsedArticles:
    """Parse a search response body.

    A single malformed entry is skipped and counted; it never fails the
    whole response. An empty ``results`` list is a valid, empty result.

    Raises:
        MalformedResponseError: body is not JSON or lacks ``response.results``
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        # JSONDecodeError and UnicodeDecodeError are both ValueErrors
        raise MalformedResponseError(f"Response is not JSON: {e}") from e
    except RecursionError as e:
        raise MalformedResponseError("Response is nested too deeply to decode") from e

    response = data.get("response") if isinstance(data, dict) else None
    if not isinstance(response, dict):
        raise MalformedResponseError("Response has no 'response' object")

    results = response.get("results")
    if not isinstance(results, list):
        raise MalformedResponseError("Response has no 'results' list")

    articles: list[Article] = []
    skipped = 0
    for index, entry in enumerate(results):
        article = _parse_entry(entry)
        if article is None:
            skipped += 1
            logger.debug(f"Skipping malformed result at index {index}")
            continue
        articles.append(article)

    if skipped:
        logger.info(f"Parsed {len(articles)} articles, skipped {skipped} malformed")

    return ParsedArticles(articles=tuple(articles), skipped=skipped)
