from __future__ import annotations

import logging
import time
from functools import partial
from typing import Callable
from urllib.error import HTTPError, URLError
from urllib.parse import quote_plus
from urllib.request import Request, urlopen

import feedparser

from .config import HttpConfig
from .models import NewsItem
from .text import clean_text, is_too_generic
from .utils import log_event

logger = logging.getLogger("saitire.ingest")

TextFetcher = Callable[[str], str]


class FetchError(ValueError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _fetch_url(
    url: str,
    headers: dict[str, str],
    timeout: int,
    max_retries: int,
    backoff_seconds: int,
) -> tuple[int | None, bytes | None, str | None]:
    attempt = 0
    while attempt <= max_retries:
        try:
            request = Request(url, headers=headers)
            with urlopen(request, timeout=timeout) as response:
                status = response.getcode()
                content = response.read()
            return status, content, None
        except HTTPError as exc:
            return exc.code, exc.read(), str(exc)
        except (URLError, TimeoutError) as exc:
            if attempt >= max_retries:
                return None, None, str(exc)
            time.sleep(backoff_seconds * (attempt + 1))
            attempt += 1
    return None, None, "unknown_fetch_error"


def fetch_text(
    url: str,
    *,
    timeout_seconds: int,
    user_agent: str,
    max_retries: int = 0,
    backoff_seconds: int = 1,
) -> str:
    status, content, error = _fetch_url(
        url,
        {"User-Agent": user_agent},
        timeout_seconds,
        max_retries,
        backoff_seconds,
    )
    if status is None:
        raise FetchError(f"network_error: {error}")
    if status < 200 or status >= 300:
        raise FetchError(f"http_error {status} for {url}", status=status)
    return (content or b"").decode("utf-8", errors="replace")


def make_fetcher(http: HttpConfig) -> TextFetcher:
    return partial(
        fetch_text,
        timeout_seconds=http.timeout_seconds,
        user_agent=http.user_agent,
        max_retries=http.max_retries,
        backoff_seconds=http.backoff_seconds,
    )


def parse_feed_items(xml: str) -> list[NewsItem]:
    parsed = feedparser.parse(xml)
    items = []
    for entry in parsed.entries:
        items.append(
            NewsItem(
                title=clean_text(entry.get("title")),
                link=clean_text(entry.get("link")) or None,
                pub_date=entry.get("published") or entry.get("updated") or None,
            )
        )
    return items


def news_search_url(template: str, query: str) -> str:
    return template.format(q=quote_plus(query))


def fetch_news_items(
    fetch: TextFetcher, template: str, query: str, limit: int
) -> list[NewsItem]:
    """Recent news for ``query``; upstream failures count as no news."""
    url = news_search_url(template, query)
    try:
        xml = fetch(url)
    except FetchError as exc:
        log_event(logger, logging.WARNING, "news_fetch_failed", query=query, error=str(exc))
        return []
    return parse_feed_items(xml)[:limit]


def fetch_headlines(fetch: TextFetcher, template: str, query: str, limit: int) -> list[str]:
    items = fetch_news_items(fetch, template, query, limit)
    return [item.title for item in items if item.title]


def fetch_trends(fetch: TextFetcher, url: str, limit: int) -> list[str]:
    xml = fetch(url)
    trends = []
    for item in parse_feed_items(xml):
        title = clean_text(item.title)
        if title and not is_too_generic(title):
            trends.append(title)
    return trends[: max(limit * 2, 20)]
