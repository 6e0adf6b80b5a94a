from __future__ import annotations

import logging
import re

from bs4 import BeautifulSoup

from ..ingest import FetchError, TextFetcher
from ..utils import log_event


def fetch_readable_text(
    fetch: TextFetcher,
    url: str,
    *,
    max_chars: int,
    logger: logging.Logger,
) -> str | None:
    try:
        html = fetch(url)
    except FetchError as exc:
        log_event(logger, logging.WARNING, "content_fetch_failed", url=url, error=str(exc))
        return None
    text = extract_readable_text(html)
    return text[:max_chars] if text else None


def extract_readable_text(html: str) -> str:
    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "nav", "footer", "header", "aside", "form", "noscript"]):
        tag.decompose()
    article = soup.find("article")
    if article:
        return _normalize_text(article.get_text(" ", strip=True))
    paragraphs = [p.get_text(" ", strip=True) for p in soup.find_all("p")]
    joined = " ".join(p for p in paragraphs if p)
    if len(joined) > 200:
        return _normalize_text(joined)
    best = None
    best_len = 0
    for div in soup.find_all("div"):
        text = div.get_text(" ", strip=True)
        if len(text) > best_len:
            best_len = len(text)
            best = text
    if best:
        return _normalize_text(best)
    return _normalize_text(soup.get_text(" ", strip=True))


def _normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()
