from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from .utils import parse_iso, utc_now

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _created(article: dict[str, Any]) -> datetime:
    return parse_iso(article.get("created_date")) or _EPOCH


def _clear(article: dict[str, Any]) -> None:
    article["is_featured"] = False
    article["featured_at"] = None
    article["featured_until"] = None


def _is_short(article: dict[str, Any]) -> bool:
    return bool(article.get("is_short_news")) or article.get("article_type") == "short"


def apply_featured_rules(
    articles: list[dict[str, Any]],
    max_featured: int,
    ttl_hours: float,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Rotate the featured slots in place and return ``articles``."""
    now = now or utc_now()
    until = (now + timedelta(hours=ttl_hours)).isoformat()

    for article in articles:
        if article.get("is_featured") and article.get("featured_until"):
            expires = parse_iso(article.get("featured_until"))
            if expires is not None and expires <= now:
                _clear(article)

    pool = [article for article in articles if article.get("featured_candidate")]
    if not pool:
        pool = [article for article in articles if not article.get("is_short_news")]
    pool.sort(key=_created, reverse=True)
    chosen = {id(article) for article in pool[: max(0, max_featured)]}

    for article in articles:
        if id(article) in chosen:
            article["is_featured"] = True
            if not article.get("featured_at"):
                article["featured_at"] = now.isoformat()
            article["featured_until"] = until
        else:
            _clear(article)
        article.pop("featured_candidate", None)
    return articles


def ensure_featured(
    articles: list[dict[str, Any]],
    featured_categories: list[str],
    ttl_hours: float,
    now: datetime | None = None,
) -> dict[str, Any] | None:
    """Force one featured article when the rotation left none."""
    if not articles or any(article.get("is_featured") for article in articles):
        return None
    fallback = next((article for article in articles if not _is_short(article)), None)
    if fallback is None:
        fallback = next(
            (article for article in articles if article.get("category") in featured_categories),
            None,
        )
    if fallback is None:
        fallback = articles[0]
    now = now or utc_now()
    fallback["is_featured"] = True
    fallback["featured_at"] = now.isoformat()
    fallback["featured_until"] = (now + timedelta(hours=ttl_hours)).isoformat()
    return fallback
