from __future__ import annotations

import logging
from dataclasses import dataclass

from ..ingest import TextFetcher, fetch_news_items
from ..llm import AIContext
from ..models import NewsItem
from ..text import clean_text
from ..utils import log_event
from .analysis import generate_societal_hook, summarize_source
from .content_fetch import fetch_readable_text


@dataclass(frozen=True)
class TrendContext:
    news: NewsItem
    actual_trend: str
    source_summary: list[str] | None


def pick_news_item(items: list[NewsItem]) -> NewsItem | None:
    if not items:
        return None
    for item in items:
        if item.title and item.link:
            return item
    return items[0]


def build_trend_context(
    ai: AIContext,
    fetch: TextFetcher,
    trend: str,
    topic_mode: str,
    used_sources: set[str],
    force: bool = False,
) -> TrendContext | None:
    """Anchor a trend to a news hook, or return None to skip the trend."""
    if topic_mode == "societal_pulse":
        hook = generate_societal_hook(ai)
        if hook is None:
            log_event(
                ai.logger,
                logging.INFO,
                "trend_skipped",
                trend=trend,
                reason="no_societal_hook",
            )
            return None
        return TrendContext(
            news=NewsItem(title=hook.title, link=None),
            actual_trend=hook.trend,
            source_summary=None,
        )

    cfg = ai.config
    items = fetch_news_items(fetch, cfg.feeds.news_rss_template, trend, cfg.publish.news_per_trend)
    chosen = pick_news_item(items)
    if chosen is None:
        log_event(ai.logger, logging.INFO, "trend_skipped", trend=trend, reason="no_news_context")
        return None
    news = NewsItem(
        title=clean_text(chosen.title),
        link=clean_text(chosen.link) or None,
        pub_date=chosen.pub_date,
    )
    if not force and news.link and news.link in used_sources:
        log_event(
            ai.logger,
            logging.INFO,
            "trend_skipped",
            trend=trend,
            reason="source_already_used",
        )
        return None

    source_summary = None
    if news.link:
        try:
            readable = fetch_readable_text(
                fetch,
                news.link,
                max_chars=cfg.publish.source_text_max_chars,
                logger=ai.logger,
            )
            if readable:
                source_summary = summarize_source(ai, news.title, readable) or None
        except Exception as exc:  # noqa: BLE001
            log_event(
                ai.logger,
                logging.WARNING,
                "source_summary_failed",
                trend=trend,
                error=str(exc),
            )
            source_summary = None
    if source_summary:
        log_event(
            ai.logger,
            logging.INFO,
            "source_summary",
            trend=trend,
            bullets=len(source_summary),
        )
    return TrendContext(news=news, actual_trend=trend, source_summary=source_summary)
