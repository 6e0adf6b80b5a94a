from __future__ import annotations

import logging
import os
import random
from collections import Counter
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

from .blobstore import BlobStore
from .config import Config, ConfigError
from .editors import DEFAULT_EDITORS, pick_editor_for_category
from .featured import apply_featured_rules, ensure_featured
from .feedback import FeedbackCaps, build_feedback_context
from .images import ImageProvider, attach_image
from .ingest import TextFetcher, fetch_trends
from .llm import AIContext, missing_credentials
from .models import Article, Editor
from .notify import Notifier
from .pipelines.analysis import check_ludic_suitability, classify_category, extract_person_names
from .pipelines.trend_context import build_trend_context
from .pipelines.writing import (
    DraftRequest,
    GenerationError,
    final_editor_pass,
    generate_article,
    punch_up_rewrite,
    writers_room_notes,
)
from .quality import review_article
from .safety import check_people, run_actuality_checks
from .selection import count_investigations_today, pick_article_type, weighted_pick
from .services.profile_service import load_prompt_rules
from .storage import (
    PUBLISHED_KEY,
    prepend_unique,
    push_pending,
    read_feedback_tail,
    read_published,
    update_json,
)
from .text import FALLBACK_SUBTITLE, clean_text, fallback_title, finalize_content, slugify
from .utils import json_dumps, log_event, utc_now_iso

PENDING = "pending"
PUBLISHED = "published"
SKIPPED = "skipped"


@dataclass(frozen=True)
class PublishOptions:
    force: bool = False
    dry_run: bool = False
    limit: int | None = None
    news_per_trend: int | None = None
    force_investigation: bool = False
    no_review: bool = False
    no_llm: bool = False


@dataclass
class RunState:
    existing_slugs: set[str]
    existing_sources: set[str]
    all_for_quota: list[dict[str, Any]]
    feedback_rows: list[dict[str, Any]]
    written_count: int = 0
    pending_count: int = 0
    new_articles: list[Article] = field(default_factory=list)
    skipped: Counter = field(default_factory=Counter)


@dataclass
class PublishReport:
    run_started_at: str
    run_finished_at: str = ""
    dry_run: bool = False
    limit: int = 0
    trends: int = 0
    written: int = 0
    published: int = 0
    pending: int = 0
    skipped: dict[str, int] = field(default_factory=dict)
    published_slugs: list[str] = field(default_factory=list)
    preview: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TrendOutcome:
    kind: str
    reason: str = ""


def _skip(reason: str) -> TrendOutcome:
    return TrendOutcome(SKIPPED, reason)


def effective_config(config: Config, options: PublishOptions) -> Config:
    publish_cfg = config.publish
    if options.limit is not None:
        publish_cfg = replace(publish_cfg, limit=max(1, options.limit))
    if options.news_per_trend is not None:
        publish_cfg = replace(publish_cfg, news_per_trend=max(1, options.news_per_trend))
    return replace(config, publish=publish_cfg)


def check_credentials(config: Config, options: PublishOptions) -> None:
    if options.no_llm and not options.dry_run:
        raise ConfigError("llm disabled: run with --dry-run --no-llm or enable the llm")
    if options.no_llm and options.dry_run:
        return
    missing = missing_credentials(config.llm)
    if missing:
        raise ConfigError(
            "missing api key for llm roles: "
            + ", ".join(missing)
            + " (set the key or run with --dry-run --no-llm)"
        )


def run_publish(
    ai: AIContext,
    store: BlobStore,
    fetch: TextFetcher,
    options: PublishOptions,
    *,
    rng: random.Random | None = None,
    editors: list[Editor] | None = None,
    image_provider: ImageProvider | None = None,
    notifier: Notifier | None = None,
) -> PublishReport:
    """Run one publish batch over the current trends."""
    config = effective_config(ai.config, options)
    check_credentials(config, options)
    rng = rng or random.Random()
    editors = editors or list(DEFAULT_EDITORS)
    logger = ai.logger
    limit = config.publish.limit

    report = PublishReport(run_started_at=utc_now_iso(), dry_run=options.dry_run, limit=limit)
    log_event(
        logger,
        logging.INFO,
        "publish_started",
        limit=limit,
        dry_run=options.dry_run,
        force=options.force,
        human_review=config.review.human_review,
        force_all_to_pending=config.review.force_all_to_pending,
    )

    existing = read_published(store)
    state = RunState(
        existing_slugs={item.get("slug") for item in existing if item.get("slug")},
        existing_sources={item.get("source_url") for item in existing if item.get("source_url")},
        all_for_quota=list(existing),
        feedback_rows=read_feedback_tail(store, config.feedback.lookback_lines),
    )
    ai = replace(ai, config=config, rules=tuple(load_prompt_rules(store)))

    trends = fetch_trends(fetch, config.feeds.trends_rss_url, limit)
    report.trends = len(trends)
    log_event(logger, logging.INFO, "trends_found", count=len(trends))

    if options.no_llm and options.dry_run:
        report.preview = trends[:limit]
        for index, trend in enumerate(report.preview, 1):
            log_event(logger, logging.INFO, "trend_preview", index=index, trend=trend)
        return _finish(report, state)

    for trend in trends:
        if state.written_count >= limit:
            break
        try:
            outcome = _process_trend(
                ai, store, fetch, options, state, trend, rng, editors, image_provider, notifier
            )
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.ERROR, "trend_failed", trend=trend, error=str(exc))
            outcome = _skip("error")
        if outcome.kind == SKIPPED:
            state.skipped[outcome.reason] += 1
            log_event(logger, logging.INFO, "trend_skipped", trend=trend, reason=outcome.reason)
            continue
        state.written_count += 1
        if outcome.kind == PENDING:
            state.pending_count += 1

    if options.dry_run:
        for article in state.new_articles:
            log_event(
                logger,
                logging.INFO,
                "dry_run_would_publish",
                slug=article.slug,
                category=article.category,
                article_type=article.article_type,
                topic_mode=article.topic_mode,
                source=article.source_url or "(societal_pulse)",
            )
        return _finish(report, state)

    if not state.new_articles:
        log_event(
            logger,
            logging.INFO,
            "nothing_published",
            written=state.written_count,
            pending=state.pending_count,
        )
        return _finish(report, state)

    new_items = [article.to_dict(include_transient=True) for article in state.new_articles]
    persist_published(store, config, new_items)
    log_event(logger, logging.INFO, "published_written", count=len(state.new_articles))
    return _finish(report, state)


def persist_published(
    store: BlobStore, config: Config, new_items: list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Merge new items ahead of the stored collection, rotate featured, write."""

    def _mutate(existing: list[dict[str, Any]]) -> list[dict[str, Any]]:
        merged = list(existing)
        for item in reversed(new_items):
            merged = prepend_unique(merged, dict(item), config.publish.max_published)
        apply_featured_rules(merged, config.featured.max_featured, config.featured.ttl_hours)
        ensure_featured(merged, config.featured.categories, config.featured.ttl_hours)
        return merged

    return update_json(store, PUBLISHED_KEY, [], _mutate)


def _finish(report: PublishReport, state: RunState) -> PublishReport:
    report.run_finished_at = utc_now_iso()
    report.written = state.written_count
    report.pending = state.pending_count
    report.published = len(state.new_articles)
    report.published_slugs = [article.slug for article in state.new_articles]
    report.skipped = dict(state.skipped)
    return report


def _process_trend(
    ai: AIContext,
    store: BlobStore,
    fetch: TextFetcher,
    options: PublishOptions,
    state: RunState,
    trend: str,
    rng: random.Random,
    editors: list[Editor],
    image_provider: ImageProvider | None,
    notifier: Notifier | None,
) -> TrendOutcome:
    config = ai.config
    logger = ai.logger

    topic_mode = weighted_pick(config.publish.topic_mode_weights, rng)
    article_type = pick_article_type(
        config.publish.article_type_weights,
        rng,
        investigations_today=count_investigations_today(state.all_for_quota, config.app.timezone),
        max_investigations_per_day=config.publish.max_investigations_per_day,
        force_investigation=options.force_investigation,
    )
    log_event(
        logger,
        logging.INFO,
        "trend_started",
        trend=trend,
        topic_mode=topic_mode,
        article_type=article_type,
    )

    context = build_trend_context(
        ai, fetch, trend, topic_mode, state.existing_sources, force=options.force
    )
    if context is None:
        return _skip("no_context")
    news = context.news
    actual_trend = context.actual_trend

    suitability = check_ludic_suitability(ai, actual_trend, news.title)
    if not suitability.suitable:
        log_event(
            logger, logging.INFO, "ludic_unsuitable", trend=actual_trend, reason=suitability.reason
        )
        return _skip("unsuitable")

    category = classify_category(ai, actual_trend, news.title)
    editor = pick_editor_for_category(editors, category, rng)
    feedback_context = build_feedback_context(
        state.feedback_rows,
        category,
        editor.id,
        editor.name,
        FeedbackCaps.from_config(config.feedback),
    )
    log_event(
        logger,
        logging.INFO,
        "context_ready",
        headline=news.title,
        category=category,
        editor=editor.id,
        feedback=bool(feedback_context.strip()),
    )

    request = DraftRequest(
        trend=actual_trend,
        headline=news.title,
        link=news.link,
        source_summary=context.source_summary,
        category=category,
        editor=editor,
        article_type=article_type,
        topic_mode=topic_mode,
        feedback_context=feedback_context,
    )
    try:
        draft = generate_article(ai, request)
    except GenerationError as exc:
        log_event(logger, logging.WARNING, "generation_failed", trend=actual_trend, error=str(exc))
        return _skip("generation_failed")
    if draft.skip:
        log_event(
            logger, logging.INFO, "generator_skipped", trend=actual_trend, reason=draft.reason
        )
        return _skip("generator_skip")

    notes = writers_room_notes(ai, draft, article_type, topic_mode)
    punched = punch_up_rewrite(ai, request, draft, notes)
    final = final_editor_pass(ai, editor, punched, article_type, rng)

    title = clean_text(final.title or fallback_title(actual_trend))
    subtitle = clean_text(final.subtitle or FALLBACK_SUBTITLE)
    slug = slugify(title)
    if not slug:
        return _skip("invalid_slug")
    if not options.force and slug in state.existing_slugs:
        log_event(logger, logging.INFO, "slug_exists", slug=slug)
        return _skip("duplicate_slug")

    content = finalize_content(final.content, article_type)
    trending = topic_mode == "trending"
    article = Article(
        slug=slug,
        title=title,
        subtitle=subtitle,
        category=category,
        content=content,
        topic_mode=topic_mode,
        article_type=article_type,
        author=editor.name or config.app.author,
        created_date=utc_now_iso(),
        source_url=news.link if trending else None,
        source_headline=news.title if trending else None,
        editor_id=editor.id,
        editor_name=editor.name,
        editor_role=editor.role,
        featured_candidate=category in config.featured.categories,
    )

    if trending:
        actuality = run_actuality_checks(ai, fetch, title, subtitle, content)
        if not actuality.ok:
            log_event(
                logger,
                logging.INFO,
                "queued_actuality",
                slug=slug,
                reason=actuality.reason,
                claim=actuality.failed_claim,
            )
            if not options.dry_run and config.review.human_review:
                article.featured_candidate = False
                article.author = editor.name or config.app.author
                article.set_review("needs_human", 0, actuality.review_notes(), None)
                push_pending(store, article.to_dict(), config.publish.max_pending)
                if notifier is not None:
                    notifier(title, 0, "Actuality check")
            return TrendOutcome(PENDING, "actuality")

    people = extract_person_names(ai, news.title, title, subtitle, content)
    person_hit = check_people(fetch, config.feeds.news_rss_template, people, logger)
    if person_hit.hit:
        log_event(logger, logging.INFO, "person_filter_skip", slug=slug, reason=person_hit.reason)
        return _skip("person_filter")

    attach_image(image_provider, article, actual_trend)

    review = review_article(
        ai,
        None if options.dry_run else store,
        article,
        skip_review=options.no_review,
    )
    article.set_review(
        "approved" if review.approved else "rejected",
        review.score,
        review.reasons,
        review.article_id,
    )

    review_cfg = config.review
    needs_human = review_cfg.force_all_to_pending or (
        review_cfg.human_review
        and (not review.approved or review.score < review_cfg.score_below)
    )
    if needs_human:
        log_event(logger, logging.INFO, "queued_for_review", slug=slug, score=review.score)
        if not options.dry_run:
            article.review_status = "needs_human"
            push_pending(store, article.to_dict(), config.publish.max_pending)
            if notifier is not None:
                notifier(title, review.score, "Pending review")
        return TrendOutcome(PENDING, "review")

    log_event(logger, logging.INFO, "approved", slug=slug, score=review.score)
    state.new_articles.append(article)
    state.all_for_quota.insert(0, article.to_dict())
    state.existing_slugs.add(slug)
    return TrendOutcome(PUBLISHED)


def write_run_report(report_dir: str, report: PublishReport) -> str:
    Path(report_dir).mkdir(parents=True, exist_ok=True)
    timestamp = (
        report.run_started_at.replace(":", "")
        .replace("-", "")
        .replace("+", "")
        .replace("T", "")
        .split(".")[0]
    )
    path = os.path.join(report_dir, f"run-{timestamp}.json")
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(json_dumps(report.to_dict(), indent=2) + "\n")
    return path
