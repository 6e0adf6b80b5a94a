from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from .blobstore import BlobStore
from .llm import AIContext, complete_structured
from .models import Article, clamp_score
from .pipelines import prompts
from .safety import has_serious_signals
from .storage import write_review
from .utils import log_event, utc_now_iso

MAX_REASONS = 5
HARD_REJECT_REASON = (
    "Not suitable for satire: source headline, title or subtitle carries clear serious "
    "signals (injury, death, violence or similar)."
)


@dataclass(frozen=True)
class QualityReview:
    article_id: str
    approved: bool
    score: int
    reasons: list[str] = field(default_factory=list)
    must_fix: list[str] = field(default_factory=list)
    rewrite_prompt: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def review_article(
    ai: AIContext,
    store: BlobStore | None,
    article: Article,
    *,
    skip_review: bool = False,
) -> QualityReview:
    """Score an article; serious headline signals reject without an LLM call."""
    review_id = article.id or article.slug
    if skip_review:
        return QualityReview(
            article_id=review_id, approved=True, score=100, timestamp=utc_now_iso()
        )

    if has_serious_signals(article.source_headline, article.title, article.subtitle):
        review = QualityReview(
            article_id=review_id,
            approved=False,
            score=0,
            reasons=[HARD_REJECT_REASON],
            timestamp=utc_now_iso(),
        )
        log_event(ai.logger, logging.INFO, "quality_hard_reject", id=review_id)
    else:
        review = _llm_review(ai, article, review_id)
        log_event(
            ai.logger,
            logging.INFO,
            "quality_reviewed",
            id=review_id,
            score=review.score,
            approved=review.approved,
        )

    if store is not None:
        write_review(store, review_id, review.to_dict())
    return review


def _llm_review(ai: AIContext, article: Article, review_id: str) -> QualityReview:
    min_score = ai.config.review.approve_min_score
    prompt = f"""
You are the FINAL EDITOR of a lighthearted satirical news site.

Goal:
- Only publish pieces that are genuinely playful and funny.
- Not mean, not awkward, not explanatory.

The seriousness check on headline, title and subtitle has already been done. The body
may contain serious-sounding words as a joke. Judge quality, humour and rhythm.

Input:
- source_headline: "{article.source_headline or ''}"
- category: "{article.category}"
- author: "{article.author}"

TITLE: "{article.title}"
SUBTITLE: "{article.subtitle}"
BODY:
{article.content}

Judge strictly on:
1) First sentence: funny straight away, no run-up.
2) Playful: hard on systems and behaviour, never on vulnerable people.
3) Rhythm: short paragraphs with blank lines, no lists or headings.
4) Escalation: increasingly absurd but logical within its own world.
5) Punchline: dry and abrupt, in the last paragraph.

Give a score 0-100 and only approve at {min_score} or higher.

Output ONLY valid JSON in this schema:
{prompts.QUALITY_HINT}
At most {MAX_REASONS} short reasons and {MAX_REASONS} concrete fixes. rewrite_prompt is
empty when approved.
""".strip()
    data = complete_structured(
        ai,
        "structured",
        prompt,
        prompts.QUALITY_SCHEMA,
        prompts.QUALITY_HINT,
        temperature=ai.config.llm.structured_temperature,
        max_tokens=ai.config.llm.max_tokens_structured,
        step="quality_review",
    )
    score = clamp_score(data.get("score"))
    approved = data.get("approved") is True and score >= min_score
    return QualityReview(
        article_id=review_id,
        approved=approved,
        score=score,
        reasons=[str(item) for item in data.get("reasons") or []][:MAX_REASONS],
        must_fix=[str(item) for item in data.get("must_fix") or []][:MAX_REASONS],
        rewrite_prompt="" if approved else str(data.get("rewrite_prompt") or "")[:2000],
        timestamp=utc_now_iso(),
    )
