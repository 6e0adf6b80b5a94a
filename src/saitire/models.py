from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any

CATEGORIES = ["politiek", "binnenland", "buitenland", "tech", "lifestyle", "sport", "cultuur"]
FALLBACK_CATEGORY = "binnenland"

TOPIC_MODES = ("trending", "societal_pulse")
ARTICLE_TYPES = ("normal", "short", "investigation")

REVIEW_STATUSES = {
    "needs_human",
    "approved",
    "approved_by_human",
    "rejected",
    "rejected_by_human",
}

FEEDBACK_ACTIONS = {"reject", "delete_published", "delete_comment"}

MAX_REVIEW_NOTES = 10


@dataclass(frozen=True)
class NewsItem:
    title: str
    link: str | None
    pub_date: str | None = None


@dataclass(frozen=True)
class Editor:
    id: str
    name: str
    role: str
    categories: list[str]
    voice: str = ""
    signature_moves: list[str] = field(default_factory=list)
    taboos: list[str] = field(default_factory=list)
    catchphrases: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ArticleImage:
    provider: str
    urls: dict[str, str]
    query: str = ""
    file_title: str = ""
    source_page_url: str | None = None
    license: dict[str, Any] = field(default_factory=dict)
    author: str | None = None
    credit: str | None = None
    attribution_text: str | None = None


@dataclass
class Article:
    slug: str
    title: str
    subtitle: str
    category: str
    content: str
    topic_mode: str
    article_type: str
    author: str
    created_date: str
    source_url: str | None = None
    source_headline: str | None = None
    editor_id: str | None = None
    editor_name: str | None = None
    editor_role: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    image: ArticleImage | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    image_source: str | None = None
    image_license: str | None = None
    is_featured: bool = False
    featured_at: str | None = None
    featured_until: str | None = None
    featured_candidate: bool = False
    review_status: str | None = None
    review_score: int | None = None
    review_notes: list[str] = field(default_factory=list)
    review_id: str | None = None

    @property
    def is_short_news(self) -> bool:
        return self.article_type == "short"

    def attach_image(self, image: ArticleImage) -> None:
        urls = image.urls
        self.image = image
        self.image_url = urls.get("large") or urls.get("original")
        self.thumbnail_url = urls.get("thumb") or urls.get("small") or urls.get("original")
        self.image_source = image.source_page_url
        self.image_license = (image.license or {}).get("short")

    def set_review(self, status: str, score: Any, notes: list[Any], review_id: str | None) -> None:
        if status not in REVIEW_STATUSES:
            raise ValueError(f"invalid_review_status: {status}")
        self.review_status = status
        self.review_score = clamp_score(score)
        self.review_notes = clamp_notes(notes)
        self.review_id = review_id

    def to_dict(self, include_transient: bool = False) -> dict[str, Any]:
        data = asdict(self)
        data["is_short_news"] = self.is_short_news
        if not include_transient:
            data.pop("featured_candidate", None)
        return data


@dataclass(frozen=True)
class Comment:
    id: str
    slug: str
    parent_id: str | None
    name: str
    text: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def clamp_score(value: Any) -> int:
    """Coerce any reviewer score into an integer between 0 and 100."""
    if isinstance(value, bool):
        return 0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number:
        return 0
    return max(0, min(100, int(round(number))))


def clamp_notes(notes: Any) -> list[str]:
    if not isinstance(notes, list):
        return []
    cleaned = [str(note).strip() for note in notes if note is not None and str(note).strip()]
    return cleaned[:MAX_REVIEW_NOTES]


def normalize_category(value: Any) -> str:
    label = str(value or "").strip().lower()
    return label if label in CATEGORIES else FALLBACK_CATEGORY


def article_matches(item: dict[str, Any], id_or_slug: str) -> bool:
    if not id_or_slug:
        return False
    return item.get("id") == id_or_slug or item.get("slug") == id_or_slug


def feedback_record(
    action: str,
    article: dict[str, Any],
    at: str,
    feedback: str = "",
    **extra: Any,
) -> dict[str, Any]:
    if action not in FEEDBACK_ACTIONS:
        raise ValueError(f"invalid_feedback_action: {action}")
    record = {
        "at": at,
        "action": action,
        "id": article.get("id"),
        "slug": article.get("slug"),
        "title": article.get("title"),
        "source_headline": article.get("source_headline"),
        "category": article.get("category"),
        "editor_id": article.get("editor_id"),
        "editor_name": article.get("editor_name"),
        "editor_role": article.get("editor_role"),
        "ai_score": article.get("review_score"),
        "ai_notes": article.get("review_notes") or [],
        "feedback": feedback,
    }
    record.update(extra)
    return record
