from __future__ import annotations

import logging
from typing import Any

from ..blobstore import BlobStore
from ..config import Config
from ..featured import ensure_featured
from ..models import article_matches, feedback_record
from ..storage import (
    PENDING_KEY,
    PUBLISHED_KEY,
    append_feedback,
    prepend_unique,
    push_pending,
    read_pending,
    read_published,
    remove_from,
    update_json,
)
from ..text import clamp_text
from ..utils import log_event, utc_now_iso

logger = logging.getLogger("saitire.review")

FEEDBACK_MAX_CHARS = 5000


class NotFoundError(LookupError):
    pass


def list_pending(store: BlobStore) -> list[dict[str, Any]]:
    return read_pending(store)


def list_published(store: BlobStore) -> list[dict[str, Any]]:
    return read_published(store)


def _find(items: list[dict[str, Any]], id_or_slug: str) -> dict[str, Any]:
    for item in items:
        if article_matches(item, id_or_slug):
            return item
    raise NotFoundError(f"not found: {id_or_slug}")


def approve(store: BlobStore, config: Config, id_or_slug: str) -> dict[str, Any]:
    """Publish a pending item; it leaves pending only once published is written."""
    item = _find(read_pending(store), id_or_slug)
    approved = dict(item)
    approved["review_status"] = "approved_by_human"
    approved["reviewed_at"] = utc_now_iso()
    approved.setdefault("created_date", approved["reviewed_at"])

    def _publish(published: list[dict[str, Any]]) -> list[dict[str, Any]]:
        merged = prepend_unique(published, approved, config.publish.max_published)
        ensure_featured(merged, config.featured.categories, config.featured.ttl_hours)
        return merged

    update_json(store, PUBLISHED_KEY, [], _publish)
    remove_from(store, PENDING_KEY, id_or_slug)
    log_event(
        logger,
        logging.INFO,
        "approved_by_human",
        id=approved.get("id"),
        slug=approved.get("slug"),
    )
    return approved


def reject(store: BlobStore, id_or_slug: str, feedback: str) -> dict[str, Any]:
    item = _find(read_pending(store), id_or_slug)
    record = feedback_record(
        "reject", item, utc_now_iso(), feedback=clamp_text(feedback, FEEDBACK_MAX_CHARS)
    )
    append_feedback(store, record)
    remove_from(store, PENDING_KEY, id_or_slug)
    log_event(logger, logging.INFO, "rejected_by_human", id=item.get("id"), slug=item.get("slug"))
    return record


def delete_published(store: BlobStore, id_or_slug: str, feedback: str = "") -> dict[str, Any]:
    item = _find(read_published(store), id_or_slug)
    record = feedback_record(
        "delete_published",
        item,
        utc_now_iso(),
        feedback=clamp_text(feedback, FEEDBACK_MAX_CHARS),
    )
    append_feedback(store, record)
    remove_from(store, PUBLISHED_KEY, id_or_slug)
    log_event(logger, logging.INFO, "published_deleted", id=item.get("id"), slug=item.get("slug"))
    return record


def pending_upsert(store: BlobStore, config: Config, item: Any) -> int:
    if not isinstance(item, dict) or not item.get("id"):
        raise ValueError("item with id required")
    pending = push_pending(store, item, config.publish.max_pending)
    return len(pending)


def pending_at(store: BlobStore, index: int) -> dict[str, Any]:
    pending = read_pending(store)
    if index < 0 or index >= len(pending):
        raise NotFoundError(f"invalid index: {index}")
    return pending[index]


def item_key(item: dict[str, Any]) -> str:
    return str(item.get("id") or item.get("slug") or "")
