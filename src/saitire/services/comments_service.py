from __future__ import annotations

import logging
import re
import uuid
from typing import Any

from ..blobstore import BlobStore
from ..config import CommentsConfig
from ..models import Comment, feedback_record
from ..storage import COMMENTS_KEY, append_feedback, read_comments, update_json
from ..text import clamp_text
from ..utils import log_event, utc_now_iso

logger = logging.getLogger("saitire.comments")

DEFAULT_NAME = "Anoniem"


class CommentError(ValueError):
    def __init__(self, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.status = status


def clean_slug(value: Any) -> str:
    return re.sub(r"[^a-z0-9-]", "", str(value or "").strip().lower())


def list_comments(store: BlobStore, slug: str) -> list[dict[str, Any]]:
    comments = read_comments(store).get(clean_slug(slug))
    return comments if isinstance(comments, list) else []


def list_all_comments(store: BlobStore) -> dict[str, list[dict[str, Any]]]:
    return read_comments(store)


def comment_depth(comments: list[dict[str, Any]], comment_id: str | None) -> int:
    """Nesting depth of ``comment_id``; top-level comments are depth 0."""
    by_id = {item.get("id"): item for item in comments}
    depth = 0
    seen: set[str] = set()
    current = by_id.get(comment_id)
    while current is not None and current.get("parent_id"):
        parent_id = current["parent_id"]
        if parent_id in seen:
            break
        seen.add(parent_id)
        depth += 1
        current = by_id.get(parent_id)
    return depth


def post_comment(store: BlobStore, cfg: CommentsConfig, body: dict[str, Any]) -> dict[str, Any]:
    if not cfg.allow_public:
        raise CommentError("comments are disabled", status=403)
    slug = clean_slug(body.get("slug"))
    if not slug:
        raise CommentError("missing slug")
    name = clamp_text(body.get("name") or DEFAULT_NAME, cfg.name_max) or DEFAULT_NAME
    text = clamp_text(body.get("text"), cfg.text_max)
    if len(text) < cfg.text_min:
        raise CommentError("text too short")
    parent_id = str(body["parent_id"]) if body.get("parent_id") else None

    comment = Comment(
        id=str(uuid.uuid4()),
        slug=slug,
        parent_id=parent_id,
        name=name,
        text=text,
        created_at=utc_now_iso(),
    )

    def _mutate(by_slug: dict[str, list[dict[str, Any]]]) -> dict[str, list[dict[str, Any]]]:
        existing = by_slug.get(slug)
        comments = existing if isinstance(existing, list) else []
        if len(comments) >= cfg.max_per_article:
            raise CommentError("too many comments on this article", status=429)
        if parent_id is not None:
            if not any(item.get("id") == parent_id for item in comments):
                raise CommentError("parent comment not found")
            if comment_depth(comments, parent_id) + 1 > cfg.max_depth:
                raise CommentError("maximum reply depth reached")
            siblings = sum(1 for item in comments if item.get("parent_id") == parent_id)
            if siblings >= cfg.max_children_per_parent:
                raise CommentError("too many replies to this comment", status=429)
        by_slug[slug] = [comment.to_dict(), *comments]
        return by_slug

    update_json(store, COMMENTS_KEY, {}, _mutate)
    log_event(logger, logging.INFO, "comment_posted", slug=slug, reply=parent_id is not None)
    return comment.to_dict()


def delete_comment(store: BlobStore, slug: str, comment_id: str) -> dict[str, Any]:
    """Remove a comment and its replies, journaling the removal as feedback."""
    slug = clean_slug(slug)
    if not slug or not comment_id:
        raise CommentError("slug and id required")
    target = next(
        (item for item in list_comments(store, slug) if item.get("id") == comment_id), None
    )
    if target is None:
        raise CommentError("not found", status=404)

    record = feedback_record(
        "delete_comment",
        {"slug": slug},
        utc_now_iso(),
        comment_id=comment_id,
        comment_name=target.get("name"),
        comment_text=target.get("text"),
    )
    append_feedback(store, record)

    def _mutate(by_slug: dict[str, list[dict[str, Any]]]) -> dict[str, list[dict[str, Any]]]:
        comments = by_slug.get(slug) or []
        doomed = {comment_id}
        changed = True
        while changed:
            changed = False
            for item in comments:
                if item.get("parent_id") in doomed and item.get("id") not in doomed:
                    doomed.add(item.get("id"))
                    changed = True
        by_slug[slug] = [item for item in comments if item.get("id") not in doomed]
        return by_slug

    update_json(store, COMMENTS_KEY, {}, _mutate)
    log_event(logger, logging.INFO, "comment_deleted", slug=slug, id=comment_id)
    return record
