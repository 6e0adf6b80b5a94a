"""Durable collections on top of the blob store.

Each collection (published, pending, comments) is one JSON document that is
read, modified and written back as a whole. Two writers interleaving their
read-modify-write cycles on the same document would make the later write
win and silently drop the earlier change. Writers here pass the revision
they read to ``BlobStore.put`` so such an interleaving fails with
``RevisionConflict`` instead of losing data; the caller decides whether to
retry or to surface the conflict. The feedback log is an append-only
journal split into daily NDJSON segments.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from .blobstore import BlobStore, RevisionConflict, list_all
from .models import article_matches
from .utils import json_dumps, log_event

logger = logging.getLogger("saitire.storage")

PUBLISHED_KEY = "published.json"
PENDING_KEY = "pending.json"
COMMENTS_KEY = "comments.json"
PROFILE_KEY = "prompt_profile.json"
FEEDBACK_PREFIX = "feedback/"
REVIEWS_PREFIX = "reviews/"
INBOX_PREFIX = "inbox/"

JSON_CONTENT_TYPE = "application/json"
NDJSON_CONTENT_TYPE = "application/x-ndjson"

WRITE_ATTEMPTS = 3


def read_json(store: BlobStore, key: str, default: Any) -> Any:
    value, _ = read_json_snapshot(store, key, default)
    return value


def read_json_snapshot(store: BlobStore, key: str, default: Any) -> tuple[Any, str]:
    """Return the decoded document plus the revision tag it was read at.

    A missing document yields ``default`` and the revision ``""`` which,
    passed back to ``write_json``, only succeeds while the key is absent.
    """
    raw, revision = store.get_with_revision(key)
    if raw is None:
        return default, ""
    try:
        value = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        log_event(logger, logging.WARNING, "corrupt_json_document", key=key)
        return default, revision
    if default is not None and not isinstance(value, type(default)):
        log_event(logger, logging.WARNING, "unexpected_json_shape", key=key)
        return default, revision
    return value, revision


def write_json(store: BlobStore, key: str, value: Any, if_revision: str | None = None) -> str:
    data = (json_dumps(value, indent=2) + "\n").encode("utf-8")
    return store.put(key, data, JSON_CONTENT_TYPE, if_revision=if_revision)


def update_json(
    store: BlobStore,
    key: str,
    default: Any,
    mutate: Callable[[Any], Any],
) -> Any:
    """Read-modify-write ``key`` with compare-and-swap, retrying on conflict."""
    for attempt in range(WRITE_ATTEMPTS):
        value, revision = read_json_snapshot(store, key, default)
        updated = mutate(value)
        try:
            write_json(store, key, updated, if_revision=revision)
            return updated
        except RevisionConflict:
            log_event(logger, logging.WARNING, "revision_conflict", key=key, attempt=attempt + 1)
    raise RevisionConflict(f"revision_conflict: {key}")


def read_published(store: BlobStore) -> list[dict[str, Any]]:
    return read_json(store, PUBLISHED_KEY, [])


def read_pending(store: BlobStore) -> list[dict[str, Any]]:
    return read_json(store, PENDING_KEY, [])


def read_comments(store: BlobStore) -> dict[str, list[dict[str, Any]]]:
    return read_json(store, COMMENTS_KEY, {})


def prepend_unique(
    items: list[dict[str, Any]], item: dict[str, Any], cap: int
) -> list[dict[str, Any]]:
    """Put ``item`` first, dropping older entries with the same id or slug."""
    item_id = item.get("id")
    slug = item.get("slug")
    rest = [
        existing
        for existing in items
        if not (item_id and existing.get("id") == item_id)
        and not (slug and existing.get("slug") == slug)
    ]
    return [item, *rest][:cap]


def push_pending(store: BlobStore, item: dict[str, Any], cap: int) -> list[dict[str, Any]]:
    item_id = item.get("id")

    def _mutate(pending: list[dict[str, Any]]) -> list[dict[str, Any]]:
        rest = [existing for existing in pending if not (item_id and existing.get("id") == item_id)]
        return [item, *rest][:cap]

    pending = update_json(store, PENDING_KEY, [], _mutate)
    log_event(logger, logging.INFO, "pending_pushed", id=item_id, size=len(pending))
    return pending


def remove_from(
    store: BlobStore, key: str, id_or_slug: str
) -> dict[str, Any] | None:
    removed: list[dict[str, Any]] = []

    def _mutate(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        removed.clear()
        kept = []
        for item in items:
            if not removed and article_matches(item, id_or_slug):
                removed.append(item)
                continue
            kept.append(item)
        return kept

    update_json(store, key, [], _mutate)
    return removed[0] if removed else None


def feedback_segment_key(at: str) -> str:
    return f"{FEEDBACK_PREFIX}{at[:10]}.jsonl"


def append_feedback(store: BlobStore, record: dict[str, Any]) -> str:
    key = feedback_segment_key(str(record.get("at") or ""))
    line = json_dumps(record) + "\n"
    for attempt in range(WRITE_ATTEMPTS):
        existing, revision = store.get_with_revision(key)
        data = (existing or b"") + line.encode("utf-8")
        try:
            store.put(key, data, NDJSON_CONTENT_TYPE, if_revision=revision)
        except RevisionConflict:
            log_event(logger, logging.WARNING, "revision_conflict", key=key, attempt=attempt + 1)
            continue
        log_event(logger, logging.INFO, "feedback_appended", action=record.get("action"), key=key)
        return key
    raise RevisionConflict(f"revision_conflict: {key}")


def read_feedback_tail(store: BlobStore, max_lines: int) -> list[dict[str, Any]]:
    """Return up to ``max_lines`` most recent records, oldest first."""
    keys = sorted((obj.key for obj in list_all(store, FEEDBACK_PREFIX)), reverse=True)
    collected: list[dict[str, Any]] = []
    for key in keys:
        if len(collected) >= max_lines:
            break
        raw = store.get(key)
        if raw is None:
            continue
        segment = []
        for line in raw.decode("utf-8", errors="replace").splitlines():
            if not line.strip():
                continue
            try:
                parsed = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(parsed, dict):
                segment.append(parsed)
        collected = segment + collected
    return collected[-max_lines:] if max_lines > 0 else []


def write_review(store: BlobStore, article_id: str, review: dict[str, Any]) -> None:
    write_json(store, f"{REVIEWS_PREFIX}{article_id}.json", review)
