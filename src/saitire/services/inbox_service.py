from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from ..blobstore import BlobStore, list_all
from ..storage import INBOX_PREFIX, read_json, write_json
from ..text import clamp_text
from ..utils import log_event, parse_iso, utc_now_iso
from .review_service import NotFoundError

logger = logging.getLogger("saitire.inbox")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

FIELD_LIMITS = {"type": 40, "title": 140, "message": 5000, "url": 500, "email": 120}


def submit(store: BlobStore, body: dict[str, Any], user_agent: str = "") -> dict[str, Any]:
    message = clamp_text(body.get("message") or body.get("text"), FIELD_LIMITS["message"])
    if not message:
        raise ValueError("message required")
    created_at = utc_now_iso()
    item = {
        "id": str(uuid.uuid4()),
        "type": clamp_text(body.get("type") or "feedback", FIELD_LIMITS["type"]),
        "title": clamp_text(body.get("title"), FIELD_LIMITS["title"]),
        "message": message,
        "url": clamp_text(body.get("url") or body.get("page_url"), FIELD_LIMITS["url"]),
        "email": clamp_text(body.get("email"), FIELD_LIMITS["email"]),
        "created_at": created_at,
        "resolved": False,
        "user_agent": clamp_text(user_agent, 300),
    }
    write_json(store, f"{INBOX_PREFIX}{created_at[:10]}/{item['id']}.json", item)
    log_event(logger, logging.INFO, "reader_feedback_received", id=item["id"], type=item["type"])
    return item


def list_items(store: BlobStore, limit: int = 400) -> list[dict[str, Any]]:
    keys = sorted(obj.key for obj in list_all(store, INBOX_PREFIX))
    items = []
    for key in reversed(keys[-limit:]):
        raw = store.get(key)
        if raw is None:
            continue
        try:
            value = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            log_event(logger, logging.WARNING, "corrupt_inbox_item", key=key)
            continue
        if isinstance(value, dict):
            items.append(value)
    items.sort(key=lambda item: parse_iso(item.get("created_at")) or _EPOCH, reverse=True)
    return items


def _key_for(store: BlobStore, item_id: str) -> str:
    if not item_id:
        raise ValueError("id required")
    suffix = f"/{item_id}.json"
    for obj in list_all(store, INBOX_PREFIX):
        if obj.key.endswith(suffix):
            return obj.key
    raise NotFoundError(f"not found: {item_id}")


def resolve(store: BlobStore, item_id: str, resolved: bool) -> dict[str, Any]:
    key = _key_for(store, item_id)
    item = read_json(store, key, {})
    item["resolved"] = bool(resolved)
    write_json(store, key, item)
    log_event(logger, logging.INFO, "reader_feedback_resolved", id=item_id, resolved=bool(resolved))
    return item


def delete(store: BlobStore, item_id: str) -> None:
    key = _key_for(store, item_id)
    store.delete(key)
    log_event(logger, logging.INFO, "reader_feedback_deleted", id=item_id)
