from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import Callable, Optional

from .config import ReviewConfig
from .utils import log_event

Notifier = Callable[[str, Optional[int], str], None]


def review_message(title: str, score: int | None, reason: str, dashboard_url: str) -> str:
    parts = [
        "New item for review:",
        f'"{title}"' if title else "(untitled)",
        f"(score {score})" if isinstance(score, int) else "",
        f"- {reason}" if reason else "",
        f"-> {dashboard_url}" if dashboard_url else "",
    ]
    return " ".join(part for part in parts if part)


def notify_review_needed(
    cfg: ReviewConfig,
    title: str,
    score: int | None,
    reason: str,
    logger: logging.Logger,
    timeout: int = 10,
) -> bool:
    """POST a chat-style message to the review webhook; never raises."""
    if not cfg.webhook_url:
        return False
    payload = {"text": review_message(title, score, reason, cfg.dashboard_url)}
    request = urllib.request.Request(
        cfg.webhook_url,
        data=json.dumps(payload).encode("utf-8"),
        method="POST",
    )
    request.add_header("Content-Type", "application/json")
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            status = response.getcode()
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        log_event(logger, logging.WARNING, "review_webhook_failed", error=str(exc))
        return False
    log_event(logger, logging.INFO, "review_webhook_sent", status=status)
    return True


def make_notifier(cfg: ReviewConfig, logger: logging.Logger) -> Notifier:
    def _notify(title: str, score: int | None, reason: str) -> None:
        notify_review_needed(cfg, title, score, reason, logger)

    return _notify
