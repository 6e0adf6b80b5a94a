from __future__ import annotations

import random
from datetime import datetime
from typing import Any, Mapping
from zoneinfo import ZoneInfo

from .utils import parse_iso, utc_now


def weighted_pick(weights: Mapping[str, float], rng: random.Random) -> str:
    """Pick a key with probability proportional to its weight.

    Non-positive weights are ignored.
    """
    entries = [(key, float(weight)) for key, weight in weights.items() if float(weight) > 0]
    if not entries:
        raise ValueError("weighted_pick_needs_positive_weight")
    total = sum(weight for _, weight in entries)
    remaining = rng.random() * total
    for key, weight in entries:
        remaining -= weight
        if remaining <= 0:
            return key
    return entries[0][0]


def date_key(value: datetime | str | None, tz_name: str) -> str | None:
    moment = parse_iso(value) if isinstance(value, str) else value
    if moment is None:
        return None
    return moment.astimezone(ZoneInfo(tz_name)).strftime("%Y-%m-%d")


def count_investigations_today(
    articles: list[dict[str, Any]], tz_name: str, now: datetime | None = None
) -> int:
    today = date_key(now or utc_now(), tz_name)
    return sum(
        1
        for article in articles
        if article.get("article_type") == "investigation"
        and date_key(article.get("created_date"), tz_name) == today
    )


def pick_article_type(
    weights: Mapping[str, float],
    rng: random.Random,
    *,
    investigations_today: int,
    max_investigations_per_day: int,
    force_investigation: bool = False,
) -> str:
    if force_investigation:
        return "investigation"
    article_type = weighted_pick(weights, rng)
    if article_type == "investigation" and investigations_today >= max_investigations_per_day:
        fallback = {key: weights.get(key, 0) for key in ("normal", "short")}
        if not any(float(weight) > 0 for weight in fallback.values()):
            return "normal"
        article_type = weighted_pick(fallback, rng)
    return article_type
