from __future__ import annotations

import logging
from typing import Any

from ..blobstore import BlobStore
from ..llm import AIContext, complete_structured
from ..pipelines import prompts
from ..storage import PROFILE_KEY, read_feedback_tail, read_json, write_json
from ..text import clean_text
from ..utils import log_event, utc_now_iso

FEEDBACK_SAMPLE = 20
MAX_NEW_RULES = 6
MAX_RULES = 10


def load_prompt_rules(store: BlobStore) -> list[str]:
    profile = read_json(store, PROFILE_KEY, {})
    rules = profile.get("rules") if isinstance(profile, dict) else None
    if not isinstance(rules, list):
        return []
    return [clean_text(rule) for rule in rules if clean_text(rule)]


def merge_rules(existing: list[str], new: list[str], keep: int = MAX_RULES) -> list[str]:
    merged: list[str] = []
    for rule in [*existing, *new]:
        text = clean_text(rule)
        if text and text not in merged:
            merged.append(text)
    return merged[-keep:]


def update_prompt_profile(ai: AIContext, store: BlobStore) -> dict[str, Any] | None:
    """Distil recent rejection feedback into standing writing rules.

    Returns the stored profile, or None when there is no usable feedback.
    """
    rows = read_feedback_tail(store, ai.config.feedback.lookback_lines)
    feedback = [
        str(row.get("feedback")).strip()
        for row in rows
        if row.get("action") == "reject" and str(row.get("feedback") or "").strip()
    ][-FEEDBACK_SAMPLE:]
    if not feedback:
        log_event(ai.logger, logging.INFO, "profile_no_feedback")
        return None

    numbered = "\n".join(f"{index}. {text}" for index, text in enumerate(feedback, 1))
    prompt = f"""
You are the editor in chief.

Below is feedback from a human final editor on satirical articles. Condense it into
clear, applicable WRITING RULES for an AI writer.

Feedback:
{numbered}

Output valid JSON:
{prompts.RULES_HINT}

Rules:
- At most {MAX_NEW_RULES} rules
- Concrete ("avoid X", "do Y")
- Aimed at humour, tone, topicality and punchlines
- No meta text
""".strip()
    data = complete_structured(
        ai,
        "structured",
        prompt,
        prompts.RULES_SCHEMA,
        prompts.RULES_HINT,
        temperature=ai.config.llm.structured_temperature,
        max_tokens=ai.config.llm.max_tokens_structured,
        step="prompt_profile",
    )
    new_rules = [clean_text(rule) for rule in data.get("rules") or []][:MAX_NEW_RULES]

    profile = read_json(store, PROFILE_KEY, {})
    if not isinstance(profile, dict):
        profile = {}
    existing = profile.get("rules") if isinstance(profile.get("rules"), list) else []
    profile["rules"] = merge_rules(existing, new_rules)
    profile["updated_at"] = utc_now_iso()
    write_json(store, PROFILE_KEY, profile)
    log_event(ai.logger, logging.INFO, "profile_updated", rules=len(profile["rules"]))
    return profile
