from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .config import FeedbackConfig


@dataclass(frozen=True)
class FeedbackCaps:
    editor: int = 6
    category: int = 6
    global_: int = 6

    @classmethod
    def from_config(cls, cfg: FeedbackConfig) -> "FeedbackCaps":
        return cls(editor=cfg.editor_cap, category=cfg.category_cap, global_=cfg.global_cap)


def build_feedback_context(
    rows: Iterable[dict[str, Any]],
    category: str | None,
    editor_id: str | None,
    editor_name: str | None,
    caps: FeedbackCaps | None = None,
) -> str:
    """Turn past rejection feedback into a prompt block.

    ``rows`` are journal records oldest first. Each usable record lands in
    exactly one bucket: editor match first, then category, then global.
    """
    caps = caps or FeedbackCaps()
    cat = str(category or "").strip().lower()
    eid = str(editor_id or "").strip()
    ename = str(editor_name or "").strip()

    relevant = [
        row
        for row in rows
        if isinstance(row, dict)
        and row.get("action") == "reject"
        and str(row.get("feedback") or "").strip()
    ]
    relevant.reverse()

    editor_rules: list[str] = []
    category_rules: list[str] = []
    global_rules: list[str] = []
    seen: set[str] = set()

    def _push(bucket: list[str], text: str, cap: int) -> None:
        key = text.lower()
        if key in seen or len(bucket) >= cap:
            return
        seen.add(key)
        bucket.append(f"- {text}")

    for row in relevant:
        text = str(row.get("feedback") or "").strip()
        row_cat = str(row.get("category") or "").strip().lower()
        row_eid = str(row.get("editor_id") or "").strip()
        row_ename = str(row.get("editor_name") or "").strip()

        matches_editor = bool(eid and row_eid == eid) or bool(ename and row_ename == ename)
        matches_category = bool(cat and row_cat == cat)

        if matches_editor:
            _push(editor_rules, text, caps.editor)
        elif matches_category:
            _push(category_rules, text, caps.category)
        else:
            _push(global_rules, text, caps.global_)

        if (
            len(editor_rules) >= caps.editor
            and len(category_rules) >= caps.category
            and len(global_rules) >= caps.global_
        ):
            break

    parts = []
    if editor_rules:
        parts.append(f"EDITOR ({editor_name or editor_id}):\n" + "\n".join(editor_rules))
    if category_rules:
        parts.append(f"CATEGORY ({category}):\n" + "\n".join(category_rules))
    if global_rules:
        parts.append("GENERAL:\n" + "\n".join(global_rules))
    return "\n\n".join(parts)
