from __future__ import annotations

from typing import Any

from ..models import CATEGORIES, Editor
from ..text import clean_text

LANGUAGE_NAMES = {"nl": "Dutch", "en": "English", "de": "German", "fr": "French"}

BASE_EDITORIAL_RULES = """
YOU WRITE FOR A SATIRICAL NEWS SITE THAT SOUNDS LIKE REAL NEWS.

Ground rules:
- Write calmly and clearly: flowing sentences, normal paragraphs.
- Take the reader seriously: journalistic tone, concrete setting, recognisable local context.
- Humour comes from serious form plus almost-believable reasoning that slowly derails.
- No joke stacking and no random absurdity without internal logic.
- Every joke refers to something concrete (a situation, detail, quote, policy or behaviour).
- No signature in the text (no "— name").
""".strip()

SAFETY_SKIP_RULES = """
IF the context is clearly serious (deaths, serious injuries, violence, sexual violence,
suicide, war, terrorism, disasters with victims, children as victims), SKIP.

IF YOU SKIP, output:
{ "skip": true, "reason": "short reason" }
""".strip()

ARTICLE_HINT = """{
  "title": "string",
  "subtitle": "string",
  "content_markdown": "string"
}"""

ARTICLE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "skip": {"type": "boolean"},
        "reason": {"type": "string"},
        "title": {"type": "string"},
        "subtitle": {"type": "string"},
        "content_markdown": {"type": "string"},
    },
    "anyOf": [
        {"required": ["skip"], "properties": {"skip": {"const": True}}},
        {"required": ["content_markdown"]},
    ],
}

REWRITE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "subtitle": {"type": "string"},
        "content_markdown": {"type": "string"},
    },
    "required": ["content_markdown"],
}

FIRST_CHUNK_HINT = """{
  "title": "string",
  "subtitle": "string",
  "content_markdown_part": "string",
  "continue": true
}"""

FIRST_CHUNK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string"},
        "subtitle": {"type": "string"},
        "content_markdown_part": {"type": "string"},
        "continue": {"type": "boolean"},
    },
    "required": ["content_markdown_part"],
}

NEXT_CHUNK_HINT = """{
  "content_markdown_part": "string",
  "continue": true
}"""

NEXT_CHUNK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "content_markdown_part": {"type": "string"},
        "continue": {"type": "boolean"},
    },
    "required": ["content_markdown_part"],
}

HOOK_HINT = '{ "trend": "string", "title": "string" }'
HOOK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"trend": {"type": "string"}, "title": {"type": "string"}},
}

SUMMARY_HINT = '{ "summary": ["string"] }'
SUMMARY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"summary": {"type": "array", "items": {"type": "string"}}},
    "required": ["summary"],
}

LUDIC_HINT = '{ "suitable": true, "reason": "string" }'
LUDIC_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"suitable": {"type": "boolean"}, "reason": {"type": "string"}},
    "required": ["suitable"],
}

CATEGORY_HINT = '{ "category": "one of: ' + ", ".join(CATEGORIES) + '" }'
CATEGORY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"category": {"type": "string"}},
    "required": ["category"],
}

NOTES_HINT = '{ "notes": ["string"] }'
NOTES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"notes": {"type": "array", "items": {"type": "string"}}},
    "required": ["notes"],
}

CLAIMS_HINT = '{ "claims": [ { "claim": "string", "query": "string", "type": "string" } ] }'
CLAIMS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "claims": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "claim": {"type": "string"},
                    "query": {"type": "string"},
                    "type": {"type": "string"},
                },
                "required": ["claim"],
            },
        }
    },
    "required": ["claims"],
}

ACTUALITY_HINT = (
    '{ "ok": true, "confidence": 0, "reason": "string", "rewrite_instructions": "string" }'
)
ACTUALITY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "ok": {"type": "boolean"},
        "confidence": {"type": "number"},
        "reason": {"type": "string"},
        "rewrite_instructions": {"type": "string"},
    },
    "required": ["ok"],
}

PEOPLE_HINT = '{ "people": ["First Last"] }'
PEOPLE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"people": {"type": "array", "items": {"type": "string"}}},
    "required": ["people"],
}

QUALITY_HINT = """{
  "approved": true,
  "score": 0,
  "reasons": ["string"],
  "must_fix": ["string"],
  "rewrite_prompt": "string"
}"""
QUALITY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "approved": {"type": "boolean"},
        "score": {"type": ["number", "string"]},
        "reasons": {"type": "array", "items": {"type": "string"}},
        "must_fix": {"type": "array", "items": {"type": "string"}},
        "rewrite_prompt": {"type": "string"},
    },
    "required": ["approved", "score"],
}

RULES_HINT = '{ "rules": ["string"] }'
RULES_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"rules": {"type": "array", "items": {"type": "string"}}},
    "required": ["rules"],
}


def language_rule(language: str) -> str:
    name = LANGUAGE_NAMES.get(language, language)
    return f"Write all output text in {name}."


def type_rules(article_type: str) -> str:
    if article_type == "short":
        return """
FORM (SHORT NEWS):
- 90-150 words
- 2 short paragraphs (not 1)
- One central observation or situation
- Calm build-up, one clear escalation, dry closer
- At most one explicit joke per paragraph
- No headings, no lists
- Always end on a complete sentence
""".strip()
    if article_type == "investigation":
        return """
FORM (INVESTIGATIVE DESK):
- 1400-2200 words
- Calm pace, very readable, journalistic tone
- Use 4-6 section headings (## level) like real investigative journalism
- Open with one concrete research question
- At least 4 interviews or quotes with name and role (invented, plausible)
- At least 4 "sources" (figures, reports, memos, leaks), at least 2 contradicting each other
- End dry and institutional, without a moral
- Always end on a complete sentence
""".strip()
    return """
FORM (NORMAL ARTICLE):
- 320-520 words
- 3-5 paragraphs
- Each paragraph: concrete setting first, then the observation or twist
- At most one explicit joke per paragraph
- No headings, no lists
- Always end on a complete sentence
""".strip()


def mode_rules(topic_mode: str) -> str:
    if topic_mode == "societal_pulse":
        return 'CONTEXT:\n- This is "societal pulse": do not claim any concrete real event.'
    return "CONTEXT:\n- This is based on a real trending news context."


def summary_block(topic_mode: str, source_summary: list[str] | None) -> str:
    if topic_mode != "trending" or not source_summary:
        return ""
    bullets = "\n- ".join(source_summary)
    return f"FACTUAL SUMMARY (context only, do not copy):\n- {bullets}\n"


def feedback_block(feedback_context: str) -> str:
    if not feedback_context.strip():
        return ""
    return f"EDITORIAL FEEDBACK TO APPLY:\n{feedback_context.strip()}\n"


def rules_block(rules: tuple[str, ...]) -> str:
    if not rules:
        return ""
    joined = "\n- ".join(rules)
    return f"HOUSE WRITING RULES:\n- {joined}\n"


def _bullets(values: list[str], fallback: str) -> str:
    cleaned = [clean_text(value) for value in values if clean_text(value)]
    if not cleaned:
        return f"- {fallback}"
    return "- " + "\n- ".join(cleaned)


def persona_block(editor: Editor) -> str:
    return "\n".join(
        [
            f"Name: {editor.name}",
            f"Role: {editor.role}",
            "",
            "VOICE (follow):",
            _bullets(
                [editor.voice] if editor.voice else [],
                "Dry, clear, recognisable, with context.",
            ),
            "",
            "SIGNATURE MOVES (optional):",
            _bullets(editor.signature_moves, "End dry."),
            "",
            "TABOOS (hard):",
            _bullets(editor.taboos, "No vulnerable victims as targets."),
            "",
            "Catchphrases (at most 1, only if it fits):",
            _bullets(editor.catchphrases, "(none)"),
        ]
    )


def clamp(value: str, max_chars: int) -> str:
    return str(value or "")[:max_chars]
