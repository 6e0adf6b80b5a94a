from __future__ import annotations

import re
import unicodedata

GENERIC_TRENDS = {"weer", "nieuws", "update", "live", "today", "vandaag", "breaking"}

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_SIGNATURE = re.compile(r"\n{1,2}—\s*[^\n]{1,80}\s*$")
_DEEP_HEADING = re.compile(r"^#{3,}\s+", re.MULTILINE)


def clean_text(value: object) -> str:
    return re.sub(r"\s+", " ", str(value or "")).strip()


def clamp_text(value: object, max_length: int) -> str:
    return str(value or "").strip()[:max_length]


def is_too_generic(trend: str) -> bool:
    lowered = str(trend or "").lower().strip()
    if lowered in GENERIC_TRENDS:
        return True
    if len(lowered) <= 2:
        return True
    return not any(ch.isalpha() for ch in str(trend or ""))


def fallback_title(trend: str) -> str:
    return f"Nederland reageert op “{trend}” met een mix van urgentie en uitstel"


FALLBACK_SUBTITLE = "Het land reageert met urgentie en uitstel."


def slugify(text: str, max_length: int = 80) -> str:
    """Lowercase ASCII slug; returns "" when nothing usable is left."""
    normalized = unicodedata.normalize("NFKD", str(text or "").lower())
    stripped = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    cleaned = re.sub(r"[^a-z0-9\s-]", "", stripped).strip()
    cleaned = re.sub(r"\s+", "-", cleaned)
    cleaned = re.sub(r"-+", "-", cleaned)
    return cleaned[:max_length]


def normalize_paragraphs(text: str, min_sentences: int = 2, max_sentences: int = 4) -> str:
    """Reflow prose into paragraphs of two to four sentences.

    Groups of three are preferred; a tail of two or four sentences is kept
    together so no paragraph ends up with a single dangling sentence.
    """
    flattened = clean_text(str(text or "").replace("\r", ""))
    if not flattened:
        return ""
    sentences = [part.strip() for part in _SENTENCE_SPLIT.split(flattened) if part.strip()]
    paragraphs: list[str] = []
    index = 0
    while index < len(sentences):
        remaining = len(sentences) - index
        take = 3
        if remaining == 2:
            take = 2
        if remaining == 4:
            take = 4
        if remaining < min_sentences:
            take = remaining
        take = max(min_sentences, min(max_sentences, take))
        take = min(take, remaining)
        paragraphs.append(" ".join(sentences[index : index + take]))
        index += take
    return "\n\n".join(paragraphs).strip()


def normalize_investigation_markdown(text: str) -> str:
    value = str(text or "").replace("\r", "").strip()
    if not value:
        return ""
    lines = [line.rstrip(" \t") for line in value.split("\n")]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def remove_author_signature(text: str) -> str:
    return _SIGNATURE.sub("", str(text or "")).strip()


def finalize_content(content: str, article_type: str) -> str:
    if not content:
        return ""
    text = remove_author_signature(content)
    if article_type == "investigation":
        text = normalize_investigation_markdown(text)
        return _DEEP_HEADING.sub("## ", text).strip()
    return normalize_paragraphs(text, min_sentences=2, max_sentences=4)
