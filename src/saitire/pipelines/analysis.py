from __future__ import annotations

import logging
from dataclasses import dataclass

from ..llm import AIContext, RepairError, complete_structured
from ..models import CATEGORIES, normalize_category
from ..text import clean_text
from ..utils import log_event
from . import prompts

MAX_CLAIMS = 5
MAX_PEOPLE = 5


@dataclass(frozen=True)
class SocietalHook:
    trend: str
    title: str


@dataclass(frozen=True)
class LudicResult:
    suitable: bool
    reason: str


@dataclass(frozen=True)
class Claim:
    claim: str
    query: str
    type: str


@dataclass(frozen=True)
class ActualityVerdict:
    ok: bool
    confidence: float
    reason: str
    rewrite_instructions: str


def _structured(
    ai: AIContext, prompt: str, schema, hint: str, step: str, temperature: float | None = None
):
    if temperature is None:
        temperature = ai.config.llm.structured_temperature
    return complete_structured(
        ai,
        "structured",
        prompt,
        schema,
        hint,
        temperature=temperature,
        max_tokens=ai.config.llm.max_tokens_structured,
        step=step,
    )


def generate_societal_hook(ai: AIContext) -> SocietalHook | None:
    prompt = f"""
Think of one topic that is alive RIGHT NOW in public conversation, without referring
to a concrete real event. Turn it into a plausible looking news headline that can serve
as a hook for satire.

Rules:
- No real names of victims, no disasters, no war or terrorism
- Institutions, systems and behaviour are fine (public transport, housing, workload,
  inflation, education, healthcare, social media, AI at work)
- {prompts.language_rule(ai.config.app.language)}

Output valid JSON, exactly:
{prompts.HOOK_HINT}
"trend" is 2-5 words, "title" at most 110 characters. No extra text.
""".strip()
    try:
        data = _structured(ai, prompt, prompts.HOOK_SCHEMA, prompts.HOOK_HINT, "societal_hook", 0.7)
    except RepairError as exc:
        log_event(ai.logger, logging.WARNING, "societal_hook_failed", error=str(exc))
        return None
    trend = clean_text(data.get("trend"))
    title = clean_text(data.get("title"))
    if not trend or not title:
        return None
    return SocietalHook(trend=trend, title=title)


def summarize_source(ai: AIContext, headline: str, article_text: str) -> list[str]:
    text = str(article_text or "").strip()
    publish_cfg = ai.config.publish
    if len(text) < publish_cfg.source_text_min_chars:
        return []
    max_bullets = publish_cfg.source_summary_max_bullets
    prompt = f"""
Summarise this news article VERY briefly and purely factually.

Rules:
- At most {max_bullets} bullets
- No satire, no opinions, no assumptions
- Only what actually happens
- {prompts.language_rule(ai.config.app.language)}

HEADLINE: "{headline}"

TEXT:
{text[: publish_cfg.source_text_max_chars]}

Output valid JSON:
{prompts.SUMMARY_HINT}
No extra text.
""".strip()
    try:
        data = _structured(ai, prompt, prompts.SUMMARY_SCHEMA, prompts.SUMMARY_HINT, "summarize")
    except RepairError as exc:
        log_event(ai.logger, logging.WARNING, "summarize_failed", error=str(exc))
        return []
    bullets = [clean_text(item) for item in data.get("summary") or []]
    return [bullet for bullet in bullets if bullet][:max_bullets]


def check_ludic_suitability(ai: AIContext, trend: str, headline: str) -> LudicResult:
    prompt = f"""
Decide whether this news context is suitable for LIGHTHEARTED satire.

NOT suitable, among others:
- serious injury, critical condition, hospitalisation
- deaths, fatal incidents
- war, terrorism, attacks, hostage situations
- (sexual) violence, abuse, suicide
- disasters with victims
- children as victims

Trend: "{trend}"
Headline: "{headline}"

Answer as valid JSON, exactly:
{prompts.LUDIC_HINT}
No extra text.
""".strip()
    try:
        data = _structured(ai, prompt, prompts.LUDIC_SCHEMA, prompts.LUDIC_HINT, "ludic")
    except RepairError as exc:
        log_event(ai.logger, logging.WARNING, "ludic_check_unparseable", error=str(exc))
        return LudicResult(suitable=False, reason="unparseable suitability verdict")
    return LudicResult(suitable=data.get("suitable") is True, reason=clean_text(data.get("reason")))


def classify_category(ai: AIContext, trend: str, headline: str) -> str:
    labels = "\n".join(CATEGORIES)
    prompt = f"""
Pick exactly one category for a satirical news article.

Trend: "{trend}"
Headline: "{headline}"

Choose exactly one of these labels:
{labels}

Output valid JSON:
{prompts.CATEGORY_HINT}
Spell the label exactly as listed. No extra text.
""".strip()
    try:
        data = _structured(ai, prompt, prompts.CATEGORY_SCHEMA, prompts.CATEGORY_HINT, "classify")
    except RepairError as exc:
        log_event(ai.logger, logging.WARNING, "classify_failed", error=str(exc))
        return normalize_category(None)
    return normalize_category(data.get("category"))


def extract_timely_claims(ai: AIContext, title: str, subtitle: str, content: str) -> list[Claim]:
    prompt = f"""
Select only claims from this satirical article that are
1) time sensitive (something that must be true "now"), and
2) factually verifiable in news sources (not obviously satirical framing).

INCLUDE, for example: appointments, resignations, laws introduced or withdrawn,
CEO changes, who currently holds an office, sports results.

EXCLUDE: satirical interpretations, generalities, absurdist sentences not meant as
fact, opinions, hyperbole, metaphors, vague claims without who or what.

TITLE: "{title}"
SUBTITLE: "{subtitle}"
BODY:
{prompts.clamp(content, 2500)}

Output valid JSON:
{prompts.CLAIMS_HINT}

Rules:
- At most {MAX_CLAIMS} claims
- No verifiable time-bound claim: {{ "claims": [] }}
- "query" is a 4-10 word news search for the main proper name plus role or topic
- "type" is one of coach|player|politics|ceo|role|law|policy|election|sports_result|other
- No extra text.
""".strip()
    try:
        data = _structured(ai, prompt, prompts.CLAIMS_SCHEMA, prompts.CLAIMS_HINT, "claims")
    except RepairError as exc:
        log_event(ai.logger, logging.WARNING, "claims_failed", error=str(exc))
        return []
    claims = []
    for item in data.get("claims") or []:
        claim = clean_text(item.get("claim"))
        if not claim:
            continue
        claims.append(
            Claim(
                claim=claim,
                query=clean_text(item.get("query")),
                type=clean_text(item.get("type")) or "other",
            )
        )
    return claims[:MAX_CLAIMS]


def check_actuality(ai: AIContext, claim: str, headlines: list[str]) -> ActualityVerdict:
    numbered = "\n".join(f"{index}. {headline}" for index, headline in enumerate(headlines, 1))
    prompt = f"""
Check whether this claim is still current.

Claim:
"{claim}"

Recent headlines:
{numbered}

Output:
{prompts.ACTUALITY_HINT}

Rules:
- ok=false only if the claim is PROBABLY incorrect or outdated
- Uncertain: ok=true with low confidence (0-100)
- No extra text.
""".strip()
    try:
        data = _structured(
            ai, prompt, prompts.ACTUALITY_SCHEMA, prompts.ACTUALITY_HINT, "actuality"
        )
    except RepairError as exc:
        log_event(ai.logger, logging.WARNING, "actuality_unparseable", error=str(exc))
        return ActualityVerdict(ok=True, confidence=0.0, reason="", rewrite_instructions="")
    try:
        confidence = float(data.get("confidence") or 0)
    except (TypeError, ValueError):
        confidence = 0.0
    return ActualityVerdict(
        ok=data.get("ok") is not False,
        confidence=confidence,
        reason=clean_text(data.get("reason")),
        rewrite_instructions=clean_text(data.get("rewrite_instructions")),
    )


def extract_person_names(
    ai: AIContext, headline: str, title: str, subtitle: str, content: str
) -> list[str]:
    prompt = f"""
Extract only PEOPLE (real persons) from the text below.
No organisations, countries, TV programmes or sports clubs.

Headline: "{headline}"
Title: "{title}"
Subtitle: "{subtitle}"
Text: "{prompts.clamp(content, 1400)}"

Output:
{prompts.PEOPLE_HINT}

Rules:
- At most {MAX_PEOPLE}
- None: {{ "people": [] }}
- No extra text.
""".strip()
    try:
        data = _structured(ai, prompt, prompts.PEOPLE_SCHEMA, prompts.PEOPLE_HINT, "people")
    except RepairError as exc:
        log_event(ai.logger, logging.WARNING, "people_failed", error=str(exc))
        return []
    names = [clean_text(name) for name in data.get("people") or []]
    return [name for name in names if name][:MAX_PEOPLE]
