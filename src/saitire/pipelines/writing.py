from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from ..llm import AIContext, RepairError, complete_structured
from ..models import Editor
from ..text import FALLBACK_SUBTITLE, clean_text, fallback_title
from ..utils import log_event
from . import prompts

CONTINUATION_TAIL_CHARS = 1400
CHUNK_MAX_TOKENS = 1024
NOTES_CONTENT_CHARS = 2600
FINAL_CONTENT_CHARS = 3800
MAX_NOTES_PER_REVIEWER = 6
CATCHPHRASE_CHANCE = 0.30


class GenerationError(ValueError):
    pass


@dataclass(frozen=True)
class Reviewer:
    id: str
    name: str
    vibe: str


WRITERS_ROOM = (
    Reviewer("absurdist", "De Absurdist", "Escalation, insane but presented logically"),
    Reviewer("cynic", "De Cynicus", "Dry, cutting, institutional cynicism"),
    Reviewer("builder", "De Bouwmeester", "Structure, timing, readability"),
)


@dataclass(frozen=True)
class Draft:
    title: str
    subtitle: str
    content: str
    skip: bool = False
    reason: str = ""


@dataclass(frozen=True)
class ReviewerNotes:
    reviewer: str
    name: str
    notes: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DraftRequest:
    trend: str
    headline: str
    link: str | None
    source_summary: list[str] | None
    category: str
    editor: Editor
    article_type: str
    topic_mode: str
    feedback_context: str = ""


@dataclass
class ChunkState:
    """Accumulator for investigation pieces written in continuation chunks."""

    text: str = ""
    title: str = ""
    subtitle: str = ""
    should_continue: bool = True
    chunks_used: int = 0

    def absorb(self, part: str, should_continue: bool) -> None:
        self.text = f"{self.text}\n\n{part}".strip() if self.text else part.strip()
        self.should_continue = should_continue
        self.chunks_used += 1


def _draft_prompt(ai: AIContext, req: DraftRequest) -> str:
    return f"""
{prompts.BASE_EDITORIAL_RULES}

You are a regular satirical editor and columnist.

{prompts.persona_block(req.editor)}

WRITE ONE SATIRICAL NEWS ARTICLE (dry, institutional, logically absurd).

{prompts.SAFETY_SKIP_RULES}

OTHERWISE:

SATIRICAL PREMISE (REQUIRED):
- Decide WHAT is being ridiculed (policy, system, collective behaviour, management speak).
- The first paragraph makes the target clear without winking.
- The piece reduces to: "The country solves [problem] with [wrong but logically presented measure]."
- Every paragraph serves that premise.

STYLE:
- Never explain the joke.
- Dry, journalistic tone; humour through serious form, procedure and recognisable details.
- {prompts.language_rule(ai.config.app.language)}

{prompts.mode_rules(req.topic_mode)}

{prompts.type_rules(req.article_type)}

{prompts.rules_block(ai.rules)}
{prompts.feedback_block(req.feedback_context)}
{prompts.summary_block(req.topic_mode, req.source_summary)}
INPUT:
- Theme: "{req.trend}"
- Hook (headline): "{req.headline}"
- Link (context only, may be null): "{req.link}"
""".strip()


def generate_article(ai: AIContext, req: DraftRequest) -> Draft:
    base_prompt = _draft_prompt(ai, req)
    if req.article_type == "investigation":
        state = generate_investigation_chunks(
            ai,
            base_prompt,
            max_chunks=ai.config.publish.investigation_max_chunks,
            temperature=ai.config.llm.write_temperature,
        )
        return Draft(
            title=clean_text(state.title or fallback_title(req.trend)),
            subtitle=clean_text(state.subtitle or FALLBACK_SUBTITLE),
            content=state.text.strip(),
        )

    prompt = (
        f"{base_prompt}\n\nOUTPUT (ONLY VALID JSON):\n{prompts.ARTICLE_HINT}\n"
        "title at most 90 characters, subtitle at most 120 characters, content_markdown uses "
        "blank lines between paragraphs and has no signature."
    )
    try:
        data = complete_structured(
            ai,
            "writer",
            prompt,
            prompts.ARTICLE_SCHEMA,
            prompts.ARTICLE_HINT,
            temperature=ai.config.llm.write_temperature,
            max_tokens=ai.config.llm.max_tokens_article,
            step="generate_article",
        )
    except RepairError as exc:
        raise GenerationError(f"no_valid_json_from_generate_article: {exc}") from exc
    if data.get("skip") is True:
        reason = clean_text(data.get("reason")) or "not suitable"
        return Draft(title="", subtitle="", content="", skip=True, reason=reason)
    return Draft(
        title=clean_text(data.get("title") or fallback_title(req.trend)),
        subtitle=clean_text(data.get("subtitle") or FALLBACK_SUBTITLE),
        content=str(data.get("content_markdown") or "").strip(),
    )


def generate_investigation_chunks(
    ai: AIContext,
    base_prompt: str,
    *,
    max_chunks: int,
    temperature: float,
) -> ChunkState:
    first_prompt = f"""
{base_prompt}

IMPORTANT: your output may be cut off by max_tokens, so you write in parts.

Output valid JSON, exactly:
{prompts.FIRST_CHUNK_HINT}

Rules:
- content_markdown_part holds only article text (blank lines and headings allowed)
- continue=true when you are not finished yet
- end content_markdown_part on a full sentence
- no code fences, no text outside the JSON
""".strip()
    try:
        first = complete_structured(
            ai,
            "writer",
            first_prompt,
            prompts.FIRST_CHUNK_SCHEMA,
            prompts.FIRST_CHUNK_HINT,
            temperature=temperature,
            max_tokens=CHUNK_MAX_TOKENS,
            step="investigation_chunk_1",
        )
    except RepairError as exc:
        raise GenerationError(f"no_valid_json_from_investigation_chunks: {exc}") from exc

    part = str(first.get("content_markdown_part") or "").strip()
    if not part:
        raise GenerationError("no_valid_json_from_investigation_chunks")
    state = ChunkState(
        title=clean_text(first.get("title")),
        subtitle=clean_text(first.get("subtitle")),
    )
    state.absorb(part, first.get("continue") is True)

    while state.should_continue and state.chunks_used < max_chunks:
        next_prompt = f"""
You are writing an investigative article. Continue where you left off.

Last lines (context):
{state.text[-CONTINUATION_TAIL_CHARS:]}

Write the NEXT part.

Output valid JSON, exactly:
{prompts.NEXT_CHUNK_HINT}

Rules:
- start smoothly, no repetition of earlier text
- end on a full sentence
- no code fences, no text outside the JSON
""".strip()
        try:
            data = complete_structured(
                ai,
                "writer",
                next_prompt,
                prompts.NEXT_CHUNK_SCHEMA,
                prompts.NEXT_CHUNK_HINT,
                temperature=min(0.9, temperature + 0.02),
                max_tokens=CHUNK_MAX_TOKENS,
                step=f"investigation_chunk_{state.chunks_used + 1}",
            )
        except RepairError as exc:
            log_event(ai.logger, logging.WARNING, "investigation_chunk_failed", error=str(exc))
            break
        part = str(data.get("content_markdown_part") or "").strip()
        if not part:
            break
        state.absorb(part, data.get("continue") is True)

    log_event(ai.logger, logging.INFO, "investigation_generated", chunks=state.chunks_used)
    return state


def writers_room_notes(
    ai: AIContext, draft: Draft, article_type: str, topic_mode: str
) -> list[ReviewerNotes]:
    results = []
    for reviewer in WRITERS_ROOM:
        prompt = f"""
{prompts.BASE_EDITORIAL_RULES}

You are {reviewer.name}. Your style: {reviewer.vibe}.

TASK: give EDITORIAL NOTES to improve this satirical article (more readable, stronger,
funnier through form).
Rules:
- At most {MAX_NOTES_PER_REVIEWER} bullets
- Be concrete: point at 1-2 places that are unclear, too busy or too staccato
- Suggest 2 possible twists that fit the premise
- Suggest 1 better, dry closing sentence
- No full rewrite

Context: type={article_type} mode={topic_mode}

DRAFT:
TITLE: {draft.title}
SUBTITLE: {draft.subtitle}
TEXT:
{prompts.clamp(draft.content, NOTES_CONTENT_CHARS)}

Output valid JSON:
{prompts.NOTES_HINT}
No extra text.
""".strip()
        try:
            data = complete_structured(
                ai,
                "structured",
                prompt,
                prompts.NOTES_SCHEMA,
                prompts.NOTES_HINT,
                temperature=ai.config.llm.structured_temperature,
                max_tokens=ai.config.llm.max_tokens_structured,
                step=f"writers_room_{reviewer.id}",
            )
            notes = [clean_text(note) for note in data.get("notes") or []]
        except RepairError as exc:
            log_event(
                ai.logger,
                logging.WARNING,
                "writers_room_failed",
                reviewer=reviewer.id,
                error=str(exc),
            )
            notes = []
        results.append(
            ReviewerNotes(
                reviewer=reviewer.id,
                name=reviewer.name,
                notes=[note for note in notes if note][:MAX_NOTES_PER_REVIEWER],
            )
        )
    return results


def punch_up_rewrite(
    ai: AIContext, req: DraftRequest, draft: Draft, notes: list[ReviewerNotes]
) -> Draft:
    notes_block = "\n".join(
        f"- {entry.name}:\n  " + "\n  ".join(f"* {note}" for note in entry.notes)
        for entry in notes
        if entry.notes
    )
    prompt = f"""
{prompts.BASE_EDITORIAL_RULES}

You are the lead author. You receive internal editorial notes.
REWRITE the article so it is clearer, better built and drier (institutional, logically absurd).
Keep every safety boundary of the draft: never add victims, tragedies or real private persons.

GOALS:
- Premise clear early, without shouting
- Less stacking: cut busy sentences
- Better structure: context, friction, escalation, dry run-out
- Raise absurdity through policy, procedures and spokespeople
- At most 2 quotable sentences
- Upgrade the last sentence: dry, institutional, no moral
- {prompts.language_rule(ai.config.app.language)}

{prompts.mode_rules(req.topic_mode)}
{prompts.type_rules(req.article_type)}

{prompts.rules_block(ai.rules)}
{prompts.feedback_block(req.feedback_context)}
{prompts.summary_block(req.topic_mode, req.source_summary)}
INTERNAL NOTES:
{notes_block or "(none)"}

ORIGINAL DRAFT:
TITLE: {draft.title}
SUBTITLE: {draft.subtitle}
TEXT:
{draft.content}

OUTPUT (ONLY VALID JSON):
{prompts.ARTICLE_HINT}
""".strip()
    try:
        data = complete_structured(
            ai,
            "writer",
            prompt,
            prompts.REWRITE_SCHEMA,
            prompts.ARTICLE_HINT,
            temperature=min(0.92, ai.config.llm.write_temperature + 0.03),
            max_tokens=ai.config.llm.max_tokens_article,
            step="punch_up",
        )
    except RepairError as exc:
        raise GenerationError(f"no_valid_json_from_punch_up: {exc}") from exc
    return Draft(
        title=clean_text(data.get("title") or draft.title),
        subtitle=clean_text(data.get("subtitle") or draft.subtitle),
        content=str(data.get("content_markdown") or "").strip(),
    )


def final_editor_pass(
    ai: AIContext,
    editor: Editor,
    draft: Draft,
    article_type: str,
    rng: random.Random,
) -> Draft:
    catchphrase = None
    if editor.catchphrases and rng.random() < CATCHPHRASE_CHANCE:
        catchphrase = rng.choice(editor.catchphrases)
    prompt = f"""
{prompts.BASE_EDITORIAL_RULES}

You are the FINAL EDITOR.

{prompts.persona_block(editor)}

GOAL:
- Make it tighter and more readable, not busier
- Cut sentences that explain the joke
- Check that every paragraph serves the satirical premise
- Upgrade the last sentence: dry, procedural, morally empty, tied back to the premise
- Always end on a full sentence
- {prompts.language_rule(ai.config.app.language)}

OPTIONAL: 0-1 catchphrase if it fits naturally.
Catchphrase suggestion: {f'"{catchphrase}"' if catchphrase else "(none)"}

INPUT:
TYPE: {article_type}
TITLE: {draft.title}
SUBTITLE: {draft.subtitle}
TEXT:
{prompts.clamp(draft.content, FINAL_CONTENT_CHARS)}

Output valid JSON:
{prompts.ARTICLE_HINT}
No extra text.
""".strip()
    try:
        data = complete_structured(
            ai,
            "writer",
            prompt,
            prompts.REWRITE_SCHEMA,
            prompts.ARTICLE_HINT,
            temperature=0.7,
            max_tokens=ai.config.llm.max_tokens_article,
            step="final_edit",
        )
    except RepairError as exc:
        log_event(ai.logger, logging.WARNING, "final_edit_fallback", error=str(exc))
        return draft
    return Draft(
        title=clean_text(data.get("title") or draft.title),
        subtitle=clean_text(data.get("subtitle") or draft.subtitle),
        content=str(data.get("content_markdown") or draft.content).strip(),
    )
