from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .ingest import TextFetcher, fetch_headlines
from .llm import AIContext
from .pipelines.analysis import check_actuality, extract_timely_claims
from .text import clean_text
from .utils import log_event

ACTUALITY_HEADLINES = 8
PEOPLE_HEADLINES = 10

SERIOUS_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        # injury and hospitalisation
        r"\bern(?:stig)?\s+gewond\b",
        r"\bzwaargewond\b",
        r"\bkritieke\s+toestand\b",
        r"\bop\s+de\s+ic\b",
        r"\bintensive\s+care\b",
        r"\bcoma\b",
        r"\bseriously\s+injured\b",
        r"\bcritical\s+condition\b",
        # death
        r"\boverleden\b",
        r"\bom\s+het\s+leven\s+gekomen\b",
        r"\bdodelijk\b",
        r"\bdied\b",
        r"\bkilled\b",
        r"\bfatal\b",
        # violence and terrorism
        r"\baanslag\b",
        r"\bterror(?:isme|ist|ism)?\b",
        r"\bschietpartij\b",
        r"\bsteekpartij\b",
        r"\bgijzel(?:ing|aar)?\b",
        r"\bshooting\b",
        r"\bstabbing\b",
        r"\bhostages?\b",
        # suicide
        r"\bzelfmoord\b",
        r"\bsu[iï]cide\b",
        # sexual violence
        r"\bverkracht(?:ing)?\b",
        r"\bseksueel\s+misbruik\b",
        r"\brape[ds]?\b",
        r"\bsexual\s+(?:abuse|assault)\b",
    )
)


@dataclass(frozen=True)
class ActualityOutcome:
    ok: bool
    reason: str = ""
    failed_claim: str = ""
    rewrite_instructions: str = ""
    sample_headline: str = ""

    def review_notes(self) -> list[str]:
        notes = [
            f"Actuality check failed: {self.reason}",
            f"Claim: {self.failed_claim}",
        ]
        if self.rewrite_instructions:
            notes.append(f"Rewrite advice: {self.rewrite_instructions}")
        if self.sample_headline:
            notes.append(f"Sample headline: {self.sample_headline}")
        return notes


@dataclass(frozen=True)
class PersonSafetyResult:
    hit: bool
    who: str = ""
    reason: str = ""


def is_serious_text(text: str) -> bool:
    value = str(text or "")
    return any(pattern.search(value) for pattern in SERIOUS_PATTERNS)


def has_serious_signals(source_headline: str | None, title: str, subtitle: str) -> bool:
    """Check headline metadata only; bodies may use serious words as a joke."""
    combo = f"{source_headline or ''} | {title or ''} | {subtitle or ''}"
    return is_serious_text(combo)


def run_actuality_checks(
    ai: AIContext,
    fetch: TextFetcher,
    title: str,
    subtitle: str,
    content: str,
) -> ActualityOutcome:
    template = ai.config.feeds.news_rss_template
    claims = extract_timely_claims(ai, title, subtitle, content)
    for claim in claims:
        query = clean_text(claim.query)
        if not claim.claim or not query:
            continue
        headlines = fetch_headlines(fetch, template, query, ACTUALITY_HEADLINES)
        if not headlines:
            log_event(ai.logger, logging.DEBUG, "actuality_claim_unverifiable", claim=claim.claim)
            continue
        verdict = check_actuality(ai, claim.claim, headlines)
        if not verdict.ok:
            log_event(
                ai.logger,
                logging.INFO,
                "actuality_failed",
                claim=claim.claim,
                reason=verdict.reason,
            )
            return ActualityOutcome(
                ok=False,
                reason=verdict.reason or "outdated claim",
                failed_claim=claim.claim,
                rewrite_instructions=verdict.rewrite_instructions,
                sample_headline=headlines[0],
            )
    return ActualityOutcome(ok=True)


def check_people(
    fetch: TextFetcher,
    template: str,
    people: list[str],
    logger: logging.Logger,
) -> PersonSafetyResult:
    for person in people:
        headlines = fetch_headlines(fetch, template, person, PEOPLE_HEADLINES)
        serious = next((headline for headline in headlines if is_serious_text(headline)), None)
        if serious:
            log_event(logger, logging.INFO, "person_filter_hit", person=person, headline=serious)
            return PersonSafetyResult(
                hit=True,
                who=person,
                reason=f'serious news signal about "{person}" (e.g. "{serious}")',
            )
    return PersonSafetyResult(hit=False)
