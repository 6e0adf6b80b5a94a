import logging

from conftest import FakeFetcher, ScriptedCompleter
from saitire.llm import AIContext
from saitire.models import Article
from saitire.quality import HARD_REJECT_REASON, review_article
from saitire.safety import check_people, has_serious_signals, is_serious_text, run_actuality_checks
from saitire.storage import read_json


def _article(**overrides):
    fields = dict(
        slug="loket",
        title="Loket voor wachtrijen",
        subtitle="Gemeente tevreden",
        category="politiek",
        content="Alles loopt gesmeerd.",
        topic_mode="trending",
        article_type="normal",
        author="Henk Verhoef",
        created_date="2026-10-19T08:00:00+00:00",
        source_headline="Gemeente opent nieuw loket",
        source_url="https://news.test/a",
    )
    fields.update(overrides)
    return Article(**fields)


def _ai(config, responses=None):
    return AIContext(
        client=ScriptedCompleter(responses),
        config=config,
        logger=logging.getLogger("saitire.test"),
    )


def test_serious_patterns_match_dutch_and_english():
    assert is_serious_text("Twee mensen ernstig gewond bij ongeval")
    assert is_serious_text("Man OVERLEDEN na val")
    assert is_serious_text("Shooting downtown")
    assert not is_serious_text("Gemeente opent loket")


def test_serious_signals_ignore_body():
    assert has_serious_signals("Aanslag op station", "Titel", "Sub")
    assert not has_serious_signals(None, "Titel", "Sub")


def test_hard_reject_never_calls_llm(config, store):
    ai = _ai(config)
    article = _article(source_headline="Drie doden bij schietpartij")
    review = review_article(ai, store, article)
    assert review.approved is False
    assert review.score == 0
    assert review.reasons == [HARD_REJECT_REASON]
    assert ai.client.calls == []
    assert read_json(store, f"reviews/{article.id}.json", {})["score"] == 0


def test_serious_words_in_body_still_get_llm_review(config, store):
    ai = _ai(config)
    review = review_article(ai, store, _article(content="Het loket was dodelijk saai."))
    assert ai.client.steps() == ["quality_review"]
    assert review.approved is True
    assert review.score == 92


def test_llm_approval_needs_minimum_score(config):
    ai = _ai(
        config,
        {
            "quality_review": {
                "approved": True,
                "score": "74",
                "reasons": [str(index) for index in range(9)],
                "must_fix": ["x"],
                "rewrite_prompt": "Herschrijf",
            }
        },
    )
    review = review_article(ai, None, _article())
    assert review.approved is False
    assert review.score == 74
    assert len(review.reasons) == 5
    assert review.rewrite_prompt == "Herschrijf"


def test_score_clamped(config):
    for raw, expected in ((250, 100), (-3, 0), ("veel", 0), (88.6, 89)):
        ai = _ai(config, {"quality_review": {"approved": True, "score": raw}})
        assert review_article(ai, None, _article()).score == expected


def test_skip_review_approves(config, store):
    ai = _ai(config)
    review = review_article(ai, store, _article(), skip_review=True)
    assert (review.approved, review.score) == (True, 100)
    assert ai.client.calls == []
    assert store.list("reviews/").objects == []


def test_actuality_fails_on_first_outdated_claim(config):
    ai = _ai(
        config,
        {
            "claims": {
                "claims": [
                    {"claim": "Onbekend feit", "query": "niets te vinden"},
                    {"claim": "Rutte is premier", "query": "premier nederland"},
                ]
            },
            "actuality": {
                "ok": False,
                "confidence": 90,
                "reason": "achterhaald",
                "rewrite_instructions": "Noem de huidige premier",
            },
        },
    )
    fetch = FakeFetcher(news={"premier nederland": [("Nieuwe premier beëdigd", "https://n/1")]})
    outcome = run_actuality_checks(ai, fetch, "t", "s", "c")
    assert outcome.ok is False
    assert outcome.failed_claim == "Rutte is premier"
    assert outcome.sample_headline == "Nieuwe premier beëdigd"
    notes = outcome.review_notes()
    assert "Claim: Rutte is premier" in notes
    assert ai.client.steps() == ["claims", "actuality"]


def test_actuality_passes_without_claims(config):
    ai = _ai(config)
    assert run_actuality_checks(ai, FakeFetcher(), "t", "s", "c").ok is True


def test_actuality_skips_claim_without_query(config):
    claim = "Rutte is premier"
    ai = _ai(
        config,
        {
            "claims": {"claims": [{"claim": claim, "query": "  "}]},
            "actuality": {"ok": False, "confidence": 90, "reason": "achterhaald"},
        },
    )
    fetch = FakeFetcher(news={claim: [("Nieuwe premier beëdigd", "https://n/1")]})

    assert run_actuality_checks(ai, fetch, "t", "s", "c").ok is True
    assert fetch.urls == []
    assert ai.client.steps() == ["claims"]


def test_person_filter_hits_on_serious_headline():
    fetch = FakeFetcher(
        news={
            "Jan Jansen": [("Jan Jansen wint prijs", "https://n/1")],
            "Piet Pieters": [("Piet Pieters zwaargewond na val", "https://n/2")],
        }
    )
    result = check_people(
        fetch, "https://news.test/rss?q={q}", ["Jan Jansen", "Piet Pieters"], logging.getLogger()
    )
    assert result.hit is True
    assert result.who == "Piet Pieters"


def test_person_filter_clear():
    fetch = FakeFetcher(news={"Jan Jansen": [("Jan Jansen wint prijs", "https://n/1")]})
    result = check_people(fetch, "https://news.test/rss?q={q}", ["Jan Jansen"], logging.getLogger())
    assert result.hit is False
