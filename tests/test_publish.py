import logging
import random

import pytest

from conftest import FakeFetcher, ScriptedCompleter
from saitire.config import ConfigError
from saitire.llm import AIContext
from saitire.models import CATEGORIES, Editor
from saitire.publish import PublishOptions, run_publish, write_run_report
from saitire.storage import (
    append_feedback,
    read_feedback_tail,
    read_json,
    read_pending,
    read_published,
    write_json,
)

SOURCE_URL = "https://bron.test/loket"
SOURCE_PAGE = "<html><body><article>" + "De gemeente opent een nieuw loket. " * 20 + "</article>"
SLUG = "loket-voor-wachtrijen-krijgt-eigen-wachtrij"

AUTO_PUBLISH = {"review": {"human_review": False, "force_all_to_pending": False}}


def _fetcher(trends=("Loketchaos",), **news):
    feeds = {"Loketchaos": [("Gemeente opent nieuw loket", SOURCE_URL)]}
    feeds.update(news)
    return FakeFetcher(trends=list(trends), news=feeds, pages={SOURCE_URL: SOURCE_PAGE})


def _run(config, store, fetch, responses=None, options=None, notifier=None):
    completer = ScriptedCompleter(responses)
    ai = AIContext(client=completer, config=config, logger=logging.getLogger("saitire.test"))
    report = run_publish(
        ai,
        store,
        fetch,
        options or PublishOptions(),
        rng=random.Random(1),
        notifier=notifier,
    )
    return report, completer


def test_auto_publish_happy_path(config_factory, store):
    config = config_factory(AUTO_PUBLISH)
    report, completer = _run(config, store, _fetcher())

    published = read_published(store)
    assert [item["slug"] for item in published] == [SLUG]
    article = published[0]
    assert article["review_status"] == "approved"
    assert article["review_score"] == 92
    assert article["source_url"] == SOURCE_URL
    assert article["source_headline"] == "Gemeente opent nieuw loket"
    assert article["category"] == "politiek"
    assert article["editor_id"] == "politiek"
    assert article["is_featured"] is True
    assert "featured_candidate" not in article
    assert read_json(store, f"reviews/{article['id']}.json", {})["approved"] is True
    assert read_pending(store) == []

    assert (report.written, report.published, report.pending) == (1, 1, 0)
    steps = completer.steps()
    assert steps[:4] == ["summarize", "ludic", "classify", "generate_article"]
    assert steps.count("writers_room") == 3
    assert steps[-3:] == ["claims", "people", "quality_review"]


def test_scenario_a_no_news_skips_trend(config, store):
    report, completer = _run(config, store, _fetcher(trends=("Onvindbaar",)))
    assert report.written == 0
    assert report.skipped == {"no_context": 1}
    assert completer.calls == []
    assert read_published(store) == []


def test_scenario_b_outdated_claim_goes_to_pending(config, store):
    claim = "Jansen is nog altijd minister van Wachtrijen"
    responses = {
        "claims": {"claims": [{"claim": claim, "query": "minister jansen", "type": "politics"}]},
        "actuality": {
            "ok": False,
            "confidence": 85,
            "reason": "Jansen is afgetreden",
            "rewrite_instructions": "Laat Jansen weg",
        },
    }
    fetch = _fetcher(**{"minister jansen": [("Jansen treedt af", "https://n.test/1")]})
    notified = []
    report, completer = _run(
        config, store, fetch, responses, notifier=lambda *args: notified.append(args)
    )

    pending = read_pending(store)
    assert len(pending) == 1
    assert pending[0]["review_status"] == "needs_human"
    assert pending[0]["review_score"] == 0
    assert any(claim in note for note in pending[0]["review_notes"])
    assert read_published(store) == []
    assert report.written == 1
    assert report.pending == 1
    assert "quality_review" not in completer.steps()
    assert notified == [("Loket voor wachtrijen krijgt eigen wachtrij", 0, "Actuality check")]


def test_force_all_to_pending_queues_reviewed_item(config, store):
    notified = []
    report, _ = _run(config, store, _fetcher(), notifier=lambda *args: notified.append(args))
    pending = read_pending(store)
    assert [item["slug"] for item in pending] == [SLUG]
    assert pending[0]["review_status"] == "needs_human"
    assert pending[0]["review_score"] == 92
    assert read_published(store) == []
    assert report.pending == 1
    assert notified[0][1:] == (92, "Pending review")


def test_low_score_needs_human(config_factory, store):
    config = config_factory({"review": {"human_review": True, "force_all_to_pending": False}})
    responses = {"quality_review": {"approved": True, "score": 80}}
    _run(config, store, _fetcher(), responses)
    assert [item["review_status"] for item in read_pending(store)] == ["needs_human"]


def test_duplicate_slug_skipped_within_run(config_factory, store):
    config = config_factory(AUTO_PUBLISH)
    fetch = _fetcher(
        trends=("Loketchaos", "Wachtrijgate"),
        Wachtrijgate=[("Wachtrij groeit", "https://bron.test/wachtrij")],
    )
    report, _ = _run(config, store, fetch)
    assert [item["slug"] for item in read_published(store)] == [SLUG]
    assert report.skipped == {"duplicate_slug": 1}
    assert report.written == 1


def test_existing_slug_skipped_unless_forced(config_factory, store):
    config = config_factory(AUTO_PUBLISH)
    write_json(store, "published.json", [{"id": "old", "slug": SLUG, "source_url": "x"}])
    report, _ = _run(config, store, _fetcher())
    assert report.skipped == {"duplicate_slug": 1}

    report, _ = _run(config, store, _fetcher(), options=PublishOptions(force=True))
    published = read_published(store)
    assert len(published) == 1
    assert published[0]["id"] != "old"


def test_used_source_skipped(config_factory, store):
    config = config_factory(AUTO_PUBLISH)
    write_json(store, "published.json", [{"id": "old", "slug": "iets", "source_url": SOURCE_URL}])
    report, completer = _run(config, store, _fetcher())
    assert report.skipped == {"no_context": 1}
    assert completer.calls == []


def test_person_filter_skip_does_not_count(config, store):
    fetch = _fetcher(**{"Piet Pieters": [("Piet Pieters ernstig gewond", "https://n.test/2")]})
    report, completer = _run(config, store, fetch, {"people": {"people": ["Piet Pieters"]}})
    assert report.written == 0
    assert report.skipped == {"person_filter": 1}
    assert read_pending(store) == []
    assert "quality_review" not in completer.steps()


def test_unsuitable_trend_skipped(config, store):
    report, completer = _run(
        config, store, _fetcher(), {"ludic": {"suitable": False, "reason": "ernstig"}}
    )
    assert report.skipped == {"unsuitable": 1}
    assert "generate_article" not in completer.steps()


def test_generator_skip(config, store):
    report, _ = _run(
        config, store, _fetcher(), {"generate_article": {"skip": True, "reason": "te ernstig"}}
    )
    assert report.skipped == {"generator_skip": 1}


def test_trend_failure_is_isolated(config_factory, store):
    config = config_factory(AUTO_PUBLISH)

    def _explode(prompt):
        raise RuntimeError("provider down")

    fetch = _fetcher(
        trends=("Loketchaos", "Wachtrijgate"),
        Wachtrijgate=[("Wachtrij groeit", "https://bron.test/wachtrij")],
    )
    report, _ = _run(config, store, fetch, {"quality_review": _explode})
    assert report.skipped == {"error": 2}
    assert report.written == 0


def test_societal_pulse_has_no_source(config_factory, store):
    config = config_factory(
        {
            **AUTO_PUBLISH,
            "publish": {
                "topic_mode_weights": {"trending": 0, "societal_pulse": 1},
                "article_type_weights": {"normal": 1, "short": 0, "investigation": 0},
            },
        }
    )
    report, completer = _run(config, store, _fetcher())
    published = read_published(store)
    assert published[0]["topic_mode"] == "societal_pulse"
    assert published[0]["source_url"] is None
    assert published[0]["source_headline"] is None
    assert "claims" not in completer.steps()
    assert completer.steps()[0] == "societal_hook"


def test_forced_investigation_uses_chunks(config_factory, store):
    config = config_factory(AUTO_PUBLISH)
    responses = {
        "investigation_first": {
            "title": "Onderzoek naar het loket",
            "subtitle": "Een reconstructie",
            "content_markdown_part": "## De vraag\n\nWie bedacht het loket?",
            "continue": True,
        },
        "final_edit": {"title": "", "subtitle": "", "content_markdown": ""},
        "punch_up": {
            "title": "Onderzoek naar het loket",
            "subtitle": "Een reconstructie",
            "content_markdown": "## De vraag\n\nWie bedacht het loket?\n\n## Slot\n\nNiemand.",
        },
    }
    report, completer = _run(
        config, store, _fetcher(), responses, options=PublishOptions(force_investigation=True)
    )
    article = read_published(store)[0]
    assert article["article_type"] == "investigation"
    assert "## Slot" in article["content"]
    assert completer.steps().count("investigation_next") == 1


def test_dry_run_writes_nothing(config_factory, store):
    config = config_factory(AUTO_PUBLISH)
    report, _ = _run(config, store, _fetcher(), options=PublishOptions(dry_run=True))
    assert report.published == 1
    assert report.published_slugs == [SLUG]
    assert store.get("published.json") is None
    assert store.list("reviews/").objects == []


def test_dry_run_without_llm_previews_trends(config_factory, store):
    config = config_factory(env={"OPENAI_API_KEY": "", "ANTHROPIC_API_KEY": ""})
    report, completer = _run(
        config,
        store,
        _fetcher(trends=("Loketchaos", "Nieuws", "Wachtrijgate")),
        options=PublishOptions(dry_run=True, no_llm=True),
    )
    assert report.preview == ["Loketchaos", "Wachtrijgate"]
    assert completer.calls == []


def test_missing_credentials_abort(config_factory, store):
    config = config_factory(env={"ANTHROPIC_API_KEY": ""})
    with pytest.raises(ConfigError) as excinfo:
        _run(config, store, _fetcher())
    assert "writer" in str(excinfo.value)


def test_no_llm_requires_dry_run(config, store):
    with pytest.raises(ConfigError):
        _run(config, store, _fetcher(), options=PublishOptions(no_llm=True))


def test_limit_stops_run(config_factory, store):
    config = config_factory(AUTO_PUBLISH)
    fetch = _fetcher(
        trends=("Loketchaos", "Wachtrijgate"),
        Wachtrijgate=[("Wachtrij groeit", "https://bron.test/wachtrij")],
    )
    report, _ = _run(config, store, fetch, options=PublishOptions(limit=1))
    assert report.limit == 1
    assert report.written == 1
    assert report.skipped == {}


def test_feedback_reaches_prompt(config_factory, store):
    config = config_factory(AUTO_PUBLISH)
    append_feedback(
        store,
        {
            "at": "2026-10-19T08:00:00+00:00",
            "action": "reject",
            "feedback": "Minder bijzinnen graag",
            "category": "politiek",
            "editor_id": "politiek",
        },
    )
    seen = []

    def _draft(prompt):
        seen.append(prompt)
        return {
            "title": "Loket voor wachtrijen krijgt eigen wachtrij",
            "subtitle": "Gemeente spreekt van succes",
            "content_markdown": "Een zin. Nog een zin.",
        }

    _run(config, store, _fetcher(), {"generate_article": _draft})
    assert "- Minder bijzinnen graag" in seen[0]
    assert len(read_feedback_tail(store, 10)) == 1


def test_write_run_report(tmp_path, config, store):
    report, _ = _run(config, store, _fetcher(trends=("Onvindbaar",)))
    path = write_run_report(str(tmp_path / "reports"), report)
    assert path.endswith(".json")
    assert '"no_context": 1' in open(path, encoding="utf-8").read()


def test_unnamed_editor_falls_back_to_configured_author(config_factory, store):
    config = config_factory({**AUTO_PUBLISH, "app": {"author": "De Redactie"}})
    anonymous = Editor(id="anoniem", name="", role="Redacteur", categories=list(CATEGORIES))
    ai = AIContext(
        client=ScriptedCompleter(), config=config, logger=logging.getLogger("saitire.test")
    )

    run_publish(ai, store, _fetcher(), PublishOptions(), rng=random.Random(1), editors=[anonymous])

    assert read_published(store)[0]["author"] == "De Redactie"
