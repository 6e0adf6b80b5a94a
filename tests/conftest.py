from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse
from xml.sax.saxutils import escape

import pytest
import yaml

from saitire.blobstore import LocalBlobStore, reset_blob_store
from saitire.config import load_config
from saitire.ingest import FetchError
from saitire.llm import AIContext

TRENDS_URL = "https://trends.test/rss"
NEWS_TEMPLATE = "https://news.test/rss?q={q}"

# Prompt markers, most specific first.
STEP_MARKERS = [
    ("repair", "Convert the text below into VALID JSON"),
    ("societal_hook", "Think of one topic"),
    ("summarize", "Summarise this news article"),
    ("ludic", "Decide whether this news context is suitable"),
    ("classify", "Pick exactly one category"),
    ("investigation_first", "IMPORTANT: your output may be cut off"),
    ("investigation_next", "Continue where you left off"),
    ("generate_article", "WRITE ONE SATIRICAL NEWS ARTICLE"),
    ("writers_room", "give EDITORIAL NOTES"),
    ("punch_up", "INTERNAL NOTES:"),
    ("final_edit", "OPTIONAL: 0-1 catchphrase"),
    ("claims", "Select only claims"),
    ("actuality", "Check whether this claim is still current"),
    ("people", "Extract only PEOPLE"),
    ("quality_review", "Judge strictly on"),
    ("prompt_profile", "Condense it into"),
]

ARTICLE_BODY = (
    "De gemeente opent een loket voor wachtrijen. Het loket heeft zelf een wachtrij. "
    "Een woordvoerder noemt dit efficiënt. Burgers nemen een nummertje voor het nummertje. "
    "Het kabinet overweegt een commissie. De commissie vergadert volgende week over volgende week."
)

DEFAULT_RESPONSES: dict[str, Any] = {
    "societal_hook": {"trend": "wachtrij", "title": "Wachtrij voor wachtrijloket groeit"},
    "summarize": {"summary": ["Er is een nieuwe regeling aangekondigd."]},
    "ludic": {"suitable": True, "reason": "luchtig onderwerp"},
    "classify": {"category": "politiek"},
    "investigation_first": {
        "title": "Onderzoek naar het loket",
        "subtitle": "Een reconstructie",
        "content_markdown_part": "## De vraag\n\nWie bedacht het loket?",
        "continue": False,
    },
    "investigation_next": {"content_markdown_part": "## Slot\n\nNiemand.", "continue": False},
    "generate_article": {
        "title": "Loket voor wachtrijen krijgt eigen wachtrij",
        "subtitle": "Gemeente spreekt van succes",
        "content_markdown": ARTICLE_BODY,
    },
    "writers_room": {"notes": ["Maak de slotzin droger."]},
    "punch_up": {
        "title": "Loket voor wachtrijen krijgt eigen wachtrij",
        "subtitle": "Gemeente spreekt van succes",
        "content_markdown": ARTICLE_BODY,
    },
    "final_edit": {
        "title": "Loket voor wachtrijen krijgt eigen wachtrij",
        "subtitle": "Gemeente spreekt van succes",
        "content_markdown": ARTICLE_BODY,
    },
    "claims": {"claims": []},
    "actuality": {"ok": True, "confidence": 80, "reason": "", "rewrite_instructions": ""},
    "people": {"people": []},
    "quality_review": {
        "approved": True,
        "score": 92,
        "reasons": ["Strak en droog."],
        "must_fix": [],
        "rewrite_prompt": "",
    },
    "prompt_profile": {"rules": ["Begin met de grap."]},
}


class ScriptedCompleter:
    """Fake LLM client answering by prompt marker.

    ``responses`` maps a step name to a dict, a raw string, a list (consumed
    in order, last entry repeats) or a callable taking the prompt.
    """

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = {**DEFAULT_RESPONSES, **(responses or {})}
        self.calls: list[tuple[str, str]] = []

    def step_for(self, prompt: str) -> str:
        for step, marker in STEP_MARKERS:
            if marker in prompt:
                return step
        raise AssertionError(f"unexpected prompt: {prompt[:120]}")

    def steps(self) -> list[str]:
        return [step for step, _ in self.calls]

    def complete(
        self,
        role: str,
        messages: list[dict[str, str]],
        *,
        temperature: float,
        max_tokens: int,
    ) -> str:
        prompt = messages[-1]["content"]
        step = self.step_for(prompt)
        self.calls.append((step, role))
        response = self.responses.get(step)
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if callable(response):
            response = response(prompt)
        if response is None:
            raise AssertionError(f"no scripted response for {step}")
        return response if isinstance(response, str) else json.dumps(response)


def rss(items: list[tuple[str, str]]) -> str:
    entries = "".join(
        f"<item><title>{escape(title)}</title><link>{escape(link)}</link>"
        "<pubDate>Mon, 19 Oct 2026 08:00:00 GMT</pubDate></item>"
        for title, link in items
    )
    return (
        '<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>'
        f"{entries}</channel></rss>"
    )


class FakeFetcher:
    """Serves the trends feed, news searches by query and plain pages."""

    def __init__(
        self,
        trends: list[str] | None = None,
        news: dict[str, list[tuple[str, str]]] | None = None,
        pages: dict[str, str] | None = None,
    ) -> None:
        self.trends = trends or []
        self.news = news or {}
        self.pages = pages or {}
        self.urls: list[str] = []

    def __call__(self, url: str) -> str:
        self.urls.append(url)
        if url == TRENDS_URL:
            items = [(trend, f"https://trends.test/{i}") for i, trend in enumerate(self.trends)]
            return rss(items)
        if url.startswith("https://news.test/"):
            query = parse_qs(urlparse(url).query).get("q", [""])[0]
            return rss(self.news.get(query, []))
        if url in self.pages:
            return self.pages[url]
        raise FetchError(f"http_error 404 for {url}", status=404)


@pytest.fixture(autouse=True)
def _isolate_blob_store():
    reset_blob_store()
    yield
    reset_blob_store()


@pytest.fixture
def config_factory(tmp_path: Path) -> Callable[..., Any]:
    def _make(overrides: dict[str, Any] | None = None, env: dict[str, str] | None = None):
        base = {
            "feeds": {"trends_rss_url": TRENDS_URL, "news_rss_template": NEWS_TEMPLATE},
            "publish": {
                "topic_mode_weights": {"trending": 1, "societal_pulse": 0},
                "article_type_weights": {"normal": 1, "short": 0, "investigation": 0},
            },
            "images": {"mode": "off"},
        }
        for key, value in (overrides or {}).items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = {**base[key], **value}
            else:
                base[key] = value
        cfg_path = tmp_path / "config.yml"
        cfg_path.write_text(yaml.safe_dump(base), encoding="utf-8")
        full_env = {
            "OPENAI_API_KEY": "test-openai",
            "ANTHROPIC_API_KEY": "test-anthropic",
            "SAITIRE_DATA_DIR": str(tmp_path / "data"),
        }
        full_env.update(env or {})
        return load_config(str(cfg_path), env=full_env)

    return _make


@pytest.fixture
def config(config_factory):
    return config_factory()


@pytest.fixture
def store(tmp_path: Path) -> LocalBlobStore:
    return LocalBlobStore(str(tmp_path / "store"))


@pytest.fixture
def completer() -> ScriptedCompleter:
    return ScriptedCompleter()


@pytest.fixture
def ai(completer, config) -> AIContext:
    return AIContext(client=completer, config=config, logger=logging.getLogger("saitire.test"))


@pytest.fixture
def rng() -> random.Random:
    return random.Random(7)

