import random
from dataclasses import replace

import pytest

from conftest import ScriptedCompleter
from saitire.editors import DEFAULT_EDITORS
from saitire.pipelines.writing import (
    CONTINUATION_TAIL_CHARS,
    Draft,
    DraftRequest,
    GenerationError,
    final_editor_pass,
    generate_article,
    generate_investigation_chunks,
    writers_room_notes,
)


class RecordingCompleter(ScriptedCompleter):
    def __init__(self, responses=None):
        super().__init__(responses)
        self.temperatures = []
        self.prompts = []

    def complete(self, role, messages, *, temperature, max_tokens):
        self.temperatures.append(temperature)
        self.prompts.append(messages[-1]["content"])
        return super().complete(role, messages, temperature=temperature, max_tokens=max_tokens)


def _request(article_type="normal"):
    return DraftRequest(
        trend="wachtrij",
        headline="Gemeente opent loket",
        link="https://news.test/1",
        source_summary=["Er komt een loket."],
        category="politiek",
        editor=DEFAULT_EDITORS[0],
        article_type=article_type,
        topic_mode="trending",
    )


def _draft():
    return Draft(title="Titel", subtitle="Ondertitel", content="Tekst.")


def test_generate_article_skip(ai, completer):
    completer.responses["generate_article"] = {"skip": True, "reason": "te gevoelig"}
    draft = generate_article(ai, _request())
    assert draft.skip is True
    assert draft.reason == "te gevoelig"


def test_generate_article_without_valid_json_raises(ai, completer):
    completer.responses["generate_article"] = "geen json"
    completer.responses["repair"] = "nog steeds geen json"
    with pytest.raises(GenerationError):
        generate_article(ai, _request())
    assert completer.steps() == ["generate_article", "repair"]


def test_investigation_stops_at_max_chunks(ai):
    long_part = "Zin. " * 400
    completer = RecordingCompleter(
        {
            "investigation_first": {
                "title": "Onderzoek",
                "subtitle": "Deel een",
                "content_markdown_part": long_part,
                "continue": True,
            },
            "investigation_next": {"content_markdown_part": "## Verder\n\nMeer.", "continue": True},
        }
    )
    ai = replace(ai, client=completer)

    state = generate_investigation_chunks(ai, "BASIS", max_chunks=3, temperature=0.89)

    assert state.chunks_used == 3
    assert completer.steps() == ["investigation_first", "investigation_next", "investigation_next"]
    assert completer.temperatures[1:] == [0.9, 0.9]
    assert long_part.strip()[-CONTINUATION_TAIL_CHARS:] in completer.prompts[1]
    assert state.text.count("## Verder") == 2


def test_investigation_without_first_chunk_raises(ai, completer):
    completer.responses["investigation_first"] = {"content_markdown_part": "", "continue": False}
    with pytest.raises(GenerationError):
        generate_investigation_chunks(ai, "BASIS", max_chunks=3, temperature=0.9)


def test_investigation_article_uses_accumulated_text(ai, completer):
    draft = generate_article(ai, _request("investigation"))
    assert draft.title == "Onderzoek naar het loket"
    assert draft.content == "## De vraag\n\nWie bedacht het loket?"
    assert "generate_article" not in completer.steps()


def test_writers_room_failure_yields_empty_notes(ai, completer):
    completer.responses["writers_room"] = "niets bruikbaars"
    completer.responses["repair"] = "nog steeds niets"

    notes = writers_room_notes(ai, _draft(), "normal", "trending")

    assert [entry.reviewer for entry in notes] == ["absurdist", "cynic", "builder"]
    assert all(entry.notes == [] for entry in notes)


def test_writers_room_caps_notes(ai, completer):
    completer.responses["writers_room"] = {"notes": [f"noot {i}" for i in range(9)]}
    notes = writers_room_notes(ai, _draft(), "normal", "trending")
    assert all(len(entry.notes) == 6 for entry in notes)


def test_final_edit_falls_back_to_input(ai, completer):
    completer.responses["final_edit"] = "kapot"
    completer.responses["repair"] = "nog steeds kapot"
    draft = _draft()
    assert final_editor_pass(ai, DEFAULT_EDITORS[0], draft, "normal", random.Random(1)) == draft
