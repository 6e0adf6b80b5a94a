from saitire.text import (
    clamp_text,
    fallback_title,
    finalize_content,
    is_too_generic,
    normalize_paragraphs,
    remove_author_signature,
    slugify,
)


def test_slugify_strips_accents_and_punctuation():
    assert slugify("Café in Zürich: 'n ramp?!") == "cafe-in-zurich-n-ramp"


def test_slugify_collapses_dashes_and_truncates():
    assert slugify("a -- b") == "a-b"
    assert len(slugify("woord " * 40)) <= 80


def test_slugify_returns_empty_for_symbols():
    assert slugify("!!! ???") == ""


def test_is_too_generic():
    assert is_too_generic("Nieuws")
    assert is_too_generic("ab")
    assert is_too_generic("2024")
    assert not is_too_generic("Formatie")


def test_fallback_title_mentions_trend():
    assert "Formatie" in fallback_title("Formatie")


def test_normalize_paragraphs_groups_sentences():
    text = "Een. Twee. Drie. Vier. Vijf. Zes. Zeven."
    paragraphs = normalize_paragraphs(text).split("\n\n")
    assert paragraphs == ["Een. Twee. Drie.", "Vier. Vijf. Zes. Zeven."]


def test_normalize_paragraphs_keeps_pairs_together():
    assert normalize_paragraphs("Een. Twee.") == "Een. Twee."


def test_remove_author_signature():
    assert remove_author_signature("Tekst.\n\n— Henk Verhoef") == "Tekst."


def test_finalize_investigation_flattens_deep_headings():
    content = "## Vraag\n\n\n\n### Detail\ntekst"
    assert finalize_content(content, "investigation") == "## Vraag\n\n## Detail\ntekst"


def test_clamp_text():
    assert clamp_text("  abcdef  ", 3) == "abc"
    assert clamp_text(None, 3) == ""
