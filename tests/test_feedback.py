from saitire.feedback import FeedbackCaps, build_feedback_context


def _row(feedback, category="tech", editor_id="tech", editor_name="Sanne Bakker", action="reject"):
    return {
        "action": action,
        "feedback": feedback,
        "category": category,
        "editor_id": editor_id,
        "editor_name": editor_name,
    }


def test_editor_match_wins_over_category():
    rows = [_row("te lang", category="tech", editor_id="tech")]
    context = build_feedback_context(rows, "tech", "tech", "Sanne Bakker")
    assert context == "EDITOR (Sanne Bakker):\n- te lang"


def test_each_record_lands_in_one_bucket():
    rows = [
        _row("editor punt"),
        _row("categorie punt", editor_id="politiek", editor_name="Henk"),
        _row("algemeen punt", category="sport", editor_id="cultuur", editor_name="Lotte"),
    ]
    context = build_feedback_context(rows, "tech", "tech", "Sanne Bakker")
    assert context.count("- editor punt") == 1
    assert context.count("- categorie punt") == 1
    assert context.count("- algemeen punt") == 1
    sections = context.split("\n\n")
    assert sections[0].startswith("EDITOR (Sanne Bakker):")
    assert sections[1] == "CATEGORY (tech):\n- categorie punt"
    assert sections[2] == "GENERAL:\n- algemeen punt"


def test_duplicate_text_never_repeats_across_buckets():
    rows = [
        _row("Te Droog", category="sport", editor_id="x", editor_name="x"),
        _row("te droog"),
    ]
    context = build_feedback_context(rows, "tech", "tech", "Sanne Bakker")
    assert context.lower().count("te droog") == 1
    assert context.startswith("EDITOR")


def test_ignores_non_reject_and_empty_feedback():
    rows = [
        _row("verwijderd", action="delete_published"),
        _row("   "),
        {"action": "reject"},
    ]
    assert build_feedback_context(rows, "tech", "tech", "Sanne Bakker") == ""


def test_caps_keep_most_recent():
    rows = [_row(f"punt {index}") for index in range(10)]
    context = build_feedback_context(
        rows, "tech", "tech", "Sanne Bakker", FeedbackCaps(editor=3, category=3, global_=3)
    )
    assert context == "EDITOR (Sanne Bakker):\n- punt 9\n- punt 8\n- punt 7"
