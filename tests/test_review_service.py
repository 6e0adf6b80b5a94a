import pytest

from saitire.services import review_service
from saitire.services.review_service import NotFoundError
from saitire.storage import read_feedback_tail, read_pending, read_published, write_json


def _pending_item(item_id, slug, **extra):
    item = {
        "id": item_id,
        "slug": slug,
        "title": f"Titel {slug}",
        "category": "tech",
        "article_type": "normal",
        "review_status": "needs_human",
        "review_score": 70,
        "editor_id": "tech",
        "editor_name": "Sanne Bakker",
        "created_date": "2026-10-19T08:00:00+00:00",
    }
    item.update(extra)
    return item


@pytest.fixture
def seeded(store):
    write_json(store, "pending.json", [_pending_item("X", "x-slug"), _pending_item("Y", "y-slug")])
    return store


def test_scenario_c_approve_moves_item(seeded, config):
    approved = review_service.approve(seeded, config, "X")
    assert approved["review_status"] == "approved_by_human"
    assert [item["id"] for item in read_pending(seeded)] == ["Y"]
    published = read_published(seeded)
    assert [item["id"] for item in published] == ["X"]
    assert published[0]["review_status"] == "approved_by_human"
    assert published[0]["reviewed_at"]
    assert published[0]["is_featured"] is True
    assert read_feedback_tail(seeded, 10) == []


def test_approve_by_slug(seeded, config):
    review_service.approve(seeded, config, "y-slug")
    assert [item["id"] for item in read_published(seeded)] == ["Y"]


def test_scenario_d_reject_records_feedback(seeded):
    record = review_service.reject(seeded, "Y", "too dry")
    assert [item["id"] for item in read_pending(seeded)] == ["X"]
    assert read_published(seeded) == []
    rows = read_feedback_tail(seeded, 10)
    assert len(rows) == 1
    assert rows[0]["action"] == "reject"
    assert rows[0]["id"] == "Y"
    assert rows[0]["feedback"] == "too dry"
    assert rows[0]["editor_id"] == "tech"
    assert record == rows[0]


def test_reject_clamps_feedback(seeded):
    review_service.reject(seeded, "X", "a" * 6000)
    assert len(read_feedback_tail(seeded, 1)[0]["feedback"]) == 5000


def test_missing_items_raise_not_found(seeded, config):
    with pytest.raises(NotFoundError):
        review_service.approve(seeded, config, "nope")
    with pytest.raises(NotFoundError):
        review_service.reject(seeded, "nope", "x")
    with pytest.raises(NotFoundError):
        review_service.delete_published(seeded, "nope")
    assert len(read_pending(seeded)) == 2


def test_delete_published_journals(seeded, config):
    review_service.approve(seeded, config, "X")
    review_service.delete_published(seeded, "x-slug", "niet grappig")
    assert read_published(seeded) == []
    rows = read_feedback_tail(seeded, 10)
    assert [row["action"] for row in rows] == ["delete_published"]
    assert rows[0]["feedback"] == "niet grappig"


def test_pending_upsert(seeded, config):
    assert review_service.pending_upsert(seeded, config, _pending_item("Z", "z")) == 3
    assert review_service.pending_upsert(seeded, config, _pending_item("X", "x2")) == 3
    assert read_pending(seeded)[0]["slug"] == "x2"
    with pytest.raises(ValueError):
        review_service.pending_upsert(seeded, config, {"slug": "zonder-id"})


def test_pending_at(seeded):
    assert review_service.pending_at(seeded, 1)["id"] == "Y"
    with pytest.raises(NotFoundError):
        review_service.pending_at(seeded, 2)
    with pytest.raises(NotFoundError):
        review_service.pending_at(seeded, -1)
