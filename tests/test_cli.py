import pytest

from saitire.blobstore import set_blob_store
from saitire.cli import build_parser, main
from saitire.storage import read_feedback_tail, read_pending, read_published, write_json


@pytest.fixture
def cli_config(config_factory, store, tmp_path, monkeypatch):
    config_factory()
    monkeypatch.setenv("SAITIRE_DATA_DIR", str(tmp_path / "data"))
    set_blob_store(store)
    write_json(
        store,
        "pending.json",
        [
            {"id": "A", "slug": "a", "title": "Eerste", "category": "tech", "review_score": 55},
            {"id": "B", "slug": "b", "title": "Tweede", "category": "sport"},
        ],
    )
    return str(tmp_path / "config.yml")


def test_review_list(cli_config, capsys):
    assert main(["--config", cli_config, "review", "list"]) == 0
    out = capsys.readouterr().out
    assert "0) [55] tech | Eerste (a)" in out
    assert "1) [-] sport | Tweede (b)" in out


def test_review_list_empty(cli_config, store, capsys):
    write_json(store, "pending.json", [])
    assert main(["--config", cli_config, "review", "list"]) == 0
    assert "No pending items." in capsys.readouterr().out


def test_review_show(cli_config, capsys):
    assert main(["--config", cli_config, "review", "show", "1"]) == 0
    assert '"slug": "b"' in capsys.readouterr().out


def test_review_approve(cli_config, store, capsys):
    assert main(["--config", cli_config, "review", "approve", "0"]) == 0
    assert "Approved: Eerste" in capsys.readouterr().out
    assert [item["id"] for item in read_pending(store)] == ["B"]
    assert read_published(store)[0]["review_status"] == "approved_by_human"


def test_review_reject_records_feedback(cli_config, store, capsys):
    assert main(["--config", cli_config, "review", "reject", "1", "te", "flauw"]) == 0
    assert "Rejected: Tweede" in capsys.readouterr().out
    assert [item["id"] for item in read_pending(store)] == ["A"]
    assert read_feedback_tail(store, 5)[-1]["feedback"] == "te flauw"


def test_review_invalid_index(cli_config, store):
    assert main(["--config", cli_config, "review", "approve", "7"]) == 1
    assert main(["--config", cli_config, "review", "show", "-1"]) == 1
    assert len(read_pending(store)) == 2


def test_missing_config_file_fails(tmp_path):
    assert main(["--config", str(tmp_path / "missing.yml"), "review", "list"]) == 1


def test_publish_flags_parse():
    args = build_parser().parse_args(
        ["publish", "--dry-run", "--limit", "2", "--news-per-trend", "3", "--no-llm"]
    )
    assert args.dry_run is True
    assert args.no_llm is True
    assert args.limit == 2
    assert args.news_per_trend == 3
    assert args.force is False
