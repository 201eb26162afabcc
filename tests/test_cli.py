import json

import pytest

from conversation_report.cli import print_summary, read_requests
from conversation_report.results import ReportResult


def test_read_requests_accepts_single_object_and_list(tmp_path):
    single = tmp_path / "one.json"
    single.write_text(json.dumps({"characterName": "Ada"}), encoding="utf-8")
    many = tmp_path / "many.json"
    many.write_text(json.dumps([{"characterName": "Ada"}, {"characterName": "Alan"}]), encoding="utf-8")

    assert [r.character_name for r in read_requests(single)] == ["Ada"]
    assert [r.character_name for r in read_requests(many)] == ["Ada", "Alan"]


def test_read_requests_rejects_empty_and_missing(tmp_path):
    empty = tmp_path / "empty.json"
    empty.write_text("  \n", encoding="utf-8")

    with pytest.raises(ValueError):
        read_requests(empty)
    with pytest.raises(FileNotFoundError):
        read_requests(tmp_path / "nope.json")


def test_print_summary(capsys):
    print_summary(
        [
            ReportResult(status="ok", character_name="Ada", out_path="out/a.pdf", byte_length=10),
            ReportResult(
                status="failed",
                error_type="TaskTimeoutError",
                error_message="timed out",
                failed_stage="conversion",
                failure_artifact="out/fail/x.json",
            ),
        ]
    )
    out = capsys.readouterr().out
    assert "Success : 1" in out
    assert "Failed  : 1" in out
    assert "[conversion] TaskTimeoutError: timed out" in out
