"""Tests for the CLI's transcript rendering and argument parsing."""

from pathlib import Path

from auraspend.client.cli import (
    TranscriptView,
    pending_calls,
)
from auraspend.main import (
    _ensure_data_dir,
    build_parser,
)


def _call(call_id: str, status: str) -> dict:
    return {
        "kind": "tool_call",
        "id": call_id,
        "tool_name": "getProfile",
        "arguments": {},
        "status": status,
        "result": {"currency": "USD"} if status == "succeeded" else None,
        "error": None,
    }


def test_view_prints_new_and_changed_entries_once(capsys) -> None:
    view = TranscriptView()
    messages = [
        {"kind": "user", "id": "u1", "text": "My currency?"},
        {"kind": "assistant_explanation", "id": "e1", "text": "Checking your profile"},
        _call("t1", "pending"),
    ]

    view.show(messages)
    first = capsys.readouterr().out
    view.show(messages)
    assert capsys.readouterr().out == ""
    view.show(messages[:2] + [_call("t1", "succeeded")])
    second = capsys.readouterr().out

    assert "Checking your profile" in first and "[pending]" in first
    assert "My currency?" not in first
    assert "[succeeded]" in second and '"currency": "USD"' in second


def test_pending_calls_skips_answered_ones() -> None:
    response = {"messages": [_call("a", "pending"), _call("b", "succeeded"), _call("c", "pending")]}

    assert [c["id"] for c in pending_calls(response, {"a"})] == ["c"]


def test_parser_defaults() -> None:
    args = build_parser().parse_args([])

    assert args.mode == "api"
    assert args.client is None
    assert build_parser().parse_args(["--mode", "CLI", "--client", "http"]).client == "http"


def test_ensure_data_dir(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "data"

    assert _ensure_data_dir(str(target)) is True
    assert target.is_dir()
