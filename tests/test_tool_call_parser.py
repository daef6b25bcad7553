"""Tests for extracting tool calls from model text."""

import json

from auraspend.tools.tool_call_parser import (
    Invalid,
    Valid,
    iter_brace_spans,
    parse_all,
    validate_candidate,
)


def _call(
    name: str, params: dict | None = None, explanation: str = "Doing it", key: str = "toolName"
) -> dict:
    return {"explanation": explanation, key: name, "parameters": params or {}}


def _fence(obj: dict, tag: str = "json") -> str:
    return f"```{tag}\n{json.dumps(obj)}\n```"


# ---------------------------------------------------------------------------
# validate_candidate
# ---------------------------------------------------------------------------
def test_validate_accepts_all_tool_name_spellings() -> None:
    for key in ("toolName", "tool_name", "tool_code"):
        outcome = validate_candidate(_call("getCategories", key=key))
        assert isinstance(outcome, Valid)
        assert outcome.request.tool_name == "getCategories"


def test_validate_rejects_bad_shapes() -> None:
    assert isinstance(validate_candidate([1, 2]), Invalid)
    assert isinstance(validate_candidate({"parameters": {}}), Invalid)
    assert isinstance(validate_candidate({"toolName": "  ", "parameters": {}}), Invalid)
    assert isinstance(validate_candidate({"toolName": "x"}), Invalid)
    assert isinstance(validate_candidate({"toolName": "x", "parameters": []}), Invalid)


def test_validate_fills_missing_explanation() -> None:
    outcome = validate_candidate({"toolName": "getProfile", "parameters": {}})

    assert isinstance(outcome, Valid)
    assert outcome.request.explanation == "Calling tool: getProfile"


# ---------------------------------------------------------------------------
# parse_all
# ---------------------------------------------------------------------------
def test_plain_text_yields_nothing() -> None:
    assert parse_all("Your balance looks healthy this month!") == []
    assert parse_all("") == []
    assert parse_all(None) == []  # type: ignore[arg-type]


def test_fenced_blocks_in_source_order() -> None:
    text = "\n".join(
        [
            _fence(_call("getCategories")),
            "some chatter",
            _fence(_call("addCategory", {"name": "Food"}), tag=""),
        ]
    )

    calls = parse_all(text)

    assert [c.tool_name for c in calls] == ["getCategories", "addCategory"]
    assert calls[1].parameters == {"name": "Food"}


def test_invalid_fenced_block_is_skipped() -> None:
    text = "```json\n{not json}\n```\n" + _fence(_call("getProfile"))

    calls = parse_all(text)

    assert [c.tool_name for c in calls] == ["getProfile"]


def test_fenced_results_suppress_raw_scan() -> None:
    obj = _call("getCategories")
    text = _fence(obj) + "\nAs JSON: " + json.dumps(_call("getProfile"))

    assert [c.tool_name for c in parse_all(text)] == ["getCategories"]


def test_raw_json_when_no_fences() -> None:
    text = "Sure! " + json.dumps(_call("getCategories")) + " and " + json.dumps(_call("getProfile"))

    assert [c.tool_name for c in parse_all(text)] == ["getCategories", "getProfile"]


def test_raw_scan_used_when_fences_hold_no_valid_call() -> None:
    text = "```\nnot a call\n```\n" + json.dumps(_call("getProfile"))

    assert [c.tool_name for c in parse_all(text)] == ["getProfile"]


def test_braces_inside_strings_do_not_break_the_scan() -> None:
    obj = _call("addCategory", {"name": "Weird } name { \"quoted\""}, explanation="Adding {x}")
    text = "Here you go: " + json.dumps(obj)

    calls = parse_all(text)

    assert len(calls) == 1
    assert calls[0].parameters["name"] == 'Weird } name { "quoted"'


def test_nested_objects_are_one_candidate() -> None:
    obj = _call("addTransaction", {"amount": -5, "meta": {"tags": {"a": 1}}})

    calls = parse_all("prefix " + json.dumps(obj) + " suffix")

    assert len(calls) == 1
    assert calls[0].parameters["meta"] == {"tags": {"a": 1}}


def test_unbalanced_text_never_raises() -> None:
    for text in ("{", "}}}", '{"toolName": "x", "parameters": {', '```json\n{"a": 1', '"{"'):
        assert parse_all(text) == []


def test_brace_spans() -> None:
    text = 'a {"x": "}"} b {"y": {"z": 1}} c'

    spans = list(iter_brace_spans(text))

    assert [text[s:e] for s, e in spans] == ['{"x": "}"}', '{"y": {"z": 1}}']


def test_parsing_is_repeatable() -> None:
    text = "Sure:\n" + _fence(_call("getCategories")) + "\n" + _fence(_call("getProfile"))

    assert parse_all(text) == parse_all(text)
