"""
Best-effort extraction of tool calls from free-text model output.

The model is asked to emit each call as a fenced block:

    ```json
    {"explanation": "...", "toolName": "<name>", "parameters": { ... }}
    ```

but in practice it sometimes drops the fences, spells the name key differently or wraps the JSON in
prose.  :func:`parse_all` tolerates all of that and never raises: candidates that do not parse or do
not look like a tool call are logged and skipped.
"""

import json
import logging
import re
from typing import (
    Any,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Tuple,
    Union,
)

from auraspend.core.schema import ToolCallRequest

logger = logging.getLogger(__name__)

TOOL_NAME_KEYS: Tuple[str, ...] = ("toolName", "tool_name", "tool_code")
"""Accepted spellings of the tool-name key, in lookup order."""

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class Valid(NamedTuple):
    """The candidate is a usable tool call."""

    request: ToolCallRequest


class Invalid(NamedTuple):
    """The candidate was rejected; *reason* is for the logs only."""

    reason: str


ValidationResult = Union[Valid, Invalid]


def _tool_name_of(obj: Mapping[str, Any]) -> str | None:
    for key in TOOL_NAME_KEYS:
        value = obj.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def validate_candidate(obj: Any) -> ValidationResult:
    """
    Check that a decoded JSON value has the shape of a tool call and normalize it.

    A valid candidate is an object with a non-empty tool name under one of :data:`TOOL_NAME_KEYS`
    and a ``parameters`` object (possibly empty).  ``explanation`` is optional; when it is missing
    or blank, ``"Calling tool: <name>"`` is substituted.
    """
    if not isinstance(obj, dict):
        return Invalid(f"expected a JSON object, got {type(obj).__name__}")

    tool_name = _tool_name_of(obj)
    if tool_name is None:
        return Invalid("no non-empty tool name under " + "/".join(TOOL_NAME_KEYS))

    parameters = obj.get("parameters")
    if not isinstance(parameters, dict):
        return Invalid("'parameters' must be a JSON object")

    explanation = obj.get("explanation")
    if not isinstance(explanation, str) or not explanation.strip():
        explanation = f"Calling tool: {tool_name}"

    return Valid(
        ToolCallRequest(explanation=explanation, tool_name=tool_name, parameters=parameters)
    )


def _decode(text: str, origin: str) -> ValidationResult:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as exc:
        return Invalid(f"{origin}: invalid JSON ({exc.msg} at pos {exc.pos})")
    return validate_candidate(obj)


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------
def iter_fenced_blocks(text: str) -> Iterator[str]:
    """Yield the trimmed content of every fenced region, tagged or not, in source order."""
    for match in _FENCED_BLOCK_RE.finditer(text):
        content = match.group(1).strip()
        if content:
            yield content


def iter_brace_spans(text: str) -> Iterator[Tuple[int, int]]:
    """
    Yield ``(start, end)`` slices of every top-level ``{ ... }`` region.

    Braces inside double-quoted string literals are ignored.  A quote toggles the in-string state
    unless it is escaped by a backslash that is not itself escaped.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield start, i + 1
                start = -1


def _overlaps(span: Tuple[int, int], accepted: List[Tuple[int, int]]) -> bool:
    start, end = span
    return any(start < a_end and a_start < end for a_start, a_end in accepted)


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------
def parse_all(raw_text: str) -> List[ToolCallRequest]:
    """
    Extract every tool call from *raw_text*, in source order.

    1. Fenced blocks are tried first.  If at least one of them yields a valid call, those calls are
       returned and the rest of the text is not scanned, so an object that appears both inside and
       outside fences is never counted twice.
    2. Otherwise the whole text is scanned for balanced top-level JSON objects.

    Returns an empty list for ordinary conversational replies.  Never raises.
    """
    if not raw_text or not isinstance(raw_text, str):
        return []

    calls: List[ToolCallRequest] = []
    for block in iter_fenced_blocks(raw_text):
        outcome = _decode(block, "fenced block")
        if isinstance(outcome, Valid):
            calls.append(outcome.request)
        else:
            logger.debug("Skipping fenced candidate: %s", outcome.reason)

    if calls:
        logger.debug("Found %d tool call(s) in fenced blocks", len(calls))
        return calls

    accepted: List[Tuple[int, int]] = []
    for span in iter_brace_spans(raw_text):
        if _overlaps(span, accepted):
            continue
        outcome = _decode(raw_text[span[0] : span[1]], "raw JSON")
        if isinstance(outcome, Valid):
            calls.append(outcome.request)
            accepted.append(span)
        else:
            logger.debug("Skipping raw candidate at %d: %s", span[0], outcome.reason)

    if calls:
        logger.debug("Found %d tool call(s) in raw JSON", len(calls))
    return calls
