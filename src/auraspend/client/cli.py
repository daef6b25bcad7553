"""CLI client for the AuraSpend API."""

from __future__ import annotations

import json
import logging
from typing import (
    Any,
    Dict,
    List,
    Set,
    Tuple,
    cast,
)

import httpx

from auraspend.common import (
    AnsiColors,
    colored_print,
)
from auraspend.config import settings

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    "pending": AnsiColors.YELLOW,
    "executing": AnsiColors.BLUE,
    "succeeded": AnsiColors.GREEN,
    "failed": AnsiColors.RED,
    "cancelled": AnsiColors.GREY,
}


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message(prompt: str = "") -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    import signal  # pylint: disable=import-outside-toplevel

    # Ensure SIGINT breaks out of slow system calls such as read()
    signal.siginterrupt(signal.SIGINT, True)

    try:
        user_input = input(prompt).strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    method: str, endpoint: str, data: Dict[str, Any] | None = None, max_retries: int = 5
) -> Dict[str, Any]:
    """Make a request to the API and return the JSON response, retrying while it starts up."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"

    for attempt in range(max_retries):
        response: httpx.Response | None = None
        try:
            with httpx.Client(timeout=settings.REQUEST_TIMEOUT + 10.0) as client:
                response = client.request(method, api_url, json=data)
                response.raise_for_status()
                return cast(Dict[str, Any], response.json())
        except httpx.HTTPError as e:
            # On connection refused, retry with exponential backoff
            if isinstance(e, httpx.ConnectError) and attempt < max_retries - 1:
                retry_delay = 0.5 * (2**attempt)
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                import time  # pylint: disable=import-outside-toplevel

                time.sleep(retry_delay)
                continue

            logger.error("API request error: %s", str(e))
            error_msg = f"Error connecting to API: {str(e)}"
            if response is not None:
                try:
                    error_data = response.json()
                except ValueError:
                    error_data = {}
                if isinstance(error_data, dict) and "detail" in error_data:
                    error_msg = f"API error: {error_data['detail']}"
            colored_print(error_msg, AnsiColors.RED)
            return {"error": error_msg}

    error_msg = f"Failed to connect to API after {max_retries} attempts"
    colored_print(error_msg, AnsiColors.RED)
    return {"error": error_msg}


def render_message(message: Dict[str, Any]) -> None:
    """Print one transcript entry."""
    kind = message.get("kind")
    if kind == "user":
        return  # already on screen
    if kind == "assistant_text":
        colored_print(f"🤖 {message.get('text', '')}", AnsiColors.YELLOW)
    elif kind == "assistant_explanation":
        colored_print(f"🤖 {message.get('text', '')}", AnsiColors.MAGENTA)
    elif kind == "tool_call":
        status = message.get("status", "pending")
        color = STATUS_COLORS.get(status, AnsiColors.YELLOW)
        args = json.dumps(message.get("arguments") or {}, ensure_ascii=False)
        colored_print(f"🔧 {message.get('tool_name')}({args}) [{status}]", color)
        if status == "succeeded":
            result = json.dumps(message.get("result"), indent=2, ensure_ascii=False)
            colored_print(result, AnsiColors.GREY)
        elif message.get("error"):
            colored_print(f"   {message['error']}", color)


class TranscriptView:
    """Prints transcript entries the user has not seen yet (or whose status changed)."""

    def __init__(self) -> None:
        self._seen: Dict[str, str] = {}

    def show(self, messages: List[Dict[str, Any]]) -> None:
        for message in messages:
            marker = str(message.get("status", ""))
            if self._seen.get(message["id"]) == marker:
                continue
            self._seen[message["id"]] = marker
            render_message(message)

    def reset(self) -> None:
        self._seen.clear()


def pending_calls(response: Dict[str, Any], asked: Set[str]) -> List[Dict[str, Any]]:
    return [
        m
        for m in response.get("messages", [])
        if m.get("kind") == "tool_call" and m.get("status") == "pending" and m["id"] not in asked
    ]


def resolve_pending_calls(session_id: str, response: Dict[str, Any], view: TranscriptView) -> None:
    """Ask the user to confirm or cancel each pending tool call until none are left."""
    asked: Set[str] = set()
    while True:
        calls = pending_calls(response, asked)
        if not calls:
            return
        call = calls[0]
        asked.add(call["id"])
        answer, ok = get_user_message(f"Run {call['tool_name']}? [y/N] ")
        action = "confirm" if ok and answer.lower() in {"y", "yes"} else "cancel"
        response = call_api("POST", f"/sessions/{session_id}/tool-calls/{call['id']}/{action}")
        if "error" in response:
            return
        view.show(response.get("messages", []))


def run_cli() -> None:
    """Run the CLI client that communicates with the API."""
    session_response = call_api("POST", "/sessions", {})
    session_id = session_response.get("session_id")

    if not session_id:
        colored_print("⚠️ Failed to create a session", AnsiColors.RED)
        return

    view = TranscriptView()
    colored_print(
        "\n💰 AuraSpend shell - type '/clear' to reset, 'exit' or 'quit' (or Ctrl+C) to exit",
        AnsiColors.GREEN,
    )
    while True:
        colored_print("\n🧑 You: ", AnsiColors.BLUE, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if user_msg.lower() in {"exit", "quit"}:
            break
        if not user_msg:
            continue
        if user_msg == "/clear":
            call_api("DELETE", f"/sessions/{session_id}/messages")
            view.reset()
            colored_print("History cleared.", AnsiColors.GREY)
            continue

        response = call_api("POST", f"/sessions/{session_id}/messages", {"text": user_msg})
        if "error" in response:
            continue
        view.show(response.get("messages", []))
        resolve_pending_calls(session_id, response, view)


if __name__ == "__main__":
    run_cli()
