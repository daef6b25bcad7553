"""Shared fixtures: a scripted chat client and a small registry of fake tools."""

import asyncio
import json
from datetime import (
    datetime,
    timedelta,
    timezone,
)
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

import pytest

from auraspend.agent.chat_client import (
    BaseChatClient,
    ModelRequestError,
)
from auraspend.core.schema import ChatTurn
from auraspend.tools import (
    ParameterSpec,
    ToolRegistry,
    define_tool,
)

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone(timedelta(hours=2)))


def fenced(tool_name: str, parameters: Dict[str, Any] | None = None, explanation: str = "") -> str:
    """Render one tool call the way the model is told to."""
    body = {"explanation": explanation, "toolName": tool_name, "parameters": parameters or {}}
    return f"```json\n{json.dumps(body)}\n```"


class FakeChatClient(BaseChatClient):
    """
    Replays scripted replies in order and records every request.

    A reply that is an exception instance is raised instead of returned.  A reply that is an
    :class:`asyncio.Event` makes the call wait for the event and then take the next reply.
    """

    def __init__(self, replies: Sequence[Any] = ()):
        self.replies: List[Any] = list(replies)
        self.requests: List[List[ChatTurn]] = []
        self.max_tokens: List[int | None] = []

    async def complete(
        self,
        messages: Sequence[ChatTurn],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> str:
        self.requests.append(list(messages))
        self.max_tokens.append(max_tokens)
        if not self.replies:
            raise ModelRequestError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, asyncio.Event):
            await reply.wait()
            reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def make_registry(calls: List[Dict[str, Any]] | None = None) -> ToolRegistry:
    """Registry with ``getCategories``, ``addCategory`` and an always-failing ``explode``."""
    seen = calls if calls is not None else []

    @define_tool("getCategories", "Get all categories for the current user")
    async def get_categories(args: Dict[str, Any]) -> Any:
        seen.append({"tool": "getCategories", "args": args})
        return [{"id": "c1", "name": "Food"}]

    @define_tool(
        "addCategory",
        "Add a new category for the current user",
        {"name": ParameterSpec(type="string", description="Category name", required=True)},
    )
    async def add_category(args: Dict[str, Any]) -> Any:
        seen.append({"tool": "addCategory", "args": args})
        return {"id": "c2", "name": args["name"]}

    @define_tool("explode", "Always fails")
    async def explode(args: Dict[str, Any]) -> Any:
        raise RuntimeError("database unavailable")

    return ToolRegistry([get_categories, add_category, explode])


@pytest.fixture
def tool_calls() -> List[Dict[str, Any]]:
    return []


@pytest.fixture
def registry(tool_calls: List[Dict[str, Any]]) -> ToolRegistry:
    return make_registry(tool_calls)
