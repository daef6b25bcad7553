"""Tests for the chat client registry and the plain HTTP client."""

import asyncio
import json

import httpx
import pytest

from auraspend.agent.chat_client import (
    AnthropicChatClient,
    HTTPChatClient,
    ModelRequestError,
    OpenAIChatClient,
    load_chat_client,
    merge_consecutive_turns,
)
from auraspend.core.schema import ChatTurn

TURNS = [
    ChatTurn(role="system", content="You are AuraSpend Assistant"),
    ChatTurn(role="user", content="Hi"),
]


def _client(handler) -> HTTPChatClient:
    return HTTPChatClient(
        endpoint="http://model.test/v1/chat/completions",
        model="test-model",
        api_key="secret",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def test_http_client_posts_chat_payload() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "Hello!"}}]})

    reply = asyncio.run(_client(handler).complete(TURNS, temperature=0.7, max_tokens=500))

    assert reply == "Hello!"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {
        "model": "test-model",
        "messages": [
            {"role": "system", "content": "You are AuraSpend Assistant"},
            {"role": "user", "content": "Hi"},
        ],
        "temperature": 0.7,
        "max_tokens": 500,
    }


def test_http_client_omits_max_tokens_by_default() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert "max_tokens" not in json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": None}}]})

    assert asyncio.run(_client(handler).complete(TURNS)) == ""


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json={"unexpected": True}),
    ],
)
def test_http_client_failures_raise_model_request_error(response: httpx.Response) -> None:
    with pytest.raises(ModelRequestError):
        asyncio.run(_client(lambda request: response).complete(TURNS))


def test_http_client_connection_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ModelRequestError):
        asyncio.run(_client(handler).complete(TURNS))


def test_load_chat_client() -> None:
    assert isinstance(load_chat_client("http"), HTTPChatClient)
    assert isinstance(load_chat_client("OpenAI"), OpenAIChatClient)
    assert isinstance(load_chat_client("anthropic"), AnthropicChatClient)
    with pytest.raises(ValueError, match="not registered"):
        load_chat_client("nope")


def test_merge_consecutive_turns() -> None:
    merged = merge_consecutive_turns(
        [
            ChatTurn(role="user", content="a"),
            ChatTurn(role="assistant", content="b"),
            ChatTurn(role="assistant", content="c"),
            ChatTurn(role="user", content="d"),
        ]
    )

    assert merged == [
        {"role": "user", "content": "a"},
        {"role": "assistant", "content": "b\n\nc"},
        {"role": "user", "content": "d"},
    ]
