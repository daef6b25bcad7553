"""
Chat model clients for AuraSpend.

This module is the only place that *directly* calls an LLM.  Everything else (orchestrator, tools,
persistence) stays model-agnostic and only sees :meth:`BaseChatClient.complete`.

We support three back-ends out of the box:

1. **OpenAI** via the official SDK (``OPENAI_BASE_URL`` also covers OpenAI-compatible hosts).
2. **Anthropic** via the official SDK.
3. **Any OpenAI-compatible ``/chat/completions`` endpoint** over plain HTTP (LM Studio, vLLM, ...).

Provider-native tool calling is not used: tool calls are encoded in the reply text, so
every back-end only has to return the first choice's text.  Additional providers can be added by
subclassing :class:`BaseChatClient` and registering via :func:`register_chat_client`.
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Sequence,
    Type,
)

import httpx

from auraspend.config import settings
from auraspend.core.schema import ChatTurn

logger = logging.getLogger(__name__)


class ModelRequestError(RuntimeError):
    """Raised when the chat endpoint is unreachable, answers non-2xx or returns a malformed body."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_CLIENT_REGISTRY: dict[str, Type["BaseChatClient"]] = {}


def register_chat_client(name: str) -> Callable:
    """Decorator to register a chat client class under *name*."""

    def wrapper(cls: Type["BaseChatClient"]) -> Type["BaseChatClient"]:
        _CLIENT_REGISTRY[name] = cls
        return cls

    return wrapper


def load_chat_client(name: str | None = None) -> "BaseChatClient":
    """
    Factory that returns an instantiated chat client.

    Fallback order:
    1. *name* arg
    2. ``settings.CHAT_CLIENT`` env option
    3. default: ``"openai"``
    """

    target = name or getattr(settings, "CHAT_CLIENT", "openai")
    cls = _CLIENT_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Chat client '{target}' is not registered.")
    return cls()


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BaseChatClient(ABC):
    """Abstract client that turns an ordered list of chat turns into the model's reply text."""

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[ChatTurn],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> str:
        """Return the text content of the first choice, or raise :class:`ModelRequestError`."""


def _as_dicts(messages: Sequence[ChatTurn]) -> List[Dict[str, str]]:
    return [{"role": m.role, "content": m.content} for m in messages]


# ---------------------------------------------------------------------------
# Concrete clients
# ---------------------------------------------------------------------------
@register_chat_client("http")
class HTTPChatClient(BaseChatClient):
    """OpenAI-compatible ``/chat/completions`` endpoint called with httpx."""

    def __init__(
        self,
        endpoint: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint or settings.CHAT_ENDPOINT
        self.model = model or settings.CHAT_MODEL
        self.api_key = api_key if api_key is not None else settings.CHAT_API_KEY
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self._transport = transport

    async def complete(
        self,
        messages: Sequence[ChatTurn],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": _as_dicts(messages),
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.endpoint, json=payload, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            logger.error("Chat endpoint request error: %s", str(e))
            raise ModelRequestError(f"Error calling chat endpoint: {e}") from e
        except ValueError as e:
            logger.error("Chat endpoint returned a non-JSON body: %s", str(e))
            raise ModelRequestError("Chat endpoint returned a non-JSON body") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error("Malformed chat endpoint response: %s", data)
            raise ModelRequestError("Malformed response from chat endpoint") from e

        logger.debug("HTTP chat response: %s", content)
        return content or ""


@register_chat_client("openai")
class OpenAIChatClient(BaseChatClient):
    """OpenAI SDK client (async)."""

    def __init__(self, model: str | None = None):
        self.model = model or getattr(settings, "OPENAI_MODEL", "gpt-4o-mini")

    async def complete(
        self,
        messages: Sequence[ChatTurn],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> str:
        import openai  # pylint: disable=import-outside-toplevel

        kwargs: Dict[str, Any] = {}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        try:
            client = openai.AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                base_url=settings.OPENAI_BASE_URL,
                timeout=settings.REQUEST_TIMEOUT,
            )
            resp = await client.chat.completions.create(
                model=self.model,
                messages=_as_dicts(messages),  # type: ignore[arg-type]
                temperature=temperature,
                **kwargs,
            )
        except openai.OpenAIError as e:
            logger.error("OpenAI chat error: %s", str(e))
            raise ModelRequestError(f"Error calling OpenAI: {e}") from e

        if not resp.choices:
            raise ModelRequestError("OpenAI returned no choices")
        content = resp.choices[0].message.content
        logger.debug("OpenAI chat response: %s", content)
        return content or ""


def merge_consecutive_turns(messages: Sequence[ChatTurn]) -> List[Dict[str, str]]:
    """
    Fold consecutive turns of the same role into one, as required by the Anthropic Messages API.

    The transcript often holds several assistant turns in a row (explanation followed by a tool
    summary).
    """
    merged: List[Dict[str, str]] = []
    for m in messages:
        if merged and merged[-1]["role"] == m.role:
            merged[-1]["content"] += "\n\n" + m.content
        else:
            merged.append({"role": m.role, "content": m.content})
    return merged


@register_chat_client("anthropic")
class AnthropicChatClient(BaseChatClient):
    """Anthropic Claude client (async)."""

    def __init__(self, model: str | None = None):
        self.model = model or getattr(settings, "ANTHROPIC_MODEL", "claude-3-5-haiku-latest")

    async def complete(
        self,
        messages: Sequence[ChatTurn],
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> str:
        import anthropic  # pylint: disable=import-outside-toplevel

        system = "\n\n".join(m.content for m in messages if m.role == "system")
        conversation = merge_consecutive_turns([m for m in messages if m.role != "system"])

        try:
            client = anthropic.AsyncAnthropic(
                api_key=settings.ANTHROPIC_API_KEY, timeout=settings.REQUEST_TIMEOUT
            )
            response = await client.messages.create(
                model=self.model,
                max_tokens=max_tokens or settings.ANTHROPIC_MAX_TOKENS,
                system=system,
                messages=conversation,  # type: ignore[arg-type]
                temperature=temperature,
            )
        except anthropic.AnthropicError as e:
            logger.error("Anthropic chat error: %s", str(e))
            raise ModelRequestError(f"Error calling Anthropic: {e}") from e

        # Handle different content block types from Anthropic API
        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.debug("Anthropic chat response: %s", content)
        return content
