"""
Conversation orchestrator for AuraSpend.

Drives the turn-taking loop between the user, the chat model and the tools:

    idle --submit--> awaiting_model_reply --plain text--> idle
                                          --tool calls--> awaiting_confirmation
    awaiting_confirmation --confirm/cancel (last outstanding call)--> awaiting_model_reply --> ...

Every tool call proposed by the model is staged as a *pending* :class:`ToolCallMessage` and only
runs once the user confirms it.  When the last outstanding call of a batch reaches a terminal state,
the orchestrator feeds its outcome back to the model without new user input, so the model can chain
further calls or summarize.  The transcript is owned exclusively by this class and persisted after
every mutation.
"""

import asyncio
import json
import logging
from datetime import datetime
from enum import Enum
from typing import (
    Any,
    Callable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from auraspend.agent.chat_client import (
    BaseChatClient,
    ModelRequestError,
)
from auraspend.agent.prompt_builder import (
    build_system_prompt,
    current_time_context,
)
from auraspend.agent.tool_executor import (
    ToolExecutionError,
    execute_tool,
)
from auraspend.config import settings
from auraspend.core.schema import (
    AssistantExplanation,
    AssistantText,
    ChatTurn,
    Message,
    ToolCallMessage,
    ToolCallStatus,
    UserMessage,
)
from auraspend.memory.memory_store import (
    ConversationStore,
    sanitize,
)
from auraspend.tools import ToolRegistry
from auraspend.tools.tool_call_parser import parse_all

logger = logging.getLogger(__name__)

TRANSPORT_ERROR_TEXT = "Sorry, I encountered an error. Please try again."
CHAIN_ERROR_TEXT = "The action finished, but I couldn't get a follow-up response."
EMPTY_REPLY_TEXT = "I received your message."
CANCELLED_REASON = "Cancelled by user"
INTERRUPTED_REASON = "Interrupted before completion"

CHAIN_PROMPT = (
    'Tool executed: "{name}" with result: {result}\n\n'
    "Based on this result, you can either:\n"
    "1. Call another tool if needed using the JSON format\n"
    "2. Provide a helpful summary if the task is complete"
)


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL_REPLY = "awaiting_model_reply"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


def _to_json(value: Any, indent: int | None = None) -> str:
    return json.dumps(sanitize(value), indent=indent, ensure_ascii=False)


def tool_not_found_notice(tool_name: str) -> str:
    return f"⚠️ Tool not found: {tool_name}"


# ---------------------------------------------------------------------------
# Transcript reduction
# ---------------------------------------------------------------------------
def reduce_transcript(messages: Sequence[Message]) -> List[ChatTurn]:
    """
    Map the transcript onto model-consumable turns.

    User messages become user turns; assistant text and explanations become assistant turns;
    succeeded tool calls become an assistant turn summarizing the name and result.  Tool calls that
    are pending, executing, failed or cancelled are left out.
    """
    turns: List[ChatTurn] = []
    for message in messages:
        if isinstance(message, UserMessage):
            turns.append(ChatTurn(role="user", content=message.text))
        elif isinstance(message, (AssistantText, AssistantExplanation)):
            turns.append(ChatTurn(role="assistant", content=message.text))
        elif isinstance(message, ToolCallMessage) and message.status is ToolCallStatus.SUCCEEDED:
            turns.append(
                ChatTurn(
                    role="assistant",
                    content=(
                        f"[Tool executed: {message.tool_name} - "
                        f"Result: {_to_json(message.result)}]"
                    ),
                )
            )
    return turns


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------
class ChatOrchestrator:
    """
    Owns the transcript and sequences model requests, confirmations and tool execution.

    Parameters
    ----------
    registry:
        Tools the model may call.
    client:
        Chat model client.
    store:
        Where the transcript is persisted; ``None`` keeps it in memory only.
    temperature, chain_max_tokens, user_language:
        Request options; default to the matching ``settings`` values.
    clock:
        Returns "now" for the system prompt (tests pin it).
    """

    def __init__(
        self,
        registry: ToolRegistry,
        client: BaseChatClient,
        store: ConversationStore | None = None,
        *,
        temperature: float | None = None,
        chain_max_tokens: int | None = None,
        user_language: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.registry = registry
        self.client = client
        self.store = store
        self.temperature = settings.TEMPERATURE if temperature is None else temperature
        self.chain_max_tokens = (
            settings.CHAIN_MAX_TOKENS if chain_max_tokens is None else chain_max_tokens
        )
        self.user_language = user_language if user_language is not None else settings.USER_LANGUAGE
        self._clock = clock

        self._messages: List[Message] = []
        self._outstanding: Set[str] = set()
        self._in_flight = False
        # Bumped by clear_history(); work started under an older generation is discarded.
        self._generation = 0
        self._request_lock = asyncio.Lock()
        self._persist_lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Read-only views
    # ------------------------------------------------------------------ #
    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def state(self) -> ConversationState:
        if self._in_flight:
            return ConversationState.AWAITING_MODEL_REPLY
        if self._outstanding:
            return ConversationState.AWAITING_CONFIRMATION
        return ConversationState.IDLE

    @property
    def pending_tool_calls(self) -> List[ToolCallMessage]:
        """Tool calls still pending or executing, in transcript order."""
        return [
            m
            for m in self._messages
            if isinstance(m, ToolCallMessage) and m.id in self._outstanding
        ]

    def get_tool_call(self, message_id: str) -> ToolCallMessage | None:
        for message in self._messages:
            if isinstance(message, ToolCallMessage) and message.id == message_id:
                return message
        return None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def restore(self) -> None:
        """
        Replace the transcript with the persisted one.

        Calls that were still pending stay confirmable; calls that were executing when the process
        stopped can never report back and are marked failed.
        """
        if self.store is None:
            return
        messages = await self.store.load()
        interrupted = False
        outstanding: Set[str] = set()
        for message in messages:
            if not isinstance(message, ToolCallMessage):
                continue
            if message.status is ToolCallStatus.EXECUTING:
                message.mark_failed(INTERRUPTED_REASON)
                interrupted = True
            elif message.status is ToolCallStatus.PENDING:
                outstanding.add(message.id)

        self._messages = list(messages)
        self._outstanding = outstanding
        logger.info(
            "Restored %d chat messages (%d pending tool calls)", len(messages), len(outstanding)
        )
        if interrupted:
            await self._persist()

    async def submit_user_message(self, text: str) -> bool:
        """
        Append a user message and ask the model for a reply.

        Returns False (and does nothing) for blank text or while a model request is in flight.
        """
        if not text or not text.strip():
            return False
        if self._in_flight:
            logger.info("Ignoring user message: a model request is already in flight")
            return False

        generation = self._generation
        self._in_flight = True
        try:
            self._messages.append(UserMessage(text=text))
            await self._persist()
            if generation != self._generation:
                logger.info("Dropping model request: history was cleared while saving")
                return True
            async with self._request_lock:
                if generation != self._generation:
                    logger.info("Dropping model request: history was cleared while waiting")
                    return True
                await self._run_model_turn(generation, fallback_text=TRANSPORT_ERROR_TEXT)
        finally:
            if generation == self._generation:
                self._in_flight = False
        return True

    async def confirm(self, message_id: str) -> bool:
        """
        Execute the pending tool call *message_id*.

        Returns False if there is no such call or it is no longer pending.
        """
        message = self.get_tool_call(message_id)
        if message is None or message.status is not ToolCallStatus.PENDING:
            logger.info("Ignoring confirm for %s: not a pending tool call", message_id)
            return False

        generation = self._generation
        message.mark_executing()
        await self._persist()

        try:
            result = await execute_tool(self.registry, message.tool_name, message.arguments)
        except ToolExecutionError as exc:
            if generation != self._generation:
                return True
            logger.warning("Tool call %s (%s) failed: %s", message.id, message.tool_name, exc)
            message.mark_failed(str(exc))
            outcome: Any = {"error": str(exc)}
        else:
            if generation != self._generation:
                return True
            logger.info("Tool call %s (%s) succeeded", message.id, message.tool_name)
            # The transcript only holds JSON-safe values, the same ones a reload would see.
            outcome = sanitize(result)
            message.mark_succeeded(outcome)

        await self._settle(message, outcome, generation)
        return True

    async def cancel(self, message_id: str) -> bool:
        """
        Cancel the pending tool call *message_id*; the model then gets a null result for it.

        Returns False if there is no such call or it is no longer pending.
        """
        message = self.get_tool_call(message_id)
        if message is None or message.status is not ToolCallStatus.PENDING:
            logger.info("Ignoring cancel for %s: not a pending tool call", message_id)
            return False

        message.mark_cancelled(CANCELLED_REASON)
        await self._settle(message, None, self._generation)
        return True

    async def clear_history(self) -> None:
        """Forget the transcript and staged calls, return to idle and purge persisted storage."""
        self._generation += 1
        self._messages = []
        self._outstanding = set()
        self._in_flight = False
        self._request_lock = asyncio.Lock()
        if self.store is not None:
            async with self._persist_lock:
                await self.store.clear()
        logger.info("Chat history cleared")

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    async def _persist(self) -> None:
        if self.store is None:
            return
        async with self._persist_lock:
            await self.store.save(self._messages)

    def _build_request(self, followup: Optional[str]) -> List[ChatTurn]:
        local_time, offset = current_time_context(self._clock() if self._clock else None)
        system_prompt = build_system_prompt(self.registry, local_time, offset, self.user_language)
        turns = [ChatTurn(role="system", content=system_prompt)]
        turns.extend(reduce_transcript(self._messages))
        if followup is not None:
            turns.append(ChatTurn(role="user", content=followup))
        return turns

    async def _run_model_turn(
        self,
        generation: int,
        *,
        fallback_text: str,
        followup: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> None:
        turns = self._build_request(followup)
        try:
            content = await self.client.complete(
                turns, temperature=self.temperature, max_tokens=max_tokens
            )
        except ModelRequestError as exc:
            content = None
            logger.error("Model request failed: %s", exc)
        except Exception:  # pylint: disable=broad-except
            content = None
            logger.exception("Unexpected error while calling the model")

        if generation != self._generation:
            logger.info("Discarding model reply for a cleared conversation")
            return

        if content is None:
            self._messages.append(AssistantText(text=fallback_text))
        else:
            logger.debug("Model reply: %s", content)
            self._stage_reply(content)
        await self._persist()

    def _stage_reply(self, content: str) -> None:
        calls = parse_all(content)
        if not calls:
            text = content if content.strip() else EMPTY_REPLY_TEXT
            self._messages.append(AssistantText(text=text))
            return

        logger.info("Model proposed %d tool call(s): %s", len(calls), [c.tool_name for c in calls])
        for call in calls:
            self._messages.append(AssistantExplanation(text=call.explanation))
            if self.registry.is_valid_name(call.tool_name):
                message = ToolCallMessage(
                    tool_name=call.tool_name, arguments=sanitize(call.parameters) or {}
                )
                self._messages.append(message)
                self._outstanding.add(message.id)
            else:
                logger.warning("Tool '%s' not found.", call.tool_name)
                self._messages.append(AssistantText(text=tool_not_found_notice(call.tool_name)))

    async def _settle(self, message: ToolCallMessage, outcome: Any, generation: int) -> None:
        """Record a terminal transition; resume the loop if it was the last outstanding call."""
        self._outstanding.discard(message.id)
        # Sampled before any await so only the settlement that empties the set continues.
        quiescent = not self._outstanding
        await self._persist()
        if quiescent and generation == self._generation:
            await self._continue_chain(message.tool_name, outcome, generation)

    async def _continue_chain(self, tool_name: str, outcome: Any, generation: int) -> None:
        followup = CHAIN_PROMPT.format(name=tool_name, result=_to_json(outcome, indent=2))
        async with self._request_lock:
            if generation != self._generation or self._outstanding:
                # A newer reply staged calls meanwhile; their settlement will continue the loop.
                logger.info("Skipping follow-up for '%s': conversation moved on", tool_name)
                return
            self._in_flight = True
            try:
                await self._run_model_turn(
                    generation,
                    fallback_text=CHAIN_ERROR_TEXT,
                    followup=followup,
                    max_tokens=self.chain_max_tokens,
                )
            finally:
                if generation == self._generation:
                    self._in_flight = False
