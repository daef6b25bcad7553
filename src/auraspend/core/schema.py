"""
Schema definitions for model <-> orchestrator <-> tool messages.

These data models serve as the contract between the chat model, the conversation orchestrator, the
persisted transcript and individual tools.  We keep them separate from runtime logic so they can be
imported anywhere without side-effects.
"""

import uuid
from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    FrozenSet,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    Field,
    TypeAdapter,
)


def new_message_id() -> str:
    """Return a fresh, unique message identifier."""
    return uuid.uuid4().hex


class InvalidTransitionError(RuntimeError):
    """Raised when a tool call is moved to a status it cannot reach from its current one."""


# ---------------------------------------------------------------------------
# Model output
# ---------------------------------------------------------------------------
class ToolCallRequest(BaseModel):
    """A tool call extracted from model text, not yet checked against the registry."""

    explanation: str
    tool_name: str = Field(..., alias="toolName")
    parameters: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class ChatTurn(BaseModel):
    """One ``{role, content}`` entry of the request sent to the chat endpoint."""

    role: Literal["system", "user", "assistant"]
    content: str


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------
class ToolCallStatus(str, Enum):
    """Lifecycle of a staged tool call."""

    PENDING = "pending"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL: FrozenSet[ToolCallStatus] = frozenset(
    {ToolCallStatus.SUCCEEDED, ToolCallStatus.FAILED, ToolCallStatus.CANCELLED}
)

_ALLOWED_TRANSITIONS: Dict[ToolCallStatus, FrozenSet[ToolCallStatus]] = {
    ToolCallStatus.PENDING: frozenset({ToolCallStatus.EXECUTING, ToolCallStatus.CANCELLED}),
    ToolCallStatus.EXECUTING: frozenset({ToolCallStatus.SUCCEEDED, ToolCallStatus.FAILED}),
    ToolCallStatus.SUCCEEDED: frozenset(),
    ToolCallStatus.FAILED: frozenset(),
    ToolCallStatus.CANCELLED: frozenset(),
}


class UserMessage(BaseModel):
    """Text typed by the user."""

    kind: Literal["user"] = "user"
    id: str = Field(default_factory=new_message_id)
    text: str


class AssistantText(BaseModel):
    """Plain natural-language reply (also used for notices and fallback errors)."""

    kind: Literal["assistant_text"] = "assistant_text"
    id: str = Field(default_factory=new_message_id)
    text: str


class AssistantExplanation(BaseModel):
    """Narration the model attached to a tool call; rendered distinctly."""

    kind: Literal["assistant_explanation"] = "assistant_explanation"
    id: str = Field(default_factory=new_message_id)
    text: str


class ToolCallMessage(BaseModel):
    """A staged tool call and everything that happened to it."""

    kind: Literal["tool_call"] = "tool_call"
    id: str = Field(default_factory=new_message_id)
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    status: ToolCallStatus = ToolCallStatus.PENDING
    result: Any = None
    error: Optional[str] = None
    expanded: bool = True

    @property
    def is_outstanding(self) -> bool:
        """True while the call still waits for the user or for its tool to finish."""
        return self.status in (ToolCallStatus.PENDING, ToolCallStatus.EXECUTING)

    def _move_to(self, target: ToolCallStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Tool call {self.id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target
        if target.is_terminal:
            self.expanded = False

    def mark_executing(self) -> None:
        self._move_to(ToolCallStatus.EXECUTING)

    def mark_succeeded(self, result: Any) -> None:
        self._move_to(ToolCallStatus.SUCCEEDED)
        self.result = result

    def mark_failed(self, error: str) -> None:
        self._move_to(ToolCallStatus.FAILED)
        self.error = error

    def mark_cancelled(self, reason: str) -> None:
        self._move_to(ToolCallStatus.CANCELLED)
        self.error = reason


Message = Annotated[
    Union[UserMessage, AssistantText, AssistantExplanation, ToolCallMessage],
    Field(discriminator="kind"),
]

TRANSCRIPT_ADAPTER: TypeAdapter[List[Message]] = TypeAdapter(List[Message])
"""Validates / dumps a whole transcript (used by persistence and the API)."""
