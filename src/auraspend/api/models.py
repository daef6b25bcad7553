"""
Pydantic models for AuraSpend API requests and responses.
This module defines the request and response schemas used by the AuraSpend API.
"""

from typing import (
    Any,
    Dict,
    List,
)

from pydantic import (
    BaseModel,
    Field,
)

from auraspend.agent.orchestrator import ConversationState
from auraspend.core.schema import Message


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionResponse(BaseModel):
    """Response with session information."""

    session_id: str


class MessageRequest(BaseModel):
    """Incoming user message."""

    text: str = Field(..., description="User message for the assistant")


class ConversationResponse(BaseModel):
    """Transcript and loop state returned after every interaction."""

    session_id: str
    state: ConversationState
    messages: List[Message]


class ToolInfo(BaseModel):
    """One entry of the tool catalog."""

    name: str
    description: str
    parameters: Dict[str, Dict[str, Any]]
