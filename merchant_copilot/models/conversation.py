"""Conversation message model read by the answering pipeline."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ConversationMessage(BaseModel):
    """A single turn in a conversation.

    Owned by the chat/session subsystem; the pipeline only reads these.
    """

    role: Literal["user", "assistant", "system"] = Field(..., description="Message author role")
    content: str = Field(..., description="Message text content")


def last_user_message(messages: list[ConversationMessage]) -> ConversationMessage | None:
    """Return the most recent user turn, if any."""
    for message in reversed(messages):
        if message.role == "user":
            return message
    return None
