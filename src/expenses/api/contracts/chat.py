# src/expenses/api/contracts/chat.py
"""Chat API contracts - use domain types directly."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...domain.domain_value import ChatMessage


class ChatRequest(BaseModel):
    """Request to send one message to the assistant."""

    message: str = Field(
        min_length=1,
        max_length=10_000,
        description="User message to send",
        examples=["Show me my pending expenses"],
    )
    history: list[ChatMessage] = Field(
        default_factory=list,
        description="Prior user/assistant messages; the client owns and resends them",
        examples=[[{"role": "user", "content": "Hi"}, {"role": "assistant", "content": "Hello! How can I help?"}]],
    )


class ChatResponse(BaseModel):
    """Assistant reply, or an error message when the turn failed."""

    message: str = Field(description="Assistant reply text")
    is_error: bool = Field(default=False, description="True when the turn failed or was cut short")

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatStatusResponse(BaseModel):
    """Whether the assistant has a configured language model."""

    enabled: bool
