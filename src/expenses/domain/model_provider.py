"""Model Provider - the complete(messages, tools) seam.

The orchestrator only needs one capability from a language model: given the
message history and the tool definitions, return the next ModelResponse.
That response either carries text (the turn is done) or ToolCallPart entries
(the model wants tools run first).

Messages use Pydantic AI's native types directly:
    - ModelRequest: SystemPromptPart / UserPromptPart / ToolReturnPart
    - ModelResponse: TextPart / ToolCallPart

PydanticAIChatModel adapts any Pydantic AI model (Azure OpenAI in
production, FunctionModel/TestModel in tests) through the direct request
API, skipping Agent so the tool loop stays under our control.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart, ToolCallPart
from pydantic_ai.tools import ToolDefinition

from .domain_type import FinishReason


class ModelResponseError(RuntimeError):
    """Model returned something the orchestrator cannot act on."""


@runtime_checkable
class ChatModelProvider(Protocol):
    """Opaque language model: history + tool schemas in, next response out."""

    async def complete(
        self,
        messages: Sequence[ModelMessage],
        tools: Sequence[ToolDefinition],
    ) -> ModelResponse: ...


class PydanticAIChatModel(BaseModel):
    """ChatModelProvider backed by a Pydantic AI model.

    Attributes:
        model: A pydantic_ai Model instance or a "vendor:model" string
        settings: Optional ModelSettings (temperature, max_tokens, ...)
    """

    model: Any
    settings: dict[str, Any] | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    async def complete(
        self,
        messages: Sequence[ModelMessage],
        tools: Sequence[ToolDefinition],
    ) -> ModelResponse:
        from pydantic_ai.direct import model_request
        from pydantic_ai.models import ModelRequestParameters

        parameters = ModelRequestParameters(
            function_tools=list(tools),
            allow_text_output=True,
            output_tools=[],
        )
        return await model_request(
            self.model,
            list(messages),
            model_settings=self.settings,  # type: ignore[arg-type]
            model_request_parameters=parameters,
        )


def requested_tool_calls(response: ModelResponse) -> list[ToolCallPart]:
    """Tool calls in the order the model asked for them."""
    return [part for part in response.parts if isinstance(part, ToolCallPart)]


def finish_reason(response: ModelResponse) -> FinishReason:
    """Discriminate a plain answer from a tool-call request."""
    return FinishReason.TOOL_CALLS if requested_tool_calls(response) else FinishReason.STOP


def response_text(response: ModelResponse) -> str:
    """Join the response's text parts into the final answer.

    Raises:
        ModelResponseError: If the response has no text at all
    """
    texts = [part.content for part in response.parts if isinstance(part, TextPart) and part.content]
    if not texts:
        raise ModelResponseError("Model returned neither text nor tool calls")
    return "\n".join(texts)


__all__ = [
    "ChatModelProvider",
    "ModelResponseError",
    "PydanticAIChatModel",
    "finish_reason",
    "requested_tool_calls",
    "response_text",
]
