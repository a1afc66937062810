"""Conversation Orchestrator - the Tool-Calling Loop.

Drives one send_message call as a strictly sequential round-trip protocol:

    Round = model call → zero or more tool executions

    1. Build [system prompt, *history, user message]
    2. Call the model with every tool definition from the catalog
    3. If it requested tools: run each call in order, append one tool return
       per call id, go to 2
    4. Otherwise its text is the answer

Bounds and failure handling:
    - At most ``max_rounds`` model calls. If every one of them asked for more
      tools, the turn ends with is_error=True and a message naming the
      tools that already ran (they may have changed data).
    - A timeout and an optional cancel event are checked at round
      boundaries only. A tool that has started always finishes.
    - Tool argument problems, domain failures and handler exceptions go
      back to the model as {"error": ...} and the loop continues.
    - Model/transport errors and malformed responses are caught once, here,
      and become "An error occurred: ..." with is_error=True. Nothing is
      retried.

The orchestrator keeps no state between calls: history belongs to the
caller, and the tool catalog is shared read-only.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)

from .domain_type import FinishReason, MessageRole
from .domain_value import ChatMessage, ChatReply
from .model_provider import ChatModelProvider, finish_reason, requested_tool_calls, response_text
from .operations import ExpenseOperations
from .tools import ALL_TOOLS, ToolCatalog, ToolContext

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
You are an AI assistant for the Expense Management System. You can help users with:
- Viewing expenses and their status
- Creating new expenses
- Submitting expenses for approval
- Approving or rejecting expenses (for managers)
- Getting expense summaries and statistics

Expenses move Draft -> Submitted -> Approved or Rejected. Only Draft expenses can be
submitted, only Submitted expenses can be approved or rejected, and Approved or Rejected
expenses are final. If a function returns an "error", explain it to the user plainly.

When listing expenses or data, format the response nicely with:
- Use numbered lists (1., 2., etc.) for listing items
- Use bullet points (- or *) for properties
- Use **bold** for emphasis on important values like amounts and status
- Include relevant details like date, category, amount, and status

Always be helpful and provide clear responses. If you need to perform an action, use the appropriate function.
""".strip()

DISABLED_MESSAGE = (
    "GenAI services are not configured. To enable the AI chat functionality, set GENAI_ENABLED=true "
    "and provide OPENAI_ENDPOINT, OPENAI_DEPLOYMENT_NAME and OPENAI_API_KEY for the Azure OpenAI deployment. "
    "Until then, you can still use all the expense management features through the UI."
)


class AssistantConfig(BaseModel):
    """Tunable behaviour of the orchestrator."""

    enabled: bool = False
    max_rounds: int = Field(default=10, ge=1, le=50)
    turn_timeout_seconds: float | None = Field(default=None, gt=0)
    system_prompt: str = SYSTEM_PROMPT
    default_user_id: int = 1
    default_reviewer_id: int = 2

    model_config = ConfigDict(frozen=True)


class ToolExecution(BaseModel):
    """Record of one executed tool call."""

    round: int
    call_id: str
    tool_name: str
    arguments: str
    result: str
    failed: bool = False

    model_config = ConfigDict(frozen=True)


class ConversationTurn(BaseModel):
    """Everything that happened during one send_message call.

    Attributes:
        messages: Full exchange sent to / received from the model, in order
        executions: Tool calls run, in execution order
        rounds: Number of model calls made
        reply: What the caller gets back
    """

    messages: tuple[ModelMessage, ...] = ()
    executions: tuple[ToolExecution, ...] = ()
    rounds: int = 0
    reply: ChatReply

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def tool_calls(self) -> list[ToolCallPart]:
        return [
            part
            for message in self.messages
            if isinstance(message, ModelResponse)
            for part in message.parts
            if isinstance(part, ToolCallPart)
        ]

    @property
    def tool_returns(self) -> list[ToolReturnPart]:
        return [
            part
            for message in self.messages
            if isinstance(message, ModelRequest)
            for part in message.parts
            if isinstance(part, ToolReturnPart)
        ]

    def to_log_attributes(self) -> dict[str, Any]:
        """Flat, JSON-friendly summary for structured log records."""
        return {
            "turn.rounds": self.rounds,
            "turn.is_error": self.reply.is_error,
            "turn.tool_count": len(self.executions),
            "turn.tools": [execution.tool_name for execution in self.executions],
            "turn.tool_failures": sum(1 for execution in self.executions if execution.failed),
        }


class TurnInterrupted(Exception):
    """Turn stopped at a round boundary (cancelled or timed out)."""


class ChatOrchestrator(BaseModel):
    """Stateless driver of the model ↔ tool loop.

    Attributes:
        config: Enablement flag, round bound, timeout, prompt, defaults
        expenses: Domain Operation Provider the tools call into
        llm: Language model, None when GenAI is not configured
        catalog: Tool catalog presented to the model
    """

    config: AssistantConfig
    expenses: ExpenseOperations
    llm: ChatModelProvider | None = None
    catalog: ToolCatalog = ALL_TOOLS

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled and self.llm is not None

    @property
    def tool_context(self) -> ToolContext:
        return ToolContext(
            expenses=self.expenses,
            default_user_id=self.config.default_user_id,
            default_reviewer_id=self.config.default_reviewer_id,
        )

    async def send_message(self, text: str, history: Sequence[ChatMessage] = ()) -> ChatReply:
        """Answer one user message; never raises for model or tool failures."""
        turn = await self.run_turn(text, history)
        return turn.reply

    def build_messages(self, text: str, history: Sequence[ChatMessage]) -> list[ModelMessage]:
        """System prompt, prior user/assistant exchanges, then the new message.

        Caller-supplied system and tool entries are skipped: the orchestrator
        owns the system prompt, and tool results only make sense inside the
        round that produced them.
        """
        messages: list[ModelMessage] = [ModelRequest(parts=[SystemPromptPart(content=self.config.system_prompt)])]
        for entry in history:
            if entry.role == MessageRole.USER:
                messages.append(ModelRequest(parts=[UserPromptPart(content=entry.content)]))
            elif entry.role == MessageRole.ASSISTANT:
                messages.append(ModelResponse(parts=[TextPart(content=entry.content)]))
            else:
                logger.debug("Skipping %s message in caller history", entry.role.value)
        messages.append(ModelRequest(parts=[UserPromptPart(content=text)]))
        return messages

    async def run_turn(
        self,
        text: str,
        history: Sequence[ChatMessage] = (),
        *,
        cancel: asyncio.Event | None = None,
    ) -> ConversationTurn:
        """Run the full loop and return the detailed turn record.

        Args:
            text: New user message
            history: Prior exchange, owned and persisted by the caller
            cancel: Optional event; when set, the loop stops at the next
                round boundary

        Raises:
            asyncio.CancelledError: If the task running this turn is
                cancelled. A tool call already in progress is awaited to
                completion and logged first, so its effect on the store is
                never left half-applied; the caller sees the cancellation.
                Use ``cancel`` instead to get an is_error reply.
        """
        messages = self.build_messages(text, history)
        executions: list[ToolExecution] = []
        rounds = 0

        def finish(message: str, *, is_error: bool) -> ConversationTurn:
            turn = ConversationTurn(
                messages=tuple(messages),
                executions=tuple(executions),
                rounds=rounds,
                reply=ChatReply(message=message, is_error=is_error),
            )
            logger.info("Chat turn finished %s", turn.to_log_attributes())
            return turn

        if not self.is_enabled or self.llm is None:
            return ConversationTurn(messages=tuple(messages), reply=ChatReply(message=DISABLED_MESSAGE))

        deadline = time.monotonic() + self.config.turn_timeout_seconds if self.config.turn_timeout_seconds else None
        definitions = self.catalog.definitions()
        context = self.tool_context

        try:
            while rounds < self.config.max_rounds:
                self._check_round_boundary(cancel, deadline)

                rounds += 1
                response = await self.llm.complete(messages, definitions)
                messages.append(response)

                if finish_reason(response) is FinishReason.STOP:
                    return finish(response_text(response), is_error=False)

                calls = requested_tool_calls(response)
                logger.info("[Chat] round=%d calling: %s", rounds, ", ".join(call.tool_name for call in calls))

                returns: list[ToolReturnPart] = []
                for call in calls:
                    execution = await self._execute_to_completion(call, rounds, context)
                    executions.append(execution)
                    returns.append(
                        ToolReturnPart(
                            tool_name=call.tool_name,
                            content=execution.result,
                            tool_call_id=call.tool_call_id,
                        )
                    )
                messages.append(ModelRequest(parts=returns))

            logger.warning("[Chat] round limit %d reached without a final answer", self.config.max_rounds)
            return finish(self._round_limit_message(executions), is_error=True)

        except TurnInterrupted as exc:
            logger.warning("[Chat] turn interrupted after %d rounds: %s", rounds, exc)
            return finish(self._interrupted_message(str(exc), executions), is_error=True)
        except Exception as exc:
            logger.exception("Error in chat orchestrator")
            return finish(f"An error occurred: {exc}", is_error=True)

    async def _execute_to_completion(
        self,
        call: ToolCallPart,
        round_number: int,
        context: ToolContext,
    ) -> ToolExecution:
        """Run one tool call shielded from task cancellation."""
        task = asyncio.ensure_future(self._execute(call, round_number, context))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            execution = await task
            logger.warning(
                "[Chat] turn cancelled while %s (call %s) was running; it completed with failed=%s",
                execution.tool_name,
                execution.call_id,
                execution.failed,
            )
            raise

    async def _execute(self, call: ToolCallPart, round_number: int, context: ToolContext) -> ToolExecution:
        arguments = call.args if isinstance(call.args, str) else json_arguments(call.args)
        outcome = await self.catalog.execute(call.tool_name, call.args, context)
        if outcome.failed:
            logger.warning("[Chat]   tool=%s ERROR: %s", call.tool_name, outcome.content)
        else:
            logger.info("[Chat]   tool=%s OK (%d chars)", call.tool_name, len(outcome.content))
        return ToolExecution(
            round=round_number,
            call_id=call.tool_call_id,
            tool_name=call.tool_name,
            arguments=arguments,
            result=outcome.content,
            failed=outcome.failed,
        )

    @staticmethod
    def _check_round_boundary(cancel: asyncio.Event | None, deadline: float | None) -> None:
        if cancel is not None and cancel.is_set():
            raise TurnInterrupted("the request was cancelled")
        if deadline is not None and time.monotonic() >= deadline:
            raise TurnInterrupted("the request timed out")

    def _round_limit_message(self, executions: Sequence[ToolExecution]) -> str:
        return (
            f"I wasn't able to finish this request within {self.config.max_rounds} steps. "
            f"{_performed(executions)} Please check the current state of your expenses and try a simpler request."
        )

    @staticmethod
    def _interrupted_message(reason: str, executions: Sequence[ToolExecution]) -> str:
        return f"I stopped before finishing because {reason}. {_performed(executions)}"


def json_arguments(args: dict[str, Any] | None) -> str:
    return json.dumps(args or {})


def _performed(executions: Sequence[ToolExecution]) -> str:
    if not executions:
        return "No actions were performed."
    names = ", ".join(execution.tool_name for execution in executions)
    return f"Actions already performed: {names}."


__all__ = [
    "DISABLED_MESSAGE",
    "SYSTEM_PROMPT",
    "AssistantConfig",
    "ChatOrchestrator",
    "ConversationTurn",
    "ToolExecution",
]
