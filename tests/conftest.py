"""
Shared test fixtures and configuration.

Environment strategy:
- All tests use .env.test (GenAI disabled, no network, no real model)
- Model behaviour is scripted through ScriptedModel, which plays back
  ModelResponse objects in order and records what it was sent
"""

from collections.abc import Callable, Sequence
from datetime import UTC, date, datetime, timedelta
from pathlib import Path

import pytest
from dotenv import load_dotenv

ENV_FILE = Path(__file__).parent.parent / ".env.test"

load_dotenv(ENV_FILE, override=True)

from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart, ToolCallPart
from pydantic_ai.tools import ToolDefinition

from expenses.domain.conversation import AssistantConfig, ChatOrchestrator
from expenses.domain.expense import ExpenseCreateModel
from expenses.service.expense_store import InMemoryExpenseStore

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=UTC)


class TickingClock:
    """Deterministic clock: each call is one second after the previous."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


class ScriptedModel:
    """ChatModelProvider test double playing back a fixed script.

    Each script entry is a ModelResponse to return or an Exception to raise.
    Every call's messages and tool definitions are recorded.
    """

    def __init__(self, script: Sequence[ModelResponse | Exception]):
        self.script = list(script)
        self.calls: list[tuple[list[ModelMessage], list[ToolDefinition]]] = []

    async def complete(
        self,
        messages: Sequence[ModelMessage],
        tools: Sequence[ToolDefinition],
    ) -> ModelResponse:
        self.calls.append((list(messages), list(tools)))
        if not self.script:
            raise AssertionError("ScriptedModel ran out of responses")
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def text(content: str) -> ModelResponse:
    """Final-answer response."""
    return ModelResponse(parts=[TextPart(content=content)])


def tool_call(name: str, args: dict | str | None = None, call_id: str = "call_1") -> ModelResponse:
    """Response requesting a single tool call."""
    return ModelResponse(parts=[ToolCallPart(tool_name=name, args=args, tool_call_id=call_id)])


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def store(clock: TickingClock) -> InMemoryExpenseStore:
    """Empty store with the default categories and users."""
    return InMemoryExpenseStore(clock=clock)


@pytest.fixture
def draft_model() -> ExpenseCreateModel:
    return ExpenseCreateModel(
        user_id=1,
        category_id=2,
        amount_minor=2550,
        expense_date=date(2025, 3, 10),
        description="Client lunch",
    )


@pytest.fixture
def make_orchestrator(store: InMemoryExpenseStore) -> Callable[..., ChatOrchestrator]:
    """Build an enabled orchestrator over the store with a scripted model."""

    def factory(model: ScriptedModel | None, **config) -> ChatOrchestrator:
        return ChatOrchestrator(
            config=AssistantConfig(enabled=model is not None, **config),
            expenses=store,
            llm=model,
        )

    return factory
