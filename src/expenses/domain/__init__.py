"""Domain Layer - Expense Lifecycle, Tools and the Conversation Loop.

Key Components:
    - Expense: Frozen aggregate whose lifecycle transitions are pure functions
    - ExpenseOperations: Protocol every expense store implements; returns
      explicit success/failure values instead of raising
    - ToolCatalog: Static registry of the operations the assistant may call
    - ChatOrchestrator: Bounded model ↔ tool loop behind send_message

Design Principles:
    - Pydantic AI Native: Messages and tool definitions are Pydantic AI types
    - Immutable by Default: Domain models use frozen=True
    - Explicit Dependencies: Store and model are passed in, never looked up
    - Minor Units: Money is an integer count of pence; major units are derived
"""

from .conversation import (
    DISABLED_MESSAGE,
    SYSTEM_PROMPT,
    AssistantConfig,
    ChatOrchestrator,
    ConversationTurn,
    ToolExecution,
)
from .domain_type import ErrorCode, ExpenseStatus, FinishReason, LifecycleAction, MessageRole
from .domain_value import (
    ChatMessage,
    ChatReply,
    OperationFailure,
    OperationSuccess,
    fail,
    format_amount,
    succeed,
    to_major_units,
    to_minor_units,
)
from .expense import (
    TRANSITIONS,
    Category,
    Expense,
    ExpenseCreateModel,
    ExpenseSearchModel,
    ExpenseSummary,
    ExpenseUpdateModel,
    User,
    can_transition,
)
from .model_provider import ChatModelProvider, ModelResponseError, PydanticAIChatModel
from .operations import ExpenseOperations
from .tools import ALL_TOOLS, ToolCatalog, ToolContext, ToolOutcome, ToolSpec

__all__ = [
    "ALL_TOOLS",
    "DISABLED_MESSAGE",
    "SYSTEM_PROMPT",
    "TRANSITIONS",
    "AssistantConfig",
    "Category",
    "ChatMessage",
    "ChatModelProvider",
    "ChatOrchestrator",
    "ChatReply",
    "ConversationTurn",
    "ErrorCode",
    "Expense",
    "ExpenseCreateModel",
    "ExpenseOperations",
    "ExpenseSearchModel",
    "ExpenseStatus",
    "ExpenseSummary",
    "ExpenseUpdateModel",
    "FinishReason",
    "LifecycleAction",
    "MessageRole",
    "ModelResponseError",
    "OperationFailure",
    "OperationSuccess",
    "PydanticAIChatModel",
    "ToolCatalog",
    "ToolContext",
    "ToolExecution",
    "ToolOutcome",
    "ToolSpec",
    "User",
    "can_transition",
    "fail",
    "format_amount",
    "succeed",
    "to_major_units",
    "to_minor_units",
]
