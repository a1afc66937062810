"""Domain Type System - Core Enumerations.

Defines type-safe constants for expense and conversation concepts. Lifecycle
states are IntEnum because the store keys them by small integer codes; the
rest are StrEnum for automatic string coercion and clean JSON serialization.
"""

from enum import IntEnum, StrEnum


class ExpenseStatus(IntEnum):
    """Expense Lifecycle States.

    States:
        DRAFT: Initial state of every new expense, still editable
        SUBMITTED: Waiting for a manager's decision
        APPROVED: Terminal, accepted by a reviewer
        REJECTED: Terminal, declined by a reviewer
    """

    DRAFT = 1
    SUBMITTED = 2
    APPROVED = 3
    REJECTED = 4

    @property
    def label(self) -> str:
        """Display name used by the UI and in tool payloads ("Draft", ...)."""
        return self.name.capitalize()

    @property
    def is_terminal(self) -> bool:
        return self in (ExpenseStatus.APPROVED, ExpenseStatus.REJECTED)

    @classmethod
    def from_label(cls, label: str) -> "ExpenseStatus":
        """Case-insensitive lookup by display name.

        Raises:
            ValueError: If the label names no state
        """
        try:
            return cls[label.strip().upper()]
        except KeyError:
            valid = ", ".join(status.label for status in cls)
            raise ValueError(f"Unknown status '{label}'. Expected one of: {valid}") from None


class LifecycleAction(StrEnum):
    """Transitions that move an expense between lifecycle states."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"


class ErrorCode(StrEnum):
    """Classification of failed domain operations.

    Enables callers (UI, tool catalog, logs) to tell expected failures apart
    without parsing messages.
    """

    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    VALIDATION = "validation"
    STORE_ERROR = "store_error"


class MessageRole(StrEnum):
    """Role tags for conversation history entries."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(StrEnum):
    """Why the model stopped producing output for a round.

    STOP: Plain answer, the conversation turn is complete
    TOOL_CALLS: Model requested one or more tool invocations
    """

    STOP = "stop"
    TOOL_CALLS = "tool_calls"


__all__ = [
    "ErrorCode",
    "ExpenseStatus",
    "FinishReason",
    "LifecycleAction",
    "MessageRole",
]
