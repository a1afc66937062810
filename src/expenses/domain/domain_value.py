"""Value Layer - Money, Operation Results and Chat Messages.

Small immutable values shared by every other domain module:

    - Money helpers: the single conversion point between major units (what
      people and the model type, e.g. 25.50) and minor units (what the store
      keeps, e.g. 2550)
    - Operation results: explicit success/failure values returned across the
      Domain Operation Provider boundary instead of exceptions
    - Chat values: caller-owned history entries and the reply contract
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic.alias_generators import to_camel

from .domain_type import ErrorCode, MessageRole

T = TypeVar("T")

MINOR_UNITS_PER_MAJOR = 100

CURRENCY_SYMBOLS = {
    "GBP": "£",
    "USD": "$",
    "EUR": "€",
}


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


def to_minor_units(amount: Decimal | float | int | str) -> int:
    """Convert a major-unit amount to integer minor units.

    Goes through ``Decimal(str(amount))`` so binary float noise never leaks
    into the stored value, then rounds half-up.

    Example:
        >>> to_minor_units(25.5)
        2550
        >>> to_minor_units(19.99)
        1999
    """
    minor = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major_units(amount_minor: int) -> Decimal:
    """Derive the major-unit mirror of a minor-unit amount (two places)."""
    return (Decimal(amount_minor) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))


def format_amount(amount_minor: int, currency: str = "GBP") -> str:
    """Render an amount for humans and the model, e.g. ``£120.00``."""
    major = to_major_units(amount_minor)
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol is None:
        return f"{major:.2f} {currency.upper()}"
    return f"{symbol}{major:.2f}"


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


class ErrorMessage(RootModel[str]):
    """Non-empty explanation attached to every failed operation."""

    root: str = Field(min_length=1, max_length=2000)
    model_config = ConfigDict(frozen=True)


class OperationSuccess(BaseModel, Generic[T]):
    """Successful domain operation carrying its value.

    ``ok`` is a literal discriminator so callers can branch on
    ``result.ok`` and type checkers narrow to the right variant.
    """

    ok: Literal[True] = True
    value: T

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class OperationFailure(BaseModel):
    """Expected failure of a domain operation (not found, illegal transition, ...)."""

    ok: Literal[False] = False
    code: ErrorCode
    error: ErrorMessage

    model_config = ConfigDict(frozen=True)

    @property
    def message(self) -> str:
        return self.error.root


def succeed(value: Any) -> OperationSuccess[Any]:
    return OperationSuccess(value=value)


def fail(code: ErrorCode, message: str) -> OperationFailure:
    return OperationFailure(code=code, error=ErrorMessage(message))


# ---------------------------------------------------------------------------
# Chat values
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    """One role-tagged entry of the caller-owned conversation history."""

    role: MessageRole
    content: str

    model_config = ConfigDict(frozen=True)


class ChatReply(BaseModel):
    """Outcome of one send_message call.

    ``is_error`` is False for normal answers and for the disabled-mode
    placeholder; True only when the turn failed or was cut short.
    Serializes with camelCase aliases (``isError``) for the chat API.
    """

    message: str
    is_error: bool = False

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


__all__ = [
    "CURRENCY_SYMBOLS",
    "ChatMessage",
    "ChatReply",
    "ErrorMessage",
    "OperationFailure",
    "OperationSuccess",
    "fail",
    "format_amount",
    "succeed",
    "to_major_units",
    "to_minor_units",
]
