"""Expense Aggregate and Lifecycle State Machine.

An expense moves through a small state machine:

    Draft ──submit──▶ Submitted ──approve──▶ Approved
                              └──reject───▶ Rejected

Approved and Rejected are terminal. Transitions are pure functions on frozen
models: a legal transition returns a *new* Expense, an illegal one returns an
OperationFailure and the original instance is untouched. That is what lets
the store guarantee a failed transition never partially commits.

Amounts are held in integer minor units (pence). The major-unit value is
always derived, never stored.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .domain_type import ErrorCode, ExpenseStatus, LifecycleAction
from .domain_value import OperationFailure, OperationSuccess, fail, format_amount, succeed, to_major_units

# action -> (states it may start from, state it leads to)
TRANSITIONS: dict[LifecycleAction, tuple[frozenset[ExpenseStatus], ExpenseStatus]] = {
    LifecycleAction.SUBMIT: (frozenset({ExpenseStatus.DRAFT}), ExpenseStatus.SUBMITTED),
    LifecycleAction.APPROVE: (frozenset({ExpenseStatus.SUBMITTED}), ExpenseStatus.APPROVED),
    LifecycleAction.REJECT: (frozenset({ExpenseStatus.SUBMITTED}), ExpenseStatus.REJECTED),
}

EDITABLE_STATES = frozenset({ExpenseStatus.DRAFT})

_PAST_TENSE = {
    LifecycleAction.SUBMIT: "submitted",
    LifecycleAction.APPROVE: "approved",
    LifecycleAction.REJECT: "rejected",
}


def can_transition(status: ExpenseStatus, action: LifecycleAction) -> bool:
    """True if ``action`` is legal from ``status``."""
    sources, _ = TRANSITIONS[action]
    return status in sources


class Expense(BaseModel):
    """A single expense claim.

    Attributes:
        amount_minor: Canonical amount in minor units (e.g. pence)
        status: Current lifecycle state, exactly one at a time
        submitted_at: Set by the submit transition
        reviewed_by/reviewed_at: Set by approve or reject; the only review
            history retained
    """

    expense_id: int
    user_id: int
    user_name: str = ""
    category_id: int
    category_name: str = ""
    status: ExpenseStatus = ExpenseStatus.DRAFT
    amount_minor: int = Field(ge=0)
    currency: str = "GBP"
    expense_date: date
    description: str | None = None
    receipt_file: str | None = None
    submitted_at: datetime | None = None
    reviewed_by: int | None = None
    reviewer_name: str | None = None
    reviewed_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def amount_major(self) -> Decimal:
        """Major-unit mirror of amount_minor (e.g. 25.50)."""
        return to_major_units(self.amount_minor)

    @property
    def status_name(self) -> str:
        return self.status.label

    @property
    def formatted_amount(self) -> str:
        return format_amount(self.amount_minor, self.currency)

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATES

    def transition(
        self,
        action: LifecycleAction,
        *,
        at: datetime,
        reviewer_id: int | None = None,
        reviewer_name: str | None = None,
    ) -> OperationSuccess[Expense] | OperationFailure:
        """Apply a lifecycle action.

        Args:
            action: submit, approve or reject
            at: Timestamp recorded for the transition
            reviewer_id: Required for approve/reject
            reviewer_name: Display name stored alongside reviewer_id

        Returns:
            OperationSuccess with the updated copy, or OperationFailure
            (invalid_transition) leaving this instance as it was
        """
        sources, target = TRANSITIONS[action]
        if self.status not in sources:
            expected = " or ".join(sorted(status.label for status in sources))
            return fail(
                ErrorCode.INVALID_TRANSITION,
                f"Expense {self.expense_id} cannot be {_PAST_TENSE[action]}: "
                f"it is {self.status_name}, expected {expected}",
            )

        if action is LifecycleAction.SUBMIT:
            return succeed(self.model_copy(update={"status": target, "submitted_at": at}))

        if reviewer_id is None:
            return fail(ErrorCode.VALIDATION, f"A reviewer is required to {action.value} an expense")
        return succeed(
            self.model_copy(
                update={
                    "status": target,
                    "reviewed_by": reviewer_id,
                    "reviewer_name": reviewer_name,
                    "reviewed_at": at,
                }
            )
        )

    def revise(self, update: ExpenseUpdateModel, *, category_name: str = "") -> OperationSuccess[Expense] | OperationFailure:
        """Apply field edits, legal only while the expense is editable (Draft)."""
        if not self.is_editable:
            return fail(
                ErrorCode.INVALID_TRANSITION,
                f"Expense {self.expense_id} cannot be edited: it is {self.status_name}",
            )
        return succeed(
            self.model_copy(
                update={
                    "category_id": update.category_id,
                    "category_name": category_name or self.category_name,
                    "amount_minor": update.amount_minor,
                    "expense_date": update.expense_date,
                    "description": update.description,
                }
            )
        )


class ExpenseCreateModel(BaseModel):
    """Input for creating a Draft expense. Amount already in minor units."""

    user_id: int
    category_id: int
    amount_minor: int = Field(gt=0)
    expense_date: date
    description: str | None = None

    model_config = ConfigDict(frozen=True)


class ExpenseUpdateModel(BaseModel):
    """Field edits for a Draft expense. Amount already in minor units."""

    expense_id: int
    category_id: int
    amount_minor: int = Field(gt=0)
    expense_date: date
    description: str | None = None

    model_config = ConfigDict(frozen=True)


class ExpenseSummary(BaseModel):
    """Headline statistics shown on the dashboard."""

    total_expenses: int = 0
    pending_approvals: int = 0
    approved_amount_minor: int = 0
    approved_count: int = 0
    currency: str = "GBP"

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def approved_amount_major(self) -> Decimal:
        return to_major_units(self.approved_amount_minor)


class ExpenseSearchModel(BaseModel):
    """Optional filters combined with AND."""

    search_term: str | None = None
    category_id: int | None = None
    status: ExpenseStatus | None = None
    start_date: date | None = None
    end_date: date | None = None

    model_config = ConfigDict(frozen=True)

    def matches(self, expense: Expense) -> bool:
        if self.search_term:
            term = self.search_term.casefold()
            haystack = " ".join(
                filter(None, [expense.description, expense.category_name, expense.user_name])
            ).casefold()
            if term not in haystack:
                return False
        if self.category_id is not None and expense.category_id != self.category_id:
            return False
        if self.status is not None and expense.status != self.status:
            return False
        if self.start_date is not None and expense.expense_date < self.start_date:
            return False
        if self.end_date is not None and expense.expense_date > self.end_date:
            return False
        return True


class Category(BaseModel):
    category_id: int
    category_name: str
    is_active: bool = True

    model_config = ConfigDict(frozen=True)


class User(BaseModel):
    user_id: int
    user_name: str
    email: str
    role_name: str = "Employee"
    manager_id: int | None = None
    is_active: bool = True

    model_config = ConfigDict(frozen=True)

    @property
    def is_manager(self) -> bool:
        return self.role_name == "Manager"


__all__ = [
    "EDITABLE_STATES",
    "TRANSITIONS",
    "Category",
    "Expense",
    "ExpenseCreateModel",
    "ExpenseSearchModel",
    "ExpenseSummary",
    "ExpenseUpdateModel",
    "User",
    "can_transition",
]
