"""In-memory Domain Operation Provider.

Implements ExpenseOperations over a dict of frozen Expense models. Each
operation runs as one critical section under a re-entrant lock: the current
expense is read, the pure lifecycle transition computes a replacement, and
only a successful replacement is written back. A failed transition therefore
leaves state and timestamps exactly as they were.

Unexpected exceptions inside an operation are logged and converted to an
OperationFailure(store_error); nothing raises across the boundary.
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, TypeVar

from ..domain.domain_type import ErrorCode, ExpenseStatus, LifecycleAction
from ..domain.domain_value import OperationFailure, OperationSuccess, fail, succeed
from ..domain.expense import (
    Category,
    Expense,
    ExpenseCreateModel,
    ExpenseSearchModel,
    ExpenseSummary,
    ExpenseUpdateModel,
    User,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(category_id=1, category_name="Travel"),
    Category(category_id=2, category_name="Meals"),
    Category(category_id=3, category_name="Supplies"),
    Category(category_id=4, category_name="Accommodation"),
    Category(category_id=5, category_name="Other"),
)

DEFAULT_USERS: tuple[User, ...] = (
    User(user_id=1, user_name="Alice Example", email="alice@example.co.uk", role_name="Employee", manager_id=2),
    User(user_id=2, user_name="Bob Manager", email="bob.manager@example.co.uk", role_name="Manager"),
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class InMemoryExpenseStore:
    """Thread-safe, process-local expense store.

    Args:
        categories: Reference categories (defaults to the standard five)
        users: Reference users (defaults to one employee and one manager)
        currency: Currency code stamped on new expenses
        clock: Timestamp source, injectable for deterministic tests
    """

    def __init__(
        self,
        categories: Iterable[Category] = DEFAULT_CATEGORIES,
        users: Iterable[User] = DEFAULT_USERS,
        currency: str = "GBP",
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.currency = currency
        self.clock = clock
        self._categories = {category.category_id: category for category in categories}
        self._users = {user.user_id: user for user in users}
        self._expenses: dict[int, Expense] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_all(self) -> OperationSuccess[list[Expense]] | OperationFailure:
        return self._run("list_all", lambda: succeed(self._sorted(self._expenses.values())))

    async def get_by_id(self, expense_id: int) -> OperationSuccess[Expense | None] | OperationFailure:
        """Missing ids succeed with None; callers decide whether that is an error."""
        return self._run("get_by_id", lambda: succeed(self._expenses.get(expense_id)))

    async def list_by_status(self, status_name: str) -> OperationSuccess[list[Expense]] | OperationFailure:
        def op() -> OperationSuccess[Any] | OperationFailure:
            try:
                status = ExpenseStatus.from_label(status_name)
            except ValueError as exc:
                return fail(ErrorCode.VALIDATION, str(exc))
            return succeed(self._sorted(e for e in self._expenses.values() if e.status == status))

        return self._run("list_by_status", op)

    async def list_by_user(self, user_id: int) -> OperationSuccess[list[Expense]] | OperationFailure:
        return self._run(
            "list_by_user",
            lambda: succeed(self._sorted(e for e in self._expenses.values() if e.user_id == user_id)),
        )

    async def list_pending(self) -> OperationSuccess[list[Expense]] | OperationFailure:
        return self._run(
            "list_pending",
            lambda: succeed(
                self._sorted(e for e in self._expenses.values() if e.status == ExpenseStatus.SUBMITTED)
            ),
        )

    async def get_summary(self) -> OperationSuccess[ExpenseSummary] | OperationFailure:
        def op() -> OperationSuccess[Any]:
            expenses = list(self._expenses.values())
            approved = [e for e in expenses if e.status == ExpenseStatus.APPROVED]
            return succeed(
                ExpenseSummary(
                    total_expenses=len(expenses),
                    pending_approvals=sum(1 for e in expenses if e.status == ExpenseStatus.SUBMITTED),
                    approved_amount_minor=sum(e.amount_minor for e in approved),
                    approved_count=len(approved),
                    currency=self.currency,
                )
            )

        return self._run("get_summary", op)

    async def search(self, criteria: ExpenseSearchModel) -> OperationSuccess[list[Expense]] | OperationFailure:
        return self._run(
            "search",
            lambda: succeed(self._sorted(e for e in self._expenses.values() if criteria.matches(e))),
        )

    async def list_categories(self) -> OperationSuccess[list[Category]] | OperationFailure:
        return self._run("list_categories", lambda: succeed(list(self._categories.values())))

    async def list_statuses(self) -> OperationSuccess[list[ExpenseStatus]] | OperationFailure:
        return self._run("list_statuses", lambda: succeed(list(ExpenseStatus)))

    async def list_users(self) -> OperationSuccess[list[User]] | OperationFailure:
        return self._run("list_users", lambda: succeed(list(self._users.values())))

    async def get_user(self, user_id: int) -> OperationSuccess[User | None] | OperationFailure:
        return self._run("get_user", lambda: succeed(self._users.get(user_id)))

    async def list_managers(self) -> OperationSuccess[list[User]] | OperationFailure:
        return self._run(
            "list_managers",
            lambda: succeed([user for user in self._users.values() if user.is_manager]),
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create(self, model: ExpenseCreateModel) -> OperationSuccess[int] | OperationFailure:
        """Create a Draft expense and return its new id."""

        def op() -> OperationSuccess[Any] | OperationFailure:
            user = self._users.get(model.user_id)
            if user is None:
                return fail(ErrorCode.VALIDATION, f"User {model.user_id} does not exist")
            category = self._categories.get(model.category_id)
            if category is None or not category.is_active:
                return fail(ErrorCode.VALIDATION, f"Category {model.category_id} does not exist or is inactive")

            expense_id = next(self._ids)
            self._expenses[expense_id] = Expense(
                expense_id=expense_id,
                user_id=user.user_id,
                user_name=user.user_name,
                category_id=category.category_id,
                category_name=category.category_name,
                status=ExpenseStatus.DRAFT,
                amount_minor=model.amount_minor,
                currency=self.currency,
                expense_date=model.expense_date,
                description=model.description,
                created_at=self.clock(),
            )
            logger.info("Created expense %s for user %s (%s minor units)", expense_id, user.user_id, model.amount_minor)
            return succeed(expense_id)

        return self._run("create", op)

    async def update(self, model: ExpenseUpdateModel) -> OperationSuccess[bool] | OperationFailure:
        def op() -> OperationSuccess[Any] | OperationFailure:
            current = self._expenses.get(model.expense_id)
            if current is None:
                return self._not_found(model.expense_id)
            category = self._categories.get(model.category_id)
            if category is None or not category.is_active:
                return fail(ErrorCode.VALIDATION, f"Category {model.category_id} does not exist or is inactive")
            return self._commit(current.revise(model, category_name=category.category_name))

        return self._run("update", op)

    async def submit(self, expense_id: int) -> OperationSuccess[bool] | OperationFailure:
        return self._transition("submit", expense_id, LifecycleAction.SUBMIT)

    async def approve(self, expense_id: int, reviewer_id: int) -> OperationSuccess[bool] | OperationFailure:
        return self._transition("approve", expense_id, LifecycleAction.APPROVE, reviewer_id)

    async def reject(self, expense_id: int, reviewer_id: int) -> OperationSuccess[bool] | OperationFailure:
        return self._transition("reject", expense_id, LifecycleAction.REJECT, reviewer_id)

    async def delete(self, expense_id: int) -> OperationSuccess[bool] | OperationFailure:
        """Remove an expense regardless of its state (administrative override)."""

        def op() -> OperationSuccess[Any] | OperationFailure:
            if self._expenses.pop(expense_id, None) is None:
                return self._not_found(expense_id)
            logger.info("Deleted expense %s", expense_id)
            return succeed(True)

        return self._run("delete", op)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        operation: str,
        expense_id: int,
        action: LifecycleAction,
        reviewer_id: int | None = None,
    ) -> OperationSuccess[bool] | OperationFailure:
        def op() -> OperationSuccess[Any] | OperationFailure:
            current = self._expenses.get(expense_id)
            if current is None:
                return self._not_found(expense_id)

            reviewer_name = None
            if reviewer_id is not None:
                reviewer = self._users.get(reviewer_id)
                if reviewer is None:
                    return fail(ErrorCode.VALIDATION, f"Reviewer {reviewer_id} does not exist")
                reviewer_name = reviewer.user_name

            result = current.transition(action, at=self.clock(), reviewer_id=reviewer_id, reviewer_name=reviewer_name)
            committed = self._commit(result)
            if committed.ok:
                logger.info("Expense %s %s -> %s", expense_id, action.value, self._expenses[expense_id].status_name)
            return committed

        return self._run(operation, op)

    def _commit(self, result: OperationSuccess[Expense] | OperationFailure) -> OperationSuccess[bool] | OperationFailure:
        if not result.ok:
            return result
        expense = result.value
        self._expenses[expense.expense_id] = expense
        return succeed(True)

    def _run(
        self,
        operation: str,
        op: Callable[[], OperationSuccess[T] | OperationFailure],
    ) -> OperationSuccess[T] | OperationFailure:
        with self._lock:
            try:
                return op()
            except Exception as exc:
                logger.exception("Error in expense store operation %s", operation)
                return fail(ErrorCode.STORE_ERROR, f"Error in {operation}: {str(exc)[:500] or type(exc).__name__}")

    @staticmethod
    def _not_found(expense_id: int) -> OperationFailure:
        return fail(ErrorCode.NOT_FOUND, f"Expense {expense_id} not found")

    @staticmethod
    def _sorted(expenses: Iterable[Expense]) -> list[Expense]:
        return sorted(expenses, key=lambda e: (e.expense_date, e.expense_id), reverse=True)


__all__ = ["DEFAULT_CATEGORIES", "DEFAULT_USERS", "InMemoryExpenseStore"]
