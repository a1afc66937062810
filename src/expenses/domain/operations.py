"""Domain Operation Provider contract.

The conversation orchestrator and the tool catalog only ever see this
protocol. Every method returns an OperationSuccess or OperationFailure value
and never raises across the boundary; implementations own their own
concurrency safety.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .domain_type import ExpenseStatus
from .domain_value import OperationFailure, OperationSuccess
from .expense import (
    Category,
    Expense,
    ExpenseCreateModel,
    ExpenseSearchModel,
    ExpenseSummary,
    ExpenseUpdateModel,
    User,
)


@runtime_checkable
class ExpenseOperations(Protocol):
    """Lifecycle transitions and queries over the expense store."""

    async def list_all(self) -> OperationSuccess[list[Expense]] | OperationFailure: ...

    async def get_by_id(self, expense_id: int) -> OperationSuccess[Expense | None] | OperationFailure: ...

    async def list_by_status(self, status_name: str) -> OperationSuccess[list[Expense]] | OperationFailure: ...

    async def list_by_user(self, user_id: int) -> OperationSuccess[list[Expense]] | OperationFailure: ...

    async def list_pending(self) -> OperationSuccess[list[Expense]] | OperationFailure: ...

    async def get_summary(self) -> OperationSuccess[ExpenseSummary] | OperationFailure: ...

    async def create(self, model: ExpenseCreateModel) -> OperationSuccess[int] | OperationFailure: ...

    async def update(self, model: ExpenseUpdateModel) -> OperationSuccess[bool] | OperationFailure: ...

    async def submit(self, expense_id: int) -> OperationSuccess[bool] | OperationFailure: ...

    async def approve(self, expense_id: int, reviewer_id: int) -> OperationSuccess[bool] | OperationFailure: ...

    async def reject(self, expense_id: int, reviewer_id: int) -> OperationSuccess[bool] | OperationFailure: ...

    async def delete(self, expense_id: int) -> OperationSuccess[bool] | OperationFailure: ...

    async def list_categories(self) -> OperationSuccess[list[Category]] | OperationFailure: ...

    async def list_statuses(self) -> OperationSuccess[list[ExpenseStatus]] | OperationFailure: ...

    async def list_users(self) -> OperationSuccess[list[User]] | OperationFailure: ...

    async def get_user(self, user_id: int) -> OperationSuccess[User | None] | OperationFailure: ...

    async def list_managers(self) -> OperationSuccess[list[User]] | OperationFailure: ...

    async def search(self, criteria: ExpenseSearchModel) -> OperationSuccess[list[Expense]] | OperationFailure: ...


__all__ = ["ExpenseOperations"]
