"""Domain Tools - Expense Operations the Assistant May Call.

A static, declarative catalog mapping each tool name to:
    - a description the model reads when choosing tools
    - a pydantic arguments model; its JSON schema (camelCase) is what the
      model sees, and the same model validates whatever the model sends back
    - an async handler that calls the Domain Operation Provider and returns a
      JSON-able payload

The catalog is built once at import (``ALL_TOOLS``) and is read-only after
that, so concurrent conversations share it freely.

Result contract:
    Every execution yields a JSON string. Success payloads are lists/objects
    with primitive fields (amounts pre-formatted, e.g. "£120.00"); every
    failure (bad arguments, an unknown tool, a domain error or a handler
    exception) is ``{"error": "..."}`` so the model can retry or explain.

Reference: https://ai.pydantic.dev/tools/
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime
from functools import cached_property
from typing import Any, Literal

import pydantic_core
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel
from pydantic_ai.tools import ToolDefinition

from .domain_type import ExpenseStatus
from .domain_value import OperationFailure, format_amount, to_minor_units
from .expense import Category, Expense, ExpenseCreateModel, ExpenseSearchModel, ExpenseSummary
from .operations import ExpenseOperations

logger = logging.getLogger(__name__)

StatusLabel = Literal["Draft", "Submitted", "Approved", "Rejected"]


class ToolContext(BaseModel):
    """Everything a handler needs besides its arguments."""

    expenses: ExpenseOperations
    default_user_id: int = 1
    default_reviewer_id: int = 2

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


class ToolOutcome(BaseModel):
    """Serialized result of one tool execution."""

    content: str
    failed: bool = False

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Argument models (the model sees their JSON schema)
# ---------------------------------------------------------------------------


class ToolArguments(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore")


class NoArguments(ToolArguments):
    pass


class GetExpenseArguments(ToolArguments):
    expense_id: int = Field(gt=0, description="The ID of the expense to look up")


class StatusArguments(ToolArguments):
    status: StatusLabel = Field(description="The status to filter by: Draft, Submitted, Approved, or Rejected")


class SearchArguments(ToolArguments):
    search_term: str | None = Field(default=None, description="Text to find in description, category or user name")
    category_id: int | None = Field(default=None, description="Category ID to filter by")
    status: StatusLabel | None = Field(default=None, description="Status to filter by")
    start_date: date | None = Field(default=None, description="Earliest expense date, YYYY-MM-DD")
    end_date: date | None = Field(default=None, description="Latest expense date, YYYY-MM-DD")


class CreateExpenseArguments(ToolArguments):
    user_id: int | None = Field(default=None, description="The user ID creating the expense (defaults to the current user)")
    category_id: int = Field(description="Category ID: 1=Travel, 2=Meals, 3=Supplies, 4=Accommodation, 5=Other")
    amount: float = Field(gt=0, description="Amount in major currency units (e.g., 25.50)")
    expense_date: date = Field(description="Date of expense in YYYY-MM-DD format")
    description: str | None = Field(default=None, description="Description of the expense")


class SubmitExpenseArguments(ToolArguments):
    expense_id: int = Field(gt=0, description="The ID of the expense to submit")


class ReviewExpenseArguments(ToolArguments):
    expense_id: int = Field(gt=0, description="The ID of the expense to review")
    reviewer_id: int | None = Field(default=None, description="The manager's user ID (defaults to the configured reviewer)")


# ---------------------------------------------------------------------------
# Result views (what the model reads back)
# ---------------------------------------------------------------------------


class ToolView(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ExpenseView(ToolView):
    expense_id: int
    user_name: str
    category_name: str
    amount: str
    expense_date: date
    status_name: str
    description: str | None = None

    @classmethod
    def from_expense(cls, expense: Expense) -> ExpenseView:
        return cls(
            expense_id=expense.expense_id,
            user_name=expense.user_name,
            category_name=expense.category_name,
            amount=expense.formatted_amount,
            expense_date=expense.expense_date,
            status_name=expense.status_name,
            description=expense.description,
        )


class ExpenseDetailView(ExpenseView):
    submitted_at: datetime | None = None
    reviewer_name: str | None = None
    reviewed_at: datetime | None = None

    @classmethod
    def from_expense(cls, expense: Expense) -> ExpenseDetailView:
        return cls(
            **ExpenseView.from_expense(expense).model_dump(),
            submitted_at=expense.submitted_at,
            reviewer_name=expense.reviewer_name,
            reviewed_at=expense.reviewed_at,
        )


class SummaryView(ToolView):
    total_expenses: int
    pending_approvals: int
    approved_amount: str
    approved_count: int

    @classmethod
    def from_summary(cls, summary: ExpenseSummary) -> SummaryView:
        return cls(
            total_expenses=summary.total_expenses,
            pending_approvals=summary.pending_approvals,
            approved_amount=format_amount(summary.approved_amount_minor, summary.currency),
            approved_count=summary.approved_count,
        )


class CategoryView(ToolView):
    category_id: int
    category_name: str

    @classmethod
    def from_category(cls, category: Category) -> CategoryView:
        return cls(category_id=category.category_id, category_name=category.category_name)


def _error(failure: OperationFailure) -> dict[str, str]:
    return {"error": failure.message}


def _expense_list(expenses: Iterable[Expense]) -> list[ExpenseView]:
    return [ExpenseView.from_expense(expense) for expense in expenses]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def get_all_expenses(ctx: ToolContext, args: NoArguments) -> Any:
    result = await ctx.expenses.list_all()
    return _expense_list(result.value) if result.ok else _error(result)


async def get_expense(ctx: ToolContext, args: GetExpenseArguments) -> Any:
    result = await ctx.expenses.get_by_id(args.expense_id)
    if not result.ok:
        return _error(result)
    if result.value is None:
        return {"error": f"Expense {args.expense_id} not found"}
    return ExpenseDetailView.from_expense(result.value)


async def get_expenses_by_status(ctx: ToolContext, args: StatusArguments) -> Any:
    result = await ctx.expenses.list_by_status(args.status)
    return _expense_list(result.value) if result.ok else _error(result)


async def get_pending_expenses(ctx: ToolContext, args: NoArguments) -> Any:
    result = await ctx.expenses.list_pending()
    return _expense_list(result.value) if result.ok else _error(result)


async def search_expenses(ctx: ToolContext, args: SearchArguments) -> Any:
    criteria = ExpenseSearchModel(
        search_term=args.search_term,
        category_id=args.category_id,
        status=ExpenseStatus.from_label(args.status) if args.status else None,
        start_date=args.start_date,
        end_date=args.end_date,
    )
    result = await ctx.expenses.search(criteria)
    return _expense_list(result.value) if result.ok else _error(result)


async def get_expense_summary(ctx: ToolContext, args: NoArguments) -> Any:
    result = await ctx.expenses.get_summary()
    return SummaryView.from_summary(result.value) if result.ok else _error(result)


async def get_categories(ctx: ToolContext, args: NoArguments) -> Any:
    result = await ctx.expenses.list_categories()
    if not result.ok:
        return _error(result)
    return [CategoryView.from_category(category) for category in result.value if category.is_active]


async def create_expense(ctx: ToolContext, args: CreateExpenseArguments) -> Any:
    model = ExpenseCreateModel(
        user_id=args.user_id if args.user_id is not None else ctx.default_user_id,
        category_id=args.category_id,
        amount_minor=to_minor_units(args.amount),
        expense_date=args.expense_date,
        description=args.description,
    )
    result = await ctx.expenses.create(model)
    if not result.ok:
        return _error(result)
    return {"success": True, "expenseId": result.value}


async def submit_expense(ctx: ToolContext, args: SubmitExpenseArguments) -> Any:
    result = await ctx.expenses.submit(args.expense_id)
    return {"success": result.value} if result.ok else _error(result)


async def approve_expense(ctx: ToolContext, args: ReviewExpenseArguments) -> Any:
    reviewer_id = args.reviewer_id if args.reviewer_id is not None else ctx.default_reviewer_id
    result = await ctx.expenses.approve(args.expense_id, reviewer_id)
    return {"success": result.value} if result.ok else _error(result)


async def reject_expense(ctx: ToolContext, args: ReviewExpenseArguments) -> Any:
    reviewer_id = args.reviewer_id if args.reviewer_id is not None else ctx.default_reviewer_id
    result = await ctx.expenses.reject(args.expense_id, reviewer_id)
    return {"success": result.value} if result.ok else _error(result)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

Handler = Callable[[ToolContext, Any], Awaitable[Any]]


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"]) or "arguments"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


class ToolSpec(BaseModel):
    """One named tool: description, argument contract and bound handler."""

    name: str = Field(pattern=r"^[a-zA-Z0-9_-]{1,64}$")
    description: str
    arguments: type[ToolArguments] = NoArguments
    handler: Handler

    model_config = ConfigDict(frozen=True)

    @property
    def parameters_schema(self) -> dict[str, Any]:
        """JSON Schema of the arguments (camelCase property names)."""
        schema = self.arguments.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return schema

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters_json_schema=self.parameters_schema,
        )

    def parse_arguments(self, raw: str | dict[str, Any] | None) -> ToolArguments:
        """Decode and validate raw model arguments.

        Raises:
            ValueError: Malformed JSON, a non-object payload, or a schema
                violation (pydantic's ValidationError is a ValueError)
        """
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            data: Any = {}
        elif isinstance(raw, str):
            data = json.loads(raw)
        else:
            data = raw
        if not isinstance(data, dict):
            raise ValueError("arguments must be a JSON object")
        return self.arguments.model_validate(data)


class ToolCatalog(BaseModel):
    """Immutable registry of tools, looked up by stable name."""

    tools: tuple[ToolSpec, ...]

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_unique_names(self) -> ToolCatalog:
        names = [tool.name for tool in self.tools]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tool names: {duplicates}")
        return self

    @cached_property
    def tools_by_name(self) -> dict[str, ToolSpec]:
        return {tool.name: tool for tool in self.tools}

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(tool.name for tool in self.tools)

    def get(self, name: str) -> ToolSpec | None:
        return self.tools_by_name.get(name)

    def definitions(self) -> list[ToolDefinition]:
        """Tool definitions presented to the model every round."""
        return [tool.definition for tool in self.tools]

    async def execute(
        self,
        name: str,
        raw_arguments: str | dict[str, Any] | None,
        context: ToolContext,
    ) -> ToolOutcome:
        """Run one tool call and serialize its result.

        Argument problems, domain failures and exceptions raised by a handler
        all come back as ``{"error": ...}`` outcomes, so every call gets a
        result the model can read.
        """
        tool = self.get(name)
        if tool is None:
            return self._failure({"error": f"Unknown function: {name}"})

        try:
            arguments = tool.parse_arguments(raw_arguments)
        except ValidationError as exc:
            return self._failure({"error": f"Invalid arguments for {name}: {_describe_validation_error(exc)}"})
        except ValueError as exc:
            return self._failure({"error": f"Invalid arguments for {name}: {exc}"})

        try:
            payload = await tool.handler(context, arguments)
        except Exception as exc:
            logger.exception("Error executing tool %s", name)
            return self._failure({"error": str(exc) or type(exc).__name__})
        failed = isinstance(payload, dict) and "error" in payload
        return ToolOutcome(content=self._dump(payload), failed=failed)

    def _failure(self, payload: dict[str, str]) -> ToolOutcome:
        return ToolOutcome(content=self._dump(payload), failed=True)

    @staticmethod
    def _dump(payload: Any) -> str:
        return pydantic_core.to_json(payload, by_alias=True).decode()


def build_tool_catalog() -> ToolCatalog:
    """Assemble the expense tool catalog."""
    return ToolCatalog(
        tools=(
            ToolSpec(
                name="get_all_expenses",
                description=(
                    "Retrieves all expenses from the system with details including amount, "
                    "category, status, and description"
                ),
                handler=get_all_expenses,
            ),
            ToolSpec(
                name="get_expense",
                description="Gets one expense by ID, including submission and review details",
                arguments=GetExpenseArguments,
                handler=get_expense,
            ),
            ToolSpec(
                name="get_expenses_by_status",
                description="Gets expenses filtered by status",
                arguments=StatusArguments,
                handler=get_expenses_by_status,
            ),
            ToolSpec(
                name="get_pending_expenses",
                description="Gets all expenses that are waiting for approval (status = Submitted)",
                handler=get_pending_expenses,
            ),
            ToolSpec(
                name="search_expenses",
                description="Searches expenses by text, category, status and date range; all filters optional",
                arguments=SearchArguments,
                handler=search_expenses,
            ),
            ToolSpec(
                name="get_expense_summary",
                description="Gets summary statistics including total expenses, pending approvals, and approved amounts",
                handler=get_expense_summary,
            ),
            ToolSpec(
                name="get_categories",
                description="Lists the active expense categories with their IDs",
                handler=get_categories,
            ),
            ToolSpec(
                name="create_expense",
                description="Creates a new expense in Draft status",
                arguments=CreateExpenseArguments,
                handler=create_expense,
            ),
            ToolSpec(
                name="submit_expense",
                description="Submits a Draft expense for approval",
                arguments=SubmitExpenseArguments,
                handler=submit_expense,
            ),
            ToolSpec(
                name="approve_expense",
                description="Approves a Submitted expense (manager action)",
                arguments=ReviewExpenseArguments,
                handler=approve_expense,
            ),
            ToolSpec(
                name="reject_expense",
                description="Rejects a Submitted expense (manager action)",
                arguments=ReviewExpenseArguments,
                handler=reject_expense,
            ),
        )
    )


# Tool Registry - built once, shared read-only by every conversation
ALL_TOOLS = build_tool_catalog()

__all__ = [
    "ALL_TOOLS",
    "ToolCatalog",
    "ToolContext",
    "ToolOutcome",
    "ToolSpec",
    "build_tool_catalog",
]
