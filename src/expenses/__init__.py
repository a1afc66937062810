"""Expense assistant package exports."""

from .config import Settings, settings
from .domain import ChatOrchestrator, ExpenseOperations
from .service import ChatService, InMemoryExpenseStore

__all__ = [
    "ChatOrchestrator",
    "ChatService",
    "ExpenseOperations",
    "InMemoryExpenseStore",
    "Settings",
    "settings",
]
