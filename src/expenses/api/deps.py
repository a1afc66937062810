"""API dependency wiring - thin DI glue over the service factories."""

from functools import lru_cache

from ..config import settings
from ..service import ChatService, InMemoryExpenseStore, create_chat_service


@lru_cache(maxsize=1)
def get_expense_store() -> InMemoryExpenseStore:
    """Process-wide expense store (cached singleton)."""
    return InMemoryExpenseStore(currency=settings.default_currency)


@lru_cache(maxsize=1)
def get_chat_service() -> ChatService:
    """
    Create chat service from config (cached singleton).

    Service factory handles all construction logic, including whether a
    language model is configured at all.
    """
    return create_chat_service(settings=settings, expenses=get_expense_store())
