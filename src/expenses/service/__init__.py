from .chat import ChatService, create_chat_model, create_chat_service
from .expense_store import DEFAULT_CATEGORIES, DEFAULT_USERS, InMemoryExpenseStore

__all__ = [
    "DEFAULT_CATEGORIES",
    "DEFAULT_USERS",
    "ChatService",
    "InMemoryExpenseStore",
    "create_chat_model",
    "create_chat_service",
]
