from .chat import ChatRequest, ChatResponse, ChatStatusResponse
from .health import HealthResponse

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "ChatStatusResponse",
    "HealthResponse",
]
