"""Health check router

Provides health check endpoints for monitoring and service discovery.

Endpoints:
- GET /health: Service health status and whether the assistant is enabled
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...service import ChatService
from ..contracts import HealthResponse
from ..deps import get_chat_service

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    service: Annotated[ChatService, Depends(get_chat_service)],
) -> HealthResponse:
    """API health check"""
    return HealthResponse(status="healthy", service="expense-assistant", genai_enabled=service.is_enabled)
