"""Chat API Router - thin HTTP layer over the chat service."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...service import ChatService
from ..contracts import ChatRequest, ChatResponse, ChatStatusResponse
from ..deps import get_chat_service

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("", response_model=ChatResponse, response_model_by_alias=True)
async def send_message(
    request: ChatRequest,
    service: Annotated[ChatService, Depends(get_chat_service)],
) -> ChatResponse:
    """
    Send a message and get the assistant's reply.

    Failures inside the turn (model errors, round limit, timeouts) come back
    as 200 with isError=true; the conversation history stays client-side.
    """
    reply = await service.send_message(request.message, request.history)
    return ChatResponse(message=reply.message, is_error=reply.is_error)


@router.get("/status", response_model=ChatStatusResponse)
async def chat_status(
    service: Annotated[ChatService, Depends(get_chat_service)],
) -> ChatStatusResponse:
    """Report whether GenAI is configured."""
    return ChatStatusResponse(enabled=service.is_enabled)
