"""Thin chat service - delegates to the conversation orchestrator."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..config import Settings
from ..domain.conversation import AssistantConfig, ChatOrchestrator
from ..domain.domain_value import ChatMessage, ChatReply
from ..domain.model_provider import ChatModelProvider, PydanticAIChatModel
from ..domain.operations import ExpenseOperations

logger = logging.getLogger(__name__)


class ChatService:
    """
    Pure infrastructure wrapper - zero business logic.

    Service responsibilities:
    1. Own the configured ChatOrchestrator
    2. Expose enablement for the status endpoint
    3. Delegate send_message to the orchestrator

    The orchestrator owns ALL loop, tool and error-handling logic.
    """

    def __init__(self, orchestrator: ChatOrchestrator):
        """Initialize service with a ready orchestrator."""
        self.orchestrator = orchestrator

    @property
    def is_enabled(self) -> bool:
        return self.orchestrator.is_enabled

    async def send_message(self, text: str, history: Sequence[ChatMessage] = ()) -> ChatReply:
        """
        Answer one user message.

        Args:
            text: User message text
            history: Prior user/assistant exchange, owned by the caller

        Returns:
            ChatReply; failures are carried in is_error, never raised
        """
        return await self.orchestrator.send_message(text, history)


def create_chat_model(settings: Settings) -> ChatModelProvider | None:
    """
    Build the Azure OpenAI chat model, or None when GenAI is not configured.

    Args:
        settings: Application settings (endpoint, deployment, API version, key)

    Returns:
        PydanticAIChatModel wrapping an OpenAIChatModel on an AzureProvider
    """
    if not settings.genai_configured:
        return None

    from pydantic_ai.models.openai import OpenAIChatModel
    from pydantic_ai.providers.azure import AzureProvider

    provider = AzureProvider(
        azure_endpoint=settings.openai_endpoint,
        api_version=settings.openai_api_version,
        api_key=settings.openai_api_key,
    )
    model = OpenAIChatModel(settings.openai_deployment_name, provider=provider)
    logger.info("Using Azure OpenAI deployment %s at %s", settings.openai_deployment_name, settings.openai_endpoint)
    return PydanticAIChatModel(model=model)


def create_chat_service(
    settings: Settings,
    expenses: ExpenseOperations,
    llm: ChatModelProvider | None = None,
) -> ChatService:
    """
    Factory function for creating ChatService.

    Service owns its own construction logic - deps.py just calls this.

    Args:
        settings: Application settings
        expenses: Domain Operation Provider the tools call into
        llm: Explicit model provider; built from settings when omitted

    Returns:
        Configured ChatService ready for use
    """
    if llm is None:
        llm = create_chat_model(settings)
    config = AssistantConfig(
        enabled=llm is not None,
        max_rounds=settings.chat_max_tool_rounds,
        turn_timeout_seconds=settings.chat_turn_timeout_seconds,
        default_user_id=settings.default_user_id,
        default_reviewer_id=settings.default_reviewer_id,
    )
    if not config.enabled:
        logger.warning("GenAI is not configured; chat will return the setup message")
    return ChatService(ChatOrchestrator(config=config, expenses=expenses, llm=llm))


__all__ = ["ChatService", "create_chat_model", "create_chat_service"]
