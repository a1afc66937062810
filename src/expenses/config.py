"""Application Configuration

Type-safe configuration using Pydantic Settings for environment variable handling.

Patterns Demonstrated:
- Type-safe environment variable parsing with validation
- Sensible defaults for development (the assistant starts disabled)
- Clear separation of application, GenAI and assistant behaviour config
- No magic strings in the codebase
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # =============================================================================
    # APPLICATION
    # =============================================================================

    app_name: str = Field(default="Expense Assistant", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    app_description: str = Field(
        default="Conversational assistant for the expense management system",
        alias="APP_DESCRIPTION",
    )
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # =============================================================================
    # API CONFIGURATION
    # =============================================================================

    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Settings
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")
    cors_credentials: bool = Field(default=False, alias="CORS_CREDENTIALS")
    cors_methods: str = Field(default="*", alias="CORS_METHODS")
    cors_headers: str = Field(default="*", alias="CORS_HEADERS")

    # =============================================================================
    # GENAI (Azure OpenAI)
    # =============================================================================

    genai_enabled: bool = Field(default=False, alias="GENAI_ENABLED")
    openai_endpoint: str | None = Field(default=None, alias="OPENAI_ENDPOINT")
    openai_deployment_name: str | None = Field(default=None, alias="OPENAI_DEPLOYMENT_NAME")
    openai_api_version: str = Field(default="2024-10-21", alias="OPENAI_API_VERSION")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")

    # =============================================================================
    # ASSISTANT BEHAVIOUR
    # =============================================================================

    chat_max_tool_rounds: int = Field(default=10, ge=1, le=50, alias="CHAT_MAX_TOOL_ROUNDS")
    chat_turn_timeout_seconds: float | None = Field(default=120.0, gt=0, alias="CHAT_TURN_TIMEOUT_SECONDS")
    default_user_id: int = Field(default=1, alias="DEFAULT_USER_ID")
    default_reviewer_id: int = Field(default=2, alias="DEFAULT_REVIEWER_ID")
    default_currency: str = Field(default="GBP", min_length=3, max_length=3, alias="DEFAULT_CURRENCY")

    model_config = {"env_file": ".env", "case_sensitive": False, "extra": "ignore"}

    @property
    def genai_configured(self) -> bool:
        """GenAI switched on, pointed at a deployment and holding an API key.

        Without a key the assistant stays disabled instead of failing when the
        Azure client is built.
        """
        return bool(
            self.genai_enabled and self.openai_endpoint and self.openai_deployment_name and self.openai_api_key
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.model_validate({})


settings = get_settings()
