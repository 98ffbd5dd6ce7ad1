"""Application configuration settings.

This module defines the application-wide settings using Pydantic's BaseSettings.
It allows for loading configurations from environment variables and .env files,
providing type validation and default values.
"""

from typing import Annotated

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import NoDecode

# Default list of CORS allowed origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "https://localhost:3000",
    "https://localhost:8000",
    "http://0.0.0.0:8000",
]

DEFAULT_VARIANT_MODELS = ["google/gemini-flash-1.5"]
DEFAULT_VARIANT_TEMPERATURES = [1.0, 0.2, 0.7, 1.2]


def _split_csv(v: str) -> list[str]:
    return [item.strip() for item in v.split(",") if item.strip()]


class Settings(BaseSettings):
    """Manages application settings, loading them from environment variables or an .env file.

    Attributes:
        openrouter_api_key: API key for the OpenAI-compatible generation backend.
        llm_base_url: Base URL of the OpenAI-compatible generation backend.
        model_id: Default model used when no variant models are configured.
        variant_models: Model identifiers assigned to variant slots (cycled).
        variant_temperatures: Default temperature per variant slot.
        default_variant_count: Number of variants per section when the caller does not ask.
        max_variants: Upper bound on variants per section.
        auto_select_winner: Select the first successful variant as soon as a section settles.
        max_tokens: Completion token limit per generation call.
        max_database_chars: Maximum characters accepted for the uploaded database text.
        empty_section_placeholder: Text exported for sections without content.
        api_key: General API key for securing internal API endpoints.
        log_level: Level for the application loggers.
        cors_allowed_origins: List of allowed origins for CORS.
        LLM_CONNECT_TIMEOUT: LLM client connect timeout in seconds.
        LLM_READ_TIMEOUT: LLM client read timeout in seconds.
    """

    openrouter_api_key: str | None = Field(default=None)
    llm_base_url: str = Field(default="https://openrouter.ai/api/v1")
    model_id: str = Field(default="google/gemini-flash-1.5")

    variant_models: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_VARIANT_MODELS))
    variant_temperatures: Annotated[list[float], NoDecode] = Field(default_factory=lambda: list(DEFAULT_VARIANT_TEMPERATURES))
    default_variant_count: int = Field(default=1, ge=1)
    max_variants: int = Field(default=4, ge=1)
    auto_select_winner: bool = Field(default=True)

    max_tokens: int = Field(default=3000)
    max_database_chars: int = Field(default=1_000_000)
    empty_section_placeholder: str = Field(default="No content generated for this section.")

    api_key: str | None = Field(default=None)
    log_level: str = Field(default="DEBUG")

    cors_allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
    )

    LLM_CONNECT_TIMEOUT: float = Field(default=10.0, description="LLM client connect timeout in seconds.")
    LLM_READ_TIMEOUT: float = Field(default=180.0, description="LLM client read timeout in seconds.")

    model_config = {
        "env_file": ".env",
        "protected_namespaces": ("settings_",),
        "env_prefix": "",  # No prefix for environment variables
        "extra": "ignore",  # Ignore extra fields
    }

    @field_validator("cors_allowed_origins", mode="before")  # type: ignore
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str] | None) -> list[str]:
        """Assembles the list of CORS allowed origins.

        If 'v' is a string, it splits it by commas. If 'v' is already a list,
        it's used directly. Otherwise, returns the default list of origins.
        """
        if isinstance(v, str) and v:
            return _split_csv(v)
        elif isinstance(v, list):
            return v
        return list(DEFAULT_CORS_ORIGINS)

    @field_validator("variant_models", mode="before")  # type: ignore
    @classmethod
    def assemble_variant_models(cls, v: str | list[str] | None) -> list[str]:
        if isinstance(v, str) and v:
            return _split_csv(v)
        elif isinstance(v, list) and v:
            return v
        return list(DEFAULT_VARIANT_MODELS)

    @field_validator("variant_temperatures", mode="before")  # type: ignore
    @classmethod
    def assemble_variant_temperatures(cls, v: str | list[float] | None) -> list[float]:
        """Parses comma-separated temperatures and range-checks each one to [0, 2]."""
        if isinstance(v, str) and v:
            values = [float(item) for item in _split_csv(v)]
        elif isinstance(v, list) and v:
            values = [float(item) for item in v]
        else:
            return list(DEFAULT_VARIANT_TEMPERATURES)
        for temp in values:
            if not 0.0 <= temp <= 2.0:
                raise ValueError(f"Variant temperature {temp} outside [0, 2]")
        return values


settings = Settings()
