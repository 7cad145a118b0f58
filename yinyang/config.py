"""yinyang/config.py

Runtime configuration loaded from environment variables / .env file.

Configure via environment variables (names are case-insensitive):
  MODEL_PROVIDER           - "gemini" (default) or "ollama"
  GEMINI_API_KEY           - API key for the Gemini backend
  OLLAMA_BASE_URL          - Ollama host for the local backend
  PRIMARY_MODEL            - model tag for the primary tier
  FALLBACK_MODEL           - model tag for the fallback tier
  API_TOKENS               - JSON object mapping bearer tokens to caller ids
"""

from __future__ import annotations

# Standard Library
from functools import lru_cache
from typing import Literal

# Third-Party Libraries
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Local Modules
from yinyang.models import InvocationPolicy, Personality, RetryPolicy


class Settings(BaseSettings):
    """Service configuration.

    Attributes:
        model_provider: Which model service backend to talk to.
        gemini_api_key: Gemini API key (unused by the Ollama backend).
        ollama_base_url: Ollama host (unused by the Gemini backend).
        primary_model: Model identifier for the primary tier.
        fallback_model: Model identifier for the fallback tier.
        yin_temperature: Sampling temperature for the yin personality.
        yang_temperature: Sampling temperature for the yang personality.
        retry_base_delay_ms: Delay unit between retries on either tier.
        reply_primary_attempts: Primary-tier attempts for the chat reply.
        reply_fallback_attempts: Fallback-tier attempts for the chat reply.
        image_primary_attempts: Primary-tier attempts for caption,
            description and transition sub-tasks.
        image_fallback_attempts: Fallback-tier attempts for the same.
        request_timeout_seconds: Wall-clock budget for one HTTP request.
        api_tokens: Static bearer token → caller id table.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    model_provider: Literal["gemini", "ollama"] = Field(
        "gemini",
        description="Model service backend.",
    )
    gemini_api_key: str = Field("", description="Gemini API key.")
    ollama_base_url: str = Field(
        "http://localhost:11434",
        description="Ollama host used when MODEL_PROVIDER=ollama.",
    )
    primary_model: str = Field(
        "gemini-2.0-flash",
        description="Fast, cheap model tried first.",
    )
    fallback_model: str = Field(
        "gemini-2.5-flash",
        description="Higher-capacity model used once the primary gives up.",
    )

    yin_temperature: float = 1.0
    yang_temperature: float = 1.15
    top_p: float = 0.95
    top_k: int = 40
    max_output_tokens: int = 8192

    retry_base_delay_ms: int = Field(1000, ge=0)
    reply_primary_attempts: int = Field(3, ge=1)
    reply_fallback_attempts: int = Field(10, ge=1)
    image_primary_attempts: int = Field(3, ge=1)
    image_fallback_attempts: int = Field(5, ge=1)

    request_timeout_seconds: float = Field(
        540.0,
        gt=0,
        description="Overall budget for one request, enforced by the HTTP layer.",
    )
    api_tokens: dict[str, str] = Field(
        default_factory=dict,
        description="Bearer token → caller id.  Empty means every call is rejected.",
    )
    api_host: str = "0.0.0.0"
    api_port: int = 8300
    log_level: str = "INFO"

    def temperature_for(self, personality: Personality) -> float:
        if personality is Personality.YANG:
            return self.yang_temperature
        return self.yin_temperature

    def reply_policy(self) -> InvocationPolicy:
        """Exponential primary backoff, patient constant fallback."""
        return InvocationPolicy(
            primary=RetryPolicy(
                max_attempts=self.reply_primary_attempts,
                base_delay_ms=self.retry_base_delay_ms,
                exponential=True,
            ),
            fallback=RetryPolicy(
                max_attempts=self.reply_fallback_attempts,
                base_delay_ms=self.retry_base_delay_ms,
                exponential=False,
            ),
        )

    def image_policy(self) -> InvocationPolicy:
        return InvocationPolicy(
            primary=RetryPolicy(
                max_attempts=self.image_primary_attempts,
                base_delay_ms=self.retry_base_delay_ms,
                exponential=True,
            ),
            fallback=RetryPolicy(
                max_attempts=self.image_fallback_attempts,
                base_delay_ms=self.retry_base_delay_ms,
                exponential=False,
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
