"""
Configuration for the Client Vetting service.

Two layers:
- Settings: process-level options read from VETTING_* environment variables
- InterviewSettings: interview/AI options stored as key/value pairs in the store
"""

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are a professional interviewer conducting a thorough vetting "
    "conversation. Be friendly, empathetic, and ask follow-up questions naturally."
)


class Settings(BaseSettings):
    """Application settings."""

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_base_url: str = "http://localhost:8000"

    # Which conversation engine serves /v1/conversations
    interview_mode: Literal["structured", "ai"] = "structured"

    # Background enrichment (0 workers runs tasks inline)
    enrichment_workers: int = 4
    enrichment_queue_size: int = 100

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # Load default questions, criteria and red flags on startup
    seed_defaults: bool = True

    model_config = {"env_prefix": "VETTING_"}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class InterviewSettings(BaseModel):
    """
    Interview and language-model options.

    Read from the store once per operation and passed down explicitly,
    so a change made by an administrator applies to the next call.
    """

    ai_provider: str = "mock"
    ai_model: str = "gpt-4o-mini"
    ai_temperature: float = 0.7
    ai_max_tokens: int = 500
    ai_timeout_seconds: float = 30.0
    ollama_base_url: str = "http://localhost:11434"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    min_messages_threshold: int = 20
    auto_evaluate: bool = True

    @classmethod
    def from_mapping(cls, values: dict[str, str]) -> "InterviewSettings":
        """
        Build settings from raw store values.

        Unknown keys are ignored. A value that fails validation falls back
        to the field default and is logged.
        """
        known = {k: v for k, v in values.items() if k in cls.model_fields}
        try:
            return cls(**known)
        except ValidationError as e:
            bad = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
            for key in sorted(bad):
                logger.warning("Ignoring invalid setting %s=%r", key, known.get(key))
            return cls(**{k: v for k, v in known.items() if k not in bad})
