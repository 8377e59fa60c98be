"""
Centralized settings module for ContractMerge.
Single source of truth for all configuration values.
"""

import os
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from errors import ConfigurationError

# Known placeholder fragments from .env templates
PLACEHOLDER_MARKERS = ("your_openai_api_key", "your-api-key", "sk-xxxx", "changeme")


class ContractMergeSettings:
    """Centralized configuration for ContractMerge system."""

    # Generative service
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

    # Stored prompts (Responses API prompt objects)
    CLASSIFIER_PROMPT_ID: str = os.getenv("CM_CLASSIFIER_PROMPT_ID", "")
    CLASSIFIER_PROMPT_VERSION: str = os.getenv("CM_CLASSIFIER_PROMPT_VERSION", "4")
    MERGER_PROMPT_ID: str = os.getenv("CM_MERGER_PROMPT_ID", "")
    MERGER_PROMPT_VERSION: str = os.getenv("CM_MERGER_PROMPT_VERSION", "7")

    # Continuation loop
    MAX_OUTPUT_TOKENS: int = int(os.getenv("CM_MAX_OUTPUT_TOKENS", "16384"))
    MAX_RETRIES: int = int(os.getenv("CM_MAX_RETRIES", "10"))
    REQUEST_TIMEOUT_SECONDS: float = float(os.getenv("CM_REQUEST_TIMEOUT_SECONDS", "120"))

    # Storage
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./data/contractmerge.db")
    DOCUMENTS_DIR: str = os.getenv("CM_DOCUMENTS_DIR", "./data/projects")

    # Logging
    LOG_LEVEL: str = os.getenv("CM_LOG_LEVEL", "INFO")

    @classmethod
    def get_max_retries(cls, override: Optional[int] = None) -> int:
        """
        Get continuation retry budget with optional per-call override.

        Args:
            override: Per-call override. If None, uses default setting.

        Returns:
            int: Maximum number of continuation attempts
        """
        if override is not None:
            return override
        return cls.MAX_RETRIES

    @classmethod
    def service_config(cls) -> "ServiceConfig":
        """Build an immutable ServiceConfig from the environment defaults."""
        return build_service_config(
            api_key=cls.OPENAI_API_KEY,
            base_url=cls.OPENAI_BASE_URL,
            classifier_prompt_id=cls.CLASSIFIER_PROMPT_ID,
            classifier_prompt_version=cls.CLASSIFIER_PROMPT_VERSION,
            merger_prompt_id=cls.MERGER_PROMPT_ID,
            merger_prompt_version=cls.MERGER_PROMPT_VERSION,
            max_output_tokens=cls.MAX_OUTPUT_TOKENS,
            max_retries=cls.MAX_RETRIES,
            request_timeout_seconds=cls.REQUEST_TIMEOUT_SECONDS,
        )


class ServiceConfig(BaseModel):
    """
    Explicit configuration value handed to the driver, classifier and merger.

    Frozen so one instance can be shared across concurrent projects.
    """
    model_config = {"frozen": True}

    api_key: Optional[str] = None
    base_url: str = "https://api.openai.com/v1"
    classifier_prompt_id: str = ""
    classifier_prompt_version: str = "4"
    merger_prompt_id: str = ""
    merger_prompt_version: str = "7"
    max_output_tokens: int = Field(16384, ge=1)
    max_retries: int = Field(10, ge=1)
    request_timeout_seconds: float = Field(120.0, gt=0)

    def validate_credentials(self) -> None:
        """Raise ConfigurationError before any network call if the key is unusable."""
        if not self.api_key or not self.api_key.strip():
            raise ConfigurationError(
                "OpenAI API key is not configured. Set OPENAI_API_KEY or api_key in llm.yaml."
            )
        lowered = self.api_key.lower()
        if any(marker in lowered for marker in PLACEHOLDER_MARKERS):
            raise ConfigurationError(
                "OpenAI API key contains a placeholder value. Replace it with a real key."
            )

    def validate_prompt(self, prompt_id: str) -> None:
        if not prompt_id or not prompt_id.strip():
            raise ConfigurationError("Prompt id is not configured for this operation.")


def build_service_config(**values) -> ServiceConfig:
    """
    Construct a ServiceConfig, reporting out-of-range values (e.g. a zero retry
    budget) as ConfigurationError.
    """
    try:
        return ServiceConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid service configuration: {e}") from e


# Create singleton instance
settings = ContractMergeSettings()
