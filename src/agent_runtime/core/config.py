"""Core configuration for the dispatch runtime."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_runtime.logging import configure_logging


class LLMConfig(BaseSettings):
    """Configuration for LLM providers."""

    provider: Literal["openai", "llama"] = Field(
        default="openai",
        description="LLM provider to use",
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Upper bound for a single classification or extraction call",
    )

    # OpenAI settings
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )

    # LLaMA settings
    llama_model_path: Path | None = Field(
        default=None,
        description="Path to LLaMA model file",
    )
    llama_n_ctx: int = Field(
        default=4096,
        gt=0,
        description="Context window size for LLaMA",
    )
    llama_n_threads: int | None = Field(
        default=None,
        description="Number of threads for LLaMA (None = auto)",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_RUNTIME_LLM_",
        env_file=".env",
        extra="ignore",
    )


class RoutingConfig(BaseSettings):
    """Configuration for classification and parameter collection."""

    fallback_capability: str = Field(
        default="GenericAnalysisAgent",
        description="Capability chosen when classification fails or is unclear",
    )
    fallback_task_type: str = Field(default="analysis")
    fallback_domain: str = Field(default="generic")
    history_limit: int = Field(
        default=10,
        ge=0,
        description="Conversation turns included in classification/extraction prompts",
    )
    fill_non_string_defaults: bool = Field(
        default=False,
        description=(
            "Apply declared defaults to required parameters of any type. "
            "Off by default: only string parameters receive their default."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_RUNTIME_ROUTING_",
        env_file=".env",
        extra="ignore",
    )


class AuditConfig(BaseSettings):
    """Configuration for the execution record store."""

    enabled: bool = Field(default=True, description="Persist execution records")
    storage_path: Path = Field(
        default=Path("agent_state"),
        description="Directory where execution records are persisted",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_RUNTIME_AUDIT_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def records_file(self) -> Path:
        return self.storage_path / "executions.json"


class RuntimeConfig(BaseSettings):
    """Main configuration for the runtime."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Structured JSON lines or plain text",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM configuration",
    )
    routing: RoutingConfig = Field(
        default_factory=RoutingConfig,
        description="Routing configuration",
    )
    audit: AuditConfig = Field(
        default_factory=AuditConfig,
        description="Audit configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_RUNTIME_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        configure_logging(self.log_level, json_output=self.log_format == "json")

        if self.debug:
            logging.getLogger("agent_runtime").setLevel(logging.DEBUG)
