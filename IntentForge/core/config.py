"""
Configuration management for IntentForge.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for every scan stage.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()

ENV_PREFIX = "INTENTFORGE_"


def _env(name: str, default: str | None = None) -> str | None:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


class AgentConfig(BaseModel):
    """LLM agent configuration for semantic intent inference."""

    enabled: bool = Field(default=False, description="Run LLM inference for components")
    provider: Literal["openai", "anthropic", "azure_openai"] = Field(
        default="openai", description="LLM provider"
    )
    # OpenAI-compatible servers (LM Studio, vLLM, Ollama) are reached through base_url
    base_url: str | None = Field(default=None, description="OpenAI-compatible API base URL")
    api_key: SecretStr | None = Field(default=None, description="API key for the LLM endpoint")
    # Azure OpenAI specific settings
    azure_endpoint: str | None = Field(default=None, description="Azure OpenAI endpoint URL")
    azure_api_version: str = Field(default="2024-02-15-preview", description="Azure OpenAI API version")
    azure_deployment_name: str | None = Field(default=None, description="Azure OpenAI deployment name")
    model: str = Field(default="gpt-4o", description="Model identifier")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=4096, ge=256, description="Max output tokens")
    max_retries: int = Field(default=3, ge=1, description="Transport attempts per request")
    timeout_seconds: int = Field(default=120, ge=5, description="Request timeout")


class ExtractionConfig(BaseModel):
    """Source scanning and context extraction settings."""

    leading_lines: int = Field(default=5, ge=0, description="Lines captured before an intent access")
    trailing_lines: int = Field(default=6, ge=0, description="Lines captured after a closed block")
    source_extensions: list[str] = Field(
        default_factory=lambda: [".java", ".kt"],
        description="File extensions indexed by the source locator",
    )


class ScanConfig(BaseModel):
    """Component selection and batch execution settings."""

    exported_only: bool = Field(default=True, description="Only emit exported components")
    max_permission_level: Literal["normal", "dangerous", "signature", "privileged"] = Field(
        default="signature", description="Highest protection level still reported"
    )
    exclude_shared_user_id: bool = Field(
        default=False, description="Skip components of apps declaring sharedUserId"
    )
    alive_only: bool = Field(default=False, description="Only packages installed on the device")
    concurrency: int = Field(default=1, ge=1, le=64, description="Components resolved concurrently")
    adb_path: Path | None = Field(default=None, description="Custom adb binary path")


class Config(BaseModel):
    """Root configuration for IntentForge."""

    project_name: str = Field(default="IntentForge", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    agent: AgentConfig = Field(default_factory=AgentConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)

    # API Keys (loaded from environment)
    openai_api_key: SecretStr | None = Field(
        default_factory=lambda: SecretStr(os.environ.get("OPENAI_API_KEY", "")) or None
    )
    anthropic_api_key: SecretStr | None = Field(
        default_factory=lambda: SecretStr(os.environ.get("ANTHROPIC_API_KEY", "")) or None
    )
    azure_openai_api_key: SecretStr | None = Field(
        default_factory=lambda: SecretStr(os.environ.get("AZURE_OPENAI_API_KEY", "")) or None
    )

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        llm_url = _env("LLM_URL")
        llm_key = _env("LLM_KEY")
        adb_path = _env("ADB_PATH")
        return cls(
            log_level=_env("LOG_LEVEL", "INFO"),  # type: ignore
            agent=AgentConfig(
                enabled=bool(llm_url) or _env("AGENT_ENABLED", "false").lower() == "true",
                provider=_env("AGENT_PROVIDER", "openai"),  # type: ignore
                base_url=llm_url,
                api_key=SecretStr(llm_key) if llm_key else None,
                model=_env("LLM_MODEL", "gpt-4o"),
                temperature=float(_env("AGENT_TEMPERATURE", "0.3")),
                azure_endpoint=os.environ.get("AZURE_OPENAI_ENDPOINT"),
                azure_api_version=os.environ.get("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                azure_deployment_name=os.environ.get("AZURE_OPENAI_DEPLOYMENT_NAME"),
            ),
            scan=ScanConfig(
                exported_only=_env("EXPORTED_ONLY", "true").lower() == "true",
                max_permission_level=_env("MAX_PERMISSION_LEVEL", "signature"),  # type: ignore
                concurrency=int(_env("CONCURRENCY", "1")),
                adb_path=Path(adb_path) if adb_path else None,
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
