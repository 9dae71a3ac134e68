"""
Base agent abstraction.

Provides the core Agent interface with type-safe inputs/outputs, transport
retries, output validation, and LLM provider abstraction.
"""

from __future__ import annotations

import hashlib
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from ..core.config import AgentConfig, get_config
from ..core.exceptions import AgentError
from ..core.logging import get_logger

logger = get_logger(__name__)

InputT = TypeVar("InputT", bound=BaseModel)
OutputT = TypeVar("OutputT", bound=BaseModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentContext(BaseModel):
    """Context passed to agent invocations."""

    run_id: str = Field(description="Scan run identifier")
    component: str | None = Field(default=None, description="Component being resolved")
    timestamp: datetime = Field(default_factory=_utcnow)

    # Configuration overrides
    temperature_override: float | None = Field(default=None)
    max_tokens_override: int | None = Field(default=None)


class AgentResponse(BaseModel, Generic[OutputT]):
    """Response from an agent invocation."""

    success: bool = Field(description="Whether the invocation succeeded")
    output: OutputT | None = Field(default=None)
    error: str | None = Field(default=None)

    # Metrics
    prompt_tokens: int = Field(default=0)
    completion_tokens: int = Field(default=0)
    total_tokens: int = Field(default=0)
    latency_ms: float = Field(default=0.0)
    attempts: int = Field(default=0)

    # Provenance
    model_used: str = Field(default="")
    prompt_hash: str = Field(default="")
    timestamp: datetime = Field(default_factory=_utcnow)


@dataclass
class PromptTemplate:
    """A versioned prompt template."""

    template_id: str
    version: str
    system_prompt: str
    user_prompt_template: str
    output_format_instructions: str = ""

    def render_system(self) -> str:
        return self.system_prompt

    def render_user(self, **kwargs: Any) -> str:
        """Render the user prompt with variables.

        Output format instructions, when present, are appended after the
        rendered template.
        """
        prompt = self.user_prompt_template.format(**kwargs)
        if self.output_format_instructions:
            prompt += f"\n\n{self.output_format_instructions}"
        return prompt

    def get_hash(self) -> str:
        """Deterministic 16-character hash of the template, for provenance."""
        content = f"{self.template_id}:{self.version}:{self.system_prompt}:{self.user_prompt_template}"
        return hashlib.sha256(content.encode()).hexdigest()[:16]


class Agent(ABC, Generic[InputT, OutputT]):
    """Base class for all IntentForge agents.

    Agents are stateless, type-safe wrappers around LLM invocations. Transport
    failures are retried up to `config.max_retries` attempts; a response that
    arrives but cannot be parsed or validated fails the invocation at once.
    """

    def __init__(self, config: AgentConfig | None = None) -> None:
        self.config = config or get_config().agent
        self._client: Any = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique agent name."""
        ...

    @property
    @abstractmethod
    def output_type(self) -> type[OutputT]:
        """Pydantic model the LLM response is validated against."""
        ...

    @abstractmethod
    def get_prompt_template(self) -> PromptTemplate:
        ...

    @abstractmethod
    def prepare_input(self, input_data: InputT) -> dict[str, Any]:
        """Transform the typed input into prompt template variables."""
        ...

    def response_format(self) -> dict[str, Any]:
        """`response_format` sent to OpenAI-compatible endpoints."""
        return {"type": "json_object"}

    def validate_output(self, output: OutputT) -> list[str]:
        """Return warnings about a parsed output. Override for custom checks."""
        return []

    def _get_client(self) -> Any:
        """Get or create the LLM client for the configured provider.

        Raises:
            AgentError: If the configured provider is unknown.
        """
        if self._client is not None:
            return self._client

        api_key = self.config.api_key.get_secret_value() if self.config.api_key else None

        if self.config.provider == "openai":
            import openai

            self._client = openai.AsyncOpenAI(
                base_url=self.config.base_url,
                # Local OpenAI-compatible servers accept any key
                api_key=api_key or ("not-needed" if self.config.base_url else None),
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )
        elif self.config.provider == "anthropic":
            import anthropic

            self._client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )
        elif self.config.provider == "azure_openai":
            import openai

            self._client = openai.AsyncAzureOpenAI(
                azure_endpoint=self.config.azure_endpoint,
                api_version=self.config.azure_api_version,
                api_key=api_key,
                timeout=self.config.timeout_seconds,
                max_retries=0,
            )
        else:
            raise AgentError(
                message=f"Unknown provider: {self.config.provider}",
                agent_name=self.name,
                operation="get_client",
            )

        return self._client

    async def _call_llm(
        self,
        system_prompt: str,
        user_prompt: str,
        context: AgentContext,
    ) -> tuple[str, dict[str, int]]:
        """Send one request and return the response text and token counts.

        Raises:
            AgentError: If the configured provider is unknown.
        """
        client = self._get_client()

        temperature = context.temperature_override or self.config.temperature
        max_tokens = context.max_tokens_override or self.config.max_tokens

        if self.config.provider in ("openai", "azure_openai"):
            # Azure addresses models by deployment name
            model_name = self.config.model
            if self.config.provider == "azure_openai" and self.config.azure_deployment_name:
                model_name = self.config.azure_deployment_name

            logger.debug(
                "LLM request starting",
                provider=self.config.provider,
                model=model_name,
                temperature=temperature,
                user_prompt_chars=len(user_prompt),
            )

            response = await client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                response_format=self.response_format(),
            )

            response_text = (response.choices[0].message.content or "") if response.choices else ""
            usage = response.usage
            token_counts = {
                "prompt_tokens": usage.prompt_tokens if usage else 0,
                "completion_tokens": usage.completion_tokens if usage else 0,
                "total_tokens": usage.total_tokens if usage else 0,
            }

        elif self.config.provider == "anthropic":
            logger.debug(
                "LLM request starting",
                provider=self.config.provider,
                model=self.config.model,
                user_prompt_chars=len(user_prompt),
            )

            response = await client.messages.create(
                model=self.config.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )

            response_text = response.content[0].text if response.content else ""
            token_counts = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            }

        else:
            raise AgentError(
                message=f"Unknown provider: {self.config.provider}",
                agent_name=self.name,
                operation="call_llm",
            )

        logger.debug(
            "LLM response received",
            provider=self.config.provider,
            completion_tokens=token_counts["completion_tokens"],
            response_chars=len(response_text),
        )
        return response_text, token_counts

    def _parse_output(self, response_text: str) -> OutputT:
        """Parse the response as JSON and validate it against `output_type`.

        Raises:
            AgentError: If the text is not JSON or does not match the model.
        """
        try:
            data = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise AgentError(
                message=f"Failed to parse JSON response: {e}",
                agent_name=self.name,
                operation="parse_output",
                cause=e,
            )
        try:
            return self.output_type.model_validate(data)
        except PydanticValidationError as e:
            raise AgentError(
                message=f"Failed to validate output: {e.error_count()} error(s)",
                agent_name=self.name,
                operation="parse_output",
                cause=e,
            )

    async def _call_with_retry(
        self,
        system_prompt: str,
        user_prompt: str,
        context: AgentContext,
    ) -> tuple[str, dict[str, int], int]:
        """Call the LLM, retrying transport failures with exponential backoff."""
        attempts = 0
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(multiplier=1, min=2, max=30),
            reraise=True,
        ):
            with attempt:
                attempts = attempt.retry_state.attempt_number
                response_text, token_counts = await self._call_llm(system_prompt, user_prompt, context)
        return response_text, token_counts, attempts

    async def invoke(self, input_data: InputT, context: AgentContext) -> AgentResponse[OutputT]:
        """Invoke the agent with the given input.

        Never raises: failures are reported through `AgentResponse.success`
        and `AgentResponse.error`.
        """
        start_time = time.perf_counter()
        prompt_template = self.get_prompt_template()
        prompt_hash = prompt_template.get_hash()

        try:
            template_vars = self.prepare_input(input_data)
            system_prompt = prompt_template.render_system()
            user_prompt = prompt_template.render_user(**template_vars)

            logger.info(
                "Agent invocation started",
                agent=self.name,
                run_id=context.run_id,
                component=context.component,
                prompt_hash=prompt_hash,
            )

            response_text, token_counts, attempts = await self._call_with_retry(
                system_prompt, user_prompt, context
            )
            output = self._parse_output(response_text)

            warnings = self.validate_output(output)
            if warnings:
                logger.warning("Agent output warnings", agent=self.name, warnings=warnings)

            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Agent invocation completed",
                agent=self.name,
                latency_ms=round(latency_ms, 1),
                tokens=token_counts["total_tokens"],
                attempts=attempts,
            )

            return AgentResponse(
                success=True,
                output=output,
                prompt_tokens=token_counts["prompt_tokens"],
                completion_tokens=token_counts["completion_tokens"],
                total_tokens=token_counts["total_tokens"],
                latency_ms=latency_ms,
                attempts=attempts,
                model_used=self.config.model,
                prompt_hash=prompt_hash,
            )

        except Exception as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "Agent invocation failed",
                agent=self.name,
                component=context.component,
                error=str(e),
                latency_ms=round(latency_ms, 1),
            )
            return AgentResponse(
                success=False,
                output=None,
                error=str(e),
                latency_ms=latency_ms,
                model_used=self.config.model,
                prompt_hash=prompt_hash,
            )
