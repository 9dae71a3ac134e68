"""
Intent Inference Agent.

Asks an LLM which intent parameters a component reads, given the intent
handling excerpt of its source file. Also provides model discovery for
OpenAI-compatible endpoints (LM Studio, vLLM, Ollama).
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
from pydantic import BaseModel, Field

from ..core.exceptions import InferenceFailureError, ServiceError
from ..core.logging import get_logger
from ..models.component import Component
from ..models.intent import InferenceResult, IntentFlag
from .base import Agent, AgentContext, PromptTemplate

logger = get_logger(__name__)


class IntentInferenceInput(BaseModel):
    """Input for the Intent Inference Agent."""

    component_name: str = Field(description="Fully qualified component class")
    component_kind: str = Field(description="activity, service, receiver or provider")
    context: str = Field(description="Intent handling excerpt of the source file")


INFERENCE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "params": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "The name of the parameter (e.g., action, category, data, type, extra)",
                    },
                    "type": {
                        "type": "string",
                        "description": "The type of the parameter (e.g., String, Integer, Boolean, Uri)",
                    },
                    "value": {
                        "type": "string",
                        "description": "The value for the parameter (for data URI, use the full URI string)",
                    },
                    "flag": {
                        "type": "string",
                        "description": (
                            "The adb flag for the parameter (-a for action, -c for category, "
                            "-d for data URI, -t for MIME type, -e for extra, -f for flag)"
                        ),
                        "enum": [flag.value for flag in IntentFlag],
                    },
                },
                "required": ["name", "type", "value", "flag"],
            },
        },
        "confidence": {"type": "number", "minimum": 0, "maximum": 1},
    },
    "required": ["params", "confidence"],
}


class IntentInferenceAgent(Agent[IntentInferenceInput, InferenceResult]):
    """Infers intent parameters from source excerpts."""

    NAME = "intent_inference"

    @property
    def name(self) -> str:
        return self.NAME

    @property
    def output_type(self) -> type[InferenceResult]:
        return InferenceResult

    def get_prompt_template(self) -> PromptTemplate:
        return PromptTemplate(
            template_id="intent_inference",
            version="1.0.0",
            system_prompt=(
                "You are an expert in Android development and ADB commands. Your task is to "
                "analyze Intent code and extract all possible parameters for ADB commands. "
                "Focus on finding all intent-related code patterns and their corresponding ADB "
                "parameters. Always respond with a valid JSON object containing a 'params' array "
                "with parameter details and a 'confidence' number. Do not include any other text "
                "or explanation."
            ),
            user_prompt_template="""Analyze the following Android Intent code of the {component_kind} {component_name} and extract all possible parameters for an ADB command. Focus on:
1. Intent actions (getAction(), hasAction())
2. Categories (getCategories(), hasCategory())
3. Data URIs (getData(), getScheme(), getHost(), getPath())
4. MIME types (getType(), resolveType())
5. Extras (getExtras(), getStringExtra(), getIntExtra(), etc.)
6. Flags (getFlags(), addFlags())

Code to analyze:
{context}""",
            output_format_instructions="""Return a JSON object with the following schema:
{
    "params": [
        {"name": "param_name", "type": "param_type", "value": "param_value", "flag": "-a/-c/-d/-t/-e/-f"}
    ],
    "confidence": 0.95
}""",
        )

    def prepare_input(self, input_data: IntentInferenceInput) -> dict[str, Any]:
        return {
            "component_name": input_data.component_name,
            "component_kind": input_data.component_kind,
            "context": input_data.context,
        }

    def response_format(self) -> dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {"name": "intent_parameters", "schema": INFERENCE_SCHEMA},
        }

    def validate_output(self, output: InferenceResult) -> list[str]:
        warnings = []
        if not output.params:
            warnings.append("No parameters in inference result")
        if output.confidence < 0.3:
            warnings.append(f"Low confidence: {output.confidence:.2f}")
        return warnings

    async def infer(self, context: str, component: Component) -> InferenceResult:
        """Infer parameters for `component` from its context excerpt.

        Raises:
            InferenceFailureError: If the call fails or the answer is malformed.
        """
        response = await self.invoke(
            IntentInferenceInput(
                component_name=component.qualified_name,
                component_kind=component.kind.value,
                context=context,
            ),
            AgentContext(run_id=uuid.uuid4().hex[:12], component=component.qualified_name),
        )
        if not response.success or response.output is None:
            raise InferenceFailureError(
                message=response.error or "Inference returned no output",
                agent_name=self.name,
                operation="infer",
                prompt_hash=response.prompt_hash,
                component_name=component.qualified_name,
            )
        return response.output


async def fetch_available_models(
    base_url: str,
    api_key: str | None = None,
    timeout: float = 30.0,
) -> list[str]:
    """List models served by an OpenAI-compatible endpoint.

    Uses each model's `name` when the server provides one, else its `id`.

    Raises:
        ServiceError: If the request fails or the payload is not a model list.
    """
    headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
    url = f"{base_url.rstrip('/')}/models"

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.get(url, headers=headers)
            response.raise_for_status()
            payload = response.json()
    except (httpx.HTTPError, ValueError) as e:
        raise ServiceError(
            message=f"Failed to fetch models: {e}",
            service_name="agent",
            operation="list_models",
            retryable=isinstance(e, httpx.TransportError),
            context={"url": url},
            cause=e,
        )

    entries = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(entries, list):
        raise ServiceError(
            message="Unexpected model list payload",
            service_name="agent",
            operation="list_models",
            context={"url": url},
        )

    models = []
    for entry in entries:
        if isinstance(entry, dict) and (entry.get("name") or entry.get("id")):
            models.append(str(entry.get("name") or entry["id"]))
    logger.debug("Fetched available models", url=url, count=len(models))
    return models


def match_model(models: list[str], choice: str) -> str | None:
    """Resolve a 1-based index or a case-insensitive substring to a model name."""
    choice = choice.strip()
    if choice.isdigit():
        index = int(choice)
        if 1 <= index <= len(models):
            return models[index - 1]
    needle = choice.lower()
    return next((m for m in models if needle in m.lower()), None)
