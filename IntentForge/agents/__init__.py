"""LLM agents for semantic intent inference."""

from .base import Agent, AgentContext, AgentResponse, PromptTemplate
from .intent_inference import (
    IntentInferenceAgent,
    IntentInferenceInput,
    fetch_available_models,
    match_model,
)

__all__ = [
    "Agent",
    "AgentContext",
    "AgentResponse",
    "IntentInferenceAgent",
    "IntentInferenceInput",
    "PromptTemplate",
    "fetch_available_models",
    "match_model",
]
