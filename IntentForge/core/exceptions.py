"""
Custom exception hierarchy for IntentForge.

All exceptions inherit from IntentForgeError to enable consistent error handling
across the scan. Recoverable errors (missing source, parse failure, inference
failure) make the reconciler degrade to the next parameter source; NoComponentError
only fails the single command being built.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass
class IntentForgeError(Exception):
    """Base exception for all IntentForge errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ValidationError(IntentForgeError):
    """Raised when input or output validation fails."""

    field_name: str | None = None
    expected_type: str | None = None
    actual_value: Any = None

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Validation failed for '{self.field_name}': {base}"
        return f"Validation failed: {base}"


@dataclass
class ServiceError(IntentForgeError):
    """Raised when a service operation fails."""

    service_name: str = ""
    operation: str = ""
    retryable: bool = False

    def __str__(self) -> str:
        base = super().__str__()
        retry_hint = " (retryable)" if self.retryable else " (non-retryable)"
        return f"[{self.service_name}.{self.operation}]{retry_hint}: {base}"


@dataclass
class ManifestError(IntentForgeError):
    """Raised when an AndroidManifest.xml cannot be read or tokenized."""

    manifest_path: str = ""
    line: int = 0

    def __str__(self) -> str:
        return f"Manifest error in {self.manifest_path}:{self.line}: {super().__str__()}"


class SourceMiss(str, Enum):
    """Why a component's source file could not be resolved."""

    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass
class SourceNotFoundError(IntentForgeError):
    """Raised when no unique source file implements a component.

    Recoverable: the caller falls back to manifest-derived parameters.
    """

    component_name: str = ""
    reason: SourceMiss = SourceMiss.NOT_FOUND
    candidates: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.reason == SourceMiss.AMBIGUOUS:
            return (
                f"Ambiguous source for '{self.component_name}': "
                f"{len(self.candidates)} candidates"
            )
        return f"Source file not found for component: {self.component_name}"


@dataclass
class ParseFailureError(IntentForgeError):
    """Raised when a source file cannot be parsed into a syntax tree."""

    source_path: str = ""

    def __str__(self) -> str:
        return f"Failed to parse {self.source_path}: {super().__str__()}"


@dataclass
class NoComponentError(IntentForgeError):
    """Raised when a command is built before a component was set."""


@dataclass
class ToolNotFoundError(IntentForgeError):
    """Raised when a required external tool is not available."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"


@dataclass
class AgentError(ServiceError):
    """Raised when an LLM agent operation fails."""

    agent_name: str = ""
    prompt_hash: str = ""

    def __post_init__(self) -> None:
        self.service_name = "agent"

    def __str__(self) -> str:
        base = super().__str__()
        return f"[Agent: {self.agent_name}] {base}"


@dataclass
class InferenceFailureError(AgentError):
    """Raised when semantic inference returns nothing usable for a component."""

    component_name: str = ""
