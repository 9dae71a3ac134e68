"""Core infrastructure components for IntentForge."""

from .config import Config, get_config
from .exceptions import (
    AgentError,
    InferenceFailureError,
    IntentForgeError,
    ManifestError,
    NoComponentError,
    ParseFailureError,
    ServiceError,
    SourceNotFoundError,
    ToolNotFoundError,
    ValidationError,
)
from .logging import get_logger, setup_logging
from .types import ServiceResult

__all__ = [
    "Config",
    "get_config",
    "AgentError",
    "InferenceFailureError",
    "IntentForgeError",
    "ManifestError",
    "NoComponentError",
    "ParseFailureError",
    "ServiceError",
    "SourceNotFoundError",
    "ToolNotFoundError",
    "ValidationError",
    "get_logger",
    "setup_logging",
    "ServiceResult",
]
