"""Data models for IntentForge."""

from .component import Component, ComponentKind, ManifestProvenance
from .intent import (
    ExtractedParameter,
    InferenceResult,
    InferredParameter,
    IntentFlag,
    IntentParameter,
    ParamType,
    shell_token,
)
from .permission import PermissionCategory, highest_protection_level, protection_level

__all__ = [
    "Component",
    "ComponentKind",
    "ManifestProvenance",
    "ExtractedParameter",
    "InferenceResult",
    "InferredParameter",
    "IntentFlag",
    "IntentParameter",
    "ParamType",
    "shell_token",
    "PermissionCategory",
    "highest_protection_level",
    "protection_level",
]
