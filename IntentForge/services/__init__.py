"""Services package for IntentForge."""

from .command import CommandBuilder, normalize_component_name
from .context_extraction import ContextExtractor
from .device import DeviceService
from .manifest import ComponentRegistry, ManifestService
from .reconciliation import ParameterReconciler, ParameterSource, Resolution
from .source_locator import SourceFileIndex, SourceLocator
from .structural_extraction import StructuralExtractor

__all__ = [
    "CommandBuilder",
    "ComponentRegistry",
    "ContextExtractor",
    "DeviceService",
    "ManifestService",
    "ParameterReconciler",
    "ParameterSource",
    "Resolution",
    "SourceFileIndex",
    "SourceLocator",
    "StructuralExtractor",
    "normalize_component_name",
]
