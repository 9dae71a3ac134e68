"""Manifest discovery and component registry."""

from .service import (
    ComponentRegistry,
    ManifestEvent,
    ManifestService,
    RegistryState,
    find_manifest_files,
    iter_manifest_events,
    qualify_component_name,
)

__all__ = [
    "ComponentRegistry",
    "ManifestEvent",
    "ManifestService",
    "RegistryState",
    "find_manifest_files",
    "iter_manifest_events",
    "qualify_component_name",
]
