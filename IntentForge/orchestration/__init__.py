"""Scan orchestration for IntentForge."""

from .pipeline import (
    CommandPipeline,
    ComponentCommand,
    ScanOptions,
    ScanReport,
    build_reconciler,
    permission_allowed,
    run_pipeline,
)

__all__ = [
    "CommandPipeline",
    "ComponentCommand",
    "ScanOptions",
    "ScanReport",
    "build_reconciler",
    "permission_allowed",
    "run_pipeline",
]
