"""Heuristic intent context extraction."""

from .service import ContextExtractor, is_intent_relevant, read_source_lines

__all__ = ["ContextExtractor", "is_intent_relevant", "read_source_lines"]
