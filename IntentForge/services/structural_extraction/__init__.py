"""Syntax-tree based intent parameter extraction."""

from .service import (
    DATA_ACCESSOR,
    EXTRA_ACCESSOR,
    NodePattern,
    StructuralExtractor,
    infer_extra_type,
    query,
)

__all__ = [
    "DATA_ACCESSOR",
    "EXTRA_ACCESSOR",
    "NodePattern",
    "StructuralExtractor",
    "infer_extra_type",
    "query",
]
