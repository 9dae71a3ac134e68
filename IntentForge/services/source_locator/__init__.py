"""Component to source file resolution."""

from .service import SourceFileIndex, SourceLocator

__all__ = ["SourceFileIndex", "SourceLocator"]
