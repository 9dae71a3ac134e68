"""adb intent command synthesis."""

from .service import LAUNCHERS, CommandBuilder, normalize_component_name

__all__ = ["LAUNCHERS", "CommandBuilder", "normalize_component_name"]
