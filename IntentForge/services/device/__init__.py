"""adb device queries."""

from .service import DeviceService, parse_package_list

__all__ = ["DeviceService", "parse_package_list"]
