"""
Core type definitions for IntentForge.

Provides the result wrapper used by services that report partial success,
e.g. a manifest scan where some files failed to parse.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from .exceptions import ServiceError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """Result wrapper for service operations.

    Provides a consistent return type that includes success/failure status,
    the result data, and any errors or warnings.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    duration_ms: float = 0.0

    @classmethod
    def ok(cls, data: T, **metadata: Any) -> ServiceResult[T]:
        """Create a successful result."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> ServiceResult[T]:
        """Create a failed result."""
        return cls(success=False, error=error, metadata=metadata)

    @classmethod
    def with_warnings(cls, data: T, warnings: list[str], **metadata: Any) -> ServiceResult[T]:
        """Create a successful result with warnings."""
        return cls(success=True, data=data, warnings=warnings, metadata=metadata)

    def unwrap(self) -> T:
        """Return the payload, raising ServiceError if the operation failed."""
        if not self.success or self.data is None:
            raise ServiceError(
                message=self.error or "operation produced no data",
                service_name=str(self.metadata.get("service", "unknown")),
                operation=str(self.metadata.get("operation", "unwrap")),
            )
        return self.data
