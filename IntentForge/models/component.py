"""
Manifest component models.

A Component is one declared entry point of an application (activity, service,
broadcast receiver or content provider) together with the aggregated facets of
its intent filters. Components are created once during manifest ingestion and
are immutable afterwards.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.exceptions import ValidationError


class ComponentKind(str, Enum):
    """Kinds of manifest-declared components."""

    ACTIVITY = "activity"
    SERVICE = "service"
    RECEIVER = "receiver"
    PROVIDER = "provider"


class ManifestProvenance(BaseModel):
    """Where a component was declared. Diagnostic only."""

    model_config = ConfigDict(frozen=True)

    manifest_path: Path = Field(default=Path("AndroidManifest.xml"))
    line: int = Field(default=0, ge=0, description="Line of the component start tag")
    raw_declaration: str = Field(default="", description="Reconstructed start tag")


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class Component(BaseModel):
    """An Android component declared in AndroidManifest.xml."""

    model_config = ConfigDict(frozen=True)

    package: str = Field(description="Application package name")
    qualified_name: str = Field(description="Fully qualified class name")
    kind: ComponentKind
    exported: bool = Field(default=False)

    permissions: list[str] = Field(default_factory=list, description="Component-level permissions")
    intent_filter_permissions: list[str] = Field(default_factory=list)

    # Intent filter facets; set semantics, declaration order kept for determinism
    actions: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    data_schemes: list[str] = Field(default_factory=list)
    data_hosts: list[str] = Field(default_factory=list)
    data_paths: list[str] = Field(default_factory=list)
    mime_types: list[str] = Field(default_factory=list)

    shared_user_id: str | None = Field(default=None)
    provenance: ManifestProvenance = Field(default_factory=ManifestProvenance)

    @field_validator("qualified_name")
    @classmethod
    def _must_be_qualified(cls, value: str) -> str:
        if not value or value.startswith("."):
            raise ValueError(f"component name must be fully qualified, got {value!r}")
        return value

    @field_validator(
        "actions",
        "categories",
        "data_schemes",
        "data_hosts",
        "data_paths",
        "mime_types",
        "permissions",
        "intent_filter_permissions",
    )
    @classmethod
    def _unique(cls, values: list[str]) -> list[str]:
        return _dedupe(values)

    @property
    def simple_name(self) -> str:
        """Class name without the package (e.g. 'MainActivity')."""
        return self.qualified_name.rsplit(".", 1)[-1]

    @property
    def source_class_name(self) -> str:
        """Name of the top-level class whose file declares this component.

        Nested classes (`Outer$Inner`) live in the outer class's file.
        """
        return self.simple_name.split("$", 1)[0]

    @property
    def manifest_dir(self) -> Path:
        return self.provenance.manifest_path.parent

    @property
    def all_permissions(self) -> list[str]:
        return _dedupe(self.permissions + self.intent_filter_permissions)

    def with_shared_user_id(self, shared_user_id: str) -> Component:
        """Return a copy carrying the application's sharedUserId.

        The backfill happens at most once; a conflicting second value is rejected.
        """
        if self.shared_user_id == shared_user_id:
            return self
        if self.shared_user_id is not None:
            raise ValidationError(
                message=(
                    f"sharedUserId already set to {self.shared_user_id!r}, "
                    f"refusing {shared_user_id!r}"
                ),
                field_name="shared_user_id",
                actual_value=shared_user_id,
            )
        return self.model_copy(update={"shared_user_id": shared_user_id})
