"""
Manifest Service.

Turns AndroidManifest.xml files into Component entities. The XML is first
flattened into a depth-tagged event stream; the ComponentRegistry then walks that
stream with a small explicit state machine; each component keeps the facets
of its last intent-filter.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from xml.parsers import expat

from pydantic import ValidationError as PydanticValidationError

from ...core.exceptions import IntentForgeError, ManifestError
from ...core.logging import get_logger
from ...core.types import ServiceResult
from ...models.component import Component, ComponentKind, ManifestProvenance
from ...models.permission import PermissionCategory

logger = get_logger(__name__)

MANIFEST_FILE_NAME = "AndroidManifest.xml"

# Directories whose manifests never describe the shipped application
_SKIPPED_DIR_NAMES = {"build", ".gradle", ".git", "node_modules"}

_COMPONENT_TAGS = {kind.value: kind for kind in ComponentKind}
_COMPONENT_PERMISSION_ATTRS = ("permission", "readPermission", "writePermission")
_DATA_PATH_ATTRS = ("path", "pathPrefix", "pathPattern")


class EventKind(str, Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True)
class ManifestEvent:
    """One element boundary of a manifest, namespace prefixes removed."""

    kind: EventKind
    tag: str
    depth: int
    line: int = 0
    attributes: dict[str, str] = field(default_factory=dict)


def _local_name(name: str) -> str:
    # expat joins namespace URI and local name with the separator below
    return name.rsplit("}", 1)[-1]


def iter_manifest_events(manifest_path: Path) -> Iterator[ManifestEvent]:
    """Tokenize a manifest into start/end events with depth and line numbers.

    Raises:
        ManifestError: If the file cannot be read or is not well-formed XML.
    """
    events: list[ManifestEvent] = []
    depth = 0
    parser = expat.ParserCreate(namespace_separator="}")

    def on_start(name: str, attrs: dict[str, str]) -> None:
        nonlocal depth
        depth += 1
        attributes: dict[str, str] = {}
        for key, value in attrs.items():
            attributes.setdefault(_local_name(key), value)
        events.append(
            ManifestEvent(
                kind=EventKind.START,
                tag=_local_name(name),
                depth=depth,
                line=parser.CurrentLineNumber,
                attributes=attributes,
            )
        )

    def on_end(name: str) -> None:
        nonlocal depth
        events.append(
            ManifestEvent(
                kind=EventKind.END,
                tag=_local_name(name),
                depth=depth,
                line=parser.CurrentLineNumber,
            )
        )
        depth -= 1

    parser.StartElementHandler = on_start
    parser.EndElementHandler = on_end

    try:
        with open(manifest_path, "rb") as fh:
            parser.ParseFile(fh)
    except expat.ExpatError as e:
        raise ManifestError(
            message=f"Malformed manifest XML: {expat.ErrorString(e.code)}",
            manifest_path=str(manifest_path),
            line=e.lineno,
            cause=e,
        )
    except OSError as e:
        raise ManifestError(
            message=f"Cannot read manifest: {e}",
            manifest_path=str(manifest_path),
            cause=e,
        )

    yield from events


class RegistryState(str, Enum):
    """Position of the registry inside the manifest element tree."""

    NEUTRAL = "neutral"
    IN_MANIFEST = "in_manifest"
    IN_COMPONENT = "in_component"
    IN_INTENT_FILTER = "in_intent_filter"


@dataclass
class _FilterAccumulator:
    actions: list[str] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    data_schemes: list[str] = field(default_factory=list)
    data_hosts: list[str] = field(default_factory=list)
    data_paths: list[str] = field(default_factory=list)
    mime_types: list[str] = field(default_factory=list)
    permissions: list[str] = field(default_factory=list)


@dataclass
class _PendingComponent:
    """A component declaration whose end tag has not been seen yet."""

    name: str | None
    kind: ComponentKind
    depth: int
    exported: bool
    permissions: list[str]
    line: int
    raw_declaration: str
    facets: _FilterAccumulator = field(default_factory=_FilterAccumulator)


def qualify_component_name(package: str, name: str) -> str:
    """Expand manifest shorthand (`.Main`, `Main`) into a fully qualified name."""
    if name.startswith("."):
        return f"{package}{name}"
    if "." not in name and package:
        return f"{package}.{name}"
    return name


def _raw_declaration(tag: str, attributes: dict[str, str]) -> str:
    rendered = " ".join(f'{key}="{value}"' for key, value in attributes.items())
    return f"<{tag} {rendered}>" if rendered else f"<{tag}>"


class ComponentRegistry:
    """Builds Component entities from a manifest event stream.

    State transitions follow the element nesting:
    NEUTRAL -> IN_MANIFEST -> IN_COMPONENT -> IN_INTENT_FILTER -> IN_COMPONENT
    -> IN_MANIFEST -> NEUTRAL. Declarations without a name are skipped without
    aborting the traversal.
    """

    def __init__(self, package_filter: str | None = None) -> None:
        self.package_filter = package_filter
        self.declared_permissions: dict[str, PermissionCategory] = {}
        self._components: list[Component] = []
        self._reset()

    def _reset(self) -> None:
        self.state = RegistryState.NEUTRAL
        self.warnings: list[str] = []
        self._package = ""
        self._shared_user_id: str | None = None
        self._manifest_path = Path(MANIFEST_FILE_NAME)
        self._pending: _PendingComponent | None = None
        self._filter: _FilterAccumulator | None = None

    @property
    def components(self) -> list[Component]:
        return list(self._components)

    def __len__(self) -> int:
        return len(self._components)

    def __iter__(self) -> Iterator[Component]:
        return iter(self._components)

    def get(self, qualified_name: str) -> Component | None:
        for component in self._components:
            if component.qualified_name == qualified_name:
                return component
        return None

    def by_kind(self, kind: ComponentKind) -> list[Component]:
        return [c for c in self._components if c.kind == kind]

    def ingest(self, events: Iterable[ManifestEvent], manifest_path: Path) -> list[Component]:
        """Consume one manifest's events; returns the components it declared.

        Declarations that cannot become a Component are skipped and described
        in `warnings`, which is reset on every call.
        """
        self._reset()
        self._manifest_path = manifest_path
        emitted: list[Component] = []

        for event in events:
            if event.kind == EventKind.START:
                self._on_start(event)
            else:
                component = self._on_end(event)
                if component is not None:
                    emitted.append(component)

        self._components.extend(emitted)
        return emitted

    def _on_start(self, event: ManifestEvent) -> None:
        attrs = event.attributes

        if self.state == RegistryState.NEUTRAL:
            if event.tag == "manifest":
                self._package = attrs.get("package", "")
                self._shared_user_id = attrs.get("sharedUserId") or None
                self.state = RegistryState.IN_MANIFEST
            return

        if self.state == RegistryState.IN_MANIFEST:
            if event.tag in _COMPONENT_TAGS:
                self._begin_component(event)
            elif event.tag == "permission" and attrs.get("name"):
                self.declared_permissions[attrs["name"]] = PermissionCategory.from_protection_level(
                    attrs.get("protectionLevel", "normal")
                )
            return

        if self.state == RegistryState.IN_COMPONENT:
            if event.tag == "intent-filter":
                self._filter = _FilterAccumulator()
                self.state = RegistryState.IN_INTENT_FILTER
            return

        if self.state == RegistryState.IN_INTENT_FILTER and self._filter is not None:
            self._collect_filter_facet(event.tag, attrs)

    def _begin_component(self, event: ManifestEvent) -> None:
        attrs = event.attributes
        name = attrs.get("name")
        if not name:
            logger.debug(
                "Skipping component declaration without name",
                tag=event.tag,
                manifest=str(self._manifest_path),
                line=event.line,
            )
        permissions = [attrs[a] for a in _COMPONENT_PERMISSION_ATTRS if attrs.get(a)]
        self._pending = _PendingComponent(
            name=qualify_component_name(self._package, name) if name else None,
            kind=_COMPONENT_TAGS[event.tag],
            depth=event.depth,
            exported=attrs.get("exported", "").strip().lower() == "true",
            permissions=permissions,
            line=event.line,
            raw_declaration=_raw_declaration(event.tag, attrs),
        )
        self.state = RegistryState.IN_COMPONENT

    def _collect_filter_facet(self, tag: str, attrs: dict[str, str]) -> None:
        facets = self._filter
        if facets is None:
            return
        if tag == "action" and attrs.get("name"):
            facets.actions.append(attrs["name"])
        elif tag == "category" and attrs.get("name"):
            facets.categories.append(attrs["name"])
        elif tag == "permission" and attrs.get("name"):
            facets.permissions.append(attrs["name"])
        elif tag == "data":
            if attrs.get("scheme"):
                facets.data_schemes.append(attrs["scheme"])
            if attrs.get("host"):
                facets.data_hosts.append(attrs["host"])
            for path_attr in _DATA_PATH_ATTRS:
                if attrs.get(path_attr):
                    facets.data_paths.append(attrs[path_attr])
            if attrs.get("mimeType"):
                facets.mime_types.append(attrs["mimeType"])

    def _on_end(self, event: ManifestEvent) -> Component | None:
        if self.state == RegistryState.IN_INTENT_FILTER and event.tag == "intent-filter":
            if self._pending is not None and self._filter is not None:
                # Only the last intent-filter of a component is kept
                self._pending.facets = self._filter
            self._filter = None
            self.state = RegistryState.IN_COMPONENT
            return None

        if (
            self.state == RegistryState.IN_COMPONENT
            and self._pending is not None
            and event.tag == self._pending.kind.value
            and event.depth == self._pending.depth
        ):
            pending = self._pending
            self._pending = None
            self.state = RegistryState.IN_MANIFEST
            return self._emit(pending)

        if self.state == RegistryState.IN_MANIFEST and event.tag == "manifest":
            self.state = RegistryState.NEUTRAL
        return None

    def _emit(self, pending: _PendingComponent) -> Component | None:
        if pending.name is None:
            return None
        if self.package_filter and self._package != self.package_filter:
            return None

        try:
            return self._build_component(pending)
        except (PydanticValidationError, IntentForgeError) as e:
            reason = e.errors()[0]["msg"] if isinstance(e, PydanticValidationError) else e.message
            message = (
                f"Skipped {pending.kind.value} '{pending.name}' at "
                f"{self._manifest_path}:{pending.line}: {reason}"
            )
            logger.warning(
                "Skipping invalid component declaration",
                component=pending.name,
                manifest=str(self._manifest_path),
                line=pending.line,
                reason=reason,
            )
            self.warnings.append(message)
            return None

    def _build_component(self, pending: _PendingComponent) -> Component:
        facets = pending.facets
        component = Component(
            package=self._package,
            qualified_name=pending.name,
            kind=pending.kind,
            exported=pending.exported,
            permissions=pending.permissions,
            intent_filter_permissions=facets.permissions,
            actions=facets.actions,
            categories=facets.categories,
            data_schemes=facets.data_schemes,
            data_hosts=facets.data_hosts,
            data_paths=facets.data_paths,
            mime_types=facets.mime_types,
            provenance=ManifestProvenance(
                manifest_path=self._manifest_path,
                line=pending.line,
                raw_declaration=pending.raw_declaration,
            ),
        )
        if self._shared_user_id:
            component = component.with_shared_user_id(self._shared_user_id)
        return component


def _is_skipped(relative: Path) -> bool:
    for part in relative.parts[:-1]:
        if part in _SKIPPED_DIR_NAMES:
            return True
        # test source sets: test, tests, androidTest, testDebug, unitTest
        if part.lower().startswith("test") or part.endswith(("Test", "Tests")):
            return True
    return False


def find_manifest_files(root: Path) -> list[Path]:
    """Find application manifests under `root`, skipping test and build trees."""
    root = Path(root)
    if root.is_file():
        return [root] if root.name == MANIFEST_FILE_NAME else []
    found = [
        path
        for path in root.rglob(MANIFEST_FILE_NAME)
        if path.is_file() and not _is_skipped(path.relative_to(root))
    ]
    return sorted(found)


class ManifestService:
    """Discovers manifests under a project tree and registers their components."""

    def __init__(self, registry: ComponentRegistry | None = None) -> None:
        self.registry = registry if registry is not None else ComponentRegistry()

    def load(self, root: Path, package_filter: str | None = None) -> ServiceResult[list[Component]]:
        """Parse every manifest under `root`.

        A manifest that fails to parse, or a declaration that cannot become a
        Component, is reported as a warning; everything else is still ingested.
        """
        start_time = time.perf_counter()
        self.registry.package_filter = package_filter

        manifests = find_manifest_files(root)
        logger.info("Found manifest files", root=str(root), count=len(manifests))
        if not manifests:
            return ServiceResult.fail(
                f"No {MANIFEST_FILE_NAME} found under {root}",
                service="manifest",
                operation="load",
            )

        warnings: list[str] = []
        components: list[Component] = []
        for manifest_path in manifests:
            try:
                found = self.registry.ingest(iter_manifest_events(manifest_path), manifest_path)
            except (IntentForgeError, PydanticValidationError) as e:
                logger.error("Failed to parse manifest file", manifest=str(manifest_path), error=str(e))
                warnings.append(str(e) if isinstance(e, ManifestError) else f"{manifest_path}: {e}")
                continue
            warnings.extend(self.registry.warnings)
            logger.info("Parsed manifest", manifest=str(manifest_path), components=len(found))
            components.extend(found)

        result = ServiceResult.with_warnings(
            components,
            warnings,
            manifests=[str(p) for p in manifests],
        )
        result.duration_ms = (time.perf_counter() - start_time) * 1000
        return result
