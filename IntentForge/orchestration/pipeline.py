"""
Scan pipeline orchestration for IntentForge.

Loads components from every manifest under a project, filters them, and
resolves one adb command per remaining component. Components are independent:
a failure is recorded on that component's entry and the batch continues.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from ..agents.intent_inference import IntentInferenceAgent
from ..core.config import AgentConfig, get_config
from ..core.exceptions import IntentForgeError, SourceNotFoundError
from ..core.logging import bind_context, clear_context, component_context, get_logger
from ..models.component import Component
from ..models.intent import IntentParameter
from ..models.permission import PermissionCategory, highest_protection_level
from ..services.command import CommandBuilder
from ..services.device import DeviceService
from ..services.manifest import ManifestService
from ..services.reconciliation import ParameterReconciler, ParameterSource, Resolution
from ..services.source_locator import SourceLocator

logger = get_logger(__name__)


class ScanOptions(BaseModel):
    """Options of one scan."""

    project_dir: Path = Field(description="Directory searched for AndroidManifest.xml files")
    source_dir: Path | None = Field(default=None, description="Source root; defaults to each manifest's directory")
    package: str | None = Field(default=None, description="Only components of this package")
    exported_only: bool = Field(default=True)
    max_permission_level: PermissionCategory = Field(default=PermissionCategory.SIGNATURE)
    alive_only: bool = Field(default=False, description="Only packages installed on the device")
    exclude_shared_user_id: bool = Field(default=False)
    extra_args: list[str] = Field(default_factory=list, description="Raw arguments appended to every command")
    concurrency: int = Field(default=1, ge=1)

    @classmethod
    def from_config(cls, project_dir: Path, **overrides: object) -> ScanOptions:
        """Options seeded from the scan configuration, with explicit overrides."""
        scan = get_config().scan
        values: dict[str, object] = {
            "project_dir": project_dir,
            "exported_only": scan.exported_only,
            "max_permission_level": PermissionCategory(scan.max_permission_level),
            "alive_only": scan.alive_only,
            "exclude_shared_user_id": scan.exclude_shared_user_id,
            "concurrency": scan.concurrency,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)


class ComponentCommand(BaseModel):
    """The command produced for one component, or why none was produced."""

    component: Component
    command: str | None = None
    source: ParameterSource | None = None
    parameters: list[IntentParameter] = Field(default_factory=list)
    confidence: float = 0.0
    source_file: Path | None = None
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.command is not None


class ScanReport(BaseModel):
    """Result of a complete scan."""

    run_id: str
    project_dir: Path
    started_at: datetime
    completed_at: datetime
    manifests: list[str] = Field(default_factory=list)
    commands: list[ComponentCommand] = Field(default_factory=list)
    skipped: dict[str, str] = Field(default_factory=dict, description="Component -> reason")
    warnings: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> list[ComponentCommand]:
        return [c for c in self.commands if c.succeeded]

    @property
    def failed(self) -> list[ComponentCommand]:
        return [c for c in self.commands if not c.succeeded]


def permission_allowed(
    component: Component,
    max_level: PermissionCategory,
    declared: dict[str, PermissionCategory] | None = None,
) -> bool:
    """True if the component's strongest permission does not exceed `max_level`."""
    level = highest_protection_level(component.all_permissions, declared)
    return level.rank <= max_level.rank


def build_reconciler(agent_config: AgentConfig | None = None) -> ParameterReconciler:
    """Reconciler wired with the inference agent when inference is enabled."""
    agent_config = agent_config or get_config().agent
    agent = IntentInferenceAgent(agent_config) if agent_config.enabled else None
    return ParameterReconciler(inference_agent=agent)


class CommandPipeline:
    """Runs the scan: load, filter, then resolve and build per component."""

    def __init__(
        self,
        manifest_service: ManifestService | None = None,
        locator: SourceLocator | None = None,
        reconciler: ParameterReconciler | None = None,
        device: DeviceService | None = None,
    ) -> None:
        self.manifest_service = manifest_service or ManifestService()
        self.locator = locator or SourceLocator()
        self.reconciler = reconciler or build_reconciler()
        self.device = device

    def load_components(self, options: ScanOptions) -> tuple[list[Component], list[str], list[str]]:
        """Components, manifest paths and warnings for the project.

        Raises:
            ServiceError: If the project contains no manifest.
        """
        result = self.manifest_service.load(options.project_dir, package_filter=options.package)
        components = result.unwrap()
        return components, list(result.metadata.get("manifests", [])), list(result.warnings)

    async def filter_components(
        self,
        components: list[Component],
        options: ScanOptions,
    ) -> tuple[list[Component], dict[str, str]]:
        """Apply the selection filters; returns (selected, skipped name -> reason).

        Raises:
            ToolNotFoundError: If `alive_only` is set and adb is missing.
            ServiceError: If listing installed packages fails.
        """
        declared = self.manifest_service.registry.declared_permissions
        installed: set[str] | None = None
        if options.alive_only:
            device = self.device or DeviceService()
            installed = await device.list_packages()

        selected: list[Component] = []
        skipped: dict[str, str] = {}
        for component in components:
            name = component.qualified_name
            if options.exported_only and not component.exported:
                skipped[name] = "not exported"
            elif not permission_allowed(component, options.max_permission_level, declared):
                skipped[name] = f"permission above {options.max_permission_level.value}"
            elif installed is not None and component.package not in installed:
                skipped[name] = "package not installed"
            elif options.exclude_shared_user_id and component.shared_user_id:
                skipped[name] = f"sharedUserId {component.shared_user_id}"
            else:
                selected.append(component)

        for name, reason in skipped.items():
            logger.debug("Skipping component", component=name, reason=reason)
        logger.info("Filtered components", selected=len(selected), skipped=len(skipped))
        return selected, skipped

    async def process_component(self, component: Component, options: ScanOptions) -> ComponentCommand:
        """Locate, reconcile and build the command for one component."""
        with component_context(component.qualified_name):
            warnings: list[str] = []
            source_file: Path | None = None
            try:
                source_file = self.locator.locate(component, options.source_dir)
            except SourceNotFoundError as e:
                logger.warning("Source file not resolved", reason=e.reason.value, candidates=len(e.candidates))
                warnings.append(str(e))

            try:
                resolution = await self.reconciler.resolve(component, source_file)
                command = self._build(component, resolution, options.extra_args)
            except IntentForgeError as e:
                logger.error("Failed to generate command", error=str(e))
                return ComponentCommand(
                    component=component,
                    source_file=source_file,
                    warnings=warnings,
                    error=str(e),
                )

            logger.info("Generated command", source=resolution.source.value, command=command)
            return ComponentCommand(
                component=component,
                command=command,
                source=resolution.source,
                parameters=resolution.parameters,
                confidence=resolution.confidence,
                source_file=resolution.source_file,
                warnings=warnings + resolution.warnings,
            )

    @staticmethod
    def _build(component: Component, resolution: Resolution, extra_args: list[str]) -> str:
        builder = CommandBuilder().set_component(component)
        if resolution.source is ParameterSource.STRUCTURAL:
            for arg in resolution.extra_args:
                builder.add_extra_arg(arg)
        else:
            builder.set_parameters(resolution.parameters)
        for arg in extra_args:
            builder.add_extra_arg(arg)
        return builder.build()

    async def run(self, options: ScanOptions) -> ScanReport:
        """Execute a full scan."""
        run_id = uuid.uuid4().hex[:8]
        started_at = datetime.now(timezone.utc)
        start_time = time.perf_counter()
        bind_context(run_id=run_id)

        try:
            logger.info("Starting scan", project=str(options.project_dir), concurrency=options.concurrency)
            components, manifests, warnings = self.load_components(options)
            selected, skipped = await self.filter_components(components, options)

            semaphore = asyncio.Semaphore(options.concurrency)

            async def guarded(component: Component) -> ComponentCommand:
                async with semaphore:
                    return await self.process_component(component, options)

            commands = list(await asyncio.gather(*(guarded(c) for c in selected)))

            logger.info(
                "Scan completed",
                commands=sum(1 for c in commands if c.succeeded),
                failed=sum(1 for c in commands if not c.succeeded),
                skipped=len(skipped),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 1),
            )
            return ScanReport(
                run_id=run_id,
                project_dir=options.project_dir,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
                manifests=manifests,
                commands=commands,
                skipped=skipped,
                warnings=warnings,
            )
        finally:
            clear_context()


async def run_pipeline(options: ScanOptions, agent_config: AgentConfig | None = None) -> ScanReport:
    """Convenience entry point for a scan with default services."""
    pipeline = CommandPipeline(reconciler=build_reconciler(agent_config))
    return await pipeline.run(options)
