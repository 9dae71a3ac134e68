"""Unit tests for the scan pipeline."""

import pytest

from IntentForge.core.config import AgentConfig
from IntentForge.core.exceptions import NoComponentError
from IntentForge.models.permission import PermissionCategory
from IntentForge.orchestration import (
    CommandPipeline,
    ScanOptions,
    build_reconciler,
    permission_allowed,
)
from IntentForge.services.reconciliation import ParameterReconciler, ParameterSource

EXPECTED_COMMANDS = {
    "com.app.MainActivity": (
        "adb shell am start -n com.app/.MainActivity -a android.intent.action.VIEW "
        "-c android.intent.category.DEFAULT -d app://open/item"
    ),
    "com.app.ProfileActivity": (
        "adb shell am start -n com.app/.ProfileActivity "
        "--es user_id string --ei page 0 --ez admin false -d uri"
    ),
    "com.app.SyncService": "adb shell am startservice -n com.app/.SyncService -a com.app.action.SYNC",
    "com.app.BootReceiver": (
        "adb shell am broadcast -n com.app/.BootReceiver "
        "-a com.app.action.REFRESH -t text/plain"
    ),
    "com.app.DataProvider": "adb shell am start -n com.app/.DataProvider",
}


class FakeDevice:
    """Device stand-in reporting a fixed package list."""

    def __init__(self, packages: set[str]):
        self.packages = packages

    async def list_packages(self) -> set[str]:
        return self.packages


class FailingReconciler(ParameterReconciler):
    """Reconciler that fails for one component."""

    def __init__(self, failing: str):
        super().__init__()
        self.failing = failing

    async def resolve(self, component, source_file=None):
        if component.qualified_name == self.failing:
            raise NoComponentError(message="resolution exploded")
        return await super().resolve(component, source_file)


@pytest.fixture
def pipeline():
    return CommandPipeline(reconciler=ParameterReconciler())


class TestPermissionFilter:
    """Tests for the permission level filter."""

    def test_unguarded_component_allowed(self, make_component):
        assert permission_allowed(make_component(), PermissionCategory.NORMAL)

    def test_declared_level_is_used(self, make_component):
        component = make_component(permissions=["com.app.permission.PRIVATE"])
        declared = {"com.app.permission.PRIVATE": PermissionCategory.SIGNATURE}
        assert permission_allowed(component, PermissionCategory.SIGNATURE, declared)
        assert not permission_allowed(component, PermissionCategory.DANGEROUS, declared)


class TestCommandPipeline:
    """Tests for a full scan over the sample project."""

    @pytest.mark.asyncio
    async def test_run_without_inference(self, pipeline, project_dir, manifest_path):
        """Test the commands produced without an inference endpoint.

        ProfileActivity is resolved from its syntax tree; every other component
        falls back to manifest facets. InternalActivity is not exported.
        """
        report = await pipeline.run(ScanOptions(project_dir=project_dir))

        commands = {c.component.qualified_name: c.command for c in report.commands}
        assert commands == EXPECTED_COMMANDS
        assert [c.component.qualified_name for c in report.commands] == list(EXPECTED_COMMANDS)
        assert report.skipped == {"com.app.InternalActivity": "not exported"}
        assert report.manifests == [str(manifest_path)]
        assert report.failed == []

        by_name = {c.component.qualified_name: c for c in report.commands}
        assert by_name["com.app.ProfileActivity"].source is ParameterSource.STRUCTURAL
        assert by_name["com.app.ProfileActivity"].confidence == 1.0
        assert by_name["com.app.SyncService"].source is ParameterSource.MANIFEST
        assert by_name["com.app.DataProvider"].source_file is None
        assert any("not found" in w for w in by_name["com.app.DataProvider"].warnings)
        assert by_name["com.app.BootReceiver"].source_file.name == "BootReceiver.kt"

    @pytest.mark.asyncio
    async def test_include_unexported(self, pipeline, project_dir):
        report = await pipeline.run(ScanOptions(project_dir=project_dir, exported_only=False))
        assert "com.app.InternalActivity" in {c.component.qualified_name for c in report.commands}
        assert report.skipped == {}

    @pytest.mark.asyncio
    async def test_permission_level_filter(self, pipeline, project_dir):
        report = await pipeline.run(
            ScanOptions(project_dir=project_dir, max_permission_level=PermissionCategory.NORMAL)
        )
        assert report.skipped["com.app.SyncService"] == "permission above normal"
        assert "com.app.SyncService" not in {c.component.qualified_name for c in report.commands}

    @pytest.mark.asyncio
    async def test_shared_user_id_filter(self, pipeline, project_dir):
        report = await pipeline.run(ScanOptions(project_dir=project_dir, exclude_shared_user_id=True))
        assert report.commands == []
        assert report.skipped["com.app.MainActivity"] == "sharedUserId com.app.shared"

    @pytest.mark.asyncio
    async def test_alive_only_uses_device(self, project_dir):
        pipeline = CommandPipeline(reconciler=ParameterReconciler(), device=FakeDevice({"com.other"}))
        report = await pipeline.run(ScanOptions(project_dir=project_dir, alive_only=True))
        assert report.commands == []
        assert report.skipped["com.app.MainActivity"] == "package not installed"

        pipeline = CommandPipeline(reconciler=ParameterReconciler(), device=FakeDevice({"com.app"}))
        report = await pipeline.run(ScanOptions(project_dir=project_dir, alive_only=True))
        assert len(report.commands) == 5

    @pytest.mark.asyncio
    async def test_package_filter(self, pipeline, project_dir):
        report = await pipeline.run(ScanOptions(project_dir=project_dir, package="com.other"))
        assert report.commands == []

    @pytest.mark.asyncio
    async def test_extra_args_appended(self, pipeline, project_dir):
        report = await pipeline.run(ScanOptions(project_dir=project_dir, extra_args=["--user 0"]))
        assert all(c.command.endswith(" --user 0") for c in report.commands)

    @pytest.mark.asyncio
    async def test_concurrency_preserves_order(self, project_dir):
        sequential = await CommandPipeline(reconciler=ParameterReconciler()).run(
            ScanOptions(project_dir=project_dir)
        )
        concurrent = await CommandPipeline(reconciler=ParameterReconciler()).run(
            ScanOptions(project_dir=project_dir, concurrency=4)
        )
        assert [c.command for c in concurrent.commands] == [c.command for c in sequential.commands]

    @pytest.mark.asyncio
    async def test_component_failure_does_not_abort_batch(self, project_dir):
        """Test per-component failure isolation.

        The failing component gets an error entry; the others still get their
        commands.
        """
        pipeline = CommandPipeline(reconciler=FailingReconciler("com.app.SyncService"))
        report = await pipeline.run(ScanOptions(project_dir=project_dir))

        assert [c.component.qualified_name for c in report.failed] == ["com.app.SyncService"]
        assert report.failed[0].error == "resolution exploded"
        assert len(report.succeeded) == 4

    @pytest.mark.asyncio
    async def test_missing_manifest_raises(self, pipeline, tmp_path):
        from IntentForge.core.exceptions import ServiceError

        with pytest.raises(ServiceError):
            await pipeline.run(ScanOptions(project_dir=tmp_path))


class TestScanOptions:
    """Tests for option construction."""

    def test_from_config_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("INTENTFORGE_CONCURRENCY", "3")
        monkeypatch.setenv("INTENTFORGE_MAX_PERMISSION_LEVEL", "dangerous")
        options = ScanOptions.from_config(tmp_path)
        assert options.concurrency == 3
        assert options.max_permission_level is PermissionCategory.DANGEROUS

    def test_overrides_win_and_none_is_ignored(self, tmp_path):
        options = ScanOptions.from_config(tmp_path, concurrency=8, package=None, exported_only=False)
        assert options.concurrency == 8
        assert options.package is None
        assert options.exported_only is False


class TestBuildReconciler:
    """Tests for reconciler wiring."""

    def test_disabled_agent(self):
        assert build_reconciler(AgentConfig(enabled=False)).inference_agent is None

    def test_enabled_agent(self):
        reconciler = build_reconciler(AgentConfig(enabled=True, base_url="http://localhost:1234/v1"))
        assert reconciler.inference_agent is not None
