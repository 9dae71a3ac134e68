"""Unit tests for the device service."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from IntentForge.core.exceptions import ToolNotFoundError
from IntentForge.services.device import DeviceService, parse_package_list


class TestParsePackageList:
    """Tests for `pm list packages` parsing."""

    def test_parse(self):
        output = "package:com.android.settings\r\npackage:com.app\n\nWARNING: linker noise\npackage: com.spaced \n"
        assert parse_package_list(output) == {"com.android.settings", "com.app", "com.spaced"}

    def test_empty(self):
        assert parse_package_list("") == set()


class TestDeviceService:
    """Tests for adb discovery and package listing."""

    def test_configured_path_must_exist(self, tmp_path):
        service = DeviceService(adb_path=tmp_path / "adb")
        with pytest.raises(ToolNotFoundError) as exc_info:
            service._find_adb()
        assert exc_info.value.tool_name == "adb"

    def test_sdk_platform_tools(self, tmp_path, monkeypatch):
        adb = tmp_path / "platform-tools" / "adb"
        adb.parent.mkdir()
        adb.touch()
        monkeypatch.setenv("ANDROID_HOME", str(tmp_path))
        assert DeviceService()._find_adb() == adb

    def test_missing_adb(self, monkeypatch):
        monkeypatch.delenv("ANDROID_HOME", raising=False)
        monkeypatch.delenv("ANDROID_SDK_ROOT", raising=False)
        monkeypatch.setattr("shutil.which", lambda name: None)
        with pytest.raises(ToolNotFoundError):
            DeviceService()._find_adb()

    @pytest.mark.asyncio
    async def test_list_packages(self):
        service = DeviceService(adb_path=Path("/opt/adb"), serial="emulator-5554")
        with patch.object(service, "_adb", new=AsyncMock(return_value="package:com.app\npackage:com.b\n")) as adb:
            packages = await service.list_packages()
        assert packages == {"com.app", "com.b"}
        adb.assert_awaited_once_with("shell", "pm", "list", "packages")
