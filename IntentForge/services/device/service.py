"""
Device Service.

Queries a connected device through adb. Only used to restrict a scan to
packages that are actually installed.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path

from ...core.config import get_config
from ...core.exceptions import ServiceError, ToolNotFoundError
from ...core.logging import get_logger

logger = get_logger(__name__)

PACKAGE_PREFIX = "package:"


def parse_package_list(output: str) -> set[str]:
    """Parse `pm list packages` output (`package:com.example` per line)."""
    packages = set()
    for line in output.splitlines():
        line = line.strip()
        if line.startswith(PACKAGE_PREFIX):
            packages.add(line[len(PACKAGE_PREFIX):].strip())
    return packages


class DeviceService:
    """Runs adb commands against the default device."""

    def __init__(self, adb_path: Path | None = None, serial: str | None = None) -> None:
        self._adb_path = adb_path or get_config().scan.adb_path
        self.serial = serial

    def _find_adb(self) -> Path:
        if self._adb_path is not None:
            if self._adb_path.exists():
                return self._adb_path
            raise ToolNotFoundError(
                message="Configured adb binary does not exist",
                tool_name="adb",
                expected_path=str(self._adb_path),
                install_hint="Fix INTENTFORGE_ADB_PATH or install Android platform-tools",
            )

        sdk_root = os.environ.get("ANDROID_HOME") or os.environ.get("ANDROID_SDK_ROOT")
        if sdk_root:
            for name in ("adb", "adb.exe"):
                candidate = Path(sdk_root) / "platform-tools" / name
                if candidate.exists():
                    return candidate

        found = shutil.which("adb")
        if found:
            return Path(found)

        raise ToolNotFoundError(
            message="Tool not found: adb",
            tool_name="adb",
            expected_path="PATH or $ANDROID_HOME/platform-tools",
            install_hint="Install Android platform-tools and add adb to PATH",
        )

    async def _adb(self, *args: str) -> str:
        """Run an adb command and return its stdout."""
        cmd = [str(self._find_adb())]
        if self.serial:
            cmd.extend(["-s", self.serial])
        cmd.extend(args)
        cmd_str = " ".join(cmd)
        logger.debug("Running adb command", command=cmd_str)

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ServiceError(
                message=f"Failed to start adb: {e}",
                service_name="device",
                operation=args[0] if args else "adb",
                cause=e,
            )
        stdout, stderr = await proc.communicate()
        stderr_str = stderr.decode(errors="replace")

        if proc.returncode != 0:
            logger.warning("adb command failed", command=cmd_str, stderr=stderr_str[:500])
            raise ServiceError(
                message=f"adb command failed: {stderr_str.strip()}",
                service_name="device",
                operation=" ".join(args),
                retryable=True,
                context={"returncode": proc.returncode},
            )
        return stdout.decode(errors="replace")

    async def list_packages(self) -> set[str]:
        """Packages installed on the device.

        Raises:
            ToolNotFoundError: If adb cannot be found.
            ServiceError: If the adb command fails.
        """
        output = await self._adb("shell", "pm", "list", "packages")
        packages = parse_package_list(output)
        logger.info("Listed installed packages", count=len(packages))
        return packages
