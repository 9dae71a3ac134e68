"""Unit tests for the command-line interface."""

import json
import logging

import pytest
import structlog
from typer.testing import CliRunner

from IntentForge import __version__
from IntentForge.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Silence structured logging while the CLI runs.

    The CLI normally configures logging against the runner's captured
    streams; defaults are restored afterwards so later tests log normally.
    """

    def configure(config=None, json_output=None):
        structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL))

    monkeypatch.setattr("IntentForge.cli.setup_logging", configure)
    monkeypatch.delenv("INTENTFORGE_LLM_URL", raising=False)
    yield
    structlog.reset_defaults()


class TestCli:
    """Tests for CLI commands."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"IntentForge v{__version__}" in result.stdout

    def test_config(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Current Configuration" in result.stdout
        assert "INTENTFORGE_LLM_URL" in result.stdout

    def test_scan_json(self, project_dir):
        """Test a scan with JSON output.

        The report on stdout carries one entry per exported component and the
        skipped non-exported one.
        """
        result = runner.invoke(app, ["scan", str(project_dir), "--json"])
        assert result.exit_code == 0

        report = json.loads(result.stdout)
        commands = [entry["command"] for entry in report["commands"]]
        assert "adb shell am startservice -n com.app/.SyncService -a com.app.action.SYNC" in commands
        assert len(commands) == 5
        assert report["skipped"] == {"com.app.InternalActivity": "not exported"}

    def test_scan_rich_output(self, project_dir):
        result = runner.invoke(app, ["scan", str(project_dir), "--all-components", "--extra-arg=--user 0"])
        assert result.exit_code == 0
        assert "Scan Summary" in result.stdout
        assert "com.app.InternalActivity" in result.stdout

    def test_scan_without_manifest_fails(self, tmp_path):
        result = runner.invoke(app, ["scan", str(tmp_path), "--json"])
        assert result.exit_code == 1

    def test_models_requires_endpoint(self):
        result = runner.invoke(app, ["models"])
        assert result.exit_code == 1
        assert "No endpoint" in result.stdout

    def test_scan_output_escapes_markup(self, tmp_path):
        """Test rich output for manifest values that look like markup.

        Bracketed text is printed literally and the command stays on one line
        so it can be copied into a shell.
        """
        main = tmp_path / "app" / "src" / "main"
        main.mkdir(parents=True)
        (main / "AndroidManifest.xml").write_text(
            """<manifest xmlns:android="http://schemas.android.com/apk/res/android" package="com.app">
  <application>
    <activity android:name=".DeepLinkActivity" android:exported="true">
      <intent-filter>
        <action android:name="com.app.action.[/x]" />
        <category android:name="android.intent.category.DEFAULT" />
        <data android:scheme="app" android:host="open" android:path="/some/rather/long/path/segment" />
      </intent-filter>
    </activity>
  </application>
</manifest>"""
        )

        result = runner.invoke(app, ["scan", str(tmp_path)])
        assert result.exit_code == 0
        assert "[/x]" in result.stdout

        expected = (
            "adb shell am start -n com.app/.DeepLinkActivity -a 'com.app.action.[/x]' "
            "-c android.intent.category.DEFAULT -d app://open/some/rather/long/path/segment"
        )
        assert any(line.strip() == expected for line in result.stdout.splitlines())
