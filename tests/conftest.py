"""Test configuration for IntentForge."""

from pathlib import Path

import pytest

from IntentForge.core.config import get_config
from IntentForge.models.component import Component, ComponentKind, ManifestProvenance

SAMPLE_MANIFEST = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android"
    package="com.app"
    android:sharedUserId="com.app.shared">

    <permission
        android:name="com.app.permission.PRIVATE"
        android:protectionLevel="signature" />

    <application android:label="Sample">
        <activity android:name=".MainActivity" android:exported="true">
            <intent-filter>
                <action android:name="android.intent.action.VIEW" />
                <category android:name="android.intent.category.DEFAULT" />
                <data android:scheme="app" android:host="open" android:path="/item" />
            </intent-filter>
        </activity>

        <activity android:name="com.app.ProfileActivity" android:exported="true" />

        <activity android:name=".InternalActivity" android:exported="false" />

        <service
            android:name=".SyncService"
            android:exported="true"
            android:permission="com.app.permission.PRIVATE">
            <intent-filter>
                <action android:name="com.app.action.SYNC" />
            </intent-filter>
        </service>

        <receiver android:name=".BootReceiver" android:exported="true">
            <intent-filter>
                <action android:name="android.intent.action.BOOT_COMPLETED" />
            </intent-filter>
            <intent-filter>
                <action android:name="com.app.action.REFRESH" />
                <data android:mimeType="text/plain" />
            </intent-filter>
        </receiver>

        <provider
            android:name=".DataProvider"
            android:authorities="com.app.data"
            android:exported="true" />
    </application>
</manifest>
"""

PROFILE_ACTIVITY = """package com.app;

import android.app.Activity;
import android.content.Intent;
import android.os.Bundle;

public class ProfileActivity extends Activity {
    @Override
    protected void onCreate(Bundle savedInstanceState) {
        super.onCreate(savedInstanceState);
        Intent intent = getIntent();
        String userId = intent.getStringExtra("user_id");
        int page = intent.getIntExtra("page", 0);
        boolean admin = getIntent().getBooleanExtra("admin", false);
        String again = intent.getStringExtra("user_id");
        android.net.Uri uri = intent.getData();
    }
}
"""

MAIN_ACTIVITY = """package com.app;

import android.app.Activity;
import android.os.Bundle;

public class MainActivity extends Activity {
    @Override
    protected void onCreate(Bundle savedInstanceState) {
        super.onCreate(savedInstanceState);
        setContentView(R.layout.main);
    }
}
"""

SYNC_SERVICE = """package com.app;

import android.app.Service;
import android.content.Intent;
import android.os.IBinder;

public class SyncService extends Service {
    @Override
    public int onStartCommand(Intent intent, int flags, int startId) {
        if (intent.getAction() != null) {
            String action = intent.getAction();
            handle(action);
        }
        return START_NOT_STICKY;
    }

    @Override
    public IBinder onBind(Intent intent) {
        return null;
    }
}
"""

BOOT_RECEIVER_KOTLIN = """package com.app

import android.content.BroadcastReceiver
import android.content.Context
import android.content.Intent

class BootReceiver : BroadcastReceiver() {
    override fun onReceive(context: Context, intent: Intent) {
        val mode = intent.getStringExtra("mode")
    }
}
"""


@pytest.fixture(autouse=True)
def reset_config():
    """Clear the cached configuration around every test.

    Yields:
        None: Control returns to the test with a fresh configuration cache.
    """
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a small Android project tree.

    Layout mirrors a Gradle module: app/src/main/AndroidManifest.xml with
    sources under app/src/main/java/com/app/. A test source set and a build
    directory contain decoy manifests.

    Returns:
        Path: The project root.
    """
    root = tmp_path / "project"
    main = root / "app" / "src" / "main"
    java = main / "java" / "com" / "app"
    java.mkdir(parents=True)

    (main / "AndroidManifest.xml").write_text(SAMPLE_MANIFEST)
    (java / "ProfileActivity.java").write_text(PROFILE_ACTIVITY)
    (java / "MainActivity.java").write_text(MAIN_ACTIVITY)
    (java / "SyncService.java").write_text(SYNC_SERVICE)
    (java / "BootReceiver.kt").write_text(BOOT_RECEIVER_KOTLIN)

    for decoy in (root / "app" / "src" / "androidTest", root / "app" / "build" / "intermediates"):
        decoy.mkdir(parents=True)
        (decoy / "AndroidManifest.xml").write_text(SAMPLE_MANIFEST.replace("com.app", "com.decoy"))

    return root


@pytest.fixture
def manifest_path(project_dir: Path) -> Path:
    return project_dir / "app" / "src" / "main" / "AndroidManifest.xml"


@pytest.fixture
def make_component():
    """Factory for Component instances with sensible defaults.

    Returns:
        Callable[..., Component]: Builds a component of package com.app.
    """

    def _make(
        qualified_name: str = "com.app.MainActivity",
        kind: ComponentKind = ComponentKind.ACTIVITY,
        manifest_path: Path | None = None,
        **fields,
    ) -> Component:
        fields.setdefault("package", "com.app")
        fields.setdefault("exported", True)
        return Component(
            qualified_name=qualified_name,
            kind=kind,
            provenance=ManifestProvenance(
                manifest_path=manifest_path or Path("AndroidManifest.xml"),
                line=1,
            ),
            **fields,
        )

    return _make
