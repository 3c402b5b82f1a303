"""Test configuration for apkforge."""

import sys
import tempfile
import zipfile
from pathlib import Path

import pytest
import structlog

from apkforge.core.config import Config, ProjectConfig, SdkConfig
from apkforge.models.artifact import DependencyArtifact
from apkforge.models.invocation import CommandResult


MANIFEST_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android" package="{package}">
    <application android:label="app">
        <activity android:name=".MainActivity" />
    </application>
</manifest>
"""


def manifest_xml(package: str) -> str:
    return MANIFEST_TEMPLATE.format(package=package)


def write_zip(path: Path, entries: dict) -> Path:
    """Write a zip whose entries map names to str or bytes content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return path


def write_tree(root: Path, files: dict) -> Path:
    """Create files under ``root`` from a relative path to content mapping."""
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content)
    return root


class RecordingExecutor:
    """Stands in for CommandExecutor: records invocations instead of running them.

    ``on_execute`` callbacks can create the files a real tool would write.
    """

    def __init__(self, on_execute=None):
        self.invocations = []
        self.environments = []
        self.on_execute = on_execute

    def execute(self, invocation, env=None, cwd=None):
        self.invocations.append(invocation)
        self.environments.append(dict(env or {}))
        if self.on_execute is not None:
            self.on_execute(invocation)
        return CommandResult(exit_code=0)

    def tools(self):
        return [i.tool_name for i in self.invocations]


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration done by a test (e.g. CLI runs).

    ``setup_logging`` binds structlog to the current ``sys.stderr`` and caches
    loggers on first use; under CliRunner that stream is closed afterwards.
    """
    yield
    structlog.reset_defaults()
    for name, module in list(sys.modules.items()):
        if not name.startswith("apkforge"):
            continue
        for value in list(vars(module).values()):
            if isinstance(value, structlog._config.BoundLoggerLazyProxy):
                vars(value).pop("bind", None)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_zip(temp_dir):
    """Factory writing zip archives under the temporary directory."""

    def _make(name: str, entries: dict) -> Path:
        return write_zip(temp_dir / "repo" / name, entries)

    return _make


@pytest.fixture
def make_artifact(make_zip):
    """Factory for DependencyArtifacts backed by real archives."""

    def _make(coordinate: str, entries: dict, type: str = "jar", **kwargs) -> DependencyArtifact:
        name = coordinate.replace(":", "-") + f".{type}"
        path = make_zip(name, entries)
        return DependencyArtifact(coordinate=coordinate, type=type, file=path, **kwargs)

    return _make


@pytest.fixture
def aar_entries():
    """Contents of a minimal AAR library."""
    classes = io_zip({"com/lib/Widget.class": b"\xca\xfe\xba\xbe"})
    return {
        "AndroidManifest.xml": manifest_xml("com.lib"),
        "classes.jar": classes,
        "res/values/strings.xml": "<resources/>",
        "assets/lib.txt": "library asset",
        "jni/armeabi-v7a/libwidget.so": b"ELF",
        "proguard.txt": "-keep class com.lib.** { *; }",
        "R.txt": "int string app_name 0x7f010001",
        "META-INF/MANIFEST.MF": "Manifest-Version: 1.0",
    }


def io_zip(entries: dict) -> bytes:
    """Zip bytes for nested archives such as an AAR's classes.jar."""
    import io

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


@pytest.fixture
def fake_sdk(temp_dir):
    """A minimal Android SDK tree with two build-tools versions."""
    sdk = temp_dir / "sdk"
    write_tree(
        sdk,
        {
            "platforms/android-33/android.jar": b"jar",
            "platforms/android-33/framework.aidl": "",
            "build-tools/30.0.3/aapt": "",
            "build-tools/30.0.3/aidl": "",
            "build-tools/33.0.2/aapt": "",
            "build-tools/33.0.2/aapt2": "",
            "build-tools/33.0.2/aidl": "",
            "build-tools/33.0.2/apksigner": "",
            "build-tools/33.0.2/mainDexClasses": "",
            "build-tools/33.0.2/zipalign": "",
            "build-tools/33.0.2/lib/dx.jar": b"jar",
            "build-tools/33.0.2/lib/d8.jar": b"jar",
            "tools/proguard/lib/proguard.jar": b"jar",
        },
    )
    return sdk


@pytest.fixture
def project_dir(temp_dir):
    """An application project with a manifest, resources and assets."""
    project = temp_dir / "project"
    write_tree(
        project,
        {
            "src/main/AndroidManifest.xml": manifest_xml("com.example.app"),
            "src/main/res/values/strings.xml": "<resources/>",
            "src/main/assets/app.txt": "project asset",
        },
    )
    return project


@pytest.fixture
def config(project_dir, fake_sdk):
    """Configuration for the sample project against the fake SDK."""
    return Config(
        project=ProjectConfig(
            group_id="com.example",
            artifact_id="app",
            version="1.2.3",
            base_directory=project_dir,
        ),
        sdk=SdkConfig(path=fake_sdk, platform="33"),
    )


@pytest.fixture
def recording_executor():
    """An executor that records tool invocations without running them."""
    return RecordingExecutor()
