"""Unit tests for manifest merging, rewriting and version codes."""

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from apkforge.core.config import ManifestConfig
from apkforge.core.exceptions import ConfigurationError
from apkforge.manifest import (
    BuiltinManifestMerger,
    ExternalManifestMerger,
    VersionGenerator,
    select_manifest_merger,
    update_manifest,
)
from apkforge.manifest.merger import ANDROID_NS

from conftest import RecordingExecutor, manifest_xml

ANDROID_NAME = f"{{{ANDROID_NS}}}name"

LIBRARY_MANIFEST = f"""<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="{ANDROID_NS}" package="com.lib">
    <uses-permission android:name="android.permission.INTERNET" />
    <application>
        <activity android:name=".LibActivity" />
        <service android:name="SyncService" />
        <activity android:name="com.example.app.MainActivity" />
        <meta-data android:name="lib.key" android:value="1" />
    </application>
</manifest>
"""


def names(manifest: Path, tag: str) -> list[str]:
    root = ET.parse(manifest).getroot()
    elements = root.iter(tag)
    return [e.get(ANDROID_NAME) for e in elements]


class TestBuiltinManifestMerger:
    """Tests for the in-process manifest merge."""

    def test_adds_library_elements(self, temp_dir):
        target = temp_dir / "AndroidManifest.xml"
        target.write_text(manifest_xml("com.example.app"))
        library = temp_dir / "lib.xml"
        library.write_text(LIBRARY_MANIFEST)

        assert BuiltinManifestMerger().merge(target, [library])

        assert names(target, "uses-permission") == ["android.permission.INTERNET"]
        assert names(target, "service") == ["com.lib.SyncService"]
        assert names(target, "meta-data") == ["lib.key"]
        assert sorted(names(target, "activity")) == [
            ".MainActivity",
            "com.example.app.MainActivity",
            "com.lib.LibActivity",
        ]

    def test_target_elements_win(self, temp_dir):
        target = temp_dir / "AndroidManifest.xml"
        target.write_text(LIBRARY_MANIFEST.replace("com.lib", "com.example.app", 1))
        library = temp_dir / "lib.xml"
        library.write_text(LIBRARY_MANIFEST)

        BuiltinManifestMerger().merge(target, [library])

        assert names(target, "uses-permission") == ["android.permission.INTERNET"]
        assert names(target, "meta-data") == ["lib.key"]

    def test_no_libraries_is_a_no_op(self, temp_dir):
        target = temp_dir / "AndroidManifest.xml"
        target.write_text(manifest_xml("com.example.app"))
        before = target.read_text()

        assert not BuiltinManifestMerger().merge(target, [])
        assert target.read_text() == before

    def test_unparseable_library(self, temp_dir):
        target = temp_dir / "AndroidManifest.xml"
        target.write_text(manifest_xml("com.example.app"))
        library = temp_dir / "broken.xml"
        library.write_text("<manifest")
        with pytest.raises(ConfigurationError):
            BuiltinManifestMerger().merge(target, [library])


class TestSelectManifestMerger:
    """Tests for choosing the merger implementation."""

    def test_builtin_without_jar(self):
        merger = select_manifest_merger(ManifestConfig(), Path("java"), RecordingExecutor())
        assert isinstance(merger, BuiltinManifestMerger)

    def test_external_when_jar_present(self, temp_dir):
        jar = temp_dir / "manifest-merger.jar"
        jar.write_bytes(b"jar")
        executor = RecordingExecutor()
        merger = select_manifest_merger(ManifestConfig(merger_jar=jar), Path("java"), executor)

        assert isinstance(merger, ExternalManifestMerger)
        assert merger.merge(temp_dir / "AndroidManifest.xml", [temp_dir / "lib.xml"])
        arguments = executor.invocations[0].arguments
        assert arguments[:3] == ("-cp", str(jar), "com.android.manifmerger.Merger")
        assert "--libs" in arguments

    def test_builtin_forced(self, temp_dir):
        jar = temp_dir / "manifest-merger.jar"
        jar.write_bytes(b"jar")
        config = ManifestConfig(merger="builtin", merger_jar=jar)
        assert isinstance(
            select_manifest_merger(config, Path("java"), RecordingExecutor()),
            BuiltinManifestMerger,
        )

    def test_external_requested_without_jar(self, temp_dir):
        config = ManifestConfig(merger="external", merger_jar=temp_dir / "missing.jar")
        with pytest.raises(ConfigurationError):
            select_manifest_merger(config, Path("java"), RecordingExecutor())


class TestUpdateManifest:
    """Tests for version and debuggable rewriting."""

    def test_sets_attributes(self, temp_dir):
        manifest = temp_dir / "AndroidManifest.xml"
        manifest.write_text(manifest_xml("com.example.app"))

        assert update_manifest(manifest, version_code=1002003, version_name="1.2.3", debuggable=True)

        root = ET.parse(manifest).getroot()
        assert root.get(f"{{{ANDROID_NS}}}versionCode") == "1002003"
        assert root.get(f"{{{ANDROID_NS}}}versionName") == "1.2.3"
        assert root.find("application").get(f"{{{ANDROID_NS}}}debuggable") == "true"

    def test_unchanged_manifest_is_not_rewritten(self, temp_dir):
        manifest = temp_dir / "AndroidManifest.xml"
        manifest.write_text(manifest_xml("com.example.app"))
        update_manifest(manifest, version_code=7)
        before = manifest.read_text()

        assert not update_manifest(manifest, version_code=7)
        assert not update_manifest(manifest)
        assert manifest.read_text() == before


class TestVersionGenerator:
    """Tests for version code generation."""

    @pytest.mark.parametrize(
        "version,expected",
        [
            ("1.2.3", 1002003),
            ("1.2.3-SNAPSHOT", 1002003),
            ("1.2", 1002000),
            ("1", 1000000),
            ("1.2.3.4", 1002003),
            ("12.345.678", 12345678),
        ],
    )
    def test_default_layout(self, version, expected):
        assert VersionGenerator().generate(version) == expected

    def test_custom_digits(self):
        assert VersionGenerator("2;2;2").generate("1.2.3") == 10203

    def test_naming_pattern(self):
        generator = VersionGenerator("4,3,3", r"^(\d+)\.(\d+)(?:\.(\d+))?")
        assert generator.generate("3.14-beta") == 3014000
        assert generator.generate("3.14.15-beta") == 3014015

    def test_pattern_must_match(self):
        generator = VersionGenerator(naming_pattern=r"^v(\d+)")
        with pytest.raises(ConfigurationError):
            generator.generate("1.0")

    def test_element_too_large(self):
        with pytest.raises(ConfigurationError):
            VersionGenerator().generate("1.1000.0")

    def test_code_too_large(self):
        with pytest.raises(ConfigurationError):
            VersionGenerator("10").generate("3000000000")

    @pytest.mark.parametrize("digits", ["0", "6,6", "a,b", "4,,3"])
    def test_invalid_digits(self, digits):
        with pytest.raises(ConfigurationError):
            VersionGenerator(digits)

    def test_invalid_pattern(self):
        with pytest.raises(ConfigurationError):
            VersionGenerator(naming_pattern="(unclosed")

    def test_empty_element(self):
        with pytest.raises(ConfigurationError):
            VersionGenerator().generate("1..2")
