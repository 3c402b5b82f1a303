"""Unit tests for package assembly, native libraries and signing."""

import zipfile
from pathlib import Path

import pytest

from apkforge.conflicts import ConflictSource, ServicesResourceTransformer
from apkforge.core.config import ApkConfig
from apkforge.core.exceptions import ConfigurationError, ConflictError, DuplicateFileError
from apkforge.models.artifact import ArtifactCoordinate, ArtifactKind, UnpackedArtifact
from apkforge.models.package import SigningState
from apkforge.packaging import (
    ApkSigner,
    NativeLibrarySet,
    PackageAssembler,
    ProjectOutput,
    collect_native_libraries,
    discover_dex_files,
)
from apkforge.packaging.signing import DEBUG_KEY_ALIAS, check_release_signing

from conftest import RecordingExecutor, write_tree, write_zip

PROJECT = "com.example:app:1.2.3"


@pytest.fixture
def dex_dir(temp_dir):
    return write_tree(
        temp_dir / "dex",
        {"classes.dex": b"dex1", "classes2.dex": b"dex2", "classes3.dex": b"dex3"},
    )


@pytest.fixture
def project_output(temp_dir):
    resource_package = write_zip(
        temp_dir / "app.ap_",
        {
            "AndroidManifest.xml": b"<binary manifest>",
            "resources.arsc": b"table",
            "res/layout/main.xml": b"<layout>",
        },
    )
    classes = write_tree(
        temp_dir / "classes",
        {
            "com/example/app/Main.class": b"\xca\xfe",
            "res/values/strings.xml": "project strings",
            "config/app.properties": "project=1",
        },
    )
    return ProjectOutput(PROJECT, resource_package=resource_package, classes_directory=classes)


def jar(temp_dir, name, entries):
    path = write_zip(temp_dir / "jars" / f"{name}.jar", entries)
    return ConflictSource(f"com.lib:{name}:1.0", path)


def zip_names(path: Path) -> list[str]:
    with zipfile.ZipFile(path) as zf:
        return zf.namelist()


class TestDiscoverDexFiles:
    """Tests for secondary dex discovery."""

    def test_finds_consecutive_dex_files(self, dex_dir):
        assert [p.name for p in discover_dex_files(dex_dir)] == [
            "classes.dex",
            "classes2.dex",
            "classes3.dex",
        ]

    def test_stops_at_first_gap(self, dex_dir):
        (dex_dir / "classes2.dex").unlink()
        assert [p.name for p in discover_dex_files(dex_dir)] == ["classes.dex"]

    def test_no_primary_dex(self, temp_dir):
        assert discover_dex_files(temp_dir) == []


class TestPackageAssembler:
    """Tests for building and writing the package manifest."""

    def test_project_copy_wins_and_loser_goes_to_side_artifact(
        self, temp_dir, project_output, dex_dir
    ):
        side = temp_dir / "duplicate-resources.jar"
        library = jar(temp_dir, "lib", {"res/values/strings.xml": "library strings"})
        assembler = PackageAssembler(duplicates_artifact=side)

        manifest = assembler.assemble(project_output, [library], NativeLibrarySet(), dex_dir)
        apk = assembler.write(manifest, temp_dir / "out" / "app.apk")

        with zipfile.ZipFile(apk) as zf:
            assert zf.read("res/values/strings.xml") == b"project strings"
        assert [e.relative_path for e in manifest.duplicates] == ["res/values/strings.xml"]
        with zipfile.ZipFile(side) as zf:
            assert zf.namelist() == ["com.lib_lib_1.0/res/values/strings.xml"]
            assert zf.read("com.lib_lib_1.0/res/values/strings.xml") == b"library strings"

    def test_dex_files_written_first_and_classes_excluded(
        self, temp_dir, project_output, dex_dir
    ):
        assembler = PackageAssembler()
        manifest = assembler.assemble(project_output, [], NativeLibrarySet(), dex_dir)
        names = zip_names(assembler.write(manifest, temp_dir / "app.apk"))

        assert names[:3] == ["classes.dex", "classes2.dex", "classes3.dex"]
        assert "AndroidManifest.xml" in names
        assert "resources.arsc" in names
        assert not any(name.endswith(".class") for name in names)
        assert names == manifest.paths()

    def test_unique_path_from_two_sources_is_fatal(self, temp_dir, project_output, dex_dir):
        rogue = jar(temp_dir, "rogue", {"AndroidManifest.xml": b"<other>"})
        with pytest.raises(DuplicateFileError) as exc_info:
            PackageAssembler().assemble(project_output, [rogue], NativeLibrarySet(), dex_dir)
        assert exc_info.value.path == "AndroidManifest.xml"
        assert exc_info.value.first_source == f"{PROJECT}:resources"
        assert exc_info.value.second_source == "com.lib:rogue:1.0"

    def test_jar_dex_collides_with_produced_dex(self, temp_dir, project_output, dex_dir):
        rogue = jar(temp_dir, "rogue", {"classes2.dex": b"foreign"})
        with pytest.raises(DuplicateFileError) as exc_info:
            PackageAssembler().assemble(project_output, [rogue], NativeLibrarySet(), dex_dir)
        assert exc_info.value.first_source == f"{PROJECT}:dex"

    def test_strict_mode_fails_on_conflict(self, temp_dir, project_output, dex_dir):
        library = jar(temp_dir, "lib", {"res/values/strings.xml": "library strings"})
        with pytest.raises(ConflictError):
            PackageAssembler(strict=True).assemble(
                project_output, [library], NativeLibrarySet(), dex_dir
            )

    def test_transformer_merges_all_copies(self, temp_dir, project_output, dex_dir):
        side = temp_dir / "duplicate-resources.jar"
        first = jar(temp_dir, "one", {"META-INF/services/com.api.Plugin": "com.one.Plugin\n"})
        second = jar(temp_dir, "two", {"META-INF/services/com.api.Plugin": "com.two.Plugin\n"})
        assembler = PackageAssembler(
            duplicates_artifact=side,
            transformers=[ServicesResourceTransformer()],
            meta_inf_includes=["META-INF/services/*"],
        )

        manifest = assembler.assemble(project_output, [first, second], NativeLibrarySet(), dex_dir)
        apk = assembler.write(manifest, temp_dir / "app.apk")

        with zipfile.ZipFile(apk) as zf:
            assert zf.read("META-INF/services/com.api.Plugin") == b"com.one.Plugin\ncom.two.Plugin\n"
        assert manifest.duplicates == []
        assert not side.exists()

    def test_meta_inf_includes_skip_signatures(self, temp_dir, project_output, dex_dir):
        library = jar(
            temp_dir,
            "signed",
            {
                "META-INF/MANIFEST.MF": "Manifest-Version: 1.0",
                "META-INF/CERT.SF": "sig",
                "META-INF/CERT.RSA": b"rsa",
                "META-INF/LICENSE.txt": "license",
            },
        )
        manifest = PackageAssembler(meta_inf_includes=["META-INF/*"]).assemble(
            project_output, [library], NativeLibrarySet(), dex_dir
        )
        assert list(manifest.meta_inf) == ["META-INF/LICENSE.txt"]

    def test_meta_inf_dropped_without_includes(self, temp_dir, project_output, dex_dir):
        library = jar(temp_dir, "lib", {"META-INF/LICENSE.txt": "license"})
        manifest = PackageAssembler().assemble(
            project_output, [library], NativeLibrarySet(), dex_dir
        )
        assert manifest.meta_inf == {}
        assert "META-INF/LICENSE.txt" not in manifest.entries

    def test_excluded_jar_contributes_nothing(self, temp_dir, project_output, dex_dir):
        library = jar(temp_dir, "annotations", {"res/values/strings.xml": "ignored"})
        manifest = PackageAssembler(exclude_jar_resources=[r"^annotations"]).assemble(
            project_output, [library], NativeLibrarySet(), dex_dir
        )
        assert manifest.duplicates == []
        assert manifest.entries["res/values/strings.xml"].source == PROJECT

    def test_native_libraries_written_under_lib(self, temp_dir, project_output, dex_dir):
        natives = NativeLibrarySet()
        library = temp_dir / "natives" / "libfoo.so"
        library.parent.mkdir()
        library.write_bytes(b"ELF")
        natives.add("x86", library, "project")

        assembler = PackageAssembler()
        manifest = assembler.assemble(project_output, [], natives, dex_dir)
        names = zip_names(assembler.write(manifest, temp_dir / "app.apk"))

        assert names[-1] == "lib/x86/libfoo.so"

    def test_output_is_deterministic(self, temp_dir, project_output, dex_dir):
        library = jar(temp_dir, "lib", {"res/values/strings.xml": "library strings"})
        assembler = PackageAssembler()

        first = assembler.write(
            assembler.assemble(project_output, [library], NativeLibrarySet(), dex_dir),
            temp_dir / "first.apk",
        )
        second = assembler.write(
            assembler.assemble(project_output, [library], NativeLibrarySet(), dex_dir),
            temp_dir / "second.apk",
        )

        assert first.read_bytes() == second.read_bytes()

    def test_disjoint_sources_contribute_every_entry(self, temp_dir, project_output, dex_dir):
        """Without overlaps, the package holds each source's entries exactly once."""
        libraries = [
            jar(temp_dir, "one", {"one/a.txt": "a", "one/b.txt": "b"}),
            jar(temp_dir, "two", {"two/c.txt": "c"}),
            jar(temp_dir, "three", {"three/d.txt": "d", "three/e.txt": "e", "three/f.txt": "f"}),
        ]
        project_paths = [
            "AndroidManifest.xml",
            "resources.arsc",
            "res/layout/main.xml",
            "res/values/strings.xml",
            "config/app.properties",
        ]
        library_paths = [
            "one/a.txt", "one/b.txt", "two/c.txt", "three/d.txt", "three/e.txt", "three/f.txt",
        ]
        assembler = PackageAssembler()

        manifest = assembler.assemble(project_output, libraries, NativeLibrarySet(), dex_dir)
        names = zip_names(assembler.write(manifest, temp_dir / "app.apk"))

        assert manifest.duplicates == []
        assert sorted(manifest.entries) == sorted(project_paths + library_paths)
        assert manifest.entry_count == 3 + len(project_paths) + len(library_paths)
        assert len(names) == len(set(names)) == manifest.entry_count
        assert {manifest.entries[p].source for p in library_paths} == {
            "com.lib:one:1.0",
            "com.lib:two:1.0",
            "com.lib:three:1.0",
        }

    def test_first_declared_dependency_wins_without_project_copy(self, temp_dir, dex_dir):
        classes = write_tree(temp_dir / "bare-classes", {"com/example/app/Main.class": b"\xca\xfe"})
        project = ProjectOutput(PROJECT, classes_directory=classes)
        first = jar(temp_dir, "first", {"res/values/strings.xml": "first strings"})
        second = jar(temp_dir, "second", {"res/values/strings.xml": "second strings"})
        side = temp_dir / "duplicate-resources.jar"
        assembler = PackageAssembler(duplicates_artifact=side)

        manifest = assembler.assemble(project, [first, second], NativeLibrarySet(), dex_dir)
        apk = assembler.write(manifest, temp_dir / "app.apk")

        assert manifest.entries["res/values/strings.xml"].source == "com.lib:first:1.0"
        assert [e.sources for e in manifest.duplicates] == [
            ["com.lib:first:1.0", "com.lib:second:1.0"]
        ]
        with zipfile.ZipFile(apk) as zf:
            assert zf.read("res/values/strings.xml") == b"first strings"
        with zipfile.ZipFile(side) as zf:
            assert zf.namelist() == ["com.lib_second_1.0/res/values/strings.xml"]
            assert zf.read("com.lib_second_1.0/res/values/strings.xml") == b"second strings"


class TestNativeLibraries:
    """Tests for native library precedence."""

    def _unpacked(self, temp_dir, name, arch, files):
        root = write_tree(temp_dir / "staging" / name, {f"jni/{arch}/{f}": b"lib" for f in files})
        return UnpackedArtifact(
            coordinate=ArtifactCoordinate.parse(f"com.lib:{name}:1.0"),
            kind=ArtifactKind.AAR,
            root=root,
            classes_root=root / "classes",
            native_libs={arch: root / "jni" / arch},
        )

    def test_precedence(self, temp_dir):
        prebuilt = write_tree(temp_dir / "libs", {"armeabi-v7a/libshared.so": b"prebuilt"})
        ndk_out = write_tree(
            temp_dir / "ndk-libs",
            {"armeabi-v7a/libshared.so": b"ndk", "armeabi-v7a/libndk.so": b"ndk"},
        )
        dependency = self._unpacked(temp_dir, "widget", "armeabi-v7a", ["libndk.so", "libwidget.so"])

        natives = collect_native_libraries(prebuilt, ndk_out, [dependency], project=PROJECT)

        assert natives.origin("armeabi-v7a", "libshared.so") == f"{PROJECT}:prebuilt"
        assert natives.origin("armeabi-v7a", "libndk.so") == f"{PROJECT}:ndk-build"
        assert natives.origin("armeabi-v7a", "libwidget.so") == "com.lib:widget:1.0"
        assert natives.as_mapping()["armeabi-v7a"]["libshared.so"].read_bytes() == b"prebuilt"
        assert len(natives) == 3

    def test_only_shared_libraries_are_collected(self, temp_dir):
        prebuilt = write_tree(
            temp_dir / "libs",
            {"x86/libkeep.so": b"so", "x86/libstatic.a": b"a", "x86/notes.txt": "x", "README": ""},
        )
        natives = collect_native_libraries(prebuilt, None)
        assert natives.architectures == ["x86"]
        assert list(natives.as_mapping()["x86"]) == ["libkeep.so"]

    def test_missing_roots(self, temp_dir):
        natives = collect_native_libraries(None, temp_dir / "absent")
        assert len(natives) == 0

    def test_add_reports_shadowing(self, temp_dir):
        natives = NativeLibrarySet()
        library = write_tree(temp_dir, {"libx.so": b"x"}) / "libx.so"
        assert natives.add("x86", library, "first")
        assert not natives.add("x86", library, "second")
        assert natives.add("x86_64", library, "second")


class TestSigning:
    """Tests for package signing."""

    def test_unsigned_runs_nothing(self, temp_dir):
        executor = RecordingExecutor()
        signer = ApkSigner(Path("apksigner"), executor, ApkConfig())
        assert not signer.sign(temp_dir / "app.apk", SigningState.UNSIGNED)
        assert executor.invocations == []

    def test_debug_signing(self, temp_dir):
        executor = RecordingExecutor()
        signer = ApkSigner(Path("apksigner"), executor, ApkConfig())

        assert signer.sign(temp_dir / "app.apk", SigningState.DEBUG)

        arguments = executor.invocations[0].arguments
        assert arguments[0] == "sign"
        assert DEBUG_KEY_ALIAS in arguments
        assert arguments[-1] == str(temp_dir / "app.apk")

    def test_release_signing(self, temp_dir):
        executor = RecordingExecutor()
        config = ApkConfig(
            signing="release",
            keystore=temp_dir / "release.jks",
            key_alias="upload",
            keystore_password="secret",
            key_password="keysecret",
        )
        ApkSigner(Path("apksigner"), executor, config).sign(temp_dir / "app.apk", SigningState.RELEASE)

        arguments = list(executor.invocations[0].arguments)
        assert arguments[:7] == [
            "sign", "--ks", str(temp_dir / "release.jks"), "--ks-key-alias", "upload",
            "--ks-pass", "pass:secret",
        ]
        assert arguments[7:9] == ["--key-pass", "pass:keysecret"]

    def test_release_without_keystore(self):
        with pytest.raises(ConfigurationError):
            check_release_signing(ApkConfig(signing="release", key_alias="upload"))
