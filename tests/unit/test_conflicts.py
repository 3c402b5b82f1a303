"""Unit tests for conflict detection, merging, transformers and checks."""

import itertools
import zipfile

import pytest

from apkforge.conflicts import (
    AppendingTransformer,
    ConflictDetector,
    ConflictSource,
    ServicesResourceTransformer,
    build_transformers,
    find_conflicting_layouts,
    find_duplicate_packages,
    first_claim,
    merge_trees,
    read_manifest_package,
    side_artifact_name,
    write_duplicates,
)
from apkforge.conflicts.checks import report
from apkforge.core.exceptions import ConfigurationError, ResolutionError
from apkforge.models.package import Contribution

from conftest import manifest_xml, write_tree


@pytest.fixture
def three_sources(temp_dir, make_zip):
    """Two directories and a jar overlapping on res/values/strings.xml."""
    app = write_tree(
        temp_dir / "app",
        {"res/values/strings.xml": "app", "res/layout/main.xml": "<LinearLayout/>"},
    )
    lib = write_tree(
        temp_dir / "lib",
        {"res/values/strings.xml": "lib", "res/values/colors.xml": "<resources/>"},
    )
    jar = make_zip(
        "extra.jar",
        {"res/values/strings.xml": "jar", "META-INF/MANIFEST.MF": "Manifest-Version: 1.0"},
    )
    return [
        ConflictSource("com.example:app:1.0", app),
        ConflictSource("com.lib:lib:1.0", lib),
        ConflictSource("com.extra:extra:1.0", jar),
    ]


class TestConflictDetector:
    """Tests for duplicate path detection."""

    def test_finds_conflicts_in_precedence_order(self, three_sources):
        found = ConflictDetector().find_conflicts(three_sources)

        assert found == {
            "res/values/strings.xml": [
                "com.example:app:1.0",
                "com.lib:lib:1.0",
                "com.extra:extra:1.0",
            ]
        }

    def test_conflict_set_is_order_independent(self, three_sources):
        detector = ConflictDetector()
        expected = set(detector.find_conflicts(three_sources))
        for ordering in itertools.permutations(three_sources):
            assert set(detector.find_conflicts(ordering)) == expected

    def test_winner_is_first_contributor(self, three_sources):
        resolution = ConflictDetector().resolve(list(reversed(three_sources)))
        winner = resolution.winners["res/values/strings.xml"]

        assert winner.source == "com.extra:extra:1.0"
        assert winner.read_bytes() == b"jar"
        assert [c.source for c in resolution.losers("res/values/strings.xml")] == [
            "com.lib:lib:1.0",
            "com.example:app:1.0",
        ]

    def test_meta_inf_is_not_indexed_by_default(self, three_sources):
        resolution = ConflictDetector().index(three_sources)
        assert "META-INF/MANIFEST.MF" not in resolution.entries

    def test_meta_inf_indexed_when_not_always_merged(self, three_sources):
        resolution = ConflictDetector(always_merged=()).index(three_sources)
        assert "META-INF/MANIFEST.MF" in resolution.entries

    def test_entry_filter(self, three_sources):
        detector = ConflictDetector(entry_filter=lambda path: "layout" not in path)
        resolution = detector.index(three_sources)
        assert "res/layout/main.xml" not in resolution.entries
        assert "res/values/colors.xml" in resolution.entries

    def test_same_source_twice_is_not_a_conflict(self, temp_dir):
        jar = temp_dir / "twice.jar"
        with zipfile.ZipFile(jar, "w") as zf:
            zf.writestr("a.txt", "first")
            with pytest.warns(UserWarning):
                zf.writestr("a.txt", "second")

        resolution = ConflictDetector().index([ConflictSource("g:twice:1", jar)])

        assert resolution.conflicts == {}
        assert len(resolution.entries["a.txt"].contributors) == 1

    def test_missing_source_contributes_nothing(self, temp_dir):
        found = ConflictDetector().find_conflicts([ConflictSource("ghost", temp_dir / "none")])
        assert found == {}

    def test_corrupt_archive(self, temp_dir):
        broken = temp_dir / "broken.jar"
        broken.write_bytes(b"garbage")
        with pytest.raises(ResolutionError):
            ConflictDetector().index([ConflictSource("g:broken:1", broken)])


class TestSideArtifact:
    """Tests for the duplicate-resources side artifact."""

    def test_side_artifact_name(self):
        assert side_artifact_name("com.lib:lib:1.0", "res/a.xml") == "com.lib_lib_1.0/res/a.xml"

    def test_writes_only_losers(self, temp_dir, three_sources):
        resolution = ConflictDetector().resolve(three_sources)
        destination = temp_dir / "out" / "duplicates.jar"

        written = write_duplicates(destination, resolution.conflicts.values())

        assert written == destination
        with zipfile.ZipFile(destination) as zf:
            assert sorted(zf.namelist()) == [
                "com.extra_extra_1.0/res/values/strings.xml",
                "com.lib_lib_1.0/res/values/strings.xml",
            ]
            assert zf.read("com.lib_lib_1.0/res/values/strings.xml") == b"lib"

    def test_nothing_written_without_conflicts(self, temp_dir):
        assert write_duplicates(temp_dir / "dups.jar", []) is None
        assert not (temp_dir / "dups.jar").exists()


class TestMergeTrees:
    """Tests for first-writer-wins tree merging."""

    def test_first_contributor_wins(self, temp_dir, three_sources):
        destination = temp_dir / "merged"
        side = temp_dir / "dups.jar"

        result = merge_trees(three_sources, destination, side_artifact=side)

        assert (destination / "res/values/strings.xml").read_text() == "app"
        assert (destination / "res/values/colors.xml").exists()
        assert (destination / "META-INF/MANIFEST.MF").exists()
        assert [e.relative_path for e in result.duplicates] == ["res/values/strings.xml"]
        assert result.side_artifact == side
        assert result.copied == 4

    def test_destination_is_recreated(self, temp_dir, three_sources):
        destination = write_tree(temp_dir / "merged", {"stale.txt": "old"})
        merge_trees(three_sources, destination)
        assert not (destination / "stale.txt").exists()


class TestTransformers:
    """Tests for resource transformers."""

    def _contribution(self, temp_dir, name, content):
        path = temp_dir / name
        path.write_text(content)
        return Contribution(source=name, location=path)

    def test_services_merges_unique_providers(self, temp_dir):
        contributions = [
            self._contribution(temp_dir, "one", "com.a.Impl\n# comment\ncom.b.Impl\n"),
            self._contribution(temp_dir, "two", "com.b.Impl\ncom.c.Impl  # trailing\n"),
        ]
        merged = ServicesResourceTransformer().transform(
            "META-INF/services/com.api.Service", contributions
        )
        assert merged == b"com.a.Impl\ncom.b.Impl\ncom.c.Impl\n"

    def test_services_claims_only_provider_files(self):
        transformer = ServicesResourceTransformer()
        assert transformer.can_transform("META-INF/services/com.api.Service")
        assert not transformer.can_transform("META-INF/MANIFEST.MF")
        assert not transformer.can_transform("res/values/strings.xml")

    def test_appending_transformer(self, temp_dir):
        transformer = AppendingTransformer("*.properties")
        contributions = [
            self._contribution(temp_dir, "one", "a=1\n"),
            self._contribution(temp_dir, "two", "b=2"),
        ]
        assert transformer.can_transform("config/app.properties")
        assert transformer.transform("app.properties", contributions) == b"a=1\nb=2\n"

    def test_build_and_first_claim(self):
        transformers = build_transformers(["append:META-INF/services/*", "services"])
        claim = first_claim(transformers, "META-INF/services/x.Y")
        assert isinstance(claim, AppendingTransformer)
        assert first_claim(transformers, "res/a.xml") is None

    @pytest.mark.parametrize("name", ["shade", "append", "services:extra"])
    def test_unknown_transformer(self, name):
        with pytest.raises(ConfigurationError):
            build_transformers([name])


class TestChecks:
    """Tests for cross-library consistency checks."""

    def test_read_manifest_package(self, temp_dir):
        manifest = temp_dir / "AndroidManifest.xml"
        manifest.write_text(manifest_xml("com.sample"))
        assert read_manifest_package(manifest) == "com.sample"

    def test_manifest_without_package(self, temp_dir):
        manifest = temp_dir / "AndroidManifest.xml"
        manifest.write_text("<manifest/>")
        with pytest.raises(ConfigurationError):
            read_manifest_package(manifest)

    def test_duplicate_packages(self, temp_dir):
        manifests = []
        for identity, package in [("app", "com.x"), ("lib1", "com.y"), ("lib2", "com.x")]:
            path = temp_dir / identity / "AndroidManifest.xml"
            path.parent.mkdir()
            path.write_text(manifest_xml(package))
            manifests.append((identity, path))

        assert find_duplicate_packages(manifests) == {"com.x": ["app", "lib2"]}

    def test_conflicting_layouts(self, temp_dir):
        first = write_tree(temp_dir / "a", {"layout/main.xml": "", "layout-land/main.xml": ""})
        second = write_tree(temp_dir / "b", {"layout/main.xml": "", "values/strings.xml": ""})

        found = find_conflicting_layouts([("a", first), ("b", second), ("c", temp_dir / "none")])

        assert found == {"layout/main.xml": ["a", "b"]}

    def test_report_fails_only_when_asked(self):
        findings = {"com.x": ["app", "lib"]}
        report("Duplicate package", findings, fail=False)
        with pytest.raises(ConfigurationError):
            report("Duplicate package", findings, fail=True)
        report("Duplicate package", {}, fail=True)
