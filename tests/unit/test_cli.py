"""Tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from apkforge import __version__
from apkforge.cli import app
from apkforge.core.config import get_config

from conftest import write_tree


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def descriptor(temp_dir, project_dir):
    path = project_dir / "apkforge.json"
    path.write_text(
        json.dumps(
            {
                "project": {"group_id": "org.sample", "artifact_id": "demo", "version": "2.0"},
                "proguard": {"skip": True},
            }
        )
    )
    return path


class TestVersion:
    """Tests for version output."""

    def test_version_flag(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"apkforge v{__version__}" in result.output


class TestVersionCode:
    """Tests for the version-code command."""

    def test_default_digits(self, runner):
        result = runner.invoke(app, ["version-code", "1.2.3"])
        assert result.exit_code == 0
        assert result.output.strip() == "1002003"

    def test_custom_digits_and_pattern(self, runner):
        result = runner.invoke(
            app, ["version-code", "v2.5-beta", "--digits", "2,2", "--pattern", r"v(\d+)\.(\d+)"]
        )
        assert result.exit_code == 0
        assert result.output.strip() == "205"

    def test_invalid_digits(self, runner):
        result = runner.invoke(app, ["version-code", "1.2.3", "-d", "9,9"])
        assert result.exit_code == 1


class TestConflicts:
    """Tests for the conflicts command."""

    def test_no_conflicts(self, runner, temp_dir):
        first = write_tree(temp_dir / "a", {"res/one.xml": ""})
        second = write_tree(temp_dir / "b", {"res/two.xml": ""})

        result = runner.invoke(app, ["conflicts", str(first), str(second)])

        assert result.exit_code == 0
        assert "No conflicts found" in result.output

    def test_reports_conflicts(self, runner, temp_dir):
        first = write_tree(temp_dir / "a", {"res/same.xml": "a"})
        second = write_tree(temp_dir / "b", {"res/same.xml": "b"})

        result = runner.invoke(app, ["conflicts", str(first), str(second)])

        assert result.exit_code == 0
        assert "1 Conflicting Paths" in result.output

    def test_strict_fails_on_conflict(self, runner, temp_dir):
        first = write_tree(temp_dir / "a", {"res/same.xml": "a"})
        second = write_tree(temp_dir / "b", {"res/same.xml": "b"})

        result = runner.invoke(app, ["conflicts", "--strict", str(first), str(second)])

        assert result.exit_code == 1


class TestConfigCommands:
    """Tests for commands reading a project descriptor."""

    def test_show_config(self, runner, descriptor):
        result = runner.invoke(app, ["config", "--config", str(descriptor)])
        assert result.exit_code == 0
        assert '"artifact_id": "demo"' in result.output

    def test_invalid_descriptor(self, runner, temp_dir):
        broken = temp_dir / "broken.json"
        broken.write_text("{")
        result = runner.invoke(app, ["config", "--config", str(broken)])
        assert result.exit_code == 2

    def test_build_with_unknown_phase(self, runner, descriptor):
        result = runner.invoke(app, ["build", "--config", str(descriptor), "--until", "install"])
        assert result.exit_code == 2
        assert "Unknown phase 'install'" in result.output
        assert "Build failed" not in result.output

    def test_verbose_leaves_cached_config_untouched(self, runner, project_dir, monkeypatch):
        monkeypatch.chdir(project_dir)
        monkeypatch.setenv("APKFORGE_LOG_LEVEL", "INFO")
        get_config.cache_clear()
        try:
            cached = get_config()
            result = runner.invoke(app, ["build", "--verbose", "--until", "install"])

            assert result.exit_code == 2
            assert get_config() is cached
            assert cached.log_level == "INFO"
        finally:
            get_config.cache_clear()
