"""Smoke tests for the CLI.

These tests verify CLI wiring without requiring build hosts, containers
or network access; pipelines are mocked at the driver.
"""

import json
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner

from shipyard import __version__
from shipyard.cli import app
from shipyard.errors import CommandFailedError

runner = CliRunner()


@pytest.fixture
def configdir(tmp_path, project_data):
    root = tmp_path / "configs"
    (root / "platforms").mkdir(parents=True)
    (root / "projects").mkdir()
    for name in ("el-8-x86_64", "el-9-x86_64"):
        (root / "platforms" / f"{name}.yaml").write_text(
            yaml.safe_dump({"package_manager": "dnf"})
        )
    (root / "projects" / "demo.yaml").write_text(yaml.safe_dump(project_data))
    return root


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Shipyard" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self) -> None:
        """CLI config should show configuration sections."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Paths:" in result.stdout
        assert "Retry budget:" in result.stdout
        assert "Default engine" in result.stdout

    def test_config_json(self) -> None:
        """CLI config --json should print parseable JSON."""
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert "engine" in data
        assert "pooler_token" not in data


class TestCLIInspect:
    """Test CLI inspect command."""

    def test_inspect_prints_components(self, configdir) -> None:
        """Should print the project's components as JSON."""
        result = runner.invoke(
            app, ["inspect", "demo", "el-9-x86_64", "--configdir", str(configdir)]
        )
        assert result.exit_code == 0
        components = json.loads(result.stdout)
        assert [c["name"] for c in components] == ["app", "lib"]

    def test_inspect_only_build(self, configdir) -> None:
        """--only-build narrows the listing."""
        result = runner.invoke(
            app,
            ["inspect", "demo", "el-9-x86_64", "-c", str(configdir), "--only-build", "lib"],
        )
        assert result.exit_code == 0
        assert [c["name"] for c in json.loads(result.stdout)] == ["lib"]

    def test_inspect_missing_platform(self, configdir) -> None:
        """An unknown platform exits non-zero."""
        result = runner.invoke(app, ["inspect", "demo", "aix-7", "-c", str(configdir)])
        assert result.exit_code == 1


class TestCLIBuild:
    """Test CLI build command."""

    def test_build_each_platform(self, configdir) -> None:
        """Every listed platform is built in turn."""
        with patch("shipyard.driver.BuildDriver.run") as run:
            result = runner.invoke(
                app,
                [
                    "build",
                    "demo",
                    "el-8-x86_64,el-9-x86_64",
                    "-c",
                    str(configdir),
                    "--target",
                    "builder",
                ],
            )
        assert result.exit_code == 0, result.stdout
        assert run.call_count == 2
        assert "Built demo for el-8-x86_64" in result.stdout
        assert "Built demo for el-9-x86_64" in result.stdout

    def test_build_options_reach_driver(self, configdir) -> None:
        """CLI flags are passed through to the driver."""
        with patch("shipyard.driver.BuildDriver") as driver_cls:
            driver_cls.return_value.build_host_info.return_value.name = "builder"
            driver_cls.return_value.build_host_info.return_value.engine = "local"
            result = runner.invoke(
                app,
                [
                    "build",
                    "demo",
                    "el-9-x86_64",
                    "-c",
                    str(configdir),
                    "--preserve",
                    "always",
                    "--with-docker",
                    "--only-build",
                    "app,lib",
                    "--skipcheck",
                ],
            )
        assert result.exit_code == 0, result.stdout
        kwargs = driver_cls.call_args.kwargs
        assert kwargs["preserve"].value == "always"
        assert kwargs["build_mode"].value == "container-image"
        assert kwargs["only_build"] == ["app", "lib"]
        assert kwargs["skipcheck"] is True

    def test_build_several_platforms_use_own_workdirs(self, configdir, tmp_path) -> None:
        """A shared --workdir is split per platform."""
        workdir = tmp_path / "work"
        with patch("shipyard.driver.BuildDriver") as driver_cls:
            driver_cls.return_value.build_host_info.return_value.name = "builder"
            driver_cls.return_value.build_host_info.return_value.engine = "local"
            result = runner.invoke(
                app,
                [
                    "build",
                    "demo",
                    "el-8-x86_64,el-9-x86_64",
                    "-c",
                    str(configdir),
                    "-w",
                    str(workdir),
                ],
            )
        assert result.exit_code == 0, result.stdout
        workdirs = [call.kwargs["workdir"] for call in driver_cls.call_args_list]
        assert workdirs == [workdir / "el-8-x86_64", workdir / "el-9-x86_64"]

    def test_build_failure_exits_nonzero(self, configdir) -> None:
        """A failed build exits 1 and stops."""
        with patch("shipyard.driver.BuildDriver.run") as run:
            run.side_effect = CommandFailedError("make", 2)
            result = runner.invoke(
                app,
                ["build", "demo", "el-8-x86_64,el-9-x86_64", "-c", str(configdir), "-t", "b"],
            )
        assert result.exit_code == 1
        assert run.call_count == 1
        assert "failed" in result.stdout

    def test_build_invalid_definition(self, configdir) -> None:
        """A definition failing validation exits 1."""
        (configdir / "platforms" / "broken.yaml").write_text("ssh_port: 0\n")
        result = runner.invoke(app, ["build", "demo", "broken", "-c", str(configdir)])
        assert result.exit_code == 1


class TestCLIRender:
    """Test CLI render command."""

    def test_render(self, configdir, tmp_path) -> None:
        """Render writes the Makefile into the requested workdir."""
        workdir = tmp_path / "rendered"
        result = runner.invoke(
            app,
            ["render", "demo", "el-9-x86_64", "-c", str(configdir), "-w", str(workdir)],
        )
        assert result.exit_code == 0, result.stdout
        assert (workdir / "Makefile").is_file()

    def test_render_several_platforms_use_own_workdirs(self, configdir, tmp_path) -> None:
        """Each platform renders into its own subdirectory of the workdir."""
        workdir = tmp_path / "rendered"
        result = runner.invoke(
            app,
            [
                "render",
                "demo",
                "el-8-x86_64,el-9-x86_64",
                "-c",
                str(configdir),
                "-w",
                str(workdir),
            ],
        )
        assert result.exit_code == 0, result.stdout
        assert (workdir / "el-8-x86_64" / "Makefile").is_file()
        assert (workdir / "el-9-x86_64" / "Makefile").is_file()
        assert not (workdir / "Makefile").exists()
