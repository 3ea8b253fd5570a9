"""Tests for build dependency resolution."""

import pytest

from shipyard.dependencies import (
    dependency_install_command,
    generator_strategy,
    list_build_dependencies,
    template_strategy,
)
from shipyard.errors import NoDependencyInstallMethodError
from shipyard.platforms.schema import PlatformSchema
from shipyard.projects.schema import ComponentSchema


def component(name, build_requires=()):
    return ComponentSchema(name=name, build_requires=list(build_requires))


class TestListBuildDependencies:
    """Tests for list_build_dependencies."""

    def test_excludes_in_project_components(self):
        """Components satisfied inside the project are not external deps."""
        components = [
            component("A", ["B", "libfoo"]),
            component("B", ["libbar"]),
        ]
        assert list_build_dependencies(components) == {"libfoo", "libbar"}

    def test_no_components(self):
        """An empty project has no build dependencies."""
        assert list_build_dependencies([]) == set()

    def test_duplicates_collapse(self):
        """A dependency shared by components is listed once."""
        components = [component("A", ["gcc"]), component("B", ["gcc", "make"])]
        assert list_build_dependencies(components) == {"gcc", "make"}

    def test_self_requirement_ignored(self):
        """A component requiring itself adds nothing."""
        assert list_build_dependencies([component("A", ["A", "zlib"])]) == {"zlib"}


class TestInstallStrategies:
    """Tests for the ranked install command strategies."""

    def test_template_with_suffix(self):
        """Should compose command, sorted deps and suffix."""
        platform = PlatformSchema(
            name="el-9",
            build_dependencies={"command": "yum install -y", "suffix": "--nogpgcheck"},
        )
        command = template_strategy(platform, {"zlib", "gcc"})
        assert command == "yum install -y gcc zlib --nogpgcheck"

    def test_template_absent(self):
        """Should not apply without a template."""
        assert template_strategy(PlatformSchema(name="el-9"), {"gcc"}) is None

    def test_generator_uses_package_manager(self):
        """Should ask the platform's package manager for the command."""
        platform = PlatformSchema(name="debian-12", package_manager="apt")
        command = generator_strategy(platform, {"make", "gcc"})
        assert "apt-get install" in command
        assert command.endswith("gcc make")

    def test_template_outranks_generator(self):
        """The template is used when both methods are available."""
        platform = PlatformSchema(
            name="el-9",
            package_manager="dnf",
            build_dependencies={"command": "custom-install"},
        )
        assert dependency_install_command(platform, {"gcc"}) == "custom-install gcc"

    def test_generator_used_without_template(self):
        """Falls back to the generator."""
        platform = PlatformSchema(name="alpine-3", package_manager="apk")
        assert dependency_install_command(platform, {"gcc"}) == "apk add --no-cache gcc"

    def test_no_method_raises(self):
        """A platform with no install method is a fatal error."""
        platform = PlatformSchema(name="bare")
        with pytest.raises(NoDependencyInstallMethodError) as exc_info:
            dependency_install_command(platform, {"gcc"})
        assert exc_info.value.platform_name == "bare"
        assert exc_info.value.code == "no_dependency_install_method"

    def test_custom_strategies(self):
        """Callers can supply their own ranking."""
        platform = PlatformSchema(name="el-9")
        strategies = [lambda p, deps: None, lambda p, deps: f"pkg {p.name}"]
        assert dependency_install_command(platform, {"gcc"}, strategies) == "pkg el-9"
