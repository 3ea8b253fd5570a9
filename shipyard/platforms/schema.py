"""Pydantic models for platform definitions.

Platform files are YAML documents under ``<configdir>/platforms``. A
platform is read-only once loaded.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

PLATFORM_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.\-]+$")


def _join(deps: Iterable[str]) -> str:
    return " ".join(sorted(deps))


# Built-in dependency install commands keyed by package manager.
DEPENDENCY_INSTALLERS: dict[str, Callable[[Iterable[str]], str]] = {
    "apt": lambda deps: (
        "apt-get update -qq && DEBIAN_FRONTEND=noninteractive "
        f"apt-get install -y --no-install-recommends {_join(deps)}"
    ),
    "yum": lambda deps: f"yum install -y {_join(deps)}",
    "dnf": lambda deps: f"dnf install -y {_join(deps)}",
    "zypper": lambda deps: f"zypper -n install -y {_join(deps)}",
    "apk": lambda deps: f"apk add --no-cache {_join(deps)}",
    "brew": lambda deps: f"brew install {_join(deps)}",
}


class BuildDependenciesSchema(BaseModel):
    """Command template for installing build dependencies.

    Attributes:
        command: Command prefix, e.g. ``yum install -y``.
        suffix: Appended after the dependency list.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    command: str | None = Field(default=None, description="Install command prefix")
    suffix: str = Field(default="", description="Appended after the package list")


class CloudImageSchema(BaseModel):
    """Cloud image a build instance is launched from.

    Attributes:
        image_id: Machine image identifier.
        region: Cloud region.
        instance_type: Instance size.
        key_name: Key pair injected into the instance.
        subnet_id: Optional subnet.
        security_group_ids: Optional security groups.
        ssh_user: Login user on the instance.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    image_id: str = Field(min_length=1, description="Machine image identifier")
    region: str = Field(default="us-west-2", description="Cloud region")
    instance_type: str = Field(default="t3.large", description="Instance size")
    key_name: str | None = Field(default=None, description="Key pair name")
    subnet_id: str | None = Field(default=None, description="Subnet identifier")
    security_group_ids: list[str] = Field(default_factory=list)
    ssh_user: str | None = Field(default=None, description="Login user")


class PlatformSchema(BaseModel):
    """Complete platform definition.

    Attributes:
        name: Platform identifier, e.g. ``el-9-x86_64``.
        os_name: Operating system name.
        os_version: Operating system version.
        architecture: CPU architecture.
        make: Make command on the build host.
        mktemp: Command printing a fresh scratch directory on the build host.
        build_hosts: Hardware pool hosts.
        cloud: Cloud image to launch.
        docker_image: Image for the container engine.
        docker_run_args: Extra arguments for ``docker run``.
        base_docker_image: Base image for containerized image builds.
        pooler_template: Template requested from the scheduler pool.
        build_dependencies: Dependency install command template.
        package_manager: Package manager with a built-in install command.
        package_command: Command producing packages from the installed tree.
        ssh_port: ssh port on build hosts.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1, max_length=255, description="Platform identifier")
    os_name: str | None = Field(default=None)
    os_version: str | None = Field(default=None)
    architecture: str | None = Field(default=None)
    make: str = Field(default="make", description="Make command")
    mktemp: str = Field(default="mktemp -d -p /var/tmp")

    build_hosts: list[str] = Field(default_factory=list, description="Hardware pool")
    cloud: CloudImageSchema | None = Field(default=None, description="Cloud image")
    docker_image: str | None = Field(default=None, description="Container image")
    docker_run_args: list[str] = Field(default_factory=list)
    base_docker_image: str | None = Field(default=None)
    pooler_template: str | None = Field(default=None)

    build_dependencies: BuildDependenciesSchema | None = Field(default=None)
    package_manager: str | None = Field(default=None)
    package_command: str | None = Field(default=None)
    ssh_port: int = Field(default=22, ge=1, le=65535)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name matches safe pattern."""
        if not PLATFORM_NAME_PATTERN.match(v):
            raise ValueError(
                f"name must match pattern {PLATFORM_NAME_PATTERN.pattern}, got '{v}'"
            )
        return v

    @field_validator("package_manager")
    @classmethod
    def validate_package_manager(cls, v: str | None) -> str | None:
        """Validate package_manager has a built-in installer."""
        if v is not None and v not in DEPENDENCY_INSTALLERS:
            raise ValueError(
                f"package_manager must be one of {sorted(DEPENDENCY_INSTALLERS)}, got '{v}'"
            )
        return v

    @property
    def has_hardware_pool(self) -> bool:
        return bool(self.build_hosts)

    @property
    def has_cloud_image(self) -> bool:
        return self.cloud is not None

    @property
    def has_container_image(self) -> bool:
        return bool(self.docker_image)

    @property
    def has_base_container_image(self) -> bool:
        return bool(self.base_docker_image)

    @property
    def template(self) -> str:
        """Template name requested from the scheduler pool."""
        return self.pooler_template or self.name

    def install_build_dependencies(self, dependencies: Iterable[str]) -> str | None:
        """Generate the dependency install command for this platform.

        Args:
            dependencies: Package names to install.

        Returns:
            Full shell command, or None if the platform has no generator.
        """
        if self.package_manager is None:
            return None
        return DEPENDENCY_INSTALLERS[self.package_manager](dependencies)


__all__ = [
    "DEPENDENCY_INSTALLERS",
    "BuildDependenciesSchema",
    "CloudImageSchema",
    "PlatformSchema",
]
