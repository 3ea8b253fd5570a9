"""Shared fixtures for shipyard tests."""

from pathlib import Path

import pytest

from shipyard.config import Settings
from shipyard.platforms.schema import PlatformSchema
from shipyard.projects.project import Project
from shipyard.projects.schema import ProjectSchema


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every directory under tmp_path."""
    return Settings(
        configdir=tmp_path / "configs",
        output_dir=tmp_path / "output",
        tmp_dir=tmp_path / "scratch",
        lock_dir=tmp_path / "locks",
        pooler_url="http://pooler.example",
    )


@pytest.fixture
def platform() -> PlatformSchema:
    """A platform with a dependency install template and nothing to provision."""
    return PlatformSchema(
        name="el-9-x86_64",
        os_name="el",
        os_version="9",
        architecture="x86_64",
        build_dependencies={"command": "yum install -y"},
    )


@pytest.fixture
def project_data() -> dict:
    """A two-component project: app builds against lib."""
    return {
        "name": "demo",
        "version": "1.0.0",
        "settings": {"prefix": "/opt/demo"},
        "components": [
            {
                "name": "app",
                "version": "2.1",
                "build_requires": ["lib", "libfoo-devel"],
                "requires": ["glibc"],
                "configure": ["./configure --prefix=/opt/demo"],
                "build": ["make"],
                "check": ["make test"],
                "install": ["make install"],
            },
            {
                "name": "lib",
                "version": "0.9",
                "build_requires": ["libbar-devel"],
                "build": ["make"],
                "install": ["make install"],
            },
        ],
    }


@pytest.fixture
def project(project_data, platform, tmp_path: Path) -> Project:
    """The demo project bound to the test platform."""
    return Project(
        ProjectSchema.model_validate(project_data),
        platform,
        base_path=tmp_path / "configs",
        output_dir=tmp_path / "output",
    )
