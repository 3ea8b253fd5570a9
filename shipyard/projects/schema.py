"""Pydantic models for project definitions.

Project files are YAML documents under ``<configdir>/projects``. A project
names the components to build; each component declares its source, its
build steps and the external packages it needs at build time.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.+\-]+$")


class SourceSchema(BaseModel):
    """Where a component's source comes from.

    Exactly one of ``url``, ``git`` or ``path`` must be set.

    Attributes:
        url: Archive or file to download.
        sha256: Expected checksum of the download.
        git: Repository to clone.
        ref: Branch or tag to check out.
        path: Local file or directory, relative to the config directory.
    """

    model_config = ConfigDict(extra="forbid")

    url: str | None = Field(default=None)
    sha256: str | None = Field(default=None)
    git: str | None = Field(default=None)
    ref: str | None = Field(default=None)
    path: str | None = Field(default=None)

    @model_validator(mode="after")
    def validate_single_kind(self) -> SourceSchema:
        """Validate exactly one source kind is given."""
        kinds = [k for k in (self.url, self.git, self.path) if k]
        if len(kinds) != 1:
            raise ValueError("source must set exactly one of 'url', 'git' or 'path'")
        if self.sha256 and not self.url:
            raise ValueError("sha256 only applies to 'url' sources")
        return self

    @property
    def kind(self) -> str:
        if self.url:
            return "url"
        if self.git:
            return "git"
        return "path"

    @property
    def is_remote(self) -> bool:
        return self.kind != "path"


class ComponentSchema(BaseModel):
    """A single buildable component of a project.

    Attributes:
        name: Component name, unique within the project.
        version: Component version.
        source: Where the source comes from.
        build_requires: Packages (or in-project components) needed to build.
        requires: Runtime requirements of the finished package.
        configure: Commands run before building.
        build: Build commands.
        check: Test commands run between build and install.
        install: Install commands.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255)
    version: str | None = Field(default=None)
    source: SourceSchema | None = Field(default=None)
    build_requires: list[str] = Field(default_factory=list)
    requires: list[str] = Field(default_factory=list)
    configure: list[str] = Field(default_factory=list)
    build: list[str] = Field(default_factory=list)
    check: list[str] = Field(default_factory=list)
    install: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name matches safe pattern."""
        if not NAME_PATTERN.match(v):
            raise ValueError(f"name must match pattern {NAME_PATTERN.pattern}, got '{v}'")
        return v


class ProjectSchema(BaseModel):
    """Complete project definition.

    Attributes:
        name: Project name.
        version: Project version; required before a build starts.
        description: Optional longer description.
        homepage: Optional project homepage.
        no_packaging: Only install components, skip packaging.
        timeout: Seconds for retried operations (overrides settings).
        retry_count: Attempts for retried operations (overrides settings).
        artifacts_to_fetch: Extra remote paths retrieved after the build.
        settings: Free-form settings published per platform.
        components: Components to build.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=255)
    version: str | None = Field(default=None)
    description: str | None = Field(default=None)
    homepage: str | None = Field(default=None)
    no_packaging: bool = Field(default=False)
    timeout: int | None = Field(default=None, ge=1)
    retry_count: int | None = Field(default=None, ge=1)
    artifacts_to_fetch: list[str] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)
    components: list[ComponentSchema] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate name matches safe pattern."""
        if not NAME_PATTERN.match(v):
            raise ValueError(f"name must match pattern {NAME_PATTERN.pattern}, got '{v}'")
        return v

    @field_validator("components")
    @classmethod
    def validate_unique_components(
        cls, v: list[ComponentSchema]
    ) -> list[ComponentSchema]:
        """Validate component names are unique."""
        seen: set[str] = set()
        for component in v:
            if component.name in seen:
                raise ValueError(f"duplicate component '{component.name}'")
            seen.add(component.name)
        return v


__all__ = ["ComponentSchema", "ProjectSchema", "SourceSchema"]
