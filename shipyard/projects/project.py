"""Project build collaborator.

A ``Project`` wraps a validated ``ProjectSchema`` for one platform and
produces everything the driver ships to a build host: staged sources, the
Makefile, the bill of materials, packaging metadata, the containerized
build script and the published manifest/settings documents.
"""

from __future__ import annotations

import json
import logging
import shlex
from dataclasses import dataclass
from datetime import datetime, timezone
from graphlib import CycleError, TopologicalSorter
from pathlib import Path
from typing import Any

import httpx
import yaml

from shipyard.errors import InvalidProjectError
from shipyard.platforms.schema import PlatformSchema
from shipyard.projects.fetch import fetch_commands, fetch_source
from shipyard.projects.schema import ComponentSchema, ProjectSchema
from shipyard.retry import retry_with_timeout

logger = logging.getLogger(__name__)

MAKEFILE_NAME = "Makefile"
BOM_NAME = "bill-of-materials"
CONTAINER_BUILD_SCRIPT = "build_package.sh"
CONTAINERFILE_NAME = "Containerfile"
OUTPUT_DIR_NAME = "output"


@dataclass
class FetchedSource:
    """A component source staged in the workdir."""

    component: str
    kind: str
    path: Path


class Project:
    """Mutable project descriptor bound to one platform.

    Attributes:
        name: Project name.
        version: Project version (may be unset until validated).
        components: Components to build; may be narrowed by filtering.
        no_packaging: Skip packaging, only install.
        timeout: Retry budget override in seconds.
        retry_count: Retry attempt override.
        settings: Settings published per platform.
        platform: Platform the project is built for.
    """

    def __init__(
        self,
        schema: ProjectSchema,
        platform: PlatformSchema,
        base_path: Path | None = None,
        output_dir: Path | None = None,
    ) -> None:
        self.schema = schema
        self.platform = platform
        self.name = schema.name
        self.version = schema.version
        self.components: list[ComponentSchema] = list(schema.components)
        self.no_packaging = schema.no_packaging
        self.timeout = schema.timeout
        self.retry_count = schema.retry_count
        self.settings: dict[str, Any] = dict(schema.settings)
        self.base_path = base_path or Path.cwd()
        self.output_dir = output_dir or Path.cwd() / OUTPUT_DIR_NAME
        self._artifacts_to_fetch = list(schema.artifacts_to_fetch)

    @property
    def artifacts_to_fetch(self) -> list[str]:
        """Remote paths to retrieve after the build, beyond the output dir."""
        return list(self._artifacts_to_fetch)

    @property
    def package_basename(self) -> str:
        return f"{self.name}-{self.version}.{self.platform.name}"

    def get_component(self, name: str) -> ComponentSchema:
        for component in self.components:
            if component.name == name:
                return component
        raise InvalidProjectError(
            f"Project {self.name} has no component named '{name}'",
            code="unknown_component",
        )

    def filter_component(self, name: str) -> list[ComponentSchema]:
        """Return a component plus the in-project components it builds against.

        Args:
            name: Component to keep.

        Returns:
            The component and its transitive in-project build requirements.

        Raises:
            InvalidProjectError: If no component has that name.
        """
        by_name = {c.name: c for c in self.schema.components}
        if name not in by_name:
            raise InvalidProjectError(
                f"Project {self.name} has no component named '{name}'",
                code="unknown_component",
            )

        selected: dict[str, ComponentSchema] = {}
        pending = [name]
        while pending:
            current = by_name[pending.pop()]
            if current.name in selected:
                continue
            selected[current.name] = current
            pending.extend(r for r in current.build_requires if r in by_name)
        return list(selected.values())

    def build_order(self) -> list[ComponentSchema]:
        """Components ordered so in-project build requirements come first."""
        by_name = {c.name: c for c in self.components}
        graph = {
            c.name: [r for r in c.build_requires if r in by_name and r != c.name]
            for c in self.components
        }
        try:
            order = list(TopologicalSorter(graph).static_order())
        except CycleError as e:
            raise InvalidProjectError(
                f"Circular build requirements in {self.name}: {e.args[1]}",
                code="dependency_cycle",
            ) from e
        return [by_name[n] for n in order]

    def fetch_sources(
        self,
        workdir: Path,
        retry_count: int = 1,
        timeout: float = 7200,
        local_only: bool = False,
    ) -> list[FetchedSource]:
        """Stage every component source under ``workdir/<component>``.

        Each source gets its own retry budget.

        Args:
            workdir: Local working directory.
            retry_count: Attempts per source.
            timeout: Seconds per source, all attempts included.
            local_only: Only stage local sources; remote ones are fetched by
                the containerized build script.

        Returns:
            The staged sources.
        """
        fetched: list[FetchedSource] = []
        with httpx.Client(follow_redirects=True) as client:
            for component in self.components:
                source = component.source
                if source is None:
                    continue
                if local_only and source.is_remote:
                    logger.debug("Deferring %s source of %s", source.kind, component.name)
                    continue

                dest = workdir / component.name
                logger.info("Fetching %s source for %s", source.kind, component.name)
                retry_with_timeout(
                    retry_count,
                    timeout,
                    lambda remaining, s=source, d=dest: fetch_source(
                        s, d, self.base_path, client=client, timeout=remaining
                    ),
                )
                fetched.append(FetchedSource(component.name, source.kind, dest))
        return fetched

    @property
    def build_steps(self) -> tuple[str, ...]:
        """Component steps in the order they run; check is dropped by skipcheck."""
        if self.settings.get("skipcheck"):
            return ("configure", "build", "install")
        return ("configure", "build", "check", "install")

    def make_makefile(self, workdir: Path) -> Path:
        """Write the Makefile that builds, installs and packages the project."""
        project_target = f"{self.name}-project"
        lines = [
            f"# Generated by shipyard for {self.name} {self.version} on {self.platform.name}",
            "",
            f".PHONY: all package {project_target}",
            "",
            "all: package",
            "",
            f"package: {project_target}",
            f"\tmkdir -p {OUTPUT_DIR_NAME}",
            f"\t{self._package_command()}",
            "",
            f"{project_target}: "
            + " ".join(f"{c.name}-install" for c in self.build_order()),
            "",
        ]

        in_project = {c.name for c in self.components}
        for component in self.build_order():
            deps = [
                f"{r}-install"
                for r in component.build_requires
                if r in in_project and r != component.name
            ]
            previous = deps
            for step in self.build_steps:
                target = f"{component.name}-{step}"
                lines.append(f"{target}: {' '.join(previous)}".rstrip())
                lines.append(f"\tmkdir -p {component.name}")
                for command in getattr(component, step):
                    lines.append(f"\tcd {component.name} && {command}")
                lines.append(f"\ttouch {target}")
                lines.append("")
                previous = [target]

        path = workdir / MAKEFILE_NAME
        path.write_text("\n".join(lines), encoding="utf-8")
        logger.debug("Wrote %s", path)
        return path

    def _package_command(self) -> str:
        if self.platform.package_command:
            return self.platform.package_command
        archive = f"{OUTPUT_DIR_NAME}/{self.package_basename}.tar.gz"
        return f"tar -czf {archive} --exclude=./{OUTPUT_DIR_NAME} ."

    def make_bill_of_materials(self, workdir: Path) -> Path:
        """Write the bill of materials: one line per component."""
        lines = []
        for component in sorted(self.components, key=lambda c: c.name):
            origin = ""
            if component.source is not None:
                source = component.source
                origin = source.url or source.git or source.path or ""
                if source.ref:
                    origin = f"{origin}#{source.ref}"
            lines.append(" ".join(p for p in (component.name, component.version, origin) if p))

        workdir.mkdir(parents=True, exist_ok=True)
        path = workdir / BOM_NAME
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    def generate_packaging_artifacts(self, workdir: Path) -> Path:
        """Write the package description consumed by the package step."""
        requires = sorted({r for c in self.components for r in c.requires})
        description = {
            "name": self.name,
            "version": self.version,
            "platform": self.platform.name,
            "description": self.schema.description,
            "homepage": self.schema.homepage,
            "requires": requires,
            "components": [c.name for c in self.build_order()],
        }
        packaging_dir = workdir / "packaging"
        packaging_dir.mkdir(parents=True, exist_ok=True)
        path = packaging_dir / f"{self.name}.yaml"
        path.write_text(yaml.safe_dump(description, sort_keys=False), encoding="utf-8")
        return path

    def build_manifest(self) -> dict[str, Any]:
        """Describe what was built, for the published manifest."""
        return {
            "project": self.name,
            "version": self.version,
            "platform": self.platform.name,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "components": {
                c.name: {
                    "version": c.version,
                    "source": c.source.model_dump(exclude_none=True) if c.source else None,
                }
                for c in self.components
            },
        }

    def save_manifest(self) -> Path:
        """Write the build manifest JSON into the output directory."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"{self.package_basename}.json"
        path.write_text(json.dumps(self.build_manifest(), indent=2), encoding="utf-8")
        logger.info("Saved manifest to %s", path)
        return path

    def publish_settings(self, platform: PlatformSchema) -> Path:
        """Write the project settings for ``platform`` as YAML."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"{self.name}-{self.version}.{platform.name}.settings.yaml"
        path.write_text(yaml.safe_dump(self.settings, sort_keys=True), encoding="utf-8")
        logger.info("Published settings to %s", path)
        return path

    def make_container_build_script(self, workdir: Path, output_dir: str) -> Path:
        """Write the script run inside the build image.

        The script fetches deferred remote sources, runs every component's
        steps in build order, packages unless packaging is disabled, and
        copies ``output/`` to ``output_dir``.
        """
        lines = ["#!/bin/sh", "set -e", ""]
        for component in self.build_order():
            if component.source is not None and component.source.is_remote:
                lines.extend(fetch_commands(component.source, component.name))
        for component in self.build_order():
            lines.append(f"mkdir -p {component.name}")
            for step in self.build_steps:
                for command in getattr(component, step):
                    lines.append(f"(cd {component.name} && {command})")
        lines.append(f"mkdir -p {OUTPUT_DIR_NAME}")
        if not self.no_packaging:
            lines.append(self._package_command())
        lines.append(f"cp -r {OUTPUT_DIR_NAME}/. {shlex.quote(output_dir)}/")

        workdir.mkdir(parents=True, exist_ok=True)
        path = workdir / CONTAINER_BUILD_SCRIPT
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        path.chmod(0o755)
        return path

    def make_containerfile(self, workdir: Path, remote_workdir: str) -> Path:
        """Write the Containerfile for the build image."""
        if not self.platform.base_docker_image:
            raise InvalidProjectError(
                f"Platform {self.platform.name} has no base container image",
                code="missing_base_image",
            )
        lines = [
            f"FROM {self.platform.base_docker_image}",
            f"COPY . {remote_workdir}",
            f"WORKDIR {remote_workdir}",
        ]
        path = workdir / CONTAINERFILE_NAME
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    def component_list(self) -> list[dict[str, Any]]:
        """Resolved components, as plain data for inspection output."""
        return [c.model_dump(exclude_none=True) for c in self.components]


__all__ = [
    "BOM_NAME",
    "CONTAINERFILE_NAME",
    "CONTAINER_BUILD_SCRIPT",
    "MAKEFILE_NAME",
    "FetchedSource",
    "Project",
]
