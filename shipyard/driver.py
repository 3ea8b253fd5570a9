"""Build driver.

This module provides the top-level build API:
- BuildDriver.run(): build one project for one platform
- build_with_make(): ship generated build files to an engine and dispatch
- build_with_container(): build inside a locally built container image
- Cleanup according to the preservation policy, with leased engines
  always released

The driver owns its engine and its local working directory for the whole
run and releases both on every exit path.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from contextlib import ExitStack
from pathlib import Path

from shipyard.config import Settings, get_settings
from shipyard.dependencies import dependency_install_command, list_build_dependencies
from shipyard.engines import Engine, create_engine, select_engine_kind
from shipyard.errors import (
    CommandFailedError,
    InvalidProjectError,
    PlatformConfigError,
    ShipyardError,
    TimeoutExceededError,
)
from shipyard.platforms.schema import PlatformSchema
from shipyard.policy import always_teardown, cleanup_plan
from shipyard.process import run_command
from shipyard.projects.project import CONTAINER_BUILD_SCRIPT, CONTAINERFILE_NAME, Project
from shipyard.projects.schema import ComponentSchema
from shipyard.retry import retry_with_timeout
from shipyard.runtime import ContainerRuntime
from shipyard.types import BuildHostInfo, BuildMode, PreservePolicy

logger = logging.getLogger(__name__)

# Fixed paths used by containerized image builds
CONTAINER_REMOTE_WORKDIR = "/build"
CONTAINER_OUTPUT_DIR = "/output"
PACKAGING_WORKDIR_NAME = "package_build_files"

# Version used for image tags when the config directory is not a git checkout
STUB_VERSION = "0.0.0"

# Characters a container image repository name may not contain
INVALID_IMAGE_NAME_CHARS = re.compile(r"[^a-z0-9._-]+")


def version_from_git(repo_dir: Path) -> str:
    """Derive a version from the most recent tag reachable from HEAD.

    A ``v`` prefix is dropped and dashes become dots, so ``v1.2.0-3-gabc``
    yields ``1.2.0.3.gabc``.

    Args:
        repo_dir: Directory inside the git checkout.

    Returns:
        The version, or ``0.0.0`` if no tag can be described.
    """
    try:
        result = run_command(
            ["git", "-C", str(repo_dir), "describe", "--tags"], timeout=60
        )
    except (CommandFailedError, TimeoutExceededError):
        logger.warning(
            "%s is not a tagged git checkout, using stub version %s",
            repo_dir,
            STUB_VERSION,
        )
        return STUB_VERSION
    version = result.output.strip()
    if version.startswith("v"):
        version = version[1:]
    return version.replace("-", ".")


def image_name(name: str) -> str:
    """Lowercase ``name`` and replace what an image repository name rejects."""
    return INVALID_IMAGE_NAME_CHARS.sub("-", name.lower())


class BuildDriver:
    """Builds one project for one platform.

    Attributes:
        platform: Platform being built.
        project: Project being built.
        engine: Engine bound to this driver.
        preserve: Preservation policy.
        workdir: Local working directory, once created.
    """

    def __init__(
        self,
        platform: PlatformSchema,
        project: Project,
        settings: Settings | None = None,
        workdir: Path | None = None,
        engine: str | None = None,
        target: str | None = None,
        preserve: PreservePolicy | str | None = None,
        remote_workdir: str | None = None,
        build_mode: BuildMode = BuildMode.MAKE,
        only_build: list[str] | None = None,
        verbose: bool = False,
        skipcheck: bool = False,
        runtime: ContainerRuntime | None = None,
        registry: dict[str, type[Engine]] | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.log = log or logger
        self.platform = platform
        self.project = project
        # The project is built for the driver's platform.
        self.project.platform = platform
        self.build_mode = BuildMode(build_mode)
        self.preserve = PreservePolicy(preserve or self.settings.preserve)
        self.remote_workdir = remote_workdir
        self.runtime = runtime or ContainerRuntime(self.settings.container_runtime)

        self._requested_workdir = workdir
        self.workdir: Path | None = None

        self.project.settings["verbose"] = verbose
        self.project.settings["skipcheck"] = skipcheck
        if only_build:
            self.filter_out_components(only_build)

        kind = select_engine_kind(
            platform, engine=engine, target=target, default=self.settings.engine
        )
        self.engine = create_engine(
            kind,
            platform,
            target=target,
            remote_workdir=remote_workdir,
            settings=self.settings,
            registry=registry,
        )

    @property
    def timeout(self) -> int:
        return self.project.timeout or self.settings.timeout

    @property
    def retry_count(self) -> int:
        return self.project.retry_count or self.settings.retry_count

    def filter_out_components(self, only_build: list[str]) -> None:
        """Restrict the build to the named components and what they build against."""
        kept: dict[str, ComponentSchema] = {}
        for name in only_build:
            for component in self.project.filter_component(name):
                kept.setdefault(component.name, component)
        self.project.components = list(kept.values())
        self.log.info("Only building: %s", ", ".join(kept))

    def build_host_info(self) -> BuildHostInfo:
        return BuildHostInfo(name=self.engine.target_identity, engine=self.engine.name)

    def _validate_project(self) -> None:
        if not self.project.version:
            raise InvalidProjectError(
                f"Project {self.project.name} requires a version set, all is lost."
            )

    def _create_workdir(self) -> Path:
        if self._requested_workdir is not None:
            self._requested_workdir.mkdir(parents=True, exist_ok=True)
            self.workdir = self._requested_workdir
        else:
            tmp_dir = self.settings.tmp_dir
            if tmp_dir is not None:
                tmp_dir.mkdir(parents=True, exist_ok=True)
            self.workdir = Path(tempfile.mkdtemp(prefix="shipyard_", dir=tmp_dir))
        self.log.debug("Working directory is %s", self.workdir)
        return self.workdir

    def cleanup_workdir(self) -> None:
        if self.workdir is not None and self.workdir.exists():
            self.log.info("Removing working directory %s", self.workdir)
            shutil.rmtree(self.workdir, ignore_errors=True)

    def list_build_dependencies(self) -> set[str]:
        return list_build_dependencies(self.project.components)

    def install_build_dependencies(self) -> None:
        """Install the project's external build dependencies on the target.

        Only the dispatch is retried; a platform without an install method
        fails straight away.
        """
        dependencies = self.list_build_dependencies()
        if not dependencies:
            self.log.debug("No build dependencies to install")
            return
        command = dependency_install_command(self.platform, dependencies)
        retry_with_timeout(
            self.retry_count,
            self.timeout,
            lambda remaining: self.engine.dispatch(command, timeout=remaining),
        )

    def _finish(self, succeeded: bool, engine: Engine | None = None) -> None:
        """Apply the preservation policy once a pipeline has ended.

        The workdir is removed even when the engine teardown fails.
        """
        plan = cleanup_plan(self.preserve, succeeded)
        try:
            if engine is not None and plan.teardown_engine:
                engine.teardown()
        finally:
            if plan.cleanup_workdir:
                self.cleanup_workdir()

    def _finish_failed(self, engine: Engine | None = None) -> None:
        # The pipeline's own error is the one that propagates.
        try:
            self._finish(succeeded=False, engine=engine)
        except ShipyardError:
            self.log.exception("Cleanup after the failed build of %s failed", self.project.name)

    def _release_leased_engine(self, exc_type, exc, tb) -> bool:
        if always_teardown(self.engine.name):
            try:
                self.engine.teardown()
            except ShipyardError:
                if exc is None:
                    raise
                self.log.exception("Could not release the %s engine", self.engine.name)
        return False

    def build_with_make(self) -> None:
        """Build on the engine's target with the generated Makefile.

        Raises:
            InvalidProjectError: If the project has no version.
            ShipyardError: If any pipeline step fails; cleanup has run by
                the time it propagates.
        """
        self._validate_project()

        # With packaging disabled only the install step runs.
        make_target = f"{self.project.name}-project" if self.project.no_packaging else ""

        with ExitStack() as stack:
            stack.push(self._release_leased_engine)
            try:
                workdir = self._create_workdir()
                self.engine.startup(workdir)
                self.log.info("Target is %s", self.engine.target_identity)

                self.install_build_dependencies()
                self.project.fetch_sources(workdir, self.retry_count, self.timeout)

                self.project.make_makefile(workdir)
                self.project.make_bill_of_materials(workdir)
                if not self.project.no_packaging:
                    self.project.generate_packaging_artifacts(workdir)
                self.project.save_manifest()

                self.engine.ship_workdir(workdir)
                make = " ".join(p for p in (self.platform.make, make_target) if p)
                self.engine.dispatch(f"(cd {self.engine.remote_workdir}; {make})")
                self.engine.retrieve_artifact(
                    self.project.artifacts_to_fetch, self.project.no_packaging
                )
                self.project.publish_settings(self.platform)
            except Exception:
                self.log.exception(
                    "Build of %s for %s failed", self.project.name, self.platform.name
                )
                self._finish_failed(engine=self.engine)
                raise
            self._finish(succeeded=True, engine=self.engine)

    def build_with_container(self) -> None:
        """Build inside a locally built container image.

        Raises:
            InvalidProjectError: If the project has no version.
            PlatformConfigError: If the platform has no base image.
            ContainerRuntimeError: If no container runtime is usable.
        """
        self._validate_project()
        if not self.platform.has_base_container_image:
            raise PlatformConfigError(
                "The platform must specify the base container image "
                "that the project will be building from"
            )
        self.runtime.check_available()

        remote_workdir = self.remote_workdir or CONTAINER_REMOTE_WORKDIR
        try:
            workdir = self._create_workdir()
            packaging_workdir = workdir / PACKAGING_WORKDIR_NAME
            packaging_workdir.mkdir(parents=True, exist_ok=True)

            self.project.fetch_sources(
                workdir, self.retry_count, self.timeout, local_only=True
            )
            self.project.make_bill_of_materials(packaging_workdir)
            if not self.project.no_packaging:
                self.project.generate_packaging_artifacts(packaging_workdir)
            self.project.make_container_build_script(packaging_workdir, CONTAINER_OUTPUT_DIR)
            self.project.make_containerfile(workdir, remote_workdir)

            version = version_from_git(self.settings.configdir.resolve().parent)
            name_prefix = image_name(f"{self.project.name}-{version}-{self.platform.name}")
            image_tag = f"{name_prefix}:latest"
            self.runtime.build_image(workdir, image_tag, containerfile=CONTAINERFILE_NAME)

            output_path = self.settings.output_dir.resolve()
            output_path.mkdir(parents=True, exist_ok=True)
            self.runtime.run_container(
                f"{name_prefix}_container",
                image_tag,
                volumes={output_path: CONTAINER_OUTPUT_DIR},
                command=f"./{PACKAGING_WORKDIR_NAME}/{CONTAINER_BUILD_SCRIPT}",
            )
            self.project.publish_settings(self.platform)
        except Exception:
            self.log.exception(
                "Container build of %s for %s failed", self.project.name, self.platform.name
            )
            self._finish_failed()
            raise
        self._finish(succeeded=True)

    def render(self) -> Path:
        """Generate the build files locally without touching an engine.

        Returns:
            The working directory holding the rendered files.
        """
        self._validate_project()
        workdir = self._create_workdir()
        self.log.info("Rendering Makefile for %s", self.project.name)
        self.project.fetch_sources(workdir, self.retry_count, self.timeout)
        self.project.make_bill_of_materials(workdir)
        self.project.generate_packaging_artifacts(workdir)
        self.project.make_makefile(workdir)
        return workdir

    def run(self) -> None:
        """Run the pipeline selected by ``build_mode``."""
        if self.build_mode is BuildMode.CONTAINER_IMAGE:
            self.log.info("Building the project with a container image ...")
            self.build_with_container()
        else:
            self.log.info("Building the project with make ...")
            self.build_with_make()


__all__ = [
    "CONTAINER_OUTPUT_DIR",
    "CONTAINER_REMOTE_WORKDIR",
    "PACKAGING_WORKDIR_NAME",
    "BuildDriver",
    "image_name",
    "version_from_git",
]
