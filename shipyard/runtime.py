"""Local container runtime integration for containerized image builds."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from shipyard.errors import CommandFailedError, ContainerRuntimeError
from shipyard.process import run_command

logger = logging.getLogger(__name__)


class ContainerRuntime:
    """Thin wrapper over a docker-compatible CLI."""

    def __init__(self, executable: str = "docker", timeout: float | None = None) -> None:
        self.executable = executable
        self.timeout = timeout

    def check_available(self) -> str:
        """Verify the runtime is installed and answers.

        Returns:
            The runtime's version string.

        Raises:
            ContainerRuntimeError: If the runtime is missing or broken.
        """
        try:
            result = run_command([self.executable, "--version"], timeout=60)
        except CommandFailedError as e:
            raise ContainerRuntimeError(
                f"Container runtime '{self.executable}' is not usable: {e.output.strip() or e}",
                code="runtime_unavailable",
            ) from e
        version = result.output.strip()
        logger.debug("Using %s", version)
        return version

    def build_image(self, context_dir: Path, tag: str, containerfile: str | None = None) -> None:
        """Build an image from ``context_dir`` and tag it."""
        argv = [self.executable, "build", "--tag", tag]
        if containerfile:
            argv += ["--file", str(Path(context_dir) / containerfile)]
        argv.append(str(context_dir))
        logger.info("Building image %s from %s", tag, context_dir)
        run_command(argv, timeout=self.timeout)

    def run_container(
        self,
        name: str,
        tag: str,
        volumes: Mapping[Path | str, str],
        command: str,
    ) -> str:
        """Run ``command`` in a fresh container and remove it afterwards.

        Args:
            name: Container name.
            tag: Image to run.
            volumes: Local path to in-container path bind mounts.
            command: Shell command to run.

        Returns:
            The command's output.

        Raises:
            CommandFailedError: If the command exits non-zero.
        """
        argv = [self.executable, "run", "--rm", "--name", name]
        for local_path, container_path in volumes.items():
            argv += ["--volume", f"{local_path}:{container_path}"]
        argv += [tag, "/bin/sh", "-c", command]
        logger.info("Running %s in container %s", command, name)
        return run_command(argv, timeout=self.timeout).output


__all__ = ["ContainerRuntime"]
