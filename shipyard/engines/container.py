"""Container engine: build inside a local, long-running container.

The container is started from the platform's ``docker_image`` and kept
alive with a no-op process; commands run through ``exec`` and files move
with ``cp``.
"""

from __future__ import annotations

import logging
import shlex
import uuid
from pathlib import Path

from shipyard.engines.base import Engine
from shipyard.errors import ProvisioningError
from shipyard.process import run_command
from shipyard.types import EngineKind

logger = logging.getLogger(__name__)


class ContainerEngine(Engine):
    """Engine running builds in a local container."""

    name = EngineKind.CONTAINER.value

    @property
    def runtime(self) -> str:
        return self.settings.container_runtime

    def _acquire(self) -> str:
        if not self.platform.docker_image:
            raise ProvisioningError(f"Platform {self.platform.name} has no container image")
        container = f"shipyard-{self.platform.name}-{uuid.uuid4().hex[:8]}"
        run_command(
            [
                self.runtime,
                "run",
                "--detach",
                "--name",
                container,
                *self.platform.docker_run_args,
                self.platform.docker_image,
                "tail",
                "-f",
                "/dev/null",
            ]
        )
        self._lease = container
        return container

    def _release(self, lease: str) -> None:
        run_command([self.runtime, "rm", "--force", lease])

    def dispatch(self, command: str, timeout: float | None = None) -> str:
        logger.info("Executing in %s: %s", self.target_identity, command)
        result = run_command(
            [self.runtime, "exec", str(self.target), "/bin/sh", "-c", command],
            timeout=self._command_timeout(timeout),
            display=command,
        )
        return result.output

    def ship_workdir(self, workdir: Path) -> None:
        logger.info("Copying %s into %s:%s", workdir, self.target, self.remote_workdir)
        self.dispatch(f"mkdir -p {shlex.quote(str(self.remote_workdir))}")
        run_command(
            [self.runtime, "cp", f"{Path(workdir)}/.", f"{self.target}:{self.remote_workdir}"],
            timeout=self.settings.command_timeout,
        )

    def _fetch(self, remote_path: str, local_dir: Path) -> None:
        listing = self.dispatch(f"ls -d {remote_path} 2>/dev/null || true")
        for path in listing.split():
            run_command(
                [self.runtime, "cp", f"{self.target}:{path}", f"{local_dir}/"],
                timeout=self.settings.command_timeout,
            )


__all__ = ["ContainerEngine"]
