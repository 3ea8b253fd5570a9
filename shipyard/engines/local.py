"""Direct engine: build on a named host without provisioning anything.

When the target is this machine, commands run in the local working
directory and nothing needs shipping.
"""

from __future__ import annotations

import glob
import logging
import shutil
from pathlib import Path

from shipyard.engines.base import RemoteEngine
from shipyard.errors import ProvisioningError
from shipyard.process import run_command
from shipyard.types import EngineKind

logger = logging.getLogger(__name__)

LOCAL_TARGETS = frozenset({"localhost", "127.0.0.1", "::1"})


class LocalEngine(RemoteEngine):
    """Engine for a caller-supplied build host."""

    name = EngineKind.LOCAL.value

    @property
    def runs_in_place(self) -> bool:
        return self.target in LOCAL_TARGETS

    def _acquire(self) -> str:
        if not self.target:
            raise ProvisioningError(f"The {self.name} engine needs a target host")
        if self.runs_in_place:
            self._remote_workdir = str(self.workdir)
        return self.target

    def dispatch(self, command: str, timeout: float | None = None) -> str:
        if not self.runs_in_place:
            return super().dispatch(command, timeout)
        logger.info("Executing locally: %s", command)
        result = run_command(
            ["/bin/sh", "-c", command],
            cwd=self.workdir,
            timeout=self._command_timeout(timeout),
            display=command,
        )
        return result.output

    def ship_workdir(self, workdir: Path) -> None:
        if self.runs_in_place:
            logger.debug("Building in place, nothing to ship")
            return
        super().ship_workdir(workdir)

    def _fetch(self, remote_path: str, local_dir: Path) -> None:
        if not self.runs_in_place:
            super()._fetch(remote_path, local_dir)
            return
        for match in sorted(glob.glob(remote_path)):
            source = Path(match)
            if source.resolve().parent == local_dir.resolve():
                continue
            if source.is_dir():
                shutil.copytree(source, local_dir / source.name, dirs_exist_ok=True)
            else:
                shutil.copy2(source, local_dir / source.name)


__all__ = ["LOCAL_TARGETS", "LocalEngine"]
