"""Build engine interface.

An engine is where build commands run. Every engine acquires a build
target in ``startup``, runs shell commands with ``dispatch``, moves the
working tree there and back, and releases whatever it acquired in
``teardown``.

``RemoteEngine`` implements the ssh/rsync transport shared by every engine
whose target is a reachable host.
"""

from __future__ import annotations

import logging
import shlex
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any, ClassVar

from shipyard.config import Settings, get_settings
from shipyard.errors import (
    CommandFailedError,
    ProvisioningError,
    ShipyardError,
    TimeoutExceededError,
)
from shipyard.platforms.schema import PlatformSchema
from shipyard.process import run_command

logger = logging.getLogger(__name__)

OUTPUT_DIR_NAME = "output"


class Engine(ABC):
    """Base class for build engines.

    Attributes:
        name: Engine tag, as registered.
        platform: Platform being built.
        target: Build host, once known.
        settings: Application settings.
    """

    name: ClassVar[str]

    def __init__(
        self,
        platform: PlatformSchema,
        target: str | None = None,
        remote_workdir: str | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.platform = platform
        self.target = target
        self.settings = settings or get_settings()
        self._remote_workdir = remote_workdir
        self._workdir: Path | None = None
        # Handle on whatever was provisioned; None means nothing to release.
        self._lease: Any = None

    @property
    def target_identity(self) -> str:
        """Human-readable identity of the build host."""
        return self.target or ""

    @property
    def remote_workdir(self) -> str | None:
        return self._remote_workdir

    @property
    def workdir(self) -> Path:
        if self._workdir is None:
            raise ShipyardError(f"{self.name} engine has not been started")
        return self._workdir

    def startup(self, workdir: Path) -> None:
        """Acquire the build target and prepare the remote working directory.

        Args:
            workdir: Local working directory.

        Raises:
            ProvisioningError: If the target cannot be acquired or prepared.
        """
        self._workdir = Path(workdir)
        logger.info("Starting %s engine for %s", self.name, self.platform.name)
        try:
            self.target = self._acquire()
            if self._remote_workdir is None:
                self._remote_workdir = self._make_remote_workdir()
        except ProvisioningError:
            raise
        except (CommandFailedError, TimeoutExceededError, OSError) as e:
            raise ProvisioningError(
                f"Could not start {self.name} engine for {self.platform.name}: {e}"
            ) from e
        logger.info("Remote workdir on %s is %s", self.target_identity, self._remote_workdir)

    @abstractmethod
    def _acquire(self) -> str:
        """Provision the build target and return its host name."""

    def _release(self, lease: Any) -> None:
        """Release a lease taken in ``_acquire``."""

    def _command_timeout(self, timeout: float | None) -> float | None:
        return self.settings.command_timeout if timeout is None else timeout

    def _make_remote_workdir(self) -> str:
        return self.dispatch(self.platform.mktemp).strip()

    @abstractmethod
    def dispatch(self, command: str, timeout: float | None = None) -> str:
        """Run a shell command on the build target.

        Args:
            command: Shell command line.
            timeout: Seconds before the command is killed; defaults to
                ``command_timeout`` from the settings.

        Returns:
            The command's combined output.

        Raises:
            CommandFailedError: If the command exits non-zero.
        """

    @abstractmethod
    def ship_workdir(self, workdir: Path) -> None:
        """Copy the local working tree into the remote workdir."""

    @abstractmethod
    def _fetch(self, remote_path: str, local_dir: Path) -> None:
        """Copy ``remote_path`` (may be a glob) into ``local_dir``."""

    def retrieve_artifact(self, patterns: Iterable[str], no_packaging: bool) -> Path:
        """Copy built output back into ``<workdir>/output``.

        Args:
            patterns: Remote paths or globs to retrieve.
            no_packaging: When unset, the remote ``output/`` contents are
                retrieved too.

        Returns:
            The local output directory.
        """
        output_dir = self.workdir / OUTPUT_DIR_NAME
        output_dir.mkdir(parents=True, exist_ok=True)

        paths = list(patterns)
        if not no_packaging:
            paths.append(f"{self.remote_workdir}/{OUTPUT_DIR_NAME}/*")
        for path in paths:
            logger.info("Retrieving %s from %s", path, self.target_identity)
            self._fetch(path, output_dir)
        return output_dir

    def teardown(self) -> None:
        """Release the build target.

        Safe to call repeatedly and on an engine that never started.
        """
        if self._lease is None:
            logger.debug("Nothing to tear down for %s engine", self.name)
            return
        lease, self._lease = self._lease, None
        logger.info("Tearing down %s engine target %s", self.name, self.target_identity)
        try:
            self._release(lease)
        except (CommandFailedError, TimeoutExceededError, OSError) as e:
            raise ProvisioningError(
                f"Could not release {self.name} target {self.target_identity}: {e}",
                code="teardown_failed",
            ) from e


class RemoteEngine(Engine):
    """Engine whose build target is reached over ssh and rsync."""

    @property
    def ssh_user(self) -> str:
        return self.settings.ssh_user

    @property
    def ssh_port(self) -> int:
        return self.platform.ssh_port

    def ssh_options(self) -> list[str]:
        options = [
            "ssh",
            "-p",
            str(self.ssh_port),
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "UserKnownHostsFile=/dev/null",
            "-o",
            "BatchMode=yes",
        ]
        if self.settings.ssh_key:
            options += ["-i", str(self.settings.ssh_key)]
        return options

    @property
    def destination(self) -> str:
        return f"{self.ssh_user}@{self.target}"

    def dispatch(self, command: str, timeout: float | None = None) -> str:
        logger.info("Executing on %s: %s", self.target_identity, command)
        result = run_command(
            [*self.ssh_options(), self.destination, command],
            timeout=self._command_timeout(timeout),
            display=command,
        )
        return result.output

    def ship_workdir(self, workdir: Path) -> None:
        logger.info("Shipping %s to %s:%s", workdir, self.target_identity, self.remote_workdir)
        run_command(
            [
                "rsync",
                "-rHlv",
                "--no-perms",
                "--no-owner",
                "--no-group",
                "-e",
                shlex.join(self.ssh_options()),
                f"{Path(workdir)}/",
                f"{self.destination}:{self.remote_workdir}",
            ],
            timeout=self.settings.command_timeout,
        )

    def _fetch(self, remote_path: str, local_dir: Path) -> None:
        run_command(
            [
                "rsync",
                "-rHlv",
                "-O",
                "--no-perms",
                "--no-owner",
                "--no-group",
                "-e",
                shlex.join(self.ssh_options()),
                f"{self.destination}:{remote_path}",
                f"{local_dir}/",
            ],
            timeout=self.settings.command_timeout,
        )


__all__ = ["OUTPUT_DIR_NAME", "Engine", "RemoteEngine"]
