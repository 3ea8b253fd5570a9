"""Hardware pool engine.

Leases one host out of the platform's ``build_hosts``. Leases are
exclusive file locks under ``settings.lock_dir``, one per host, so two
builds on the same machine never share a host.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path

from shipyard.engines.base import RemoteEngine
from shipyard.errors import ProvisioningError
from shipyard.types import EngineKind

logger = logging.getLogger(__name__)

# Seconds between sweeps over a fully leased pool
POLL_INTERVAL = 5.0


@dataclass
class HostLease:
    """An exclusively locked pool host."""

    host: str
    fd: int


def _lock_path(lock_dir: Path, host: str) -> Path:
    safe_host = host.replace(":", "_").replace("/", "_")[:64]
    return lock_dir / f"host_{safe_host}.lock"


def try_lease(lock_dir: Path, host: str) -> HostLease | None:
    """Lock ``host`` without blocking.

    Returns:
        The lease, or None if another build holds the host.
    """
    lock_dir.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(_lock_path(lock_dir, host)), os.O_RDWR | os.O_CREAT, 0o600)
    try:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        os.close(fd)
        return None
    os.ftruncate(fd, 0)
    os.write(fd, f"{os.getpid()} {time.time():.0f}\n".encode())
    return HostLease(host=host, fd=fd)


def lease_host(
    lock_dir: Path,
    hosts: list[str],
    timeout: float,
    poll_interval: float = POLL_INTERVAL,
) -> HostLease:
    """Lease the first free host, waiting up to ``timeout`` seconds.

    Raises:
        ProvisioningError: If every host stays leased until the deadline.
    """
    deadline = time.monotonic() + timeout
    while True:
        for host in hosts:
            lease = try_lease(lock_dir, host)
            if lease is not None:
                logger.debug("Leased %s", host)
                return lease
        if time.monotonic() >= deadline:
            raise ProvisioningError(
                f"No free host in pool {', '.join(hosts)} after {timeout} seconds",
                code="pool_exhausted",
            )
        logger.info("All %d pool host(s) busy, waiting", len(hosts))
        time.sleep(poll_interval)


def release_host(lease: HostLease) -> None:
    fcntl.flock(lease.fd, fcntl.LOCK_UN)
    os.close(lease.fd)
    logger.debug("Released %s", lease.host)


class HardwareEngine(RemoteEngine):
    """Engine leasing a dedicated host from a hardware pool."""

    name = EngineKind.HARDWARE.value

    def _acquire(self) -> str:
        if not self.platform.build_hosts:
            raise ProvisioningError(f"Platform {self.platform.name} has no build hosts")
        lease = lease_host(
            self.settings.lock_dir,
            self.platform.build_hosts,
            timeout=self.settings.lease_timeout,
        )
        self._lease = lease
        return lease.host

    def _release(self, lease: HostLease) -> None:
        release_host(lease)


__all__ = ["HardwareEngine", "HostLease", "lease_host", "release_host", "try_lease"]
