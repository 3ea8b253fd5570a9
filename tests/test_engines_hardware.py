"""Tests for the hardware pool engine and its host leases."""

from unittest.mock import patch

import pytest

from shipyard.engines.hardware import HardwareEngine, lease_host, release_host, try_lease
from shipyard.errors import CommandFailedError, ProvisioningError
from shipyard.platforms.schema import PlatformSchema
from shipyard.process import CommandResult


@pytest.fixture
def pool_platform():
    return PlatformSchema(name="el-9-x86_64", build_hosts=["rack1", "rack2"])


class TestHostLeases:
    """Tests for the file-lock based host leases."""

    def test_lease_is_exclusive(self, tmp_path):
        """A leased host cannot be leased again until released."""
        lease = try_lease(tmp_path, "rack1")
        assert lease is not None
        assert try_lease(tmp_path, "rack1") is None

        release_host(lease)
        again = try_lease(tmp_path, "rack1")
        assert again is not None
        release_host(again)

    def test_lease_host_skips_busy_hosts(self, tmp_path):
        """The first free host in the pool is leased."""
        busy = try_lease(tmp_path, "rack1")
        try:
            lease = lease_host(tmp_path, ["rack1", "rack2"], timeout=0)
            assert lease.host == "rack2"
            release_host(lease)
        finally:
            release_host(busy)

    def test_pool_exhausted(self, tmp_path):
        """Should give up once the deadline passes with every host busy."""
        busy = try_lease(tmp_path, "rack1")
        try:
            with pytest.raises(ProvisioningError) as exc_info:
                lease_host(tmp_path, ["rack1"], timeout=0, poll_interval=0)
            assert exc_info.value.code == "pool_exhausted"
        finally:
            release_host(busy)

    def test_host_names_are_sanitized(self, tmp_path):
        """Hosts with ports or slashes still map to a lock file."""
        lease = try_lease(tmp_path, "10.0.0.1:2222")
        assert lease is not None
        assert list(tmp_path.glob("host_10.0.0.1_2222.lock"))
        release_host(lease)


class TestHardwareEngine:
    """Tests for HardwareEngine."""

    def test_startup_leases_a_host(self, pool_platform, settings, tmp_path):
        """Startup leases a pool host and creates the remote workdir over ssh."""
        engine = HardwareEngine(pool_platform, settings=settings)
        with patch("shipyard.engines.base.run_command") as run:
            run.return_value = CommandResult("mktemp", 0, "/var/tmp/tmp.abc\n")
            engine.startup(tmp_path)

        assert engine.target == "rack1"
        assert engine.remote_workdir == "/var/tmp/tmp.abc"
        assert try_lease(settings.lock_dir, "rack1") is None

        engine.teardown()
        lease = try_lease(settings.lock_dir, "rack1")
        assert lease is not None
        release_host(lease)

    def test_no_build_hosts(self, settings, tmp_path):
        """A platform without hosts cannot use the hardware engine."""
        engine = HardwareEngine(PlatformSchema(name="el-9"), settings=settings)
        with pytest.raises(ProvisioningError):
            engine.startup(tmp_path)

    def test_mktemp_failure_keeps_lease_for_teardown(self, pool_platform, settings, tmp_path):
        """A host leased before a failure is still released by teardown."""
        engine = HardwareEngine(pool_platform, settings=settings)
        with patch("shipyard.engines.base.run_command") as run:
            run.side_effect = CommandFailedError("mktemp", 255)
            with pytest.raises(ProvisioningError):
                engine.startup(tmp_path)

        engine.teardown()
        lease = try_lease(settings.lock_dir, "rack1")
        assert lease is not None
        release_host(lease)
