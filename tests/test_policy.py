"""Tests for the preservation policy."""

import pytest

from shipyard.policy import always_teardown, cleanup_plan
from shipyard.types import PreservePolicy


class TestCleanupPlan:
    """Tests for cleanup_plan."""

    @pytest.mark.parametrize(
        ("policy", "succeeded", "cleanup_workdir", "teardown_engine"),
        [
            (PreservePolicy.NEVER, True, True, True),
            (PreservePolicy.NEVER, False, True, True),
            (PreservePolicy.ON_FAILURE, True, False, False),
            (PreservePolicy.ON_FAILURE, False, True, False),
            (PreservePolicy.ALWAYS, True, False, False),
            (PreservePolicy.ALWAYS, False, False, False),
        ],
    )
    def test_matrix(self, policy, succeeded, cleanup_workdir, teardown_engine):
        """Each policy and outcome maps to a fixed plan."""
        plan = cleanup_plan(policy, succeeded)
        assert plan.cleanup_workdir is cleanup_workdir
        assert plan.teardown_engine is teardown_engine


class TestAlwaysTeardown:
    """Tests for always_teardown."""

    @pytest.mark.parametrize("name", ["hardware", "cloud"])
    def test_leased_engines(self, name):
        """Leased or billed engines are always released."""
        assert always_teardown(name) is True

    @pytest.mark.parametrize("name", ["container", "local", "scheduler-pool"])
    def test_other_engines(self, name):
        """Other engines follow the policy."""
        assert always_teardown(name) is False
