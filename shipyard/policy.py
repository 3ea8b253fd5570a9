"""Preservation policy: what a finished build leaves behind."""

from __future__ import annotations

from dataclasses import dataclass

from shipyard.types import LEASED_ENGINES, PreservePolicy


@dataclass(frozen=True)
class CleanupPlan:
    """Cleanup to perform once a pipeline ends.

    Attributes:
        cleanup_workdir: Remove the local working directory.
        teardown_engine: Tear the engine down regardless of its kind.
    """

    cleanup_workdir: bool
    teardown_engine: bool


def cleanup_plan(policy: PreservePolicy, succeeded: bool) -> CleanupPlan:
    """Decide what to clean up for a policy and build outcome.

    ``never`` keeps nothing; ``on-failure`` removes the workdir of a failed
    build; ``always`` keeps everything. Leased engines are released
    separately, see ``always_teardown``.
    """
    if policy is PreservePolicy.NEVER:
        return CleanupPlan(cleanup_workdir=True, teardown_engine=True)
    if policy is PreservePolicy.ON_FAILURE:
        return CleanupPlan(cleanup_workdir=not succeeded, teardown_engine=False)
    return CleanupPlan(cleanup_workdir=False, teardown_engine=False)


def always_teardown(engine_name: str) -> bool:
    """Whether an engine holds leased resources that must always be released."""
    return engine_name in LEASED_ENGINES


__all__ = ["CleanupPlan", "always_teardown", "cleanup_plan"]
