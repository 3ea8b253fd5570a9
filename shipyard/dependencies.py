"""Build dependency resolution.

Works out which external packages must be installed on the build host
and how to install them. Install commands come from a ranked list of
strategies; the first one that applies wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Protocol

from shipyard.errors import NoDependencyInstallMethodError
from shipyard.platforms.schema import PlatformSchema

logger = logging.getLogger(__name__)


class HasBuildRequires(Protocol):
    name: str
    build_requires: list[str]


def list_build_dependencies(components: Iterable[HasBuildRequires]) -> set[str]:
    """Return the build requirements not satisfied inside the project.

    Args:
        components: Project components.

    Returns:
        Union of every component's ``build_requires`` minus the names of
        all components in the project.
    """
    components = list(components)
    required = {dep for c in components for dep in c.build_requires}
    return required - {c.name for c in components}


InstallStrategy = Callable[[PlatformSchema, set[str]], "str | None"]


def template_strategy(platform: PlatformSchema, dependencies: set[str]) -> str | None:
    """Compose ``<command> <sorted deps> <suffix>`` from the platform template."""
    template = platform.build_dependencies
    if template is None or not template.command:
        return None
    parts = [template.command, " ".join(sorted(dependencies)), template.suffix]
    return " ".join(p for p in parts if p)


def generator_strategy(platform: PlatformSchema, dependencies: set[str]) -> str | None:
    """Ask the platform to generate the full install command."""
    return platform.install_build_dependencies(dependencies)


# Tried in order; each returns None when it does not apply.
INSTALL_STRATEGIES: tuple[InstallStrategy, ...] = (template_strategy, generator_strategy)


def dependency_install_command(
    platform: PlatformSchema,
    dependencies: set[str],
    strategies: Iterable[InstallStrategy] = INSTALL_STRATEGIES,
) -> str:
    """Return the command installing ``dependencies`` on ``platform``.

    Raises:
        NoDependencyInstallMethodError: If no strategy applies.
    """
    for strategy in strategies:
        command = strategy(platform, dependencies)
        if command:
            logger.debug("Dependency install command from %s", strategy.__name__)
            return command
    raise NoDependencyInstallMethodError(platform.name)


__all__ = [
    "INSTALL_STRATEGIES",
    "dependency_install_command",
    "generator_strategy",
    "list_build_dependencies",
    "template_strategy",
]
