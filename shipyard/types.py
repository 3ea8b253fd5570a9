"""Shared type definitions for shipyard.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum


class PreservePolicy(str, Enum):
    """What to keep once a build finishes."""

    ALWAYS = "always"
    NEVER = "never"
    ON_FAILURE = "on-failure"


class EngineKind(str, Enum):
    """Registered build engine tags."""

    HARDWARE = "hardware"
    CLOUD = "cloud"
    CONTAINER = "container"
    LOCAL = "local"
    SCHEDULER_POOL = "scheduler-pool"


class BuildMode(str, Enum):
    """Pipeline used to build a project."""

    MAKE = "make"
    CONTAINER_IMAGE = "container-image"


# Engines backed by leased or billed resources; these are always released.
LEASED_ENGINES = frozenset({EngineKind.HARDWARE.value, EngineKind.CLOUD.value})


@dataclass
class BuildHostInfo:
    """Where a build ran."""

    name: str
    engine: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "engine": self.engine}


__all__ = [
    "LEASED_ENGINES",
    "BuildHostInfo",
    "BuildMode",
    "EngineKind",
    "PreservePolicy",
]
