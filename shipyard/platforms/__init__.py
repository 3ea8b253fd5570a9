"""Platform definitions.

A platform describes one target OS/architecture and which build engine
can provide a machine for it.
"""

from shipyard.platforms.schema import BuildDependenciesSchema, CloudImageSchema, PlatformSchema

__all__ = ["BuildDependenciesSchema", "CloudImageSchema", "PlatformSchema"]
