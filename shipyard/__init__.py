"""Shipyard - build orchestration across leased and local build engines.

This package drives a package build for one platform/project pair: it
acquires a build target, installs build dependencies, ships generated
build files, dispatches the build and releases whatever it leased.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
