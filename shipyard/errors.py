"""Error taxonomy for shipyard.

Every error carries a stable ``code`` for structured handling by the CLI
and by callers embedding the driver.
"""

from __future__ import annotations


class ShipyardError(Exception):
    """Base error for all shipyard failures."""

    def __init__(self, message: str, code: str = "shipyard_error") -> None:
        super().__init__(message)
        self.code = code


class InvalidProjectError(ShipyardError):
    """Raised when a project fails its pre-build sanity checks."""

    def __init__(self, message: str, code: str = "invalid_project") -> None:
        super().__init__(message, code=code)


class PlatformConfigError(ShipyardError):
    """Raised when a platform lacks a setting a pipeline depends on."""

    def __init__(self, message: str, code: str = "invalid_platform") -> None:
        super().__init__(message, code=code)


class ConfigNotFoundError(ShipyardError):
    """Raised when a platform or project definition cannot be found."""

    def __init__(self, kind: str, name: str, search_dir: str) -> None:
        super().__init__(
            f"No {kind} named '{name}' found in {search_dir}",
            code=f"{kind}_not_found",
        )
        self.kind = kind
        self.name = name
        self.search_dir = search_dir


class EngineNotFoundError(ShipyardError):
    """Raised when no engine is registered for the requested kind."""

    def __init__(self, requested_name: str) -> None:
        super().__init__(f"No such engine '{requested_name}'", code="engine_not_found")
        self.requested_name = requested_name


class ProvisioningError(ShipyardError):
    """Raised when an engine cannot acquire or prepare its build target."""

    def __init__(self, message: str, code: str = "provisioning_error") -> None:
        super().__init__(message, code=code)


class NoDependencyInstallMethodError(ShipyardError):
    """Raised when a platform offers no way to install build dependencies."""

    def __init__(self, platform_name: str) -> None:
        super().__init__(
            f"No method defined to install build dependencies for {platform_name}",
            code="no_dependency_install_method",
        )
        self.platform_name = platform_name


class CommandFailedError(ShipyardError):
    """Raised when a dispatched command exits non-zero."""

    def __init__(self, command: str, exit_code: int | None, output: str = "") -> None:
        super().__init__(
            f"Command exited with status {exit_code}: {command}",
            code="command_failed",
        )
        self.command = command
        self.exit_code = exit_code
        self.output = output


class TimeoutExceededError(ShipyardError):
    """Raised when a retry budget runs out of time."""

    def __init__(self, timeout: float, last_error: BaseException | None = None) -> None:
        message = f"Operation did not complete within {timeout} seconds"
        if last_error is not None:
            message = f"{message}: {last_error}"
        super().__init__(message, code="timeout_exceeded")
        self.timeout = timeout
        self.last_error = last_error


class ContainerRuntimeError(ShipyardError):
    """Raised when the local container runtime is missing or unusable."""

    def __init__(self, message: str, code: str = "container_runtime_error") -> None:
        super().__init__(message, code=code)


class SourceFetchError(ShipyardError):
    """Raised when a component source cannot be fetched or verified."""

    def __init__(self, message: str, code: str = "source_fetch_error") -> None:
        super().__init__(message, code=code)


__all__ = [
    "CommandFailedError",
    "ConfigNotFoundError",
    "ContainerRuntimeError",
    "EngineNotFoundError",
    "InvalidProjectError",
    "NoDependencyInstallMethodError",
    "PlatformConfigError",
    "ProvisioningError",
    "ShipyardError",
    "SourceFetchError",
    "TimeoutExceededError",
]
