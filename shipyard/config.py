"""Configuration settings for shipyard.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > project definition >
env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shipyard.types import EngineKind, PreservePolicy


def _default_configdir() -> Path:
    """Return the default directory holding platform and project configs."""
    return Path.cwd() / "configs"


def _default_output_dir() -> Path:
    """Return the default directory receiving containerized build output."""
    return Path.cwd() / "output"


def _default_lock_dir() -> Path:
    """Return the default directory for hardware lease locks."""
    return Path.home() / ".cache" / "shipyard" / "locks"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the SHIPYARD_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIPYARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    configdir: Path = Field(
        default_factory=_default_configdir,
        description="Directory with platforms/ and projects/ definitions",
    )
    output_dir: Path = Field(
        default_factory=_default_output_dir,
        description="Local directory bind-mounted into containerized builds",
    )
    tmp_dir: Path | None = Field(
        default=None,
        description="Parent for scratch workdirs (uses system default if not set)",
    )
    lock_dir: Path = Field(
        default_factory=_default_lock_dir,
        description="Directory for hardware host lease locks",
    )

    # Build behaviour
    engine: str = Field(
        default=EngineKind.SCHEDULER_POOL.value,
        description="Engine used when the platform does not pick one",
    )
    preserve: PreservePolicy = Field(
        default=PreservePolicy.ON_FAILURE,
        description="What to keep after the build finishes",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Retry budget
    timeout: int = Field(
        default=7200,
        ge=1,
        description="Seconds allowed for a retried operation, all attempts included",
    )
    retry_count: int = Field(
        default=1,
        ge=1,
        description="Attempts for a retried operation",
    )

    # Engines
    lease_timeout: int = Field(
        default=3600,
        ge=0,
        description="Seconds to wait for a free host in a hardware pool",
    )
    ssh_user: str = Field(default="root", description="User for ssh and rsync")
    ssh_key: Path | None = Field(default=None, description="Private key for ssh")
    pooler_url: str | None = Field(
        default=None,
        description="Base URL of the scheduler-pool service",
    )
    pooler_token: str | None = Field(
        default=None,
        description="Authentication token for the scheduler-pool service",
    )
    container_runtime: str = Field(
        default="docker",
        description="Container runtime executable",
    )
    command_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Timeout for a single dispatched command (None = unbounded)",
    )


def get_settings() -> Settings:
    """Load the application settings from the environment.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2, exclude={"pooler_token"})


__all__ = ["Settings", "get_settings", "print_settings_json"]
