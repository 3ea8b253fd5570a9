"""Build engines and engine selection.

Engine kinds map to implementations through a static registry; the
selector picks a kind from the caller's override and what the platform
declares.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from shipyard.config import Settings
from shipyard.engines.base import Engine, RemoteEngine
from shipyard.engines.cloud import CloudEngine
from shipyard.engines.container import ContainerEngine
from shipyard.engines.hardware import HardwareEngine
from shipyard.engines.local import LocalEngine
from shipyard.engines.pooler import SchedulerPoolEngine
from shipyard.errors import EngineNotFoundError
from shipyard.platforms.schema import PlatformSchema
from shipyard.types import EngineKind

logger = logging.getLogger(__name__)

ENGINE_REGISTRY: Mapping[str, type[Engine]] = {
    EngineKind.HARDWARE.value: HardwareEngine,
    EngineKind.CLOUD.value: CloudEngine,
    EngineKind.CONTAINER.value: ContainerEngine,
    EngineKind.LOCAL.value: LocalEngine,
    EngineKind.SCHEDULER_POOL.value: SchedulerPoolEngine,
}

DEFAULT_ENGINE = EngineKind.SCHEDULER_POOL.value


def select_engine_kind(
    platform: PlatformSchema,
    engine: str | None = None,
    target: str | None = None,
    default: str = DEFAULT_ENGINE,
) -> str:
    """Resolve which engine kind builds ``platform``.

    An explicit scheduler-pool request is honoured as is. Otherwise the
    platform decides, in order: hardware pool, cloud image, container
    image; then an explicit target means a direct build on that host;
    failing all of these the requested (or default) kind is used.

    Args:
        platform: Platform to build.
        engine: Engine kind requested by the caller, if any.
        target: Build host supplied by the caller, if any.
        default: Kind used when nothing else applies.

    Returns:
        Engine kind tag.
    """
    if engine == EngineKind.SCHEDULER_POOL.value:
        return engine
    if platform.has_hardware_pool:
        return EngineKind.HARDWARE.value
    if platform.has_cloud_image:
        return EngineKind.CLOUD.value
    if platform.has_container_image:
        return EngineKind.CONTAINER.value
    if target:
        return EngineKind.LOCAL.value
    return engine or default


def create_engine(
    kind: str,
    platform: PlatformSchema,
    target: str | None = None,
    remote_workdir: str | None = None,
    settings: Settings | None = None,
    registry: Mapping[str, type[Engine]] | None = None,
) -> Engine:
    """Instantiate the engine registered for ``kind``.

    Raises:
        EngineNotFoundError: If no engine is registered for ``kind``.
    """
    engines = ENGINE_REGISTRY if registry is None else registry
    try:
        engine_cls = engines[kind]
    except KeyError:
        raise EngineNotFoundError(kind) from None
    logger.debug("Using %s engine for %s", kind, platform.name)
    return engine_cls(platform, target, remote_workdir=remote_workdir, settings=settings)


__all__ = [
    "DEFAULT_ENGINE",
    "ENGINE_REGISTRY",
    "CloudEngine",
    "ContainerEngine",
    "Engine",
    "HardwareEngine",
    "LocalEngine",
    "RemoteEngine",
    "SchedulerPoolEngine",
    "create_engine",
    "select_engine_kind",
]
