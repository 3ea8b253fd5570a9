"""Scheduler-pool engine: check a host out of a pooler service.

The pooler hands out ready-made hosts per template over a small REST API:
``POST /vm/<template>`` checks one out and ``DELETE /vm/<hostname>``
returns it.
"""

from __future__ import annotations

import logging

import httpx

from shipyard.engines.base import RemoteEngine
from shipyard.errors import ProvisioningError
from shipyard.types import EngineKind

logger = logging.getLogger(__name__)

# Timeout for pooler requests (seconds)
POOLER_TIMEOUT = 60


class SchedulerPoolEngine(RemoteEngine):
    """Engine borrowing a host from a scheduler-managed pool."""

    name = EngineKind.SCHEDULER_POOL.value

    def _client(self) -> httpx.Client:
        if not self.settings.pooler_url:
            raise ProvisioningError(
                "No pooler URL configured; set SHIPYARD_POOLER_URL",
                code="pooler_not_configured",
            )
        headers = {}
        if self.settings.pooler_token:
            headers["X-AUTH-TOKEN"] = self.settings.pooler_token
        return httpx.Client(
            base_url=self.settings.pooler_url.rstrip("/"),
            headers=headers,
            timeout=POOLER_TIMEOUT,
        )

    def _acquire(self) -> str:
        template = self.platform.template
        logger.info("Requesting a %s host from %s", template, self.settings.pooler_url)
        try:
            with self._client() as client:
                response = client.post(f"/vm/{template}")
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise ProvisioningError(
                f"Pooler refused {template}: {e.response.status_code}",
                code="pooler_http_error",
            ) from e
        except httpx.RequestError as e:
            raise ProvisioningError(
                f"Could not reach pooler: {e}", code="pooler_network_error"
            ) from e

        if not data.get("ok"):
            raise ProvisioningError(f"Pooler could not provide a {template} host")
        try:
            hostname = data[template]["hostname"]
        except (KeyError, TypeError) as e:
            raise ProvisioningError(f"Unexpected pooler response: {data}") from e

        self._lease = hostname
        if data.get("domain"):
            return f"{hostname}.{data['domain']}"
        return hostname

    def _release(self, lease: str) -> None:
        logger.info("Returning %s to the pool", lease)
        try:
            with self._client() as client:
                client.delete(f"/vm/{lease}").raise_for_status()
        except httpx.HTTPError as e:
            raise ProvisioningError(
                f"Could not return {lease} to the pool: {e}", code="teardown_failed"
            ) from e


__all__ = ["SchedulerPoolEngine"]
