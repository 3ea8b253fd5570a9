"""Cloud engine: launch a throwaway instance from the platform's image.

Instances are driven through the ``aws`` CLI. An instance is billed from
the moment ``run-instances`` returns, so the lease is recorded before
waiting for it to come up.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from shipyard.engines.base import RemoteEngine
from shipyard.errors import ProvisioningError
from shipyard.platforms.schema import CloudImageSchema
from shipyard.process import run_command
from shipyard.types import EngineKind

logger = logging.getLogger(__name__)


class CloudEngine(RemoteEngine):
    """Engine running builds on an on-demand cloud instance."""

    name = EngineKind.CLOUD.value

    @property
    def image(self) -> CloudImageSchema:
        if self.platform.cloud is None:
            raise ProvisioningError(f"Platform {self.platform.name} has no cloud image")
        return self.platform.cloud

    @property
    def instance_id(self) -> str | None:
        return self._lease

    @property
    def ssh_user(self) -> str:
        return self.image.ssh_user or self.settings.ssh_user

    @property
    def target_identity(self) -> str:
        if self._lease and self.target:
            return f"{self.target} ({self._lease})"
        return self.target or self._lease or ""

    def _ec2(self, *args: str) -> dict[str, Any]:
        result = run_command(
            ["aws", "--region", self.image.region, "--output", "json", "ec2", *args]
        )
        if not result.output.strip():
            return {}
        try:
            return json.loads(result.output)
        except json.JSONDecodeError as e:
            raise ProvisioningError(f"Unexpected response from aws ec2 {args[0]}: {e}") from e

    def _acquire(self) -> str:
        image = self.image
        args = [
            "run-instances",
            "--image-id",
            image.image_id,
            "--instance-type",
            image.instance_type,
            "--count",
            "1",
            "--tag-specifications",
            f"ResourceType=instance,Tags=[{{Key=Name,Value=shipyard-{self.platform.name}}}]",
        ]
        if image.key_name:
            args += ["--key-name", image.key_name]
        if image.subnet_id:
            args += ["--subnet-id", image.subnet_id]
        if image.security_group_ids:
            args += ["--security-group-ids", *image.security_group_ids]

        try:
            instance_id = self._ec2(*args)["Instances"][0]["InstanceId"]
        except (KeyError, IndexError) as e:
            raise ProvisioningError(f"Unexpected run-instances response: {e}") from e
        self._lease = instance_id
        logger.info("Launched instance %s from %s", instance_id, image.image_id)

        self._ec2("wait", "instance-status-ok", "--instance-ids", instance_id)
        return self._instance_host(instance_id)

    def _instance_host(self, instance_id: str) -> str:
        described = self._ec2("describe-instances", "--instance-ids", instance_id)
        try:
            instance = described["Reservations"][0]["Instances"][0]
        except (KeyError, IndexError) as e:
            raise ProvisioningError(f"Instance {instance_id} not found") from e
        for key in ("PublicDnsName", "PublicIpAddress", "PrivateIpAddress"):
            if instance.get(key):
                return instance[key]
        raise ProvisioningError(f"Instance {instance_id} has no reachable address")

    def _release(self, lease: str) -> None:
        logger.info("Terminating instance %s", lease)
        self._ec2("terminate-instances", "--instance-ids", lease)


__all__ = ["CloudEngine"]
