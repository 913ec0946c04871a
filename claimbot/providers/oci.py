"""Oracle Cloud Infrastructure compute provider.

Implements :class:`~claimbot.providers.base.ComputeProvider` on top of the
official ``oci`` SDK.  The SDK is synchronous; every call is pushed to a
worker thread with :func:`asyncio.to_thread` so the event loop is never
blocked.

Error mapping
-------------
* :class:`oci.exceptions.ServiceError` → :class:`ProviderError` carrying the
  HTTP status and the OCI reason code (``e.g. "LimitExceeded"``).  The
  classifier decides whether it is terminal.
* :class:`oci.exceptions.RequestException`, :class:`ConnectionError` and
  :class:`TimeoutError` → :class:`TransientProviderError`.

Images and flex shape sizes are looked up in the tenancy compartment when
the launch settings leave them blank.

Typical usage::

    provider = OciComputeProvider.from_config_file("~/.oci/config", "DEFAULT")
    async with provider:
        pools = await provider.list_pools()
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Callable
from typing import Any, Final, TypeVar

import oci
from oci.pagination import list_call_get_all_results

from claimbot.core.exceptions import ConfigError, ProviderError, TransientProviderError
from claimbot.core.models import LaunchRequest, ResourceHandle, ResourcePool, ResourceState
from claimbot.providers.base import ComputeProvider

__all__ = ["OciComputeProvider", "build_launch_details"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

#: Burstable setting → OCI ``baseline_ocpu_utilization`` value.
_BASELINE_UTILIZATION: Final[dict[str, str]] = {
    "1/8": "BASELINE_1_8",
    "1/2": "BASELINE_1_2",
}


def build_launch_details(request: LaunchRequest) -> oci.core.models.LaunchInstanceDetails:
    """Translate a :class:`LaunchRequest` into the SDK launch payload."""
    params = request.params

    shape_config = None
    if params.is_flex:
        shape_config = oci.core.models.LaunchInstanceShapeConfigDetails(
            ocpus=params.ocpus,
            memory_in_gbs=params.memory_in_gbs,
            baseline_ocpu_utilization=_BASELINE_UTILIZATION.get(params.burstable),
        )

    metadata = {"ssh_authorized_keys": params.ssh_authorized_key}
    if params.cloud_init:
        metadata["user_data"] = base64.b64encode(params.cloud_init.encode()).decode()

    return oci.core.models.LaunchInstanceDetails(
        compartment_id=params.compartment_id,
        availability_domain=request.pool.name,
        display_name=request.display_name,
        shape=params.shape,
        shape_config=shape_config,
        create_vnic_details=oci.core.models.CreateVnicDetails(subnet_id=params.subnet_id),
        source_details=oci.core.models.InstanceSourceViaImageDetails(
            image_id=params.image_id,
            boot_volume_size_in_gbs=params.boot_volume_size_in_gbs,
        ),
        is_pv_encryption_in_transit_enabled=True,
        metadata=metadata,
    )


class OciComputeProvider(ComputeProvider):
    """Compute provider backed by the OCI Python SDK.

    Args:
        compartment_id: Compartment instances are listed in.
        compute: ``oci.core.ComputeClient``.
        network: ``oci.core.VirtualNetworkClient``.
        identity: ``oci.identity.IdentityClient``.
    """

    def __init__(
        self,
        compartment_id: str,
        *,
        compute: Any,
        network: Any,
        identity: Any,
    ) -> None:
        if not compartment_id:
            raise ValueError("OciComputeProvider requires a non-empty compartment_id.")
        self.compartment_id = compartment_id
        self._compute = compute
        self._network = network
        self._identity = identity

    @classmethod
    def from_config_file(
        cls,
        path: str,
        profile: str = "DEFAULT",
        compartment_id: str | None = None,
        *,
        proxy: str | None = None,
    ) -> OciComputeProvider:
        """Build the SDK clients from an OCI config file.

        The tenancy of *profile* is used when *compartment_id* is not given.
        When *proxy* is set, every SDK client sends its requests through it.

        Raises:
            ConfigError: If the config file is missing or invalid.
        """
        try:
            config = oci.config.from_file(file_location=str(path), profile_name=profile)
            oci.config.validate_config(config)
        except (oci.exceptions.ConfigFileNotFound, oci.exceptions.InvalidConfig) as exc:
            raise ConfigError(f"Invalid OCI config {path!r} [{profile}]: {exc}") from exc
        except oci.exceptions.ProfileNotFound as exc:
            raise ConfigError(f"Profile {profile!r} not found in {path!r}.") from exc

        logger.debug("OCI config loaded (profile=%s, region=%s).", profile, config.get("region"))
        compute = oci.core.ComputeClient(config)
        network = oci.core.VirtualNetworkClient(config)
        identity = oci.identity.IdentityClient(config)
        if proxy:
            for client in (compute, network, identity):
                client.base_client.session.proxies = {"http": proxy, "https": proxy}
            logger.debug("OCI API traffic routed through a proxy.")
        return cls(
            compartment_id or config["tenancy"],
            compute=compute,
            network=network,
            identity=identity,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the SDK HTTP sessions."""
        for client in (self._compute, self._network, self._identity):
            session = getattr(getattr(client, "base_client", None), "session", None)
            if session is not None:
                session.close()

    # ------------------------------------------------------------------
    # ComputeProvider contract
    # ------------------------------------------------------------------

    async def list_pools(self) -> list[ResourcePool]:
        response = await self._call(
            self._identity.list_availability_domains, self.compartment_id
        )
        return [ResourcePool(id=ad.id, name=ad.name) for ad in response.data]

    async def launch(self, request: LaunchRequest) -> ResourceHandle:
        details = build_launch_details(request)
        response = await self._call(self._compute.launch_instance, details)
        instance = response.data
        return ResourceHandle(
            id=instance.id,
            display_name=instance.display_name or request.display_name,
            pool_name=instance.availability_domain or request.pool.name,
            state=ResourceState.parse(instance.lifecycle_state),
        )

    async def get_resource(self, resource_id: str) -> ResourceState:
        response = await self._call(self._compute.get_instance, resource_id)
        return ResourceState.parse(response.data.lifecycle_state)

    async def list_network_interfaces(self, resource_id: str) -> list[str]:
        response = await self._call(
            list_call_get_all_results,
            self._compute.list_vnic_attachments,
            self.compartment_id,
            instance_id=resource_id,
        )
        return [attachment.vnic_id for attachment in response.data if attachment.vnic_id]

    async def get_address(self, interface_id: str) -> str | None:
        response = await self._call(self._network.get_vnic, interface_id)
        return response.data.public_ip or None

    async def list_resources(self, pool: ResourcePool) -> list[ResourceHandle]:
        response = await self._call(
            list_call_get_all_results,
            self._compute.list_instances,
            self.compartment_id,
            availability_domain=pool.name,
        )
        return [
            ResourceHandle(
                id=instance.id,
                display_name=instance.display_name or "",
                pool_name=pool.name,
                state=ResourceState.parse(instance.lifecycle_state),
            )
            for instance in response.data
        ]

    async def find_image(self, operating_system: str, version: str, shape: str) -> str:
        response = await self._call(
            list_call_get_all_results,
            self._compute.list_images,
            self.compartment_id,
            operating_system=operating_system,
            operating_system_version=version,
            shape=shape,
            sort_by="TIMECREATED",
            sort_order="DESC",
        )
        if not response.data:
            raise ConfigError(
                f"No {operating_system} {version} image found that supports {shape}."
            )
        image = response.data[0]
        logger.debug("Image %s (%s) selected.", image.id, image.display_name)
        return image.id

    async def get_shape_sizing(
        self, shape: str, image_id: str
    ) -> tuple[float | None, float | None]:
        response = await self._call(
            list_call_get_all_results,
            self._compute.list_shapes,
            self.compartment_id,
            image_id=image_id,
        )
        for offered in response.data:
            if offered.shape.lower() == shape.lower():
                return offered.ocpus, offered.memory_in_gbs
        raise ConfigError(f"Shape {shape} is not offered for image {image_id}.")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run one blocking SDK call in a worker thread and map its errors."""
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except oci.exceptions.ServiceError as exc:
            raise ProviderError(
                exc.message or str(exc),
                status_code=exc.status,
                code=exc.code,
            ) from exc
        except (oci.exceptions.RequestException, ConnectionError, TimeoutError) as exc:
            raise TransientProviderError(str(exc) or type(exc).__name__) from exc
