"""Provider interface contract for compute backends.

Every backend the acquisition loop can launch instances on must subclass
:class:`ComputeProvider` and implement its abstract coroutines.

Design decisions
----------------
* **Abstract base class (ABC)** rather than a ``Protocol``: subclasses share
  the lifecycle helpers (``close``, ``__aenter__``/``__aexit__``) without
  duplication.
* **Errors as exceptions**: every call either returns its value or raises a
  :class:`~claimbot.core.exceptions.ProviderError` (or a subclass).  The
  status code and reason code on the error are what
  :func:`~claimbot.acquisition.classifier.classify` inspects.
* **Async context manager built-in**: providers holding SDK clients get
  deterministic teardown.

Typical usage::

    async with OciComputeProvider.from_config_file(path, "DEFAULT") as provider:
        pools = await provider.list_pools()
        handle = await provider.launch(request)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import TracebackType

from claimbot.core.models import LaunchRequest, ResourceHandle, ResourcePool, ResourceState

__all__ = ["ComputeProvider"]

logger = logging.getLogger(__name__)


class ComputeProvider(ABC):
    """Abstract base for compute providers.

    Subclasses implement the API calls below.  The async context manager
    protocol is provided for free; override :meth:`close` to release
    resources.

    Attributes:
        compartment_id: Compartment launches go to when the settings name
            none.
    """

    compartment_id: str = ""

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:  # noqa: B027
        """Release any resources held by this provider.  Default: no-op."""

    async def __aenter__(self) -> ComputeProvider:
        """Enter the async context manager.  Returns ``self``."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the async context manager by delegating to :meth:`close`."""
        await self.close()

    # ------------------------------------------------------------------
    # Core contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_pools(self) -> list[ResourcePool]:
        """Return every pool (availability domain) in directory order."""

    @abstractmethod
    async def launch(self, request: LaunchRequest) -> ResourceHandle:
        """Issue exactly one provisioning call.

        Returns:
            Handle of the created instance.

        Raises:
            :class:`~claimbot.core.exceptions.ProviderError`: when the
            provider rejects the request or cannot be reached.
        """

    @abstractmethod
    async def get_resource(self, resource_id: str) -> ResourceState:
        """Return the current lifecycle state of an instance."""

    @abstractmethod
    async def list_network_interfaces(self, resource_id: str) -> list[str]:
        """Return identifiers of the network interfaces attached to an instance.

        An empty list means the interfaces are not enumerable yet.
        """

    @abstractmethod
    async def get_address(self, interface_id: str) -> str | None:
        """Return the public address of an interface, or ``None`` if unassigned."""

    @abstractmethod
    async def list_resources(self, pool: ResourcePool) -> list[ResourceHandle]:
        """Return the instances that currently exist in *pool*."""

    # ------------------------------------------------------------------
    # Launch parameter lookups
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_image(self, operating_system: str, version: str, shape: str) -> str:
        """Return the id of the newest image of *operating_system* *version* for *shape*.

        Raises:
            :class:`~claimbot.core.exceptions.ConfigError`: when no image
            matches.
        """

    @abstractmethod
    async def get_shape_sizing(self, shape: str, image_id: str) -> tuple[float | None, float | None]:
        """Return the default ``(ocpus, memory_in_gbs)`` of *shape* for *image_id*.

        Raises:
            :class:`~claimbot.core.exceptions.ConfigError`: when the shape
            is not offered for the image.
        """
