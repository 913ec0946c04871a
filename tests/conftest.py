"""Shared pytest fixtures and configuration for the Claimbot test suite.

This file is loaded automatically by pytest before any test module.
It provides project-wide fixtures used across unit and integration tests.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable

import pytest
from pydantic_settings import SettingsConfigDict

from claimbot.core import configure_logging
from claimbot.core.exceptions import ConfigError
from claimbot.core.models import (
    AcquisitionSpec,
    LaunchParameters,
    LaunchRequest,
    ResourceHandle,
    ResourcePool,
    ResourceState,
)
from claimbot.core.settings import Settings
from claimbot.providers.base import ComputeProvider

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Force DEBUG logging in text format for every test."""
    configure_logging(level="DEBUG", fmt="text", force=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove Claimbot-related env vars for the duration of a test.

    Also disables pydantic-settings `.env` file loading so that values in a
    local `.env` file do not leak into Settings isolation tests.
    """
    sensitive_prefixes = (
        "TELEGRAM_",
        "NOTIFY_",
        "OCI_",
        "INSTANCE_",
        "LOG_LEVEL",
        "LOG_FORMAT",
    )
    for key in list(os.environ):
        if any(key.startswith(prefix) for prefix in sensitive_prefixes):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(
            env_file=None,
            env_file_encoding="utf-8",
            extra="ignore",
        ),
    )


# ---------------------------------------------------------------------------
# Domain fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def launch_params() -> LaunchParameters:
    """Flex-shape launch parameters with placeholder OCIDs."""
    return LaunchParameters(
        shape="VM.Standard.A1.Flex",
        ocpus=4,
        memory_in_gbs=24,
        boot_volume_size_in_gbs=50,
        image_id="ocid1.image.oc1..image",
        subnet_id="ocid1.subnet.oc1..subnet",
        compartment_id="ocid1.tenancy.oc1..tenancy",
        ssh_authorized_key="ssh-ed25519 AAAA test@host",
    )


@pytest.fixture()
def pools() -> list[ResourcePool]:
    """Three availability domains in directory order."""
    return [
        ResourcePool(id=f"ad-{n}", name=f"Uocm:PHX-AD-{n}")
        for n in (1, 2, 3)
    ]


@pytest.fixture()
def make_spec(launch_params: LaunchParameters):
    """Factory building an :class:`AcquisitionSpec` with test defaults."""

    def _make(**overrides: object) -> AcquisitionSpec:
        values: dict[str, object] = {
            "sum": 1,
            "retry": -1,
            "min_delay": 1,
            "max_delay": 1,
            "display_name": "arm-box",
            "launch": launch_params,
        }
        values.update(overrides)
        return AcquisitionSpec(**values)

    return _make


@pytest.fixture()
def logger() -> logging.Logger:
    """Return a ``logging.Logger`` scoped to the running test."""
    return logging.getLogger("tests")


# ---------------------------------------------------------------------------
# Fake provider
# ---------------------------------------------------------------------------


class FakeProvider(ComputeProvider):
    """In-memory :class:`ComputeProvider` driven by scripted outcomes.

    Args:
        pools: Pools returned by :meth:`list_pools`.
        outcomes: Launch results consumed in order; an exception instance is
            raised, a :class:`ResourceHandle` is returned.
        on_launch: Alternative to *outcomes*: called with each request.
    """

    def __init__(
        self,
        pools: list[ResourcePool],
        *,
        outcomes: list[ResourceHandle | BaseException] | None = None,
        on_launch: Callable[[LaunchRequest], ResourceHandle | BaseException] | None = None,
    ) -> None:
        self.pools = list(pools)
        self.outcomes = list(outcomes or [])
        self.on_launch = on_launch
        self.requests: list[LaunchRequest] = []
        self.states: dict[str, list[ResourceState | BaseException]] = {}
        self.interfaces: dict[str, list[str]] = {}
        self.addresses: dict[str, str | None] = {}
        self.resources: dict[str, list[ResourceHandle] | BaseException] = {}
        self.images: dict[tuple[str, str, str], str] = {}
        self.shapes: dict[str, tuple[float | None, float | None]] = {
            "VM.Standard.A1.Flex": (1.0, 6.0),
        }
        self.closed = False

    async def list_pools(self) -> list[ResourcePool]:
        return list(self.pools)

    async def launch(self, request: LaunchRequest) -> ResourceHandle:
        self.requests.append(request)
        result = self.on_launch(request) if self.on_launch else self.outcomes.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result

    async def get_resource(self, resource_id: str) -> ResourceState:
        script = self.states.get(resource_id)
        if not script:
            return ResourceState.RUNNING
        state = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(state, BaseException):
            raise state
        return state

    async def list_network_interfaces(self, resource_id: str) -> list[str]:
        return self.interfaces.get(resource_id, [f"vnic-{resource_id}"])

    async def get_address(self, interface_id: str) -> str | None:
        return self.addresses.get(interface_id, "203.0.113.10")

    async def list_resources(self, pool: ResourcePool) -> list[ResourceHandle]:
        result = self.resources.get(pool.name, [])
        if isinstance(result, BaseException):
            raise result
        return result

    async def find_image(self, operating_system: str, version: str, shape: str) -> str:
        try:
            return self.images[(operating_system, version, shape)]
        except KeyError:
            raise ConfigError(f"No {operating_system} {version} image for {shape}.") from None

    async def get_shape_sizing(
        self, shape: str, image_id: str
    ) -> tuple[float | None, float | None]:
        if shape not in self.shapes:
            raise ConfigError(f"Shape {shape} is not offered.")
        return self.shapes[shape]

    async def close(self) -> None:
        self.closed = True


def make_handle(resource_id: str = "ocid1.instance.oc1..one", **kwargs: object) -> ResourceHandle:
    """Return a :class:`ResourceHandle` in PROVISIONING state."""
    values: dict[str, object] = {
        "id": resource_id,
        "display_name": "arm-box",
        "pool_name": "Uocm:PHX-AD-1",
        "state": ResourceState.PROVISIONING,
    }
    values.update(kwargs)
    return ResourceHandle(**values)


@pytest.fixture()
def fake_provider_cls() -> type[FakeProvider]:
    """The :class:`FakeProvider` class, for tests that script their own."""
    return FakeProvider


@pytest.fixture()
def handle_factory() -> Callable[..., ResourceHandle]:
    """Factory for :class:`ResourceHandle` objects."""
    return make_handle
