"""Unit tests for :mod:`claimbot.acquisition.address`."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from claimbot.acquisition.address import PublicAddressWaiter
from claimbot.core.exceptions import ResourceDiedAfterAcquisition, TransientProviderError
from claimbot.core.models import ResourceState


def _waiter(provider, **kwargs) -> tuple[PublicAddressWaiter, AsyncMock]:
    fake_sleep = AsyncMock()
    return PublicAddressWaiter(provider, sleep=fake_sleep, **kwargs), fake_sleep


class TestPublicAddressWaiter:
    """Tests for :meth:`PublicAddressWaiter.wait`."""

    async def test_returns_addresses_when_interfaces_are_attached(
        self, pools, fake_provider_cls, handle_factory
    ) -> None:
        handle = handle_factory("i-1")
        provider = fake_provider_cls(pools)
        provider.interfaces["i-1"] = ["vnic-a", "vnic-b"]
        provider.addresses.update({"vnic-a": "198.51.100.1", "vnic-b": "198.51.100.2"})
        waiter, fake_sleep = _waiter(provider)

        assert await waiter.wait(handle) == ["198.51.100.1", "198.51.100.2"]
        fake_sleep.assert_not_awaited()

    async def test_polls_until_interfaces_appear(
        self, pools, fake_provider_cls, handle_factory
    ) -> None:
        handle = handle_factory("i-1")
        provider = fake_provider_cls(pools)
        calls = {"n": 0}

        async def _interfaces(resource_id: str) -> list[str]:
            calls["n"] += 1
            return [] if calls["n"] < 4 else ["vnic-a"]

        provider.list_network_interfaces = _interfaces
        provider.addresses["vnic-a"] = "198.51.100.7"
        waiter, fake_sleep = _waiter(provider)

        assert await waiter.wait(handle) == ["198.51.100.7"]
        assert fake_sleep.await_count == 3
        fake_sleep.assert_awaited_with(3.0)

    async def test_unassigned_addresses_give_empty_list(
        self, pools, fake_provider_cls, handle_factory
    ) -> None:
        handle = handle_factory("i-1")
        provider = fake_provider_cls(pools)
        provider.addresses["vnic-i-1"] = None
        waiter, _ = _waiter(provider)

        assert await waiter.wait(handle) == []

    @pytest.mark.parametrize("state", [ResourceState.TERMINATING, ResourceState.TERMINATED])
    async def test_dead_instance_raises_immediately(
        self, state, pools, fake_provider_cls, handle_factory
    ) -> None:
        handle = handle_factory("i-1")
        provider = fake_provider_cls(pools)
        provider.states["i-1"] = [state]
        waiter, fake_sleep = _waiter(provider)

        with pytest.raises(ResourceDiedAfterAcquisition) as excinfo:
            await waiter.wait(handle)

        assert excinfo.value.resource_id == "i-1"
        assert excinfo.value.state == str(state)
        fake_sleep.assert_not_awaited()

    async def test_dies_while_provisioning(
        self, pools, fake_provider_cls, handle_factory
    ) -> None:
        handle = handle_factory("i-1")
        provider = fake_provider_cls(pools)
        provider.states["i-1"] = [ResourceState.PROVISIONING, ResourceState.TERMINATED]
        provider.interfaces["i-1"] = []
        waiter, fake_sleep = _waiter(provider)

        with pytest.raises(ResourceDiedAfterAcquisition):
            await waiter.wait(handle)
        assert fake_sleep.await_count == 1

    async def test_bound_reached_returns_empty_list(
        self, pools, fake_provider_cls, handle_factory
    ) -> None:
        handle = handle_factory("i-1")
        provider = fake_provider_cls(pools)
        provider.interfaces["i-1"] = []
        waiter, fake_sleep = _waiter(provider, max_rounds=5)

        assert await waiter.wait(handle) == []
        assert fake_sleep.await_count == 4

    async def test_provider_errors_are_retried(
        self, pools, fake_provider_cls, handle_factory
    ) -> None:
        handle = handle_factory("i-1")
        provider = fake_provider_cls(pools)
        provider.states["i-1"] = [
            TransientProviderError("timeout"),
            TransientProviderError("timeout"),
            ResourceState.RUNNING,
        ]
        waiter, fake_sleep = _waiter(provider)

        assert await waiter.wait(handle) == ["203.0.113.10"]
        assert fake_sleep.await_count == 2

    def test_invalid_max_rounds_rejected(self, pools, fake_provider_cls) -> None:
        with pytest.raises(ValueError):
            PublicAddressWaiter(fake_provider_cls(pools), max_rounds=0)
