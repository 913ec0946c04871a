"""Post-acquisition public address polling.

After a successful launch the instance still has to boot before its VNIC is
attached and a public IP assigned.  :class:`PublicAddressWaiter` polls for
that with a bounded tenacity loop whose every round ends in one of three
states:

* ``CONTINUE`` — nothing enumerable yet (or a provider call failed); poll again.
* ``DONE`` — interfaces are attached; the collected addresses are returned.
* ``DEAD`` — the instance is terminating or terminated; give up at once.

Reaching the round bound is not an error: whatever was collected (usually
nothing) is returned.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Final

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_fixed

from claimbot.core import events
from claimbot.core.exceptions import ProviderError, ResourceDiedAfterAcquisition
from claimbot.core.models import ResourceHandle, ResourceState
from claimbot.providers.base import ComputeProvider

__all__ = ["PublicAddressWaiter"]

logger = logging.getLogger(__name__)

#: Seconds between two polling rounds.
_DEFAULT_INTERVAL: Final[float] = 3.0

#: Maximum number of polling rounds.
_DEFAULT_MAX_ROUNDS: Final[int] = 100


class _Poll(Enum):
    CONTINUE = "continue"
    DONE = "done"
    DEAD = "dead"


@dataclass
class _PollState:
    addresses: list[str] = field(default_factory=list)
    last_state: ResourceState = ResourceState.UNKNOWN


class PublicAddressWaiter:
    """Waits until a freshly launched instance has its public addresses.

    Args:
        provider: Compute provider to poll.
        interval: Seconds between polling rounds.
        max_rounds: Upper bound on polling rounds.
        sleep: Awaitable sleep used between rounds (tests pass a fake).
    """

    def __init__(
        self,
        provider: ComputeProvider,
        *,
        interval: float = _DEFAULT_INTERVAL,
        max_rounds: int = _DEFAULT_MAX_ROUNDS,
        sleep: Callable[[float], Awaitable[object]] | None = None,
    ) -> None:
        if max_rounds < 1:
            raise ValueError(f"max_rounds must be ≥ 1, got {max_rounds!r}.")
        self._provider = provider
        self._interval = interval
        self._max_rounds = max_rounds
        self._sleep = sleep or asyncio.sleep

    async def wait(self, handle: ResourceHandle) -> list[str]:
        """Return the public addresses of *handle* once they are assigned.

        Raises:
            ResourceDiedAfterAcquisition: If the instance is observed in a
                terminating or terminated state.
        """
        state = _PollState()

        def _give_up(retry_state: RetryCallState) -> _Poll:
            logger.warning(
                "No network interface on %s after %d round(s); giving up polling.",
                handle.id,
                retry_state.attempt_number,
            )
            return _Poll.DONE

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_rounds),
            wait=wait_fixed(self._interval),
            retry=retry_if_result(lambda result: result is _Poll.CONTINUE),
            retry_error_callback=_give_up,
            sleep=self._sleep,
        )
        result = await retrying(self._poll_once, handle, state)

        if result is _Poll.DEAD:
            logger.warning(
                "Instance %s died after acquisition (state=%s).",
                handle.id,
                state.last_state,
                extra={"event": events.RESOURCE_DIED},
            )
            raise ResourceDiedAfterAcquisition(handle.id, str(state.last_state))

        logger.info(
            "Instance %s public address(es): %s",
            handle.id,
            ", ".join(state.addresses) or "(none)",
            extra={"event": events.ADDRESS_ASSIGNED},
        )
        return state.addresses

    async def _poll_once(self, handle: ResourceHandle, state: _PollState) -> _Poll:
        try:
            state.last_state = await self._provider.get_resource(handle.id)
            if state.last_state.is_dead:
                return _Poll.DEAD

            interfaces = await self._provider.list_network_interfaces(handle.id)
            if not interfaces:
                return _Poll.CONTINUE

            addresses = []
            for interface_id in interfaces:
                address = await self._provider.get_address(interface_id)
                if address:
                    addresses.append(address)
        except ProviderError as exc:
            logger.debug("Address poll for %s failed: %s", handle.id, exc)
            return _Poll.CONTINUE

        state.addresses = addresses
        return _Poll.DONE
