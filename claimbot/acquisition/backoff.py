"""Randomised inter-attempt delay.

The delay is the main throttle on the provider API: it is applied after
*every* launch attempt, successful or not, so the request rate stays under
the provider's undocumented per-tenancy ceilings.  Jitter keeps the access
pattern from becoming metronomic.

Typical usage::

    from claimbot.acquisition.backoff import BackoffScheduler

    backoff = BackoffScheduler()
    slept = await backoff.sleep(spec.min_delay, spec.max_delay)
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

__all__ = ["BackoffScheduler", "compute_delay"]

logger = logging.getLogger(__name__)


def compute_delay(min_s: int, max_s: int, *, rng: random.Random | None = None) -> int:
    """Return the number of whole seconds to wait before the next attempt.

    * ``min_s ≤ 0`` or ``max_s ≤ 0`` → ``1``.
    * ``min_s ≥ max_s`` → ``max_s``.
    * Otherwise a uniform integer in ``[min_s, max_s)``.

    Args:
        min_s: Configured lower bound in seconds.
        max_s: Configured upper bound in seconds.
        rng: Random source; defaults to the module-level generator.

    Returns:
        Delay in seconds (always ≥ 1).
    """
    if min_s <= 0 or max_s <= 0:
        return 1
    if min_s >= max_s:
        return max_s
    return (rng or random).randrange(min_s, max_s)


class BackoffScheduler:
    """Computes a randomised delay and sleeps the caller for that long.

    Args:
        sleep: Awaitable sleep function.  Defaults to :func:`asyncio.sleep`;
            override in tests to avoid real waits.
        rng: Random source passed to :func:`compute_delay`.
    """

    def __init__(
        self,
        *,
        sleep: Callable[[float], Awaitable[object]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._sleep = sleep or asyncio.sleep
        self._rng = rng

    def delay(self, min_s: int, max_s: int) -> int:
        """Return the next delay without sleeping."""
        return compute_delay(min_s, max_s, rng=self._rng)

    async def sleep(self, min_s: int, max_s: int) -> int:
        """Sleep for :meth:`delay` seconds and return the delay used."""
        seconds = self.delay(min_s, max_s)
        logger.debug("Backing off for %d s.", seconds)
        await self._sleep(seconds)
        return seconds
