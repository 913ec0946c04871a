"""Read-only instance listing across pools.

:func:`list_resources_across_pools` queries every pool concurrently, one
coroutine per pool, via ``asyncio.gather(..., return_exceptions=True)``.
Results are gathered into a shared mapping under an :class:`asyncio.Lock`
and returned only once every pool has answered (join barrier).  A pool whose
listing fails is logged and reported in :attr:`Inventory.failed_pools`; the
other pools are unaffected.

This is the only concurrent code path in the project.  Launch attempts are
never fanned out.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from claimbot.core.models import ResourceHandle, ResourcePool
from claimbot.providers.base import ComputeProvider

__all__ = ["Inventory", "list_resources_across_pools"]

logger = logging.getLogger(__name__)


@dataclass
class Inventory:
    """Instances found per pool.

    Attributes:
        resources: Pool name → instances, in pool directory order.
        failed_pools: Names of pools whose listing raised.
    """

    resources: dict[str, list[ResourceHandle]] = field(default_factory=dict)
    failed_pools: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        """Number of instances across every pool."""
        return sum(len(items) for items in self.resources.values())

    def format_report(self) -> str:
        """Return one line per pool and one indented line per instance."""
        lines: list[str] = []
        for pool_name, items in self.resources.items():
            lines.append(f"{pool_name}: {len(items)} instance(s)")
            lines.extend(f"  {r.display_name or r.id} [{r.state}] {r.id}" for r in items)
        for pool_name in self.failed_pools:
            lines.append(f"{pool_name}: listing failed")
        return "\n".join(lines)


async def list_resources_across_pools(
    provider: ComputeProvider,
    pools: Sequence[ResourcePool],
) -> Inventory:
    """List the instances of every pool concurrently.

    Args:
        provider: Provider to query.
        pools: Pools to list, in directory order.

    Returns:
        An :class:`Inventory` with one entry per pool that answered.
    """
    collected: dict[str, list[ResourceHandle]] = {}
    lock = asyncio.Lock()

    async def _list_one(pool: ResourcePool) -> None:
        items = await provider.list_resources(pool)
        async with lock:
            collected[pool.name] = items

    raw_results = await asyncio.gather(
        *(_list_one(pool) for pool in pools),
        return_exceptions=True,
    )

    inventory = Inventory()
    for pool, result in zip(pools, raw_results):
        if isinstance(result, BaseException):
            logger.error("Pool %s: listing instances failed: %s", pool.name, result)
            inventory.failed_pools.append(pool.name)
        elif pool.name in collected:
            inventory.resources[pool.name] = collected[pool.name]

    logger.info(
        "Inventory: %d instance(s) across %d pool(s), failed_pools=%s",
        inventory.total,
        len(inventory.resources),
        inventory.failed_pools or "none",
    )
    return inventory
