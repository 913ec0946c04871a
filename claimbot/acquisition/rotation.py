"""Pool rotation policies.

A rotation policy decides which :class:`~claimbot.core.models.ResourcePool`
the next launch attempt targets.  The three modes form a closed set selected
once per run by :func:`build_rotation_policy`:

* :class:`FixedRotation` — every attempt goes to the pinned pool.
* :class:`EvenSplitRotation` — ``each`` instances per pool, pools in
  directory order.
* :class:`ExhaustiveRotation` — cycle through every active pool once per
  round; pools rejecting a request permanently drop out at the round
  boundary.

Policies hold no state of their own.  Everything they track lives on the
:class:`~claimbot.core.session.AcquisitionSession` they are handed, and the
orchestrator always updates the session counters (``record_success`` /
``record_failure``) *before* calling into the policy.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar

from claimbot.core import events
from claimbot.core.exceptions import (
    AcquisitionAborted,
    ConfigError,
    PoolsExhausted,
    RetryLimitExceeded,
)
from claimbot.core.models import AcquisitionSpec, ErrorKind, ResourcePool, RotationMode
from claimbot.core.session import AcquisitionSession

__all__ = [
    "Exhausted",
    "RotationPolicy",
    "FixedRotation",
    "EvenSplitRotation",
    "ExhaustiveRotation",
    "build_rotation_policy",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Exhausted:
    """Returned by :meth:`RotationPolicy.next` when no pool may be tried."""

    reason: AcquisitionAborted


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class RotationPolicy(ABC):
    """Common contract of the three rotation modes.

    Args:
        pools: Pools enumerated for the run, in directory order.
        retry: Retry limit; ``-1`` means unlimited.
    """

    mode: ClassVar[RotationMode]

    def __init__(self, pools: Sequence[ResourcePool], *, retry: int = -1) -> None:
        if not pools:
            raise ConfigError("No availability domain available for this run.")
        self.pools: tuple[ResourcePool, ...] = tuple(pools)
        self.retry = retry

    @abstractmethod
    def target_count(self, spec: AcquisitionSpec) -> int:
        """Number of instances the run must acquire under this mode."""

    def new_session(self, spec: AcquisitionSpec) -> AcquisitionSession:
        """Create the session object for a run driven by this policy."""
        return AcquisitionSession(target_count=self.target_count(spec), pools=self.pools)

    @abstractmethod
    def next(self, session: AcquisitionSession) -> ResourcePool | Exhausted:
        """Return the pool for the next attempt, or :class:`Exhausted`."""

    def record_success(self, session: AcquisitionSession, pool: ResourcePool) -> None:
        """Update rotation state after an instance was acquired in *pool*."""
        session.skipped.clear()

    @abstractmethod
    def record_failure(
        self,
        session: AcquisitionSession,
        pool: ResourcePool,
        kind: ErrorKind,
    ) -> None:
        """Update rotation state after a failed attempt against *pool*."""

    def exhaustion(self, session: AcquisitionSession) -> AcquisitionAborted | None:
        """Return the abort reason once the session can make no more attempts."""
        return session.exhaustion

    def _retry_exceeded(self, failures: int) -> bool:
        return self.retry >= 0 and failures > self.retry


# ---------------------------------------------------------------------------
# Fixed
# ---------------------------------------------------------------------------


class FixedRotation(RotationPolicy):
    """Every attempt targets the single pinned pool."""

    mode = RotationMode.FIXED

    def target_count(self, spec: AcquisitionSpec) -> int:
        return spec.sum

    def next(self, session: AcquisitionSession) -> ResourcePool | Exhausted:
        if session.exhaustion is not None:
            return Exhausted(session.exhaustion)
        return session.pools[session.active[0]]

    def record_failure(
        self,
        session: AcquisitionSession,
        pool: ResourcePool,
        kind: ErrorKind,
    ) -> None:
        if kind is ErrorKind.TERMINAL:
            session.exhaustion = PoolsExhausted(
                f"Pinned pool {pool.name} rejected the request permanently."
            )
            return
        failures = session.pool_failures.get(session.index_of(pool), 0)
        if self._retry_exceeded(failures):
            session.exhaustion = RetryLimitExceeded(
                f"Retry limit {self.retry} reached on pinned pool {pool.name}."
            )


# ---------------------------------------------------------------------------
# Even split
# ---------------------------------------------------------------------------


class EvenSplitRotation(RotationPolicy):
    """``each`` instances per pool, pools visited in directory order.

    The current pool is the first non-excluded pool, scanning cyclically
    from the cursor, that still has quota left.  The cursor goes back to
    pool 0 after every success, not only after a pool's quota is filled.
    """

    mode = RotationMode.EVEN_SPLIT

    def __init__(self, pools: Sequence[ResourcePool], *, each: int, retry: int = -1) -> None:
        super().__init__(pools, retry=retry)
        if each < 1:
            raise ValueError(f"each must be ≥ 1, got {each!r}.")
        self.each = each

    def target_count(self, spec: AcquisitionSpec) -> int:
        return self.each * len(self.pools)

    def next(self, session: AcquisitionSession) -> ResourcePool | Exhausted:
        if session.exhaustion is not None:
            return Exhausted(session.exhaustion)
        index = self._first_open(session)
        if index is None:
            session.exhaustion = PoolsExhausted("No pool with remaining quota is left.")
            return Exhausted(session.exhaustion)
        session.cursor = index
        return session.pools[index]

    def record_success(self, session: AcquisitionSession, pool: ResourcePool) -> None:
        super().record_success(session, pool)
        session.cursor = 0

    def record_failure(
        self,
        session: AcquisitionSession,
        pool: ResourcePool,
        kind: ErrorKind,
    ) -> None:
        index = session.index_of(pool)
        reason: AcquisitionAborted | None = None
        if kind is ErrorKind.TERMINAL:
            reason = PoolsExhausted(f"Pool {pool.name} rejected the request permanently.")
        elif self._retry_exceeded(session.pool_failures.get(index, 0)):
            reason = RetryLimitExceeded(f"Retry limit {self.retry} reached on pool {pool.name}.")
        if reason is None:
            return

        session.excluded.add(index)
        logger.warning(
            "Pool %s removed from rotation: %s",
            pool.name,
            reason,
            extra={"event": events.POOL_EXCLUDED, "pool": pool.name},
        )
        if self._first_open(session) is None:
            session.exhaustion = reason

    def _open(self, session: AcquisitionSession, index: int) -> bool:
        return (
            index not in session.excluded
            and session.pool_successes.get(index, 0) < self.each
        )

    def _first_open(self, session: AcquisitionSession) -> int | None:
        count = len(session.pools)
        for step in range(count):
            index = (session.cursor + step) % count
            if self._open(session, index):
                return index
        return None


# ---------------------------------------------------------------------------
# Exhaustive
# ---------------------------------------------------------------------------


class ExhaustiveRotation(RotationPolicy):
    """One pass over the active pools per round.

    A terminal failure flags the pool skip; skipped pools leave the active
    set at the round boundary.  ``retry`` bounds the number of consecutive
    rounds without a success.
    """

    mode = RotationMode.EXHAUSTIVE

    def target_count(self, spec: AcquisitionSpec) -> int:
        return spec.sum

    def next(self, session: AcquisitionSession) -> ResourcePool | Exhausted:
        if session.exhaustion is not None:
            return Exhausted(session.exhaustion)
        if not session.active:
            session.exhaustion = PoolsExhausted("Every pool rejected the request permanently.")
            return Exhausted(session.exhaustion)
        return session.pools[session.active[session.cursor]]

    def record_success(self, session: AcquisitionSession, pool: ResourcePool) -> None:
        super().record_success(session, pool)
        session.active = list(range(len(session.pools)))
        session.cursor = 0
        session.round_failures = 0

    def record_failure(
        self,
        session: AcquisitionSession,
        pool: ResourcePool,
        kind: ErrorKind,
    ) -> None:
        if kind is ErrorKind.TERMINAL:
            session.skipped.add(session.index_of(pool))
            logger.info(
                "Pool %s skipped for the rest of the round.",
                pool.name,
                extra={"event": events.POOL_SKIPPED, "pool": pool.name},
            )

        session.cursor += 1
        if session.cursor < len(session.active):
            return
        self._close_round(session)

    def _close_round(self, session: AcquisitionSession) -> None:
        session.round_failures += 1
        for index in sorted(session.skipped):
            logger.warning(
                "Pool %s removed from rotation.",
                session.pools[index].name,
                extra={"event": events.POOL_EXCLUDED, "pool": session.pools[index].name},
            )
        session.active = [i for i in session.active if i not in session.skipped]
        session.skipped.clear()
        session.cursor = 0
        logger.info(
            "Round %d finished without a success (%d pool(s) left).",
            session.round_failures,
            len(session.active),
            extra={"event": events.ROUND_COMPLETE},
        )

        if not session.active:
            session.exhaustion = PoolsExhausted("Every pool rejected the request permanently.")
        elif self._retry_exceeded(session.round_failures):
            session.exhaustion = RetryLimitExceeded(
                f"Retry limit {self.retry} reached after {session.round_failures} round(s)."
            )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_rotation_policy(
    spec: AcquisitionSpec,
    pools: Sequence[ResourcePool],
) -> RotationPolicy:
    """Select the rotation policy matching ``spec.rotation_mode``.

    Raises:
        ConfigError: If no pool is available or the pinned pool is unknown.
    """
    mode = spec.rotation_mode
    if mode is RotationMode.FIXED:
        pinned = [p for p in pools if spec.fixed_pool in (p.name, p.id)]
        if not pinned:
            raise ConfigError(f"Availability domain {spec.fixed_pool!r} not found.")
        policy: RotationPolicy = FixedRotation(pinned[:1], retry=spec.retry)
    elif mode is RotationMode.EVEN_SPLIT:
        policy = EvenSplitRotation(pools, each=spec.each, retry=spec.retry)
    else:
        policy = ExhaustiveRotation(pools, retry=spec.retry)
    logger.debug("Rotation mode %s over %d pool(s).", policy.mode, len(policy.pools))
    return policy
