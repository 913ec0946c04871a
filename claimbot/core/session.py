"""Mutable state of one acquisition run.

An :class:`AcquisitionSession` is created by the orchestrator when a run
starts, passed by reference to the rotation policy on every call, and
discarded when the run ends.  The orchestrator is its only writer; the
rotation policy mutates it only when the orchestrator calls into it.

Pools are held in an *arena*: :attr:`AcquisitionSession.pools` never
changes during a run, and every other pool-related field refers to pools by
their index in that tuple.  Filtering the rotation means rebuilding
:attr:`AcquisitionSession.active`, never reordering :attr:`pools`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import StrEnum

from claimbot.core.exceptions import AcquisitionAborted
from claimbot.core.models import ResourcePool

__all__ = ["SessionState", "AcquisitionSession"]

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    """Orchestrator state machine positions."""

    IDLE = "idle"
    SELECTING_POOL = "selecting_pool"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    BACKOFF = "backoff"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class AcquisitionSession:
    """State bag for a single acquisition run.

    Attributes:
        target_count: Number of instances the run must acquire.
        pools: Every pool enumerated for the run, in directory order.
        succeeded_count: Instances acquired so far.
        attempted_count: Launch requests issued so far (whole run).
        state: Current :class:`SessionState`.
        active: Indices into :attr:`pools` eligible in the current round.
        cursor: Position in :attr:`active` of the next pool to try.
        skipped: Pool indices flagged skip until the next round boundary.
        excluded: Pool indices removed from rotation for the whole run.
        pool_failures: Consecutive failures per pool index.
        pool_successes: Successes recorded per pool index.
        round_failures: Rounds completed without a success.
        item_attempts: Attempts spent on the current item.
        item_started_at: Monotonic timestamp the current item started at.
        exhaustion: Set by the rotation policy once no pool may be tried
            again; turned into an abort on the next pool selection.
        abort_reason: Why the run gave up, once it has.
    """

    target_count: int
    pools: tuple[ResourcePool, ...]
    succeeded_count: int = 0
    attempted_count: int = 0
    state: SessionState = SessionState.IDLE
    active: list[int] = field(default_factory=list)
    cursor: int = 0
    skipped: set[int] = field(default_factory=set)
    excluded: set[int] = field(default_factory=set)
    pool_failures: dict[int, int] = field(default_factory=dict)
    pool_successes: dict[int, int] = field(default_factory=dict)
    round_failures: int = 0
    item_attempts: int = 0
    item_started_at: float = field(default_factory=time.monotonic)
    exhaustion: AcquisitionAborted | None = None
    abort_reason: AcquisitionAborted | None = None

    def __post_init__(self) -> None:
        if self.target_count < 1:
            raise ValueError(f"target_count must be ≥ 1, got {self.target_count!r}.")
        if not self.active:
            self.active = list(range(len(self.pools)))

    # ------------------------------------------------------------------
    # Derived properties
    # ------------------------------------------------------------------

    @property
    def done(self) -> bool:
        """``True`` once the target count has been reached."""
        return self.succeeded_count >= self.target_count

    @property
    def sequence(self) -> int:
        """1-based position of the item currently being acquired."""
        return self.succeeded_count + 1

    @property
    def item_elapsed_s(self) -> float:
        """Seconds spent on the current item so far."""
        return time.monotonic() - self.item_started_at

    def index_of(self, pool: ResourcePool) -> int:
        """Return the arena index of *pool*."""
        return self.pools.index(pool)

    # ------------------------------------------------------------------
    # Transitions (called by the orchestrator only)
    # ------------------------------------------------------------------

    def record_attempt(self) -> None:
        """Count one launch request against the run and the current item."""
        self.attempted_count += 1
        self.item_attempts += 1

    def record_success(self, pool: ResourcePool) -> None:
        """Count an acquired instance against the run and *pool*."""
        if self.succeeded_count >= self.target_count:
            raise RuntimeError("succeeded_count would exceed target_count")
        index = self.index_of(pool)
        self.succeeded_count += 1
        self.pool_successes[index] = self.pool_successes.get(index, 0) + 1
        self.pool_failures[index] = 0

    def record_failure(self, pool: ResourcePool) -> int:
        """Increment and return the consecutive-failure counter of *pool*."""
        index = self.index_of(pool)
        self.pool_failures[index] = self.pool_failures.get(index, 0) + 1
        return self.pool_failures[index]

    def start_next_item(self) -> None:
        """Reset the per-item counters after an item is acquired."""
        self.item_attempts = 0
        self.item_started_at = time.monotonic()

    def abort(self, reason: AcquisitionAborted) -> None:
        """Mark the run as aborted with *reason*."""
        self.abort_reason = reason
        self.state = SessionState.ABORTED
