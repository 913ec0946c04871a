"""Acquisition loop.

:class:`AcquisitionOrchestrator` drives one run from the first attempt to
``DONE`` or ``ABORTED``::

    IDLE → SELECTING_POOL → ATTEMPTING → SUCCEEDED | FAILED → BACKOFF
         → SELECTING_POOL → …

Component wiring
----------------
* :mod:`~claimbot.acquisition.rotation` picks the pool of every attempt
  and decides when the run is exhausted.
* :class:`~claimbot.acquisition.executor.AttemptExecutor` issues the launch.
* :class:`~claimbot.acquisition.address.PublicAddressWaiter` collects the
  public IPs of every acquired instance.
* :class:`~claimbot.acquisition.backoff.BackoffScheduler` sleeps after
  *every* attempt.
* A :class:`~claimbot.notifiers.notifier.ProgressNotifier` receives one
  message per item, posted when the item starts and edited in place as
  attempts fail or succeed.

Attempts are strictly sequential.  Provider errors, dead instances and
notification failures are absorbed by the loop; the caller only sees the
:class:`RunSummary` (with the abort reason, if any).

Typical usage::

    async with OciComputeProvider.from_config_file(path) as provider:
        orchestrator = AcquisitionOrchestrator(provider, notifier)
        summary = await orchestrator.run(spec)
    print(summary.format_report())
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field

from claimbot.acquisition.address import PublicAddressWaiter
from claimbot.acquisition.backoff import BackoffScheduler
from claimbot.acquisition.executor import AttemptExecutor
from claimbot.acquisition.rotation import Exhausted, RotationPolicy, build_rotation_policy
from claimbot.core import events
from claimbot.core.exceptions import AcquisitionAborted, ResourceDiedAfterAcquisition
from claimbot.core.logging_config import RUN_ID_CTX
from claimbot.core.models import AcquisitionSpec, AttemptOutcome, ResourceHandle, ResourcePool
from claimbot.core.session import AcquisitionSession, SessionState
from claimbot.notifiers.formatter import (
    ItemProgress,
    format_attempting,
    format_died,
    format_duration,
    format_giving_up,
    format_retrying,
    format_succeeded,
)
from claimbot.notifiers.notifier import NullNotifier, ProgressNotifier
from claimbot.providers.base import ComputeProvider

__all__ = ["AcquisitionOrchestrator", "AcquiredResource", "RunSummary"]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcquiredResource:
    """An instance won during the run.

    Attributes:
        handle: Instance as returned by the launch call.
        addresses: Public IPs collected after launch (possibly empty).
        died: ``True`` when the instance terminated before it got an address.
    """

    handle: ResourceHandle
    addresses: tuple[str, ...] = ()
    died: bool = False


@dataclass
class RunSummary:
    """Outcome of one acquisition run.

    Attributes:
        target: Number of instances the run had to acquire.
        attempted: Launch requests issued.
        succeeded: Instances acquired (dead ones included).
        state: Final :class:`SessionState` (``DONE`` or ``ABORTED``).
        abort_reason: Why the run gave up; ``None`` when it finished.
        resources: Every acquired instance, in acquisition order.
        duration_s: Wall-clock duration of the run.
    """

    target: int
    attempted: int = 0
    succeeded: int = 0
    state: SessionState = SessionState.IDLE
    abort_reason: AcquisitionAborted | None = None
    resources: list[AcquiredResource] = field(default_factory=list)
    duration_s: float = 0.0

    @property
    def aborted(self) -> bool:
        """``True`` when the run ended before reaching its target."""
        return self.state is SessionState.ABORTED

    def format_report(self) -> str:
        """Return a short multi-line human-readable report."""
        lines = [
            f"Run {self.state}: succeeded={self.succeeded}/{self.target} "
            f"attempted={self.attempted} duration={format_duration(self.duration_s)}"
        ]
        if self.abort_reason is not None:
            lines.append(f"  reason: {self.abort_reason}")
        for res in self.resources:
            status = "terminated" if res.died else (", ".join(res.addresses) or "no public IP")
            name = res.handle.display_name or res.handle.id
            lines.append(f"  {name} [{res.handle.pool_name}]: {status}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class AcquisitionOrchestrator:
    """Runs acquisition sessions against one provider.

    Args:
        provider: Compute provider used for every call.
        notifier: Progress notifier; defaults to :class:`NullNotifier`.
        backoff: Inter-attempt delay; defaults to a real-time scheduler.
        executor: Launch executor; defaults to one bound to *provider*.
        waiter: Address waiter; defaults to one bound to *provider*.
    """

    def __init__(
        self,
        provider: ComputeProvider,
        notifier: ProgressNotifier | None = None,
        *,
        backoff: BackoffScheduler | None = None,
        executor: AttemptExecutor | None = None,
        waiter: PublicAddressWaiter | None = None,
    ) -> None:
        self._provider = provider
        self._notifier: ProgressNotifier = notifier or NullNotifier()
        self._backoff = backoff or BackoffScheduler()
        self._executor = executor or AttemptExecutor(provider)
        self._waiter = waiter or PublicAddressWaiter(provider)

    async def run(
        self,
        spec: AcquisitionSpec,
        pools: Sequence[ResourcePool] | None = None,
    ) -> RunSummary:
        """Acquire the instances described by *spec*.

        Args:
            spec: What to launch and how hard to try.
            pools: Pools to rotate over; enumerated from the provider when
                omitted.

        Returns:
            The :class:`RunSummary` of the run.

        Raises:
            ConfigError: If no pool is available or the pinned pool does
                not exist.
            ProviderError: If the pools cannot be enumerated.
        """
        token = RUN_ID_CTX.set(uuid.uuid4().hex[:8])
        try:
            return await self._run(spec, pools)
        finally:
            RUN_ID_CTX.reset(token)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _run(
        self,
        spec: AcquisitionSpec,
        pools: Sequence[ResourcePool] | None,
    ) -> RunSummary:
        t0 = time.monotonic()
        if pools is None:
            pools = await self._provider.list_pools()
        policy = build_rotation_policy(spec, pools)
        session = policy.new_session(spec)
        summary = RunSummary(target=session.target_count)

        logger.info(
            "Run started: %d instance(s) of %s, mode=%s, %d pool(s).",
            session.target_count,
            spec.launch.shape,
            policy.mode,
            len(session.pools),
            extra={"event": events.RUN_START},
        )

        handle = await self._notifier.post(format_attempting(self._progress(session, spec)))
        announced: AcquisitionAborted | None = None
        last_error: BaseException | None = None

        while not session.done:
            session.state = SessionState.SELECTING_POOL
            choice = policy.next(session)
            if isinstance(choice, Exhausted):
                session.abort(choice.reason)
                if choice.reason is not announced:
                    progress = self._progress(session, spec)
                    handle = await self._notifier.update(
                        handle, format_giving_up(progress, last_error, choice.reason)
                    )
                break

            session.state = SessionState.ATTEMPTING
            session.record_attempt()
            outcome = await self._executor.attempt(
                spec, choice, session.sequence, session.target_count
            )

            if outcome.succeeded:
                handle = await self._on_success(session, policy, spec, outcome, handle, summary)
                last_error = None
            else:
                last_error = outcome.error
                handle, announced = await self._on_failure(session, policy, spec, outcome, handle)

        if session.done:
            session.state = SessionState.DONE
            logger.info(
                "Run done: %d/%d acquired in %d attempt(s).",
                session.succeeded_count,
                session.target_count,
                session.attempted_count,
                extra={"event": events.RUN_DONE},
            )
        else:
            logger.warning(
                "Run aborted after %d attempt(s) (%d/%d acquired): %s",
                session.attempted_count,
                session.succeeded_count,
                session.target_count,
                session.abort_reason,
                extra={"event": events.RUN_ABORTED},
            )

        summary.attempted = session.attempted_count
        summary.succeeded = session.succeeded_count
        summary.state = session.state
        summary.abort_reason = session.abort_reason
        summary.duration_s = time.monotonic() - t0
        return summary

    async def _on_success(
        self,
        session: AcquisitionSession,
        policy: RotationPolicy,
        spec: AcquisitionSpec,
        outcome: AttemptOutcome,
        handle: int | None,
        summary: RunSummary,
    ) -> int | None:
        session.state = SessionState.SUCCEEDED
        session.record_success(outcome.pool)
        policy.record_success(session, outcome.pool)

        acquired = await self._confirm(outcome.resource)
        summary.resources.append(acquired)

        progress = self._progress(session, spec, outcome)
        text = (
            format_died(progress)
            if acquired.died
            else format_succeeded(progress, list(acquired.addresses))
        )
        handle = await self._notifier.update(handle, text)

        session.state = SessionState.BACKOFF
        await self._backoff.sleep(spec.min_delay, spec.max_delay)

        if not session.done:
            session.start_next_item()
            handle = await self._notifier.post(format_attempting(self._progress(session, spec)))
        return handle

    async def _on_failure(
        self,
        session: AcquisitionSession,
        policy: RotationPolicy,
        spec: AcquisitionSpec,
        outcome: AttemptOutcome,
        handle: int | None,
    ) -> tuple[int | None, AcquisitionAborted | None]:
        session.state = SessionState.FAILED
        session.record_failure(outcome.pool)
        policy.record_failure(session, outcome.pool, outcome.error_kind)
        reason = policy.exhaustion(session)

        progress = self._progress(session, spec, outcome)
        if reason is None:
            text = format_retrying(progress, outcome.error)
        else:
            text = format_giving_up(progress, outcome.error, reason)
        handle = await self._notifier.update(handle, text)

        session.state = SessionState.BACKOFF
        await self._backoff.sleep(spec.min_delay, spec.max_delay)
        return handle, reason

    async def _confirm(self, resource: ResourceHandle) -> AcquiredResource:
        """Wait for the public addresses of a freshly launched instance."""
        try:
            addresses = await self._waiter.wait(resource)
        except ResourceDiedAfterAcquisition:
            return AcquiredResource(handle=resource, died=True)
        except Exception:  # noqa: BLE001
            # The launch already consumed capacity; the item stays won.
            logger.exception("Address lookup for %s failed; reporting no address.", resource.id)
            return AcquiredResource(handle=resource)
        return AcquiredResource(handle=resource, addresses=tuple(addresses))

    @staticmethod
    def _progress(
        session: AcquisitionSession,
        spec: AcquisitionSpec,
        outcome: AttemptOutcome | None = None,
    ) -> ItemProgress:
        return ItemProgress(
            sequence=outcome.sequence if outcome else session.sequence,
            target=session.target_count,
            launch=spec.launch,
            attempts=session.item_attempts,
            elapsed_s=session.item_elapsed_s,
            pool_name=outcome.pool.name if outcome else "",
            display_name=outcome.display_name if outcome else "",
        )
