"""Structured log event name constants for the acquisition loop.

Every key transition in the orchestrator emits a log record with an
``event`` field (passed via ``extra={"event": events.X}``).  In
``LOG_FORMAT=json`` mode the value surfaces as ``extra.event``, so a single
run can be followed with a query such as ``extra.event = "ATTEMPT_FAILED"``.

Usage example::

    import logging
    from claimbot.core import events

    logger = logging.getLogger(__name__)

    logger.info("Run started", extra={"event": events.RUN_START})
"""

from __future__ import annotations

__all__ = [
    # Run lifecycle
    "RUN_START",
    "RUN_DONE",
    "RUN_ABORTED",
    # Attempt lifecycle
    "ATTEMPT_START",
    "ATTEMPT_SUCCEEDED",
    "ATTEMPT_FAILED",
    # Pool rotation
    "POOL_SKIPPED",
    "POOL_EXCLUDED",
    "ROUND_COMPLETE",
    # Post-acquisition
    "ADDRESS_ASSIGNED",
    "RESOURCE_DIED",
    # Notification
    "NOTIFY_ERROR",
]

# ---------------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------------

#: Emitted once when an acquisition run starts.
RUN_START: str = "RUN_START"

#: Emitted once when the run reaches its target count.
RUN_DONE: str = "RUN_DONE"

#: Emitted once when the run ends because no pool is eligible or the retry
#: limit was breached.
RUN_ABORTED: str = "RUN_ABORTED"

# ---------------------------------------------------------------------------
# Attempt lifecycle
# ---------------------------------------------------------------------------

#: A launch request is about to be sent.
ATTEMPT_START: str = "ATTEMPT_START"

#: The provider accepted a launch request.
ATTEMPT_SUCCEEDED: str = "ATTEMPT_SUCCEEDED"

#: The provider rejected a launch request (retryable or terminal).
ATTEMPT_FAILED: str = "ATTEMPT_FAILED"

# ---------------------------------------------------------------------------
# Pool rotation
# ---------------------------------------------------------------------------

#: A pool was flagged skip for the rest of the current round.
POOL_SKIPPED: str = "POOL_SKIPPED"

#: A pool was removed from rotation for the rest of the run.
POOL_EXCLUDED: str = "POOL_EXCLUDED"

#: An exhaustive-mode round finished without a success.
ROUND_COMPLETE: str = "ROUND_COMPLETE"

# ---------------------------------------------------------------------------
# Post-acquisition
# ---------------------------------------------------------------------------

#: Public addresses were collected for a freshly acquired instance.
ADDRESS_ASSIGNED: str = "ADDRESS_ASSIGNED"

#: A freshly acquired instance was observed terminating or terminated.
RESOURCE_DIED: str = "RESOURCE_DIED"

# ---------------------------------------------------------------------------
# Notification
# ---------------------------------------------------------------------------

#: A progress notification could not be delivered (logged, never raised).
NOTIFY_ERROR: str = "NOTIFY_ERROR"
