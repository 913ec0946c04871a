"""Single launch attempt.

:class:`AttemptExecutor` issues exactly one provisioning call and turns its
result into an :class:`~claimbot.core.models.AttemptOutcome`.  It never
retries and never raises for a provider failure: the error is classified
and handed back so the orchestrator can decide what happens next.
"""

from __future__ import annotations

import logging

from claimbot.acquisition.classifier import classify, to_classified
from claimbot.core import events
from claimbot.core.models import (
    AcquisitionSpec,
    AttemptOutcome,
    LaunchRequest,
    ResourcePool,
)
from claimbot.providers.base import ComputeProvider

__all__ = ["AttemptExecutor", "display_name_for"]

logger = logging.getLogger(__name__)


def display_name_for(base: str, sequence: int, target: int) -> str:
    """Return the instance name of item *sequence* (1-based) of *target*.

    A single-instance run uses *base* verbatim; otherwise the name is
    suffixed with the item position, so every retry of the same item reuses
    the same name.
    """
    if target == 1:
        return base
    return f"{base}-{sequence}"


class AttemptExecutor:
    """Performs one launch call against a provider.

    Args:
        provider: Compute provider the request is sent to.
    """

    def __init__(self, provider: ComputeProvider) -> None:
        self._provider = provider

    async def attempt(
        self,
        spec: AcquisitionSpec,
        pool: ResourcePool,
        sequence: int,
        target: int,
    ) -> AttemptOutcome:
        """Launch item *sequence* of *target* in *pool*.

        Returns:
            An :class:`AttemptOutcome`; ``succeeded`` is ``False`` and
            ``error`` / ``error_kind`` are set when the provider rejected
            the request.
        """
        name = display_name_for(spec.display_name, sequence, target)
        request = LaunchRequest(display_name=name, pool=pool, params=spec.launch)

        logger.info(
            "Launching %s in %s (item %d/%d).",
            name,
            pool.name,
            sequence,
            target,
            extra={"event": events.ATTEMPT_START, "pool": pool.name},
        )
        try:
            resource = await self._provider.launch(request)
        except Exception as exc:  # noqa: BLE001
            error = to_classified(exc)
            kind = classify(error)
            logger.info(
                "Launch of %s in %s failed (%s): %s",
                name,
                pool.name,
                kind,
                error,
                extra={"event": events.ATTEMPT_FAILED, "pool": pool.name},
            )
            return AttemptOutcome(
                succeeded=False,
                pool=pool,
                display_name=name,
                sequence=sequence,
                error_kind=kind,
                error=error,
            )

        logger.info(
            "Launch of %s in %s accepted (id=%s).",
            name,
            pool.name,
            resource.id,
            extra={"event": events.ATTEMPT_SUCCEEDED, "pool": pool.name},
        )
        return AttemptOutcome(
            succeeded=True,
            pool=pool,
            display_name=name,
            sequence=sequence,
            resource=resource,
        )
