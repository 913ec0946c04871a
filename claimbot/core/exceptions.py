"""Claimbot exception taxonomy.

Every custom exception inherits from :class:`ClaimbotError`.  Exceptions are
organised by architectural layer so callers can catch at the right granularity:

    Layer hierarchy
    ---------------
    ClaimbotError
    ├── ConfigError
    ├── ProviderError
    │   ├── TransientProviderError
    │   └── TerminalProviderError
    ├── ResourceDiedAfterAcquisition
    ├── AcquisitionAborted
    │   ├── PoolsExhausted
    │   └── RetryLimitExceeded
    └── NotificationError
        └── TelegramError
            └── TelegramRateLimitError

Only :class:`AcquisitionAborted` subclasses describe the end of a whole
acquisition run.  Provider errors and :class:`ResourceDiedAfterAcquisition`
describe a single attempt and are absorbed by the orchestrator loop.

Usage:

    from claimbot.core.exceptions import ProviderError

    raise ProviderError("Out of host capacity.", status_code=500, code="InternalError")
"""

from __future__ import annotations

import logging

__all__ = [
    "ClaimbotError",
    # Config
    "ConfigError",
    # Provider
    "ProviderError",
    "TransientProviderError",
    "TerminalProviderError",
    # Acquisition
    "ResourceDiedAfterAcquisition",
    "AcquisitionAborted",
    "PoolsExhausted",
    "RetryLimitExceeded",
    # Notification
    "NotificationError",
    "TelegramError",
    "TelegramRateLimitError",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class ClaimbotError(Exception):
    """Root exception for all Claimbot errors.

    Catch this to handle any application-level error uniformly.  Prefer
    catching layer-specific subclasses wherever possible.
    """


# ---------------------------------------------------------------------------
# Config layer
# ---------------------------------------------------------------------------


class ConfigError(ClaimbotError):
    """Raised when the application configuration is invalid or incomplete.

    Examples:
        - ``INSTANCE_IMAGE_ID`` or ``INSTANCE_SUBNET_ID`` is missing.
        - The pinned availability domain is not in the tenancy's list.
    """


# ---------------------------------------------------------------------------
# Provider layer
# ---------------------------------------------------------------------------


class ProviderError(ClaimbotError):
    """Base class for errors returned by the compute provider API.

    Args:
        message: Human-readable error description as reported by the provider.
        status_code: HTTP status code of the provider response, or ``None``
            for failures that never produced a response (timeouts, resets).
        code: Provider's fine-grained reason code (e.g. ``"IncorrectState"``,
            ``"LimitExceeded"``), if any.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.code = code
        detail = f" (HTTP {status_code}" if status_code is not None else ""
        if detail and code:
            detail += f" {code}"
        if detail:
            detail += ")"
        super().__init__(f"Provider error{detail}: {message}")


class TransientProviderError(ProviderError):
    """A provider failure that may succeed if the identical request is retried.

    Covers HTTP 429, most 5xx (including "Out of host capacity"), network
    timeouts and connection resets.
    """


class TerminalProviderError(ProviderError):
    """A provider rejection that will not resolve by retrying the same request.

    The pool (or, in fixed-pool mode, the whole run) is abandoned.
    """


# ---------------------------------------------------------------------------
# Acquisition layer
# ---------------------------------------------------------------------------


class ResourceDiedAfterAcquisition(ClaimbotError):
    """The launch succeeded but the instance went to TERMINATING/TERMINATED.

    The instance still counts as acquired (the capacity was consumed), but
    no public address can be obtained for it.

    Args:
        resource_id: Provider identifier of the dead instance.
        state: Lifecycle state observed when the death was detected.
    """

    def __init__(self, resource_id: str, state: str) -> None:
        self.resource_id = resource_id
        self.state = state
        super().__init__(f"Instance {resource_id} died after acquisition (state={state})")


class AcquisitionAborted(ClaimbotError):
    """Base class for session-level aborts.

    Args:
        message: Human-readable reason.
    """


class PoolsExhausted(AcquisitionAborted):
    """Every candidate pool has been ruled out; nothing is left to try."""


class RetryLimitExceeded(AcquisitionAborted):
    """The configured retry limit was breached while pools remained."""


# ---------------------------------------------------------------------------
# Notification layer
# ---------------------------------------------------------------------------


class NotificationError(ClaimbotError):
    """Base class for notification delivery errors."""


class TelegramError(NotificationError):
    """Raised when the Telegram Bot API returns an error or is unreachable.

    Args:
        message: Human-readable error description.
        status_code: HTTP status code from the Telegram API, if available.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        detail = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Telegram error{detail}: {message}")


class TelegramRateLimitError(TelegramError):
    """Raised when the Telegram Bot API returns HTTP 429 (Too Many Requests).

    Args:
        retry_after: Seconds to wait before retrying, as reported by Telegram.
    """

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(
            f"Rate limited — retry after {retry_after}s",
            status_code=429,
        )
