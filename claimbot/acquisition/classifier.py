"""Failure classification for launch attempts.

Maps a provider error to an :class:`~claimbot.core.models.ErrorKind`:

* ``TERMINAL`` — retrying the identical request will not help (bad request,
  auth, quota/limit rejections, unsupported operation).  The rotation
  policy abandons the pool.
* ``RETRYABLE`` — capacity shortage, throttling, server faults, timeouts
  and anything unrecognised.  The pool stays in rotation.

Classification is total: every input yields one of the two kinds.

Typical usage::

    from claimbot.acquisition.classifier import classify

    kind = classify(exc)
"""

from __future__ import annotations

import logging
from typing import Final

from claimbot.core.exceptions import (
    ProviderError,
    TerminalProviderError,
    TransientProviderError,
)
from claimbot.core.models import ErrorKind

__all__ = ["classify", "to_classified", "TERMINAL_STATUS_CODES"]

logger = logging.getLogger(__name__)

#: HTTP status codes the provider uses for permanent rejections.
TERMINAL_STATUS_CODES: Final[frozenset[int]] = frozenset(
    {400, 401, 402, 403, 405, 409, 412, 413, 422, 431, 501}
)

#: A 409 carrying this reason code is a transient state conflict.
_TRANSIENT_CONFLICT_CODE: Final[str] = "incorrectstate"

#: Message fragments that mark a permanent condition regardless of status.
_PERMANENT_MARKERS: Final[tuple[str, ...]] = (
    "no capacity configuration matches",
)


def classify(error: BaseException) -> ErrorKind:
    """Return the :class:`ErrorKind` of *error*.

    Args:
        error: Exception raised by a provider call.

    Returns:
        ``ErrorKind.TERMINAL`` or ``ErrorKind.RETRYABLE``.
    """
    if isinstance(error, TerminalProviderError):
        return ErrorKind.TERMINAL
    if isinstance(error, TransientProviderError):
        return ErrorKind.RETRYABLE
    if not isinstance(error, ProviderError):
        return ErrorKind.RETRYABLE

    status = error.status_code
    if status in TERMINAL_STATUS_CODES:
        if status == 409 and (error.code or "").lower() == _TRANSIENT_CONFLICT_CODE:
            return ErrorKind.RETRYABLE
        return ErrorKind.TERMINAL

    message = (error.message or "").lower()
    if any(marker in message for marker in _PERMANENT_MARKERS):
        return ErrorKind.TERMINAL

    return ErrorKind.RETRYABLE


def to_classified(error: BaseException) -> ProviderError:
    """Wrap *error* in the provider exception class matching its kind.

    Already-classified errors are returned unchanged.  The original error is
    chained as ``__cause__``.
    """
    if isinstance(error, (TerminalProviderError, TransientProviderError)):
        return error

    kind = classify(error)
    cls = TerminalProviderError if kind is ErrorKind.TERMINAL else TransientProviderError
    if isinstance(error, ProviderError):
        wrapped = cls(error.message, status_code=error.status_code, code=error.code)
    else:
        wrapped = cls(str(error) or type(error).__name__)
    wrapped.__cause__ = error
    return wrapped
