"""Process-wide logging for claimbot.

``claimbot.__main__`` calls :func:`configure_logging` before anything else
runs.  After that, every module logs through its own module-level logger::

    logger = logging.getLogger(__name__)

A launch loop can run for days, so records are tagged with the id of the
acquisition run that produced them.  :class:`RunContextFilter` copies
:data:`RUN_ID_CTX` onto each record; the text format prints it in brackets
and :class:`JsonFormatter` puts it under ``"extra"``.

``LOG_LEVEL`` (DEBUG, INFO, WARNING, ERROR, CRITICAL) and ``LOG_FORMAT``
(``text`` or ``json``) are read from the environment when no explicit value
is passed.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = ["configure_logging", "JsonFormatter", "RUN_ID_CTX", "RunContextFilter"]

logger = logging.getLogger(__name__)

#: Id of the acquisition run in progress.  The orchestrator sets it for the
#: duration of :meth:`~claimbot.acquisition.orchestrator.AcquisitionOrchestrator.run`;
#: worker threads started by ``asyncio.to_thread`` see the same value.
#: ``"-"`` outside a run.
RUN_ID_CTX: ContextVar[str] = ContextVar("run_id", default="-")

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_FORMATS = ("text", "json")

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(run_id)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# The OCI SDK and its urllib3 pool log every request at INFO.
_QUIET_BELOW_DEBUG = ("oci", "urllib3", "httpx", "httpcore", "asyncio")


# ---------------------------------------------------------------------------
# Run id injection
# ---------------------------------------------------------------------------


class RunContextFilter(logging.Filter):
    """Stamp ``record.run_id`` with the current acquisition run id."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.run_id = RUN_ID_CTX.get()
        return True


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def _pick(value: str | None, env_name: str, default: str, allowed: tuple[str, ...]) -> str:
    chosen = value or os.environ.get(env_name, default)
    normalised = chosen.upper() if allowed is _LEVELS else chosen.lower()
    if normalised not in allowed:
        raise ValueError(f"Unknown {env_name} {chosen!r}. Must be one of: {', '.join(allowed)}")
    return normalised


def _stderr_handler(level: str, fmt: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(RunContextFilter())
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=_TEXT_FORMAT, datefmt=_DATE_FORMAT))
    return handler


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    force: bool = False,
) -> None:
    """Install one stderr handler on the root logger.

    Args:
        level: Level name; ``$LOG_LEVEL`` or ``INFO`` when omitted.
        fmt: ``"text"`` or ``"json"``; ``$LOG_FORMAT`` or ``text`` when omitted.
        force: Replace handlers that are already installed.  Without it an
            existing setup (pytest's capture, for instance) keeps its
            handlers and only the level changes.

    Raises:
        ValueError: On an unknown level or format.
    """
    resolved_level = _pick(level, "LOG_LEVEL", "INFO", _LEVELS)
    resolved_fmt = _pick(fmt, "LOG_FORMAT", "text", _FORMATS)

    root = logging.getLogger()
    root.setLevel(resolved_level)
    if root.handlers and not force:
        return

    root.handlers.clear()
    root.addHandler(_stderr_handler(resolved_level, resolved_fmt))

    if resolved_level != "DEBUG":
        for name in _QUIET_BELOW_DEBUG:
            logging.getLogger(name).setLevel(logging.WARNING)
    logger.debug("Logging configured (level=%s, format=%s).", resolved_level, resolved_fmt)


# ---------------------------------------------------------------------------
# JSON output
# ---------------------------------------------------------------------------


def _utc_timestamp(record: logging.LogRecord) -> str:
    moment = datetime.fromtimestamp(record.created, tz=UTC)
    return f"{moment:%Y-%m-%dT%H:%M:%S}.{int(record.msecs):03d}Z"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers.

    Every object carries ``ts``, ``level``, ``logger``, ``message`` and
    ``extra``.  ``extra`` holds whatever was passed through
    ``extra={...}``, so an attempt failure looks like::

        {"ts": "2026-10-18T07:41:02.113Z", "level": "INFO",
         "logger": "claimbot.acquisition.executor",
         "message": "Launch of arm-box in Uocm:PHX-AD-1 failed (retryable): ...",
         "extra": {"event": "ATTEMPT_FAILED", "pool": "Uocm:PHX-AD-1",
                   "run_id": "a3f2b1c0"}}

    ``exc_info`` and ``stack_info`` are added when the record has them.
    Values that are not JSON types are rendered with ``str``.
    """

    #: Standard ``LogRecord`` attributes; anything else is user ``extra``.
    _STANDARD_ATTRS: frozenset[str] = frozenset(
        vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys() | {"message", "taskName"}
    )

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: dict[str, Any] = {
            "ts": _utc_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "extra": {
                key: value
                for key, value in vars(record).items()
                if key not in self._STANDARD_ATTRS
            },
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["exc_info"] = record.exc_text
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str)
