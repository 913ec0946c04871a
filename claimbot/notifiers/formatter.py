"""Telegram MarkdownV2 progress message formatter.

Turns the state of the item currently being acquired into ready-to-send
Telegram ``MarkdownV2`` texts.  One logical item produces one message that
is first posted ("attempting") and then edited in place as attempts fail
or succeed.

Telegram MarkdownV2 escaping rules
-----------------------------------
The following characters **must** be escaped with a leading backslash when
they appear in ordinary message text::

    _ * [ ] ( ) ~ ` > # + - = | { } . !

Reference: https://core.telegram.org/bots/api#markdownv2-style

Public API
----------
:func:`escape_mdv2` — Escape a plain-text string for a MarkdownV2 body.

:func:`format_duration` — Human-readable duration (``"1h 2m 3s"``).

:func:`format_attempting`, :func:`format_retrying`, :func:`format_giving_up`,
:func:`format_succeeded`, :func:`format_died` — the per-item progress texts.

Typical usage::

    from claimbot.notifiers.formatter import ItemProgress, format_attempting

    text = format_attempting(ItemProgress(sequence=1, target=2, launch=spec.launch))
    handle = await notifier.post(text)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from claimbot.core.models import LaunchParameters

__all__ = [
    "ItemProgress",
    "escape_mdv2",
    "format_duration",
    "format_attempting",
    "format_retrying",
    "format_giving_up",
    "format_succeeded",
    "format_died",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

_MDV2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


def escape_mdv2(text: str) -> str:
    """Escape a plain-text string for safe embedding in a MarkdownV2 body.

    Examples:
        >>> escape_mdv2("instance-1 (AD-1).")
        'instance\\\\-1 \\\\(AD\\\\-1\\\\)\\\\.'
    """
    return _MDV2_SPECIAL.sub(r"\\\1", text)


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format *seconds* as ``"2d 3h 4m 5s"``, omitting zero components.

    Anything under one second renders as ``"< 1s"``.
    """
    if seconds < 1:
        return "< 1s"
    total = int(seconds)
    days, rem = divmod(total, 86_400)
    hours, rem = divmod(rem, 3_600)
    minutes, secs = divmod(rem, 60)
    parts = [
        f"{value}{unit}"
        for value, unit in ((days, "d"), (hours, "h"), (minutes, "m"), (secs, "s"))
        if value
    ]
    return " ".join(parts)


# ---------------------------------------------------------------------------
# Progress texts
# ---------------------------------------------------------------------------

_HEADER = "🔰 *Claimbot*"


@dataclass(frozen=True)
class ItemProgress:
    """Snapshot of the item being acquired, as shown in progress messages.

    Attributes:
        sequence: 1-based position of the item.
        target: Total number of instances in the run.
        launch: Launch parameters (shape and sizing lines).
        attempts: Attempts spent on this item so far.
        elapsed_s: Seconds spent on this item so far.
        pool_name: Pool of the latest attempt, if any.
        display_name: Instance name, if known.
    """

    sequence: int
    target: int
    launch: LaunchParameters
    attempts: int = 0
    elapsed_s: float = 0.0
    pool_name: str = ""
    display_name: str = ""


def _line(label: str, value: object) -> str:
    return f"{escape_mdv2(label)}: {escape_mdv2(str(value))}"


def _launch_lines(progress: ItemProgress) -> list[str]:
    launch = progress.launch
    lines = [_line("Shape", launch.shape)]
    if launch.ocpus is not None:
        lines.append(_line("OCPU", f"{launch.ocpus:g}"))
    if launch.memory_in_gbs is not None:
        lines.append(_line("Memory (GB)", f"{launch.memory_in_gbs:g}"))
    if launch.boot_volume_size_in_gbs is not None:
        lines.append(_line("Boot volume (GB)", launch.boot_volume_size_in_gbs))
    lines.append(_line("Count", progress.target))
    return lines


def _attempt_lines(progress: ItemProgress) -> list[str]:
    lines = []
    if progress.display_name:
        lines.append(_line("Name", progress.display_name))
    if progress.pool_name:
        lines.append(_line("Availability domain", progress.pool_name))
    lines.extend(_launch_lines(progress))
    lines.append(_line("Attempts", progress.attempts))
    lines.append(_line("Elapsed", format_duration(progress.elapsed_s)))
    return lines


def _compose(title: str, body: list[str]) -> str:
    return "\n".join([_HEADER, title, *body])


def format_attempting(progress: ItemProgress) -> str:
    """Text posted when work on an item starts."""
    title = escape_mdv2(f"⏳ Attempting instance #{progress.sequence}...")
    return _compose(title, _launch_lines(progress))


def format_retrying(progress: ItemProgress, error: BaseException) -> str:
    """Text shown after a failed attempt when the run keeps trying."""
    title = escape_mdv2(f"❌ Attempt for instance #{progress.sequence} failed, retrying...")
    return _compose(title, [_line("Error", _error_text(error)), *_attempt_lines(progress)])


def format_giving_up(
    progress: ItemProgress,
    error: BaseException | None,
    reason: BaseException,
) -> str:
    """Text shown when the run is aborted while working on an item."""
    title = escape_mdv2(f"🛑 Instance #{progress.sequence} failed, giving up")
    body = [_line("Reason", reason)]
    if error is not None:
        body.append(_line("Last error", _error_text(error)))
    return _compose(f"*{title}*", body + _attempt_lines(progress))


def format_succeeded(progress: ItemProgress, addresses: list[str]) -> str:
    """Text shown once an item is acquired and its addresses are known."""
    title = escape_mdv2(f"🎉 Instance #{progress.sequence} succeeded")
    public_ip = ", ".join(addresses) if addresses else "(none)"
    return _compose(f"*{title}*", [_line("Public IP", public_ip), *_attempt_lines(progress)])


def format_died(progress: ItemProgress) -> str:
    """Text shown when an acquired instance terminated before getting an address."""
    title = escape_mdv2(
        f"⚠️ Instance #{progress.sequence} was acquired but terminated while starting"
    )
    return _compose(f"*{title}*", _attempt_lines(progress))


def _error_text(error: BaseException) -> str:
    return getattr(error, "message", None) or str(error) or type(error).__name__
