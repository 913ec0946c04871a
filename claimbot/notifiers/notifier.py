"""Progress notifiers for the acquisition loop.

Provides the :class:`ProgressNotifier` protocol the orchestrator talks to,
and its two implementations:

* :class:`TelegramNotifier` — posts a message per item and edits it in place
  via :class:`~claimbot.notifiers.telegram.TelegramClient`.
* :class:`NullNotifier` — logs the texts and sends nothing.  Used when
  Telegram is not configured or progress messages are switched off.

Delivery is fire-and-forget: a failed send is logged and swallowed so a
Telegram outage never stops an acquisition run.

Typical usage::

    async with TelegramClient(token=settings.telegram_bot_token,
                              chat_id=settings.telegram_chat_id) as client:
        notifier = TelegramNotifier(client)
        handle = await notifier.post(text)
        await notifier.update(handle, new_text)
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import httpx

from claimbot.core import events
from claimbot.core.exceptions import TelegramError
from claimbot.notifiers.telegram import TelegramClient

__all__ = ["ProgressNotifier", "TelegramNotifier", "NullNotifier"]

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressNotifier(Protocol):
    """What the orchestrator needs from a notifier."""

    async def post(self, text: str) -> int | None:
        """Send a new message; return its handle, or ``None`` if not sent."""
        ...

    async def update(self, handle: int | None, text: str) -> int | None:
        """Replace the text of message *handle*; return the handle now in use."""
        ...


class TelegramNotifier:
    """Delivers progress messages to a Telegram chat.

    Args:
        client: Open :class:`TelegramClient`.  The notifier does **not**
            manage the client's lifecycle; the caller is responsible for
            that.
        parse_mode: Parse mode of the texts it is given.
    """

    def __init__(self, client: TelegramClient, *, parse_mode: str = "MarkdownV2") -> None:
        self._client = client
        self._parse_mode = parse_mode

    async def post(self, text: str) -> int | None:
        try:
            message_id = await self._client.send_message(text, parse_mode=self._parse_mode)
        except (TelegramError, httpx.HTTPError) as exc:
            logger.error(
                "Failed to send progress message: %s",
                exc,
                extra={"event": events.NOTIFY_ERROR},
            )
            return None
        logger.debug("Progress message %d sent.", message_id)
        return message_id

    async def update(self, handle: int | None, text: str) -> int | None:
        """Edit message *handle*; post a fresh message when there is none.

        Returns:
            The handle of the message that now carries *text* (the new one
            when a fresh message had to be posted), or ``None``.
        """
        if handle is None:
            return await self.post(text)
        try:
            await self._client.edit_message_text(handle, text, parse_mode=self._parse_mode)
        except (TelegramError, httpx.HTTPError) as exc:
            logger.error(
                "Failed to update progress message %d: %s",
                handle,
                exc,
                extra={"event": events.NOTIFY_ERROR},
            )
        return handle


class NullNotifier:
    """Notifier that only logs.  Every call succeeds and returns ``None``."""

    async def post(self, text: str) -> int | None:
        logger.info("[no-notify] %s", text.replace("\n", " | "))
        return None

    async def update(self, handle: int | None, text: str) -> int | None:
        logger.info("[no-notify] %s", text.replace("\n", " | "))
        return None
