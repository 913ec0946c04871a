"""Telegram Bot API client for Claimbot.

Provides :class:`TelegramClient`, a lightweight async wrapper around the
Telegram Bot API's ``sendMessage`` and ``editMessageText`` endpoints.  It
handles:

* A keep-alive :class:`httpx.AsyncClient` with an explicit timeout budget
  and an optional outbound proxy.
* Automatic retries with capped exponential back-off via :mod:`tenacity`.
* ``Retry-After`` header honoring on HTTP 429 responses.
* Structured exception mapping to
  :class:`~claimbot.core.exceptions.TelegramError` and
  :class:`~claimbot.core.exceptions.TelegramRateLimitError`.

This module owns *transport* concerns only (connection, auth, retries).
Message texts live in :mod:`claimbot.notifiers.formatter` and the
post/update notifier used by the acquisition loop lives in
:mod:`claimbot.notifiers.notifier`.

Typical usage::

    async with TelegramClient(token="123:ABC", chat_id="-1001234") as client:
        message_id = await client.send_message("Attempting instance \\#1")
        await client.edit_message_text(message_id, "Instance \\#1 succeeded")
"""

from __future__ import annotations

import logging
import random
from typing import Any, Final

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from claimbot.core.exceptions import TelegramError, TelegramRateLimitError

__all__ = ["TelegramClient"]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_TELEGRAM_BASE_URL: Final[str] = "https://api.telegram.org"

#: HTTP status codes that indicate a transient server error and are safe to retry.
_RETRYABLE_STATUS: Final[frozenset[int]] = frozenset({500, 502, 503, 504})

#: Default connection timeout in seconds.
_DEFAULT_CONNECT_TIMEOUT: Final[float] = 5.0

#: Default read timeout in seconds (Telegram usually responds within 2 s).
_DEFAULT_READ_TIMEOUT: Final[float] = 10.0

#: Default write timeout in seconds.
_DEFAULT_WRITE_TIMEOUT: Final[float] = 10.0

#: Default total attempts per API call (1 initial + 3 retries).
_DEFAULT_MAX_ATTEMPTS: Final[int] = 4

#: Upper bound on exponential back-off jitter (seconds).
_MAX_BACKOFF_JITTER: Final[float] = 5.0

#: Hard cap on exponential back-off base (seconds).
_MAX_BACKOFF_BASE: Final[float] = 30.0


# ---------------------------------------------------------------------------
# Internal sentinel exception
# ---------------------------------------------------------------------------


class _RetryableServerError(TelegramError):
    """Internal sentinel raised on 5xx to trigger a tenacity retry.

    Never escapes the :meth:`TelegramClient._call_with_retry` boundary.
    """


# ---------------------------------------------------------------------------
# Wait strategy
# ---------------------------------------------------------------------------


def _telegram_wait(retry_state: RetryCallState) -> float:
    """Compute the wait duration before the next attempt.

    * ``TelegramRateLimitError`` carrying ``retry_after`` → honour it exactly.
    * Anything else → exponential back-off with random jitter, capped at
      :data:`_MAX_BACKOFF_BASE` seconds.
    """
    if retry_state.outcome is not None:
        exc = retry_state.outcome.exception()
        if isinstance(exc, TelegramRateLimitError) and exc.retry_after > 0:
            logger.debug("Honouring Telegram Retry-After of %.1f s", exc.retry_after)
            return exc.retry_after

    attempt = max(retry_state.attempt_number, 1)
    base = min(2.0 ** (attempt - 1), _MAX_BACKOFF_BASE)
    jitter = random.uniform(0.0, min(base, _MAX_BACKOFF_JITTER))
    return base + jitter


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TelegramClient:
    """Async Telegram Bot API client with timeout budget and automatic retries.

    Manages a single :class:`httpx.AsyncClient` for the object lifetime.
    Use as an ``async with`` context manager (preferred), or call
    :meth:`close` explicitly when done.

    Args:
        token: Bot token as provided by @BotFather (non-empty).
        chat_id: Destination chat identifier (non-empty string).
        proxy: Optional proxy URL (``http://``, ``https://`` or
            ``socks5://``) all Bot API traffic is routed through.
        connect_timeout: Seconds to wait for a TCP connection.
        read_timeout: Seconds to wait for the response body.
        write_timeout: Seconds to wait while uploading the request body.
        max_attempts: Total attempts per API call including the initial
            try.  Must be ≥ 1.

    Raises:
        ValueError: If ``token``, ``chat_id``, or ``max_attempts`` are invalid.
    """

    def __init__(
        self,
        token: str,
        chat_id: str,
        *,
        proxy: str | None = None,
        connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = _DEFAULT_READ_TIMEOUT,
        write_timeout: float = _DEFAULT_WRITE_TIMEOUT,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        if not token:
            raise ValueError("TelegramClient requires a non-empty token.")
        if not chat_id:
            raise ValueError("TelegramClient requires a non-empty chat_id.")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be ≥ 1, got {max_attempts!r}.")

        self._token = token
        self._chat_id = chat_id
        self._proxy = proxy or None
        self._max_attempts = max_attempts
        self._timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=write_timeout,
            pool=5.0,
        )
        self._http: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TelegramClient:
        """Open the HTTP session and return self."""
        await self._ensure_http_client()
        return self

    async def __aexit__(self, *_args: object) -> None:
        """Close the HTTP session on exit."""
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send_message(self, text: str, *, parse_mode: str = "MarkdownV2") -> int:
        """Send a text message to the configured chat.

        Retries automatically on transport errors, HTTP 429 and HTTP 5xx.
        Raises immediately on any other 4xx.

        Args:
            text: Ready-to-send text, already escaped for *parse_mode*.
            parse_mode: ``"MarkdownV2"`` (default), ``"HTML"`` or ``""``
                for plain text.

        Returns:
            The ``message_id`` Telegram assigned to the new message.

        Raises:
            TelegramRateLimitError: After exhausting retries on HTTP 429.
            TelegramError: For any other non-recoverable error.
        """
        payload: dict[str, Any] = {"text": text}
        result = await self._call_with_retry("sendMessage", payload, parse_mode)
        try:
            return int(result["message_id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TelegramError(f"sendMessage returned no message_id: {result!r}") from exc

    async def edit_message_text(
        self,
        message_id: int,
        text: str,
        *,
        parse_mode: str = "MarkdownV2",
    ) -> None:
        """Replace the text of a message previously sent by this bot.

        Raises:
            TelegramRateLimitError: After exhausting retries on HTTP 429.
            TelegramError: For any other non-recoverable error.
        """
        payload: dict[str, Any] = {"message_id": message_id, "text": text}
        await self._call_with_retry("editMessageText", payload, parse_mode)

    async def close(self) -> None:
        """Close the underlying HTTP client.  Safe to call multiple times."""
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
            logger.debug("TelegramClient HTTP session closed.")
        self._http = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _ensure_http_client(self) -> httpx.AsyncClient:
        """Return the open HTTP client, creating it lazily if necessary."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=_TELEGRAM_BASE_URL,
                timeout=self._timeout,
                proxy=self._proxy,
                headers={"User-Agent": "Claimbot/0.1"},
            )
            logger.debug("TelegramClient HTTP session opened (proxy=%s).", bool(self._proxy))
        return self._http

    async def _call_with_retry(
        self,
        method: str,
        payload: dict[str, Any],
        parse_mode: str,
    ) -> dict[str, Any]:
        """Execute :meth:`_single_attempt` with tenacity-managed retries."""
        retry_types = (
            TelegramRateLimitError,
            _RetryableServerError,
            httpx.TransportError,
        )

        def _before_sleep(rs: RetryCallState) -> None:
            exc = rs.outcome.exception() if rs.outcome else None
            logger.warning(
                "Telegram %s attempt %d/%d failed (%s), retrying in %.1f s…",
                method,
                rs.attempt_number,
                self._max_attempts,
                type(exc).__name__ if exc else "?",
                _telegram_wait(rs),
            )

        body = {"chat_id": self._chat_id, "disable_web_page_preview": True, **payload}
        if parse_mode:
            body["parse_mode"] = parse_mode

        async for attempt in AsyncRetrying(
            wait=_telegram_wait,
            stop=stop_after_attempt(self._max_attempts),
            retry=retry_if_exception_type(retry_types),
            reraise=True,
            before_sleep=_before_sleep,
        ):
            with attempt:
                return await self._single_attempt(method, body)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _single_attempt(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        """Perform exactly one HTTP POST to the Bot API *method* endpoint.

        Returns:
            The ``result`` object of the Telegram response.

        Raises:
            TelegramRateLimitError: HTTP 429.
            _RetryableServerError: HTTP 5xx.
            TelegramError: Non-retryable HTTP error or malformed response.
            httpx.TransportError: Network-level error, re-tried by tenacity.
        """
        client = await self._ensure_http_client()
        endpoint = f"/bot{self._token}/{method}"

        logger.debug(
            "Telegram POST %s (chat_id=%s, chars=%d)",
            method,
            self._chat_id,
            len(str(body.get("text", ""))),
        )

        try:
            response = await client.post(endpoint, json=body)
        except httpx.TransportError:
            logger.debug("Transport error on Telegram POST.", exc_info=True)
            raise

        logger.debug("Telegram response: HTTP %d", response.status_code)

        if response.status_code == 200:
            return _telegram_result(response)

        if response.status_code == 429:
            retry_after = _parse_retry_after(response)
            logger.warning("Telegram rate limit (HTTP 429), retry_after=%.1f s", retry_after)
            raise TelegramRateLimitError(retry_after=retry_after)

        if response.status_code in _RETRYABLE_STATUS:
            raise _RetryableServerError(
                f"Transient server error: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        description = _extract_description(response)
        raise TelegramError(description, status_code=response.status_code)


# ---------------------------------------------------------------------------
# Response parsing helpers
# ---------------------------------------------------------------------------


def _telegram_result(response: httpx.Response) -> dict[str, Any]:
    """Return the ``result`` of an HTTP-200 response that has ``"ok": true``.

    Telegram occasionally returns HTTP 200 with ``"ok": false`` for
    application-layer errors (e.g. message too long); those surface as
    :class:`TelegramError`.
    """
    try:
        body = response.json()
    except ValueError as exc:
        raise TelegramError(
            f"Could not parse Telegram 200 response: {exc}",
            status_code=200,
        ) from exc

    if not body.get("ok"):
        description = body.get("description", "(no description)")
        raise TelegramError(f"Telegram ok=false: {description}", status_code=200)

    result = body.get("result")
    return result if isinstance(result, dict) else {}


def _parse_retry_after(response: httpx.Response) -> float:
    """Extract the back-off delay from a Telegram HTTP 429 response.

    Looks at ``parameters.retry_after`` in the JSON body first, then the
    ``Retry-After`` header.  Defaults to ``1.0``.
    """
    try:
        body = response.json()
        ra = body.get("parameters", {}).get("retry_after")
        if ra is not None:
            return max(float(ra), 1.0)
    except (ValueError, AttributeError, TypeError):
        logger.debug("Telegram 429 body carried no usable retry_after.")

    header = response.headers.get("retry-after", "")
    if header:
        try:
            return max(float(header), 1.0)
        except ValueError:
            pass

    return 1.0


def _extract_description(response: httpx.Response) -> str:
    """Extract a human-readable error description from a non-2xx response."""
    try:
        body = response.json()
        return str(body.get("description") or response.text or f"HTTP {response.status_code}")
    except (ValueError, AttributeError):
        return response.text or f"HTTP {response.status_code}"
