"""Unit tests for :mod:`claimbot.acquisition.classifier`.

The terminal status table is asserted code by code, including the boundary
codes around it and the 409 ``IncorrectState`` carve-out.
"""

from __future__ import annotations

import httpx
import pytest

from claimbot.acquisition.classifier import TERMINAL_STATUS_CODES, classify, to_classified
from claimbot.core.exceptions import (
    ProviderError,
    TerminalProviderError,
    TransientProviderError,
)
from claimbot.core.models import ErrorKind


def _err(status: int | None, code: str | None = None, message: str = "boom") -> ProviderError:
    return ProviderError(message, status_code=status, code=code)


class TestClassify:
    """Tests for :func:`classify`."""

    @pytest.mark.parametrize("status", [400, 401, 402, 403, 405, 412, 413, 422, 431, 501])
    def test_terminal_codes(self, status: int) -> None:
        assert classify(_err(status)) is ErrorKind.TERMINAL

    @pytest.mark.parametrize("status", [399, 404, 406, 408, 410, 411, 414, 421, 423, 429, 430, 432])
    def test_codes_around_the_table_are_retryable(self, status: int) -> None:
        assert classify(_err(status)) is ErrorKind.RETRYABLE

    @pytest.mark.parametrize("status", [500, 502, 503, 504, 599])
    def test_server_errors_other_than_501_are_retryable(self, status: int) -> None:
        assert classify(_err(status)) is ErrorKind.RETRYABLE

    def test_404_is_retryable(self) -> None:
        assert classify(_err(404, "NotAuthorizedOrNotFound")) is ErrorKind.RETRYABLE

    def test_429_is_retryable(self) -> None:
        assert classify(_err(429, "TooManyRequests")) is ErrorKind.RETRYABLE

    def test_409_incorrect_state_is_retryable(self) -> None:
        assert classify(_err(409, "IncorrectState")) is ErrorKind.RETRYABLE

    def test_409_incorrect_state_is_case_insensitive(self) -> None:
        assert classify(_err(409, "incorrectstate")) is ErrorKind.RETRYABLE

    def test_409_other_reason_is_terminal(self) -> None:
        assert classify(_err(409, "Conflict")) is ErrorKind.TERMINAL

    def test_409_without_reason_is_terminal(self) -> None:
        assert classify(_err(409)) is ErrorKind.TERMINAL

    def test_out_of_capacity_500_is_retryable(self) -> None:
        err = _err(500, "InternalError", "Out of host capacity.")
        assert classify(err) is ErrorKind.RETRYABLE

    def test_permanent_marker_in_message_is_terminal(self) -> None:
        err = _err(500, "InternalError", "No capacity configuration matches the request.")
        assert classify(err) is ErrorKind.TERMINAL

    def test_no_status_is_retryable(self) -> None:
        assert classify(_err(None)) is ErrorKind.RETRYABLE

    def test_unknown_exception_is_retryable(self) -> None:
        assert classify(RuntimeError("???")) is ErrorKind.RETRYABLE

    def test_timeout_is_retryable(self) -> None:
        assert classify(TimeoutError()) is ErrorKind.RETRYABLE
        assert classify(httpx.ReadTimeout("slow")) is ErrorKind.RETRYABLE

    def test_preclassified_errors_keep_their_class(self) -> None:
        assert classify(TerminalProviderError("x", status_code=500)) is ErrorKind.TERMINAL
        assert classify(TransientProviderError("x", status_code=400)) is ErrorKind.RETRYABLE

    def test_terminal_table_is_exact(self) -> None:
        assert TERMINAL_STATUS_CODES == {400, 401, 402, 403, 405, 409, 412, 413, 422, 431, 501}


class TestToClassified:
    """Tests for :func:`to_classified`."""

    def test_wraps_terminal_provider_error(self) -> None:
        raw = _err(400, "InvalidParameter", "bad shape")
        wrapped = to_classified(raw)

        assert isinstance(wrapped, TerminalProviderError)
        assert wrapped.status_code == 400
        assert wrapped.code == "InvalidParameter"
        assert wrapped.message == "bad shape"
        assert wrapped.__cause__ is raw

    def test_wraps_retryable_provider_error(self) -> None:
        wrapped = to_classified(_err(500, "InternalError", "Out of host capacity."))
        assert isinstance(wrapped, TransientProviderError)

    def test_wraps_foreign_exception(self) -> None:
        raw = ConnectionResetError("reset by peer")
        wrapped = to_classified(raw)

        assert isinstance(wrapped, TransientProviderError)
        assert "reset by peer" in wrapped.message
        assert wrapped.__cause__ is raw

    def test_already_classified_returned_unchanged(self) -> None:
        err = TerminalProviderError("nope", status_code=401)
        assert to_classified(err) is err
