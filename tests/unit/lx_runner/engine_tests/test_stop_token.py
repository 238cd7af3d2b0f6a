import threading

import pytest

from lx_runner.engine.stop_context import (
    active_token,
    should_stop,
    stop_reason,
    stop_context,
    suite_timed_out,
)
from lx_runner.engine.stop_token import StopToken
from lx_runner.engine.suite_timer import SUITE_TIMEOUT_REASON


pytestmark = [pytest.mark.unit, pytest.mark.unit_runner]


class TestStopToken:
    def test_request_stop_keeps_first_reason(self) -> None:
        token = StopToken()
        assert not token.should_stop()
        token.request_stop("first")
        token.request_stop("second")
        assert token.should_stop()
        assert token.reason == "first"

    def test_clear_reports_pending_stop(self) -> None:
        token = StopToken()
        assert token.clear() is False
        token.request_stop()
        assert token.clear() is True
        assert not token.should_stop()
        assert token.reason is None

    def test_stop_from_other_thread(self) -> None:
        token = StopToken()
        worker = threading.Thread(target=token.request_stop)
        worker.start()
        worker.join()
        assert token.should_stop()


class TestStopContext:
    def test_token_is_scoped(self) -> None:
        token = StopToken()
        assert active_token() is None
        with stop_context(token):
            assert active_token() is token
            assert not should_stop()
            token.request_stop()
            assert should_stop()
        assert active_token() is None

    def test_explicit_token_wins(self) -> None:
        outer, explicit = StopToken(), StopToken()
        explicit.request_stop()
        with stop_context(outer):
            assert active_token(explicit) is explicit
            assert should_stop(explicit)

    def test_nested_contexts_restore(self) -> None:
        first, second = StopToken(), StopToken()
        with stop_context(first):
            with stop_context(second):
                assert active_token() is second
            assert active_token() is first

    def test_reason_is_reported_once_stopped(self) -> None:
        token = StopToken()
        with stop_context(token) as bound:
            assert bound is token
            assert stop_reason() is None
            token.request_stop(SUITE_TIMEOUT_REASON)
            assert stop_reason() == SUITE_TIMEOUT_REASON
            assert suite_timed_out()

    def test_other_reasons_are_not_timeouts(self) -> None:
        token = StopToken()
        token.request_stop("SIGINT")
        assert not suite_timed_out(token)
        assert not suite_timed_out()
