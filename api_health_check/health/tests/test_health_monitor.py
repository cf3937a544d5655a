"""
Tests for health monitor module.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import requests

from api_health_check.health import monitor
from api_health_check.health.models import HttpMethod, ProbeAttempt


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_session(clock, script):
    """Session replaying (status_code, latency_seconds) items or exceptions."""
    items = iter(script)
    session = MagicMock()

    def _request(method, url, **kwargs):
        item = next(items)
        if isinstance(item, Exception):
            raise item
        status_code, latency_s = item
        clock.now += latency_s
        response = MagicMock()
        response.status_code = status_code
        return response

    session.request.side_effect = _request
    return session


def run_monitor(script, max_latency_ms=1000, method=HttpMethod.HEAD):
    clock = FakeClock()
    session = make_session(clock, script)
    sleep = MagicMock()
    verdict = monitor.monitor_endpoint(
        "https://example.com/",
        method,
        200,
        max_latency_ms,
        session=session,
        sleep=sleep,
        clock=clock,
    )
    return verdict, session, sleep


def make_attempt(ok=True, latency_ms=10, status=200, error_message=None):
    return ProbeAttempt(
        status=status,
        method=HttpMethod.HEAD,
        latency_ms=latency_ms,
        ok=ok,
        within_latency_budget=True,
        expected_status_met=ok,
        timestamp=datetime.now(timezone.utc),
        error_message=error_message,
    )


class TestMonitorEndpoint:
    """Tests for monitor_endpoint function."""

    def test_four_attempts_three_pauses(self):
        """Test exactly four attempts with three 250 ms pauses."""
        verdict, session, sleep = run_monitor([(200, 0.01)] * 4)

        assert session.request.call_count == 4
        assert sleep.call_count == 3
        for call in sleep.call_args_list:
            assert call.args == (0.25,)
        assert len(verdict.attempts) == 4

    def test_all_healthy(self):
        """Test 200 on every attempt within budget is healthy."""
        verdict, session, _ = run_monitor([(200, 0.01)] * 4)

        assert verdict.ok is True
        assert verdict.latency_ms == 10
        assert verdict.status == 200
        assert verdict.error_message is None
        session.post.assert_not_called()

    def test_single_server_error(self):
        """Test a 500 on attempt 3 fails the whole run."""
        verdict, _, _ = run_monitor([(200, 0.01), (200, 0.01), (500, 0.01), (200, 0.01)])

        assert verdict.ok is False
        assert verdict.status == 200
        assert verdict.expected_status_met is False
        assert verdict.within_latency_budget is True
        assert "500" in verdict.error_message

    def test_all_attempts_too_slow(self):
        """Test slow 200s fail on latency budget."""
        verdict, _, _ = run_monitor([(200, 1.5)] * 4)

        assert verdict.ok is False
        assert verdict.within_latency_budget is False
        assert verdict.expected_status_met is True
        assert verdict.latency_ms == 1500

    def test_latency_is_worst_case(self):
        """Test verdict latency is the max across attempts."""
        verdict, _, _ = run_monitor([(200, 0.01), (200, 0.3), (200, 0.02), (200, 0.05)])

        assert verdict.latency_ms == 300
        assert verdict.latency_ms >= max(a.latency_ms for a in verdict.attempts)

    def test_method_reflects_last_attempt(self):
        """Test verdict method is the one used on the last attempt."""
        error = requests.exceptions.ConnectionError("HEAD refused")
        verdict, _, _ = run_monitor(
            [(200, 0.01), (200, 0.01), (200, 0.01), error, (200, 0.01)]
        )

        assert verdict.method is HttpMethod.GET
        assert verdict.attempts[0].method is HttpMethod.HEAD
        assert verdict.ok is True

    def test_unreachable_target(self):
        """Test every attempt unreachable yields the sentinel latency."""
        error = requests.exceptions.ConnectionError("refused")
        verdict, session, sleep = run_monitor([error] * 8, max_latency_ms=600)

        assert session.request.call_count == 8
        assert sleep.call_count == 3
        assert verdict.ok is False
        assert verdict.status == 0
        assert verdict.latency_ms == 600
        assert verdict.latency_measured is False
        assert verdict.error_message == "refused"

    @pytest.mark.parametrize("failing_index", [0, 1, 2, 3])
    def test_any_single_failure_fails_verdict(self, failing_index):
        """Test AND semantics: one failing attempt flips the verdict."""
        script = [(200, 0.01)] * 4
        script[failing_index] = (503, 0.01)

        verdict, _, _ = run_monitor(script)

        assert verdict.ok is False

    @patch("api_health_check.health.monitor.requests.Session")
    def test_opens_and_closes_own_session(self, mock_session_cls):
        """Test a session is created and closed when none is passed."""
        clock = FakeClock()
        session = make_session(clock, [(200, 0.01)] * 4)
        mock_session_cls.return_value = session

        monitor.monitor_endpoint(
            "https://example.com/", HttpMethod.HEAD, 200, 1000,
            sleep=MagicMock(), clock=clock,
        )

        mock_session_cls.assert_called_once()
        session.close.assert_called_once()


class TestAggregateAttempts:
    """Tests for aggregate_attempts function."""

    def test_first_failure_message_wins(self):
        """Test error message comes from the first failing attempt."""
        attempts = [
            make_attempt(),
            make_attempt(ok=False, status=502, error_message="first"),
            make_attempt(ok=False, status=503, error_message="second"),
        ]

        verdict = monitor.aggregate_attempts(attempts, HttpMethod.HEAD)

        assert verdict.error_message == "first"
        assert verdict.status == 503

    def test_generic_message_when_none_captured(self):
        """Test fallback message when the failing attempt has no message."""
        attempts = [make_attempt(), make_attempt(ok=False, error_message=None)]

        verdict = monitor.aggregate_attempts(attempts, HttpMethod.HEAD)

        assert verdict.error_message == monitor.GENERIC_FAILURE_MESSAGE

    def test_empty_attempts(self):
        """Test aggregation without attempts falls back to defaults."""
        verdict = monitor.aggregate_attempts([], HttpMethod.GET)

        assert verdict.ok is True
        assert verdict.status == 0
        assert verdict.latency_ms == 0
        assert verdict.method is HttpMethod.GET
