"""
Health monitor - Repeated probing folded into a single verdict.

The verdict is pessimistic: health and budget flags are ANDed across all
attempts and the reported latency is the worst one observed.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

import requests

from api_health_check.health import probe
from api_health_check.health.config import (
    HEALTH_CHECK_ATTEMPTS,
    HEALTH_CHECK_INTERVAL_MS,
    PROBE_TIMEOUT_SECONDS,
)
from api_health_check.health.models import HealthVerdict, HttpMethod, ProbeAttempt

logger = logging.getLogger(__name__)


GENERIC_FAILURE_MESSAGE = "One or more health checks failed."


def aggregate_attempts(
    attempts: Sequence[ProbeAttempt], fallback_method: HttpMethod
) -> HealthVerdict:
    """
    Fold probe attempts into one verdict.

    Args:
        attempts: Attempts in the order they were produced
        fallback_method: Method reported when there are no attempts

    Returns:
        HealthVerdict with AND over flags and MAX over latency
    """
    all_ok = all(attempt.ok for attempt in attempts)
    last = attempts[-1] if attempts else None
    first_failure = next((attempt for attempt in attempts if not attempt.ok), None)

    error_message = None
    if not all_ok:
        error_message = (
            first_failure.error_message if first_failure is not None else None
        ) or GENERIC_FAILURE_MESSAGE

    return HealthVerdict(
        status=last.status if last else 0,
        ok=all_ok,
        latency_ms=max((attempt.latency_ms for attempt in attempts), default=0),
        method=last.method if last else fallback_method,
        timestamp=last.timestamp if last else datetime.now(timezone.utc),
        within_latency_budget=all(a.within_latency_budget for a in attempts),
        expected_status_met=all(a.expected_status_met for a in attempts),
        error_message=error_message,
        latency_measured=all(a.latency_measured for a in attempts),
        attempts=tuple(attempts),
    )


def monitor_endpoint(
    url: str,
    method: HttpMethod,
    expected_status: int,
    max_latency_ms: int,
    attempts: int = HEALTH_CHECK_ATTEMPTS,
    interval_ms: int = HEALTH_CHECK_INTERVAL_MS,
    timeout: float = PROBE_TIMEOUT_SECONDS,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: probe.Clock = time.perf_counter,
) -> HealthVerdict:
    """
    Probe a URL several times in sequence and aggregate the results.

    Args:
        url: Target URL
        method: Preferred HTTP method
        expected_status: Status code considered healthy
        max_latency_ms: Latency budget in milliseconds
        attempts: Number of probe attempts
        interval_ms: Pause between attempts (not after the last)
        timeout: Per-request timeout in seconds
        session: requests session to reuse; a fresh one is opened and
                 closed for this run when omitted
        sleep: Sleep function taking seconds
        clock: Monotonic clock in seconds

    Returns:
        HealthVerdict for the run
    """
    owns_session = session is None
    http = requests.Session() if owns_session else session

    results = []
    try:
        for attempt in range(attempts):
            result = probe.probe_once(
                url,
                method,
                expected_status,
                max_latency_ms,
                session=http,
                timeout=timeout,
                clock=clock,
            )
            results.append(result)
            logger.debug(
                "Attempt %d/%d for %s: status=%d ok=%s latency=%dms",
                attempt + 1,
                attempts,
                url,
                result.status,
                result.ok,
                result.latency_ms,
            )

            if attempt < attempts - 1:
                sleep(interval_ms / 1000.0)
    finally:
        if owns_session:
            http.close()

    return aggregate_attempts(results, method)
