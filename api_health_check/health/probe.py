"""
Health probe - One classified HTTP attempt with method fallback.

This module issues a single request against the target, falling back to the
alternate HTTP method when the preferred one fails at the transport level,
and classifies the response against the expected status and latency budget.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional

import requests
import urllib3

from api_health_check.health.config import PROBE_TIMEOUT_SECONDS
from api_health_check.health.models import HttpMethod, ProbeAttempt

logger = logging.getLogger(__name__)


Clock = Callable[[], float]

# urllib3 errors such as LocationParseError can escape requests unwrapped
TRANSPORT_ERRORS = (requests.exceptions.RequestException, urllib3.exceptions.HTTPError)


def method_order(preferred: HttpMethod) -> List[HttpMethod]:
    """Preferred method first, then the alternate as fallback."""
    return [preferred, preferred.alternate]


def check_status(status_code: int) -> bool:
    """
    Check if HTTP status code is successful.

    Args:
        status_code: HTTP status code

    Returns:
        True if status code is 200-299
    """
    return 200 <= status_code < 300


def check_expected_status(status_code: int, expected_status: int) -> bool:
    """
    Check if the response status satisfies the expected status.

    An expected status of 200 accepts the whole 2xx range.

    Args:
        status_code: HTTP status code received
        expected_status: Status code considered healthy

    Returns:
        True if the status is acceptable
    """
    if status_code == expected_status:
        return True
    return expected_status == 200 and check_status(status_code)


def check_latency(latency_ms: int, max_latency_ms: int) -> bool:
    """True if the measured latency fits in the budget."""
    return latency_ms <= max_latency_ms


def classify_response(
    status_code: int,
    method: HttpMethod,
    latency_ms: int,
    expected_status: int,
    max_latency_ms: int,
) -> ProbeAttempt:
    """
    Build a ProbeAttempt from a response that reached us.

    Args:
        status_code: HTTP status code received
        method: Method that produced the response
        latency_ms: Measured latency in milliseconds
        expected_status: Status code considered healthy
        max_latency_ms: Latency budget in milliseconds

    Returns:
        Classified ProbeAttempt
    """
    expected_status_met = check_expected_status(status_code, expected_status)
    within_latency_budget = check_latency(latency_ms, max_latency_ms)
    ok = check_status(status_code) and expected_status_met and within_latency_budget

    return ProbeAttempt(
        status=status_code,
        method=method,
        latency_ms=latency_ms,
        ok=ok,
        within_latency_budget=within_latency_budget,
        expected_status_met=expected_status_met,
        timestamp=datetime.now(timezone.utc),
        error_message=(
            None
            if ok
            else f"Response failed health check with status {status_code}."
        ),
    )


def unreachable_attempt(
    method: HttpMethod, max_latency_ms: int, error_message: Optional[str]
) -> ProbeAttempt:
    """
    Synthetic attempt for a target no method could reach.

    The latency is the budget itself and is flagged as not measured.
    """
    return ProbeAttempt(
        status=0,
        method=method,
        latency_ms=max_latency_ms,
        ok=False,
        within_latency_budget=False,
        expected_status_met=False,
        timestamp=datetime.now(timezone.utc),
        error_message=error_message,
        latency_measured=False,
    )


def probe_once(
    url: str,
    method: HttpMethod,
    expected_status: int,
    max_latency_ms: int,
    session: Optional[requests.Session] = None,
    timeout: float = PROBE_TIMEOUT_SECONDS,
    clock: Clock = time.perf_counter,
) -> ProbeAttempt:
    """
    Perform exactly one classified attempt against a URL.

    Args:
        url: Target URL
        method: Preferred HTTP method
        expected_status: Status code considered healthy
        max_latency_ms: Latency budget in milliseconds
        session: requests session to issue calls on (default: module-level API)
        timeout: Absolute timeout per method in seconds, counted from the
                 start of the request
        clock: Monotonic clock in seconds, used for latency and the deadline

    Returns:
        ProbeAttempt for the first method that got a response, or the
        synthetic unreachable attempt if every method failed
    """
    http = session if session is not None else requests
    last_error: Optional[str] = None

    for candidate in method_order(method):
        started_at = clock()
        try:
            response = http.request(
                candidate.value,
                url,
                timeout=urllib3.Timeout(
                    connect=timeout, read=timeout, total=timeout
                ),
                allow_redirects=True,
                stream=True,
            )
        except TRANSPORT_ERRORS as e:
            last_error = str(e) or e.__class__.__name__
            logger.debug("%s %s failed: %s", candidate.value, url, last_error)
            continue

        elapsed = clock() - started_at
        if elapsed > timeout:
            response.close()
            last_error = (
                f"{candidate.value} {url} timed out after {timeout:g}s "
                f"(response took {elapsed:.2f}s)"
            )
            logger.debug("%s", last_error)
            continue

        latency_ms = max(0, int(round(elapsed * 1000)))
        try:
            return classify_response(
                response.status_code,
                candidate,
                latency_ms,
                expected_status,
                max_latency_ms,
            )
        finally:
            response.close()

    logger.warning(
        "Health check failed after retries for %s: %s",
        url,
        last_error,
        extra={
            "event": "health_check_retries_exhausted",
            "data": {"url": url, "method": method.value, "error": last_error},
        },
    )

    return unreachable_attempt(method, max_latency_ms, last_error)
