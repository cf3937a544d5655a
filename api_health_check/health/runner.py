"""
Health runner - Orchestrates a monitoring run.

This module validates input, drives the monitor, dispatches an alert when
the verdict is unhealthy and assembles the structured report.
"""

import logging
import time
import uuid
from typing import Any, Callable, Optional

import requests

from api_health_check.health import config, monitor, notify
from api_health_check.health.models import AlertPayload, HealthCheckRequest, HealthReport

logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_INVALID_INPUT = 1
EXIT_UNHEALTHY = 3


def check_endpoint(
    url: Any,
    method: Any = None,
    expected_status: Any = None,
    max_latency_ms: Any = None,
    alert_webhook_url: Any = None,
    run_id: Optional[str] = None,
    **kwargs: Any,
) -> HealthReport:
    """
    Validate raw input and run a health check.

    Raises:
        InvalidRequestError: If input is invalid; nothing is probed
    """
    request = config.validate_request(
        url,
        method=method,
        expected_status=expected_status,
        max_latency_ms=max_latency_ms,
        alert_webhook_url=alert_webhook_url,
    )
    return run_health_check(request, run_id=run_id, **kwargs)


def run_health_check(
    request: HealthCheckRequest,
    run_id: Optional[str] = None,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> HealthReport:
    """
    Run a health check for a validated request.

    Args:
        request: Validated probe request
        run_id: Run identifier (generated if None)
        session: requests session for probes and the alert (optional)
        sleep: Sleep function used between probe attempts

    Returns:
        HealthReport; unreachable targets and webhook failures are part of
        the report, not raised
    """
    run_id = run_id or str(uuid.uuid4())
    agent_version = config.get_agent_version()

    logger.info(
        "Starting health check %s for %s",
        run_id,
        request.url,
        extra={
            "event": "health_check_start",
            "data": {
                "runId": run_id,
                "url": request.url,
                "method": request.method.value,
                "expectedStatus": request.expected_status,
                "maxLatencyMs": request.max_latency_ms,
            },
        },
    )

    verdict = monitor.monitor_endpoint(
        request.url,
        request.method,
        request.expected_status,
        request.max_latency_ms,
        session=session,
        sleep=sleep,
    )

    alert = None
    if not verdict.ok and request.alert_webhook_url:
        alert = notify.dispatch_alert(
            request.alert_webhook_url,
            AlertPayload(
                run_id=run_id,
                agent_version=agent_version,
                url=request.url,
                status=verdict.status,
                expected_status=request.expected_status,
                within_latency_budget=verdict.within_latency_budget,
                latency_ms=verdict.latency_ms,
                error_message=verdict.error_message,
            ),
            session=session,
        )

    logger.info(
        "Completed health check %s for %s: ok=%s status=%d latency=%dms",
        run_id,
        request.url,
        verdict.ok,
        verdict.status,
        verdict.latency_ms,
        extra={
            "event": "health_check_complete",
            "data": {
                "runId": run_id,
                "url": request.url,
                "ok": verdict.ok,
                "status": verdict.status,
                "latencyMs": verdict.latency_ms,
                "withinLatencyBudget": verdict.within_latency_budget,
                "expectedStatusMet": verdict.expected_status_met,
                "alertDispatched": alert.dispatched if alert else False,
            },
        },
    )

    return HealthReport(
        request=request,
        verdict=verdict,
        run_id=run_id,
        agent_version=agent_version,
        alert=alert,
    )


def exit_code_for(report: HealthReport) -> int:
    """Map a report to a process exit code: 0 healthy, 3 unhealthy."""
    return EXIT_OK if report.verdict.ok else EXIT_UNHEALTHY
