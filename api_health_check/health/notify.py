"""
Health notifications - Alert webhook and stdout report.

This module posts a one-shot alert to a webhook when a run is unhealthy and
renders reports as human-readable text.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from api_health_check.health.config import ALERT_TIMEOUT_SECONDS
from api_health_check.health.models import (
    AlertOutcome,
    AlertPayload,
    HealthReport,
    format_timestamp,
)
from api_health_check.health.probe import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)


ALERT_EVENT = "api.health.alert"


def build_alert_body(
    payload: AlertPayload, dispatched_at: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Build the JSON body posted to the alert webhook.

    Args:
        payload: Failure details
        dispatched_at: Dispatch instant (default: now)

    Returns:
        Dict with event, payload and dispatchedAt keys
    """
    if dispatched_at is None:
        dispatched_at = datetime.now(timezone.utc)
    return {
        "event": ALERT_EVENT,
        "payload": payload.to_dict(),
        "dispatchedAt": format_timestamp(dispatched_at),
    }


def dispatch_alert(
    webhook_url: str,
    payload: AlertPayload,
    session: Optional[requests.Session] = None,
    timeout: float = ALERT_TIMEOUT_SECONDS,
) -> AlertOutcome:
    """
    Post one alert to a webhook.

    Args:
        webhook_url: Webhook URL
        payload: Failure details
        session: requests session to post with (default: module-level API)
        timeout: Request timeout in seconds

    Returns:
        AlertOutcome; dispatched is True only for a 2xx answer. Transport
        failures are reported in the outcome, never raised.
    """
    http = session if session is not None else requests

    try:
        logger.info(
            "Dispatching alert webhook to %s",
            webhook_url,
            extra={
                "event": "alert_dispatch_start",
                "data": {"webhookUrl": webhook_url, "payload": payload.to_dict()},
            },
        )

        response = http.post(
            webhook_url,
            json=build_alert_body(payload),
            headers={"content-type": "application/json"},
            timeout=timeout,
        )
        delivered = 200 <= response.status_code < 300

        return AlertOutcome(
            dispatched=delivered,
            webhook=webhook_url,
            status=response.status_code,
            message=(
                "Alert webhook delivered."
                if delivered
                else f"Webhook responded with status {response.status_code}."
            ),
        )
    except TRANSPORT_ERRORS as e:
        message = str(e) or "Failed to dispatch alert."
        logger.warning(
            "Alert webhook dispatch failed: %s",
            message,
            extra={
                "event": "alert_dispatch_failed",
                "data": {"webhookUrl": webhook_url, "message": message},
            },
        )
        return AlertOutcome(dispatched=False, webhook=webhook_url, message=message)
    finally:
        logger.info(
            "Alert webhook attempt finished for %s",
            webhook_url,
            extra={
                "event": "alert_dispatch_complete",
                "data": {"webhookUrl": webhook_url},
            },
        )


def print_report(report: HealthReport) -> None:
    """
    Print formatted report to stdout.

    Args:
        report: Report of a finished run
    """
    level = "OK" if report.verdict.ok else "FAIL"
    emoji = "✅" if report.verdict.ok else "❌"

    print()
    print("=" * 80)
    print(f"{emoji} Health Check: {report.request.url} - {level}")
    print("=" * 80)
    print(format_report(report))
    print("=" * 80)
    print()


def format_report(report: HealthReport) -> str:
    """
    Format report as human-readable text.

    Args:
        report: Report of a finished run

    Returns:
        Formatted text string
    """
    verdict = report.verdict
    lines = [
        f"URL: {report.request.url}",
        f"Method: {verdict.method.value}",
        f"Checked At: {format_timestamp(verdict.timestamp)}",
    ]

    icon = "✓" if verdict.expected_status_met else "✗"
    lines.append(
        f"{icon} Status Code: {verdict.status} (expected {report.request.expected_status})"
    )

    icon = "✓" if verdict.within_latency_budget else "✗"
    latency = f"{verdict.latency_ms:,} ms"
    if not verdict.latency_measured:
        latency += " (not measured, target unreachable)"
    lines.append(
        f"{icon} Latency: {latency} (budget {report.request.max_latency_ms:,} ms)"
    )

    if verdict.attempts:
        lines.append("\nAttempts:")
        for index, attempt in enumerate(verdict.attempts, start=1):
            icon = "✓" if attempt.ok else "✗"
            error_text = f" - {attempt.error_message}" if attempt.error_message else ""
            lines.append(
                f"  {icon} #{index} {attempt.method.value} "
                f"status={attempt.status} latency={attempt.latency_ms}ms{error_text}"
            )

    if verdict.error_message:
        lines.append(f"\nError: {verdict.error_message}")

    if report.alert is not None:
        alert = report.alert
        icon = "✓" if alert.dispatched else "✗"
        lines.append(f"\n{icon} Alert: {alert.message} ({alert.webhook})")

    lines.append(
        f"\nRun: {report.run_id} (agent {report.agent_version}) [{report.label}]"
    )

    return "\n".join(lines)
