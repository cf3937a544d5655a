"""
Health models - Immutable records produced by a monitoring run.

Attempts, verdicts and alert outcomes are plain frozen dataclasses; the
report renders them into the camelCase structure returned to callers.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def format_timestamp(moment: datetime) -> str:
    """Render a UTC datetime as ISO-8601 with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class HttpMethod(str, Enum):
    """HTTP methods supported by the prober."""

    HEAD = "HEAD"
    GET = "GET"

    @property
    def alternate(self) -> "HttpMethod":
        return HttpMethod.GET if self is HttpMethod.HEAD else HttpMethod.HEAD


@dataclass(frozen=True)
class ProbeAttempt:
    """Outcome of one classified HTTP call."""

    status: int
    method: HttpMethod
    latency_ms: int
    ok: bool
    within_latency_budget: bool
    expected_status_met: bool
    timestamp: datetime
    error_message: Optional[str] = None
    # False when latency_ms is the budget sentinel of an unreachable target
    latency_measured: bool = True


@dataclass(frozen=True)
class HealthVerdict:
    """Aggregate of all attempts in one monitoring run."""

    status: int
    ok: bool
    latency_ms: int
    method: HttpMethod
    timestamp: datetime
    within_latency_budget: bool
    expected_status_met: bool
    error_message: Optional[str] = None
    latency_measured: bool = True
    attempts: Tuple[ProbeAttempt, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class AlertPayload:
    """Failure details posted to the alert webhook."""

    run_id: str
    agent_version: str
    url: str
    status: int
    expected_status: int
    within_latency_budget: bool
    latency_ms: int
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "runId": self.run_id,
            "agentVersion": self.agent_version,
            "url": self.url,
            "status": self.status,
            "expectedStatus": self.expected_status,
            "withinLatencyBudget": self.within_latency_budget,
            "latencyMs": self.latency_ms,
        }
        if self.error_message is not None:
            data["errorMessage"] = self.error_message
        return data


@dataclass(frozen=True)
class AlertOutcome:
    """Result of a single alert webhook dispatch."""

    dispatched: bool
    webhook: str
    message: str
    status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "dispatched": self.dispatched,
            "webhook": self.webhook,
            "message": self.message,
        }
        if self.status is not None:
            data["status"] = self.status
        return data


@dataclass(frozen=True)
class HealthCheckRequest:
    """Validated input for one monitoring run."""

    url: str
    method: HttpMethod = HttpMethod.HEAD
    expected_status: int = 200
    max_latency_ms: int = 1000
    alert_webhook_url: Optional[str] = None


@dataclass(frozen=True)
class HealthReport:
    """Structured report returned to the caller of a run."""

    request: HealthCheckRequest
    verdict: HealthVerdict
    run_id: str
    agent_version: str
    alert: Optional[AlertOutcome] = None

    @property
    def label(self) -> str:
        return "health-monitor/ok" if self.verdict.ok else "health-monitor/alert"

    def to_dict(self) -> Dict[str, Any]:
        """
        Render the report in its wire form.

        Returns:
            Dict with "health", "context" and, when dispatch was attempted,
            "alert" keys
        """
        verdict = self.verdict
        health: Dict[str, Any] = {
            "url": self.request.url,
            "method": verdict.method.value,
            "checkedAt": format_timestamp(verdict.timestamp),
            "status": verdict.status,
            "expectedStatus": self.request.expected_status,
            "ok": verdict.ok,
            "expectedStatusMet": verdict.expected_status_met,
            "latencyMs": verdict.latency_ms,
            "withinLatencyBudget": verdict.within_latency_budget,
        }
        if verdict.error_message is not None:
            health["errorMessage"] = verdict.error_message

        data: Dict[str, Any] = {"health": health}
        if self.alert is not None:
            data["alert"] = self.alert.to_dict()
        data["context"] = {
            "runId": self.run_id,
            "agentVersion": self.agent_version,
        }
        return data
