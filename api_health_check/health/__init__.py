"""
Health module - Probe engine for HTTP(S) endpoints.

This module probes a single endpoint several times in a row, aggregates the
attempts into one pessimistic verdict and dispatches an alert webhook when
the verdict is unhealthy.
"""

from api_health_check.health.config import InvalidRequestError, validate_request
from api_health_check.health.runner import check_endpoint, run_health_check

__all__ = [
    "InvalidRequestError",
    "check_endpoint",
    "run_health_check",
    "validate_request",
]
