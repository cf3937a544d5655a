"""
Health configuration - Settings, input validation and target files.

This module validates probe requests before any network call is made and
loads named probe targets from JSON files.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from api_health_check import __version__
from api_health_check.health.models import HealthCheckRequest, HttpMethod

logger = logging.getLogger(__name__)


HEALTH_CHECK_ATTEMPTS = 4
HEALTH_CHECK_INTERVAL_MS = 250
PROBE_TIMEOUT_SECONDS = 10.0
ALERT_TIMEOUT_SECONDS = 5.0

DEFAULT_METHOD = HttpMethod.HEAD
DEFAULT_EXPECTED_STATUS = 200
DEFAULT_MAX_LATENCY_MS = 1000

DEFAULT_SERVICE_NAME = "api-health-check"
FALLBACK_AGENT_VERSION = "0.0.1"


# Target file structure
# {
#   "target_name": {
#     "url": str,
#     "method": Optional[str],  # "HEAD" or "GET"
#     "expectedStatus": Optional[int],
#     "maxLatencyMs": Optional[int],
#     "alertWebhookUrl": Optional[str]
#   }
# }


class InvalidRequestError(ValueError):
    """Raised when probe input fails validation."""

    def __init__(self, field_name: str, message: str):
        super().__init__(message)
        self.field_name = field_name


def get_agent_version() -> str:
    """Version reported in run context and alert payloads."""
    return os.environ.get("AGENT_VERSION") or __version__ or FALLBACK_AGENT_VERSION


def get_service_name() -> str:
    """Service name stamped on structured log records."""
    return (
        os.environ.get("AGENT_NAME")
        or os.environ.get("APP_NAME")
        or DEFAULT_SERVICE_NAME
    )


def validate_request(
    url: Any,
    method: Any = None,
    expected_status: Any = None,
    max_latency_ms: Any = None,
    alert_webhook_url: Any = None,
) -> HealthCheckRequest:
    """
    Validate and normalize raw probe input.

    Args:
        url: Target URL, must be absolute HTTP or HTTPS
        method: "HEAD" or "GET" (default: HEAD)
        expected_status: Healthy status code, 100-599 (default: 200)
        max_latency_ms: Latency budget in milliseconds (default: 1000)
        alert_webhook_url: Optional webhook invoked on failure

    Returns:
        HealthCheckRequest ready for a monitoring run

    Raises:
        InvalidRequestError: If any field is invalid
    """
    target = _parse_absolute_url(url, "url", "Input must be a valid URL string.")
    if target.scheme not in ("http", "https"):
        raise InvalidRequestError("url", "Only HTTP and HTTPS URLs are supported.")

    webhook = None
    if alert_webhook_url is not None:
        webhook = urlunsplit(
            _parse_absolute_url(
                alert_webhook_url, "alertWebhookUrl", "Provide a valid webhook URL."
            )
        )

    return HealthCheckRequest(
        url=_normalize_url(target),
        method=_parse_method(method),
        expected_status=_coerce_int(
            "expectedStatus",
            expected_status,
            DEFAULT_EXPECTED_STATUS,
            minimum=100,
            maximum=599,
        ),
        max_latency_ms=_coerce_int(
            "maxLatencyMs", max_latency_ms, DEFAULT_MAX_LATENCY_MS, minimum=1
        ),
        alert_webhook_url=webhook,
    )


def request_from_mapping(data: Mapping[str, Any]) -> HealthCheckRequest:
    """Validate a camelCase input mapping, as found in target files."""
    return validate_request(
        data.get("url"),
        method=data.get("method"),
        expected_status=data.get("expectedStatus"),
        max_latency_ms=data.get("maxLatencyMs"),
        alert_webhook_url=data.get("alertWebhookUrl"),
    )


def load_targets(config_path: Optional[str] = None) -> Dict[str, HealthCheckRequest]:
    """
    Load named probe targets from a JSON file.

    Args:
        config_path: Path to targets file. If None, looks for
                     configs/targets.json or falls back to
                     configs/targets.example.json

    Returns:
        Dict with target name -> validated request

    Raises:
        FileNotFoundError: If no targets file found
        ValueError: If the file is not a JSON object
    """
    if config_path is None:
        project_root = Path(__file__).parent.parent.parent
        json_path = project_root / "configs" / "targets.json"
        example_json = project_root / "configs" / "targets.example.json"

        if json_path.exists():
            config_path = str(json_path)
        elif example_json.exists():
            config_path = str(example_json)
            logger.warning(
                "Using example targets file: %s. "
                "Create configs/targets.json for production.",
                example_json,
            )
        else:
            raise FileNotFoundError(
                f"Targets file not found. Expected one of: {json_path} or {example_json}"
            )

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Targets file not found: {config_path}")

    if config_file.suffix in (".yaml", ".yml"):
        raise ValueError("Targets files must be JSON.")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in targets file: {e}")

    if not isinstance(data, dict):
        raise ValueError("Targets file must contain a JSON object")

    targets: Dict[str, HealthCheckRequest] = {}
    for name, entry in data.items():
        if not isinstance(entry, dict):
            logger.error("Invalid target %s: entry must be an object", name)
            continue
        try:
            targets[name] = request_from_mapping(entry)
        except InvalidRequestError as e:
            logger.error("Invalid target %s: %s (%s)", name, e, e.field_name)
            continue

    logger.info("Loaded %d probe targets from %s", len(targets), config_path)

    return targets


def _parse_absolute_url(value: Any, field_name: str, message: str):
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestError(field_name, message)
    try:
        parts = urlsplit(value.strip())
        # Accessing port validates it
        parts.port
    except ValueError:
        raise InvalidRequestError(field_name, message)
    if not parts.scheme or not parts.netloc or not parts.hostname:
        raise InvalidRequestError(field_name, message)
    return parts


def _normalize_url(parts) -> str:
    path = parts.path or "/"
    # Only the host is case-insensitive; userinfo is kept as given
    userinfo, at, hostport = parts.netloc.rpartition("@")
    netloc = f"{userinfo}{at}{hostport.lower()}"
    return urlunsplit((parts.scheme.lower(), netloc, path, parts.query, parts.fragment))


def _parse_method(value: Any) -> HttpMethod:
    if value is None:
        return DEFAULT_METHOD
    if isinstance(value, HttpMethod):
        return value
    if isinstance(value, str):
        try:
            return HttpMethod(value.strip().upper())
        except ValueError:
            pass
    raise InvalidRequestError("method", "Method must be HEAD or GET.")


def _coerce_int(
    field_name: str,
    value: Any,
    default: int,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    if value is None:
        return default

    if isinstance(value, bool):
        raise InvalidRequestError(field_name, f"{field_name} must be an integer.")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise InvalidRequestError(field_name, f"{field_name} must be an integer.")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidRequestError(field_name, f"{field_name} must be an integer.")
        value = int(value)
    if not isinstance(value, int):
        raise InvalidRequestError(field_name, f"{field_name} must be an integer.")

    if minimum is not None and value < minimum:
        raise InvalidRequestError(
            field_name, f"{field_name} must be at least {minimum}."
        )
    if maximum is not None and value > maximum:
        raise InvalidRequestError(
            field_name, f"{field_name} must be at most {maximum}."
        )
    return value
