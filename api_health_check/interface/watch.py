#!/usr/bin/env python3
"""
Health Watch CLI - Command-line interface for endpoint health checks.

Usage:
    python -m api_health_check.interface.watch <url> [--method GET] [--json]
    python -m api_health_check.interface.watch --target <name> [--config PATH]

Exit codes:
    0: All probe attempts healthy
    1: Invalid input, nothing probed
    3: Endpoint unhealthy
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from api_health_check.health import config, notify, runner
from api_health_check.health.config import InvalidRequestError
from api_health_check.health.models import HttpMethod, format_timestamp


class JsonFormatter(logging.Formatter):
    """One JSON object per line, tagged with the service name and event."""

    def __init__(self, service: Optional[str] = None):
        super().__init__()
        self.service = service or config.get_service_name()

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": format_timestamp(
                datetime.fromtimestamp(record.created, timezone.utc)
            ),
            "service": self.service,
            "level": record.levelname.lower(),
            "event": getattr(record, "event", record.name),
            "message": record.getMessage(),
        }

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """
    Setup logging configuration.

    Args:
        verbose: If True, enable DEBUG level logging
        json_logs: If True, emit JSON lines instead of plain text
    """
    level = logging.DEBUG if verbose else logging.INFO
    if json_logs:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=level, handlers=[handler], force=True)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            force=True,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Probe an HTTP(S) endpoint four times and report its health",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0  - All probe attempts healthy
  1  - Invalid input, nothing probed
  3  - Endpoint unhealthy

Examples:
  api-health-check https://api.example.com/health
  api-health-check https://api.example.com/health --method GET --max-latency-ms 500
  api-health-check --target billing_api --config configs/targets.json --json
        """,
    )

    parser.add_argument(
        "url",
        nargs="?",
        help="HTTP(S) endpoint to verify (e.g., https://api.example.com/health)",
    )

    parser.add_argument(
        "--target",
        default=None,
        help="Named target from the targets file, instead of a URL",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to targets file (default: configs/targets.json or configs/targets.example.json)",
    )

    parser.add_argument(
        "--method",
        type=str.upper,
        choices=[m.value for m in HttpMethod],
        default=None,
        help="Preferred probe method (default: HEAD)",
    )

    parser.add_argument(
        "--expected-status",
        default=None,
        help="Status code considered healthy (default: 200, which accepts any 2xx)",
    )

    parser.add_argument(
        "--max-latency-ms",
        default=None,
        help="Latency budget in milliseconds (default: 1000)",
    )

    parser.add_argument(
        "--alert-webhook-url",
        default=None,
        help="Webhook invoked when the health check fails",
    )

    parser.add_argument(
        "--run-id",
        default=None,
        help="Run identifier (default: random UUID)",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )

    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit log records as JSON lines",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code: 0 (healthy), 1 (invalid input), 3 (unhealthy)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if bool(args.url) == bool(args.target):
        parser.error("provide either a URL or --target")

    setup_logging(verbose=args.verbose, json_logs=args.log_json)

    logger = logging.getLogger(__name__)

    try:
        if args.target:
            targets = config.load_targets(args.config)
            if args.target not in targets:
                logger.error("Target not found in config: %s", args.target)
                return runner.EXIT_INVALID_INPUT
            base = targets[args.target]
            request = config.validate_request(
                base.url,
                method=args.method or base.method,
                expected_status=args.expected_status or base.expected_status,
                max_latency_ms=args.max_latency_ms or base.max_latency_ms,
                alert_webhook_url=args.alert_webhook_url or base.alert_webhook_url,
            )
        else:
            request = config.validate_request(
                args.url,
                method=args.method,
                expected_status=args.expected_status,
                max_latency_ms=args.max_latency_ms,
                alert_webhook_url=args.alert_webhook_url,
            )
    except InvalidRequestError as e:
        logger.error("Invalid %s: %s", e.field_name, e)
        return runner.EXIT_INVALID_INPUT
    except (FileNotFoundError, ValueError) as e:
        logger.error("Could not load targets: %s", e)
        return runner.EXIT_INVALID_INPUT

    try:
        report = runner.run_health_check(request, run_id=args.run_id)
    except KeyboardInterrupt:
        logger.error("Health check interrupted by user")
        return 130

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        notify.print_report(report)

    exit_code = runner.exit_code_for(report)
    logger.info("Health check completed with exit code: %d", exit_code)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
