"""CLI entry point for tcu-api.

Sends ad-hoc calls to the TCU service and maintains the call-log table.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from tcu_api.call_logger import DatabaseCallLogger
from tcu_api.config_loader import load_config
from tcu_api.errors import TCUAPIError
from tcu_api.models import ClientConfig


def positive_int(value: str) -> int:
    """Parse and validate a positive integer value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        result = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer '{value}'.")
    if result <= 0:
        raise argparse.ArgumentTypeError(f"Value must be positive, got {result}.")
    return result


def parse_param(value: str) -> tuple[str, str]:
    """Parse KEY=VALUE format.

    Raises:
        argparse.ArgumentTypeError: If format is invalid.
    """
    if "=" not in value:
        raise argparse.ArgumentTypeError(
            f"Invalid format '{value}'. Expected KEY=VALUE (e.g., 'f4indexno=S0123/0001/2018')"
        )
    key, _, param_value = value.partition("=")
    if not key:
        raise argparse.ArgumentTypeError(f"Invalid format '{value}'. Key cannot be empty.")
    return (key, param_value)


@dataclass
class CallArgs:
    """Parsed arguments for call mode."""

    config: Path
    endpoint: str
    method: str
    params: dict[str, str | list[str]] = field(default_factory=dict)


@dataclass
class InitDbArgs:
    """Parsed arguments for init-db mode."""

    config: Path


@dataclass
class LogsArgs:
    """Parsed arguments for logs mode."""

    config: Path
    endpoint: str | None
    status: str | None
    status_code: int | None
    limit: int
    error_type: str | None = None


@dataclass
class StatsArgs:
    """Parsed arguments for stats mode."""

    config: Path
    days: int


@dataclass
class CleanLogsArgs:
    """Parsed arguments for clean-logs mode."""

    config: Path
    days: int


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to client configuration file (YAML)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with call and call-log subcommands."""
    parser = argparse.ArgumentParser(
        prog="tcu-api",
        description="Client for the TCU admissions XML web service.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Command")

    # Call subcommand
    call_parser = subparsers.add_parser(
        "call",
        help="Send one request and print the decoded response as JSON",
    )
    _add_config_argument(call_parser)
    call_parser.add_argument(
        "--endpoint",
        type=str,
        required=True,
        help="Endpoint path, e.g. /applicants/checkStatus",
    )
    call_parser.add_argument(
        "--param",
        type=parse_param,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        dest="params",
        help="Request parameter (can be repeated; a repeated key sends repeated elements)",
    )
    call_parser.add_argument(
        "--method",
        type=str.upper,
        choices=["POST", "GET"],
        default="POST",
        help="HTTP method (default: POST)",
    )

    # Init-db subcommand
    init_db_parser = subparsers.add_parser(
        "init-db",
        help="Create the call-log table if it does not exist",
    )
    _add_config_argument(init_db_parser)

    # Logs subcommand
    logs_parser = subparsers.add_parser(
        "logs",
        help="List recent call-log records",
    )
    _add_config_argument(logs_parser)
    logs_parser.add_argument("--endpoint", type=str, default=None, help="Filter by endpoint path")
    logs_parser.add_argument(
        "--status",
        type=str,
        choices=["pending", "completed", "error"],
        default=None,
        help="Filter by record status",
    )
    logs_parser.add_argument(
        "--status-code",
        type=int,
        default=None,
        help="Filter by HTTP response code (0 for transport failures)",
    )
    logs_parser.add_argument(
        "--error-type",
        type=str,
        default=None,
        help="Filter by error kind, e.g. NetworkError or AuthenticationError",
    )
    logs_parser.add_argument(
        "--limit",
        type=positive_int,
        default=20,
        help="Maximum records to show (default: 20)",
    )

    # Stats subcommand
    stats_parser = subparsers.add_parser(
        "stats",
        help="Show aggregate call statistics",
    )
    _add_config_argument(stats_parser)
    stats_parser.add_argument(
        "--days",
        type=positive_int,
        default=7,
        help="Look-back window in days (default: 7)",
    )

    # Clean-logs subcommand
    clean_parser = subparsers.add_parser(
        "clean-logs",
        help="Delete call-log records older than the retention window",
    )
    _add_config_argument(clean_parser)
    clean_parser.add_argument(
        "--days",
        type=positive_int,
        default=90,
        help="Days of records to keep (default: 90)",
    )

    return parser


def _group_params(pairs: list[tuple[str, str]]) -> dict[str, str | list[str]]:
    """Merge KEY=VALUE pairs; a repeated key becomes a list in order."""
    result: dict[str, str | list[str]] = {}
    for key, value in pairs:
        if key not in result:
            result[key] = value
            continue
        existing = result[key]
        if isinstance(existing, list):
            existing.append(value)
        else:
            result[key] = [existing, value]
    return result


def parse_args(
    args: list[str] | None = None,
) -> tuple[CallArgs | InitDbArgs | LogsArgs | StatsArgs | CleanLogsArgs, bool]:
    """Parse command-line arguments.

    Returns:
        Typed args dataclass for the subcommand, and the verbose flag.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "call":
        parsed: Any = CallArgs(
            config=namespace.config,
            endpoint=namespace.endpoint,
            method=namespace.method,
            params=_group_params(namespace.params or []),
        )
    elif namespace.command == "init-db":
        parsed = InitDbArgs(config=namespace.config)
    elif namespace.command == "logs":
        parsed = LogsArgs(
            config=namespace.config,
            endpoint=namespace.endpoint,
            status=namespace.status,
            status_code=namespace.status_code,
            limit=namespace.limit,
            error_type=namespace.error_type,
        )
    elif namespace.command == "stats":
        parsed = StatsArgs(config=namespace.config, days=namespace.days)
    elif namespace.command == "clean-logs":
        parsed = CleanLogsArgs(config=namespace.config, days=namespace.days)
    else:
        # Should not happen with required=True on subparsers
        parser.error(f"Unknown command: {namespace.command}")
    return parsed, namespace.verbose


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parsed, verbose = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(parsed.config)
        if isinstance(parsed, CallArgs):
            return run_call(parsed, config)
        if isinstance(parsed, InitDbArgs):
            return run_init_db(config)
        if isinstance(parsed, LogsArgs):
            return run_logs(parsed, config)
        if isinstance(parsed, StatsArgs):
            return run_stats(parsed, config)
        return run_clean_logs(parsed, config)

    except TCUAPIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def run_call(args: CallArgs, config: ClientConfig) -> int:
    """Run call mode: send one request and print the decoded tree."""
    from tcu_api.client import TCUClient

    with TCUClient(config) as client:
        tree = client.execute(args.endpoint, args.params, args.method)
    print(json.dumps(tree.to_python(), indent=2))
    return 0


def _open_call_log(config: ClientConfig) -> DatabaseCallLogger | None:
    if config.database is None:
        print("Error: configuration has no 'database' section", file=sys.stderr)
        return None
    return DatabaseCallLogger(config.database)


def run_init_db(config: ClientConfig) -> int:
    """Run init-db mode."""
    call_log = _open_call_log(config)
    if call_log is None:
        return 1
    try:
        if not call_log.test_connection():
            print("Error: cannot connect to the call-log database", file=sys.stderr)
            return 1
        call_log.create_schema()
        print(f"Call-log table '{call_log.logs.name}' is ready")
        return 0
    finally:
        call_log.close()


def run_logs(args: LogsArgs, config: ClientConfig) -> int:
    """Run logs mode: print one line per record, newest first."""
    call_log = _open_call_log(config)
    if call_log is None:
        return 1
    try:
        records = call_log.get_logs(
            endpoint=args.endpoint,
            status_code=args.status_code,
            status=args.status,
            error_type=args.error_type,
            limit=args.limit,
        )
    finally:
        call_log.close()

    for record in records:
        elapsed = record["execution_time"]
        elapsed_text = f"{elapsed:.3f}s" if elapsed is not None else "-"
        line = (
            f"{record['id']:>6}  {record['created_at']}  {record['method']:<4} "
            f"{record['endpoint']}  {record['status']}  {record['response_code'] or '-'}  {elapsed_text}"
        )
        if record["error_message"]:
            line += f"  {record['error_message']}"
        print(line)
    print(f"Total: {len(records)} records")
    return 0


def run_stats(args: StatsArgs, config: ClientConfig) -> int:
    """Run stats mode."""
    call_log = _open_call_log(config)
    if call_log is None:
        return 1
    date_to = datetime.now(timezone.utc)
    date_from = date_to - timedelta(days=args.days)
    try:
        stats = call_log.get_statistics(date_from, date_to)
    finally:
        call_log.close()

    print(f"Calls in the last {args.days} days")
    for key, value in stats.items():
        if isinstance(value, float):
            value = f"{value:.3f}"
        print(f"  {key}: {value if value is not None else '-'}")
    return 0


def run_clean_logs(args: CleanLogsArgs, config: ClientConfig) -> int:
    """Run clean-logs mode."""
    call_log = _open_call_log(config)
    if call_log is None:
        return 1
    try:
        removed = call_log.clean_old_logs(args.days)
    finally:
        call_log.close()
    print(f"Removed {removed} records older than {args.days} days")
    return 0


if __name__ == "__main__":
    sys.exit(main())
