"""
Main CLI Orchestration Module

This module provides the main entry point and orchestration logic for the
Autoclave Cycles CLI. It coordinates all other CLI modules to provide a
cohesive command-line interface.

License: MIT
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from typing import Any, Optional

from autoclave_cycles import AutoclaveClient, __version__
from autoclave_cycles.client.parser import parse_cycle_log
from autoclave_cycles.models import CycleIdentifier, DeviceAddress

from .args import parse_args, parse_cycle_argument
from .formatters import (
    format_cycle_detail,
    format_cycles,
    format_json_output,
    print_error_suggestions,
    print_json_output,
    print_summary_to_stderr,
)
from .logging_setup import setup_logging

logger = logging.getLogger(__name__)


def run_command(args: argparse.Namespace) -> tuple[str, dict[str, Any], bool]:
    """
    Execute the selected command.

    Returns:
        (command name, JSON-serializable result, success flag)
    """
    if args.parse_log:
        with open(args.parse_log, encoding="utf-8", errors="replace") as f:
            log_text = f.read()

        parsed = parse_cycle_log(log_text)
        return "parse-log", {"parsed_log": parsed.to_dict() if parsed else None}, parsed is not None

    address = DeviceAddress(host=args.host, port=args.port)
    logger.info(f"Initializing AutoclaveClient for {address}")

    with AutoclaveClient(timeout=args.timeout) as client:
        if args.test:
            result = client.test_connection(address)
            return "test", result.to_dict(), result.success

        if args.range:
            cycles = client.cycles_for_range(address, args.range)
            return "range", format_cycles(args.range, cycles), True

        year, month, day, number = parse_cycle_argument(args.cycle)
        identifier = CycleIdentifier(year, month, day, number, serial=args.serial)
        telemetry = client.get_telemetry(address, identifier)
        return "cycle", format_cycle_detail(identifier, telemetry), telemetry is not None


def main(argv: Optional[list[str]] = None) -> Optional[int]:
    """Main entry point for the CLI application."""
    start_time = time.time()

    try:
        args = parse_args(argv)
    except ValueError as e:
        print(f"Usage error: {e}", file=sys.stderr)
        return 2

    setup_logging(debug=args.debug, quiet=args.quiet, log_file=args.log_file)

    if not args.quiet:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        print(f"Autoclave Cycles Client v{__version__} - {timestamp}", file=sys.stderr)
        if args.host:
            print(f"Connecting to {args.host}:{args.port}", file=sys.stderr)

    try:
        command, result, success = run_command(args)

        elapsed = time.time() - start_time

        if not args.quiet:
            print_summary_to_stderr(command, result)

        print_json_output(format_json_output(result, args, elapsed))

        if not success:
            logger.error(f"{command} did not succeed after {elapsed:.2f}s")
            return 1

        logger.info(f"{command} completed successfully in {elapsed:.2f}s")
        return 0

    except KeyboardInterrupt:
        elapsed = time.time() - start_time
        logger.error(f"Operation cancelled by user after {elapsed:.2f}s")
        print(f"Operation cancelled by user after {elapsed:.2f}s", file=sys.stderr)
        return 1

    except Exception as e:
        elapsed = time.time() - start_time
        logger.error(f"Command failed after {elapsed:.2f}s: {e}")
        print(f"Error after {elapsed:.2f}s: {e}", file=sys.stderr)
        print_error_suggestions(debug=args.debug)
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
