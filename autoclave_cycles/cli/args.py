"""
Command Line Argument Parsing Module

This module handles all argument parsing and validation for the Autoclave
Cycles CLI. It defines the command-line interface and validates user inputs.

License: MIT
"""

import argparse
import logging
import re
from typing import Optional

from autoclave_cycles.config import DEFAULT_TIMEOUT
from autoclave_cycles.time_utils import RANGE_NAMES

logger = logging.getLogger(__name__)

CYCLE_ARGUMENT_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2}):(\d+)$")


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Read sterilization cycle records from networked autoclaves and output JSON data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --host 192.168.1.50 --test
  %(prog)s --host 192.168.1.50 --range week
  %(prog)s --host 192.168.1.50 --cycle 2026-01-15:152
  %(prog)s --host 192.168.1.50 --cycle 2026-01-15:152 --serial 710125H00004
  %(prog)s --parse-log cycle.txt

Output:
  JSON on stdout; a human-readable summary on stderr.
  Use --quiet to suppress stderr output and get pure JSON on stdout.

Firmware:
  Both the nginx-served web interface and the older MQX web server are
  detected automatically. Devices whose HTTP responses break framing rules
  are read with a tolerant parser after the first failed attempt.
        """,
    )

    # Connection settings
    parser.add_argument("--host", help="Autoclave hostname or IP address")
    parser.add_argument(
        "--port",
        default=80,
        type=int,
        help="HTTP port of the autoclave web interface (default: %(default)s)",
    )

    # Commands
    commands = parser.add_mutually_exclusive_group(required=True)
    commands.add_argument("--test", action="store_true", help="Test the connection and report the model")
    commands.add_argument("--range", choices=RANGE_NAMES, help="List the cycles of a date range")
    commands.add_argument("--cycle", metavar="YYYY-MM-DD:N", help="Fetch telemetry of one cycle")
    commands.add_argument("--parse-log", metavar="FILE", help="Parse a cycle log saved to a local file")

    parser.add_argument("--serial", help="Device serial number for --cycle (skips the archive lookup)")

    # Output options
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging output to stderr",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress summary output to stderr (JSON only to stdout)",
    )
    parser.add_argument("--log-file", help="Also write log output to this file")

    # Performance options
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Request timeout in seconds (default: %(default)s)",
    )

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logger.debug(f"Parsed arguments: {args}")

    validate_args(args)

    return args


def parse_cycle_argument(value: str) -> tuple[str, str, str, str]:
    """
    Split "YYYY-MM-DD:N" into (year, month, day, cycle number).

    Raises:
        ValueError: If the value does not follow the format
    """
    match = CYCLE_ARGUMENT_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Cycle must be given as YYYY-MM-DD:N, got {value!r}")

    year, month, day, number = match.groups()
    return year, month, day, number


def validate_args(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Args:
        args: Parsed arguments namespace

    Raises:
        ValueError: If arguments are invalid
    """
    if args.timeout <= 0:
        raise ValueError("Timeout must be greater than 0")

    if args.port < 1 or args.port > 65535:
        raise ValueError("Port must be between 1 and 65535")

    # Only log parsing works without a device
    if not args.parse_log and not args.host:
        raise ValueError("--host is required unless --parse-log is used")

    if args.cycle:
        parse_cycle_argument(args.cycle)

    if args.serial and not args.cycle:
        raise ValueError("--serial can only be used with --cycle")

    logger.debug("Arguments validated successfully")
