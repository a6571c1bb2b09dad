"""
Output Formatting Module

This module provides functions for formatting and displaying cycle data,
including JSON serialization and human-readable summaries.

License: MIT
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Optional

from autoclave_cycles import __version__
from autoclave_cycles.client.parser import classify_cycle_type, parse_cycle_log
from autoclave_cycles.models import CycleIdentifier, CycleTelemetry, FlattenedCycle

logger = logging.getLogger(__name__)


def format_cycles(range_name: str, cycles: list[FlattenedCycle]) -> dict[str, Any]:
    """Convert a cycle list to a JSON-serializable result."""
    return {
        "range": range_name,
        "count": len(cycles),
        "cycles": [c.to_dict() for c in cycles],
    }


def format_cycle_detail(identifier: CycleIdentifier, telemetry: Optional[CycleTelemetry]) -> dict[str, Any]:
    """
    Convert one cycle's telemetry to a JSON-serializable result.

    The log is parsed, and the cycle type and duration derived from it.
    """
    result: dict[str, Any] = {
        "cycle": {
            "year": identifier.year,
            "month": identifier.month,
            "day": identifier.day,
            "cycle_number": identifier.cycle_number,
        },
        "found": telemetry is not None,
    }
    if telemetry is None:
        return result

    parsed = parse_cycle_log(telemetry.log)
    result["telemetry"] = telemetry.to_dict()
    result["parsed_log"] = parsed.to_dict() if parsed is not None else None
    result["cycle_type"] = classify_cycle_type(telemetry.runmode, telemetry.status, parsed.program if parsed else None)
    result["duration_minutes"] = telemetry.duration_minutes(parsed)
    return result


def print_summary_to_stderr(command: str, result: dict[str, Any]) -> None:
    """
    Print a human-readable summary to stderr (so JSON output to stdout is clean).

    Args:
        command: CLI command that produced the result
        result: JSON-serializable result of the command
    """
    logger.debug("Printing summary to stderr")

    print("=" * 60, file=sys.stderr)
    print("AUTOCLAVE CYCLES SUMMARY", file=sys.stderr)
    print("=" * 60, file=sys.stderr)

    if command == "test":
        print(f"Connection: {'OK' if result.get('success') else 'FAILED'}", file=sys.stderr)
        print(f"Firmware: {result.get('firmware', 'unknown')}", file=sys.stderr)
        if result.get("model"):
            print(f"Model: {result['model']}", file=sys.stderr)
        if result.get("error"):
            print(f"Error: {result['error']}", file=sys.stderr)

    elif command == "range":
        print(f"Range: {result.get('range')}", file=sys.stderr)
        print(f"Cycles Found: {result.get('count', 0)}", file=sys.stderr)
        cycles = result.get("cycles", [])
        if cycles:
            print(f"First: {cycles[0]['date']} #{cycles[0]['cycle_number']}", file=sys.stderr)
            print(f"Last: {cycles[-1]['date']} #{cycles[-1]['cycle_number']}", file=sys.stderr)

    elif command == "cycle":
        cycle = result.get("cycle", {})
        print(f"Cycle: {cycle.get('cycle_number')} on {cycle.get('year')}-{cycle.get('month')}-{cycle.get('day')}",
              file=sys.stderr)
        if not result.get("found"):
            print("Cycle not found on device", file=sys.stderr)
        else:
            print(f"Type: {result.get('cycle_type')}", file=sys.stderr)
            print(f"Duration: {result.get('duration_minutes')} min", file=sys.stderr)
            parsed = result.get("parsed_log") or {}
            if parsed.get("model"):
                print(f"Model: {parsed['model']}", file=sys.stderr)

    elif command == "parse-log":
        parsed = result.get("parsed_log")
        if parsed is None:
            print("Log could not be parsed (no model or cycle number)", file=sys.stderr)
        else:
            print(f"Model: {parsed.get('model')}", file=sys.stderr)
            print(f"Cycle Number: {parsed.get('cycle_number')}", file=sys.stderr)
            print(f"Program: {parsed.get('program')}", file=sys.stderr)

    print("=" * 60, file=sys.stderr)


def format_json_output(result: dict[str, Any], args, elapsed_time: float) -> dict[str, Any]:
    """
    Format the complete JSON output with metadata.

    Args:
        result: Command result
        args: Parsed command line arguments
        elapsed_time: Total elapsed time for the operation

    Returns:
        Complete JSON output dictionary
    """
    logger.debug("Formatting complete JSON output")

    json_output = dict(result)
    json_output["query_timestamp"] = datetime.now().isoformat()
    json_output["query_host"] = f"{args.host}:{args.port}" if args.host else None
    json_output["client_version"] = __version__
    json_output["elapsed_time"] = elapsed_time
    json_output["configuration"] = {"timeout": args.timeout}

    return json_output


def print_json_output(json_data: dict[str, Any]) -> None:
    """
    Print JSON output to stdout.

    Args:
        json_data: Dictionary to output as JSON
    """
    logger.debug("Outputting JSON to stdout")
    print(json.dumps(json_data, indent=2, default=str))


def print_error_suggestions(debug: bool = False) -> None:
    """
    Print helpful error suggestions.

    Args:
        debug: Whether debug mode is enabled
    """
    if debug:
        import traceback

        traceback.print_exc(file=sys.stderr)
    else:
        print("\nTroubleshooting suggestions:", file=sys.stderr)
        print("1. Check that the autoclave IP address is reachable", file=sys.stderr)
        print("2. Ensure the autoclave web interface is enabled", file=sys.stderr)
        print("3. Older firmware answers slowly; try a larger --timeout", file=sys.stderr)
        print("4. Try with --debug for more detailed error information", file=sys.stderr)
