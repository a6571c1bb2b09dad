"""
Cycle Log Parser for Autoclave Cycles Client
============================================

This module extracts structured fields from the printer-style text log
embedded in cycle telemetry, and maps cycle metadata to a cycle type.

A typical log reads::

    STATCLAVE G4 SBS1R118
    SN 710123B00004
    Unit #  :        000
    1.2uS / 0.7ppm
    CYCLE NUMBER  001755
     9:54:52  08/10/2025
    Solid/Wrapped
    132 C/4min
    ...

"""

import logging
import re
from typing import Optional

from autoclave_cycles.models import ParsedCycleLog
from autoclave_cycles.time_utils import parse_log_timestamp

logger = logging.getLogger("autoclave-cycles")

UNIT_NUMBER_PATTERN = re.compile(r"Unit #\s*:\s*(\d+)")
CYCLE_NUMBER_PATTERN = re.compile(r"CYCLE NUMBER\s+(\d+)")
TARGET_PATTERN = re.compile(r"(\d+)\s*C/(\d+)min")
STERI_VALUES_PATTERN = re.compile(r"(\d+\.?\d*)\s*C\s+(\d+)kPa")
STERILIZING_PATTERN = re.compile(r"STERILIZING\s+(\d+):(\d+)")
DRYING_START_PATTERN = re.compile(r"DRYING START\s+(\d+):(\d+)")
DRYING_END_PATTERN = re.compile(r"DRYING END\s+(\d+):(\d+)")
CYCLE_COMPLETE_PATTERN = re.compile(r"CYCLE COMPLETE\s+(\d+):(\d+)")

MIN_VALUES_MARKER = "Min. steri. Values:"
MAX_VALUES_MARKER = "Max. steri. Values:"
SIGNATURE_MARKER = "Digital Signature #"

STEAM_FLASH = "STEAM_FLASH"
STEAM_PREVACUUM = "STEAM_PREVACUUM"
STEAM_GRAVITY = "STEAM_GRAVITY"


class CycleLogParser:
    """
    Parses cycle logs line by line.

    Each rule looks at one line on its own, except the min/max values and
    signature rules, which read the line after their marker.
    """

    def parse(self, log_text: Optional[str]) -> Optional[ParsedCycleLog]:
        """
        Parse a cycle log.

        Returns:
            ParsedCycleLog, or None unless both a model and a cycle number were found
        """
        if not log_text:
            return None

        lines = [line.strip() for line in log_text.splitlines() if line.strip()]
        if not lines:
            return None

        result = ParsedCycleLog(model=lines[0])

        for index, line in enumerate(lines):
            next_line = lines[index + 1] if index + 1 < len(lines) else None
            self._apply_rules(result, line, next_line)

        if result.model and result.cycle_number:
            return result

        logger.debug("Cycle log lacks model or cycle number")
        return None

    def _apply_rules(self, result: ParsedCycleLog, line: str, next_line: Optional[str]) -> None:
        if line.startswith("SN "):
            result.serial_number = line[len("SN ") :].strip()

        if line.startswith("Unit #"):
            match = UNIT_NUMBER_PATTERN.search(line)
            if match:
                result.unit_number = match.group(1)

        if "uS" in line and "ppm" in line:
            result.water_quality = line

        if line.startswith("CYCLE NUMBER"):
            match = CYCLE_NUMBER_PATTERN.search(line)
            if match:
                result.cycle_number = int(match.group(1))

        timestamp = parse_log_timestamp(line)
        if timestamp is not None:
            result.timestamp = timestamp

        if "/" in line and ":" not in line and "ppm" not in line:
            if "C/" in line and "min" in line:
                match = TARGET_PATTERN.search(line)
                if match:
                    result.target_temperature = int(match.group(1))
                    result.target_time = int(match.group(2))
            elif "Values" not in line:
                result.program = line

        if line.startswith(MIN_VALUES_MARKER) and next_line:
            match = STERI_VALUES_PATTERN.search(next_line)
            if match:
                result.min_temperature = float(match.group(1))
                result.min_pressure = int(match.group(2))

        if line.startswith(MAX_VALUES_MARKER) and next_line:
            match = STERI_VALUES_PATTERN.search(next_line)
            if match:
                result.max_temperature = float(match.group(1))
                result.max_pressure = int(match.group(2))

        if line.startswith("STERILIZING"):
            match = STERILIZING_PATTERN.search(line)
            if match:
                # The log prints one offset for the phase; both ends take it
                result.sterilizing_start = int(match.group(1))
                result.sterilizing_end = int(match.group(1))

        if line.startswith("DRYING START"):
            match = DRYING_START_PATTERN.search(line)
            if match:
                result.drying_start = int(match.group(1))

        if line.startswith("DRYING END"):
            match = DRYING_END_PATTERN.search(line)
            if match:
                result.drying_end = int(match.group(1))

        if line.startswith("CYCLE COMPLETE"):
            match = CYCLE_COMPLETE_PATTERN.search(line)
            if match:
                result.cycle_complete = int(match.group(1))

        # A dashed line after the marker means the cycle was not signed
        if line == SIGNATURE_MARKER and next_line and not next_line.startswith("-"):
            result.digital_signature = next_line


_default_parser = CycleLogParser()


def parse_cycle_log(log_text: Optional[str]) -> Optional[ParsedCycleLog]:
    """Parse a cycle log with the default parser."""
    return _default_parser.parse(log_text)


def classify_cycle_type(
    runmode: Optional[int] = None,
    status: Optional[str] = None,
    cycle_id: Optional[str] = None,
) -> str:
    """
    Map cycle metadata to STEAM_FLASH, STEAM_PREVACUUM or STEAM_GRAVITY.

    The status string is checked first, then the cycle id (for example
    "STATCLAVE_120V_solid_wrapped_132_4min"). runmode carries no type
    information on either firmware and is accepted for call-site symmetry.
    """
    if status:
        status_lower = status.lower()
        if "flash" in status_lower or "immediate" in status_lower:
            return STEAM_FLASH
        if "prevac" in status_lower or "pre-vac" in status_lower:
            return STEAM_PREVACUUM

    if cycle_id:
        cycle_id_lower = cycle_id.lower()
        if "flash" in cycle_id_lower or "immediate" in cycle_id_lower:
            return STEAM_FLASH
        if any(term in cycle_id_lower for term in ("prevac", "pre_vac", "pre-vac")):
            return STEAM_PREVACUUM
        # 132/134 C programs run with a prevacuum phase
        if "132" in cycle_id_lower or "134" in cycle_id_lower:
            return STEAM_PREVACUUM

    return STEAM_GRAVITY


__all__ = [
    "STEAM_FLASH",
    "STEAM_GRAVITY",
    "STEAM_PREVACUUM",
    "CycleLogParser",
    "classify_cycle_type",
    "parse_cycle_log",
]
