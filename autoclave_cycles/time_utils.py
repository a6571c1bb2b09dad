"""
Time Utilities for Autoclave Cycles Client
==========================================

This module resolves symbolic date ranges and parses the date and time
formats autoclaves report.

License: MIT
"""

import calendar
import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional

from .exceptions import AutoclaveConfigurationError

logger = logging.getLogger(__name__)

RANGE_NAMES = ("today", "yesterday", "week", "month")

# "14:23:56  15/01/2026" as printed in cycle logs (day before month)
LOG_TIMESTAMP_PATTERN = re.compile(r"(\d{1,2}):(\d{2}):(\d{2})\s+(\d{2})/(\d{2})/(\d{4})")

DEVICE_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")


def resolve_range(name: str, today: Optional[date] = None) -> tuple[date, date]:
    """
    Resolve a symbolic range to inclusive (start, end) dates.

    "week" and "month" end yesterday: cycles completed today are only
    visible through "today".

    Raises:
        AutoclaveConfigurationError: For an unknown range name
    """
    today = today or date.today()
    yesterday = today - timedelta(days=1)

    if name == "today":
        return today, today
    if name == "yesterday":
        return yesterday, yesterday
    if name == "week":
        return today - timedelta(days=7), yesterday
    if name == "month":
        return today - timedelta(days=30), yesterday

    raise AutoclaveConfigurationError(
        f"Unknown date range: {name!r}", details={"valid_ranges": list(RANGE_NAMES)}
    )


def months_between(start: date, end: date) -> list[tuple[int, int]]:
    """Distinct (year, month) pairs overlapping [start, end], oldest first."""
    months = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append((year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return months


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def parse_device_date(date_str: Optional[str]) -> Optional[date]:
    """
    Parse a "YYYY-MM-DD" date reported by a device.

    Returns:
        date object or None if parsing fails
    """
    if not date_str:
        return None

    match = DEVICE_DATE_PATTERN.match(date_str.strip())
    if not match:
        logger.debug(f"Failed to parse device date '{date_str}': unknown format")
        return None

    try:
        return date(*map(int, match.groups()))
    except ValueError as e:
        logger.debug(f"Failed to parse device date '{date_str}': {e}")
        return None


def parse_log_timestamp(line: str) -> Optional[datetime]:
    """
    Find and parse a cycle-log timestamp ("HH:MM:SS  DD/MM/YYYY") in a line.

    Returns:
        datetime object or None if the line carries no valid timestamp
    """
    match = LOG_TIMESTAMP_PATTERN.search(line)
    if not match:
        return None

    hours, minutes, seconds, day, month, year = map(int, match.groups())
    try:
        return datetime(year, month, day, hours, minutes, seconds)  # noqa: DTZ001
    except ValueError as e:
        logger.debug(f"Failed to parse log timestamp '{line}': {e}")
        return None


__all__ = [
    "RANGE_NAMES",
    "days_in_month",
    "months_between",
    "parse_device_date",
    "parse_log_timestamp",
    "resolve_range",
]
