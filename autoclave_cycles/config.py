"""
Configuration constants for the Autoclave Cycles client.

The probe thresholds were tuned against real device latency; change them
only with measurements in hand.

License: MIT
"""

from dataclasses import dataclass

from .exceptions import AutoclaveConfigurationError

# Timeouts (seconds)
DEFAULT_TIMEOUT = 15.0
DETECTION_TIMEOUT = 3.0
TELEMETRY_TIMEOUT_MULTIPLIER = 2

# On-device storage root for cycle records
SCILOG_BASE_PATH = "/opt/data/scilog"

# Modern (nginx) endpoints
ARCHIVE_PATH = "/us/archives.php"
MODERN_TELEMETRY_PATH = "/data/cycleData.php"

# Legacy (MQX) endpoints
LEGACY_INDEX_PATH = "/data/cycles.cgi"
LEGACY_TELEMETRY_PATH = "/data/cycleData.cgi"
FILE_READER_PATH = "/data/file_reader.php"

USER_AGENT = "AutoclaveCyclesClient/1.0.0"

LEGACY_HEADERS = {
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "X-Requested-With": "XMLHttpRequest",
}

MODERN_JSON_HEADERS = {
    "Accept": "application/json, text/javascript, */*",
    "X-Requested-With": "XMLHttpRequest",
}

HTML_HEADERS = {"Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"}

# Common operational cycle counts, tried before the binary search
HEURISTIC_CYCLE_NUMBERS = (1900, 1800, 1500, 1000, 2000, 500, 100, 5000, 10000)


@dataclass
class ProbeLimits:
    """
    Bounds for catalog recovery by probing.

    Attributes:
        search_low: Lowest cycle number considered by the binary search
        search_high: Highest cycle number considered by the binary search
        bracket_width: Binary search stops once a valid number is known and
            the remaining bracket is at most this wide
        heuristic_numbers: Cycle numbers tried before the binary search
        month_max_misses: Consecutive misses ending one direction of a month walk
        month_max_steps: Steps ending one direction of a month walk
        frontier_max_misses: Consecutive misses ending the walk to the newest cycle
        frontier_max_steps: Steps ending the walk to the newest cycle
        collect_max_misses: Consecutive misses ending a whole-catalog collection
        collect_max_cycles: Cycles ending a whole-catalog collection
    """

    search_low: int = 1
    search_high: int = 50000
    bracket_width: int = 16
    heuristic_numbers: tuple[int, ...] = HEURISTIC_CYCLE_NUMBERS
    month_max_misses: int = 50
    month_max_steps: int = 500
    frontier_max_misses: int = 20
    frontier_max_steps: int = 5000
    collect_max_misses: int = 100
    collect_max_cycles: int = 1000

    def validate(self) -> "ProbeLimits":
        """
        Check the limits are usable.

        Raises:
            AutoclaveConfigurationError: On a non-positive limit or an empty search range
        """
        if self.search_low < 1 or self.search_high < self.search_low:
            raise AutoclaveConfigurationError(
                "Probe search range is empty",
                details={"search_low": self.search_low, "search_high": self.search_high},
            )

        for name in (
            "bracket_width",
            "month_max_misses",
            "month_max_steps",
            "frontier_max_misses",
            "frontier_max_steps",
            "collect_max_misses",
            "collect_max_cycles",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise AutoclaveConfigurationError(f"{name} must be greater than 0", details={name: value})

        return self


__all__ = [
    "ARCHIVE_PATH",
    "DEFAULT_TIMEOUT",
    "DETECTION_TIMEOUT",
    "FILE_READER_PATH",
    "HEURISTIC_CYCLE_NUMBERS",
    "HTML_HEADERS",
    "LEGACY_HEADERS",
    "LEGACY_INDEX_PATH",
    "LEGACY_TELEMETRY_PATH",
    "MODERN_JSON_HEADERS",
    "MODERN_TELEMETRY_PATH",
    "SCILOG_BASE_PATH",
    "TELEMETRY_TIMEOUT_MULTIPLIER",
    "USER_AGENT",
    "ProbeLimits",
]
