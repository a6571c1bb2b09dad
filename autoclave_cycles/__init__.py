"""
Autoclave Cycles Library
========================

Python library for reading sterilization cycle records from networked
autoclaves, across two incompatible firmware generations.

The modern web interface (served by nginx) embeds its whole cycle catalog
in an archive page; the older MQX web server answers JSON POSTs and
sometimes violates HTTP framing. Both are detected and handled
automatically, and catalogs the legacy firmware cannot list are rebuilt
by probing cycle numbers.

Quick Start:
    Basic usage with automatic resource management:

    >>> from autoclave_cycles import AutoclaveClient
    >>> with AutoclaveClient() as client:
    ...     result = client.test_connection("192.168.1.50")
    ...     print(f"Model: {result.model}")
    ...     for cycle in client.cycles_for_range("192.168.1.50", "week"):
    ...         print(cycle.date, cycle.cycle_number)

Error Handling:
    Failures to reach a device raise subclasses of AutoclaveRequestError.
    A cycle the device does not have is not an error; it comes back as None:

    >>> from autoclave_cycles import AutoclaveTimeoutError, CycleIdentifier
    >>> try:
    ...     telemetry = client.get_telemetry("192.168.1.50", CycleIdentifier("2026", "01", "15", "152"))
    ... except AutoclaveTimeoutError as e:
    ...     print(f"Device did not answer: {e}")

License: MIT
"""

from .client.main import AutoclaveClient
from .config import ProbeLimits
from .exceptions import (
    AutoclaveConfigurationError,
    AutoclaveConnectionError,
    AutoclaveError,
    AutoclaveHTTPError,
    AutoclaveMalformedResponseError,
    AutoclaveParsingError,
    AutoclaveRequestError,
    AutoclaveTimeoutError,
    AutoclaveTransportError,
)
from .models import (
    ConnectionTestResult,
    CycleIdentifier,
    CycleTelemetry,
    DayCycles,
    DeviceAddress,
    FirmwareType,
    FlattenedCycle,
    ParsedCycleLog,
    ParsingMode,
    normalize_cycle_number,
)

# Version information
__version__ = "1.0.0"
__author__ = "Autoclave Cycles Contributors"
__license__ = "MIT"

# Public API
__all__ = [
    "AutoclaveClient",
    "AutoclaveConfigurationError",
    "AutoclaveConnectionError",
    "AutoclaveError",
    "AutoclaveHTTPError",
    "AutoclaveMalformedResponseError",
    "AutoclaveParsingError",
    "AutoclaveRequestError",
    "AutoclaveTimeoutError",
    "AutoclaveTransportError",
    "ConnectionTestResult",
    "CycleIdentifier",
    "CycleTelemetry",
    "DayCycles",
    "DeviceAddress",
    "FirmwareType",
    "FlattenedCycle",
    "ParsedCycleLog",
    "ParsingMode",
    "ProbeLimits",
    "__author__",
    "__license__",
    "__version__",
    "normalize_cycle_number",
]
