"""
Data Models for Autoclave Cycles Client
=======================================

This module contains the dataclasses and enums shared by the transport,
the dialect-aware readers and the public client.

License: MIT
"""

import logging
import os
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional, Union

from .exceptions import AutoclaveConfigurationError

logger = logging.getLogger("autoclave-cycles")

# S{YYYYMMDD}_{cycle}_{serial}[.txt|.cpt]
CYCLE_FILE_NAME_PATTERN = re.compile(r"^S(\d{4})(\d{2})(\d{2})_(\d+)_([A-Za-z0-9]+)(?:\.(txt|cpt))?$", re.IGNORECASE)

# Series values are comma-delimited on modern firmware and space-delimited on legacy firmware
SERIES_DELIMITER_PATTERN = re.compile(r"[,\s]+")


class ParsingMode(Enum):
    """HTTP parser a device needs, learned on first contact."""

    UNLEARNED = "unlearned"
    STANDARD = "standard"
    LENIENT = "lenient"


class FirmwareType(Enum):
    """API dialect spoken by a device."""

    UNKNOWN = "unknown"
    MODERN = "modern"
    LEGACY = "legacy"


def normalize_cycle_number(value: Union[str, int]) -> str:
    """
    Normalize a cycle number to the 5-digit zero-padded form both dialects use.

    >>> normalize_cycle_number("1912")
    '01912'
    >>> normalize_cycle_number(42)
    '00042'
    """
    try:
        number = int(str(value).strip())
    except ValueError as e:
        raise AutoclaveConfigurationError(f"Invalid cycle number: {value!r}") from e

    if number < 0:
        raise AutoclaveConfigurationError(f"Invalid cycle number: {value!r}")

    return str(number).zfill(5)


@dataclass(frozen=True)
class DeviceAddress:
    """
    Host and port of one autoclave.

    Used as the key for every piece of per-device learned state.
    """

    host: str
    port: int = 80

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, value: str) -> "DeviceAddress":
        """
        Parse "host" or "host:port" (a leading http:// is tolerated).

        Raises:
            AutoclaveConfigurationError: If the host is empty or the port is invalid
        """
        text = value.strip()
        if text.lower().startswith("http://"):
            text = text[len("http://") :]
        text = text.rstrip("/")

        host, port = text, 80
        if ":" in text:
            host, port_str = text.rsplit(":", 1)
            try:
                port = int(port_str)
            except ValueError as e:
                raise AutoclaveConfigurationError(f"Invalid port in address: {value!r}") from e

        if not host:
            raise AutoclaveConfigurationError(f"Missing host in address: {value!r}")
        if port < 1 or port > 65535:
            raise AutoclaveConfigurationError(f"Port must be between 1 and 65535: {value!r}")

        return cls(host=host, port=port)


@dataclass(frozen=True)
class CycleIdentifier:
    """
    Identifies one cycle on a device.

    Equality is by (year, month, day, cycle_number); the serial number is
    carried along for modern devices, whose file paths include it.
    """

    year: str
    month: str
    day: str
    cycle_number: str
    serial: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "year", str(self.year).strip())
        object.__setattr__(self, "month", str(self.month).strip().zfill(2))
        object.__setattr__(self, "day", str(self.day).strip().zfill(2))
        object.__setattr__(self, "cycle_number", normalize_cycle_number(self.cycle_number))

    @classmethod
    def from_date(cls, day: date, cycle_number: Union[str, int], serial: Optional[str] = None) -> "CycleIdentifier":
        return cls(
            year=f"{day.year:04d}",
            month=f"{day.month:02d}",
            day=f"{day.day:02d}",
            cycle_number=str(cycle_number),
            serial=serial,
        )

    @property
    def date(self) -> date:
        return date(int(self.year), int(self.month), int(self.day))

    @property
    def iso_date(self) -> str:
        return f"{self.year}-{self.month}-{self.day}"

    @classmethod
    def from_file_name(cls, name: str) -> "CycleIdentifier":
        """
        Parse a cycle file name such as S20260115_00152_710125H00004.cpt.

        A leading directory path is ignored.

        Raises:
            AutoclaveConfigurationError: If the name does not follow the convention
        """
        match = CYCLE_FILE_NAME_PATTERN.match(os.path.basename(name.strip()))
        if not match:
            raise AutoclaveConfigurationError(f"Not a cycle file name: {name!r}")

        year, month, day, cycle, serial = match.groups()[:5]
        return cls(year=year, month=month, day=day, cycle_number=cycle, serial=serial)

    def file_path(self, extension: str = "cpt", base_path: str = "/opt/data/scilog") -> str:
        """
        Build the on-device path of this cycle's record.

        Raises:
            AutoclaveConfigurationError: If no serial number is known
        """
        if not self.serial:
            raise AutoclaveConfigurationError(
                f"Serial number required to build file path for cycle {self.cycle_number}"
            )

        file_name = f"S{self.year}{self.month}{self.day}_{self.cycle_number}_{self.serial}.{extension}"
        return f"{base_path}/{self.year}/{self.month}/{self.day}/{file_name}"


@dataclass
class DayCycles:
    """Cycle numbers recorded on one day of a month."""

    day: str
    cycles: list[str]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DayCycles":
        cycles = [normalize_cycle_number(c) for c in data.get("cycles") or []]
        return cls(day=str(data.get("day", "")).zfill(2), cycles=cycles)

    def to_dict(self) -> dict[str, Any]:
        return {"day": self.day, "cycles": list(self.cycles)}


@dataclass
class MonthIndex:
    """
    One month of a device catalog.

    days is None when the device only returned the year/month skeleton.
    """

    month: str
    days: Optional[list[DayCycles]] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonthIndex":
        raw_days = data.get("days")
        days = [DayCycles.from_dict(d) for d in raw_days] if raw_days else None
        return cls(month=str(data.get("month", "")), days=days)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"month": self.month}
        if self.days is not None:
            result["days"] = [d.to_dict() for d in self.days]
        return result


@dataclass
class YearIndex:
    """One year of a device catalog."""

    year: str
    months: list[MonthIndex] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "YearIndex":
        months = [MonthIndex.from_dict(m) for m in data.get("months") or []]
        return cls(year=str(data.get("year", "")), months=months)

    def to_dict(self) -> dict[str, Any]:
        return {"year": self.year, "months": [m.to_dict() for m in self.months]}


@dataclass
class ArchiveRecord:
    """One entry of the cyclesInfo array embedded in a modern archive page."""

    records_id: Any
    cycle_start_time: int
    file_name: str
    cycle_number: int
    cycle_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ArchiveRecord":
        cycle_id = data.get("cycle_id")
        return cls(
            records_id=data.get("records_id"),
            cycle_start_time=int(data["cycle_start_time"]),
            file_name=str(data.get("file_name") or ""),
            cycle_number=int(data["cycle_number"]),
            cycle_id=str(cycle_id) if cycle_id is not None else None,
        )

    @property
    def start_datetime(self) -> datetime:
        """Cycle start in device-local (i.e. host-local) time."""
        return datetime.fromtimestamp(self.cycle_start_time)

    @property
    def date(self) -> date:
        return self.start_datetime.date()

    @property
    def padded_cycle_number(self) -> str:
        return normalize_cycle_number(self.cycle_number)

    @property
    def serial(self) -> Optional[str]:
        try:
            return CycleIdentifier.from_file_name(self.file_name).serial
        except AutoclaveConfigurationError:
            return None

    def identifier(self) -> CycleIdentifier:
        return CycleIdentifier.from_date(self.date, self.cycle_number, serial=self.serial)


def parse_series(raw: Any) -> list[float]:
    """Split a delimiter-agnostic numeric series into floats, skipping junk tokens."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        tokens = [str(v) for v in raw]
    else:
        tokens = SERIES_DELIMITER_PATTERN.split(str(raw).strip())

    values = []
    for token in tokens:
        if not token:
            continue
        try:
            values.append(float(token))
        except ValueError:
            logger.debug(f"Skipping non-numeric series value: {token!r}")
    return values


@dataclass
class CycleTelemetry:
    """Full detail record for one cycle as reported by the device."""

    date: str
    number: int
    runmode: Optional[int] = None
    display_units: Optional[str] = None
    log: str = ""
    status: Optional[str] = None
    x_axis_points: int = 0
    temp: str = ""
    pressure: str = ""
    succeeded: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CycleTelemetry":
        def _int(value: Any, default: Optional[int] = None) -> Optional[int]:
            try:
                return int(value)
            except (TypeError, ValueError):
                return default

        display_units = data.get("display_units")
        status = data.get("status")
        return cls(
            date=str(data.get("date") or ""),
            number=_int(data.get("number"), 0) or 0,
            runmode=_int(data.get("runmode")),
            display_units=str(display_units) if display_units is not None else None,
            log=str(data.get("log") or ""),
            status=str(status) if status is not None else None,
            x_axis_points=_int(data.get("x_axis_points"), 0) or 0,
            temp=str(data.get("temp") or ""),
            pressure=str(data.get("pressure") or ""),
            succeeded=data.get("succeeded", True) is not False,
        )

    @property
    def temperature_series(self) -> list[float]:
        return parse_series(self.temp)

    @property
    def pressure_series(self) -> list[float]:
        return parse_series(self.pressure)

    def duration_minutes(self, parsed_log: Optional["ParsedCycleLog"] = None) -> int:
        """
        Cycle duration in minutes.

        Uses the log's cycle-complete offset, then the number of
        temperature samples (one every 5 seconds), then a 30 minute default.
        """
        if parsed_log is None and self.log:
            from .client.parser import parse_cycle_log

            parsed_log = parse_cycle_log(self.log)

        if parsed_log is not None and parsed_log.cycle_complete:
            return parsed_log.cycle_complete

        points = self.temperature_series
        if points:
            return round(len(points) * 5 / 60)

        return 30

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "number": self.number,
            "runmode": self.runmode,
            "display_units": self.display_units,
            "status": self.status,
            "x_axis_points": self.x_axis_points,
            "temperature_series": self.temperature_series,
            "pressure_series": self.pressure_series,
            "log": self.log,
            "succeeded": self.succeeded,
        }


@dataclass
class ParsedCycleLog:
    """Structured fields extracted from the free-text cycle log."""

    model: Optional[str] = None
    serial_number: Optional[str] = None
    unit_number: Optional[str] = None
    water_quality: Optional[str] = None
    cycle_number: Optional[int] = None
    timestamp: Optional[datetime] = None
    program: Optional[str] = None
    target_temperature: Optional[int] = None
    target_time: Optional[int] = None
    min_temperature: Optional[float] = None
    min_pressure: Optional[int] = None
    max_temperature: Optional[float] = None
    max_pressure: Optional[int] = None
    sterilizing_start: Optional[int] = None
    sterilizing_end: Optional[int] = None
    drying_start: Optional[int] = None
    drying_end: Optional[int] = None
    cycle_complete: Optional[int] = None
    digital_signature: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result = dict(self.__dict__)
        if self.timestamp is not None:
            result["timestamp"] = self.timestamp.isoformat()
        return result


@dataclass(frozen=True)
class FlattenedCycle:
    """
    Public output unit: one sterilization run known to the device.

    source records how the cycle was found ("catalog", "directory" or
    "probe") and is excluded from equality.
    """

    year: str
    month: str
    day: str
    cycle_number: str
    date: date
    source: str = field(default="catalog", compare=False)

    @classmethod
    def from_identifier(cls, identifier: CycleIdentifier, source: str = "catalog") -> "FlattenedCycle":
        return cls(
            year=identifier.year,
            month=identifier.month,
            day=identifier.day,
            cycle_number=identifier.cycle_number,
            date=identifier.date,
            source=source,
        )

    def identifier(self, serial: Optional[str] = None) -> CycleIdentifier:
        return CycleIdentifier(self.year, self.month, self.day, self.cycle_number, serial=serial)

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "day": self.day,
            "cycle_number": self.cycle_number,
            "date": self.date.isoformat(),
            "source": self.source,
        }


@dataclass
class ProbeSession:
    """State of one discovery walk; never cached across calls."""

    last_valid: Optional[int]
    cursor: int
    misses: int = 0
    steps: int = 0

    def record_hit(self, number: int) -> None:
        self.last_valid = number
        self.misses = 0
        self.steps += 1

    def record_miss(self) -> None:
        self.misses += 1
        self.steps += 1


@dataclass
class ConnectionTestResult:
    """Outcome of a connection test against one device."""

    success: bool
    model: Optional[str] = None
    error: Optional[str] = None
    firmware: FirmwareType = FirmwareType.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "firmware": self.firmware.value}
        if self.model is not None:
            result["model"] = self.model
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class TimingMetrics:
    """Timing of one executed request."""

    operation: str
    start_time: float
    end_time: float
    duration: float
    success: bool
    error_type: Optional[str] = None
    http_status: Optional[int] = None
    response_size: int = 0

    @property
    def duration_ms(self) -> float:
        """Duration in milliseconds."""
        return self.duration * 1000


@dataclass
class ErrorCapture:
    """Details of one failed request attempt."""

    timestamp: float
    address: str
    operation: str
    failure_kind: str
    raw_error: str
    http_status: int = 0
    recovery_successful: bool = False
    compatibility_issue: bool = False  # True if the response violated HTTP framing


__all__ = [
    "ArchiveRecord",
    "ConnectionTestResult",
    "CycleIdentifier",
    "CycleTelemetry",
    "DayCycles",
    "DeviceAddress",
    "ErrorCapture",
    "FirmwareType",
    "FlattenedCycle",
    "MonthIndex",
    "ParsedCycleLog",
    "ParsingMode",
    "ProbeSession",
    "TimingMetrics",
    "YearIndex",
    "normalize_cycle_number",
    "parse_series",
]
