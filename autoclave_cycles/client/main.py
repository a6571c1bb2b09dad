"""
Main Autoclave Cycles Client
============================

This module contains the client facade that wires the adaptive transport,
firmware classifier, catalog readers, prober and aggregator together for
the calling application.

"""

import logging
from datetime import date
from typing import Any, Callable, Optional, Union

from autoclave_cycles.config import DEFAULT_TIMEOUT, DETECTION_TIMEOUT, SCILOG_BASE_PATH, ProbeLimits
from autoclave_cycles.exceptions import (
    AutoclaveError,
    AutoclaveHTTPError,
    AutoclaveParsingError,
    AutoclaveTimeoutError,
)
from autoclave_cycles.firmware import FirmwareClassifier
from autoclave_cycles.instrumentation import PerformanceInstrumentation
from autoclave_cycles.models import (
    ConnectionTestResult,
    CycleIdentifier,
    CycleTelemetry,
    DayCycles,
    DeviceAddress,
    FirmwareType,
    FlattenedCycle,
    ParsedCycleLog,
    ParsingMode,
    YearIndex,
)
from autoclave_cycles.transport import AdaptiveTransport

from .aggregator import RangeAggregator
from .archive import ArchivePageReader
from .error_handler import ErrorAnalyzer
from .http import DeviceRequestHandler
from .index import CycleIndexReader
from .parser import parse_cycle_log
from .prober import CatalogProber
from .telemetry import CycleTelemetryReader

logger = logging.getLogger("autoclave-cycles")

DEFAULT_MODEL_NAME = "Unknown Autoclave"

AddressLike = Union[DeviceAddress, str]


class AutoclaveClient:
    """
    Autoclave client speaking both firmware dialects.

    One client can serve many devices. Everything it learns about a device
    (parsing mode, firmware type, last known cycle number) is keyed by
    DeviceAddress and kept for the life of the client.

    Features:
    - Firmware detection (nginx-served modern vs MQX legacy)
    - Strict HTTP parsing with a lenient fallback for broken framing
    - Catalog recovery by probing when the legacy index has no detail
    - Cycle log parsing
    - Performance instrumentation and error analysis
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        detection_timeout: float = DETECTION_TIMEOUT,
        probe_limits: Optional[ProbeLimits] = None,
        enable_instrumentation: bool = True,
        capture_errors: bool = True,
        base_path: str = SCILOG_BASE_PATH,
        today: Callable[[], date] = date.today,
        transport: Optional[AdaptiveTransport] = None,
    ):
        """
        Initialize the autoclave client.

        Args:
            timeout: Request timeout in seconds (default: 15)
            detection_timeout: Strict-parser timeout on first contact (default: 3)
            probe_limits: Catalog recovery bounds (default: ProbeLimits())
            enable_instrumentation: Record per-request timings (default: True)
            capture_errors: Keep failed attempts for analysis (default: True)
            base_path: On-device storage root of cycle records
            today: Source of the current date
            transport: Pre-built transport, mainly for tests
        """
        self.timeout = timeout
        self.detection_timeout = detection_timeout
        self.capture_errors = capture_errors
        self.enable_instrumentation = enable_instrumentation

        self.instrumentation = PerformanceInstrumentation() if enable_instrumentation else None
        self.error_analyzer = ErrorAnalyzer(capture_errors=capture_errors)

        self.transport = transport or AdaptiveTransport(
            timeout=timeout,
            detection_timeout=detection_timeout,
            instrumentation=self.instrumentation,
            error_analyzer=self.error_analyzer,
        )

        self.requests = DeviceRequestHandler(self.transport, timeout=timeout)
        self.classifier = FirmwareClassifier(self.transport, timeout=timeout)
        self.archive = ArchivePageReader(self.requests)
        self.telemetry = CycleTelemetryReader(self.requests, self.classifier, self.archive, base_path, today)
        self.prober = CatalogProber(self.telemetry, probe_limits, today)
        self.index = CycleIndexReader(self.requests, self.classifier, self.archive, self.prober, base_path, today)
        self.aggregator = RangeAggregator(self.classifier, self.archive, self.index, self.prober, today)

        logger.info(f"🛡️ AutoclaveClient initialized (timeout {timeout}s, detection {detection_timeout}s)")
        if enable_instrumentation:
            logger.info("📊 Performance instrumentation enabled")

    @staticmethod
    def _address(address: AddressLike) -> DeviceAddress:
        if isinstance(address, DeviceAddress):
            return address
        return DeviceAddress.parse(address)

    # Connection

    def test_connection(self, address: AddressLike) -> ConnectionTestResult:
        """
        Check that a device answers with a readable catalog and report its model.

        Never raises; failures are reported in the result.
        """
        try:
            device = self._address(address)
        except AutoclaveError as e:
            return ConnectionTestResult(success=False, error=str(e))

        logger.info(f"🔌 Testing connection to {device}")

        try:
            firmware = self.classifier.classify(device)

            if not self._has_catalog(device, firmware):
                logger.error(f"❌ Invalid catalog response from {device}")
                return ConnectionTestResult(
                    success=False, error="Invalid response format from autoclave", firmware=firmware
                )

            model = DEFAULT_MODEL_NAME
            latest = self.index.get_latest_cycle(device)
            if latest is not None:
                telemetry = self.telemetry.get_telemetry(device, latest.identifier())
                parsed = parse_cycle_log(telemetry.log) if telemetry is not None else None
                if parsed is not None and parsed.model:
                    model = parsed.model
            else:
                logger.debug(f"No cycles found on {device}")

            logger.info(f"✅ Connection test successful for {device} ({model})")
            return ConnectionTestResult(success=True, model=model, firmware=firmware)

        except AutoclaveTimeoutError as e:
            logger.error(f"❌ Connection timeout for {device}: {e}")
            return ConnectionTestResult(
                success=False, error="Connection timeout", firmware=self.classifier.firmware_type(device)
            )
        except AutoclaveHTTPError as e:
            reason = e.details.get("reason")
            error = f"HTTP {e.status_code}: {reason}" if reason else f"HTTP {e.status_code}"
            logger.error(f"❌ HTTP error from {device}: {e}")
            return ConnectionTestResult(success=False, error=error, firmware=self.classifier.firmware_type(device))
        except AutoclaveError as e:
            logger.error(f"❌ Connection failed for {device}: {e}")
            return ConnectionTestResult(
                success=False, error=e.message, firmware=self.classifier.firmware_type(device)
            )

    def _has_catalog(self, device: DeviceAddress, firmware: FirmwareType) -> bool:
        try:
            if firmware is FirmwareType.MODERN:
                return bool(self.archive.fetch_records(device))
            return bool(self.index.fetch_legacy_index(device))
        except AutoclaveParsingError as e:
            logger.debug(f"Catalog from {device} unreadable: {e}")
            return False

    # Catalog

    def cycles_for_range(self, address: AddressLike, range_name: str) -> list[FlattenedCycle]:
        """List cycles for "today", "yesterday", "week" or "month", oldest first."""
        return self.aggregator.cycles_for_range(self._address(address), range_name)

    def list_month(self, address: AddressLike, year: str, month: str) -> list[DayCycles]:
        return self.index.list_month(self._address(address), year, month)

    def list_all_years(self, address: AddressLike) -> list[YearIndex]:
        return self.index.list_all_years(self._address(address))

    def get_latest_cycle(self, address: AddressLike) -> Optional[FlattenedCycle]:
        return self.index.get_latest_cycle(self._address(address))

    def flatten_all_cycles(
        self,
        address: AddressLike,
        since_year: Optional[str] = None,
        since_month: Optional[str] = None,
    ) -> list[FlattenedCycle]:
        return self.aggregator.flatten_all_cycles(self._address(address), since_year, since_month)

    def cycles_since(self, address: AddressLike, cycle_number: int) -> list[FlattenedCycle]:
        return self.aggregator.cycles_since(self._address(address), cycle_number)

    def probe_all(
        self,
        address: AddressLike,
        since_year: Optional[str] = None,
        since_month: Optional[str] = None,
    ) -> list[FlattenedCycle]:
        return self.prober.probe_all(self._address(address), since_year, since_month)

    # Cycle detail

    def get_telemetry(self, address: AddressLike, identifier: CycleIdentifier) -> Optional[CycleTelemetry]:
        """Fetch one cycle's telemetry; None if the device has no such cycle."""
        return self.telemetry.get_telemetry(self._address(address), identifier)

    def parse_log(self, log_text: Optional[str]) -> Optional[ParsedCycleLog]:
        return parse_cycle_log(log_text)

    def list_directory(self, address: AddressLike, dir_path: str) -> list[str]:
        return self.index.list_directory(self._address(address), dir_path)

    def fetch_raw_log(self, address: AddressLike, file_path: str) -> Optional[str]:
        return self.index.fetch_raw_log(self._address(address), file_path)

    # Learned state and diagnostics

    def classify(self, address: AddressLike) -> FirmwareType:
        return self.classifier.classify(self._address(address))

    def parsing_mode(self, address: AddressLike) -> ParsingMode:
        return self.transport.parsing_mode(self._address(address))

    def get_performance_metrics(self) -> dict[str, Any]:
        """Get detailed performance metrics from instrumentation."""
        if not self.instrumentation:
            return {"error": "Performance instrumentation not enabled"}

        return self.instrumentation.get_performance_summary()

    def get_error_analysis(self) -> dict[str, Any]:
        return self.error_analyzer.get_error_analysis()

    def close(self) -> None:
        """Clean up resources."""
        captures = self.error_analyzer.error_captures
        if self.capture_errors and captures:
            recovered = len([c for c in captures if c.recovery_successful])
            logger.info(f"📊 Session captured {len(captures)} errors ({recovered} recovered by lenient parsing)")

        if self.instrumentation:
            performance_summary = self.instrumentation.get_performance_summary()
            session_time = performance_summary.get("session_metrics", {}).get("total_session_time", 0)
            total_ops = performance_summary.get("session_metrics", {}).get("total_operations", 0)
            logger.info(f"📊 Session performance: {total_ops} operations in {session_time:.2f}s")

        self.transport.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


__all__ = ["AutoclaveClient"]
