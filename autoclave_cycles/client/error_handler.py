"""
Error Handler for Autoclave Cycles Client
=========================================

This module captures failed request attempts for debugging and monitoring.

"""

import logging
import threading
import time
from typing import Any, Optional

from autoclave_cycles.exceptions import (
    AutoclaveHTTPError,
    AutoclaveTransportError,
    FailureKind,
    classify_failure,
)
from autoclave_cycles.models import DeviceAddress, ErrorCapture

logger = logging.getLogger("autoclave-cycles")


class ErrorAnalyzer:
    """Analyzes and captures request errors for debugging and monitoring."""

    def __init__(self, capture_errors: bool = True):
        """
        Initialize error analyzer.

        Args:
            capture_errors: Whether to keep captured error details
        """
        self.capture_errors = capture_errors
        self.error_captures: list[ErrorCapture] = []
        self._lock = threading.Lock()

    def analyze_error(
        self,
        error: BaseException,
        address: DeviceAddress,
        operation: str,
    ) -> ErrorCapture:
        """
        Classify a failed attempt and record it.

        Args:
            error: The exception that occurred
            address: Device the request was sent to
            operation: Executor that failed (see PerformanceInstrumentation)

        Returns:
            ErrorCapture object with analysis
        """
        http_status = 0
        if isinstance(error, AutoclaveHTTPError):
            failure_kind = f"http_{error.status_code}"
            http_status = error.status_code or 0
        elif isinstance(error, AutoclaveTransportError):
            failure_kind = error.kind.value
        else:
            failure_kind = classify_failure(error).value

        try:
            error_details = str(error)
        except Exception:
            error_details = f"<{type(error).__name__} instance>"

        capture = ErrorCapture(
            timestamp=time.time(),
            address=str(address),
            operation=operation,
            failure_kind=failure_kind,
            raw_error=error_details,
            http_status=http_status,
            recovery_successful=False,
            compatibility_issue=failure_kind == FailureKind.MALFORMED_RESPONSE.value,
        )

        if self.capture_errors:
            with self._lock:
                self.error_captures.append(capture)

        logger.debug(f"🔍 {operation} failed for {address}: {failure_kind} - {error_details[:200]}")
        return capture

    def mark_recovered(self, capture: Optional[ErrorCapture]) -> None:
        """Flag a captured failure as recovered by the lenient executor."""
        if capture is not None:
            capture.recovery_successful = True

    def get_error_analysis(self) -> dict[str, Any]:
        """Get error analysis across all captures."""
        with self._lock:
            captures = list(self.error_captures)

        if not captures:
            return {"message": "No errors captured yet"}

        analysis: dict[str, Any] = {
            "total_errors": len(captures),
            "error_types": {},
            "http_compatibility_issues": 0,
            "recovery_stats": {"total_recoveries": 0, "recovery_rate": 0.0},
            "devices": {},
            "timeline": [],
            "patterns": [],
        }

        for capture in captures:
            analysis["error_types"][capture.failure_kind] = analysis["error_types"].get(capture.failure_kind, 0) + 1
            analysis["devices"][capture.address] = analysis["devices"].get(capture.address, 0) + 1

            if capture.recovery_successful:
                analysis["recovery_stats"]["total_recoveries"] += 1

            if capture.compatibility_issue:
                analysis["http_compatibility_issues"] += 1

            analysis["timeline"].append(
                {
                    "timestamp": capture.timestamp,
                    "address": capture.address,
                    "operation": capture.operation,
                    "failure_kind": capture.failure_kind,
                    "recovered": capture.recovery_successful,
                }
            )

        analysis["recovery_stats"]["recovery_rate"] = (
            analysis["recovery_stats"]["total_recoveries"] / analysis["total_errors"]
        )

        compatibility_issues = analysis["http_compatibility_issues"]
        if compatibility_issues > 0:
            analysis["patterns"].append(
                f"Malformed HTTP framing: {compatibility_issues} (legacy firmware, handled by lenient parsing)"
            )

        timeouts = analysis["error_types"].get(FailureKind.TIMEOUT.value, 0)
        if timeouts > 0:
            analysis["patterns"].append(f"Timeouts: {timeouts} (device slow or unreachable)")

        refused = analysis["error_types"].get(FailureKind.CONNECTION_FAILED.value, 0)
        if refused > 0:
            analysis["patterns"].append(f"Connection failures: {refused} (device offline or web interface disabled)")

        return analysis

    def clear_captures(self) -> None:
        """Clear all captured errors."""
        with self._lock:
            self.error_captures.clear()


__all__ = ["ErrorAnalyzer"]
