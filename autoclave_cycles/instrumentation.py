"""
Performance Instrumentation for Autoclave Cycles Client
=======================================================

This module records the timing of every request the adaptive transport
executes and summarizes it per executor, so the cost of parser detection
and of slow legacy firmware is visible.

License: MIT
"""

import logging
import threading
import time
from typing import Any, Optional

from .models import TimingMetrics

logger = logging.getLogger("autoclave-cycles")


class PerformanceInstrumentation:
    """
    Performance instrumentation for the autoclave client.

    Operations recorded by the transport:
    - http_request_detection: strict attempt on a device whose parser is not learned yet
    - http_request_standard: strict attempt on a device known to need no workaround
    - http_request_lenient: raw-socket attempt with tolerant parsing
    """

    def __init__(self) -> None:
        self.timing_metrics: list[TimingMetrics] = []
        self.session_start_time = time.time()
        self.request_metrics: dict[str, list[float]] = {}
        self._lock = threading.Lock()

    def start_timer(self, operation: str) -> float:
        """Start timing an operation."""
        return time.time()

    def record_timing(
        self,
        operation: str,
        start_time: float,
        success: bool = True,
        error_type: Optional[str] = None,
        http_status: Optional[int] = None,
        response_size: int = 0,
    ) -> TimingMetrics:
        """Record timing metrics for an operation."""
        end_time = time.time()
        duration = end_time - start_time

        metric = TimingMetrics(
            operation=operation,
            start_time=start_time,
            end_time=end_time,
            duration=duration,
            success=success,
            error_type=error_type,
            http_status=http_status,
            response_size=response_size,
        )

        with self._lock:
            self.timing_metrics.append(metric)
            self.request_metrics.setdefault(operation, []).append(duration)

        logger.debug(f"📊 {operation}: {duration * 1000:.1f}ms (success: {success})")
        return metric

    def get_performance_summary(self) -> dict[str, Any]:
        """Get performance summary."""
        with self._lock:
            metrics = list(self.timing_metrics)
            request_metrics = {op: list(durations) for op, durations in self.request_metrics.items()}

        if not metrics:
            return {"error": "No timing metrics recorded"}

        total_session_time = time.time() - self.session_start_time

        operation_stats = {}
        for operation, durations in request_metrics.items():
            op_metrics = [m for m in metrics if m.operation == operation]
            operation_stats[operation] = {
                "count": len(durations),
                "total_time": sum(durations),
                "avg_time": sum(durations) / len(durations),
                "min_time": min(durations),
                "max_time": max(durations),
                "success_rate": len([m for m in op_metrics if m.success]) / len(op_metrics),
            }

        all_durations = sorted(m.duration for m in metrics if m.success)
        if all_durations:
            n = len(all_durations)
            percentiles = {
                "p50": all_durations[n // 2],
                "p90": all_durations[int(n * 0.9)],
                "p95": all_durations[int(n * 0.95)],
                "p99": all_durations[int(n * 0.99)],
            }
        else:
            percentiles = {"p50": 0, "p90": 0, "p95": 0, "p99": 0}

        # Time spent on strict attempts that were not the final answer
        detection_overhead = sum(
            m.duration for m in metrics if m.operation == "http_request_detection" and not m.success
        )

        return {
            "session_metrics": {
                "total_session_time": total_session_time,
                "total_operations": len(metrics),
                "successful_operations": len([m for m in metrics if m.success]),
                "failed_operations": len([m for m in metrics if not m.success]),
                "parser_detection_overhead": detection_overhead,
            },
            "operation_breakdown": operation_stats,
            "response_time_percentiles": percentiles,
            "performance_insights": self._generate_performance_insights(metrics, operation_stats),
        }

    def _generate_performance_insights(
        self, metrics: list[TimingMetrics], operation_stats: dict[str, Any]
    ) -> list[str]:
        """Generate performance insights based on metrics."""
        insights = []

        lenient = operation_stats.get("http_request_lenient")
        if lenient:
            insights.append(f"Lenient parsing used for {lenient['count']} request(s)")

        detection = operation_stats.get("http_request_detection")
        if detection and detection["success_rate"] < 1.0:
            insights.append("Strict parser rejected at least one device - lenient fallback engaged")

        failed = len([m for m in metrics if not m.success])
        error_rate = failed / len(metrics)
        if error_rate > 0.1:
            insights.append(f"High error rate: {error_rate * 100:.1f}% - check device connectivity")
        elif error_rate == 0:
            insights.append("Perfect reliability: 0% error rate")

        slow = [m for m in metrics if m.success and m.duration > 5.0]
        if slow:
            insights.append(f"{len(slow)} request(s) took longer than 5s - legacy firmware is slow")

        return insights


__all__ = ["PerformanceInstrumentation"]
