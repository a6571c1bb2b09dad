"""Tests for per-request performance instrumentation."""

import time

import pytest

from autoclave_cycles.instrumentation import PerformanceInstrumentation


@pytest.mark.unit
class TestPerformanceInstrumentation:
    def test_empty_summary(self):
        assert PerformanceInstrumentation().get_performance_summary() == {"error": "No timing metrics recorded"}

    def test_record_timing(self):
        instrumentation = PerformanceInstrumentation()
        start = instrumentation.start_timer("http_request_standard")

        metric = instrumentation.record_timing("http_request_standard", start, http_status=200, response_size=512)

        assert metric.success is True
        assert metric.duration >= 0
        assert metric.duration_ms == metric.duration * 1000
        assert instrumentation.request_metrics["http_request_standard"] == [metric.duration]

    def test_summary_breaks_down_operations(self):
        instrumentation = PerformanceInstrumentation()
        now = time.time()
        instrumentation.record_timing("http_request_detection", now, success=False, error_type="malformed_response")
        instrumentation.record_timing("http_request_lenient", now, http_status=200)
        instrumentation.record_timing("http_request_lenient", now, http_status=200)

        summary = instrumentation.get_performance_summary()

        session = summary["session_metrics"]
        assert session["total_operations"] == 3
        assert session["successful_operations"] == 2
        assert session["failed_operations"] == 1
        assert session["parser_detection_overhead"] >= 0

        breakdown = summary["operation_breakdown"]
        assert breakdown["http_request_lenient"]["count"] == 2
        assert breakdown["http_request_detection"]["success_rate"] == 0.0
        assert set(summary["response_time_percentiles"]) == {"p50", "p90", "p95", "p99"}

        insights = summary["performance_insights"]
        assert "Lenient parsing used for 2 request(s)" in insights
        assert any("lenient fallback engaged" in insight for insight in insights)
        assert any("High error rate" in insight for insight in insights)

    def test_perfect_reliability_insight(self):
        instrumentation = PerformanceInstrumentation()
        instrumentation.record_timing("http_request_standard", time.time())

        assert "Perfect reliability: 0% error rate" in instrumentation.get_performance_summary()["performance_insights"]
