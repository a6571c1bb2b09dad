"""Tests for single-cycle telemetry on both firmware dialects."""

import json
from datetime import date
from urllib.parse import unquote

import pytest

from autoclave_cycles import AutoclaveClient
from autoclave_cycles.client.telemetry import telemetry_from_payload
from autoclave_cycles.exceptions import AutoclaveHTTPError, AutoclaveTimeoutError
from autoclave_cycles.models import CycleIdentifier

from conftest import MODERN_FILE_NAME, TODAY, decoded_filename, make_response, telemetry_payload


def _client(transport):
    return AutoclaveClient(transport=transport, today=lambda: TODAY, enable_instrumentation=False)


MODERN_PATH = f"/opt/data/scilog/2026/01/15/{MODERN_FILE_NAME}.cpt"


@pytest.mark.unit
@pytest.mark.telemetry
class TestTelemetryPayload:
    def test_device_miss_is_none(self):
        assert telemetry_from_payload({"succeeded": False}) is None
        assert telemetry_from_payload([]) is None

    def test_success_is_decoded(self):
        telemetry = telemetry_from_payload(telemetry_payload("2026-01-15", 152, delimiter=","))

        assert telemetry.date == "2026-01-15"
        assert telemetry.number == 152
        assert telemetry.temperature_series == [100.5, 121.0, 132.2]


@pytest.mark.unit
@pytest.mark.telemetry
class TestModernTelemetry:
    def test_request_shape_with_known_serial(self, modern_transport, address):
        identifier = CycleIdentifier("2026", "01", "15", "152", serial="710125H00004")

        client = _client(modern_transport)
        client.requests.clock = lambda: 1768500000.5

        telemetry = client.get_telemetry(address, identifier)

        assert telemetry.number == 152
        assert telemetry.pressure_series == [101.0, 180.0, 190.0]

        call = modern_transport.calls_to("GET", "/data/cycleData.php")[0]
        assert decoded_filename(call["path"]) == MODERN_PATH
        assert "&t=1768500000500&" in call["path"]
        params = json.loads(unquote(call["path"].rsplit("&", 1)[1]))
        assert params == {"year": "2026", "month": "01", "day": "15", "cycle": "00152"}
        assert call["headers"]["X-Requested-With"] == "XMLHttpRequest"
        # telemetry requests get twice the base timeout
        assert call["timeout"] == 30.0
        assert modern_transport.calls_to("GET", "/us/archives.php") == []

    def test_serial_resolved_from_archive(self, modern_transport, address):
        telemetry = _client(modern_transport).get_telemetry(address, CycleIdentifier("2026", "01", "15", "152"))

        assert telemetry is not None
        call = modern_transport.calls_to("GET", "/data/cycleData.php")[0]
        assert decoded_filename(call["path"]) == MODERN_PATH

    def test_unknown_cycle_is_none_without_request(self, modern_transport, address):
        telemetry = _client(modern_transport).get_telemetry(address, CycleIdentifier("2026", "01", "15", "999"))

        assert telemetry is None
        assert modern_transport.calls_to("GET", "/data/cycleData.php") == []

    def test_unreadable_telemetry_is_none(self, fake_transport, address):
        fake_transport.add("HEAD", "/", make_response(200, headers={"Server": "nginx"}))
        fake_transport.add("GET", "/data/cycleData.php", make_response(200, "<html>error</html>"))
        identifier = CycleIdentifier("2026", "01", "15", "152", serial="710125H00004")

        assert _client(fake_transport).get_telemetry(address, identifier) is None

    def test_http_error_propagates(self, fake_transport, address):
        fake_transport.add("HEAD", "/", make_response(200, headers={"Server": "nginx"}))
        identifier = CycleIdentifier("2026", "01", "15", "152", serial="710125H00004")

        with pytest.raises(AutoclaveHTTPError) as exc_info:
            _client(fake_transport).get_telemetry(address, identifier)

        assert exc_info.value.status_code == 404


@pytest.mark.unit
@pytest.mark.telemetry
class TestLegacyTelemetry:
    def test_request_shape(self, legacy_transport, address):
        telemetry = _client(legacy_transport).get_telemetry(address, CycleIdentifier("2026", "01", "19", "1912"))

        assert telemetry.date == "2026-01-19"
        assert telemetry.number == 1912
        # legacy series are space-delimited
        assert telemetry.temperature_series == [100.5, 121.0, 132.2]

        call = legacy_transport.calls_to("POST", "/data/cycleData.cgi")[0]
        assert call["payload"] == {"year": "2026", "month": "01", "day": "19", "cycle": "01912"}
        assert call["headers"]["Content-Type"].startswith("application/x-www-form-urlencoded")

    def test_device_miss_is_none(self, fake_transport, address):
        fake_transport.add("HEAD", "/", make_response(200, headers={"Server": "MQX"}))
        fake_transport.add("POST", "/data/cycleData.cgi", lambda path, payload: {"succeeded": False})

        assert _client(fake_transport).get_telemetry(address, CycleIdentifier("2026", "01", "19", "1")) is None

    def test_timeout_propagates(self, fake_transport, address):
        fake_transport.add("HEAD", "/", make_response(200, headers={"Server": "MQX"}))
        fake_transport.add("POST", "/data/cycleData.cgi", AutoclaveTimeoutError("timed out"))

        with pytest.raises(AutoclaveTimeoutError):
            _client(fake_transport).get_telemetry(address, CycleIdentifier("2026", "01", "19", "1"))

    def test_probe_sends_today_as_placeholder(self, legacy_transport, address):
        telemetry = _client(legacy_transport).telemetry.probe_legacy(address, 1912)

        assert telemetry is not None
        assert legacy_transport.calls[-1]["payload"] == {"year": "2026", "month": "01", "day": "20", "cycle": "01912"}

    def test_probe_uses_given_reference_date(self, legacy_transport, address):
        _client(legacy_transport).telemetry.probe_legacy(address, 1912, reference=date(2026, 1, 19))

        assert legacy_transport.calls[-1]["payload"] == {"year": "2026", "month": "01", "day": "19", "cycle": "01912"}

    def test_probe_failures_are_misses(self, fake_transport, address):
        fake_transport.add("POST", "/data/cycleData.cgi", AutoclaveTimeoutError("timed out"))

        assert _client(fake_transport).telemetry.probe_legacy(address, 5) is None

    def test_probe_without_date_is_miss(self, fake_transport, address):
        fake_transport.add("POST", "/data/cycleData.cgi", lambda path, payload: {"succeeded": True, "number": 5})

        assert _client(fake_transport).telemetry.probe_legacy(address, 5) is None
