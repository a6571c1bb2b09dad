"""Tests for shared data models."""

from datetime import date, datetime

import pytest

from autoclave_cycles.exceptions import AutoclaveConfigurationError
from autoclave_cycles.models import (
    ArchiveRecord,
    ConnectionTestResult,
    CycleIdentifier,
    CycleTelemetry,
    DeviceAddress,
    FirmwareType,
    FlattenedCycle,
    MonthIndex,
    YearIndex,
    normalize_cycle_number,
    parse_series,
)

from conftest import MODERN_FILE_NAME, MODERN_START_TIME


@pytest.mark.unit
class TestCycleNumbers:
    @pytest.mark.parametrize(
        "value,expected",
        [("1912", "01912"), (42, "00042"), ("00042", "00042"), (" 7 ", "00007"), (123456, "123456")],
    )
    def test_normalize(self, value, expected):
        assert normalize_cycle_number(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "-3"])
    def test_invalid_numbers_raise(self, value):
        with pytest.raises(AutoclaveConfigurationError):
            normalize_cycle_number(value)


@pytest.mark.unit
class TestDeviceAddress:
    def test_parse_host_only(self):
        assert DeviceAddress.parse("192.168.1.50") == DeviceAddress("192.168.1.50", 80)

    def test_parse_host_and_port(self):
        address = DeviceAddress.parse("http://autoclave.local:8080/")

        assert address.host == "autoclave.local"
        assert address.port == 8080
        assert address.base_url == "http://autoclave.local:8080"
        assert str(address) == "autoclave.local:8080"

    @pytest.mark.parametrize("value", ["", ":80", "host:abc", "host:70000"])
    def test_invalid_addresses_raise(self, value):
        with pytest.raises(AutoclaveConfigurationError):
            DeviceAddress.parse(value)

    def test_addresses_are_hashable_keys(self):
        assert len({DeviceAddress("a"), DeviceAddress("a", 80), DeviceAddress("a", 81)}) == 2


@pytest.mark.unit
class TestCycleIdentifier:
    def test_fields_are_normalized(self):
        identifier = CycleIdentifier("2026", "1", "5", "152")

        assert (identifier.month, identifier.day, identifier.cycle_number) == ("01", "05", "00152")
        assert identifier.iso_date == "2026-01-05"
        assert identifier.date == date(2026, 1, 5)

    def test_serial_does_not_affect_equality(self):
        assert CycleIdentifier("2026", "01", "15", "152", serial="X") == CycleIdentifier("2026", "01", "15", "152")

    def test_from_file_name(self):
        identifier = CycleIdentifier.from_file_name(f"/opt/data/scilog/2026/01/15/{MODERN_FILE_NAME}.cpt")

        assert identifier == CycleIdentifier("2026", "01", "15", "00152")
        assert identifier.serial == "710125H00004"

    def test_from_file_name_rejects_other_names(self):
        with pytest.raises(AutoclaveConfigurationError):
            CycleIdentifier.from_file_name("notes.txt")

    def test_file_path(self):
        identifier = CycleIdentifier("2026", "01", "15", "152", serial="710125H00004")

        assert identifier.file_path("cpt") == f"/opt/data/scilog/2026/01/15/{MODERN_FILE_NAME}.cpt"
        assert identifier.file_path("txt", "/data").endswith(f"/data/2026/01/15/{MODERN_FILE_NAME}.txt")

    def test_file_path_requires_serial(self):
        with pytest.raises(AutoclaveConfigurationError):
            CycleIdentifier("2026", "01", "15", "152").file_path()


@pytest.mark.unit
class TestCatalogModels:
    def test_skeleton_month_has_no_days(self):
        assert MonthIndex.from_dict({"month": "12"}).days is None
        assert MonthIndex.from_dict({"month": "12", "days": []}).days is None

    def test_year_index_round_trip_normalizes_cycles(self):
        year = YearIndex.from_dict(
            {"year": "2026", "months": [{"month": "01", "days": [{"day": "5", "cycles": ["1912", 7]}]}]}
        )

        assert year.months[0].days[0].day == "05"
        assert year.months[0].days[0].cycles == ["01912", "00007"]
        assert year.to_dict()["months"][0]["days"][0] == {"day": "05", "cycles": ["01912", "00007"]}

    def test_archive_record(self):
        record = ArchiveRecord.from_dict(
            {"records_id": 3, "cycle_start_time": MODERN_START_TIME, "file_name": MODERN_FILE_NAME, "cycle_number": 152}
        )

        assert record.date == date(2026, 1, 15)
        assert record.start_datetime == datetime(2026, 1, 15, 10, 30)
        assert record.padded_cycle_number == "00152"
        assert record.serial == "710125H00004"
        assert record.identifier() == CycleIdentifier("2026", "01", "15", "00152")

    def test_flattened_cycle_equality_ignores_source(self):
        identifier = CycleIdentifier("2026", "01", "15", "152")

        assert FlattenedCycle.from_identifier(identifier, "catalog") == FlattenedCycle.from_identifier(
            identifier, "probe"
        )
        assert FlattenedCycle.from_identifier(identifier).to_dict()["date"] == "2026-01-15"


@pytest.mark.unit
class TestTelemetryModel:
    def test_series_accept_both_delimiters(self):
        assert parse_series("1.5,2.5,3") == [1.5, 2.5, 3.0]
        assert parse_series("1.5 2.5  3") == [1.5, 2.5, 3.0]
        assert parse_series("1, x, 2") == [1.0, 2.0]
        assert parse_series(None) == []

    def test_from_dict_tolerates_missing_fields(self):
        telemetry = CycleTelemetry.from_dict({"date": "2026-01-15", "number": "152"})

        assert telemetry.number == 152
        assert telemetry.runmode is None
        assert telemetry.temperature_series == []
        assert telemetry.succeeded is True

    def test_duration_prefers_log_completion(self, sample_log):
        telemetry = CycleTelemetry.from_dict({"date": "2025-10-08", "number": 1755, "log": sample_log})

        assert telemetry.duration_minutes() == 45

    def test_duration_from_sample_count(self):
        telemetry = CycleTelemetry.from_dict({"date": "2026-01-15", "number": 1, "temp": " ".join(["100"] * 720)})

        assert telemetry.duration_minutes() == 60

    def test_duration_default(self):
        assert CycleTelemetry(date="2026-01-15", number=1).duration_minutes() == 30

    def test_connection_result_to_dict(self):
        result = ConnectionTestResult(success=False, error="Connection timeout", firmware=FirmwareType.LEGACY)

        assert result.to_dict() == {"success": False, "firmware": "legacy", "error": "Connection timeout"}
