"""
Cycle Telemetry Reader for Autoclave Cycles Client
==================================================

Fetches the full detail record of one cycle. Modern firmware addresses a
cycle by the path of its .cpt file; legacy firmware by date and number.
A device answering ``succeeded: false`` yields None: a missing cycle is an
expected outcome of probing, not a fault.

"""

import json
import logging
from datetime import date
from typing import Any, Callable, Optional
from urllib.parse import quote

from autoclave_cycles.config import (
    LEGACY_TELEMETRY_PATH,
    MODERN_JSON_HEADERS,
    MODERN_TELEMETRY_PATH,
    SCILOG_BASE_PATH,
    TELEMETRY_TIMEOUT_MULTIPLIER,
)
from autoclave_cycles.exceptions import AutoclaveError, AutoclaveParsingError
from autoclave_cycles.models import (
    CycleIdentifier,
    CycleTelemetry,
    DeviceAddress,
    FirmwareType,
    normalize_cycle_number,
)

logger = logging.getLogger("autoclave-cycles")


def telemetry_from_payload(data: Any) -> Optional[CycleTelemetry]:
    """Turn a decoded detail response into CycleTelemetry, or None for a device-reported miss."""
    if not isinstance(data, dict):
        return None
    if data.get("succeeded") is False:
        return None
    return CycleTelemetry.from_dict(data)


class CycleTelemetryReader:
    """Reads single-cycle telemetry in the dialect the device speaks."""

    def __init__(
        self,
        requests,
        classifier,
        archive,
        base_path: str = SCILOG_BASE_PATH,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize telemetry reader.

        Args:
            requests: DeviceRequestHandler
            classifier: FirmwareClassifier
            archive: ArchivePageReader used to resolve modern serial numbers
            base_path: On-device storage root of cycle records
            today: Source of the placeholder date sent with legacy probes
        """
        self.requests = requests
        self.classifier = classifier
        self.archive = archive
        self.base_path = base_path
        self.today = today

    def get_telemetry(self, address: DeviceAddress, identifier: CycleIdentifier) -> Optional[CycleTelemetry]:
        """
        Fetch the telemetry of one cycle.

        Returns:
            CycleTelemetry, or None if the device has no such cycle or the
            response could not be decoded

        Raises:
            AutoclaveRequestError: On transport failure or a non-success status
        """
        if self.classifier.classify(address) is FirmwareType.MODERN:
            return self.fetch_modern(address, identifier)
        return self.fetch_legacy(address, identifier)

    def resolve_file_path(self, address: DeviceAddress, identifier: CycleIdentifier) -> Optional[str]:
        """Path of a modern cycle's .cpt file, looking the serial up in the archive if needed."""
        if identifier.serial:
            return identifier.file_path("cpt", self.base_path)

        marker = f"_{identifier.cycle_number}_"
        try:
            records = self.archive.fetch_records(address)
        except AutoclaveParsingError as e:
            logger.warning(f"⚠️ Cannot resolve serial for cycle {identifier.cycle_number}: {e}")
            return None

        for record in records:
            if marker in record.file_name:
                # The archive's own date places the file, not the caller's
                record_date = record.date
                return (
                    f"{self.base_path}/{record_date.year:04d}/{record_date.month:02d}/{record_date.day:02d}/"
                    f"{record.file_name}.cpt"
                )

        logger.error(f"❌ Cycle {identifier.cycle_number} not found in archive of {address}")
        return None

    def fetch_modern(self, address: DeviceAddress, identifier: CycleIdentifier) -> Optional[CycleTelemetry]:
        file_path = self.resolve_file_path(address, identifier)
        if file_path is None:
            return None

        params = json.dumps(
            {
                "year": identifier.year,
                "month": identifier.month,
                "day": identifier.day,
                "cycle": identifier.cycle_number,
            },
            separators=(",", ":"),
        )
        path = (
            f"{MODERN_TELEMETRY_PATH}?filename={quote(file_path, safe='')}"
            f"&t={self.requests.cache_buster()}&{quote(params, safe='')}"
        )

        try:
            data = self.requests.get_json(
                address,
                path,
                headers=MODERN_JSON_HEADERS,
                timeout=self.requests.timeout * TELEMETRY_TIMEOUT_MULTIPLIER,
            )
        except AutoclaveParsingError as e:
            logger.warning(f"⚠️ Unreadable telemetry for cycle {identifier.cycle_number} on {address}: {e}")
            return None

        return telemetry_from_payload(data)

    def fetch_legacy(
        self,
        address: DeviceAddress,
        identifier: CycleIdentifier,
    ) -> Optional[CycleTelemetry]:
        payload = {
            "year": identifier.year,
            "month": identifier.month,
            "day": identifier.day,
            "cycle": identifier.cycle_number,
        }

        try:
            data = self.requests.post_legacy(
                address,
                LEGACY_TELEMETRY_PATH,
                payload,
                timeout=self.requests.timeout * TELEMETRY_TIMEOUT_MULTIPLIER,
            )
        except AutoclaveParsingError as e:
            logger.warning(f"⚠️ Unreadable telemetry for cycle {identifier.cycle_number} on {address}: {e}")
            return None

        telemetry = telemetry_from_payload(data)
        if telemetry is None:
            logger.debug(f"Cycle {identifier.cycle_number} not reported by {address}")
        return telemetry

    def probe_legacy(
        self,
        address: DeviceAddress,
        cycle_number: int,
        year: Optional[str] = None,
        month: Optional[str] = None,
        reference: Optional[date] = None,
    ) -> Optional[CycleTelemetry]:
        """
        Ask a legacy device for a cycle by number alone.

        The firmware looks cycles up by number; the date fields are hints and
        default to the reference date, or today. Every failure counts as a miss.
        """
        today = reference or self.today()
        payload = {
            "year": year or f"{today.year:04d}",
            "month": month or f"{today.month:02d}",
            "day": f"{today.day:02d}",
            "cycle": normalize_cycle_number(cycle_number),
        }

        try:
            data = self.requests.post_legacy(address, LEGACY_TELEMETRY_PATH, payload)
        except AutoclaveError as e:
            logger.debug(f"Probe of cycle {cycle_number} on {address} missed: {e}")
            return None

        telemetry = telemetry_from_payload(data)
        if telemetry is None or not telemetry.date:
            return None
        return telemetry


__all__ = ["CycleTelemetryReader", "telemetry_from_payload"]
