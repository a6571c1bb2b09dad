"""
Firmware Classification for Autoclave Cycles Client
===================================================

Decides which API dialect a device speaks. Modern firmware is served by
nginx; legacy firmware runs the Freescale MQX embedded web server.

License: MIT
"""

import logging
import threading

from .config import ARCHIVE_PATH, DEFAULT_TIMEOUT
from .exceptions import AutoclaveError
from .models import DeviceAddress, FirmwareType

logger = logging.getLogger("autoclave-cycles")


class FirmwareClassifier:
    """
    Classifies devices as modern or legacy, once per device per process.

    classify() never raises: anything ambiguous resolves to legacy.
    """

    def __init__(self, transport, timeout: float = DEFAULT_TIMEOUT):
        self.transport = transport
        self.timeout = timeout
        self._cache: dict[DeviceAddress, FirmwareType] = {}
        self._lock = threading.Lock()

    def firmware_type(self, address: DeviceAddress) -> FirmwareType:
        """Cached classification, or UNKNOWN if the device was never classified."""
        with self._lock:
            return self._cache.get(address, FirmwareType.UNKNOWN)

    def classify(self, address: DeviceAddress) -> FirmwareType:
        """Return the device's dialect, sniffing it on first use."""
        cached = self.firmware_type(address)
        if cached is not FirmwareType.UNKNOWN:
            return cached

        detected = self._detect(address)

        with self._lock:
            firmware = self._cache.setdefault(address, detected)

        logger.info(f"🔎 Firmware for {address}: {firmware.value}")
        return firmware

    def _detect(self, address: DeviceAddress) -> FirmwareType:
        try:
            response = self.transport.execute(address, "HEAD", "/", timeout=self.timeout)
            server = response.headers.get("Server", "").lower()
            logger.debug(f"Server header from {address}: {server!r}")

            if "nginx" in server:
                return FirmwareType.MODERN
            if "mqx" in server or "freescale" in server:
                return FirmwareType.LEGACY

            # No telling header; the archive page only exists on modern firmware
            response = self.transport.execute(address, "HEAD", ARCHIVE_PATH, timeout=self.timeout)
            if response.ok:
                return FirmwareType.MODERN

        except AutoclaveError as e:
            # Legacy devices are known to hang or reset on HEAD
            logger.debug(f"Firmware sniff failed for {address}, assuming legacy: {e}")

        return FirmwareType.LEGACY


__all__ = ["FirmwareClassifier"]
