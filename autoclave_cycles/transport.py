"""
Adaptive Transport for Autoclave Cycles Client
==============================================

Every network call goes through AdaptiveTransport.execute(). On first
contact with a device the strict parser is tried under a short timeout;
if the device answers with broken framing, or does not answer in time,
the request is repeated with the lenient parser. Whichever executor
succeeds first is remembered for the device for the rest of the process.

License: MIT
"""

import logging
import threading
import time
from typing import Optional, Union

import requests
from urllib3.exceptions import HeaderParsingError

from .config import DEFAULT_TIMEOUT, DETECTION_TIMEOUT
from .exceptions import AutoclaveTransportError, FailureKind, wrap_connection_error
from .http_compatibility import create_lenient_session, create_strict_session
from .instrumentation import PerformanceInstrumentation
from .models import DeviceAddress, ErrorCapture, ParsingMode

logger = logging.getLogger("autoclave-cycles")

# Failures after which the lenient parser is worth a try
LENIENT_RETRY_KINDS = (FailureKind.MALFORMED_RESPONSE, FailureKind.TIMEOUT)


class AdaptiveTransport:
    """
    Issues single HTTP requests, choosing the parser per device.

    The parsing-mode cache is keyed by DeviceAddress and shared by every
    caller of this transport; entries are replaced whole under a lock.
    """

    def __init__(
        self,
        strict_session: Optional[requests.Session] = None,
        lenient_session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        detection_timeout: float = DETECTION_TIMEOUT,
        instrumentation: Optional[PerformanceInstrumentation] = None,
        error_analyzer=None,
    ):
        """
        Initialize the transport.

        Args:
            strict_session: Session used for standard parsing
            lenient_session: Session used for tolerant parsing
            timeout: Default request timeout in seconds
            detection_timeout: Timeout of the strict attempt on an unlearned device
            instrumentation: Optional performance instrumentation
            error_analyzer: Optional ErrorAnalyzer receiving failed attempts
        """
        self.strict_session = strict_session or create_strict_session()
        self.lenient_session = lenient_session or create_lenient_session()
        self.timeout = timeout
        self.detection_timeout = detection_timeout
        self.instrumentation = instrumentation
        self.error_analyzer = error_analyzer

        self._modes: dict[DeviceAddress, ParsingMode] = {}
        self._lock = threading.Lock()

    def parsing_mode(self, address: DeviceAddress) -> ParsingMode:
        """Return the learned parsing mode for a device."""
        with self._lock:
            return self._modes.get(address, ParsingMode.UNLEARNED)

    def _record_mode(self, address: DeviceAddress, mode: ParsingMode) -> None:
        with self._lock:
            previous = self._modes.get(address, ParsingMode.UNLEARNED)
            if previous is ParsingMode.UNLEARNED:
                self._modes[address] = mode

        if previous is ParsingMode.UNLEARNED:
            logger.info(f"🧭 Parsing mode for {address}: {mode.value}")

    def execute(
        self,
        address: DeviceAddress,
        method: str,
        path: str,
        headers: Optional[dict[str, str]] = None,
        body: Union[str, bytes, None] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """
        Execute one request against a device.

        Args:
            address: Target device
            method: HTTP method
            path: Request path including any query string
            headers: Extra request headers
            body: Request body
            timeout: Request timeout in seconds (defaults to the transport timeout)

        Returns:
            requests.Response from whichever executor succeeded

        Raises:
            AutoclaveTransportError: Timeout, connection failure or malformed response
        """
        full_timeout = timeout if timeout is not None else self.timeout
        mode = self.parsing_mode(address)

        if mode is ParsingMode.LENIENT:
            return self._attempt(
                self.lenient_session, "http_request_lenient", address, method, path, headers, body, full_timeout
            )

        if mode is ParsingMode.STANDARD:
            return self._attempt(
                self.strict_session, "http_request_standard", address, method, path, headers, body, full_timeout
            )

        # Unlearned: strict attempt first, failing fast
        detection_timeout = min(self.detection_timeout, full_timeout)
        try:
            response = self._send(
                self.strict_session,
                "http_request_detection",
                address,
                method,
                path,
                headers,
                body,
                detection_timeout,
            )
        except AutoclaveTransportError as strict_error:
            capture = self._capture_failure(strict_error, address, "http_request_detection")
            if strict_error.kind not in LENIENT_RETRY_KINDS:
                raise

            logger.info(
                f"🔧 Strict request to {address} failed ({strict_error.kind.value}), retrying with lenient parser"
            )

            # Any failure here propagates and leaves the device unlearned
            response = self._attempt(
                self.lenient_session, "http_request_lenient", address, method, path, headers, body, full_timeout
            )

            if self.error_analyzer is not None:
                self.error_analyzer.mark_recovered(capture)
            self._record_mode(address, ParsingMode.LENIENT)
            return response

        self._record_mode(address, ParsingMode.STANDARD)
        return response

    def _attempt(
        self,
        session: requests.Session,
        operation: str,
        address: DeviceAddress,
        method: str,
        path: str,
        headers: Optional[dict[str, str]],
        body: Union[str, bytes, None],
        timeout: float,
    ) -> requests.Response:
        try:
            return self._send(session, operation, address, method, path, headers, body, timeout)
        except AutoclaveTransportError as e:
            self._capture_failure(e, address, operation)
            raise

    def _capture_failure(
        self, error: AutoclaveTransportError, address: DeviceAddress, operation: str
    ) -> Optional[ErrorCapture]:
        if self.error_analyzer is None:
            return None
        return self.error_analyzer.analyze_error(error, address, operation)

    def _send(
        self,
        session: requests.Session,
        operation: str,
        address: DeviceAddress,
        method: str,
        path: str,
        headers: Optional[dict[str, str]],
        body: Union[str, bytes, None],
        timeout: float,
    ) -> requests.Response:
        """Send with one executor, converting failures to AutoclaveTransportError."""
        url = f"{address.base_url}{path}"
        start_time = self.instrumentation.start_timer(operation) if self.instrumentation else time.time()

        logger.debug(f"📤 {method} {url} ({operation}, timeout {timeout}s)")

        try:
            response = session.request(method, url, headers=headers, data=body, timeout=timeout)
        except (requests.exceptions.RequestException, HeaderParsingError, OSError) as e:
            wrapped = wrap_connection_error(e, address.host, address.port)

            if self.instrumentation:
                self.instrumentation.record_timing(operation, start_time, success=False, error_type=wrapped.kind.value)

            raise wrapped from e

        if self.instrumentation:
            self.instrumentation.record_timing(
                operation,
                start_time,
                success=True,
                http_status=response.status_code,
                response_size=len(response.content),
            )

        logger.debug(f"📥 {response.status_code} from {url}: {len(response.content)} bytes")
        return response

    def close(self) -> None:
        """Close both sessions."""
        self.strict_session.close()
        self.lenient_session.close()


__all__ = ["AdaptiveTransport"]
