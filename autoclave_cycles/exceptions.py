"""
Custom exceptions for the Autoclave Cycles client.

All exceptions inherit from AutoclaveError so callers can catch every
library-specific failure in one place. Transport-level failures carry the
FailureKind that was used to decide whether the lenient parser should be
tried.

Example usage:
    try:
        cycles = client.cycles_for_range(address, "week")
    except AutoclaveTimeoutError as e:
        print(f"Autoclave did not answer: {e}")
    except AutoclaveError as e:
        print(f"Autoclave error: {e}")

License: MIT
"""

import socket
from enum import Enum
from typing import Any, Optional

import requests
from urllib3.exceptions import HeaderParsingError


class FailureKind(Enum):
    """Classification of a failed request attempt."""

    TIMEOUT = "timeout"
    CONNECTION_FAILED = "connection_failed"
    MALFORMED_RESPONSE = "malformed_response"


# Fragments seen in strict-parser errors when firmware breaks HTTP framing
MALFORMED_RESPONSE_PATTERNS = [
    "headerparsingerror",
    "firstheaderlineiscontinuationdefect",
    "missingheaderbodyseparatordefect",
    "unparsed data:",
    "failed to parse headers",
    "badstatusline",
    "linetoolong",
    "invalid header",
    "connection aborted",
]


class AutoclaveError(Exception):
    """
    Base exception for all Autoclave Cycles client errors.

    Attributes:
        message: Human-readable error message
        details: Optional dictionary with additional error context
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class AutoclaveRequestError(AutoclaveError):
    """
    Raised when a usable HTTP response could not be obtained from a device.

    Covers both transport failures and non-success HTTP status codes.
    """


class AutoclaveTransportError(AutoclaveRequestError):
    """
    Raised when the request never produced a parseable response.

    Attributes:
        kind: FailureKind describing the failure
    """

    kind = FailureKind.CONNECTION_FAILED


class AutoclaveConnectionError(AutoclaveTransportError):
    """Raised when the device refuses, resets, or cannot be reached."""

    kind = FailureKind.CONNECTION_FAILED


class AutoclaveTimeoutError(AutoclaveTransportError):
    """Raised when the device does not answer within the request timeout."""

    kind = FailureKind.TIMEOUT


class AutoclaveMalformedResponseError(AutoclaveTransportError):
    """Raised when the device answers with status or header lines that violate HTTP framing."""

    kind = FailureKind.MALFORMED_RESPONSE


class AutoclaveHTTPError(AutoclaveRequestError):
    """
    Raised when the device answers with a non-success status code.

    Attributes:
        status_code: HTTP status code if available
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
        if status_code and self.details is not None:
            self.details["status_code"] = status_code


class AutoclaveParsingError(AutoclaveError):
    """
    Raised when a device response cannot be decoded.

    This covers invalid JSON bodies and a missing or malformed embedded
    cyclesInfo literal on the archive page.
    """


class AutoclaveConfigurationError(AutoclaveError):
    """Raised when configuration or caller-supplied parameters are invalid."""


def _related_errors(error: BaseException) -> list[BaseException]:
    """Collect the error, its cause/context chain and exceptions nested in args."""
    related: list[BaseException] = []
    pending: list[BaseException] = [error]
    while pending:
        current = pending.pop(0)
        if any(current is seen for seen in related):
            continue
        related.append(current)
        for nested in (current.__cause__, current.__context__, *getattr(current, "args", ())):
            if isinstance(nested, BaseException):
                pending.append(nested)
    return related


def classify_failure(error: BaseException) -> FailureKind:
    """
    Classify a raw request exception.

    Timeouts are checked first since requests' ConnectTimeout is also a
    ConnectionError. Malformed framing shows up as urllib3 HeaderParsingError,
    or as http.client.BadStatusLine wrapped in a ProtocolError.
    """
    related = _related_errors(error)

    for item in related:
        if isinstance(item, (requests.exceptions.Timeout, socket.timeout, TimeoutError)):
            return FailureKind.TIMEOUT

    for item in related:
        if isinstance(item, HeaderParsingError):
            return FailureKind.MALFORMED_RESPONSE

        text = f"{type(item).__name__} {item!r}".lower()
        if any(pattern in text for pattern in MALFORMED_RESPONSE_PATTERNS):
            return FailureKind.MALFORMED_RESPONSE

    return FailureKind.CONNECTION_FAILED


def wrap_connection_error(original_error: BaseException, host: str, port: int) -> AutoclaveTransportError:
    """
    Wrap a requests/socket exception in the matching AutoclaveTransportError.

    Args:
        original_error: The original exception
        host: Host that was contacted
        port: Port that was contacted

    Returns:
        AutoclaveTransportError subclass with context
    """
    kind = classify_failure(original_error)
    details = {
        "host": host,
        "port": port,
        "error_type": type(original_error).__name__,
        "original_error": str(original_error),
    }

    if kind is FailureKind.TIMEOUT:
        return AutoclaveTimeoutError(f"Request to {host}:{port} timed out", details=details)

    if kind is FailureKind.MALFORMED_RESPONSE:
        return AutoclaveMalformedResponseError(f"Malformed HTTP response from {host}:{port}", details=details)

    message = f"Failed to connect to {host}:{port}"
    if isinstance(original_error, ConnectionRefusedError) or "refused" in str(original_error).lower():
        message = f"Connection refused by {host}:{port} - autoclave may be offline or web interface disabled"

    return AutoclaveConnectionError(message, details=details)


__all__ = [
    "AutoclaveConfigurationError",
    "AutoclaveConnectionError",
    "AutoclaveError",
    "AutoclaveHTTPError",
    "AutoclaveMalformedResponseError",
    "AutoclaveParsingError",
    "AutoclaveRequestError",
    "AutoclaveTimeoutError",
    "AutoclaveTransportError",
    "FailureKind",
    "classify_failure",
    "wrap_connection_error",
]
