"""
HTTP Request Handling for Autoclave Cycles Client
=================================================

This module shapes requests for the two device dialects on top of the
adaptive transport: status checking, JSON decoding, and the legacy
firmware's POST conventions.

"""

import json
import logging
import time
from typing import Any, Callable, Optional

import requests

from autoclave_cycles.config import DEFAULT_TIMEOUT, LEGACY_HEADERS
from autoclave_cycles.exceptions import AutoclaveHTTPError, AutoclaveParsingError
from autoclave_cycles.models import DeviceAddress

logger = logging.getLogger("autoclave-cycles")


class DeviceRequestHandler:
    """Issues dialect-shaped requests and decodes their responses."""

    def __init__(
        self,
        transport,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize request handler.

        Args:
            transport: AdaptiveTransport used for every request
            timeout: Default request timeout in seconds
            clock: Source of the millisecond cache-busting timestamps
        """
        self.transport = transport
        self.timeout = timeout
        self.clock = clock

    def cache_buster(self) -> str:
        """Millisecond timestamp appended to legacy URLs, as the device UI does."""
        return str(int(self.clock() * 1000))

    def get(
        self,
        address: DeviceAddress,
        path: str,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> requests.Response:
        """
        Send GET and require a success status.

        Raises:
            AutoclaveHTTPError: On a non-success status
            AutoclaveTransportError: If no response was obtained
        """
        response = self.transport.execute(address, "GET", path, headers=headers, timeout=timeout or self.timeout)
        self._check_status(response, address, path)
        return response

    def get_text(
        self,
        address: DeviceAddress,
        path: str,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> str:
        return self.get(address, path, headers=headers, timeout=timeout).text

    def get_json(
        self,
        address: DeviceAddress,
        path: str,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        response = self.get(address, path, headers=headers, timeout=timeout)
        return self._decode_json(response, address, path)

    def post_legacy(
        self,
        address: DeviceAddress,
        path: str,
        payload: dict[str, Any],
        timeout: Optional[float] = None,
    ) -> Any:
        """
        POST a JSON body the way the legacy web UI does and decode the reply.

        The body is JSON although the declared content type is form-encoded,
        and Content-Length must be present or the firmware ignores the body.

        Raises:
            AutoclaveHTTPError: On a non-success status
            AutoclaveParsingError: If the reply is not JSON
            AutoclaveTransportError: If no response was obtained
        """
        url_path = f"{path}?{self.cache_buster()}"
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")

        headers = dict(LEGACY_HEADERS)
        headers["Content-Length"] = str(len(body))

        logger.debug(f"📤 Legacy POST {url_path}: {payload}")
        response = self.transport.execute(
            address, "POST", url_path, headers=headers, body=body, timeout=timeout or self.timeout
        )
        self._check_status(response, address, path)
        return self._decode_json(response, address, path)

    def _check_status(self, response: requests.Response, address: DeviceAddress, path: str) -> None:
        if response.ok:
            return

        response_text = ""
        try:
            response_text = response.text[:500]
        except Exception:
            logger.debug("Unable to decode error response body")

        raise AutoclaveHTTPError(
            f"HTTP {response.status_code} response from {address}{path}",
            status_code=response.status_code,
            details={"path": path, "reason": response.reason or "", "response_text": response_text},
        )

    def _decode_json(self, response: requests.Response, address: DeviceAddress, path: str) -> Any:
        text = response.text
        try:
            return json.loads(text)
        except ValueError as e:
            logger.debug(f"Invalid JSON from {address}{path}: {text[:200]!r}")
            raise AutoclaveParsingError(
                f"Invalid JSON response from {address}{path}",
                details={"path": path, "error": str(e), "response_text": text[:200]},
            ) from e


__all__ = ["DeviceRequestHandler"]
