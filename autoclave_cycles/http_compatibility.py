"""
HTTP Compatibility Layer for Autoclave Cycles Client
====================================================

This module provides the two request executors used by the adaptive
transport:

* a strict session, backed by urllib3, that refuses responses whose
  status or header lines violate HTTP framing, and
* a lenient session whose adapter speaks HTTP over a raw socket and
  parses the response the way a browser would.

Both return ordinary requests.Response objects so callers never need to
know which parser produced a response.

License: MIT
"""

import logging
import re
import socket
import warnings
import zlib
from typing import Optional, Union
from urllib.parse import urlsplit

import requests
import urllib3
from requests.adapters import HTTPAdapter
from requests.models import PreparedRequest, Response
from requests.utils import get_encoding_from_headers
from urllib3.exceptions import HeaderParsingError
from urllib3.util.response import assert_header_parsing
from urllib3.util.retry import Retry

from .config import USER_AGENT

# HeaderParsingError is turned into a hard failure by StrictHTTPAdapter instead
urllib3.disable_warnings(HeaderParsingError)

warnings.filterwarnings(
    "ignore",
    message=".*Failed to parse headers.*HeaderParsingError.*",
    category=UserWarning,
    module="urllib3",
)

# Reduce urllib3 logging noise for framing issues we handle
logging.getLogger("urllib3.connectionpool").setLevel(logging.ERROR)

logger = logging.getLogger("autoclave-cycles")

STATUS_LINE_PATTERN = re.compile(r"^HTTP/\S+\s+(\d{3})\s*(.*)$")

TimeoutValue = Union[None, float, tuple[Optional[float], Optional[float]]]


def _split_timeout(timeout: TimeoutValue) -> tuple[Optional[float], Optional[float]]:
    if isinstance(timeout, tuple):
        return timeout[0], timeout[1]
    return timeout, timeout


def _find_header_end(data: bytes) -> tuple[int, int]:
    """
    Locate the blank line separating head and body.

    Returns (index, separator length), or (-1, 0) if the head is incomplete.
    Some firmware terminates header lines with a bare LF.
    """
    candidates = [(data.find(sep), len(sep)) for sep in (b"\r\n\r\n", b"\n\n")]
    found = [c for c in candidates if c[0] >= 0]
    if not found:
        return -1, 0
    return min(found)


class StrictHTTPAdapter(HTTPAdapter):
    """
    HTTPAdapter that fails on malformed response headers.

    urllib3 only logs HeaderParsingError and carries on with whatever it
    could read. For parser detection a framing defect must fail the
    request, so the check is repeated here and raised.
    """

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        response = super().send(request, stream=stream, timeout=timeout, verify=verify, cert=cert, proxies=proxies)

        original = getattr(response.raw, "_original_response", None)
        if original is not None:
            try:
                assert_header_parsing(original.msg)
            except HeaderParsingError:
                response.close()
                raise

        return response


class LenientHTTPAdapter(HTTPAdapter):
    """
    HTTPAdapter that speaks HTTP over a raw socket with browser-like tolerance.

    Root cause: older autoclave firmware emits status and header lines that
    urllib3 rejects, although browsers render the pages without complaint.

    Solution: write the request by hand and parse the response tolerantly:
    bare LF line endings, header lines without a colon, a missing reason
    phrase and a missing Content-Length are all accepted.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        logger.debug("🔧 Initialized LenientHTTPAdapter with relaxed HTTP parsing")

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        """Send the request over a raw socket and parse the reply tolerantly."""
        return self._raw_socket_request(request, timeout)

    def _raw_socket_request(self, request: PreparedRequest, timeout: TimeoutValue = None) -> Response:
        """
        Make HTTP request using raw socket with browser-like tolerance.

        Raises:
            requests.exceptions.ConnectTimeout: If the connection is not established in time
            requests.exceptions.ReadTimeout: If no byte of the response arrives in time
            requests.exceptions.ConnectionError: If the connection fails or nothing is returned
        """
        logger.debug(f"🔌 Lenient request: {request.method} {request.url}")

        parts = urlsplit(request.url)
        host = parts.hostname or ""
        port = parts.port or 80
        path = parts.path or "/"
        if parts.query:
            path = f"{path}?{parts.query}"

        connect_timeout, read_timeout = _split_timeout(timeout)

        try:
            sock = socket.create_connection((host, port), timeout=connect_timeout)
        except socket.timeout as e:
            raise requests.exceptions.ConnectTimeout(e, request=request) from e
        except OSError as e:
            raise requests.exceptions.ConnectionError(e, request=request) from e

        try:
            sock.settimeout(read_timeout)
            sock.sendall(self._build_raw_http_request(request, host, port, path))
            raw_response = self._receive_response_tolerantly(sock)
        except socket.timeout as e:
            raise requests.exceptions.ReadTimeout(e, request=request) from e
        except OSError as e:
            raise requests.exceptions.ConnectionError(e, request=request) from e
        finally:
            sock.close()

        if not raw_response:
            raise requests.exceptions.ConnectionError(f"Empty response from {host}:{port}", request=request)

        return self._parse_response_tolerantly(raw_response, request)

    def _build_raw_http_request(self, request: PreparedRequest, host: str, port: int, path: str) -> bytes:
        """Build the raw request bytes; Content-Length is always recomputed."""
        body = request.body or b""
        if isinstance(body, str):
            body = body.encode("utf-8")

        host_header = host if port == 80 else f"{host}:{port}"
        lines = [f"{request.method} {path} HTTP/1.1", f"Host: {host_header}"]

        for name, value in request.headers.items():
            if name.lower() in ("host", "content-length", "connection", "transfer-encoding", "accept-encoding"):
                continue
            lines.append(f"{name}: {value}")

        # Bodies are read as-is, so compression is never offered
        lines.append("Accept-Encoding: identity")

        if body or request.method in ("POST", "PUT", "PATCH"):
            lines.append(f"Content-Length: {len(body)}")

        # The device closes the socket when done, which marks the end of bodies without Content-Length
        lines.append("Connection: close")

        head = "\r\n".join(lines) + "\r\n\r\n"
        return head.encode("utf-8") + body

    def _receive_response_tolerantly(self, sock: socket.socket) -> bytes:
        """
        Receive an HTTP response with browser-like tolerance.

        Reads until the declared Content-Length is satisfied or the peer
        closes. A timeout or reset after some data has arrived is treated as
        the end of the response; before any data it is re-raised.
        """
        response_data = b""
        content_length = None
        header_end = -1

        while True:
            try:
                chunk = sock.recv(4096)
            except socket.timeout:
                if not response_data:
                    raise
                logger.debug("🕐 Socket timeout during response, assuming complete")
                break
            except OSError as e:
                if not response_data:
                    raise
                logger.debug(f"🔍 Socket receive error after partial response: {e}")
                break

            if not chunk:
                break

            response_data += chunk

            if header_end < 0:
                index, sep_len = _find_header_end(response_data)
                if index >= 0:
                    header_end = index + sep_len
                    content_length = self._extract_content_length(response_data[:index])

            if header_end >= 0 and content_length is not None:
                if len(response_data) - header_end >= content_length:
                    break

        logger.debug(f"📥 Raw response received: {len(response_data)} bytes")
        return response_data

    def _extract_content_length(self, head: bytes) -> Optional[int]:
        text = head.decode("utf-8", errors="replace").replace("\r\n", "\n")
        for line in text.split("\n")[1:]:
            name, sep, value = line.partition(":")
            if sep and name.strip().lower() == "content-length":
                try:
                    return int(value.strip())
                except ValueError:
                    # Unparseable length, read until close
                    return None
        return None

    def _parse_response_tolerantly(self, raw_response: bytes, original_request: PreparedRequest) -> Response:
        """
        Parse a raw HTTP response with browser-like tolerance.

        A status line that cannot be read is taken as 200, matching what a
        browser would render.
        """
        index, sep_len = _find_header_end(raw_response)
        if index >= 0:
            head, body = raw_response[:index], raw_response[index + sep_len :]
        else:
            head, body = raw_response, b""

        header_lines = head.decode("utf-8", errors="replace").replace("\r\n", "\n").split("\n")
        status_line = header_lines[0].strip() if header_lines else ""

        status_code = 200
        reason = "OK"
        match = STATUS_LINE_PATTERN.match(status_line)
        if match:
            status_code = int(match.group(1))
            reason = match.group(2).strip() or reason
        else:
            logger.debug(f"🔍 Tolerant parsing: Using default status 200 for: {status_line!r}")

        response = Response()
        for line in header_lines[1:]:
            if ":" in line:
                key, value = line.split(":", 1)
                # Duplicate headers keep the last value
                response.headers[key.strip()] = value.strip()
            elif line.strip():
                logger.debug(f"🔍 Tolerant parsing: Skipping non-standard header: {line!r}")

        if response.headers.get("Transfer-Encoding", "").lower() == "chunked":
            body = self._decode_chunked(body)
        else:
            declared = self._extract_content_length(head)
            if declared is not None and len(body) > declared:
                body = body[:declared]

        body = self._decode_content(body, response.headers.get("Content-Encoding", ""))

        response.status_code = status_code
        response.reason = reason
        response._content = body
        response.encoding = get_encoding_from_headers(response.headers)
        response.url = original_request.url or ""
        response.request = original_request
        response.connection = self

        logger.debug(f"✅ Tolerant parsing successful: {status_code} ({len(body)} bytes)")
        return response

    def _decode_content(self, body: bytes, content_encoding: str) -> bytes:
        """Undo gzip or deflate compression; undecodable bodies are kept as received."""
        encoding = content_encoding.strip().lower()
        if not body or encoding not in ("gzip", "x-gzip", "deflate"):
            return body

        # gzip needs its header skipped; deflate may arrive with or without a zlib wrapper
        wbits_options = (16 + zlib.MAX_WBITS,) if "gzip" in encoding else (zlib.MAX_WBITS, -zlib.MAX_WBITS)
        for wbits in wbits_options:
            try:
                return zlib.decompress(body, wbits)
            except zlib.error:
                continue

        logger.debug(f"🔍 Tolerant parsing: Could not decode {encoding} body, keeping raw bytes")
        return body

    def _decode_chunked(self, body: bytes) -> bytes:
        """Decode a chunked body, keeping whatever precedes a malformed chunk."""
        decoded = b""
        remaining = body
        while remaining:
            line_end = remaining.find(b"\n")
            if line_end < 0:
                break
            size_text = remaining[:line_end].strip().split(b";", 1)[0]
            try:
                size = int(size_text, 16)
            except ValueError:
                logger.debug("🔍 Tolerant parsing: malformed chunk size, keeping partial body")
                break
            if size == 0:
                break
            start = line_end + 1
            decoded += remaining[start : start + size]
            remaining = remaining[start + size :].lstrip(b"\r\n")
        return decoded


def _configure_session(session: requests.Session, connection: str) -> requests.Session:
    session.headers.update(
        {
            "User-Agent": USER_AGENT,
            "Cache-Control": "no-cache",
            "Connection": connection,
        }
    )
    return session


def create_strict_session() -> requests.Session:
    """
    Create the session used by the strict executor.

    Retries are disabled: a failed strict attempt is handled by the
    transport's fallback to the lenient executor, never by urllib3.
    """
    session = requests.Session()
    adapter = StrictHTTPAdapter(
        pool_connections=4,
        pool_maxsize=4,
        max_retries=Retry(total=0, raise_on_status=False),
        pool_block=False,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    logger.debug("🔧 Created strict session")
    return _configure_session(session, "keep-alive")


def create_lenient_session() -> requests.Session:
    """Create the session used by the lenient executor (raw socket, tolerant parsing)."""
    session = requests.Session()
    session.mount("http://", LenientHTTPAdapter())

    logger.debug("🔧 Created lenient session with relaxed HTTP parsing")
    return _configure_session(session, "close")


__all__ = [
    "LenientHTTPAdapter",
    "StrictHTTPAdapter",
    "create_lenient_session",
    "create_strict_session",
]
