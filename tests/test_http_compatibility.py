"""Tests for the strict and lenient request executors (no network access)."""

import gzip
import socket
import zlib
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests
from urllib3.exceptions import HeaderParsingError

from autoclave_cycles.http_compatibility import (
    LenientHTTPAdapter,
    StrictHTTPAdapter,
    create_lenient_session,
    create_strict_session,
)

URL = "http://192.168.1.50:80/data/cycles.cgi?1700000000000"
ARCHIVE_URL = "http://192.168.1.50:80/us/archives.php"


def _socket(*chunks):
    """A mock socket whose recv() yields the given chunks (bytes or exceptions), then EOF."""
    sock = MagicMock()
    sock.recv.side_effect = list(chunks) + [b""]
    return sock


@pytest.fixture
def lenient_session():
    return create_lenient_session()


@pytest.mark.unit
@pytest.mark.transport
class TestLenientHTTPAdapter:
    """Tolerant parsing over a mocked raw socket."""

    def test_accepts_bare_lf_and_non_standard_header_lines(self, lenient_session):
        raw = b"HTTP/1.1 200\nServer: MQX\nthis line has no colon\nContent-Length: 5\n\nhello"
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=_socket(raw)):
            response = lenient_session.get(URL, timeout=5)

        assert response.status_code == 200
        assert response.reason == "OK"
        assert response.headers["Server"] == "MQX"
        assert response.text == "hello"

    def test_unreadable_status_line_defaults_to_200(self, lenient_session):
        raw = b"3.500000 |Content-type: text/html\r\n\r\n[]"
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=_socket(raw)):
            response = lenient_session.get(URL, timeout=5)

        assert response.status_code == 200
        assert response.text == "[]"

    def test_error_status_is_preserved(self, lenient_session):
        raw = b"HTTP/1.0 404 Not Found\r\nContent-Length: 0\r\n\r\n"
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=_socket(raw)):
            response = lenient_session.get(URL, timeout=5)

        assert response.status_code == 404
        assert response.reason == "Not Found"
        assert not response.ok

    def test_stops_reading_once_content_length_is_satisfied(self, lenient_session):
        sock = _socket(b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\n[]", b"never read")
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=sock):
            response = lenient_session.get(URL, timeout=5)

        assert response.text == "[]"
        assert sock.recv.call_count == 1
        sock.close.assert_called_once()

    def test_body_is_read_until_close_without_content_length(self, lenient_session):
        sock = _socket(b"HTTP/1.1 200 OK\r\n\r\n[{\"year\":", b"\"2026\"}]")
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=sock):
            response = lenient_session.get(URL, timeout=5)

        assert response.json() == [{"year": "2026"}]

    def test_chunked_body_is_decoded(self, lenient_session):
        raw = b"HTTP/1.1 200 OK\r\nTransfer-Encoding: chunked\r\n\r\n4\r\nabcd\r\n3\r\nefg\r\n0\r\n\r\n"
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=_socket(raw)):
            response = lenient_session.get(URL, timeout=5)

        assert response.content == b"abcdefg"

    def test_timeout_after_partial_response_is_treated_as_complete(self, lenient_session):
        sock = _socket(b"HTTP/1.1 200 OK\r\n\r\npartial", socket.timeout("timed out"))
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=sock):
            response = lenient_session.get(URL, timeout=5)

        assert response.text == "partial"

    def test_timeout_before_any_data_raises_read_timeout(self, lenient_session):
        sock = _socket(socket.timeout("timed out"))
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=sock):
            with pytest.raises(requests.exceptions.ReadTimeout):
                lenient_session.get(URL, timeout=5)

    def test_connect_timeout_raises_connect_timeout(self, lenient_session):
        with patch(
            "autoclave_cycles.http_compatibility.socket.create_connection",
            side_effect=socket.timeout("timed out"),
        ):
            with pytest.raises(requests.exceptions.ConnectTimeout):
                lenient_session.get(URL, timeout=5)

    def test_refused_connection_raises_connection_error(self, lenient_session):
        with patch(
            "autoclave_cycles.http_compatibility.socket.create_connection",
            side_effect=ConnectionRefusedError("Connection refused"),
        ):
            with pytest.raises(requests.exceptions.ConnectionError):
                lenient_session.get(URL, timeout=5)

    def test_empty_response_raises_connection_error(self, lenient_session):
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=_socket()):
            with pytest.raises(requests.exceptions.ConnectionError):
                lenient_session.get(URL, timeout=5)

    def test_post_body_carries_content_length_and_closes_connection(self, lenient_session):
        sock = _socket(b"HTTP/1.1 200 OK\r\nContent-Length: 2\r\n\r\n[]")
        body = b'{"year":"2026","month":"01","day":"20"}'
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=sock) as connect:
            lenient_session.post(
                URL, data=body, headers={"Content-Type": "application/x-www-form-urlencoded"}, timeout=5
            )

        connect.assert_called_once_with(("192.168.1.50", 80), timeout=5)
        sent = sock.sendall.call_args.args[0]
        head, _, sent_body = sent.partition(b"\r\n\r\n")
        assert head.startswith(b"POST /data/cycles.cgi?1700000000000 HTTP/1.1\r\n")
        assert b"Host: 192.168.1.50\r\n" in head + b"\r\n"
        assert f"Content-Length: {len(body)}".encode() in head
        assert b"Connection: close" in head
        assert sent_body == body

    def test_compression_is_not_offered(self, lenient_session):
        sock = _socket(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=sock):
            lenient_session.get(ARCHIVE_URL, headers={"Accept-Encoding": "gzip, deflate"}, timeout=5)

        head = sock.sendall.call_args.args[0].partition(b"\r\n\r\n")[0]
        assert b"Accept-Encoding: identity" in head
        assert b"gzip" not in head

    @pytest.mark.parametrize(
        "content_encoding,compress",
        [
            ("gzip", gzip.compress),
            ("deflate", zlib.compress),
            ("deflate", lambda data: zlib.compress(data)[2:-4]),
        ],
    )
    def test_compressed_archive_page_is_decoded(self, lenient_session, content_encoding, compress):
        page = b"<script>var cyclesInfo = [];</script>"
        payload = compress(page)
        raw = (
            f"HTTP/1.1 200 OK\r\nServer: nginx\r\nContent-Encoding: {content_encoding}\r\n"
            f"Content-Length: {len(payload)}\r\n\r\n"
        ).encode() + payload
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=_socket(raw)):
            response = lenient_session.get(ARCHIVE_URL, timeout=5)

        assert "cyclesInfo" in response.text

    def test_undecodable_body_is_kept(self, lenient_session):
        raw = b"HTTP/1.1 200 OK\r\nContent-Encoding: gzip\r\nContent-Length: 4\r\n\r\nplain"
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=_socket(raw)):
            response = lenient_session.get(ARCHIVE_URL, timeout=5)

        assert response.content == b"plai"

    def test_connect_and_read_timeouts_are_split(self, lenient_session):
        sock = _socket(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")
        with patch("autoclave_cycles.http_compatibility.socket.create_connection", return_value=sock) as connect:
            lenient_session.get(URL, timeout=(2, 9))

        assert connect.call_args.kwargs["timeout"] == 2
        sock.settimeout.assert_called_once_with(9)


@pytest.mark.unit
@pytest.mark.transport
class TestStrictHTTPAdapter:
    """The strict executor turns header defects into failures."""

    def test_header_defect_raises(self):
        adapter = StrictHTTPAdapter()
        response = Mock()
        response.raw._original_response.msg = Mock()

        with patch("requests.adapters.HTTPAdapter.send", return_value=response), patch(
            "autoclave_cycles.http_compatibility.assert_header_parsing",
            side_effect=HeaderParsingError(defects=[], unparsed_data=b"junk"),
        ):
            with pytest.raises(HeaderParsingError):
                adapter.send(Mock())

        response.close.assert_called_once()

    def test_clean_response_passes_through(self):
        adapter = StrictHTTPAdapter()
        response = Mock()

        with patch("requests.adapters.HTTPAdapter.send", return_value=response), patch(
            "autoclave_cycles.http_compatibility.assert_header_parsing"
        ):
            assert adapter.send(Mock()) is response


@pytest.mark.unit
@pytest.mark.transport
class TestSessionFactories:
    def test_strict_session_has_no_retries(self):
        session = create_strict_session()
        adapter = session.get_adapter("http://192.168.1.50/")

        assert isinstance(adapter, StrictHTTPAdapter)
        assert adapter.max_retries.total == 0
        assert "AutoclaveCyclesClient" in session.headers["User-Agent"]

    def test_lenient_session_closes_connections(self):
        session = create_lenient_session()

        assert isinstance(session.get_adapter("http://192.168.1.50/"), LenientHTTPAdapter)
        assert session.headers["Connection"] == "close"
