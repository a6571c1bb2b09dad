import json
from datetime import date, datetime
from typing import Any, Callable, Optional, Union
from urllib.parse import unquote

import pytest
import requests

from autoclave_cycles.models import DeviceAddress, ParsingMode

TODAY = date(2026, 1, 20)

MODERN_FILE_NAME = "S20260115_00152_710125H00004"
MODERN_START_TIME = int(datetime(2026, 1, 15, 10, 30).timestamp())

SAMPLE_LOG = """STATCLAVE G4 SBS1R118
SN 710123B00004
Unit #  :        000
1.2uS / 0.7ppm
CYCLE NUMBER  001755
 9:54:52  08/10/2025
Solid/Wrapped
132 C/4min
Min. steri. Values:
132.1 C   188kPa
Max. steri. Values:
133.4 C   195kPa
STERILIZING    25:35
DRYING START   29:35
DRYING END     44:35
CYCLE COMPLETE 45:10
Digital Signature #
A1B2C3D4
"""


def make_response(
    status: int = 200,
    body: Union[str, bytes] = b"",
    headers: Optional[dict[str, str]] = None,
    reason: str = "OK",
) -> requests.Response:
    """Build a real requests.Response, as both executors return."""
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.headers.update(headers or {})
    response.encoding = "utf-8"
    return response


def json_response(data: Any, status: int = 200) -> requests.Response:
    return make_response(status, json.dumps(data), {"Content-Type": "application/json"})


Responder = Union[requests.Response, BaseException, Callable[..., Any]]


class FakeTransport:
    """
    Scripted stand-in for AdaptiveTransport.

    Routes are (method, path prefix, responder) tuples matched in order. A
    responder is a Response, an exception to raise, or a callable taking
    (path, payload) that returns a Response, data to JSON-encode, or raises.
    Unmatched requests get a 404.
    """

    def __init__(self) -> None:
        self.routes: list[tuple[str, str, Responder]] = []
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def add(self, method: str, path_prefix: str, responder: Responder) -> "FakeTransport":
        self.routes.append((method, path_prefix, responder))
        return self

    def execute(self, address, method, path, headers=None, body=None, timeout=None):
        payload = None
        if body:
            payload = json.loads(body.decode("utf-8") if isinstance(body, bytes) else body)

        self.calls.append(
            {
                "address": address,
                "method": method,
                "path": path,
                "headers": headers or {},
                "body": body,
                "payload": payload,
                "timeout": timeout,
            }
        )

        for route_method, prefix, responder in self.routes:
            if route_method == method and path.startswith(prefix):
                if isinstance(responder, BaseException):
                    raise responder
                if isinstance(responder, requests.Response):
                    return responder
                result = responder(path, payload)
                if isinstance(result, requests.Response):
                    return result
                return json_response(result)

        return make_response(404, "Not Found", reason="Not Found")

    def calls_to(self, method: str, path_prefix: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method and c["path"].startswith(path_prefix)]

    def parsing_mode(self, address):
        return ParsingMode.STANDARD

    def close(self) -> None:
        self.closed = True


def archive_page(records: list[dict[str, Any]]) -> str:
    return (
        "<html><head><script>\n"
        f"var cyclesInfo = {json.dumps(records)};\n"
        "</script></head><body>Archives</body></html>"
    )


def archive_record(file_name: str, start_time: int, cycle_number: int, records_id: int = 1) -> dict[str, Any]:
    return {
        "records_id": records_id,
        "cycle_start_time": start_time,
        "file_name": file_name,
        "cycle_number": cycle_number,
        "cycle_id": "STATCLAVE_120V_solid_wrapped_132_4min",
    }


def telemetry_payload(cycle_date: str, number: int, log: str = SAMPLE_LOG, delimiter: str = " ") -> dict[str, Any]:
    return {
        "succeeded": True,
        "date": cycle_date,
        "number": number,
        "runmode": 2,
        "display_units": "C",
        "status": "Solid/Wrapped / 132C/4min",
        "x_axis_points": 3,
        "temp": delimiter.join(["100.5", "121.0", "132.2"]),
        "pressure": delimiter.join(["101", "180", "190"]),
        "log": log,
    }


def decoded_filename(path: str) -> str:
    """The filename query parameter of a file_reader/cycleData path."""
    query = path.split("?", 1)[1]
    for part in query.split("&"):
        if part.startswith("filename="):
            return unquote(part[len("filename=") :])
    return ""


@pytest.fixture
def address():
    return DeviceAddress("192.168.1.50", 80)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def sample_log():
    return SAMPLE_LOG


@pytest.fixture
def modern_transport(fake_transport):
    """A modern (nginx) device with one archived cycle."""
    records = [archive_record(MODERN_FILE_NAME, MODERN_START_TIME, 152)]
    fake_transport.add("HEAD", "/", make_response(200, headers={"Server": "nginx/1.18.0"}))
    fake_transport.add("GET", "/us/archives.php", make_response(200, archive_page(records)))
    fake_transport.add(
        "GET", "/data/cycleData.php", lambda path, payload: telemetry_payload("2026-01-15", 152, delimiter=",")
    )
    return fake_transport


@pytest.fixture
def legacy_index():
    """Legacy index: January 2026 has day detail, December 2025 is a bare skeleton."""
    return [
        {"year": "2025", "months": [{"month": "12"}]},
        {
            "year": "2026",
            "months": [
                {
                    "month": "01",
                    "days": [
                        {"day": "15", "cycles": ["01910", "01911"]},
                        {"day": "19", "cycles": ["01912"]},
                        {"day": "20", "cycles": ["01913"]},
                    ],
                }
            ],
        },
    ]


@pytest.fixture
def legacy_transport(fake_transport, legacy_index):
    """A legacy (MQX) device answering index and telemetry POSTs."""
    fake_transport.add("HEAD", "/", make_response(200, headers={"Server": "MQX"}))
    fake_transport.add("POST", "/data/cycles.cgi", lambda path, payload: legacy_index)
    fake_transport.add(
        "POST",
        "/data/cycleData.cgi",
        lambda path, payload: telemetry_payload(
            f"{payload['year']}-{payload['month']}-{payload['day']}", int(payload["cycle"])
        ),
    )
    return fake_transport
