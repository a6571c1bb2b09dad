"""
Archive Page Reader for Autoclave Cycles Client
===============================================

Modern firmware has no catalog API. Its archive page embeds the whole
catalog as a JavaScript literal, ``cyclesInfo = [...];``, which is
extracted and decoded here.

"""

import json
import logging
import re
from typing import Any

from autoclave_cycles.config import ARCHIVE_PATH, HTML_HEADERS, TELEMETRY_TIMEOUT_MULTIPLIER
from autoclave_cycles.exceptions import AutoclaveParsingError
from autoclave_cycles.models import ArchiveRecord, DeviceAddress

logger = logging.getLogger("autoclave-cycles")

CYCLES_INFO_PATTERN = re.compile(r"cyclesInfo\s*=\s*(\[[\s\S]*?\]);")


def extract_cycles_info(html: str) -> list[dict[str, Any]]:
    """
    Extract the cyclesInfo array from an archive page.

    Raises:
        AutoclaveParsingError: If the literal is absent or not a JSON array
    """
    match = CYCLES_INFO_PATTERN.search(html)
    if not match:
        raise AutoclaveParsingError("cyclesInfo not found in archive page", details={"page_size": len(html)})

    try:
        data = json.loads(match.group(1))
    except ValueError as e:
        raise AutoclaveParsingError(
            "Malformed cyclesInfo literal in archive page",
            details={"error": str(e), "literal": match.group(1)[:200]},
        ) from e

    if not isinstance(data, list):
        raise AutoclaveParsingError("cyclesInfo is not an array")

    return data


class ArchivePageReader:
    """Reads the modern archive page into ArchiveRecord objects."""

    def __init__(self, requests):
        self.requests = requests

    def fetch_records(self, address: DeviceAddress) -> list[ArchiveRecord]:
        """
        Fetch and decode every catalog record of a modern device.

        Raises:
            AutoclaveParsingError: If the page carries no usable cyclesInfo
            AutoclaveRequestError: If the page could not be fetched
        """
        html = self.requests.get_text(
            address,
            ARCHIVE_PATH,
            headers=HTML_HEADERS,
            timeout=self.requests.timeout * TELEMETRY_TIMEOUT_MULTIPLIER,
        )

        records = []
        for entry in extract_cycles_info(html):
            try:
                records.append(ArchiveRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping unreadable archive record {entry!r}: {e}")

        logger.debug(f"📚 {len(records)} archive records from {address}")
        return records


__all__ = ["ArchivePageReader", "extract_cycles_info"]
