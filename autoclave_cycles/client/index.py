"""
Cycle Index Reader for Autoclave Cycles Client
==============================================

Reads a device's catalog (year, month, day and cycle numbers).

Modern firmware embeds the whole catalog in its archive page. Legacy
firmware answers an index POST, but some versions only return the
year/month skeleton; the day breakdown is then recovered from directory
listings, a second index POST, and finally by probing cycle numbers.

"""

import logging
import re
from collections import defaultdict
from datetime import date
from typing import Any, Callable, Optional
from urllib.parse import quote

from autoclave_cycles.config import FILE_READER_PATH, LEGACY_INDEX_PATH, SCILOG_BASE_PATH
from autoclave_cycles.exceptions import AutoclaveConfigurationError, AutoclaveError, AutoclaveParsingError
from autoclave_cycles.models import (
    ArchiveRecord,
    CycleIdentifier,
    DayCycles,
    DeviceAddress,
    FirmwareType,
    FlattenedCycle,
    MonthIndex,
    YearIndex,
)
from autoclave_cycles.time_utils import days_in_month

logger = logging.getLogger("autoclave-cycles")

LISTED_FILE_PATTERN = re.compile(r"S\d{8}_\d+_[A-Z0-9]+\.txt", re.IGNORECASE)
FILE_CYCLE_NUMBER_PATTERN = re.compile(r"_(\d+)_")

FILE_READER_HEADERS = {"Accept": "*/*", "X-Requested-With": "XMLHttpRequest"}


def parse_legacy_index(data: Any) -> list[YearIndex]:
    """
    Decode a legacy index response.

    Raises:
        AutoclaveParsingError: If the response is not a list of year objects
    """
    if not isinstance(data, list):
        raise AutoclaveParsingError("Legacy index response is not an array")

    try:
        return [YearIndex.from_dict(entry) for entry in data]
    except (AttributeError, TypeError, AutoclaveConfigurationError) as e:
        raise AutoclaveParsingError("Malformed legacy index response", details={"error": str(e)}) from e


def find_month(index: list[YearIndex], year: str, month: str) -> Optional[MonthIndex]:
    """Find a month in a catalog, matching the month exactly, unpadded, or re-padded."""
    padded = month.zfill(2)
    year_index = next((y for y in index if y.year == year), None)
    if year_index is None:
        logger.warning(f"⚠️ Year {year} not in index (available: {[y.year for y in index]})")
        return None

    for candidate in year_index.months:
        if candidate.month in (padded, month) or candidate.month.zfill(2) == padded:
            return candidate

    logger.warning(f"⚠️ Month {padded} not in year {year} (available: {[m.month for m in year_index.months]})")
    return None


def group_by_day(identifiers: list[CycleIdentifier]) -> list[DayCycles]:
    """Group identifiers into days sorted ascending, cycles sorted and de-duplicated."""
    days: dict[str, set[str]] = defaultdict(set)
    for identifier in identifiers:
        days[identifier.day].add(identifier.cycle_number)

    return [
        DayCycles(day=day, cycles=sorted(cycles, key=int))
        for day, cycles in sorted(days.items(), key=lambda item: int(item[0]))
    ]


def _sorted_days(days: list[DayCycles]) -> list[DayCycles]:
    return [
        DayCycles(day=d.day, cycles=sorted(d.cycles, key=int))
        for d in sorted(days, key=lambda d: int(d.day) if d.day.isdigit() else 0)
    ]


class CycleIndexReader:
    """Reads device catalogs in the dialect the device speaks."""

    def __init__(
        self,
        requests,
        classifier,
        archive,
        prober,
        base_path: str = SCILOG_BASE_PATH,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize index reader.

        Args:
            requests: DeviceRequestHandler
            classifier: FirmwareClassifier
            archive: ArchivePageReader for modern devices
            prober: CatalogProber used when a legacy index has no day detail
            base_path: On-device storage root of cycle records
            today: Source of the date sent with the top-level legacy index request
        """
        self.requests = requests
        self.classifier = classifier
        self.archive = archive
        self.prober = prober
        self.base_path = base_path
        self.today = today

    # Shared helpers

    def fetch_legacy_index(
        self,
        address: DeviceAddress,
        year: Optional[str] = None,
        month: Optional[str] = None,
        day: Optional[str] = None,
    ) -> list[YearIndex]:
        """
        POST the legacy index request.

        Without arguments today's date is sent, which is what makes the
        firmware include day/cycle detail for the current month.

        Raises:
            AutoclaveParsingError: If the response cannot be decoded
            AutoclaveRequestError: On transport failure or a non-success status
        """
        payload: dict[str, str]
        if year is None:
            today = self.today()
            payload = {"year": f"{today.year:04d}", "month": f"{today.month:02d}", "day": f"{today.day:02d}"}
        else:
            payload = {"year": year, "month": (month or "01").zfill(2)}
            if day is not None:
                payload["day"] = day.zfill(2)

        data = self.requests.post_legacy(address, LEGACY_INDEX_PATH, payload)
        return parse_legacy_index(data)

    def list_directory(self, address: DeviceAddress, dir_path: str) -> list[str]:
        """
        List the cycle log files in an on-device directory.

        Any failure yields an empty list.
        """
        path = f"{FILE_READER_PATH}?filename={quote(dir_path, safe='')}"
        try:
            text = self.requests.get_text(address, path, headers=FILE_READER_HEADERS)
        except AutoclaveError as e:
            logger.debug(f"Directory listing of {dir_path} failed: {e}")
            return []

        files = list(dict.fromkeys(LISTED_FILE_PATTERN.findall(text)))
        logger.debug(f"📂 {len(files)} cycle files in {dir_path}")
        return files

    def fetch_raw_log(self, address: DeviceAddress, file_path: str) -> Optional[str]:
        """Fetch a raw .txt cycle log; None if it could not be read."""
        path = f"{FILE_READER_PATH}?filename={quote(file_path, safe='')}"
        try:
            return self.requests.get_text(address, path, headers=FILE_READER_HEADERS)
        except AutoclaveError as e:
            logger.error(f"❌ Failed to read {file_path} from {address}: {e}")
            return None

    # Public catalog operations

    def list_month(self, address: DeviceAddress, year: str, month: str) -> list[DayCycles]:
        """
        List the days of a month that have cycles, with their cycle numbers.

        An unreadable catalog yields an empty list; transport failures propagate.
        """
        if self.classifier.classify(address) is FirmwareType.MODERN:
            return self._list_month_modern(address, year, month)
        return self._list_month_legacy(address, year, month)

    def list_all_years(self, address: DeviceAddress) -> list[YearIndex]:
        """Return the whole catalog tree; empty if it cannot be read."""
        try:
            if self.classifier.classify(address) is FirmwareType.MODERN:
                return self._build_tree(self.archive.fetch_records(address))
            return self.fetch_legacy_index(address)
        except AutoclaveParsingError as e:
            logger.warning(f"⚠️ Unreadable catalog from {address}: {e}")
            return []

    def get_latest_cycle(self, address: DeviceAddress) -> Optional[FlattenedCycle]:
        """
        Return the newest cycle on the device.

        Returns:
            FlattenedCycle, or None if the catalog is empty or could not be read
        """
        try:
            if self.classifier.classify(address) is FirmwareType.MODERN:
                return self._latest_modern(address)
            return self._latest_legacy(address)
        except AutoclaveError as e:
            logger.error(f"❌ Could not determine latest cycle on {address}: {e}")
            return None

    def _latest_modern(self, address: DeviceAddress) -> Optional[FlattenedCycle]:
        records = self.archive.fetch_records(address)
        if not records:
            logger.debug(f"No cycles in archive of {address}")
            return None

        latest = max(records, key=lambda r: r.cycle_start_time)
        # The file name carries the number the device itself uses in paths
        match = FILE_CYCLE_NUMBER_PATTERN.search(latest.file_name)
        cycle_number = match.group(1) if match else latest.padded_cycle_number
        return FlattenedCycle.from_identifier(CycleIdentifier.from_date(latest.date, cycle_number))

    def _latest_legacy(self, address: DeviceAddress) -> Optional[FlattenedCycle]:
        index = self.fetch_legacy_index(address)
        if not index or not index[-1].months:
            logger.debug(f"No cycles in index of {address}")
            return None

        latest_year = index[-1]
        latest_month = latest_year.months[-1]
        days = self.list_month(address, latest_year.year, latest_month.month)
        if not days or not days[-1].cycles:
            logger.debug(f"No cycles in latest month {latest_year.year}/{latest_month.month}")
            return None

        identifier = CycleIdentifier(latest_year.year, latest_month.month, days[-1].day, days[-1].cycles[-1])
        return FlattenedCycle.from_identifier(identifier)

    # Modern firmware

    def _list_month_modern(self, address: DeviceAddress, year: str, month: str) -> list[DayCycles]:
        try:
            records = self.archive.fetch_records(address)
        except AutoclaveParsingError as e:
            logger.warning(f"⚠️ Unreadable archive from {address}: {e}")
            return []

        target = (int(year), int(month))
        identifiers = [r.identifier() for r in records if (r.date.year, r.date.month) == target]
        return group_by_day(identifiers)

    def _build_tree(self, records: list[ArchiveRecord]) -> list[YearIndex]:
        tree: dict[str, dict[str, list[CycleIdentifier]]] = defaultdict(lambda: defaultdict(list))
        for record in records:
            identifier = record.identifier()
            tree[identifier.year][identifier.month].append(identifier)

        return [
            YearIndex(
                year=year,
                months=[MonthIndex(month=month, days=group_by_day(ids)) for month, ids in sorted(months.items())],
            )
            for year, months in sorted(tree.items())
        ]

    # Legacy firmware

    def _list_month_legacy(self, address: DeviceAddress, year: str, month: str) -> list[DayCycles]:
        month = month.zfill(2)

        try:
            index = self.fetch_legacy_index(address)
        except AutoclaveParsingError as e:
            logger.warning(f"⚠️ Unreadable index from {address}: {e}")
            return []

        month_index = find_month(index, year, month)
        if month_index is None:
            return []

        if month_index.days:
            return _sorted_days(month_index.days)

        logger.info(f"📂 No day detail for {year}/{month} on {address}, trying directory listings")

        days = self._discover_from_directories(address, year, month)
        if days:
            return days

        days = self._discover_from_month_post(address, year, month)
        if days:
            return days

        logger.info(f"🔍 Falling back to cycle probing for {year}/{month} on {address}")
        return self.prober.discover_month(address, year, month)

    def _discover_from_directories(self, address: DeviceAddress, year: str, month: str) -> list[DayCycles]:
        month_dir = f"{self.base_path}/{year}/{month}"
        identifiers = self._identifiers_from_files(self.list_directory(address, month_dir), year, month)
        if identifiers:
            logger.info(f"📂 Month listing found {len(identifiers)} cycles in {month_dir}")
            return group_by_day(identifiers)

        for day in range(1, days_in_month(int(year), int(month)) + 1):
            day_dir = f"{month_dir}/{day:02d}"
            identifiers.extend(self._identifiers_from_files(self.list_directory(address, day_dir), year, month))

        if identifiers:
            logger.info(f"📂 Day listings found {len(identifiers)} cycles in {month_dir}")
        return group_by_day(identifiers)

    def _identifiers_from_files(self, files: list[str], year: str, month: str) -> list[CycleIdentifier]:
        identifiers = []
        for name in files:
            try:
                identifier = CycleIdentifier.from_file_name(name)
            except AutoclaveConfigurationError:
                continue
            if identifier.year == year and identifier.month == month:
                identifiers.append(identifier)
        return identifiers

    def _discover_from_month_post(self, address: DeviceAddress, year: str, month: str) -> list[DayCycles]:
        try:
            index = self.fetch_legacy_index(address, year=year, month=month)
        except AutoclaveError as e:
            logger.debug(f"Month index request for {year}/{month} failed: {e}")
            return []

        month_index = find_month(index, year, month)
        if month_index is None or not month_index.days:
            return []
        return _sorted_days(month_index.days)


__all__ = [
    "CycleIndexReader",
    "find_month",
    "group_by_day",
    "parse_legacy_index",
]
