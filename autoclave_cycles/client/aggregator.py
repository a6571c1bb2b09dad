"""
Range Aggregation for Autoclave Cycles Client
=============================================

Turns catalogs into flat, date-ordered lists of cycles: for a symbolic
date range, for the whole device, or for everything after a known cycle.

Modern devices are filtered locally from the archive page, which always
carries the full catalog. Legacy devices are asked month by month.

"""

import logging
from datetime import date
from typing import Callable, Iterable, Optional

from autoclave_cycles.exceptions import AutoclaveHTTPError, AutoclaveParsingError
from autoclave_cycles.models import CycleIdentifier, DeviceAddress, FirmwareType, FlattenedCycle, MonthIndex, YearIndex
from autoclave_cycles.time_utils import months_between, resolve_range

logger = logging.getLogger("autoclave-cycles")


def flatten_index(
    index: Iterable[YearIndex],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[FlattenedCycle]:
    """Flatten every day/cycle entry of a catalog, optionally keeping only days in [start, end]."""
    cycles = []
    for year_index in index:
        for month_index in year_index.months:
            for day in month_index.days or []:
                try:
                    cycle_date = date(int(year_index.year), int(month_index.month), int(day.day))
                except ValueError:
                    logger.debug(f"Skipping invalid catalog date {year_index.year}/{month_index.month}/{day.day}")
                    continue

                if start is not None and cycle_date < start:
                    continue
                if end is not None and cycle_date > end:
                    continue

                for number in day.cycles:
                    identifier = CycleIdentifier.from_date(cycle_date, number)
                    cycles.append(FlattenedCycle.from_identifier(identifier))
    return cycles


def order_cycles(cycles: Iterable[FlattenedCycle]) -> list[FlattenedCycle]:
    """De-duplicate and sort by date, then cycle number."""
    unique = dict.fromkeys(cycles)
    return sorted(unique, key=lambda c: (c.date, int(c.cycle_number)))


class RangeAggregator:
    """Produces flat cycle lists from device catalogs."""

    def __init__(self, classifier, archive, index_reader, prober, today: Callable[[], date] = date.today):
        """
        Initialize aggregator.

        Args:
            classifier: FirmwareClassifier
            archive: ArchivePageReader for modern devices
            index_reader: CycleIndexReader for month and whole-catalog reads
            prober: CatalogProber for legacy devices with an empty index
            today: Source of the current date for range resolution
        """
        self.classifier = classifier
        self.archive = archive
        self.index_reader = index_reader
        self.prober = prober
        self.today = today

    def cycles_for_range(self, address: DeviceAddress, range_name: str) -> list[FlattenedCycle]:
        """
        List the cycles of a symbolic date range, oldest first.

        Raises:
            AutoclaveConfigurationError: For an unknown range name
            AutoclaveTransportError: If the device could not be reached
        """
        start, end = resolve_range(range_name, self.today())
        logger.info(f"📅 Cycles for {range_name} ({start} to {end}) from {address}")

        firmware = self.classifier.classify(address)
        if firmware is FirmwareType.MODERN:
            cycles = self._range_modern(address, start, end)
        else:
            cycles = self._range_legacy(address, start, end)

        ordered = order_cycles(cycles)
        logger.info(f"📅 Found {len(ordered)} cycles for {range_name} on {address}")
        return ordered

    def _range_modern(self, address: DeviceAddress, start: date, end: date) -> list[FlattenedCycle]:
        try:
            records = self.archive.fetch_records(address)
        except AutoclaveParsingError as e:
            logger.warning(f"⚠️ Unreadable archive from {address}: {e}")
            return []

        if not records:
            logger.warning(f"⚠️ No cycles in archive of {address}")

        return [
            FlattenedCycle.from_identifier(CycleIdentifier.from_date(record.date, record.cycle_number))
            for record in records
            if start <= record.date <= end
        ]

    def _range_legacy(self, address: DeviceAddress, start: date, end: date) -> list[FlattenedCycle]:
        cycles: list[FlattenedCycle] = []

        for year, month in months_between(start, end):
            # The firmware returns day detail from the requested day onward
            first_of_month = date(year, month, 1)
            day = f"{start.day:02d}" if start > first_of_month else "01"

            try:
                index = self.index_reader.fetch_legacy_index(
                    address, year=f"{year:04d}", month=f"{month:02d}", day=day
                )
            except (AutoclaveHTTPError, AutoclaveParsingError) as e:
                logger.warning(f"⚠️ Skipping {year}/{month:02d} on {address}: {e}")
                continue

            month_cycles = flatten_index(index, start, end)
            logger.debug(f"{len(month_cycles)} cycles in window from {year}/{month:02d} index")
            cycles.extend(month_cycles)

        return cycles

    def flatten_all_cycles(
        self,
        address: DeviceAddress,
        since_year: Optional[str] = None,
        since_month: Optional[str] = None,
    ) -> list[FlattenedCycle]:
        """
        Flatten the whole catalog, month by month.

        A legacy device with an empty index is rebuilt by probing instead.
        """
        since_month = since_month.zfill(2) if since_month else None
        index = self.index_reader.list_all_years(address)

        if not index:
            if self.classifier.classify(address) is FirmwareType.LEGACY:
                logger.info(f"🔍 Empty index on {address}, rebuilding catalog by probing")
                return self.prober.probe_all(address, since_year, since_month)
            return []

        cycles: list[FlattenedCycle] = []
        for year_index in index:
            if since_year and year_index.year < since_year:
                continue

            for month_index in year_index.months:
                month = month_index.month.zfill(2)
                if since_year and year_index.year == since_year and since_month and month < since_month:
                    continue

                days = month_index.days or self.index_reader.list_month(address, year_index.year, month)
                logger.debug(f"{len(days)} days with cycles in {year_index.year}/{month}")
                cycles.extend(flatten_index([YearIndex(year_index.year, [MonthIndex(month, days)])]))

        logger.info(f"📚 Flattened {len(cycles)} cycles from {address}")
        return cycles

    def cycles_since(self, address: DeviceAddress, cycle_number: int) -> list[FlattenedCycle]:
        """Cycles numbered strictly above cycle_number."""
        return [c for c in self.flatten_all_cycles(address) if int(c.cycle_number) > cycle_number]


__all__ = ["RangeAggregator", "flatten_index", "order_cycles"]
