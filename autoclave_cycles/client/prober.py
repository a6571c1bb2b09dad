"""
Catalog Recovery for Autoclave Cycles Client
============================================

Legacy firmware sometimes answers its index request with a bare
year/month skeleton. The catalog is then rebuilt by asking for cycles by
number: a valid number is located first (heuristic guesses, then a binary
search), and the walk continues cycle by cycle in both directions,
sorting each hit by the date in its telemetry.

Cycle numbers grow with time on every known device, which is what lets a
walk stop once it reaches a cycle outside the target month.

"""

import logging
import threading
from datetime import date
from typing import Callable, Optional

from autoclave_cycles.config import ProbeLimits
from autoclave_cycles.models import (
    CycleIdentifier,
    DayCycles,
    DeviceAddress,
    FlattenedCycle,
    ProbeSession,
    normalize_cycle_number,
)
from autoclave_cycles.time_utils import parse_device_date

logger = logging.getLogger("autoclave-cycles")


class CatalogProber:
    """Rebuilds legacy catalogs by probing cycle numbers."""

    def __init__(
        self,
        telemetry,
        limits: Optional[ProbeLimits] = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize prober.

        Args:
            telemetry: CycleTelemetryReader used for single-cycle probes
            limits: Search and walk bounds
            today: Source of the placeholder date, read once per discovery run
        """
        self.telemetry = telemetry
        self.today = today
        self.limits = (limits or ProbeLimits()).validate()
        self._last_known: dict[DeviceAddress, int] = {}
        self._lock = threading.Lock()

    def last_known(self, address: DeviceAddress) -> Optional[int]:
        """Highest cycle number confirmed on a device during this process."""
        with self._lock:
            return self._last_known.get(address)

    def remember(self, address: DeviceAddress, cycle_number: int) -> None:
        """Record a confirmed cycle number if it is a new high-water mark."""
        with self._lock:
            if cycle_number > self._last_known.get(address, 0):
                self._last_known[address] = cycle_number

    def probe(
        self,
        address: DeviceAddress,
        cycle_number: int,
        year: Optional[str] = None,
        month: Optional[str] = None,
        reference: Optional[date] = None,
    ):
        return self.telemetry.probe_legacy(address, cycle_number, year=year, month=month, reference=reference)

    def find_valid_cycle_number(self, address: DeviceAddress, reference: Optional[date] = None) -> Optional[int]:
        """
        Locate any cycle number the device answers for.

        Heuristic guesses come first. Otherwise a binary search assumes the
        valid numbers form one block starting near the bottom of the range
        and climbs toward its top, returning the highest hit seen.
        """
        reference = reference or self.today()
        for guess in self.limits.heuristic_numbers:
            if self.probe(address, guess, reference=reference) is not None:
                logger.debug(f"Heuristic probe found cycle {guess} on {address}")
                return guess

        low, high = self.limits.search_low, self.limits.search_high
        last_valid: Optional[int] = None

        while low <= high:
            mid = (low + high) // 2
            if self.probe(address, mid, reference=reference) is not None:
                last_valid = mid
                low = mid + 1
                logger.debug(f"Binary search hit at {mid} on {address}, searching higher")
            else:
                high = mid - 1

            if last_valid is not None and high - low < self.limits.bracket_width:
                break

        return last_valid

    def _seed(self, address: DeviceAddress, reference: date) -> Optional[int]:
        seed = self.last_known(address)
        if seed is not None:
            return seed

        seed = self.find_valid_cycle_number(address, reference)
        if seed is None:
            logger.warning(f"⚠️ No valid cycle number found on {address}")
            return None

        logger.info(f"🔍 Found valid cycle number {seed} on {address}")
        self.remember(address, seed)
        return seed

    def discover_month(self, address: DeviceAddress, year: str, month: str) -> list[DayCycles]:
        """
        Rebuild one month of a legacy catalog.

        Returns:
            Days sorted ascending, each with its cycle numbers sorted ascending;
            empty if no valid cycle number could be found
        """
        month = month.zfill(2)
        target = f"{year}-{month}"

        reference = self.today()
        seed = self._seed(address, reference)
        if seed is None:
            return []

        found: dict[str, list[int]] = {}

        # Backward: older cycles
        session = ProbeSession(last_valid=seed, cursor=seed)
        while (
            session.misses < self.limits.month_max_misses
            and session.cursor > 0
            and session.steps < self.limits.month_max_steps
        ):
            telemetry = self.probe(address, session.cursor, year=year, month=month, reference=reference)
            if telemetry is None:
                session.record_miss()
            else:
                session.record_hit(session.cursor)
                reported = telemetry.date[:7]
                if reported == target:
                    found.setdefault(telemetry.date[8:10], []).append(session.cursor)
                    logger.debug(f"Probe found cycle {session.cursor} on {telemetry.date}")
                elif reported < target:
                    logger.debug(f"Reached cycle from {telemetry.date}, stopping backward walk")
                    break
            session.cursor -= 1

        # Forward: newer cycles, moving the high-water mark
        session = ProbeSession(last_valid=seed, cursor=seed + 1)
        while session.misses < self.limits.month_max_misses and session.steps < self.limits.month_max_steps:
            telemetry = self.probe(address, session.cursor, year=year, month=month, reference=reference)
            if telemetry is None:
                session.record_miss()
            else:
                session.record_hit(session.cursor)
                self.remember(address, session.cursor)
                reported = telemetry.date[:7]
                if reported == target:
                    found.setdefault(telemetry.date[8:10], []).append(session.cursor)
                    logger.debug(f"Probe found cycle {session.cursor} on {telemetry.date}")
                elif reported > target:
                    logger.debug(f"Reached cycle from {telemetry.date}, stopping forward walk")
                    break
            session.cursor += 1

        days = [
            DayCycles(day=day, cycles=[normalize_cycle_number(n) for n in sorted(numbers)])
            for day, numbers in sorted(found.items(), key=lambda item: int(item[0]))
        ]

        total = sum(len(d.cycles) for d in days)
        logger.info(f"🔍 Probing found {total} cycles on {len(days)} days in {year}/{month} on {address}")
        return days

    def probe_all(
        self,
        address: DeviceAddress,
        since_year: Optional[str] = None,
        since_month: Optional[str] = None,
    ) -> list[FlattenedCycle]:
        """
        Rebuild a whole legacy catalog, oldest cycle first.

        Walks up to the newest cycle, then collects backward until too many
        consecutive misses, the cycle cap, or a year before since_year.
        Months before since_month in since_year are skipped.
        """
        reference = self.today()
        seed = self._seed(address, reference)
        if seed is None:
            return []

        highest = seed
        session = ProbeSession(last_valid=seed, cursor=seed + 1)
        while session.misses < self.limits.frontier_max_misses and session.steps < self.limits.frontier_max_steps:
            if self.probe(address, session.cursor, reference=reference) is not None:
                session.record_hit(session.cursor)
                highest = session.cursor
                self.remember(address, highest)
            else:
                session.record_miss()
            session.cursor += 1

        logger.info(f"🔍 Highest cycle number on {address} is approximately {highest}")

        since_month = since_month.zfill(2) if since_month else None
        cycles: list[FlattenedCycle] = []
        session = ProbeSession(last_valid=highest, cursor=highest)

        while (
            session.misses < self.limits.collect_max_misses
            and session.cursor > 0
            and len(cycles) < self.limits.collect_max_cycles
        ):
            telemetry = self.probe(address, session.cursor, reference=reference)
            cycle_date = parse_device_date(telemetry.date) if telemetry is not None else None

            if cycle_date is None:
                session.record_miss()
                session.cursor -= 1
                continue

            session.record_hit(session.cursor)
            year, month = f"{cycle_date.year:04d}", f"{cycle_date.month:02d}"

            if since_year and year < since_year:
                logger.debug(f"Reached year {year}, stopping collection")
                break

            if not (since_year and year == since_year and since_month and month < since_month):
                identifier = CycleIdentifier.from_date(cycle_date, session.cursor)
                cycles.append(FlattenedCycle.from_identifier(identifier, source="probe"))

            session.cursor -= 1

        cycles.reverse()
        logger.info(f"🔍 Probing collected {len(cycles)} cycles from {address}")
        return cycles


__all__ = ["CatalogProber"]
