"""
NMEA parser: turn a GPS sentence log into a time-sorted list of position fixes.

RMC supplies date, time and position; GGA supplies position, altitude and fix
quality. Sentences sharing a UTC time of day are merged into one fix.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Iterable, Optional

import pynmea2
from pydantic import ValidationError

from wm.errors import NoFixesError
from wm.utils.log import get_logger
from wm.utils.validate import PositionFix

logger = get_logger(__name__)

# how many preceding fixes a sentence may still be merged into
_MERGE_HORIZON = 8


@dataclass
class NmeaStats:
    lines: int = 0
    checksum_errors: int = 0
    unsupported: int = 0
    invalid: int = 0
    fixes: int = 0


@dataclass
class _Partial:
    tod: time
    date: Optional[date] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    altitude: Optional[float] = None
    quality: Optional[int] = None


def _tod_key(t: time) -> tuple[int, int, int, int]:
    return (t.hour, t.minute, t.second, t.microsecond)


class NmeaReader:
    """
    Parse NMEA lines, counting (not raising on) every rejected sentence.
    """

    def __init__(self, name: str = "<stream>") -> None:
        self.name = name
        self.stats = NmeaStats()
        self._partials: list[_Partial] = []
        self._index: dict[tuple[int, int, int, int], int] = {}

    def read(self, lines: Iterable[str]) -> list[PositionFix]:
        """
        Parse every line and return the merged fixes sorted by timestamp.

        Raises
        ------
        NoFixesError
            If not a single valid fix could be built.
        """
        try:
            for raw in lines:
                line = raw.strip()
                if not line:
                    continue
                self.stats.lines += 1
                msg = self._parse(line)
                if msg is None:
                    continue
                if isinstance(msg, pynmea2.types.talker.RMC):
                    self._merge_rmc(msg)
                elif isinstance(msg, pynmea2.types.talker.GGA):
                    self._merge_gga(msg)
                else:
                    self.stats.unsupported += 1
        except OSError as e:
            logger.warning("%s: read failed after %d lines, ignoring rest of file: %s", self.name, self.stats.lines, e)

        fixes = self._resolve()
        self.stats.fixes = len(fixes)
        logger.debug(
            "%s: %d fixes from %d lines (%d checksum errors, %d unsupported, %d invalid)",
            self.name, self.stats.fixes, self.stats.lines, self.stats.checksum_errors,
            self.stats.unsupported, self.stats.invalid,
        )
        if not fixes:
            raise NoFixesError(f"{self.name}: no valid GPS fixes")
        fixes.sort(key=lambda f: f.timestamp)
        return fixes

    def _parse(self, line: str) -> Optional[pynmea2.NMEASentence]:
        if not line.startswith("$"):
            self.stats.unsupported += 1
            return None
        try:
            return pynmea2.parse(line, check=True)
        except pynmea2.ChecksumError:
            self.stats.checksum_errors += 1
        except pynmea2.ParseError:
            self.stats.unsupported += 1
        return None

    def _partial_for(self, tod: time, day: Optional[date] = None) -> _Partial:
        key = _tod_key(tod)
        idx = self._index.get(key)
        if idx is not None and idx >= len(self._partials) - _MERGE_HORIZON:
            partial = self._partials[idx]
            if day is None or partial.date is None or partial.date == day:
                return partial
        partial = _Partial(tod=tod)
        self._index[key] = len(self._partials)
        self._partials.append(partial)
        return partial

    def _coords(self, msg) -> Optional[tuple[float, float]]:
        if not msg.lat or not msg.lon:
            return None
        try:
            return msg.latitude, msg.longitude
        except (AttributeError, ValueError):
            # pynmea2 fails on lat/lon strings that are not ddmm.mmmm
            self.stats.invalid += 1
            return None

    # pynmea2 hands back the raw string when a typed field fails to convert

    def _merge_rmc(self, msg) -> None:
        if not isinstance(msg.timestamp, time):
            self.stats.invalid += 1
            return
        day = msg.datestamp if isinstance(msg.datestamp, date) else None
        partial = self._partial_for(msg.timestamp, day)
        if day is not None:
            partial.date = day
        if msg.status == "A" and partial.lat is None:
            coords = self._coords(msg)
            if coords is not None:
                partial.lat, partial.lon = coords

    def _merge_gga(self, msg) -> None:
        if not isinstance(msg.timestamp, time):
            self.stats.invalid += 1
            return
        partial = self._partial_for(msg.timestamp)
        quality = msg.gps_qual if isinstance(msg.gps_qual, int) else None
        partial.quality = quality
        if isinstance(msg.altitude, float):
            partial.altitude = msg.altitude
        if quality and partial.lat is None:
            coords = self._coords(msg)
            if coords is not None:
                partial.lat, partial.lon = coords

    def _resolve(self) -> list[PositionFix]:
        first_date = next((p.date for p in self._partials if p.date is not None), None)
        if first_date is None:
            if self._partials:
                logger.warning("%s: no RMC date in log, time-only fixes cannot be placed", self.name)
            return []

        fixes: list[PositionFix] = []
        current = first_date
        for p in self._partials:
            if p.date is not None:
                current = p.date
            if p.lat is None or p.lon is None:
                continue
            ts = datetime.combine(current, p.tod.replace(tzinfo=timezone.utc)).timestamp()
            try:
                fixes.append(PositionFix(
                    timestamp=ts,
                    lat=p.lat,
                    lon=p.lon,
                    altitude=p.altitude,
                    quality=p.quality,
                ))
            except ValidationError:
                self.stats.invalid += 1
        return fixes


def parse_nmea(file_path: str | Path) -> list[PositionFix]:
    """
    Read a .nmea log and return its fixes sorted by timestamp.
    """
    with open(file_path, "r", encoding="utf-8", errors="replace") as f:
        return NmeaReader(str(file_path)).read(f)
