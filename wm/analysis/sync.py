"""
Attach GPS positions to raw observations by timestamp.
"""

from bisect import bisect_left, bisect_right
from typing import Iterable, Optional, Sequence

from wm.analysis.config import SyncConfig
from wm.utils.geo import interpolate
from wm.utils.validate import Coordinate, GeolocatedObservation, PositionFix, RawObservation


class Timeline:
    """
    Sorted fix sequence with nearest-fix lookups.

    Parameters
    ----------
    fixes
        Position fixes sorted by timestamp ascending.
    cfg
        Tolerance and fallback windows.
    """

    def __init__(self, fixes: Sequence[PositionFix], cfg: SyncConfig) -> None:
        self.fixes = fixes
        self.cfg = cfg
        self._times = [f.timestamp for f in fixes]

    def _neighbours(self, ts: float) -> tuple[Optional[PositionFix], Optional[PositionFix]]:
        """
        Last fix at or before `ts` and first fix at or after `ts`.
        """
        i = bisect_right(self._times, ts)
        before = self.fixes[i - 1] if i > 0 else None
        j = bisect_left(self._times, ts)
        after = self.fixes[j] if j < len(self.fixes) else None
        return before, after

    def position_at(self, ts: float) -> Optional[Coordinate]:
        """
        Interpolated position at `ts`, or None if no fix lies within tolerance.
        """
        before, after = self._neighbours(ts)
        tol = self.cfg.tolerance_s
        use_before = before is not None and ts - before.timestamp <= tol
        use_after = after is not None and after.timestamp - ts <= tol

        if use_before and use_after:
            span = after.timestamp - before.timestamp
            ratio = (ts - before.timestamp) / span if span > 0 else 0.0
            lat, lon = interpolate((before.lat, before.lon), (after.lat, after.lon), ratio)
            return Coordinate(lat=lat, lon=lon)
        if use_before:
            return before.coordinate
        if use_after:
            return after.coordinate
        return None

    def last_known_at(self, ts: float) -> Optional[Coordinate]:
        """
        Nearest preceding fix within the fallback window, else nearest following.
        """
        before, after = self._neighbours(ts)
        window = self.cfg.fallback_window_s
        if before is not None and (window is None or ts - before.timestamp <= window):
            return before.coordinate
        if after is not None and (window is None or after.timestamp - ts <= window):
            return after.coordinate
        return None


def synchronize(
    observations: Iterable[RawObservation],
    fixes: Sequence[PositionFix],
    cfg: SyncConfig,
    session: str = "",
) -> list[GeolocatedObservation]:
    """
    Resolve a position for every observation of one session.

    Observations with no fix inside the tolerance are kept with a null
    position; they still carry a signal sample and a fallback position.
    """
    timeline = Timeline(fixes, cfg)
    out: list[GeolocatedObservation] = []
    for obs in observations:
        position = timeline.position_at(obs.timestamp)
        fallback = position if position is not None else timeline.last_known_at(obs.timestamp)
        out.append(GeolocatedObservation(
            observation=obs,
            session=session,
            position=position,
            fallback=fallback,
        ))
    return out
