# wm/analysis/types.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from wm.utils.validate import GeolocatedObservation, Security


@dataclass(frozen=True)
class Estimate:
    """
    Best-estimate position of one access point.

    Parameters
    ----------
    lat : float
        Latitude in decimal degrees.
    lon : float
        Longitude in decimal degrees.
    method : str
        ``single``, ``weighted_centroid`` or ``last_known``.
    n_used : int
        Number of samples that contributed.
    error_m : float
        Weighted mean distance (m) of the contributing samples from the estimate.
    """
    lat: float
    lon: float
    method: str
    n_used: int
    error_m: float = 0.0


@dataclass(frozen=True)
class RssiStats:
    min: int
    max: int
    mean: float


@dataclass
class AccessPointRecord:
    """
    Observation history of one access point across every session of a run.

    Parameters
    ----------
    bssid : str
        Normalized BSSID, the record's key.
    observations : Sequence[GeolocatedObservation]
        Chronologically ordered history; a tuple once the WorkingSet is frozen.
    position : Estimate, optional
        Filled by the estimator.
    password : str, optional
        Plaintext bound from the password source.
    hinted_ssid : str, optional
        ESSID taken from the password source when no SSID was ever observed.
    hinted_security : Security, optional
        Security derived from 22000 hash files.
    """
    bssid: str
    observations: Sequence[GeolocatedObservation] = field(default_factory=list)
    position: Optional[Estimate] = None
    password: Optional[str] = None
    hinted_ssid: Optional[str] = None
    hinted_security: Optional[Security] = None

    @property
    def ssid(self) -> Optional[str]:
        """Most recently observed non-empty SSID."""
        for obs in reversed(self.observations):
            if obs.observation.ssid:
                return obs.observation.ssid
        return self.hinted_ssid

    @property
    def security(self) -> Optional[Security]:
        for obs in reversed(self.observations):
            sec = obs.observation.security
            if sec is not None and sec is not Security.UNKNOWN:
                return sec
        return self.hinted_security

    @property
    def channel(self) -> Optional[int]:
        for obs in reversed(self.observations):
            if obs.observation.channel is not None:
                return obs.observation.channel
        return None

    @property
    def rssi_stats(self) -> Optional[RssiStats]:
        if not self.observations:
            return None
        values = [obs.rssi for obs in self.observations]
        return RssiStats(min(values), max(values), sum(values) / len(values))

    @property
    def n_positioned(self) -> int:
        return sum(1 for obs in self.observations if obs.position is not None)
