"""
Pydantic schemas to validate parser outputs.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FrameKind(str, Enum):
    """
    802.11 management frame subtypes the capture parser distinguishes.
    """
    BEACON = "beacon"
    PROBE_RESPONSE = "probe-response"
    OTHER = "other"

    @classmethod
    def from_subtype(cls, frame_type: int, subtype: int) -> "FrameKind":
        if frame_type != 0:
            return cls.OTHER
        if subtype == 8:
            return cls.BEACON
        if subtype == 5:
            return cls.PROBE_RESPONSE
        return cls.OTHER


class Security(str, Enum):
    OPEN = "Open"
    WEP = "WEP"
    WPA = "WPA"
    WPA2 = "WPA2"
    WPA3 = "WPA3"
    WPA2_WPA3 = "WPA2/WPA3"
    UNKNOWN = "Unknown"


class Coordinate(BaseModel):
    """
    WGS84 position in decimal degrees.
    """
    model_config = ConfigDict(frozen=True)

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class RawObservation(BaseModel):
    """
    One beacon or probe response decoded from a capture.
    """
    model_config = ConfigDict(frozen=True)

    bssid: str
    ssid: Optional[str] = None
    channel: Optional[int] = None
    rssi: int
    timestamp: float
    kind: FrameKind
    security: Optional[Security] = None
    frame_index: int = 0


class PositionFix(BaseModel):
    """
    One GPS fix merged from the sentences sharing a timestamp.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: float
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)
    altitude: Optional[float] = None
    quality: Optional[int] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lon=self.lon)


class GeolocatedObservation(BaseModel):
    """
    A raw observation with the position resolved from the session's GPS log.

    `position` is set when a fix lies within the sync tolerance; `fallback`
    is the nearest fix inside the wider fallback window.
    """
    model_config = ConfigDict(frozen=True)

    observation: RawObservation
    session: str = ""
    position: Optional[Coordinate] = None
    fallback: Optional[Coordinate] = None

    @property
    def bssid(self) -> str:
        return self.observation.bssid

    @property
    def rssi(self) -> int:
        return self.observation.rssi

    @property
    def timestamp(self) -> float:
        return self.observation.timestamp

    @property
    def sort_key(self) -> tuple[float, str, int]:
        """
        Canonical chronological order used by the aggregator.
        """
        return (self.observation.timestamp, self.session, self.observation.frame_index)
