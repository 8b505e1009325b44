# wm/utils/geo.py

"""
Geospatial utility functions.
"""

import math
from typing import Sequence, Tuple

EARTH_RADIUS_M = 6371000.0


def haversine(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """
    Compute the great-circle distance between two points on the Earth.

    Parameters
    ----------
    a
        (latitude, longitude) of point A, in decimal degrees.
    b
        (latitude, longitude) of point B, in decimal degrees.

    Returns
    -------
    float
        Distance between A and B in metres.
    """
    lat1, lon1 = a
    lat2, lon2 = b
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = phi2 - phi1
    d_lam = math.radians(lon2 - lon1)
    h = math.sin(d_phi/2)**2 + math.cos(phi1)*math.cos(phi2)*math.sin(d_lam/2)**2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def rssi_weight(rssi: float, base: float = 10.0) -> float:
    """
    Convert a dBm reading to a linear, power-proportional weight.

    With the default base this is ``10 ** (rssi / 10)``, i.e. milliwatts.
    """
    return base ** (rssi / 10)


def weighted_centroid(
    points: Sequence[Tuple[float, float]],
    weights: Sequence[float],
) -> Tuple[float, float]:
    """
    Weighted mean of (lat, lon) points, clamped to their bounding box.

    Falls back to the unweighted mean when every weight is zero (e.g. all
    readings underflowed).

    Parameters
    ----------
    points
        (latitude, longitude) pairs, at least one.
    weights
        Non-negative weight per point.

    Returns
    -------
    tuple[float, float]
        Estimated (latitude, longitude).
    """
    if not points:
        raise ValueError("weighted_centroid needs at least one point")

    total_w = sum(weights)
    if total_w > 0:
        lat_c = sum(w * lat for (lat, _), w in zip(points, weights)) / total_w
        lon_c = sum(w * lon for (_, lon), w in zip(points, weights)) / total_w
    else:
        lat_c = sum(lat for lat, _ in points) / len(points)
        lon_c = sum(lon for _, lon in points) / len(points)

    # rounding can push the mean a few ulps past the extremes
    lats = [lat for lat, _ in points]
    lons = [lon for _, lon in points]
    lat_c = min(max(lat_c, min(lats)), max(lats))
    lon_c = min(max(lon_c, min(lons)), max(lons))
    return lat_c, lon_c


def weighted_mean_error(
    center: Tuple[float, float],
    points: Sequence[Tuple[float, float]],
    weights: Sequence[float],
) -> float:
    """
    Weighted mean haversine distance (metres) of points from `center`.
    """
    total_w = sum(weights)
    errs = [haversine(center, p) for p in points]
    if total_w <= 0:
        return sum(errs) / len(errs) if errs else 0.0
    return sum(w * e for w, e in zip(weights, errs)) / total_w


def interpolate(
    a: Tuple[float, float],
    b: Tuple[float, float],
    ratio: float,
) -> Tuple[float, float]:
    """
    Linear interpolation between two (lat, lon) points; ratio 0 → a, 1 → b.
    """
    return (
        a[0] + (b[0] - a[0]) * ratio,
        a[1] + (b[1] - a[1]) * ratio,
    )
