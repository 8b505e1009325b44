"""
Reduce each access point's observation history to one best-estimate position.
"""

from collections import Counter
from typing import List, Optional, Sequence

from wm.analysis.config import EstimatorConfig
from wm.analysis.types import Estimate
from wm.utils.geo import haversine, rssi_weight, weighted_centroid, weighted_mean_error
from wm.utils.log import get_logger
from wm.utils.validate import GeolocatedObservation

logger = get_logger(__name__)

METHOD_SINGLE = "single"
METHOD_CENTROID = "weighted_centroid"
METHOD_LAST_KNOWN = "last_known"


def dedupe_by_timestamp(observations: Sequence[GeolocatedObservation]) -> List[GeolocatedObservation]:
    """
    Keep the first observation (in canonical order) of each distinct timestamp.
    """
    seen = set()
    out = []
    for obs in sorted(observations, key=lambda o: o.sort_key):
        if obs.timestamp in seen:
            continue
        seen.add(obs.timestamp)
        out.append(obs)
    return out


def thin_by_distance(
    observations: Sequence[GeolocatedObservation],
    min_separation_m: float,
) -> List[GeolocatedObservation]:
    """
    Drop samples lying closer than `min_separation_m` to a stronger kept sample.

    Samples are visited strongest first; ties are broken by canonical order.
    """
    ordered = sorted(observations, key=lambda o: (-o.rssi, o.sort_key))
    kept: List[GeolocatedObservation] = []
    for obs in ordered:
        p = (obs.position.lat, obs.position.lon)
        if all(haversine(p, (k.position.lat, k.position.lon)) >= min_separation_m for k in kept):
            kept.append(obs)
    return kept


def estimate_position(
    observations: Sequence[GeolocatedObservation],
    cfg: Optional[EstimatorConfig] = None,
) -> Optional[Estimate]:
    """
    Best-estimate position of one access point.

    Parameters
    ----------
    observations
        The access point's full observation history.
    cfg
        Weighting and sample-selection options.

    Returns
    -------
    Estimate or None
        ``single`` for one positioned sample, ``weighted_centroid`` for more,
        ``last_known`` when no sample is positioned but a fallback fix exists,
        None otherwise.
    """
    cfg = cfg or EstimatorConfig()
    positioned = [o for o in observations if o.position is not None]

    if not positioned:
        for obs in sorted(observations, key=lambda o: o.sort_key, reverse=True):
            if obs.fallback is not None:
                return Estimate(obs.fallback.lat, obs.fallback.lon, METHOD_LAST_KNOWN, 0)
        return None

    if cfg.dedupe_timestamps:
        positioned = dedupe_by_timestamp(positioned)
    if cfg.min_separation_m > 0:
        positioned = thin_by_distance(positioned, cfg.min_separation_m)

    if len(positioned) == 1:
        p = positioned[0].position
        return Estimate(p.lat, p.lon, METHOD_SINGLE, 1)

    points = [(o.position.lat, o.position.lon) for o in positioned]
    weights = [rssi_weight(o.rssi, cfg.weight_base) for o in positioned]
    lat, lon = weighted_centroid(points, weights)
    error = weighted_mean_error((lat, lon), points, weights)
    return Estimate(lat, lon, METHOD_CENTROID, len(positioned), error)


def estimate_all(ws, cfg: Optional[EstimatorConfig] = None) -> Counter:
    """
    Fill ``position`` on every record of a WorkingSet and log a summary.

    Returns
    -------
    Counter
        Number of records per estimation method (``None`` for unpositioned).
    """
    methods: Counter = Counter()
    two_samples = 0
    for record in ws.values():
        record.position = estimate_position(record.observations, cfg)
        methods[record.position.method if record.position else None] += 1
        if record.position is not None and record.position.n_used == 2:
            two_samples += 1

    if methods[METHOD_SINGLE]:
        logger.warning(
            "%d access points have only a single positioned observation; their estimates may be inaccurate",
            methods[METHOD_SINGLE],
        )
    if two_samples:
        logger.warning(
            "%d access points have only two positioned observations; their estimates may be inaccurate",
            two_samples,
        )
    if methods[METHOD_LAST_KNOWN]:
        logger.info("%d access points placed at their last known position", methods[METHOD_LAST_KNOWN])
    if methods[None]:
        logger.info("%d access points could not be placed", methods[None])
    logger.info("Weighted centroid used for %d access points", methods[METHOD_CENTROID])
    return methods
