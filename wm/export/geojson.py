"""
GeoJSON export: a FeatureCollection of Points.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable

from wm.analysis.types import AccessPointRecord
from wm.export.common import positioned, record_properties
from wm.utils.log import get_logger

logger = get_logger(__name__)


def to_feature_collection(records: Iterable[AccessPointRecord]) -> Dict[str, Any]:
    features = [
        {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [r.position.lon, r.position.lat]},
            "properties": record_properties(r),
        }
        for r in positioned(records)
    ]
    return {"type": "FeatureCollection", "features": features}


def export_geojson(records: Iterable[AccessPointRecord], path: str | Path) -> int:
    collection = to_feature_collection(records)
    with open(path, "w", encoding="utf-8") as out:
        json.dump(collection, out, indent=2, ensure_ascii=False)
    logger.info("Exported %d access points to %s", len(collection["features"]), path)
    return len(collection["features"])
