"""
CSV export of positioned access points.
"""

import csv
from pathlib import Path
from typing import Iterable

from wm.analysis.types import AccessPointRecord
from wm.export.common import positioned
from wm.utils.log import get_logger

logger = get_logger(__name__)

HEADER = [
    "MAC", "SSID", "Security", "Latitude", "Longitude", "Observations",
    "Method", "MinRSSI", "MaxRSSI", "AvgRSSI", "Password",
]


def export_csv(records: Iterable[AccessPointRecord], path: str | Path) -> int:
    """
    Write one row per positioned record.

    Returns
    -------
    int
        Number of rows written.
    """
    rows = positioned(records)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        for r in rows:
            stats = r.rssi_stats
            writer.writerow([
                r.bssid,
                r.ssid or "",
                r.security.value if r.security is not None else "",
                f"{r.position.lat:.6f}",
                f"{r.position.lon:.6f}",
                len(r.observations),
                r.position.method,
                stats.min if stats else "",
                stats.max if stats else "",
                f"{stats.mean:.1f}" if stats else "",
                r.password or "",
            ])
    logger.info("Exported %d access points to %s", len(rows), path)
    return len(rows)
