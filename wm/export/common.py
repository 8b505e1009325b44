"""
Helpers shared by the exporters.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List

from wm.analysis.types import AccessPointRecord


def filtered_path(path: str | Path) -> Path:
    """``out.kml`` → ``out_filtered.kml``."""
    p = Path(path)
    return p.with_name(f"{p.stem}_filtered{p.suffix}")


def positioned(records: Iterable[AccessPointRecord]) -> List[AccessPointRecord]:
    return [r for r in records if r.position is not None]


def record_properties(record: AccessPointRecord) -> Dict[str, Any]:
    """Flat, JSON-friendly summary of one positioned record."""
    stats = record.rssi_stats
    security = record.security
    return {
        "bssid": record.bssid,
        "ssid": record.ssid,
        "security": security.value if security is not None else None,
        "channel": record.channel,
        "observations": len(record.observations),
        "method": record.position.method,
        "n_used": record.position.n_used,
        "error_m": round(record.position.error_m, 1),
        "min_rssi": stats.min if stats else None,
        "max_rssi": stats.max if stats else None,
        "avg_rssi": round(stats.mean, 1) if stats else None,
        "password": record.password,
    }
