"""
Select which access-point records are worth exporting.
"""

from typing import List, Optional

from wm.analysis.config import FilterConfig
from wm.analysis.types import AccessPointRecord
from wm.utils.validate import Security

OPEN_SECURITIES = (Security.OPEN, Security.WEP)


def is_interesting(record: AccessPointRecord, cfg: FilterConfig) -> bool:
    if record.position is None:
        return False
    if not cfg.enabled:
        return True
    if cfg.min_observations is not None and len(record.observations) < cfg.min_observations:
        return False
    if cfg.require_password and record.password is None:
        return cfg.allow_open and record.security in OPEN_SECURITIES
    return True


def select_interesting(ws, cfg: Optional[FilterConfig] = None) -> List[AccessPointRecord]:
    """
    Records that pass the interest filter, sorted by BSSID.

    With the filter disabled every record with a position passes.
    """
    cfg = cfg or FilterConfig()
    return [ws[bssid] for bssid in sorted(ws) if is_interesting(ws[bssid], cfg)]
