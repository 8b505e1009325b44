from wm.analysis.aggregate import WorkingSet
from wm.analysis.config import FilterConfig
from wm.analysis.interest import select_interesting
from wm.analysis.types import Estimate
from wm.utils.validate import Coordinate, FrameKind, GeolocatedObservation, RawObservation, Security


def _ws(specs):
    """specs: bssid -> (security, n_obs, password, positioned)"""
    ws = WorkingSet()
    for bssid, (security, n, password, positioned) in specs.items():
        for i in range(n):
            raw = RawObservation(
                bssid=bssid, rssi=-50, timestamp=float(i), kind=FrameKind.BEACON, security=security,
            )
            ws.add(GeolocatedObservation(observation=raw, position=Coordinate(lat=1.0, lon=1.0)))
        ws[bssid].password = password
        if positioned:
            ws[bssid].position = Estimate(1.0, 1.0, "single", 1)
    return ws.freeze()


SPECS = {
    "00:00:00:00:00:01": (Security.OPEN, 1, None, True),
    "00:00:00:00:00:02": (Security.WEP, 5, None, True),
    "00:00:00:00:00:03": (Security.WPA2, 5, "hunter22", True),
    "00:00:00:00:00:04": (Security.WPA2, 5, None, True),
    "00:00:00:00:00:05": (Security.UNKNOWN, 5, None, True),
    "00:00:00:00:00:06": (Security.WPA3, 5, "secret123", False),
}


def _bssids(records):
    return [r.bssid[-2:] for r in records]


def test_disabled_filter_passes_every_positioned_record():
    assert _bssids(select_interesting(_ws(SPECS))) == ["01", "02", "03", "04", "05"]


def test_password_rule_lets_open_networks_through():
    out = select_interesting(_ws(SPECS), FilterConfig(enabled=True))
    assert _bssids(out) == ["01", "02", "03"]


def test_open_networks_can_be_excluded():
    out = select_interesting(_ws(SPECS), FilterConfig(enabled=True, allow_open=False))
    assert _bssids(out) == ["03"]


def test_min_observations():
    cfg = FilterConfig(enabled=True, min_observations=3, require_password=False)
    assert _bssids(select_interesting(_ws(SPECS), cfg)) == ["02", "03", "04", "05"]


def test_combined_thresholds():
    cfg = FilterConfig(enabled=True, min_observations=3)
    assert _bssids(select_interesting(_ws(SPECS), cfg)) == ["02", "03"]
