import pytest

from wm.analysis.config import SyncConfig
from wm.analysis.sync import Timeline, synchronize
from wm.utils.validate import FrameKind, PositionFix, RawObservation


def _obs(ts, bssid="aa:bb:cc:dd:ee:01", rssi=-60):
    return RawObservation(bssid=bssid, rssi=rssi, timestamp=ts, kind=FrameKind.BEACON)


FIXES = [
    PositionFix(timestamp=0.0, lat=48.0, lon=2.0),
    PositionFix(timestamp=10.0, lat=48.01, lon=2.01),
]


def test_midpoint_interpolation():
    [g] = synchronize([_obs(5.0)], FIXES, SyncConfig(tolerance_s=5.0))
    assert g.position.lat == pytest.approx(48.005)
    assert g.position.lon == pytest.approx(2.005)


def test_exact_fix_time_uses_that_fix():
    [g] = synchronize([_obs(10.0)], FIXES, SyncConfig())
    assert (g.position.lat, g.position.lon) == (48.01, 2.01)


def test_only_one_side_within_tolerance():
    cfg = SyncConfig(tolerance_s=3.0)
    early, late = synchronize([_obs(2.0), _obs(9.0)], FIXES, cfg)
    assert (early.position.lat, early.position.lon) == (48.0, 2.0)
    assert (late.position.lat, late.position.lon) == (48.01, 2.01)


def test_outside_tolerance_keeps_observation_with_fallback():
    cfg = SyncConfig(tolerance_s=2.0, fallback_window_s=60.0)
    out = synchronize([_obs(5.0), _obs(40.0), _obs(500.0)], FIXES, cfg, session="s1")
    assert len(out) == 3
    assert all(g.position is None for g in out)
    assert out[0].fallback.lat == 48.0
    assert out[1].fallback.lat == 48.01
    assert out[2].fallback is None
    assert all(g.session == "s1" for g in out)


def test_fallback_prefers_preceding_then_following():
    timeline = Timeline(FIXES, SyncConfig(tolerance_s=1.0, fallback_window_s=30.0))
    assert timeline.last_known_at(-20.0).lat == 48.0
    assert timeline.last_known_at(25.0).lat == 48.01
    assert timeline.last_known_at(-40.0) is None


def test_unbounded_fallback_window():
    timeline = Timeline(FIXES, SyncConfig(fallback_window_s=None))
    assert timeline.last_known_at(1e6).lat == 48.01


def test_identical_fix_timestamps():
    fixes = [PositionFix(timestamp=3.0, lat=1.0, lon=1.0), PositionFix(timestamp=3.0, lat=1.0, lon=1.0)]
    [g] = synchronize([_obs(3.0)], fixes, SyncConfig())
    assert (g.position.lat, g.position.lon) == (1.0, 1.0)


def test_order_is_preserved():
    out = synchronize([_obs(7.0, "aa:aa:aa:aa:aa:01"), _obs(1.0, "aa:aa:aa:aa:aa:02")], FIXES, SyncConfig())
    assert [g.bssid for g in out] == ["aa:aa:aa:aa:aa:01", "aa:aa:aa:aa:aa:02"]
