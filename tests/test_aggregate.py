import random

import pytest

from wm.analysis.aggregate import WorkingSet
from wm.errors import WorkingSetFrozenError
from wm.utils.validate import Coordinate, FrameKind, GeolocatedObservation, RawObservation


def _geo(bssid, ts, session, idx=0, ssid=None, rssi=-60):
    raw = RawObservation(bssid=bssid, ssid=ssid, rssi=rssi, timestamp=ts, kind=FrameKind.BEACON, frame_index=idx)
    return GeolocatedObservation(observation=raw, session=session, position=Coordinate(lat=48.0, lon=2.0))


def _session(name, n, seed):
    rng = random.Random(seed)
    bssids = [f"aa:bb:cc:dd:ee:{i:02x}" for i in range(4)]
    return [_geo(rng.choice(bssids), float(rng.randint(0, 20)), name, idx) for idx in range(n)]


SESSIONS = [_session(f"s{i}", 30, seed=i) for i in range(4)]


def _ws(*sessions):
    ws = WorkingSet()
    for s in sessions:
        ws.fold(s)
    return ws


def test_merge_is_commutative_and_associative():
    a, b, c, d = SESSIONS
    sequential = _ws(a, b, c, d)
    reversed_ = _ws(d, c, b, a)
    partials = WorkingSet.combine([_ws(c, a), _ws(d, b)])
    nested = _ws(a).merge(_ws(b).merge(_ws(c, d)))
    assert sequential == reversed_ == partials == nested


def test_records_hold_canonical_order():
    ws = _ws(*SESSIONS)
    for record in ws.values():
        keys = [o.sort_key for o in record.observations]
        assert keys == sorted(keys)
    assert ws.observation_count == sum(len(s) for s in SESSIONS)


def test_no_deduplication():
    obs = _geo("aa:bb:cc:dd:ee:01", 1.0, "s0")
    ws = _ws([obs, obs])
    assert len(ws["aa:bb:cc:dd:ee:01"].observations) == 2


def test_different_observations_are_not_equal():
    a, b, _, _ = SESSIONS
    assert _ws(a) != _ws(a, b)


def test_combine_leaves_inputs_untouched():
    a, b, _, _ = SESSIONS
    pa, pb = _ws(a), _ws(b)
    before = pa.observation_count
    WorkingSet.combine([pa, pb])
    assert pa.observation_count == before


def test_freeze_blocks_further_adds():
    ws = _ws(SESSIONS[0]).freeze()
    assert all(isinstance(r.observations, tuple) for r in ws.values())
    with pytest.raises(WorkingSetFrozenError):
        ws.add(_geo("aa:bb:cc:dd:ee:01", 1.0, "s9"))
    with pytest.raises(WorkingSetFrozenError):
        ws.merge(_ws(SESSIONS[1]))


def test_ssid_is_most_recent_non_empty():
    bssid = "aa:bb:cc:dd:ee:01"
    ws = _ws([
        _geo(bssid, 1.0, "s0", ssid="First"),
        _geo(bssid, 3.0, "s0", ssid=None),
        _geo(bssid, 2.0, "s1", ssid="Second"),
    ])
    assert ws[bssid].ssid == "Second"


def test_mapping_interface():
    ws = _ws(SESSIONS[0])
    assert set(ws) == {o.bssid for o in SESSIONS[0]}
    assert len(ws) == len(set(ws.keys()))
    assert "00:00:00:00:00:00" not in ws


def test_merge_into_itself_doubles_observations():
    ws = _ws(SESSIONS[0])
    before = {bssid: list(rec.observations) for bssid, rec in ws.items()}
    ws.merge(ws)
    for bssid, observations in before.items():
        assert len(ws[bssid].observations) == 2 * len(observations)
        assert list(ws[bssid].observations) == sorted(observations * 2, key=lambda o: o.sort_key)
