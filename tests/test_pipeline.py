import pytest

from builders import T0, capture, gga, mgmt_frame, rmc
from wm.analysis.config import PipelineConfig
from wm.analysis.pipeline import MappingPipeline, process_session
from wm.errors import NoFixesError, NoUsableInputError
from wm.utils.discovery import find_sessions

AP1 = "aa:bb:cc:dd:ee:01"
AP2 = "aa:bb:cc:dd:ee:02"


def write_session(directory, stem, t0, lat0, frames=None, nmea=None):
    frames = frames if frames is not None else [
        (t0 + 5, mgmt_frame(bssid=AP1, ssid="One", signal=-50)),
        (t0 + 5, mgmt_frame(bssid=AP2, ssid="Two", signal=-70)),
        (t0 + 15, mgmt_frame(bssid=AP1, ssid="One", signal=-60)),
    ]
    lines = nmea if nmea is not None else [
        line
        for i in range(0, 21, 10)
        for line in (rmc(t0 + i, lat0 + i * 0.001, 2.0), gga(t0 + i, lat0 + i * 0.001, 2.0))
    ]
    (directory / f"{stem}.pcapng").write_bytes(capture(frames))
    (directory / f"{stem}.nmea").write_text("\n".join(lines) + "\n")


def test_process_session(tmp_path):
    write_session(tmp_path, "s1", T0, 48.0)
    [pair] = find_sessions(tmp_path)
    ws = process_session(pair, PipelineConfig())
    assert sorted(ws) == [AP1, AP2]
    first = ws[AP1].observations[0]
    assert first.session == pair.session_id
    assert first.position.lat == pytest.approx(48.005, abs=1e-5)


def test_failing_session_is_isolated(tmp_path):
    write_session(tmp_path, "good", T0, 48.0)
    write_session(tmp_path, "nogps", T0, 48.0, frames=[(T0, mgmt_frame(bssid=AP1))], nmea=["not nmea"])
    (tmp_path / "broken.pcapng").write_bytes(b"not a capture at all")
    (tmp_path / "broken.nmea").write_text(rmc(T0, 48.0, 2.0) + "\n")

    sessions = find_sessions(tmp_path)
    assert len(sessions) == 3
    with pytest.raises(NoFixesError):
        process_session(next(p for p in sessions if p.capture.stem == "nogps"), PipelineConfig())

    ws = MappingPipeline().run(sessions)
    assert ws.frozen
    assert sorted(ws) == [AP1, AP2]
    assert ws[AP1].position.method == "weighted_centroid"
    assert ws[AP2].position.method == "single"


def test_no_usable_session_raises(tmp_path):
    (tmp_path / "broken.pcapng").write_bytes(b"garbage")
    (tmp_path / "broken.nmea").write_text("garbage\n")
    with pytest.raises(NoUsableInputError):
        MappingPipeline().run(find_sessions(tmp_path))
    with pytest.raises(NoUsableInputError):
        MappingPipeline().run([])


def test_parallel_run_matches_inline(tmp_path):
    for i in range(3):
        write_session(tmp_path, f"s{i}", T0 + i * 100, 48.0 + i * 0.1)
    sessions = find_sessions(tmp_path)

    inline = MappingPipeline(PipelineConfig(workers=1)).run(sessions)
    parallel = MappingPipeline(PipelineConfig(workers=2)).run(reversed(sessions))
    assert inline == parallel
    assert inline[AP1].position == parallel[AP1].position
    assert len(inline[AP1].observations) == 6
