import subprocess

from wm.analysis.aggregate import WorkingSet
from wm.parsers import hashcat
from wm.parsers.hashcat import (
    PasswordSource,
    bind_passwords,
    decode_plain,
    load_security_hints,
    parse_22000_line,
    parse_potfile_line,
    parse_show_line,
)
from wm.utils.validate import FrameKind, GeolocatedObservation, RawObservation, Security

ESSID_HEX = "TestNet".encode().hex()


def test_potfile_line():
    cred = parse_potfile_line(f"0123456789abcdef*A0B1C2D3E4F5*112233445566*{ESSID_HEX}:pass:word\n")
    assert cred.bssid == "a0:b1:c2:d3:e4:f5"
    assert cred.ssid == "TestNet"
    assert cred.password == "pass:word"


def test_potfile_hex_plaintext():
    cred = parse_potfile_line(f"abc*a0b1c2d3e4f5*112233445566*{ESSID_HEX}:$HEX[70617373]")
    assert cred.password == "pass"
    assert decode_plain("$HEX[zz]") == "$HEX[zz]"


def test_potfile_rejects_garbage():
    assert parse_potfile_line("no separator") is None
    assert parse_potfile_line("abc*xyz:pw") is None
    assert parse_potfile_line(f"abc*nothex00000*112233445566*{ESSID_HEX}:pw") is None


def test_show_line():
    cred = parse_show_line("9f8e7d6c:a0b1c2d3e4f5:112233445566:Home Net:p@ss:1")
    assert cred.bssid == "a0:b1:c2:d3:e4:f5"
    assert cred.ssid == "Home Net"
    assert cred.password == "p@ss:1"
    assert parse_show_line("too:few:parts") is None


def test_22000_lines():
    pmkid = f"WPA*01*4d4fe7aac3a2cecab195321ceb99a7d0*a0b1c2d3e4f5*112233445566*{ESSID_HEX}***"
    assert parse_22000_line(pmkid) == ("a0:b1:c2:d3:e4:f5", Security.WPA2)

    def eapol(akm):
        return f"WPA*02*mic*a0b1c2d3e4f5*112233445566*{ESSID_HEX}*anonce*0103007502010a{akm}0000*02"

    assert parse_22000_line(eapol("000fac08")) == ("a0:b1:c2:d3:e4:f5", Security.WPA3)
    assert parse_22000_line(eapol("000fac02")) == ("a0:b1:c2:d3:e4:f5", Security.WPA2)
    assert parse_22000_line(eapol("0050f202")) == ("a0:b1:c2:d3:e4:f5", Security.WPA)
    assert parse_22000_line(eapol("deadbeef")) == ("a0:b1:c2:d3:e4:f5", Security.WPA2)
    assert parse_22000_line("WPA*01*x") is None
    assert parse_22000_line("HASH*01*a*a0b1c2d3e4f5*b") is None


def test_load_security_hints(tmp_path):
    path = tmp_path / "dump.22000"
    path.write_text(f"WPA*01*aa*a0b1c2d3e4f5*112233445566*{ESSID_HEX}***\nnonsense\n")
    assert load_security_hints([path]) == {"a0:b1:c2:d3:e4:f5": Security.WPA2}


def test_potfile_source_and_lookup(tmp_path):
    pot = tmp_path / "hashcat.potfile"
    pot.write_text(
        f"aa*a0b1c2d3e4f5*112233445566*{ESSID_HEX}:first\n"
        f"aa*a0b1c2d3e4f5*112233445566*{ESSID_HEX}:first\n"
        f"bb*a0b1c2d3e4f5*112233445566*{'Other'.encode().hex()}:second\n"
        "\n"
    )
    source = PasswordSource.from_potfile(pot)
    assert len(source) == 2
    assert source.lookup("A0:B1:C2:D3:E4:F5", "TestNet").password == "first"
    assert source.lookup("a0:b1:c2:d3:e4:f5", "Other").password == "second"
    assert source.lookup("a0:b1:c2:d3:e4:f5", "Missing") is None
    assert source.lookup("a0:b1:c2:d3:e4:f5").password == "first"


def test_missing_hashcat_binary_gives_empty_source(monkeypatch, tmp_path):
    monkeypatch.setattr(hashcat.shutil, "which", lambda name: None)
    assert len(PasswordSource.from_hashcat([tmp_path / "x.22000"])) == 0


def test_from_hashcat_runs_show(monkeypatch, tmp_path):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        if cmd[-1].endswith("bad.22000"):
            return subprocess.CompletedProcess(cmd, 255, stdout="", stderr="boom")
        return subprocess.CompletedProcess(cmd, 0, stdout="h:a0b1c2d3e4f5:112233445566:TestNet:pw\n", stderr="")

    monkeypatch.setattr(hashcat.shutil, "which", lambda name: "/usr/bin/hashcat")
    monkeypatch.setattr(hashcat.subprocess, "run", fake_run)
    source = PasswordSource.from_hashcat([tmp_path / "a.22000", tmp_path / "bad.22000", tmp_path / "b.22000"])
    assert calls[0][:4] == ["/usr/bin/hashcat", "--show", "-m", "22000"]
    assert len(calls) == 3
    assert len(source) == 1
    assert source.lookup("a0:b1:c2:d3:e4:f5", "TestNet").password == "pw"


def _record_ws(bssid, ssid):
    raw = RawObservation(bssid=bssid, ssid=ssid, rssi=-50, timestamp=1.0, kind=FrameKind.BEACON)
    return WorkingSet().fold([GeolocatedObservation(observation=raw)]).freeze()


def test_bind_matching_ssid():
    source = PasswordSource.from_lines(["h:a0b1c2d3e4f5:x:TestNet:pw"], parse_show_line)
    ws = _record_ws("a0:b1:c2:d3:e4:f5", "TestNet")
    assert bind_passwords(ws, source, {"a0:b1:c2:d3:e4:f5": Security.WPA3}) == 1
    record = ws["a0:b1:c2:d3:e4:f5"]
    assert record.password == "pw"
    assert record.security is Security.WPA3
    assert record.hinted_ssid is None


def test_bind_hidden_network_adopts_essid():
    source = PasswordSource.from_lines(["h:a0b1c2d3e4f5:x:Hidden:pw"], parse_show_line)
    ws = _record_ws("a0:b1:c2:d3:e4:f5", None)
    bind_passwords(ws, source)
    record = ws["a0:b1:c2:d3:e4:f5"]
    assert record.ssid == "Hidden"
    assert record.password == "pw"


def test_bind_skips_ssid_mismatch():
    source = PasswordSource.from_lines(["h:a0b1c2d3e4f5:x:Elsewhere:pw"], parse_show_line)
    ws = _record_ws("a0:b1:c2:d3:e4:f5", "TestNet")
    assert bind_passwords(ws, source) == 0
    assert ws["a0:b1:c2:d3:e4:f5"].password is None
