"""
Cracked-password source: hashcat potfiles, ``hashcat --show`` output and
mode 22000 hash files.

Hash files only contribute security hints (PMKID vs EAPOL, AKM suite);
plaintexts come from the potfile or from running ``hashcat --show``.
"""

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from wm.parsers.dot11 import normalize_mac
from wm.utils.log import get_logger
from wm.utils.validate import Security

logger = get_logger(__name__)

HASH_MODE = "22000"


@dataclass(frozen=True)
class Credential:
    bssid: str
    ssid: str
    password: str


def _mac(raw: str) -> Optional[str]:
    raw = raw.strip()
    if len(raw) != 12:
        return None
    try:
        int(raw, 16)
    except ValueError:
        return None
    return normalize_mac(raw)


def _essid(raw: str) -> Optional[str]:
    try:
        return bytes.fromhex(raw).decode("utf-8", errors="replace")
    except ValueError:
        return None


def decode_plain(text: str) -> str:
    """Decode hashcat's ``$HEX[...]`` notation; other text is returned as is."""
    if text.startswith("$HEX[") and text.endswith("]"):
        try:
            return bytes.fromhex(text[5:-1]).decode("utf-8", errors="replace")
        except ValueError:
            return text
    return text


# ---------------------------------------------------------------------------
# line formats
# ---------------------------------------------------------------------------

def parse_potfile_line(line: str) -> Optional[Credential]:
    """
    Parse a potfile entry ``MIC*MAC_AP*MAC_STA*ESSID_HEX:plaintext``.

    The plaintext may itself contain colons; only the first one separates.
    """
    line = line.rstrip("\r\n")
    if ":" not in line:
        return None
    hash_part, plain = line.split(":", 1)
    fields = hash_part.split("*")
    if len(fields) < 4:
        return None
    bssid = _mac(fields[1])
    ssid = _essid(fields[3])
    if bssid is None or ssid is None:
        return None
    return Credential(bssid=bssid, ssid=ssid, password=decode_plain(plain))


def parse_show_line(line: str) -> Optional[Credential]:
    """
    Parse ``hashcat --show -m 22000`` output ``HASH:MAC_AP:MAC_STA:ESSID:PASSWORD``.
    """
    parts = line.rstrip("\r\n").split(":", 4)
    if len(parts) < 5:
        return None
    bssid = _mac(parts[1])
    if bssid is None:
        return None
    return Credential(bssid=bssid, ssid=decode_plain(parts[3]), password=decode_plain(parts[4]))


def security_from_eapol(eapol: str) -> Security:
    """Guess the security mode from the AKM suites carried in an EAPOL frame."""
    eapol = eapol.lower()
    if "000fac08" in eapol or "000fac0c" in eapol:
        return Security.WPA3
    if "000fac02" in eapol or "000fac06" in eapol:
        return Security.WPA2
    if "000fac01" in eapol or "0050f202" in eapol:
        return Security.WPA
    logger.debug("no AKM suite recognized in EAPOL data %s...", eapol[:48])
    return Security.WPA2


def parse_22000_line(line: str) -> Optional[tuple[str, Security]]:
    """
    Parse ``WPA*TYPE*PMKID_or_MIC*MAC_AP*MAC_STA*ESSID*ANONCE*EAPOL*MESSAGEPAIR``.

    Returns
    -------
    (bssid, Security) or None
        PMKID lines (type 01) give WPA2; EAPOL lines (type 02) are classified
        from their AKM suite.
    """
    parts = line.strip().split("*")
    if len(parts) < 5 or parts[0] != "WPA":
        return None
    bssid = _mac(parts[3])
    if bssid is None:
        return None
    if parts[1] == "02" and len(parts) >= 9:
        return bssid, security_from_eapol(parts[7])
    return bssid, Security.WPA2


def load_security_hints(hash_files: Iterable[Path]) -> Dict[str, Security]:
    """Security per BSSID across all given 22000 files; later lines win."""
    hints: Dict[str, Security] = {}
    for path in hash_files:
        try:
            with open(path, "r", encoding="utf-8", errors="replace") as f:
                for line in f:
                    parsed = parse_22000_line(line)
                    if parsed is not None:
                        hints[parsed[0]] = parsed[1]
        except OSError as e:
            logger.warning("Could not read hash file %s: %s", path, e)
    logger.debug("Loaded security hints for %d access points", len(hints))
    return hints


# ---------------------------------------------------------------------------
# source
# ---------------------------------------------------------------------------

class PasswordSource:
    """
    Cracked credentials keyed by BSSID.
    """

    def __init__(self, credentials: Iterable[Credential] = ()) -> None:
        self._by_bssid: Dict[str, List[Credential]] = {}
        for cred in credentials:
            self.add(cred)

    def add(self, cred: Credential) -> None:
        existing = self._by_bssid.setdefault(cred.bssid, [])
        if cred not in existing:
            existing.append(cred)

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_bssid.values())

    def credentials(self, bssid: str) -> List[Credential]:
        return list(self._by_bssid.get(normalize_mac(bssid), []))

    def lookup(self, bssid: str, ssid: Optional[str] = None) -> Optional[Credential]:
        """
        First credential for `bssid` whose ESSID equals `ssid`.

        With no `ssid` (hidden network) the first credential for the BSSID is returned.
        """
        for cred in self._by_bssid.get(normalize_mac(bssid), []):
            if ssid is None or cred.ssid == ssid:
                return cred
        return None

    @classmethod
    def from_lines(cls, lines: Iterable[str], parser) -> "PasswordSource":
        source = cls()
        seen = set()
        for line in lines:
            if not line.strip() or line in seen:
                continue
            seen.add(line)
            cred = parser(line)
            if cred is None:
                logger.debug("Unparseable credential line skipped")
                continue
            source.add(cred)
        return source

    @classmethod
    def from_potfile(cls, path: str | Path) -> "PasswordSource":
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            source = cls.from_lines(f, parse_potfile_line)
        logger.info("Loaded %d credentials from %s", len(source), path)
        return source

    @classmethod
    def from_hashcat(cls, hash_files: Iterable[Path], binary: str = "hashcat") -> "PasswordSource":
        """
        Run ``hashcat --show -m 22000`` on each hash file and collect the results.

        A missing hashcat binary yields an empty source with a warning.
        """
        exe = shutil.which(binary)
        if exe is None:
            logger.warning("Hashcat binary not found in PATH, skipping password retrieval")
            return cls()

        lines: List[str] = []
        for path in hash_files:
            try:
                r = subprocess.run(
                    [exe, "--show", "-m", HASH_MODE, str(path)],
                    capture_output=True, text=True, errors="replace",
                )
            except OSError as e:
                logger.error("Failed to execute hashcat for %s: %s", path, e)
                continue
            if r.returncode != 0:
                logger.error("hashcat --show failed for %s (exit %d): %s", path, r.returncode, r.stderr.strip())
                continue
            lines.extend(r.stdout.splitlines())

        source = cls.from_lines(lines, parse_show_line)
        logger.info("Loaded %d credentials from hashcat", len(source))
        return source


def bind_passwords(ws, source: PasswordSource, security_hints: Optional[Dict[str, Security]] = None) -> int:
    """
    Attach cracked passwords (and security hints) to WorkingSet records.

    A credential binds when the BSSID matches and either the record has no
    SSID, in which case the credential's ESSID is adopted, or the SSIDs are equal.

    Returns
    -------
    int
        Number of records that received a password.
    """
    hints = security_hints or {}
    bound = 0
    for record in ws.values():
        hint = hints.get(record.bssid)
        if hint is not None:
            record.hinted_security = hint
        cred = source.lookup(record.bssid, record.ssid)
        if cred is None:
            continue
        if record.ssid is None:
            record.hinted_ssid = cred.ssid
        record.password = cred.password
        bound += 1
    logger.info("Bound passwords to %d access points", bound)
    return bound
