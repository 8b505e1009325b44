# wm/utils/discovery.py

"""
Find capture/GPS session pairs and hash files in a working directory.
"""

import hashlib
import os
from pathlib import Path
from typing import List, NamedTuple

from wm.utils.log import get_logger

logger = get_logger(__name__)

CAPTURE_EXT = ".pcapng"
NMEA_EXT = ".nmea"
HASH_EXT = ".22000"


class SessionPair(NamedTuple):
    session_id: str
    capture: Path
    nmea: Path


def compute_sha256(file_path: str | Path, chunk_size: int = 8192) -> str:
    h = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


def _walk(directory: str | Path, ext: str) -> List[Path]:
    found = []
    for root, _, files in os.walk(directory):
        for filename in files:
            if filename.endswith(ext):
                found.append(Path(root) / filename)
    return sorted(found)


def find_sessions(directory: str | Path) -> List[SessionPair]:
    """
    Pair every ``<stem>.pcapng`` with the ``<stem>.nmea`` beside it.

    Parameters
    ----------
    directory
        Root of the recursive search.

    Returns
    -------
    list[SessionPair]
        One pair per distinct capture, in path order. The session id is the
        first 12 hex digits of the capture's SHA-256.
    """
    logger.info("Discovering sessions in %s", directory)
    captures = _walk(directory, CAPTURE_EXT)
    nmea_logs = set(_walk(directory, NMEA_EXT))

    pairs: List[SessionPair] = []
    seen = set()
    for capture in captures:
        nmea = capture.with_suffix(NMEA_EXT)
        if nmea not in nmea_logs:
            logger.warning("No GPS log for capture %s, skipped", capture)
            continue
        nmea_logs.discard(nmea)

        sha256 = compute_sha256(capture)
        if sha256 in seen:
            logger.info("Skipping duplicate capture: %s", capture)
            continue
        seen.add(sha256)
        pairs.append(SessionPair(sha256[:12], capture, nmea))

    for orphan in sorted(nmea_logs):
        logger.warning("No capture for GPS log %s, skipped", orphan)

    logger.info("Found %d sessions", len(pairs))
    return pairs


def find_hash_files(directory: str | Path) -> List[Path]:
    """All hashcat mode 22000 files under `directory`."""
    files = _walk(directory, HASH_EXT)
    if not files:
        logger.warning("No %s files found in %s", HASH_EXT, directory)
    return files
