"""
pcapng parser: walk the block structure of a capture and yield beacon and
probe-response observations.

Only blocks that matter for mapping are interpreted:
  - Section Header Block (byte order, resets interfaces)
  - Interface Description Block (link type, timestamp resolution/offset)
  - Enhanced Packet Block (timestamped packet data)

Everything else is skipped at its block boundary. A block whose framing is
damaged is skipped by scanning forward for the next well-framed block.
"""

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, NamedTuple, Optional

from wm.errors import CaptureFormatError
from wm.parsers.dot11 import LINKTYPE_IEEE802_11_RADIOTAP, decode_frame
from wm.utils.log import get_logger
from wm.utils.validate import RawObservation

logger = get_logger(__name__)

BLOCK_SHB = 0x0A0D0D0A
BLOCK_IDB = 0x00000001
BLOCK_SPB = 0x00000003
BLOCK_NRB = 0x00000004
BLOCK_ISB = 0x00000005
BLOCK_EPB = 0x00000006

# well-formed blocks the reader has no use for
IGNORED_BLOCKS = {
    0x00000002: "obsolete packet",
    BLOCK_SPB: "simple packet",
    BLOCK_NRB: "name resolution",
    BLOCK_ISB: "interface statistics",
    0x00000009: "systemd journal export",
    0x0000000A: "decryption secrets",
    0x00000BAD: "custom",
    0x40000BAD: "custom",
}

# block types accepted as a resync point after framing damage
_RESYNC_BLOCKS = {BLOCK_SHB, BLOCK_IDB, BLOCK_SPB, BLOCK_NRB, BLOCK_ISB, BLOCK_EPB}

_SHB_BYTES = b"\x0a\x0d\x0d\x0a"
_MAGIC_LE = b"\x4d\x3c\x2b\x1a"
_MAGIC_BE = b"\x1a\x2b\x3c\x4d"
_SHB_MIN_LEN = 28
_EPB_HEADER_LEN = 20
_MAX_BLOCK_LEN = 16 * 1024 * 1024
_RESYNC_CHUNK = 64 * 1024

OPT_ENDOFOPT = 0
OPT_IF_TSRESOL = 9
OPT_IF_TSOFFSET = 14


@dataclass
class Interface:
    link_type: int
    ticks_per_second: int = 1_000_000
    ts_offset: int = 0


@dataclass
class CaptureStats:
    blocks: int = 0
    packets: int = 0
    observations: int = 0
    skipped: int = 0
    truncated: bool = False


class _Block(NamedTuple):
    type: int
    body: bytes
    valid: bool


class PcapngReader:
    """
    Single-pass iterator of RawObservation over a pcapng byte stream.

    Malformed blocks are skipped with a warning. When a block's framing is
    damaged the reader scans forward on 4-byte alignment for the next
    well-framed block and resumes there; a truncated tail ends the iteration
    with a warning. Only an unrecognizable leading section header is fatal
    (CaptureFormatError on first iteration).
    """

    def __init__(self, stream: BinaryIO, name: str = "<stream>") -> None:
        self.name = name
        self.stats = CaptureStats()
        self._stream = stream
        self._endian = "<"
        self._interfaces: list[Interface] = []
        self._pushback = b""

    def __iter__(self) -> Iterator[RawObservation]:
        first = True
        index = -1
        while True:
            block = self._next_block(first)
            first = False
            if block is None:
                break
            index += 1
            self.stats.blocks += 1
            if not block.valid:
                self.stats.skipped += 1
                continue

            if block.type == BLOCK_SHB:
                self._interfaces = []
            elif block.type == BLOCK_IDB:
                self._read_interface(block.body)
            elif block.type == BLOCK_EPB:
                obs = self._read_packet(block.body, index)
                if obs is not None:
                    self.stats.observations += 1
                    yield obs
            elif block.type in IGNORED_BLOCKS:
                logger.debug("%s: %s block %d ignored", self.name, IGNORED_BLOCKS[block.type], index)
            else:
                logger.warning("%s: unknown block type 0x%08x at block %d, skipped", self.name, block.type, index)
                self.stats.skipped += 1

        logger.debug(
            "%s: %d observations from %d packets in %d blocks (%d skipped%s)",
            self.name, self.stats.observations, self.stats.packets,
            self.stats.blocks, self.stats.skipped,
            ", truncated" if self.stats.truncated else "",
        )

    # -------------------------------------------------------------------------
    # framing
    # -------------------------------------------------------------------------

    def _read(self, n: int) -> Optional[bytes]:
        data = b""
        if self._pushback:
            data, self._pushback = self._pushback[:n], self._pushback[n:]
            if len(data) == n:
                return data
        try:
            return data + self._stream.read(n - len(data))
        except OSError as e:
            logger.warning("%s: read failed, ignoring rest of file: %s", self.name, e)
            self.stats.truncated = True
            return None

    def _truncated(self, what: str) -> None:
        logger.warning("%s: truncated %s at end of capture", self.name, what)
        self.stats.truncated = True

    def _next_block(self, first: bool) -> Optional[_Block]:
        head = self._read(8)
        if head is None:
            return None
        if first and head[:4] != _SHB_BYTES:
            raise CaptureFormatError(f"{self.name}: not a pcapng file (no section header)")
        if not head:
            return None
        if len(head) < 8:
            self._truncated("block header")
            return None

        if head[:4] == _SHB_BYTES:
            return self._next_section_header(head, first)

        block_type, total_len = struct.unpack(self._endian + "II", head)
        if total_len < 12 or total_len % 4 or total_len > _MAX_BLOCK_LEN:
            return self._recover(head[4:], f"block of type 0x{block_type:08x} has invalid length {total_len}")

        rest = self._read(total_len - 8)
        if rest is None:
            return None
        if len(rest) < total_len - 8:
            return self._recover(head[4:] + rest, f"truncated block of type 0x{block_type:08x}")

        body, trailer = rest[:-4], rest[-4:]
        if struct.unpack(self._endian + "I", trailer)[0] != total_len:
            return self._recover(
                head[4:] + rest, f"block of type 0x{block_type:08x} has mismatched trailing length",
            )
        return _Block(block_type, body, True)

    def _next_section_header(self, head: bytes, first: bool) -> Optional[_Block]:
        magic = self._read(4)
        if magic is None:
            return None
        if magic == _MAGIC_LE:
            endian = "<"
        elif magic == _MAGIC_BE:
            endian = ">"
        elif first:
            raise CaptureFormatError(f"{self.name}: unknown byte-order magic {magic.hex()}")
        else:
            return self._recover(head[4:] + magic, "section header with unknown byte-order magic")

        total_len = struct.unpack(endian + "I", head[4:8])[0]
        if total_len < _SHB_MIN_LEN or total_len % 4 or total_len > _MAX_BLOCK_LEN:
            if first:
                raise CaptureFormatError(f"{self.name}: section header has invalid length {total_len}")
            return self._recover(head[4:] + magic, f"section header has invalid length {total_len}")

        rest = self._read(total_len - 12)
        if rest is None:
            return None
        if len(rest) < total_len - 12:
            if first:
                raise CaptureFormatError(f"{self.name}: truncated section header")
            return self._recover(head[4:] + magic + rest, "truncated section header")

        body, trailer = magic + rest[:-4], rest[-4:]
        if struct.unpack(endian + "I", trailer)[0] != total_len:
            if first:
                raise CaptureFormatError(f"{self.name}: section header has mismatched trailing length")
            return self._recover(head[4:] + magic + rest, "section header has mismatched trailing length")
        self._endian = endian
        return _Block(BLOCK_SHB, body, True)

    # -------------------------------------------------------------------------
    # resync after framing damage
    # -------------------------------------------------------------------------

    def _recover(self, data: bytes, problem: str) -> Optional[_Block]:
        """
        Skip a damaged block. `data` holds the bytes read after its first
        four; the scan for the next block starts there. The skipped bytes
        count as one invalid block.
        """
        if self._resync(data):
            logger.warning("%s: %s, skipped to the next block", self.name, problem)
            return _Block(-1, b"", False)
        logger.warning("%s: %s, no further block found, ignoring rest of file", self.name, problem)
        self.stats.truncated = True
        return None

    def _fill(self, buf: bytearray, size: int) -> bool:
        while len(buf) < size:
            if self.stats.truncated:
                return False
            chunk = self._read(max(size - len(buf), _RESYNC_CHUNK))
            if not chunk:
                return False
            buf += chunk
        return True

    def _candidate(self, buf: bytearray, offset: int) -> Optional[tuple[int, str]]:
        head = bytes(buf[offset:offset + 12])
        if head[:4] == _SHB_BYTES:
            if head[8:12] == _MAGIC_LE:
                endian = "<"
            elif head[8:12] == _MAGIC_BE:
                endian = ">"
            else:
                return None
            min_len = _SHB_MIN_LEN
        else:
            endian = self._endian
            if struct.unpack(endian + "I", head[:4])[0] not in _RESYNC_BLOCKS:
                return None
            min_len = 12
        total_len = struct.unpack(endian + "I", head[4:8])[0]
        if total_len < min_len or total_len % 4 or total_len > _MAX_BLOCK_LEN:
            return None
        return total_len, endian

    def _resync(self, data: bytes) -> bool:
        buf = bytearray(data)
        offset = 0
        while self._fill(buf, offset + 12):
            found = self._candidate(buf, offset)
            if found is not None:
                total_len, endian = found
                end = offset + total_len
                if self._fill(buf, end) and struct.unpack(endian + "I", buf[end - 4:end])[0] == total_len:
                    self._pushback = bytes(buf[offset:]) + self._pushback
                    return True
            offset += 4
            if offset >= _RESYNC_CHUNK:
                del buf[:offset]
                offset = 0
        return False

    # -------------------------------------------------------------------------
    # block bodies
    # -------------------------------------------------------------------------

    def _iter_options(self, data: bytes) -> Iterator[tuple[int, bytes]]:
        offset = 0
        while offset + 4 <= len(data):
            code, length = struct.unpack_from(self._endian + "HH", data, offset)
            if code == OPT_ENDOFOPT:
                return
            value = data[offset + 4:offset + 4 + length]
            if len(value) < length:
                return
            yield code, value
            offset += 4 + ((length + 3) & ~3)

    def _read_interface(self, body: bytes) -> None:
        if len(body) < 8:
            logger.warning("%s: interface description too short, skipped", self.name)
            self.stats.skipped += 1
            # keep interface ids aligned with the file
            self._interfaces.append(Interface(link_type=-1))
            return

        link_type = struct.unpack_from(self._endian + "H", body, 0)[0]
        iface = Interface(link_type=link_type)
        for code, value in self._iter_options(body[8:]):
            if code == OPT_IF_TSRESOL and len(value) >= 1:
                v = value[0]
                iface.ticks_per_second = 2 ** (v & 0x7F) if v & 0x80 else 10 ** v
            elif code == OPT_IF_TSOFFSET and len(value) >= 8:
                iface.ts_offset = struct.unpack(self._endian + "q", value[:8])[0]

        if link_type != LINKTYPE_IEEE802_11_RADIOTAP:
            logger.warning(
                "%s: interface %d has link type %d, its packets are ignored",
                self.name, len(self._interfaces), link_type,
            )
        self._interfaces.append(iface)

    def _read_packet(self, body: bytes, index: int) -> Optional[RawObservation]:
        self.stats.packets += 1
        if len(body) < _EPB_HEADER_LEN:
            logger.warning("%s: packet block %d too short, skipped", self.name, index)
            self.stats.skipped += 1
            return None

        if_id, ts_high, ts_low, cap_len, _orig_len = struct.unpack_from(self._endian + "IIIII", body, 0)
        if if_id >= len(self._interfaces):
            logger.warning("%s: packet block %d references unknown interface %d, skipped", self.name, index, if_id)
            self.stats.skipped += 1
            return None
        if _EPB_HEADER_LEN + cap_len > len(body):
            logger.warning("%s: packet block %d captured length exceeds block, skipped", self.name, index)
            self.stats.skipped += 1
            return None

        iface = self._interfaces[if_id]
        if iface.link_type != LINKTYPE_IEEE802_11_RADIOTAP:
            return None

        ticks = (ts_high << 32) | ts_low
        timestamp = ticks / iface.ticks_per_second + iface.ts_offset
        data = body[_EPB_HEADER_LEN:_EPB_HEADER_LEN + cap_len]
        try:
            return decode_frame(data, timestamp, frame_index=index)
        except (ValueError, struct.error) as e:
            logger.warning("%s: packet block %d is not a valid 802.11 frame, skipped: %s", self.name, index, e)
            self.stats.skipped += 1
            return None


def iter_observations(stream: BinaryIO, name: str = "<stream>") -> Iterator[RawObservation]:
    """
    Lazily decode beacon/probe-response observations from a pcapng stream.
    """
    return iter(PcapngReader(stream, name))


def parse_capture(file_path: str | Path) -> Iterator[RawObservation]:
    """
    Open a .pcapng file and yield its observations.
    """
    with open(file_path, "rb") as f:
        yield from PcapngReader(f, str(file_path))
