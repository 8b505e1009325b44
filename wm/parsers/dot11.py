"""
802.11 frame decoding: radiotap metadata, management header, information elements.

Frames are dissected with scapy's RadioTap layer; the information elements of
beacons and probe responses are walked directly from the frame body.
"""

import struct
from typing import Iterator, List, Optional, Tuple

from scapy.layers.dot11 import Dot11, Dot11Beacon, Dot11ProbeResp, RadioTap
from scapy.packet import NoPayload, Packet

from wm.utils.validate import FrameKind, RawObservation, Security

LINKTYPE_IEEE802_11_RADIOTAP = 127

_DOT11_HEADER_LEN = 24
_PRIVACY_BIT = 0x0010
_WPA_OUI_TYPE = b"\x00\x50\xf2\x01"


class MalformedFrameError(ValueError):
    """
    Packet data that cannot be dissected as radiotap + 802.11.
    """


def normalize_mac(mac: str) -> str:
    """Normalize MAC to lower-case colon-separated format."""
    clean = "".join(c for c in (mac or "") if c not in ":-.").lower()
    if len(clean) == 12:
        return ":".join(clean[i:i+2] for i in range(0, 12, 2))
    return (mac or "").lower()


def freq_to_channel(freq: int) -> Optional[int]:
    """Convert frequency (MHz) to 802.11 channel number."""
    if freq == 2484:
        return 14
    if 2412 <= freq <= 2472:
        return (freq - 2412) // 5 + 1
    if 5180 <= freq <= 5825:
        return (freq - 5000) // 5
    return None


# ---------------------------------------------------------------------------
# Information elements
# ---------------------------------------------------------------------------

def iter_ies(body: bytes) -> Iterator[Tuple[int, bytes]]:
    """Walk a tagged-parameter chain, stopping at the first truncated element."""
    offset = 0
    while offset + 2 <= len(body):
        tag = body[offset]
        length = body[offset + 1]
        if offset + 2 + length > len(body):
            break
        yield tag, body[offset + 2:offset + 2 + length]
        offset += 2 + length


def get_ssid(ies: List[Tuple[int, bytes]]) -> Optional[str]:
    """SSID from element 0; None for hidden (empty or NUL-filled) SSIDs."""
    for tag, data in ies:
        if tag == 0:
            ssid = data.decode("utf-8", errors="replace").strip("\x00")
            return ssid or None
    return None


def get_ds_channel(ies: List[Tuple[int, bytes]]) -> Optional[int]:
    """Channel from the DS Parameter Set element (tag 3)."""
    for tag, data in ies:
        if tag == 3 and data:
            return int(data[0])
    return None


def _rsn_akm_types(data: bytes) -> List[int]:
    """Return the suite type byte of each AKM listed in an RSN element."""
    if len(data) < 8:
        return []
    pairwise_count = struct.unpack_from("<H", data, 6)[0]
    offset = 8 + pairwise_count * 4
    if offset + 2 > len(data):
        return []
    akm_count = struct.unpack_from("<H", data, offset)[0]
    offset += 2
    akms = []
    for _ in range(akm_count):
        if offset + 4 > len(data):
            break
        akms.append(data[offset + 3])
        offset += 4
    return akms


def get_security(capabilities: int, ies: List[Tuple[int, bytes]]) -> Security:
    """Determine security from the capability privacy bit and RSN/WPA elements."""
    if not capabilities & _PRIVACY_BIT:
        return Security.OPEN

    has_rsn = has_wpa = has_psk = has_sae = False
    for tag, data in ies:
        if tag == 48:
            has_rsn = True
            akms = _rsn_akm_types(data)
            has_psk = has_psk or 2 in akms
            has_sae = has_sae or 8 in akms
        elif tag == 221 and len(data) >= 8 and data[:4] == _WPA_OUI_TYPE:
            has_wpa = True

    if has_rsn:
        if has_sae and has_psk:
            return Security.WPA2_WPA3
        if has_sae:
            return Security.WPA3
        return Security.WPA2
    if has_wpa:
        return Security.WPA
    return Security.WEP


# ---------------------------------------------------------------------------
# Frame decoding
# ---------------------------------------------------------------------------

def _find_layer(pkt: Packet, cls: type) -> Optional[Packet]:
    layer = pkt
    while not isinstance(layer, NoPayload):
        if isinstance(layer, cls):
            return layer
        layer = layer.payload
    return None


def get_rssi(rt: Packet) -> Optional[int]:
    """Extract RSSI (dBm) from the RadioTap header."""
    val = getattr(rt, "dBm_AntSignal", None)
    if val is None:
        return None
    v = int(val)
    if -120 <= v <= 0:
        return v
    return None


def decode_frame(data: bytes, timestamp: float, frame_index: int = 0) -> Optional[RawObservation]:
    """
    Decode one radiotap-encapsulated 802.11 frame.

    Parameters
    ----------
    data
        Packet bytes as captured (radiotap header first).
    timestamp
        Capture timestamp, seconds since the Unix epoch.
    frame_index
        Ordinal of the packet block in its capture.

    Returns
    -------
    RawObservation or None
        None for frames that are well-formed but not retained (other
        subtypes, no signal reading).

    Raises
    ------
    MalformedFrameError
        If the bytes are not a dissectable radiotap + 802.11 frame.
    """
    if len(data) < 8:
        raise MalformedFrameError(f"{len(data)} bytes is shorter than a radiotap header")
    rt_len = struct.unpack_from("<H", data, 2)[0]
    if data[0] != 0 or rt_len < 8 or len(data) < rt_len + _DOT11_HEADER_LEN:
        raise MalformedFrameError(f"bad radiotap header (len={rt_len}, data={len(data)})")

    rt = RadioTap(data)
    dot11 = _find_layer(rt, Dot11)
    if dot11 is None:
        raise MalformedFrameError("no 802.11 header after radiotap")

    kind = FrameKind.from_subtype(int(dot11.type), int(dot11.subtype))
    if kind is FrameKind.OTHER:
        return None

    bssid = normalize_mac(dot11.addr3 or "")
    if len(bssid) != 17:
        raise MalformedFrameError("management frame without BSSID")

    rssi = get_rssi(rt)
    if rssi is None:
        return None

    mgmt = _find_layer(dot11, Dot11Beacon if kind is FrameKind.BEACON else Dot11ProbeResp)
    ies: List[Tuple[int, bytes]] = []
    security = None
    if mgmt is not None:
        ies = list(iter_ies(bytes(mgmt.payload)))
        security = get_security(int(mgmt.cap), ies)

    channel = get_ds_channel(ies)
    if channel is None:
        freq = getattr(rt, "ChannelFrequency", None)
        if freq:
            channel = freq_to_channel(int(freq))

    return RawObservation(
        bssid=bssid,
        ssid=get_ssid(ies),
        channel=channel,
        rssi=rssi,
        timestamp=timestamp,
        kind=kind,
        security=security,
        frame_index=frame_index,
    )
