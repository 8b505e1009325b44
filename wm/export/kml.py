"""
KML export: one Placemark per positioned access point.
"""

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable

from wm.analysis.types import AccessPointRecord
from wm.export.common import positioned
from wm.utils.log import get_logger

logger = get_logger(__name__)

KML_NS = "http://www.opengis.net/kml/2.2"


def _description(r: AccessPointRecord) -> str:
    lines = [
        f"BSSID: {r.bssid}",
        f"Security: {r.security.value if r.security is not None else 'Unknown'}",
        f"Channel: {r.channel if r.channel is not None else 'N/A'}",
        f"Observations: {len(r.observations)}",
        f"Method: {r.position.method}",
    ]
    if r.password is not None:
        lines.append(f"Password: {r.password}")
    return "\n".join(lines)


def build_kml(records: Iterable[AccessPointRecord], name: str = "Access points") -> ET.ElementTree:
    ET.register_namespace("", KML_NS)
    root = ET.Element(f"{{{KML_NS}}}kml")
    doc = ET.SubElement(root, f"{{{KML_NS}}}Document")
    ET.SubElement(doc, f"{{{KML_NS}}}name").text = name

    for r in positioned(records):
        pm = ET.SubElement(doc, f"{{{KML_NS}}}Placemark")
        ET.SubElement(pm, f"{{{KML_NS}}}name").text = r.ssid or r.bssid
        ET.SubElement(pm, f"{{{KML_NS}}}description").text = _description(r)
        point = ET.SubElement(pm, f"{{{KML_NS}}}Point")
        ET.SubElement(point, f"{{{KML_NS}}}coordinates").text = f"{r.position.lon},{r.position.lat},0"

    return ET.ElementTree(root)


def export_kml(records: Iterable[AccessPointRecord], path: str | Path) -> int:
    records = positioned(records)
    tree = build_kml(records, name=Path(path).stem)
    ET.indent(tree)
    tree.write(path, encoding="utf-8", xml_declaration=True)
    logger.info("Exported %d access points to %s", len(records), path)
    return len(records)
