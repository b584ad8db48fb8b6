"""
UPnP device description document.

The document is written once, on the first run, with the hostname as
friendlyName and a random UDN. Later runs reuse the file as it is, which
is what keeps the UDN stable across restarts.
"""

import logging
import socket
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from xml.sax.saxutils import escape

from ..exceptions import DescriptionError

logger = logging.getLogger("canon_ssdp.advertise.description")

DEVICE_TYPE = "urn:schemas-upnp-org:device:Basic:1"
UPNP_NS = "urn:schemas-upnp-org:device-1-0"

DESCRIPTION_TEMPLATE = (
    '<?xml version="1.0" encoding="utf-8"?>\n'
    '<root xmlns="urn:schemas-upnp-org:device-1-0">\n'
    "<specVersion>\n"
    "    <major>1</major>\n"
    "    <minor>0</minor>\n"
    "</specVersion>\n"
    "<device>\n"
    "    <deviceType>{device_type}</deviceType>\n"
    "    <friendlyName>{friendly_name}</friendlyName>\n"
    "    <manufacturer>GPL</manufacturer>\n"
    "    <modelName>Canon PTP Endpoint</modelName>\n"
    "    <UDN>uuid:{uuid}</UDN>\n"
    "</device>\n"
    "</root>\n"
)


@dataclass
class DeviceDescription:
    """What we need from the description to advertise it."""
    udn: str  # "uuid:..."
    device_type: str
    friendly_name: str
    content: bytes


def render_description(friendly_name: str, device_uuid: str) -> str:
    return DESCRIPTION_TEMPLATE.format(
        device_type=DEVICE_TYPE,
        friendly_name=escape(friendly_name),
        uuid=device_uuid,
    )


def ensure_description(path: Union[str, Path], hostname: Optional[str] = None) -> bool:
    """
    Create the description at path unless it already exists.

    Returns:
        True if a new document was written

    Raises:
        DescriptionError: the hostname or the file cannot be obtained
    """
    path = Path(path)
    if path.exists():
        return False

    try:
        name = hostname or socket.gethostname()
        path.write_text(render_description(name[:63], str(uuid.uuid4())), encoding="utf-8")
    except OSError as e:
        raise DescriptionError(path, e) from e

    logger.info("Created device description %s", path)
    return True


def load_description(path: Union[str, Path]) -> DeviceDescription:
    """
    Read the description back.

    Raises:
        DescriptionError: unreadable, not XML, or without a UDN
    """
    path = Path(path)
    try:
        content = path.read_bytes()
        root = ET.fromstring(content)
    except (OSError, ET.ParseError) as e:
        raise DescriptionError(path, e) from e

    ns = {"d": UPNP_NS}
    udn = root.findtext("d:device/d:UDN", default="", namespaces=ns).strip()
    if not udn:
        raise DescriptionError(path, ValueError("no device/UDN element"))

    return DeviceDescription(
        udn=udn,
        device_type=root.findtext("d:device/d:deviceType", default=DEVICE_TYPE, namespaces=ns).strip(),
        friendly_name=root.findtext("d:device/d:friendlyName", default="", namespaces=ns).strip(),
        content=content,
    )
