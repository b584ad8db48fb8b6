"""
SSDP (Simple Service Discovery Protocol) message codec.

Parses NOTIFY, M-SEARCH and search response datagrams and builds the ones
this daemon sends.
"""

import logging
import re
from dataclasses import dataclass, field
from email.utils import formatdate
from enum import Enum
from typing import Optional

logger = logging.getLogger("canon_ssdp.discovery.ssdp")

# SSDP multicast address and port
SSDP_ADDR = "239.255.255.250"
SSDP_PORT = 1900

ALIVE = "ssdp:alive"
BYEBYE = "ssdp:byebye"
UPDATE = "ssdp:update"
DISCOVER = '"ssdp:discover"'
ALL = "ssdp:all"

MSEARCH_TEMPLATE = (
    "M-SEARCH * HTTP/1.1\r\n"
    "HOST: {addr}:{port}\r\n"
    "MAN: \"ssdp:discover\"\r\n"
    "MX: {mx}\r\n"
    "ST: {st}\r\n"
    "USER-AGENT: {user_agent}\r\n"
    "\r\n"
)

NOTIFY_TEMPLATE = (
    "NOTIFY * HTTP/1.1\r\n"
    "HOST: {addr}:{port}\r\n"
    "CACHE-CONTROL: max-age={max_age}\r\n"
    "LOCATION: {location}\r\n"
    "SERVER: {server}\r\n"
    "NT: {nt}\r\n"
    "NTS: ssdp:alive\r\n"
    "USN: {usn}\r\n"
    "\r\n"
)

BYEBYE_TEMPLATE = (
    "NOTIFY * HTTP/1.1\r\n"
    "HOST: {addr}:{port}\r\n"
    "NT: {nt}\r\n"
    "NTS: ssdp:byebye\r\n"
    "USN: {usn}\r\n"
    "\r\n"
)

RESPONSE_TEMPLATE = (
    "HTTP/1.1 200 OK\r\n"
    "CACHE-CONTROL: max-age={max_age}\r\n"
    "DATE: {date}\r\n"
    "EXT:\r\n"
    "LOCATION: {location}\r\n"
    "SERVER: {server}\r\n"
    "ST: {st}\r\n"
    "USN: {usn}\r\n"
    "\r\n"
)

_MAX_AGE_RE = re.compile(r"max-age\s*=\s*(\d+)", re.IGNORECASE)
_AL_RE = re.compile(r"<([^>]+)>")


class MessageKind(str, Enum):
    """Start line classification of an SSDP datagram."""
    NOTIFY = "notify"
    SEARCH = "search"
    RESPONSE = "response"


@dataclass
class SSDPMessage:
    """A parsed SSDP datagram. Header names are upper-cased."""

    kind: MessageKind
    headers: dict[str, str] = field(default_factory=dict)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.upper(), default)

    @property
    def usn(self) -> Optional[str]:
        return self.get("USN")

    @property
    def nts(self) -> Optional[str]:
        return self.get("NTS")

    @property
    def target(self) -> Optional[str]:
        """NT for notifications, ST for searches and responses."""
        if self.kind == MessageKind.NOTIFY:
            return self.get("NT")
        return self.get("ST")

    @property
    def locations(self) -> list[str]:
        """LOCATION first, then any alternates from the AL header."""
        result = []
        location = self.get("LOCATION")
        if location:
            result.append(location)
        for alt in _AL_RE.findall(self.get("AL", "")):
            if alt not in result:
                result.append(alt)
        return result

    def max_age(self, default: int) -> int:
        return parse_max_age(self.get("CACHE-CONTROL"), default)

    @property
    def mx(self) -> int:
        try:
            return max(0, int(self.get("MX", "1")))
        except ValueError:
            return 1


def parse_message(data: bytes) -> Optional[SSDPMessage]:
    """
    Parse a datagram into an SSDPMessage.

    Returns None for anything that is not an SSDP start line.
    """
    text = data.decode("utf-8", errors="ignore")
    lines = text.split("\r\n")
    if len(lines) == 1:
        lines = text.split("\n")

    start = lines[0].strip().upper()
    if start.startswith("NOTIFY * HTTP/"):
        kind = MessageKind.NOTIFY
    elif start.startswith("M-SEARCH * HTTP/"):
        kind = MessageKind.SEARCH
    elif start.startswith("HTTP/") and " 200" in start:
        kind = MessageKind.RESPONSE
    else:
        return None

    message = SSDPMessage(kind=kind)
    for line in lines[1:]:  # Skip start line
        if not line:
            break
        if ":" in line:
            key, value = line.split(":", 1)
            message.headers[key.strip().upper()] = value.strip()
    return message


def parse_max_age(cache_control: Optional[str], default: int) -> int:
    if not cache_control:
        return default
    match = _MAX_AGE_RE.search(cache_control)
    if not match:
        return default
    return int(match.group(1))


def build_msearch(st: str, mx: int, user_agent: str) -> bytes:
    return MSEARCH_TEMPLATE.format(
        addr=SSDP_ADDR,
        port=SSDP_PORT,
        mx=mx,
        st=st,
        user_agent=user_agent,
    ).encode()


def build_notify(nt: str, usn: str, location: str, server: str, max_age: int) -> bytes:
    return NOTIFY_TEMPLATE.format(
        addr=SSDP_ADDR,
        port=SSDP_PORT,
        max_age=max_age,
        location=location,
        server=server,
        nt=nt,
        usn=usn,
    ).encode()


def build_byebye(nt: str, usn: str) -> bytes:
    return BYEBYE_TEMPLATE.format(addr=SSDP_ADDR, port=SSDP_PORT, nt=nt, usn=usn).encode()


def build_response(st: str, usn: str, location: str, server: str, max_age: int) -> bytes:
    return RESPONSE_TEMPLATE.format(
        max_age=max_age,
        date=formatdate(usegmt=True),
        location=location,
        server=server,
        st=st,
        usn=usn,
    ).encode()
