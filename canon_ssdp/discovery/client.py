"""
SSDP client: the UDP sockets shared by the browser and the advertiser.

Two sockets are opened on the selected interface:
- a multicast socket bound to port 1900 that hears NOTIFY and M-SEARCH
- a unicast socket on an ephemeral port that sends searches and receives
  their responses
"""

import asyncio
import logging
import socket
import struct
from typing import Callable, Optional

import psutil

from ..exceptions import DiscoveryClientError
from .ssdp import SSDP_ADDR, SSDP_PORT, SSDPMessage, parse_message

logger = logging.getLogger("canon_ssdp.discovery.client")

DEFAULT_SERVER_ID = "Linux/1.0 UPnP/1.0 canon-ssdp/0.1"

MessageHandler = Callable[[SSDPMessage, tuple], None]


class _DatagramProtocol(asyncio.DatagramProtocol):
    def __init__(self, client: "SSDPClient", name: str):
        self._client = client
        self._name = name

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        self._client._datagram_received(data, addr)

    def error_received(self, exc: Exception) -> None:
        logger.debug("%s socket error: %s", self._name, exc)


class SSDPClient:
    """Joins the SSDP multicast group and fans received messages out to handlers."""

    def __init__(
        self,
        interface: Optional[str] = None,
        server_id: str = DEFAULT_SERVER_ID,
        ttl: int = 4,
    ):
        self.interface = interface
        self.server_id = server_id
        self.ttl = ttl
        self.host_ip: Optional[str] = None
        self._handlers: list[MessageHandler] = []
        self._multicast: Optional[asyncio.DatagramTransport] = None
        self._unicast: Optional[asyncio.DatagramTransport] = None

    @property
    def is_active(self) -> bool:
        return self._multicast is not None

    def set_server_id(self, server_id: str) -> None:
        """Override the SERVER header of everything we send."""
        self.server_id = server_id

    async def start(self) -> None:
        """
        Open both sockets.

        Raises:
            DiscoveryClientError: the interface is unknown or a socket
                cannot be bound or joined
        """
        if self.is_active:
            return
        loop = asyncio.get_running_loop()
        try:
            bind_ip = resolve_interface(self.interface) if self.interface else None
            self.host_ip = bind_ip or _get_local_ip()
            msock = _multicast_socket(bind_ip, self.ttl)
            usock = _unicast_socket(bind_ip, self.ttl)
            self._multicast, _ = await loop.create_datagram_endpoint(
                lambda: _DatagramProtocol(self, "multicast"), sock=msock
            )
            self._unicast, _ = await loop.create_datagram_endpoint(
                lambda: _DatagramProtocol(self, "unicast"), sock=usock
            )
        except (OSError, ValueError) as e:
            self.close()
            raise DiscoveryClientError(self.interface, e) from e

        logger.info(
            "SSDP client listening on %s (interface=%s)",
            self.host_ip,
            self.interface or "default",
        )

    def add_handler(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    def remove_handler(self, handler: MessageHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def _datagram_received(self, data: bytes, addr: tuple) -> None:
        message = parse_message(data)
        if message is None:
            logger.debug("Ignoring non-SSDP datagram from %s", addr[0])
            return
        for handler in list(self._handlers):
            try:
                handler(message, addr)
            except Exception:
                logger.exception("SSDP handler failed for message from %s", addr[0])

    def multicast(self, data: bytes) -> None:
        """Send to the group from port 1900 (announcements)."""
        if self._multicast is not None:
            self._multicast.sendto(data, (SSDP_ADDR, SSDP_PORT))

    def search(self, data: bytes) -> None:
        """Send to the group from the unicast socket so responses come back to it."""
        if self._unicast is not None:
            self._unicast.sendto(data, (SSDP_ADDR, SSDP_PORT))

    def send_to(self, data: bytes, addr: tuple) -> None:
        if self._unicast is not None:
            self._unicast.sendto(data, addr)

    def close(self) -> None:
        for transport in (self._multicast, self._unicast):
            if transport is not None:
                transport.close()
        if self._multicast is not None:
            logger.info("SSDP client closed")
        self._multicast = None
        self._unicast = None


def resolve_interface(interface: str) -> str:
    """
    Return the IPv4 address of a network interface.

    An IPv4 address is accepted as-is.

    Raises:
        ValueError: no such interface, or it has no IPv4 address
    """
    try:
        socket.inet_aton(interface)
        return interface
    except OSError:
        pass

    addrs = psutil.net_if_addrs()
    if interface not in addrs:
        raise ValueError(f"unknown network interface {interface!r}")
    for addr in addrs[interface]:
        if addr.family == socket.AF_INET:
            return addr.address
    raise ValueError(f"interface {interface!r} has no IPv4 address")


def _get_local_ip() -> str:
    """Address of the interface the default route to the group goes through."""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect((SSDP_ADDR, SSDP_PORT))
            return s.getsockname()[0]
        finally:
            s.close()
    except OSError:
        return "127.0.0.1"


def _multicast_socket(bind_ip: Optional[str], ttl: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if hasattr(socket, "SO_REUSEPORT"):
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
            except OSError:
                pass
        sock.bind(("", SSDP_PORT))
        local = socket.inet_aton(bind_ip or "0.0.0.0")
        mreq = struct.pack("=4s4s", socket.inet_aton(SSDP_ADDR), local)
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, mreq)
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, ttl)
        if bind_ip:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, local)
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock


def _unicast_socket(bind_ip: Optional[str], ttl: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
    try:
        sock.bind((bind_ip or "", 0))
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, ttl)
        if bind_ip:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton(bind_ip))
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock
