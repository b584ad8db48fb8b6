"""
SSDP announcements for this daemon's own root device.

Multicasts ssdp:alive for the root device, its UDN and its device type,
repeats them periodically, answers matching M-SEARCH requests and says
ssdp:byebye on the way out.
"""

import asyncio
import logging
import random
from typing import Optional

from ..discovery.client import SSDPClient
from ..discovery.ssdp import (
    ALL,
    DISCOVER,
    MessageKind,
    SSDPMessage,
    build_byebye,
    build_notify,
    build_response,
)
from .description import DeviceDescription

logger = logging.getLogger("canon_ssdp.advertise.announcer")

ROOT_DEVICE = "upnp:rootdevice"
MAX_RESPONSE_DELAY = 5


class SelfAdvertiser:
    """Publishes a device description on the network."""

    def __init__(
        self,
        client: SSDPClient,
        description: DeviceDescription,
        location: str,
        max_age: int = 1800,
        announce_interval: float = 900.0,
    ):
        self.client = client
        self.description = description
        self.location = location
        self.max_age = max_age
        self.announce_interval = announce_interval
        self._task: Optional[asyncio.Task] = None
        self._available = False

    @property
    def available(self) -> bool:
        return self._available

    def targets(self) -> list[tuple[str, str]]:
        """(NT, USN) pairs announced for the root device."""
        udn = self.description.udn
        device_type = self.description.device_type
        return [
            (ROOT_DEVICE, f"{udn}::{ROOT_DEVICE}"),
            (udn, udn),
            (device_type, f"{udn}::{device_type}"),
        ]

    async def set_available(self, available: bool) -> None:
        if available == self._available:
            return
        self._available = available
        if available:
            self.client.add_handler(self.handle_message)
            self.announce()
            self._task = asyncio.create_task(self._reannounce(), name="ssdp-announce")
            logger.info("Advertising %s at %s", self.description.udn, self.location)
            return

        self.client.remove_handler(self.handle_message)
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self.byebye()
        logger.info("Stopped advertising %s", self.description.udn)

    def announce(self) -> None:
        for nt, usn in self.targets():
            self.client.multicast(
                build_notify(nt, usn, self.location, self.client.server_id, self.max_age)
            )

    def byebye(self) -> None:
        for nt, usn in self.targets():
            self.client.multicast(build_byebye(nt, usn))

    def handle_message(self, message: SSDPMessage, addr: tuple) -> None:
        if message.kind != MessageKind.SEARCH:
            return
        if message.get("MAN") != DISCOVER:
            return

        st = message.target
        matches = [(nt, usn) for nt, usn in self.targets() if st in (ALL, nt)]
        if not matches:
            return

        loop = asyncio.get_running_loop()
        delay = random.uniform(0, min(message.mx, MAX_RESPONSE_DELAY))
        for nt, usn in matches:
            data = build_response(nt, usn, self.location, self.client.server_id, self.max_age)
            loop.call_later(delay, self.client.send_to, data, addr)
        logger.debug("Answering M-SEARCH for %s from %s", st, addr[0])

    async def _reannounce(self) -> None:
        while True:
            await asyncio.sleep(self.announce_interval)
            self.announce()
