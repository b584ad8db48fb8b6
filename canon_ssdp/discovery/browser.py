"""
SSDP resource browser.

Watches announcements and search responses for a search target and keeps a
cache of live resources keyed by USN. A resource is reported available when
it is first seen or its locations change, and unavailable on ssdp:byebye or
when its max-age runs out.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .client import SSDPClient
from .ssdp import ALL, BYEBYE, UPDATE, MessageKind, SSDPMessage, build_msearch

logger = logging.getLogger("canon_ssdp.discovery.browser")

AvailableCallback = Callable[[str, list[str]], None]
UnavailableCallback = Callable[[str], None]


@dataclass
class CachedResource:
    """A live resource as last announced."""
    usn: str
    locations: tuple[str, ...]
    expires_at: float


class ResourceBrowser:
    """
    Browses the network for resources matching a search target.

    "ssdp:all" matches every announcement.
    """

    def __init__(
        self,
        client: SSDPClient,
        target: str = ALL,
        on_available: Optional[AvailableCallback] = None,
        on_unavailable: Optional[UnavailableCallback] = None,
        mx: int = 3,
        default_max_age: int = 1800,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.target = target
        self.on_available = on_available
        self.on_unavailable = on_unavailable
        self.mx = mx
        self.default_max_age = default_max_age
        self._clock = clock
        self._cache: dict[str, CachedResource] = {}
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    @property
    def resources(self) -> dict[str, CachedResource]:
        return dict(self._cache)

    def set_active(self, active: bool) -> None:
        """Start or stop listening; activation sends a first search."""
        if active == self._active:
            return
        self._active = active
        if active:
            self.client.add_handler(self.handle_message)
            self.search()
            logger.info("Browsing for %s", self.target)
        else:
            self.client.remove_handler(self.handle_message)
            self._cache.clear()
            logger.info("Stopped browsing for %s", self.target)

    def search(self) -> None:
        self.client.search(build_msearch(self.target, self.mx, self.client.server_id))
        logger.debug("Sent M-SEARCH for %s", self.target)

    def handle_message(self, message: SSDPMessage, addr: tuple) -> None:
        if message.kind == MessageKind.SEARCH:
            return
        if not self._matches(message.target):
            return

        usn = message.usn
        if not usn:
            logger.debug("Ignoring announcement without USN from %s", addr[0])
            return

        if message.kind == MessageKind.NOTIFY:
            nts = message.nts
            if nts == BYEBYE:
                self._resource_unavailable(usn)
                return
            if nts == UPDATE:
                logger.debug("Ignoring ssdp:update for %s", usn)
                return

        self._resource_available(usn, message)

    def expire(self) -> list[str]:
        """Drop resources whose max-age has run out; return their USNs."""
        now = self._clock()
        expired = [usn for usn, r in self._cache.items() if r.expires_at <= now]
        for usn in expired:
            logger.debug("Resource %s timed out", usn)
            self._resource_unavailable(usn)
        return expired

    def _matches(self, target: Optional[str]) -> bool:
        if self.target == ALL:
            return True
        return target == self.target

    def _resource_available(self, usn: str, message: SSDPMessage) -> None:
        locations = tuple(message.locations)
        if not locations:
            logger.debug("Ignoring %s: no LOCATION", usn)
            return

        expires_at = self._clock() + message.max_age(self.default_max_age)
        cached = self._cache.get(usn)
        if cached is not None and cached.locations == locations:
            cached.expires_at = expires_at
            return

        self._cache[usn] = CachedResource(usn=usn, locations=locations, expires_at=expires_at)
        logger.debug("Resource available: %s at %s", usn, locations[0])
        if self.on_available is not None:
            self.on_available(usn, list(locations))

    def _resource_unavailable(self, usn: str) -> None:
        if self._cache.pop(usn, None) is None:
            return
        logger.debug("Resource unavailable: %s", usn)
        if self.on_unavailable is not None:
            self.on_unavailable(usn)
