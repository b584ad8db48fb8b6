"""
Discovery Service - keeps the resource browser running.

Activates the browser on the shared SSDP client, repeats the search
periodically and expires resources that stopped announcing themselves.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..config import SSDPConfig
from .browser import ResourceBrowser
from .client import SSDPClient

logger = logging.getLogger("canon_ssdp.discovery.service")

EXPIRE_INTERVAL_SECONDS = 5.0


class DiscoveryService:
    """
    Discovery side of the daemon.

    Every resource the browser reports available is passed to
    on_device_announced as (usn, locations).
    """

    def __init__(
        self,
        client: SSDPClient,
        config: SSDPConfig,
        on_device_announced: Callable[[str, list[str]], None],
    ):
        self.client = client
        self.config = config
        self.browser = ResourceBrowser(
            client,
            target=config.search_target,
            on_available=on_device_announced,
            on_unavailable=self._on_unavailable,
            mx=config.mx,
            default_max_age=config.default_max_age,
        )
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def initialize(self) -> None:
        """Start browsing. The client must already be started."""
        if self._running:
            return
        self.browser.set_active(True)
        self._running = True
        self._task = asyncio.create_task(self._maintain(), name="ssdp-browser")
        logger.info(
            "Discovery started (target=%s, search interval=%ss)",
            self.config.search_target,
            self.config.search_interval_seconds,
        )

    async def shutdown(self) -> None:
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self.browser.set_active(False)
        logger.info("Discovery stopped")

    async def _maintain(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.search_interval_seconds
        next_search = loop.time() + interval if interval > 0 else None
        while self._running:
            try:
                await asyncio.sleep(EXPIRE_INTERVAL_SECONDS)
                self.browser.expire()
                if next_search is not None and loop.time() >= next_search:
                    self.browser.search()
                    next_search = loop.time() + interval
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Discovery maintenance failed: %s", e)

    def _on_unavailable(self, usn: str) -> None:
        logger.debug("Device gone: %s", usn)
