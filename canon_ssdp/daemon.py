"""
Daemon composition.

Wires the registry, supervisor and dispatcher to the SSDP client through
one event channel, and brings the network side up and down around it.
"""

import asyncio
import logging
from typing import Optional

from .advertise import DescriptionServer, SelfAdvertiser, ensure_description, load_description
from .config import Settings
from .discovery import DiscoveryService, SSDPClient
from .dispatch import ActionDispatcher, DeviceRegistry, ProcessSupervisor
from .events import DeviceAnnounced, Event, EventChannel

logger = logging.getLogger("canon_ssdp.daemon")


class Daemon:
    """
    The running daemon.

    start() raises the fatal startup errors; run() drains the event
    channel until stop() is requested.
    """

    def __init__(self, settings: Settings, registry: DeviceRegistry):
        self.settings = settings
        self.registry = registry
        self.channel = EventChannel()
        self.supervisor = ProcessSupervisor(on_complete=self.channel.publish)
        self.dispatcher = ActionDispatcher(
            registry,
            self.supervisor,
            placeholder=settings.dispatch.placeholder,
            log_file_name=settings.dispatch.log_file_name,
        )
        self.client = SSDPClient(
            interface=settings.interface,
            server_id=settings.advertise.server_id,
            ttl=settings.ssdp.ttl,
        )
        self.discovery = DiscoveryService(self.client, settings.ssdp, self.channel.announce)
        self.description_server: Optional[DescriptionServer] = None
        self.advertiser: Optional[SelfAdvertiser] = None
        self._stop_requested: Optional[asyncio.Event] = None
        self._consumer: Optional[asyncio.Task] = None
        self._stopping = False

    async def start(self) -> None:
        """
        Bring up the network side.

        Raises:
            DiscoveryClientError: the SSDP sockets cannot be opened
            DescriptionError: the description cannot be created or read
            AdvertiseError: the description cannot be served
        """
        self._stop_requested = asyncio.Event()
        self._consumer = asyncio.create_task(
            self.channel.consume(self._handle_event), name="dispatch"
        )

        await self.client.start()

        if self.settings.advertise.enabled:
            await self._start_advertising()

        await self.discovery.initialize()
        logger.info("Watching for %d device(s): %s", len(self.registry), ", ".join(self.registry.ids()))

    async def _start_advertising(self) -> None:
        cfg = self.settings.advertise
        ensure_description(cfg.description_file)
        description = load_description(cfg.description_file)

        self.description_server = DescriptionServer(
            description,
            file_name=cfg.description_file.name,
            host=self.client.host_ip,
            port=cfg.http_port,
        )
        await self.description_server.start()

        self.advertiser = SelfAdvertiser(
            self.client,
            description,
            location=self.description_server.location,
            max_age=cfg.max_age,
            announce_interval=cfg.announce_interval_seconds,
        )
        await self.advertiser.set_available(True)

    async def _handle_event(self, event: Event) -> None:
        # No new actions once shutdown has begun; completions still clear busy
        if self._stopping and isinstance(event, DeviceAnnounced):
            logger.debug("Stopping, dropping announcement of %s", event.device_id)
            return
        await self.dispatcher.dispatch(event)

    async def run(self) -> None:
        """Serve until stop is requested."""
        if self._stop_requested is None:
            await self.start()
        await self._stop_requested.wait()

    def request_stop(self) -> None:
        logger.info("Stop requested")
        self._stopping = True
        if self._stop_requested is not None:
            self._stop_requested.set()

    async def stop(self) -> None:
        """Tear down the network side. Running actions keep running."""
        self._stopping = True
        await self.discovery.shutdown()
        if self.advertiser is not None:
            await self.advertiser.set_available(False)
        if self.description_server is not None:
            await self.description_server.stop()
        self.client.close()

        self.channel.close()
        if self._consumer is not None:
            await self._consumer
            self._consumer = None
        await self.supervisor.shutdown()
        logger.info("Daemon stopped")
