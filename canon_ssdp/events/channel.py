"""
Serialized event channel.

Discovery announcements and process completions are both published here
and consumed by a single task, so the dispatcher sees every event in
arrival order and never runs concurrently with itself.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Union

logger = logging.getLogger("canon_ssdp.events.channel")


@dataclass(frozen=True)
class DeviceAnnounced:
    """A device was observed as present on the network."""
    device_id: str
    locations: tuple[str, ...]


@dataclass(frozen=True)
class ActionCompleted:
    """The action process started for a device has exited."""
    device_id: str
    returncode: Optional[int]


Event = Union[DeviceAnnounced, ActionCompleted]

_CLOSE = object()


class EventChannel:
    """FIFO of events drained by one consumer."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def publish(self, event: Event) -> None:
        """Queue an event. Never blocks; dropped once the channel is closed."""
        if self._closed:
            logger.debug("Channel closed, dropping event: %s", event)
            return
        self._queue.put_nowait(event)

    def announce(self, device_id: str, locations: Iterable[str]) -> None:
        self.publish(DeviceAnnounced(device_id, tuple(locations)))

    def complete(self, device_id: str, returncode: Optional[int]) -> None:
        self.publish(ActionCompleted(device_id, returncode))

    def close(self) -> None:
        """Stop the consumer after the events already queued."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSE)

    def qsize(self) -> int:
        return self._queue.qsize()

    async def consume(self, handler: Callable[[Event], Awaitable[None]]) -> None:
        """
        Feed events to handler one at a time until the channel is closed.

        A failing handler is logged and the loop moves on to the next event.
        """
        while True:
            event = await self._queue.get()
            try:
                if event is _CLOSE:
                    return
                await handler(event)
            except Exception:
                logger.exception("Unhandled error processing %s", event)
            finally:
                self._queue.task_done()
