"""
Action dispatch for announced devices.

Maps "device X is present at location Y" to at most one running action per
device. Events arrive serialized through the event channel, so the busy
flag needs no locking.
"""

import logging
from typing import Optional, Sequence

from ..events.channel import ActionCompleted, DeviceAnnounced, Event
from ..exceptions import CommandTemplateError, DispatchError, HostExtractionError, SpawnError
from .protocols import Device
from .registry import DeviceRegistry
from .supervisor import ProcessHandle, ProcessSupervisor
from .templating import DEFAULT_PLACEHOLDER, extract_host, render_arguments

logger = logging.getLogger("canon_ssdp.dispatch.actions")


class ActionDispatcher:
    """
    Runs the configured action of a device when it is announced.

    Unknown and busy devices are silently ignored. A failed dispatch is
    logged and leaves the device idle so the next announcement retries.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        supervisor: ProcessSupervisor,
        placeholder: str = DEFAULT_PLACEHOLDER,
        log_file_name: str = "logfile",
    ):
        self.registry = registry
        self.supervisor = supervisor
        self.placeholder = placeholder
        self.log_file_name = log_file_name

    async def dispatch(self, event: Event) -> None:
        """Route an event taken off the channel."""
        if isinstance(event, DeviceAnnounced):
            await self.on_device_announced(event.device_id, event.locations)
        elif isinstance(event, ActionCompleted):
            self.on_action_completed(event.device_id, event.returncode)
        else:
            logger.warning("Unknown event type: %r", event)

    async def on_device_announced(
        self,
        device_id: str,
        locations: Sequence[str],
    ) -> Optional[ProcessHandle]:
        """
        Handle one presence announcement.

        Returns:
            The started process, or None when nothing was started
        """
        device = self.registry.lookup(device_id)
        if device is None:
            logger.debug("Ignoring unknown device %s", device_id)
            return None

        if device.busy:
            logger.debug("Ignoring %s: action still running", device_id)
            return None

        try:
            argv = self.build_arguments(device, locations)
        except DispatchError as e:
            logger.warning("%s", e)
            return None

        device.busy = True
        try:
            handle = await self.supervisor.spawn(
                device.id,
                device.working_directory,
                argv,
                device.log_path(self.log_file_name),
            )
        except SpawnError as e:
            device.busy = False
            logger.error("%s", e)
            return None

        return handle

    def build_arguments(self, device: Device, locations: Sequence[str]) -> list[str]:
        """
        Finalize the argument vector for a device.

        Raises:
            HostExtractionError: no host in the first location
            CommandTemplateError: the command cannot be tokenized
        """
        host = extract_host(locations)
        if host is None:
            raise HostExtractionError(device.id, locations)

        try:
            return render_arguments(device.command_template, host, self.placeholder)
        except ValueError as e:
            raise CommandTemplateError(device.id, e) from e

    def on_action_completed(self, device_id: str, returncode: Optional[int]) -> None:
        """Mark a device idle again, whatever its exit status."""
        device = self.registry.lookup(device_id)
        if device is None:
            logger.warning("Completion for unknown device %s", device_id)
            return
        device.busy = False
        logger.debug("%s idle (status=%s)", device_id, returncode)
