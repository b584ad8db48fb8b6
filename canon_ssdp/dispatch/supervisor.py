"""
Process supervisor for device actions.

Starts action commands without waiting for them, reaps them when they exit
and reports each exit exactly once. Processes are never retried, timed out
or killed; one may outlive the daemon.
"""

import asyncio
import logging
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from ..events.channel import ActionCompleted
from ..exceptions import SpawnError

logger = logging.getLogger("canon_ssdp.dispatch.supervisor")


@dataclass
class ProcessHandle:
    """A running action process."""
    device_id: str
    pid: int
    argv: list[str]
    log_path: Path
    process: asyncio.subprocess.Process = field(repr=False)
    started_at: float = field(default_factory=time.monotonic)
    watcher: Optional[asyncio.Task] = field(default=None, repr=False)

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode


class ProcessSupervisor:
    """
    Spawns action processes and tracks them per device.

    on_complete receives one ActionCompleted for every successful spawn.
    """

    def __init__(self, on_complete: Callable[[ActionCompleted], None]):
        self._on_complete = on_complete
        self._outstanding: dict[str, ProcessHandle] = {}

    @property
    def outstanding(self) -> list[str]:
        """Ids of devices with a process still running."""
        return list(self._outstanding.keys())

    async def spawn(
        self,
        device_id: str,
        working_directory: Union[str, Path],
        argv: Sequence[str],
        log_path: Union[str, Path],
    ) -> ProcessHandle:
        """
        Start argv in working_directory with stdout and stderr appended to log_path.

        Returns as soon as the process exists.

        Raises:
            SpawnError: the log cannot be opened, the process cannot be
                created, or the device already has a process running
        """
        if device_id in self._outstanding:
            raise SpawnError(device_id, "an action is already running")
        if not argv:
            raise SpawnError(device_id, "empty argument list")

        try:
            # The child keeps its own copy of the descriptor
            with open(log_path, "ab") as log:
                process = await asyncio.create_subprocess_exec(
                    *argv,
                    cwd=str(working_directory),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=log,
                    stderr=asyncio.subprocess.STDOUT,
                )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            raise SpawnError(device_id, e) from e

        handle = ProcessHandle(
            device_id=device_id,
            pid=process.pid,
            argv=list(argv),
            log_path=Path(log_path),
            process=process,
        )
        self._outstanding[device_id] = handle
        handle.watcher = asyncio.create_task(self._watch(handle), name=f"watch:{device_id}")
        logger.info("Started action for %s (pid=%d): %s", device_id, process.pid, list(argv))
        return handle

    async def _watch(self, handle: ProcessHandle) -> None:
        returncode = await handle.process.wait()
        self._outstanding.pop(handle.device_id, None)
        elapsed = time.monotonic() - handle.started_at
        logger.info(
            "Action for %s exited with status %s after %.1fs",
            handle.device_id,
            returncode,
            elapsed,
        )
        self._on_complete(ActionCompleted(handle.device_id, returncode))

    async def shutdown(self) -> None:
        """Stop watching. Running processes are left alone."""
        watchers = [h.watcher for h in self._outstanding.values() if h.watcher]
        if watchers:
            logger.info("Leaving %d action(s) running: %s", len(watchers), self.outstanding)
        for task in watchers:
            task.cancel()
        for task in watchers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._outstanding.clear()
