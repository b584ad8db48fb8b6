"""
Data types shared by the dispatch engine.

A Device is a registry entry: the discovery id it answers to, where its
action runs and the command line to run there.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass
class Device:
    """A configured device and the action bound to it."""
    id: str  # USN as announced on the network
    working_directory: Path
    command_template: str
    busy: bool = False  # an action process is outstanding

    def log_path(self, file_name: str = "logfile") -> Path:
        """Append-only log receiving the action's stdout and stderr."""
        return self.working_directory / file_name
