"""
Discovery-event dispatch engine.

This module provides:
- The Device type and the registry built from the registry file
- Command templating
- The process supervisor
- The dispatcher tying announcements to actions
"""

from .actions import ActionDispatcher
from .protocols import Device
from .registry import DeviceRegistry
from .supervisor import ProcessHandle, ProcessSupervisor
from .templating import extract_host, render_arguments, replace_first, split_command

__all__ = [
    # Types
    "Device",
    "ProcessHandle",
    # Registry
    "DeviceRegistry",
    # Templating
    "extract_host",
    "render_arguments",
    "replace_first",
    "split_command",
    # Runtime
    "ProcessSupervisor",
    "ActionDispatcher",
]
