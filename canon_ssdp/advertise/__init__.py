"""
Self-advertisement as a UPnP root device.
"""

from .announcer import SelfAdvertiser
from .description import DeviceDescription, ensure_description, load_description
from .server import DescriptionServer, create_app

__all__ = [
    "DescriptionServer",
    "DeviceDescription",
    "SelfAdvertiser",
    "create_app",
    "ensure_description",
    "load_description",
]
