"""
SSDP device discovery.

Provides the message codec, the shared UDP client, the resource browser
and the service that keeps it running.
"""

from .browser import CachedResource, ResourceBrowser
from .client import SSDPClient, resolve_interface
from .service import DiscoveryService
from .ssdp import MessageKind, SSDPMessage, parse_message

__all__ = [
    "CachedResource",
    "DiscoveryService",
    "MessageKind",
    "ResourceBrowser",
    "SSDPClient",
    "SSDPMessage",
    "parse_message",
    "resolve_interface",
]
