"""
Event types and the serialized channel that carries them to the dispatcher.
"""

from .channel import ActionCompleted, DeviceAnnounced, Event, EventChannel

__all__ = [
    "ActionCompleted",
    "DeviceAnnounced",
    "Event",
    "EventChannel",
]
