"""
Custom exceptions for the daemon.

Startup errors are fatal and end the process with exit code 1. Dispatch
errors only abandon the event that raised them.
"""


class CanonSSDPError(Exception):
    """Base exception for all daemon errors."""

    pass


class ConfigLoadError(CanonSSDPError):
    """Raised when the device registry file cannot be read or parsed."""

    def __init__(self, path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Error loading config file {path}: {cause}")


class DiscoveryClientError(CanonSSDPError):
    """Raised when the SSDP client cannot join the network."""

    def __init__(self, interface, cause: Exception):
        self.interface = interface
        self.cause = cause
        where = interface or "default interface"
        super().__init__(f"Failed to create SSDP client on {where}: {cause}")


class DescriptionError(CanonSSDPError):
    """Raised when the device description cannot be created or loaded."""

    def __init__(self, path, cause: Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"Error with device description {path}: {cause}")


class DispatchError(CanonSSDPError):
    """Base for errors that abandon a single dispatch."""

    def __init__(self, device_id: str, message: str):
        self.device_id = device_id
        super().__init__(f"{device_id}: {message}")


class HostExtractionError(DispatchError):
    """Raised when no host can be taken from an announcement's locations."""

    def __init__(self, device_id: str, locations):
        self.locations = list(locations or [])
        first = self.locations[0] if self.locations else None
        super().__init__(device_id, f"no host in location {first!r}")


class CommandTemplateError(DispatchError):
    """Raised when a device command cannot be tokenized."""

    def __init__(self, device_id: str, cause: Exception):
        self.cause = cause
        super().__init__(device_id, f"Error parsing command: {cause}")


class SpawnError(DispatchError):
    """Raised when an action process cannot be started."""

    def __init__(self, device_id: str, cause):
        self.cause = cause
        super().__init__(device_id, f"Error spawning command: {cause}")


class AdvertiseError(CanonSSDPError):
    """Raised when the description server cannot be started."""

    def __init__(self, address: str, cause: Exception):
        self.address = address
        self.cause = cause
        super().__init__(f"Error serving device description on {address}: {cause}")
