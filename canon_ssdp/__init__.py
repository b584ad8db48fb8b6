"""
canon-ssdp - SSDP-triggered command runner.

Runs a configured command, once at a time per device, whenever a known
device announces itself on the local network.
"""

__version__ = "0.1.0"
