"""
Registry of configured devices.

Built once at startup from the INI registry file and never reloaded. Each
section names a device by its USN and carries two keys:

    [uuid:00000000-0000-0000-0001-60128B7C0D6D::upnp:rootdevice]
    path=/srv/cameras/eos
    command=gphoto2 --port ptpip:$HOSTNAME --get-all-files --skip-existing

Values use key-file escapes (\\s, \\n, \\t, \\r, \\\\). A value with any other
backslash sequence is unreadable and its section is skipped.
"""

import configparser
import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from ..exceptions import ConfigLoadError
from .protocols import Device

logger = logging.getLogger("canon_ssdp.dispatch.registry")

PATH_KEY = "path"
COMMAND_KEY = "command"

_ESCAPES = {"s": " ", "n": "\n", "t": "\t", "r": "\r", "\\": "\\"}


class DeviceRegistry:
    """
    Mapping of device id to Device.

    Supports:
    - Loading from the registry file
    - O(1) lookup by id
    - Iteration for startup reporting
    """

    def __init__(self, devices: Iterable[Device] = ()):
        self._devices: dict[str, Device] = {}
        for device in devices:
            self._register(device)

    @classmethod
    def load(cls, source: Union[str, Path]) -> "DeviceRegistry":
        """
        Build a registry from the file at source.

        Sections lacking either key are skipped. Repeated sections are
        merged with later keys winning, so each id stays unique.

        Raises:
            ConfigLoadError: the file cannot be read or parsed
        """
        parser = _new_parser()
        try:
            with open(source, encoding="utf-8") as f:
                parser.read_file(f, source=str(source))
        except (OSError, UnicodeDecodeError, configparser.Error) as e:
            raise ConfigLoadError(source, e) from e

        registry = cls()
        for section in parser.sections():
            path = _get_string(parser, section, PATH_KEY)
            command = _get_string(parser, section, COMMAND_KEY)
            if path is None or command is None:
                missing = [k for k, v in ((PATH_KEY, path), (COMMAND_KEY, command)) if v is None]
                logger.warning("Skipping [%s]: missing %s", section, ", ".join(missing))
                continue
            registry._register(Device(id=section, working_directory=Path(path), command_template=command))

        logger.info("Loaded %d device(s) from %s", len(registry), source)
        return registry

    def _register(self, device: Device) -> None:
        if device.id in self._devices:
            logger.warning("Overwriting device: %s", device.id)
        self._devices[device.id] = device
        logger.debug("Registered device: %s (%s)", device.id, device.working_directory)

    def lookup(self, device_id: str) -> Optional[Device]:
        """Return the device for an id, or None when we don't act on it."""
        return self._devices.get(device_id)

    def ids(self) -> list[str]:
        return list(self._devices.keys())

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[Device]:
        return iter(list(self._devices.values()))

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._devices


def unescape_value(raw: str) -> str:
    """
    Decode key-file escapes: \\s, \\n, \\t, \\r and \\\\.

    Raises:
        ValueError: unknown escape or a trailing backslash
    """
    if "\\" not in raw:
        return raw
    out = []
    chars = iter(raw)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            raise ValueError("escape character at end of value")
        if nxt not in _ESCAPES:
            raise ValueError(f"invalid escape sequence \\{nxt}")
        out.append(_ESCAPES[nxt])
    return "".join(out)


def _get_string(parser: configparser.ConfigParser, section: str, key: str) -> Optional[str]:
    raw = parser.get(section, key, fallback=None)
    if raw is None:
        return None
    try:
        return unescape_value(raw)
    except ValueError as e:
        logger.warning("Ignoring %s in [%s]: %s", key, section, e)
        return None


def _new_parser() -> configparser.ConfigParser:
    # No interpolation so "$HOSTNAME" and "%" reach the command verbatim.
    # An empty default section name can never match a "[...]" header, so
    # every section is a device and none leaks keys into the others.
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        default_section="",
    )
    parser.optionxform = str  # keys are case sensitive
    return parser
