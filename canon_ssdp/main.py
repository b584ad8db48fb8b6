"""
canon-ssdp - run commands when known devices appear on the network.

Listens for SSDP announcements and, for every device listed in the
registry file, runs its command with $HOSTNAME replaced by the address the
device announced itself at.

Usage:
    canon-ssdp [-i INTERFACE] [-c CONFIG] [--debug]
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .config import Settings, get_settings
from .daemon import Daemon
from .dispatch import DeviceRegistry
from .exceptions import CanonSSDPError

logger = logging.getLogger("canon_ssdp.main")


class _ArgumentParser(argparse.ArgumentParser):
    """Exits with status 1 on bad options."""

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        self.exit(1, f"option parsing failed: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="canon-ssdp",
        description="Run a command when a known device announces itself via SSDP",
    )
    parser.add_argument(
        "--interface", "-i",
        default=None,
        help="Network interface to listen on (default: system default)",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Device registry file (default: canon-ssdp.conf)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


async def run_daemon(settings: Settings, registry: DeviceRegistry) -> None:
    """Run until SIGINT or SIGTERM. Startup errors propagate."""
    daemon = Daemon(settings, registry)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, daemon.request_stop)
    try:
        await daemon.start()
        await daemon.run()
    finally:
        await daemon.stop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv(Path.cwd() / ".env")
    settings = get_settings(
        config_file=Path(args.config) if args.config else None,
        interface=args.interface,
        debug=True if args.debug else None,
    )
    configure_logging(settings)

    try:
        registry = DeviceRegistry.load(settings.config_file)
        asyncio.run(run_daemon(settings, registry))
    except CanonSSDPError as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
