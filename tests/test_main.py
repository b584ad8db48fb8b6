"""Tests for the entry point and daemon wiring.

Covers:
- Exit status 1 for bad options, an unreadable registry and startup failures
- Settings overrides from the command line
- A full announcement flowing from a datagram to a spawned command
"""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest

from canon_ssdp.config import Settings, get_settings
from canon_ssdp.daemon import Daemon
from canon_ssdp.dispatch import Device, DeviceRegistry
from canon_ssdp.exceptions import DiscoveryClientError
from canon_ssdp.main import build_parser, main


def _notify(usn: str, location: str) -> bytes:
    return (
        "NOTIFY * HTTP/1.1\r\n"
        "HOST: 239.255.255.250:1900\r\n"
        "CACHE-CONTROL: max-age=1800\r\n"
        f"LOCATION: {location}\r\n"
        "NT: upnp:rootdevice\r\n"
        "NTS: ssdp:alive\r\n"
        f"USN: {usn}\r\n"
        "\r\n"
    ).encode()


# ---------------------------------------------------------------------------
# TestCommandLine
# ---------------------------------------------------------------------------


class TestCommandLine:
    """Option parsing and exit status."""

    def test_parser_options(self):
        args = build_parser().parse_args(["-i", "eth0", "-c", "devices.conf", "--debug"])
        assert args.interface == "eth0"
        assert args.config == "devices.conf"
        assert args.debug is True

    def test_long_options(self):
        args = build_parser().parse_args(["--interface", "wlan0", "--config", "x.conf"])
        assert (args.interface, args.config, args.debug) == ("wlan0", "x.conf", False)

    def test_unknown_option_exits_1(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--bogus"])
        assert exc_info.value.code == 1
        assert "option parsing failed" in capsys.readouterr().err

    def test_missing_option_value_exits_1(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["-c"])
        assert exc_info.value.code == 1

    def test_missing_registry_returns_1(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert main(["-c", str(tmp_path / "absent.conf")]) == 1

    def test_startup_failure_returns_1(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        registry = tmp_path / "canon-ssdp.conf"
        registry.write_text("[cam]\npath=/tmp\ncommand=true\n")

        with patch(
            "canon_ssdp.daemon.SSDPClient.start",
            side_effect=DiscoveryClientError("eth9", OSError("no such device")),
        ):
            assert main(["-c", str(registry), "-i", "eth9"]) == 1


# ---------------------------------------------------------------------------
# TestSettings
# ---------------------------------------------------------------------------


class TestSettings:
    """get_settings() overrides and environment."""

    def test_defaults(self):
        settings = Settings()
        assert settings.config_file == Path("canon-ssdp.conf")
        assert settings.interface is None
        assert settings.dispatch.placeholder == "$HOSTNAME"
        assert settings.dispatch.log_file_name == "logfile"

    def test_overrides_skip_none(self):
        settings = get_settings(interface="eth1", config_file=None, debug=None)
        assert settings.interface == "eth1"
        assert settings.config_file == Path("canon-ssdp.conf")
        assert settings.debug is False

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("CANON_SSDP_INTERFACE", "br0")
        monkeypatch.setenv("CANON_SSDP_SSDP__SEARCH_INTERVAL_SECONDS", "15")
        settings = Settings()
        assert settings.interface == "br0"
        assert settings.ssdp.search_interval_seconds == 15


# ---------------------------------------------------------------------------
# TestDaemon
# ---------------------------------------------------------------------------


class TestDaemon:
    """Daemon wiring with the network stubbed out."""

    @pytest.mark.asyncio
    async def test_announcement_runs_command_once(self, tmp_path):
        workdir = tmp_path / "cam"
        workdir.mkdir()
        usn = "uuid:cam-1::upnp:rootdevice"
        registry = DeviceRegistry(
            [Device(id=usn, working_directory=workdir, command_template="fetch --host $HOSTNAME")]
        )
        settings = Settings()
        settings.advertise.enabled = False
        daemon = Daemon(settings, registry)

        with patch("canon_ssdp.daemon.SSDPClient.start"), patch(
            "canon_ssdp.dispatch.supervisor.asyncio.create_subprocess_exec"
        ) as create:
            create.side_effect = OSError("not started in tests")
            await daemon.start()
            try:
                assert daemon.discovery.is_running

                daemon.client._datagram_received(_notify(usn, "http://10.0.0.7:49152/d.xml"), ("10.0.0.7", 1900))
                daemon.client._datagram_received(_notify("uuid:other", "http://10.0.0.8/d.xml"), ("10.0.0.8", 1900))
                await asyncio.sleep(0.05)
            finally:
                await daemon.stop()

        assert create.call_count == 1
        args, kwargs = create.call_args
        assert list(args) == ["fetch", "--host", "10.0.0.7"]
        assert kwargs["cwd"] == str(workdir)
        # Spawn failure leaves the device ready for the next announcement
        assert registry.lookup(usn).busy is False

    @pytest.mark.asyncio
    async def test_no_actions_start_after_stop_request(self, tmp_path):
        registry = DeviceRegistry(
            [Device(id="cam", working_directory=tmp_path, command_template="fetch $HOSTNAME")]
        )
        settings = Settings()
        settings.advertise.enabled = False
        daemon = Daemon(settings, registry)

        with patch("canon_ssdp.daemon.SSDPClient.start"), patch(
            "canon_ssdp.dispatch.supervisor.asyncio.create_subprocess_exec"
        ) as create:
            await daemon.start()
            daemon.request_stop()
            # Already queued when the stop arrives
            daemon.channel.announce("cam", ["http://10.0.0.7/d.xml"])
            await asyncio.sleep(0.05)
            await daemon.stop()

        create.assert_not_called()
        assert registry.lookup("cam").busy is False

    @pytest.mark.asyncio
    async def test_run_returns_after_stop_request(self):
        settings = Settings()
        settings.advertise.enabled = False
        daemon = Daemon(settings, DeviceRegistry())

        with patch("canon_ssdp.daemon.SSDPClient.start"):
            await daemon.start()
            runner = asyncio.create_task(daemon.run())
            await asyncio.sleep(0.01)
            daemon.request_stop()
            await asyncio.wait_for(runner, timeout=1)
            await daemon.stop()

        assert not daemon.discovery.is_running
