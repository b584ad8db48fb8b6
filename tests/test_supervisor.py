"""Tests for the process supervisor.

These start real short-lived processes (the running interpreter) in a
temporary working directory.
"""

import asyncio
import sys

import pytest

from canon_ssdp.dispatch import ProcessSupervisor
from canon_ssdp.events import ActionCompleted
from canon_ssdp.exceptions import SpawnError


def _script(code: str) -> list[str]:
    return [sys.executable, "-c", code]


async def _wait_for(completions: list, count: int = 1, timeout: float = 10.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while len(completions) < count:
        if loop.time() > deadline:
            raise AssertionError(f"no completion after {timeout}s")
        await asyncio.sleep(0.02)


# ---------------------------------------------------------------------------
# TestSpawn
# ---------------------------------------------------------------------------


class TestSpawn:
    """spawn() output redirection, working directory and completion."""

    @pytest.mark.asyncio
    async def test_output_appended_to_log(self, tmp_path):
        completions: list[ActionCompleted] = []
        supervisor = ProcessSupervisor(on_complete=completions.append)
        log = tmp_path / "logfile"
        log.write_text("previous run\n")

        code = "import sys; print('out'); sys.stdout.flush(); print('err', file=sys.stderr)"
        await supervisor.spawn("cam", tmp_path, _script(code), log)
        await _wait_for(completions)

        lines = log.read_text().splitlines()
        assert lines[0] == "previous run"
        assert sorted(lines[1:]) == ["err", "out"]

    @pytest.mark.asyncio
    async def test_runs_in_working_directory(self, tmp_path):
        completions: list[ActionCompleted] = []
        supervisor = ProcessSupervisor(on_complete=completions.append)

        await supervisor.spawn("cam", tmp_path, _script("import os; print(os.getcwd())"), tmp_path / "logfile")
        await _wait_for(completions)

        assert (tmp_path / "logfile").read_text().strip() == str(tmp_path.resolve())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [0, 3])
    async def test_exactly_one_completion_with_status(self, tmp_path, status):
        completions: list[ActionCompleted] = []
        supervisor = ProcessSupervisor(on_complete=completions.append)

        handle = await supervisor.spawn(
            "cam", tmp_path, _script(f"raise SystemExit({status})"), tmp_path / "logfile"
        )
        assert handle.pid > 0
        await _wait_for(completions)
        await asyncio.sleep(0.1)

        assert completions == [ActionCompleted("cam", status)]
        assert supervisor.outstanding == []
        assert handle.returncode == status

    @pytest.mark.asyncio
    async def test_one_outstanding_process_per_device(self, tmp_path):
        completions: list[ActionCompleted] = []
        supervisor = ProcessSupervisor(on_complete=completions.append)
        gate = tmp_path / "gate"

        wait_for_gate = (
            "import os, time\n"
            f"while not os.path.exists({str(gate)!r}): time.sleep(0.02)\n"
        )
        await supervisor.spawn("cam", tmp_path, _script(wait_for_gate), tmp_path / "logfile")
        assert supervisor.outstanding == ["cam"]

        with pytest.raises(SpawnError):
            await supervisor.spawn("cam", tmp_path, _script("pass"), tmp_path / "logfile")

        # Other devices are unaffected
        other = tmp_path / "other"
        other.mkdir()
        await supervisor.spawn("other", other, _script("pass"), other / "logfile")

        gate.touch()
        await _wait_for(completions, count=2)
        assert sorted(c.device_id for c in completions) == ["cam", "other"]


# ---------------------------------------------------------------------------
# TestSpawnFailures
# ---------------------------------------------------------------------------


class TestSpawnFailures:
    """Start failures raise SpawnError and never complete."""

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        completions: list[ActionCompleted] = []
        supervisor = ProcessSupervisor(on_complete=completions.append)

        with pytest.raises(SpawnError) as exc_info:
            await supervisor.spawn("cam", tmp_path, ["/nonexistent/binary"], tmp_path / "logfile")

        assert exc_info.value.device_id == "cam"
        assert supervisor.outstanding == []
        await asyncio.sleep(0.05)
        assert completions == []

    @pytest.mark.asyncio
    async def test_missing_working_directory(self, tmp_path):
        supervisor = ProcessSupervisor(on_complete=lambda event: None)
        missing = tmp_path / "missing"

        with pytest.raises(SpawnError):
            await supervisor.spawn("cam", missing, _script("pass"), tmp_path / "logfile")
        assert supervisor.outstanding == []

    @pytest.mark.asyncio
    async def test_log_cannot_be_opened(self, tmp_path):
        supervisor = ProcessSupervisor(on_complete=lambda event: None)

        with pytest.raises(SpawnError):
            await supervisor.spawn("cam", tmp_path, _script("pass"), tmp_path / "missing" / "logfile")

    @pytest.mark.asyncio
    async def test_empty_argv(self, tmp_path):
        supervisor = ProcessSupervisor(on_complete=lambda event: None)

        with pytest.raises(SpawnError):
            await supervisor.spawn("cam", tmp_path, [], tmp_path / "logfile")


# ---------------------------------------------------------------------------
# TestShutdown
# ---------------------------------------------------------------------------


class TestShutdown:
    """shutdown() stops watching but leaves processes running."""

    @pytest.mark.asyncio
    async def test_shutdown_leaves_process_alive(self, tmp_path):
        completions: list[ActionCompleted] = []
        supervisor = ProcessSupervisor(on_complete=completions.append)
        gate = tmp_path / "gate"
        code = (
            "import os, time\n"
            f"while not os.path.exists({str(gate)!r}): time.sleep(0.02)\n"
        )

        handle = await supervisor.spawn("cam", tmp_path, _script(code), tmp_path / "logfile")
        await supervisor.shutdown()

        assert supervisor.outstanding == []
        assert handle.returncode is None

        gate.touch()
        assert await asyncio.wait_for(handle.process.wait(), timeout=10) == 0
        assert completions == []
