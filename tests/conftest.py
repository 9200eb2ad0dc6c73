"""
Pytest configuration og shared fixtures.

FakeLauncher stands in for rsync: discovery output is scripted per source and
every transfer batch is recorded instead of copied.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Set

import pytest

from streamsync.config import Settings
from streamsync.core.exceptions import BackpressureSignalFailure, SpawnFailure
from streamsync.dependencies import reset_singletons
from streamsync.models import SyncSource
from streamsync.services.process.base_launcher import BaseLauncher

ITEMIZE_PREFIX = ">f+++++++++ "


class FakeDiscoveryProcess:
    role = "discovery"

    def __init__(self, pid: int, returncode: int = 0):
        self.pid = pid
        self.command = ["rsync", "--dry-run", "--out-format=%i %n"]
        self.stdout = asyncio.StreamReader()
        self.returncode: Optional[int] = None
        self.paused = False
        self.signals: List[str] = []
        self._exit_code = returncode
        self._exited = asyncio.Event()

    def emit(self, *paths: str) -> None:
        for path in paths:
            self.stdout.feed_data(f"{ITEMIZE_PREFIX}{path}\n".encode())

    def finish(self, returncode: Optional[int] = None) -> None:
        if self.returncode is not None:
            return
        self.stdout.feed_eof()
        self.returncode = self._exit_code if returncode is None else returncode
        self._exited.set()

    async def wait_until_running(self) -> None:
        while self.paused:
            await asyncio.sleep(0.01)

    def pause(self) -> None:
        if self.returncode is not None:
            raise BackpressureSignalFailure(self.pid, "pause")
        self.paused = True
        self.signals.append("pause")

    def resume(self) -> None:
        self.paused = False
        if self.returncode is not None:
            raise BackpressureSignalFailure(self.pid, "resume")
        self.signals.append("resume")

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode

    def terminate(self) -> None:
        if self.returncode is None:
            self.signals.append("terminate")
            self.finish(-15)

    def __str__(self) -> str:
        return f"discovery[pid={self.pid}]"


@dataclass
class RecordedBatch:
    source: str
    paths: List[str]
    finished_at: float


class FakeTransferProcess:
    role = "transfer"

    def __init__(self, launcher: "FakeLauncher", source: SyncSource, pid: int):
        self.pid = pid
        self.command = ["rsync", "--files-from=-", "--from0", source.transfer_path, source.destination]
        self.returncode: Optional[int] = None
        self.paused = False
        self.data = bytearray()
        self.stdin_closed = False
        self._launcher = launcher
        self._source = source

    async def write_stdin(self, data: bytes) -> None:
        self.data.extend(data)

    async def close_stdin(self) -> None:
        self.stdin_closed = True

    async def wait(self) -> int:
        if self.returncode is None:
            await self._launcher.transfer_gate.wait()
            self.returncode = self._launcher.transfer_returncode
            self._launcher.record(self._source, bytes(self.data))
        return self.returncode

    def terminate(self) -> None:
        if self.returncode is None:
            self.returncode = -15

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass


Feeder = Callable[[FakeDiscoveryProcess], Awaitable[None]]


async def finish_immediately(process: FakeDiscoveryProcess) -> None:
    process.finish()


def emit_then_exit(*paths: str, delay: float = 0.0) -> Feeder:
    """Feeder emitting all paths at once, then exiting after ``delay`` seconds."""

    async def feeder(process: FakeDiscoveryProcess) -> None:
        process.emit(*paths)
        if delay:
            await asyncio.sleep(delay)
        process.finish()

    return feeder


class FakeLauncher(BaseLauncher):
    def __init__(self):
        super().__init__(verbose=True)
        self.scripts: Dict[str, Feeder] = {}
        self.discovery_returncodes: Dict[str, int] = {}
        self.discovery_processes: Dict[str, FakeDiscoveryProcess] = {}
        self.fail_discovery_spawn: Set[str] = set()
        self.fail_transfer_spawn = False
        self.transfer_returncode = 0
        self.transfer_gate = asyncio.Event()
        self.transfer_gate.set()
        self.transfers_spawned = 0
        self.batches: List[RecordedBatch] = []
        self._feeders: List[asyncio.Task] = []
        self._next_pid = 1000

    def script(self, source: str, feeder: Feeder, returncode: int = 0) -> None:
        self.scripts[source] = feeder
        self.discovery_returncodes[source] = returncode

    async def spawn_discovery(self, source: SyncSource):
        if source.original in self.fail_discovery_spawn:
            raise SpawnFailure("discovery", ["rsync"], FileNotFoundError("rsync"))

        process = FakeDiscoveryProcess(
            self._pid(), self.discovery_returncodes.get(source.original, 0)
        )
        self.discovery_processes[source.original] = process
        feeder = self.scripts.get(source.original, finish_immediately)
        self._feeders.append(asyncio.create_task(feeder(process)))
        return self.track(process)

    async def spawn_transfer(self, source: SyncSource):
        if self.fail_transfer_spawn:
            raise SpawnFailure("transfer", ["rsync"], FileNotFoundError("rsync"))

        self.transfers_spawned += 1
        return self.track(FakeTransferProcess(self, source, self._pid()))

    def record(self, source: SyncSource, data: bytes) -> None:
        paths = [p.decode() for p in data.split(b"\0")] if data else []
        self.batches.append(
            RecordedBatch(source.original, paths, asyncio.get_running_loop().time())
        )

    def batches_for(self, source: str) -> List[List[str]]:
        return [batch.paths for batch in self.batches if batch.source == source]

    def _pid(self) -> int:
        self._next_pid += 1
        return self._next_pid


@pytest.fixture(autouse=True)
def clean_singletons():
    """Automatically reset singletons before hver test."""
    reset_singletons()
    yield
    reset_singletons()


@pytest.fixture
def fake_launcher():
    return FakeLauncher()


@pytest.fixture
def make_settings():
    """Settings factory with short timeouts and no settings files."""

    def factory(**overrides) -> Settings:
        values = dict(
            sources=["/src/a"],
            destination="/dst",
            batch_size=3,
            batch_timeout_seconds=0.2,
            syncers_per_finder=1,
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def feeders():
    """Access to the feeder helpers without importing from conftest."""

    class _Feeders:
        emit_then_exit = staticmethod(emit_then_exit)
        finish_immediately = staticmethod(finish_immediately)

    return _Feeders
