"""Abstract launcher - spawns the discovery and transfer processes for a source."""

import logging
import shlex
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, List

from ...models import SyncSource
from .suspendable_process import SuspendableProcess


class BaseLauncher(ABC):
    """
    Spawns external processes and keeps track of the ones still running.

    Subclasses only decide how a process is started; the transfer lifecycle
    and interruption handling live here.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._processes: List[SuspendableProcess] = []

    @abstractmethod
    async def spawn_discovery(self, source: SyncSource) -> SuspendableProcess:
        """Start the discovery process for a source with stdout captured."""
        pass

    @abstractmethod
    async def spawn_transfer(self, source: SyncSource) -> SuspendableProcess:
        """Start a transfer process for a source with stdin as a pipe."""
        pass

    @asynccontextmanager
    async def transfer(self, source: SyncSource) -> AsyncIterator[SuspendableProcess]:
        """
        Scoped transfer process: spawn, let the caller write, close stdin, wait.

        Cleanup runs on every exit path. If the caller fails or is cancelled
        while writing, the process is terminated before being reaped.
        """
        process = await self.spawn_transfer(source)
        try:
            yield process
        except BaseException:
            process.terminate()
            raise
        finally:
            await process.close_stdin()
            await process.wait()

    def track(self, process: SuspendableProcess) -> SuspendableProcess:
        self._processes = [p for p in self._processes if p.returncode is None]
        self._processes.append(process)
        return process

    @property
    def running_processes(self) -> List[SuspendableProcess]:
        return [p for p in self._processes if p.returncode is None]

    def terminate_all(self) -> int:
        """Terminate every child process that is still running."""
        running = self.running_processes
        for process in running:
            process.terminate()

        if running:
            logging.warning(f"Terminated {len(running)} running rsync process(es)")
        return len(running)

    def echo_command(self, process: SuspendableProcess) -> None:
        message = f"Started {process}: {shlex.join(process.command)}"
        if self.verbose:
            logging.info(message)
        else:
            logging.debug(message)
