"""Launcher backed by real child processes."""

import asyncio
from typing import List, Optional

from ...config import Settings
from ...core.exceptions import SpawnFailure
from ...models import SyncSource
from .base_launcher import BaseLauncher
from .command_builder import RsyncCommandBuilder
from .suspendable_process import SuspendableProcess

# Longest discovery line accepted before the stream counts as unreadable
STREAM_LIMIT = 1024 * 1024


class SubprocessLauncher(BaseLauncher):
    def __init__(self, settings: Settings, command_builder: Optional[RsyncCommandBuilder] = None):
        super().__init__(verbose=settings.verbose)
        self.settings = settings
        self.command_builder = command_builder or RsyncCommandBuilder(settings)

    async def spawn_discovery(self, source: SyncSource) -> SuspendableProcess:
        return await self._spawn(
            self.command_builder.discovery_command(source),
            role="discovery",
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
        )

    async def spawn_transfer(self, source: SyncSource) -> SuspendableProcess:
        return await self._spawn(
            self.command_builder.transfer_command(source),
            role="transfer",
            stdin=asyncio.subprocess.PIPE,
            stdout=None,
        )

    async def _spawn(self, command: List[str], role: str, stdin, stdout) -> SuspendableProcess:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=stdin,
                stdout=stdout,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            # FileNotFoundError, PermissionError and friends
            raise SpawnFailure(role, command, e) from e

        handle = SuspendableProcess(process, command, role)
        self.echo_command(handle)
        return self.track(handle)
