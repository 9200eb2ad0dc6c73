"""Handle around a spawned rsync process with pause/resume support."""

import asyncio
import logging
import signal
from typing import List, Optional, Sequence

from ...core.exceptions import BackpressureSignalFailure

# Windows has no stop/continue signals; there the coordinator simply stops
# reading stdout and the full pipe blocks the producer's writes instead.
PAUSE_SIGNAL = getattr(signal, "SIGSTOP", None)
RESUME_SIGNAL = getattr(signal, "SIGCONT", None)


class SuspendableProcess:
    """Wraps an ``asyncio.subprocess.Process`` spawned for discovery or transfer."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        command: Sequence[str],
        role: str,
    ):
        self._process = process
        self.command: List[str] = list(command)
        self.role = role
        self.paused = False

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    @property
    def stdout(self) -> Optional[asyncio.StreamReader]:
        return self._process.stdout

    def pause(self) -> None:
        """Stop the process cooperatively (SIGSTOP). Raises BackpressureSignalFailure if gone."""
        self._send(PAUSE_SIGNAL, "pause")
        self.paused = True

    def resume(self) -> None:
        """Continue a paused process (SIGCONT). Raises BackpressureSignalFailure if gone."""
        self.paused = False
        self._send(RESUME_SIGNAL, "resume")

    def _send(self, signum: Optional[int], action: str) -> None:
        if signum is None:
            logging.debug(
                f"No {action} signal on this platform for {self.role} process {self.pid}; "
                f"relying on pipe backpressure"
            )
            return

        if self._process.returncode is not None:
            raise BackpressureSignalFailure(self.pid, action)

        try:
            self._process.send_signal(signum)
        except ProcessLookupError as e:
            raise BackpressureSignalFailure(self.pid, action) from e

    async def write_stdin(self, data: bytes) -> None:
        stdin = self._process.stdin
        if stdin is None:
            raise RuntimeError(f"{self.role} process {self.pid} has no stdin pipe")

        try:
            stdin.write(data)
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            # The process died early; its exit code reports the failure
            logging.warning(
                f"{self.role} process {self.pid} closed its input after "
                f"{len(data):,} bytes were offered: {e}"
            )

    async def close_stdin(self) -> None:
        stdin = self._process.stdin
        if stdin is None or stdin.is_closing():
            return

        stdin.close()
        try:
            await stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            logging.debug(f"{self.role} process {self.pid} input already closed: {e}")

    async def wait(self) -> int:
        return await self._process.wait()

    def terminate(self) -> None:
        """Ask the process to exit (SIGTERM). A paused process is continued first."""
        if self._process.returncode is not None:
            return

        try:
            if self.paused and RESUME_SIGNAL is not None:
                # A stopped process only acts on SIGTERM once continued
                self._process.send_signal(RESUME_SIGNAL)
                self.paused = False
            self._process.terminate()
            logging.debug(f"Sent terminate to {self.role} process {self.pid}")
        except ProcessLookupError:
            logging.debug(f"{self.role} process {self.pid} already exited")

    def __str__(self) -> str:
        return f"{self.role}[pid={self.pid}]"
