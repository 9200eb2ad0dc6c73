# streamsync/core/exceptions.py

from typing import Optional, Sequence


class PipelineError(Exception):
    """Base exception for failures inside the batch-dispatch pipeline."""

    # Fatal errors stop the coordinator or worker that hit them
    fatal = False


class SpawnFailure(PipelineError):
    """Raised when an external process cannot be started."""

    fatal = True

    def __init__(self, role: str, command: Sequence[str], cause: Exception):
        self.role = role
        self.command = list(command)
        self.cause = cause
        super().__init__(
            f"Could not start {role} process '{self.command[0] if self.command else '?'}': {cause}"
        )


class ProcessExitFailure(PipelineError):
    """An external process exited with a non-zero code."""

    def __init__(self, role: str, pid: Optional[int], returncode: int):
        self.role = role
        self.pid = pid
        self.returncode = returncode
        super().__init__(f"{role} process {pid} exited with code {returncode}")


class BackpressureSignalFailure(PipelineError):
    """A pause/resume signal could not be delivered because the process is gone."""

    def __init__(self, pid: Optional[int], action: str):
        self.pid = pid
        self.action = action
        super().__init__(f"Could not {action} process {pid}: process has already exited")


class StreamReadFailure(PipelineError):
    """Reading discovery output failed; the stream is treated as finished."""

    def __init__(self, pid: Optional[int], cause: Exception):
        self.pid = pid
        self.cause = cause
        super().__init__(f"Error reading output of process {pid}: {cause}")


class WorkerPoolExhausted(PipelineError):
    """Every syncer worker of a source has stopped while paths were still queued."""

    fatal = True

    def __init__(self, source: str, pending: int):
        self.source = source
        self.pending = pending
        super().__init__(
            f"No syncer workers left for {source}; {pending} queued paths were not dispatched"
        )
