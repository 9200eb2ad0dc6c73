import os
import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .core.exceptions import PipelineError


class BatchTrigger(str, Enum):
    """What closed a batch before it was dispatched."""

    FULL = "full"  # batch_size paths collected
    TIMEOUT = "timeout"  # assembly window ran out first


def is_single_entry(source: str) -> bool:
    """True for an existing local file or symlink, which rsync copies as itself."""
    return os.path.islink(source) or (
        os.path.exists(source) and not os.path.isdir(source)
    )


def join_destination(destination: str, name: str) -> str:
    # "host:" is the remote home directory; posixpath.join would make it "host:/name"
    if destination.endswith(":"):
        return destination + name
    return posixpath.join(destination, name)


class SyncSource(BaseModel):
    """
    En kilde med tilhørende destination.

    A directory ``path`` always ends with a separator so rsync syncs the
    directory contents; when the user named the directory itself, its basename
    is moved onto the destination instead. Both the discovery and the transfer
    process therefore see identical relative paths.

    A single local entry (a file or a symlink) is discovered as itself, while
    its transfer reads the batch relative to the parent directory.
    """

    model_config = ConfigDict(frozen=True)

    original: str = Field(..., description="Source path as given by the user")
    path: str = Field(..., description="Source path handed to the discovery process")
    transfer_path: str = Field(..., description="Directory the transfer's file list is relative to")
    destination: str = Field(..., description="Destination matching the normalized source")

    @classmethod
    def resolve(cls, source: str, destination: str) -> "SyncSource":
        if source.endswith(("/", os.sep)):
            return cls(
                original=source, path=source, transfer_path=source, destination=destination
            )

        if is_single_entry(source):
            parent = os.path.dirname(source) or "."
            return cls(
                original=source,
                path=source,
                transfer_path=os.path.join(parent, ""),
                destination=destination,
            )

        # rsync remote sources ("host:path") use POSIX separators
        name = posixpath.basename(posixpath.normpath(source.replace(os.sep, "/")))
        if ":" in name:
            name = name.split(":", 1)[1]

        path = source + "/"
        if name in ("", ".", ".."):
            return cls(original=source, path=path, transfer_path=path, destination=destination)

        return cls(
            original=source,
            path=path,
            transfer_path=path,
            destination=join_destination(destination, name),
        )

    def __str__(self) -> str:
        return f"{self.path} -> {self.destination}"


@dataclass
class PopResult:
    """Outcome of a timed queue pop: either an item or a timeout."""

    item: Optional[str] = None

    @property
    def timed_out(self) -> bool:
        return self.item is None


@dataclass
class Batch:
    """A group of discovered paths handed to one transfer process."""

    source: SyncSource
    paths: List[str]
    trigger: BatchTrigger
    worker_id: str
    sequence: int
    created_at: datetime = field(default_factory=datetime.now)

    def encode(self) -> bytes:
        """NUL-separated path list, as read by ``rsync --files-from=- --from0``."""
        return b"\0".join(os.fsencode(path) for path in self.paths)

    def __len__(self) -> int:
        return len(self.paths)

    def __str__(self) -> str:
        return (
            f"Batch({self.worker_id}#{self.sequence}, "
            f"paths={len(self.paths)}, "
            f"trigger={self.trigger.value})"
        )


@dataclass
class TransferResult:
    """Result of dispatching one batch to a transfer process."""

    batch: Batch
    returncode: int
    duration_seconds: float
    error: Optional[PipelineError] = None

    @property
    def success(self) -> bool:
        return self.returncode == 0

    def __str__(self) -> str:
        status = "SUCCESS" if self.success else f"FAILED({self.returncode})"
        return (
            f"TransferResult({status}, "
            f"batch={self.batch}, "
            f"time={self.duration_seconds:.2f}s)"
        )


@dataclass
class WorkerReport:
    worker_id: str
    batches_dispatched: int = 0
    paths_dispatched: int = 0
    failed_batches: int = 0
    errors: List[PipelineError] = field(default_factory=list)

    def record(self, result: TransferResult) -> None:
        self.batches_dispatched += 1
        self.paths_dispatched += len(result.batch)
        if not result.success:
            self.failed_batches += 1
        if result.error is not None:
            self.errors.append(result.error)


@dataclass
class FinderReport:
    """
    Everything one discovery coordinator and its syncer workers did.

    Errors are kept rather than raised so one source never aborts another.
    """

    finder_id: str
    source: SyncSource
    paths_discovered: int = 0
    pauses: int = 0
    discovery_returncode: Optional[int] = None
    errors: List[PipelineError] = field(default_factory=list)
    workers: List[WorkerReport] = field(default_factory=list)

    @property
    def batches_dispatched(self) -> int:
        return sum(worker.batches_dispatched for worker in self.workers)

    @property
    def paths_dispatched(self) -> int:
        return sum(worker.paths_dispatched for worker in self.workers)

    @property
    def all_errors(self) -> List[PipelineError]:
        errors = list(self.errors)
        for worker in self.workers:
            errors.extend(worker.errors)
        return errors


@dataclass
class PipelineReport:
    finders: List[FinderReport] = field(default_factory=list)
    errors: List[BaseException] = field(default_factory=list)
    interrupted: bool = False

    @property
    def failures(self) -> List[BaseException]:
        failures: List[BaseException] = list(self.errors)
        for finder in self.finders:
            failures.extend(finder.all_errors)
        return failures

    @property
    def fatal_failures(self) -> List[BaseException]:
        # Unexpected exceptions are not PipelineErrors and always count as fatal
        return [
            failure
            for failure in self.failures
            if getattr(failure, "fatal", True)
        ]

    @property
    def paths_discovered(self) -> int:
        return sum(finder.paths_discovered for finder in self.finders)

    @property
    def batches_dispatched(self) -> int:
        return sum(finder.batches_dispatched for finder in self.finders)

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return 130
        if self.fatal_failures:
            return 1
        return 0
