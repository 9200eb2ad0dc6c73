"""Spawning and controlling the external rsync processes."""

from .base_launcher import BaseLauncher
from .command_builder import RsyncCommandBuilder
from .subprocess_launcher import SubprocessLauncher
from .suspendable_process import SuspendableProcess

__all__ = [
    "BaseLauncher",
    "RsyncCommandBuilder",
    "SubprocessLauncher",
    "SuspendableProcess",
]
