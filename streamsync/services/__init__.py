# Streaming pipeline: path stream -> flow-controlled queue -> syncer workers -> rsync transfers.
from .finder import DiscoveryCoordinator
from .flow_queue import FlowControlledQueue
from .orchestrator import PipelineOrchestrator
from .path_stream import PathStreamReader
from .syncer import SyncerWorker

__all__ = [
    "DiscoveryCoordinator",
    "FlowControlledQueue",
    "PipelineOrchestrator",
    "PathStreamReader",
    "SyncerWorker",
]
