"""
Syncer worker - drains one source's queue into batches and hands each batch
to its own rsync transfer process.
"""

import asyncio
import logging
from typing import Optional

from ..config import Settings
from ..core.exceptions import ProcessExitFailure, SpawnFailure
from ..core.liveness import LivenessRegistry
from ..models import Batch, BatchTrigger, SyncSource, TransferResult, WorkerReport
from .flow_queue import FlowControlledQueue
from .process.base_launcher import BaseLauncher


class SyncerWorker:
    def __init__(
        self,
        worker_id: str,
        finder_id: str,
        source: SyncSource,
        queue: FlowControlledQueue,
        liveness: LivenessRegistry,
        launcher: BaseLauncher,
        settings: Settings,
    ):
        self.worker_id = worker_id
        self.finder_id = finder_id
        self.source = source
        self.queue = queue
        self.liveness = liveness
        self.launcher = launcher
        self.settings = settings

    async def run(self) -> WorkerReport:
        """
        Assemble and dispatch batches until no more paths can arrive.

        The caller attaches this worker to the queue before scheduling it; the
        worker detaches itself when it stops.
        """
        report = WorkerReport(worker_id=self.worker_id)
        logging.debug(f"Syncer {self.worker_id} started for {self.source}")

        try:
            while True:
                batch = await self._assemble_batch(report.batches_dispatched + 1)

                if batch is None:
                    if await self._discovery_finished():
                        break
                    continue

                try:
                    result = await self._dispatch(batch)
                except SpawnFailure as e:
                    # Retrying the same batch would loop without fixing anything
                    logging.error(f"Syncer {self.worker_id} stopping: {e}")
                    report.errors.append(e)
                    break

                report.record(result)
        finally:
            await self.queue.detach_consumer()

        logging.info(
            f"Syncer {self.worker_id} finished: {report.batches_dispatched} batches, "
            f"{report.paths_dispatched:,} paths, {report.failed_batches} failed"
        )
        return report

    async def _assemble_batch(self, sequence: int) -> Optional[Batch]:
        """
        Collect up to batch_size paths.

        The assembly window opens with the first path, so a partial batch is
        closed no later than one timeout after its first path arrived.
        """
        loop = asyncio.get_running_loop()
        batch_size = self.settings.batch_size
        window = self.settings.batch_timeout_seconds

        paths = []
        deadline = None

        while len(paths) < batch_size:
            timeout = window if deadline is None else deadline - loop.time()
            if timeout <= 0:
                break

            result = await self.queue.pop(timeout)
            if result.timed_out:
                break

            if deadline is None:
                deadline = loop.time() + window
            paths.append(result.item)

        if not paths:
            return None

        trigger = BatchTrigger.FULL if len(paths) == batch_size else BatchTrigger.TIMEOUT
        return Batch(
            source=self.source,
            paths=paths,
            trigger=trigger,
            worker_id=self.worker_id,
            sequence=sequence,
        )

    async def _discovery_finished(self) -> bool:
        # A path may land between a timed-out pop and the last deregistration
        if not self.queue.empty():
            return False

        finished = await self.liveness.discovery_finished(
            self.finder_id, self.settings.worker_exit_scope
        )
        return finished and self.queue.empty()

    async def _dispatch(self, batch: Batch) -> TransferResult:
        loop = asyncio.get_running_loop()
        started = loop.time()

        logging.info(
            f"📦 {self.worker_id}: dispatching batch #{batch.sequence} "
            f"with {len(batch)} paths (closed by {batch.trigger.value})"
        )

        async with self.launcher.transfer(self.source) as process:
            await process.write_stdin(batch.encode())

        result = TransferResult(
            batch=batch,
            returncode=process.returncode,
            duration_seconds=loop.time() - started,
        )

        if result.success:
            logging.debug(f"Transfer completed: {result}")
        else:
            result.error = ProcessExitFailure(process.role, process.pid, process.returncode)
            logging.warning(f"❌ {result.error} ({result})")

        return result
