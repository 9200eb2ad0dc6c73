"""
Discovery coordinator ("finder") - one per source.

Runs ``rsync --dry-run`` for its source, streams the discovered paths into the
source's queue and pauses rsync whenever the queue reaches capacity. The
syncer workers for the source are started first so batches go out while
discovery is still running.
"""

import asyncio
import logging
from typing import List

from ..config import Settings
from ..core.exceptions import (
    BackpressureSignalFailure,
    ProcessExitFailure,
    SpawnFailure,
    WorkerPoolExhausted,
)
from ..core.liveness import LivenessRegistry
from ..models import FinderReport, SyncSource, WorkerReport
from .flow_queue import FlowControlledQueue
from .path_stream import PathStreamReader
from .process.base_launcher import BaseLauncher
from .process.suspendable_process import SuspendableProcess
from .syncer import SyncerWorker


class DiscoveryCoordinator:
    def __init__(
        self,
        finder_id: str,
        source: str,
        settings: Settings,
        liveness: LivenessRegistry,
        launcher: BaseLauncher,
    ):
        self.finder_id = finder_id
        self.settings = settings
        self.liveness = liveness
        self.launcher = launcher

        self.source = SyncSource.resolve(source, settings.destination)
        self.queue = FlowControlledQueue(
            settings.queue_capacity, name=f"{finder_id} queue"
        )
        self._workers: List[asyncio.Task] = []

    async def run(self) -> FinderReport:
        report = FinderReport(finder_id=self.finder_id, source=self.source)
        logging.info(f"🔎 {self.finder_id}: discovering {self.source}")

        await self.liveness.register(self.finder_id)
        self._start_workers()

        try:
            await self._discover(report)
        except asyncio.CancelledError:
            for worker in self._workers:
                worker.cancel()
            raise
        finally:
            await self.liveness.deregister(self.finder_id)
            report.workers = await self._join_workers()

        if not self.queue.empty() and not any(
            isinstance(error, WorkerPoolExhausted) for error in report.errors
        ):
            failure = WorkerPoolExhausted(str(self.source), self.queue.size)
            logging.error(f"{self.finder_id}: {failure}")
            report.errors.append(failure)

        logging.info(
            f"{self.finder_id} finished: {report.paths_discovered:,} paths discovered, "
            f"{report.batches_dispatched} batches dispatched, paused {report.pauses} times"
        )
        return report

    def _start_workers(self) -> None:
        for i in range(self.settings.syncers_per_finder):
            worker = SyncerWorker(
                worker_id=f"{self.finder_id}-syncer-{i + 1}",
                finder_id=self.finder_id,
                source=self.source,
                queue=self.queue,
                liveness=self.liveness,
                launcher=self.launcher,
                settings=self.settings,
            )
            # Attach now so backpressure never sees a pool that has not started yet
            self.queue.attach_consumer()
            self._workers.append(
                asyncio.create_task(worker.run(), name=worker.worker_id)
            )

        logging.debug(f"Started {len(self._workers)} syncer workers for {self.finder_id}")

    async def _join_workers(self) -> List[WorkerReport]:
        results = await asyncio.gather(*self._workers, return_exceptions=True)

        reports = []
        for task, result in zip(self._workers, results):
            if isinstance(result, WorkerReport):
                reports.append(result)
            elif isinstance(result, asyncio.CancelledError):
                logging.debug(f"Syncer {task.get_name()} was cancelled")
            else:
                logging.error(
                    f"Syncer {task.get_name()} crashed: {result}", exc_info=result
                )
        return reports

    async def _discover(self, report: FinderReport) -> None:
        try:
            process = await self.launcher.spawn_discovery(self.source)
        except SpawnFailure as e:
            logging.error(f"{self.finder_id}: {e}")
            report.errors.append(e)
            return

        reader = PathStreamReader(
            process.stdout,
            self.settings.prefix_length,
            pid=process.pid,
            itemized=self.settings.itemized_output,
            link_suffix=self.settings.link_suffix,
        )
        stopped_early = False

        try:
            async for path in reader:
                self.queue.push(path)
                report.paths_discovered += 1

                if self.queue.size >= self.settings.queue_capacity:
                    if not await self._apply_backpressure(process, report):
                        stopped_early = True
                        break

            if reader.failure is not None:
                report.errors.append(reader.failure)
                stopped_early = True

            if stopped_early:
                # Nobody reads the pipe any more, so rsync would block forever
                process.terminate()

            returncode = await process.wait()
        finally:
            if process.returncode is None:
                process.terminate()
                await process.wait()

        report.discovery_returncode = returncode
        if returncode != 0 and not stopped_early:
            failure = ProcessExitFailure(process.role, process.pid, returncode)
            logging.warning(
                f"{self.finder_id}: {failure}; {report.paths_discovered:,} paths already queued "
                f"will still be dispatched"
            )
            report.errors.append(failure)

    async def _apply_backpressure(
        self, process: SuspendableProcess, report: FinderReport
    ) -> bool:
        """
        Pause discovery until the queue drains below capacity, then resume it.

        Returns False when no syncer workers are left to drain the queue.
        """
        capacity = self.settings.queue_capacity
        report.pauses += 1

        self._echo(
            f"⏸️ {self.finder_id}: queue at {self.queue.size}/{capacity}, "
            f"pausing discovery {process}"
        )
        self._signal(process, "pause", report)

        has_consumers = await self.queue.wait_below(capacity)

        self._signal(process, "resume", report)
        self._echo(
            f"▶️ {self.finder_id}: queue at {self.queue.size}/{capacity}, "
            f"resumed discovery {process}"
        )

        if not has_consumers:
            failure = WorkerPoolExhausted(str(self.source), self.queue.size)
            logging.error(f"{self.finder_id}: {failure}")
            report.errors.append(failure)
            return False

        return True

    def _signal(self, process: SuspendableProcess, action: str, report: FinderReport) -> None:
        try:
            if action == "pause":
                process.pause()
            else:
                process.resume()
        except BackpressureSignalFailure as e:
            logging.warning(f"{self.finder_id}: {e} (ignored)")
            report.errors.append(e)

    def _echo(self, message: str) -> None:
        if self.settings.verbose:
            logging.info(message)
        else:
            logging.debug(message)

