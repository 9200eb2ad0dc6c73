"""
Pipeline orchestrator - one discovery coordinator per source, run concurrently.
"""

import asyncio
import logging
from typing import List, Optional

from ..config import Settings
from ..core.liveness import LivenessRegistry
from ..models import FinderReport, PipelineReport
from .finder import DiscoveryCoordinator
from .process.base_launcher import BaseLauncher


class PipelineOrchestrator:
    """Pure composition: start every finder, wait for all, report every failure."""

    def __init__(
        self,
        settings: Settings,
        launcher: BaseLauncher,
        liveness: Optional[LivenessRegistry] = None,
    ):
        self.settings = settings
        self.launcher = launcher
        self.liveness = liveness or LivenessRegistry()

        self._tasks: List[asyncio.Task] = []
        self._shutdown_requested = False

    def create_coordinators(self) -> List[DiscoveryCoordinator]:
        return [
            DiscoveryCoordinator(
                finder_id=f"finder-{i + 1}",
                source=source,
                settings=self.settings,
                liveness=self.liveness,
                launcher=self.launcher,
            )
            for i, source in enumerate(self.settings.sources)
        ]

    async def run(self) -> PipelineReport:
        coordinators = self.create_coordinators()
        logging.info(
            f"Starting {len(coordinators)} finder(s) with "
            f"{self.settings.syncers_per_finder} syncer(s) each, "
            f"batch size {self.settings.batch_size}, "
            f"queue size {self.settings.queue_capacity}, "
            f"timeout {self.settings.batch_timeout_seconds}s"
        )

        self._tasks = [
            asyncio.create_task(coordinator.run(), name=coordinator.finder_id)
            for coordinator in coordinators
        ]
        results = await asyncio.gather(*self._tasks, return_exceptions=True)

        report = PipelineReport(interrupted=self._shutdown_requested)
        for coordinator, result in zip(coordinators, results):
            if isinstance(result, FinderReport):
                report.finders.append(result)
            elif isinstance(result, asyncio.CancelledError):
                logging.warning(f"{coordinator.finder_id} was interrupted")
            else:
                logging.error(
                    f"{coordinator.finder_id} crashed: {result}", exc_info=result
                )
                report.errors.append(result)

        self._log_summary(report)
        return report

    def request_shutdown(self, reason: str = "shutdown requested") -> None:
        """Terminate every rsync process and cancel all finders and their syncers."""
        if self._shutdown_requested:
            return

        self._shutdown_requested = True
        logging.warning(f"Interrupting pipeline: {reason}")

        self.launcher.terminate_all()
        for task in self._tasks:
            if not task.done():
                task.cancel()

    def _log_summary(self, report: PipelineReport) -> None:
        logging.info(
            f"Pipeline finished: {report.paths_discovered:,} paths discovered, "
            f"{report.batches_dispatched} batches dispatched"
            + (" (interrupted)" if report.interrupted else "")
        )

        failures = report.failures
        if not failures:
            return

        logging.error(f"{len(failures)} failure(s) during the run:")
        for failure in failures:
            kind = "fatal" if getattr(failure, "fatal", True) else "non-fatal"
            logging.error(f"  [{kind}] {type(failure).__name__}: {failure}")
