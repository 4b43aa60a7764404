"""Startup service: continuous and one-shot operation of the scoring agent."""

import asyncio
import signal
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from idol_agent.config import Config, config
from idol_agent.lib.logger import configure_logger
from idol_agent.services.infrastructure.job_management import (
    JobManager,
    RunnerResult,
    discover_and_register_tasks,
)

logger = configure_logger(__name__)

RECONCILER_JOB_TYPE = "project_score_reconciler"


class StartupService:
    """Manages job system startup, signal handling and graceful shutdown."""

    def __init__(
        self,
        scheduler: Optional[AsyncIOScheduler] = None,
        app_config: Optional[Config] = None,
    ):
        self.scheduler = scheduler or AsyncIOScheduler()
        self.config = app_config or config
        self.job_manager: Optional[JobManager] = None
        self.shutdown_event = asyncio.Event()

    def initialize_job_system(self) -> JobManager:
        """Validate configuration and register all tasks.

        Raises:
            ConfigurationError: if required configuration is missing
        """
        self.config.validate()
        self.job_manager = JobManager()
        discover_and_register_tasks()
        logger.info("Job system initialized", extra={"event_type": "job_system_init"})
        return self.job_manager

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._handle_signal, signum)
            except NotImplementedError:
                # Windows event loops do not support signal handlers
                signal.signal(signum, lambda s, f: self._handle_signal(s))

    def _handle_signal(self, signum: int) -> None:
        logger.info(
            "Shutdown signal received - initiating graceful shutdown",
            extra={"signal": signum, "event_type": "shutdown_signal"},
        )
        self.shutdown_event.set()

    async def start(self) -> None:
        """Start the scheduler with every enabled job armed."""
        job_manager = self.initialize_job_system()
        if not job_manager.schedule_jobs(self.scheduler):
            logger.warning(
                "No jobs were scheduled - scheduler will not be started",
                extra={"event_type": "no_jobs_scheduled"},
            )
            return

        self.scheduler.start()
        logger.info(
            "Job scheduler started successfully",
            extra={
                "active_jobs": len(self.scheduler.get_jobs()),
                "event_type": "scheduler_started",
            },
        )

    async def shutdown(self) -> None:
        """Let the in-flight run finish, then stop the scheduler."""
        logger.info("Initiating shutdown sequence", extra={"event_type": "shutdown_start"})

        if self.job_manager:
            await self.job_manager.stop()

        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Job scheduler stopped", extra={"event_type": "scheduler_stopped"})

        logger.info("Shutdown complete", extra={"event_type": "shutdown_complete"})

    async def run_standalone(self) -> None:
        """Run the reconciliation loop until SIGINT/SIGTERM."""
        self._install_signal_handlers()
        await self.start()
        logger.info(
            "AI agent started listening for new projects - Press Ctrl+C to stop",
            extra={"event_type": "services_running"},
        )
        try:
            await self.shutdown_event.wait()
        finally:
            await self.shutdown()

    async def run_once(self) -> bool:
        """Process every currently unprocessed project once.

        A failed project does not stop the pass; later projects are still
        evaluated and committed.

        Returns:
            True when no project failed
        """
        job_manager = self.initialize_job_system()
        results: List[RunnerResult] = await job_manager.run_job_once(
            RECONCILER_JOB_TYPE,
            parameters={
                "evaluation_delay_seconds": self.config.scheduler.evaluate_all_delay_seconds,
                "continue_on_failure": True,
            },
        )

        failures = [r for r in results if not r.success]
        logger.info(
            "One-shot evaluation finished",
            extra={
                "processed": len(results),
                "failures": len(failures),
                "failed_projects": [
                    getattr(r, "project_id", None) for r in failures
                ]
                or None,
                "event_type": "run_once_complete",
            },
        )
        return not failures
