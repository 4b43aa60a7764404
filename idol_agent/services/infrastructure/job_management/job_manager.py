"""Job manager that runs registered tasks on a self-rearming schedule."""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from idol_agent.config import config
from idol_agent.lib.logger import configure_logger

from .base import JobContext, JobType, RunnerResult
from .decorators import JobMetadata, JobRegistry

logger = configure_logger(__name__)


@dataclass
class JobScheduleConfig:
    """Configuration for a scheduled job."""

    job_type: str
    metadata: JobMetadata
    enabled: bool
    interval_seconds: int


class JobManager:
    """Schedules registered jobs so that runs of the same job never overlap.

    Each job is added as a one-shot ``date`` trigger. When a run returns, the
    next one is armed ``interval_seconds`` later, so the wait is measured from
    the end of a run rather than at a fixed rate.
    """

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._intervals: Dict[str, int] = {}
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._stopping = False

    def get_all_jobs(self) -> List[JobScheduleConfig]:
        """Get configurations for all registered jobs."""
        jobs = []
        for job_type, metadata in JobRegistry.list_jobs().items():
            jobs.append(
                JobScheduleConfig(
                    job_type=job_type.value,
                    metadata=metadata,
                    enabled=self._is_job_enabled(job_type, metadata),
                    interval_seconds=self._get_job_interval(job_type, metadata),
                )
            )
        return jobs

    def _is_job_enabled(self, job_type: JobType, metadata: JobMetadata) -> bool:
        """Check the scheduler config for a ``<job_type>_enabled`` override."""
        return getattr(config.scheduler, f"{job_type.value}_enabled", metadata.enabled)

    def _get_job_interval(self, job_type: JobType, metadata: JobMetadata) -> int:
        """Check the scheduler config for a ``<job_type>_interval_seconds`` override."""
        return getattr(
            config.scheduler,
            f"{job_type.value}_interval_seconds",
            metadata.interval_seconds,
        )

    def schedule_jobs(self, scheduler: AsyncIOScheduler) -> bool:
        """Arm the first run of every enabled job. Returns True if any was armed."""
        self._scheduler = scheduler
        self._stopping = False

        scheduled_count = 0
        for job_config in self.get_all_jobs():
            if not job_config.enabled:
                logger.info(
                    "Job disabled - skipping scheduling",
                    extra={
                        "job_name": job_config.metadata.name,
                        "job_type": job_config.job_type,
                        "event_type": "job_disabled",
                    },
                )
                continue

            self._intervals[job_config.job_type] = job_config.interval_seconds
            self._arm(job_config.job_type, delay_seconds=0)
            scheduled_count += 1
            logger.info(
                "Job scheduled successfully",
                extra={
                    "job_name": job_config.metadata.name,
                    "job_type": job_config.job_type,
                    "interval_seconds": job_config.interval_seconds,
                    "priority": str(job_config.metadata.priority),
                    "event_type": "schedule_success",
                },
            )

        return scheduled_count > 0

    def _arm(self, job_type: str, delay_seconds: float) -> None:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        self._scheduler.add_job(
            self._run_scheduled,
            "date",
            run_date=run_date,
            id=f"{job_type}_scheduler",
            args=[job_type],
            max_instances=1,
            misfire_grace_time=None,
            replace_existing=True,
        )

    async def _run_scheduled(self, job_type: str) -> None:
        """Scheduler entry point: run the job, then arm the next run."""
        self._in_flight[job_type] = asyncio.current_task()
        try:
            await self.run_job_once(job_type)
        finally:
            self._in_flight.pop(job_type, None)
            if not self._stopping and self._scheduler is not None:
                self._arm(job_type, delay_seconds=self._intervals.get(job_type, 60))

    async def run_job_once(
        self, job_type: str, parameters: Optional[Dict[str, Any]] = None
    ) -> List[RunnerResult]:
        """Execute one run of a registered job and return its results."""
        job_type_enum = JobType.get_or_create(job_type)
        task = JobRegistry.get_instance(job_type_enum)
        if task is None:
            logger.error(
                "Job not registered",
                extra={"job_type": job_type, "event_type": "metadata_error"},
            )
            return []

        context = JobContext(
            job_type=job_type_enum,
            parameters=parameters,
            execution_id=str(uuid.uuid4()),
        )

        logger.debug(
            "Job execution started",
            extra={
                "job_type": job_type,
                "execution_id": context.execution_id,
                "event_type": "job_start",
            },
        )
        results = await task.execute(context)
        logger.debug(
            "Job execution finished",
            extra={
                "job_type": job_type,
                "execution_id": context.execution_id,
                "results": len(results),
                "event_type": "job_end",
            },
        )
        return results

    async def stop(self) -> None:
        """Stop arming new runs and wait for in-flight runs to finish."""
        self._stopping = True

        if self._scheduler is not None:
            for job_type in self._intervals:
                scheduler_id = f"{job_type}_scheduler"
                if self._scheduler.get_job(scheduler_id):
                    self._scheduler.remove_job(scheduler_id)

        in_flight = list(self._in_flight.values())
        if in_flight:
            logger.info(
                "Waiting for in-flight jobs to finish",
                extra={"count": len(in_flight), "event_type": "drain_start"},
            )
            await asyncio.gather(*in_flight, return_exceptions=True)

        logger.info("Job manager stopped", extra={"event_type": "job_manager_stopped"})
