"""Job management for the scoring agent.

- Auto-discovery of job tasks
- Registry of task classes and their metadata
- Non-overlapping scheduling with graceful drain on shutdown
"""

from .auto_discovery import discover_and_register_tasks
from .base import BaseTask, JobContext, JobType, RunnerResult
from .decorators import JobMetadata, JobPriority, JobRegistry, job
from .job_manager import JobManager, JobScheduleConfig

__all__ = [
    "BaseTask",
    "JobContext",
    "JobType",
    "RunnerResult",
    "JobMetadata",
    "JobPriority",
    "JobRegistry",
    "job",
    "JobManager",
    "JobScheduleConfig",
    "discover_and_register_tasks",
]
