"""Job registration decorators and metadata system."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Type, TypeVar, Union

from idol_agent.lib.logger import configure_logger

from .base import BaseTask, JobType

logger = configure_logger(__name__)

T = TypeVar("T", bound=BaseTask)


class JobPriority(Enum):
    """Job execution priority levels."""

    LOW = 1
    NORMAL = 2
    MEDIUM = 3
    HIGH = 4
    CRITICAL = 5

    def __str__(self):
        return self.name.lower()


@dataclass
class JobMetadata:
    """Metadata for job configuration and execution."""

    job_type: JobType
    name: str
    description: str = ""

    enabled: bool = True
    interval_seconds: int = 60
    priority: JobPriority = JobPriority.NORMAL


class JobRegistry:
    """Registry of job task classes, their metadata and shared instances."""

    _jobs: Dict[JobType, Type[BaseTask]] = {}
    _metadata: Dict[JobType, JobMetadata] = {}
    _instances: Dict[JobType, BaseTask] = {}

    @classmethod
    def register(
        cls,
        job_type: Union[JobType, str],
        **kwargs,
    ) -> Callable[[Type[T]], Type[T]]:
        """Decorator to register a job task with metadata.

        Args:
            job_type: The job type or string
            **kwargs: JobMetadata fields
        """

        def decorator(task_class: Type[T]) -> Type[T]:
            if isinstance(job_type, str):
                job_enum = JobType.get_or_create(job_type)
            else:
                job_enum = job_type

            meta = JobMetadata(
                job_type=job_enum,
                name=kwargs.get("name") or task_class.__name__,
                description=kwargs.get("description") or task_class.__doc__ or "",
                **{
                    k: v
                    for k, v in kwargs.items()
                    if k not in ["name", "description"]
                },
            )

            cls._jobs[job_enum] = task_class
            cls._metadata[job_enum] = meta

            logger.debug(
                f"Registered job: {job_enum} -> {task_class.__name__} "
                f"(enabled: {meta.enabled}, interval: {meta.interval_seconds}s)"
            )

            return task_class

        return decorator

    @classmethod
    def get_task_class(cls, job_type: JobType) -> Optional[Type[BaseTask]]:
        """Get the task class for a job type."""
        return cls._jobs.get(job_type)

    @classmethod
    def get_instance(cls, job_type: JobType) -> Optional[BaseTask]:
        """Get or create a task instance for a job type.

        Instances are shared so that state a task keeps between runs survives.
        """
        if job_type not in cls._instances:
            task_class = cls.get_task_class(job_type)
            if task_class:
                cls._instances[job_type] = task_class()
        return cls._instances.get(job_type)

    @classmethod
    def set_instance(cls, job_type: JobType, instance: BaseTask) -> None:
        """Use a pre-built task instance for a job type."""
        cls._instances[job_type] = instance

    @classmethod
    def list_jobs(cls) -> Dict[JobType, JobMetadata]:
        """List all registered jobs and their metadata."""
        return cls._metadata.copy()

    @classmethod
    def clear_instances(cls) -> None:
        """Drop shared task instances (useful for testing)."""
        cls._instances.clear()


def job(
    job_type: Union[JobType, str],
    name: Optional[str] = None,
    description: Optional[str] = None,
    **kwargs,
) -> Callable[[Type[T]], Type[T]]:
    """Convenience decorator for job registration.

    Example:
        @job("my_new_job", name="My New Job", interval_seconds=30)
        class MyNewJobTask(BaseTask[MyJobResult]):
            pass
    """
    return JobRegistry.register(
        job_type=job_type,
        name=name,
        description=description,
        **kwargs,
    )
