import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from idol_agent.lib.logger import configure_logger

logger = configure_logger(__name__)


@dataclass
class RunnerResult:
    """Base class for runner operation results."""

    success: bool
    message: str
    error: Optional[Exception] = None


T = TypeVar("T", bound=RunnerResult)


class JobType:
    """Job types registered at runtime by the @job decorator."""

    _job_types: Dict[str, "JobType"] = {}

    def __init__(self, value: str):
        self._value = value.lower()
        self._name = value.upper()

    @property
    def value(self) -> str:
        return self._value

    @property
    def name(self) -> str:
        return self._name

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"JobType.{self._name}"

    def __eq__(self, other) -> bool:
        if isinstance(other, JobType):
            return self._value == other._value
        if isinstance(other, str):
            return self._value == other.lower()
        return False

    def __hash__(self) -> int:
        return hash(self._value)

    @classmethod
    def get_or_create(cls, job_type: str) -> "JobType":
        """Get existing job type or create new one."""
        normalized = job_type.lower()
        if normalized not in cls._job_types:
            cls._job_types[normalized] = cls(normalized)
        return cls._job_types[normalized]


@dataclass
class JobContext:
    """Context for one run of a job."""

    job_type: JobType
    parameters: Optional[Dict[str, Any]] = None
    execution_id: Optional[str] = None


class BaseTask(ABC, Generic[T]):
    """Base class for all tasks.

    ``execute`` never raises: a failed validation or an exception escaping
    ``_execute_impl`` becomes a single failed result.
    """

    def __init__(self):
        self._start_time: Optional[float] = None

    @property
    def task_name(self) -> str:
        """Get the task name for logging purposes."""
        return self.__class__.__name__

    def _log_task_start(self, context: JobContext) -> None:
        self._start_time = time.time()
        logger.debug(
            f"Starting task: {self.task_name}",
            extra={"task_name": self.task_name, "execution_id": context.execution_id},
        )

    def _log_task_completion(self, results: List[T]) -> None:
        """Log task completion with standard format and metrics."""
        if not self._start_time:
            return

        duration = time.time() - self._start_time
        success_count = len([r for r in results if r.success])
        failure_count = len([r for r in results if not r.success])

        logger.info(
            f"Completed task: {self.task_name} in {duration:.2f}s - "
            f"Success: {success_count}, Failures: {failure_count}"
        )

        if failure_count > 0:
            for result in results:
                if not result.success:
                    logger.error(f"{self.task_name} failure: {result.message}")

    @classmethod
    def get_result_class(cls) -> Type[RunnerResult]:
        """Get the result class for this task."""
        return cls.__orig_bases__[0].__args__[0]  # type: ignore

    async def validate(self, context: JobContext) -> bool:
        """Check that the task has what it needs to run."""
        try:
            if not await self._validate_resources(context):
                logger.debug(f"{self.task_name}: Resource validation failed")
                return False
            return True
        except Exception as e:
            logger.error(
                f"Error in validation for {self.task_name}: {str(e)}", exc_info=True
            )
            return False

    async def _validate_resources(self, context: JobContext) -> bool:
        """Validate resource availability (network, APIs, etc.)."""
        return True

    async def execute(self, context: JobContext) -> List[T]:
        """Execute the task with given context."""
        self._log_task_start(context)
        result_class = self.get_result_class()

        if not await self.validate(context):
            logger.debug(f"{self.task_name}: Validation failed, skipping execution")
            return [result_class(success=False, message="Validation failed")]

        try:
            results = await self._execute_impl(context)
        except Exception as e:
            logger.error(f"Error executing {self.task_name}: {str(e)}", exc_info=True)
            return [
                result_class(
                    success=False,
                    message=f"Error executing task: {str(e)}",
                    error=e,
                )
            ]

        self._log_task_completion(results)
        return results

    @abstractmethod
    async def _execute_impl(self, context: JobContext) -> List[T]:
        """Implementation of task execution logic.
        This method should be implemented by subclasses."""
        pass
