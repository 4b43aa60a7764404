"""Project score reconciler task implementation."""

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

from idol_agent.backend.models import CommitStatus, PendingCommit, ProjectState
from idol_agent.config import config
from idol_agent.lib.errors import ChainReadError, ChainWriteError
from idol_agent.lib.logger import configure_logger
from idol_agent.services.ai.evaluation import ProjectEvaluator
from idol_agent.services.infrastructure.job_management.base import (
    BaseTask,
    JobContext,
    RunnerResult,
)
from idol_agent.services.infrastructure.job_management.decorators import (
    JobPriority,
    job,
)
from idol_agent.services.integrations.registry import (
    RegistryReader,
    RegistryWriter,
    build_registry_clients,
)

logger = configure_logger(__name__)


@dataclass
class ProjectScoreResult(RunnerResult):
    """Outcome for one project within a reconciliation pass."""

    project_id: Optional[int] = None
    state: Optional[ProjectState] = None
    score: Optional[int] = None
    tx_hash: Optional[str] = None
    fallback: bool = False


@job(
    job_type="project_score_reconciler",
    name="Project Score Reconciler",
    description="Evaluates newly submitted registry projects and commits their scores on-chain",
    interval_seconds=10,
    priority=JobPriority.HIGH,
)
class ProjectScoreReconcilerTask(BaseTask[ProjectScoreResult]):
    """Walks registry project ids past the cursor, scoring each unscored one.

    The cursor is the highest id fully handled (committed or skipped) in this
    process. It starts at -1, lives only in memory and never moves backwards.
    A failed project ends the pass without moving the cursor past that id, so
    the next pass starts again from the same project. One-shot runs pass
    ``continue_on_failure`` to try every remaining project instead; the cursor
    still stops below the first failure.

    A commit whose transaction was signed and possibly broadcast is kept as
    outstanding until it is seen mined or known to be dropped, so a project
    never gets a second score transaction while the first can still land.
    """

    def __init__(
        self,
        reader: Optional[RegistryReader] = None,
        evaluator: Optional[ProjectEvaluator] = None,
        writer: Optional[RegistryWriter] = None,
    ):
        super().__init__()
        self.reader = reader
        self.evaluator = evaluator
        self.writer = writer
        self._cursor = -1
        self._outstanding: Dict[int, PendingCommit] = {}

    @property
    def cursor(self) -> int:
        return self._cursor

    def _advance_cursor(self, project_id: int) -> None:
        if project_id > self._cursor:
            self._cursor = project_id

    async def _validate_resources(self, context: JobContext) -> bool:
        """Build registry and evaluation clients from config when not injected."""
        if self.reader is None or self.writer is None:
            reader, writer = build_registry_clients(config.registry)
            self.reader = self.reader or reader
            self.writer = self.writer or writer
        if self.evaluator is None:
            self.evaluator = ProjectEvaluator(config.evaluation)
        return True

    async def _execute_impl(self, context: JobContext) -> List[ProjectScoreResult]:
        parameters = context.parameters or {}
        evaluation_delay = float(parameters.get("evaluation_delay_seconds", 0))
        continue_on_failure = bool(parameters.get("continue_on_failure", False))
        cursor_before = self._cursor

        try:
            project_count = await self.reader.count()
        except ChainReadError as e:
            logger.error(
                f"Could not read project count: {e}",
                extra={"cursor": self._cursor, "event_type": "count_failed"},
            )
            return [
                ProjectScoreResult(
                    success=False, message="Failed to read project count", error=e
                )
            ]

        pending = project_count - (self._cursor + 1)
        if pending <= 0:
            logger.debug(
                "No new projects",
                extra={"project_count": project_count, "cursor": self._cursor},
            )
            return []

        logger.info(
            f"Found {pending} new project(s)!",
            extra={"project_count": project_count, "cursor": self._cursor},
        )

        results: List[ProjectScoreResult] = []
        failed_ids: List[int] = []
        evaluations = 0
        for project_id in range(self._cursor + 1, project_count):
            pause_seconds = evaluation_delay if evaluations else 0
            result = await self._process_project(project_id, pause_seconds)
            results.append(result)

            if result.state in (ProjectState.EVALUATED, ProjectState.COMMITTED):
                evaluations += 1

            if result.success:
                # nothing past an unfinished project may be marked handled
                if not failed_ids:
                    self._advance_cursor(project_id)
                continue

            failed_ids.append(project_id)
            if not continue_on_failure:
                logger.warning(
                    f"Stopping pass at project {project_id}; it will be retried next run",
                    extra={
                        "project_id": project_id,
                        "cursor": self._cursor,
                        "event_type": "pass_halted",
                    },
                )
                break
            logger.warning(
                f"Project {project_id} failed; continuing with the next project",
                extra={"project_id": project_id, "event_type": "project_failed"},
            )

        logger.info(
            "Reconciliation pass finished",
            extra={
                "processed": len(results),
                "committed": len(
                    [r for r in results if r.state == ProjectState.COMMITTED]
                ),
                "skipped": len(
                    [r for r in results if r.state == ProjectState.SKIPPED]
                ),
                "failed": failed_ids or None,
                "cursor_before": cursor_before,
                "cursor": self._cursor,
                "event_type": "pass_complete",
            },
        )
        return results

    async def _process_project(
        self, project_id: int, pause_seconds: float = 0
    ) -> ProjectScoreResult:
        """Skip, or evaluate and commit, a single project.

        A project with a commit still outstanding from an earlier pass is not
        evaluated again; that commit is settled first. ``pause_seconds`` is
        waited before calling the evaluation service.
        """
        try:
            project = await self.reader.get_project(project_id)
        except ChainReadError as e:
            logger.error(
                f"Error reading project {project_id}: {e}",
                extra={"project_id": project_id, "event_type": "read_failed"},
            )
            return ProjectScoreResult(
                success=False,
                message=f"Failed to read project {project_id}",
                error=e,
                project_id=project_id,
                state=ProjectState.DISCOVERED,
            )

        if project.is_scored:
            self._outstanding.pop(project_id, None)
            logger.info(
                f"Project {project_id} already scored ({project.ai_score}), skipping...",
                extra={"project_id": project_id, "event_type": "project_skipped"},
            )
            return ProjectScoreResult(
                success=True,
                message="Already scored",
                project_id=project_id,
                state=ProjectState.SKIPPED,
                score=project.ai_score,
            )

        outstanding = self._outstanding.get(project_id)
        if outstanding is not None:
            result = await self._settle_outstanding(outstanding)
            if result is not None:
                return result

        if pause_seconds:
            await asyncio.sleep(pause_seconds)

        logger.info(
            f"New project detected: {project.name}",
            extra={
                "project_id": project_id,
                "creator": project.creator,
                "state": str(ProjectState.EVALUATING),
                "event_type": "project_discovered",
            },
        )

        evaluation = await self.evaluator.evaluate(
            project.name, project.description, project.github_url
        )
        logger.info(
            f"Evaluation results: {evaluation.score}/100 - {evaluation.reasoning}",
            extra={
                "project_id": project_id,
                "score": evaluation.score,
                "breakdown": evaluation.breakdown.model_dump(),
                "fallback": evaluation.is_fallback,
                "event_type": "project_evaluated",
            },
        )

        return await self._commit(project_id, evaluation.score, evaluation.is_fallback)

    async def _settle_outstanding(
        self, outstanding: PendingCommit
    ) -> Optional[ProjectScoreResult]:
        """Finish an earlier commit. Returns None when the project needs a fresh one."""
        project_id = outstanding.project_id
        try:
            status = await self.writer.commit_status(outstanding)
        except ChainWriteError as e:
            return self._commit_failed(project_id, outstanding.score, False, e)

        if status == CommitStatus.CONFIRMED:
            return self._committed(
                project_id, outstanding.score, outstanding.tx_hash, False
            )

        if status == CommitStatus.DROPPED:
            logger.warning(
                f"Score transaction {outstanding.tx_hash} for project {project_id} "
                "will never be mined; evaluating again",
                extra={"project_id": project_id, "event_type": "commit_dropped"},
            )
            self._outstanding.pop(project_id, None)
            return None

        return await self._commit(
            project_id, outstanding.score, False, outstanding=outstanding
        )

    async def _commit(
        self,
        project_id: int,
        score: int,
        fallback: bool,
        outstanding: Optional[PendingCommit] = None,
    ) -> ProjectScoreResult:
        try:
            if outstanding is None:
                tx_hash = await self.writer.commit_score(project_id, score)
            else:
                tx_hash = await self.writer.resend(outstanding)
        except ChainWriteError as e:
            if e.pending is not None:
                self._outstanding[project_id] = e.pending
            else:
                self._outstanding.pop(project_id, None)
            return self._commit_failed(project_id, score, fallback, e)

        return self._committed(project_id, score, tx_hash, fallback)

    def _commit_failed(
        self, project_id: int, score: int, fallback: bool, error: ChainWriteError
    ) -> ProjectScoreResult:
        logger.error(
            f"Error updating score for project {project_id}: {error}",
            extra={
                "project_id": project_id,
                "outstanding": project_id in self._outstanding,
                "event_type": "commit_failed",
            },
        )
        return ProjectScoreResult(
            success=False,
            message=f"Failed to commit score for project {project_id}",
            error=error,
            project_id=project_id,
            state=ProjectState.EVALUATED,
            score=score,
            tx_hash=error.tx_hash,
            fallback=fallback,
        )

    def _committed(
        self, project_id: int, score: int, tx_hash: str, fallback: bool
    ) -> ProjectScoreResult:
        self._outstanding.pop(project_id, None)
        logger.info(
            f"Committed score {score} for project {project_id}",
            extra={
                "project_id": project_id,
                "tx_hash": tx_hash,
                "event_type": "project_committed",
            },
        )
        return ProjectScoreResult(
            success=True,
            message="Score committed",
            project_id=project_id,
            state=ProjectState.COMMITTED,
            score=score,
            tx_hash=tx_hash,
            fallback=fallback,
        )
