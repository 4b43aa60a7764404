"""Tests for the project score reconciler task."""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple
from unittest.mock import AsyncMock

import pytest

from idol_agent.backend.models import (
    CommitStatus,
    EvaluationBreakdown,
    EvaluationResult,
    PendingCommit,
    Project,
    ProjectState,
    fallback_evaluation,
)
from idol_agent.lib.errors import ChainReadError, ChainWriteError, ProjectNotFoundError
from idol_agent.services.infrastructure.job_management.base import (
    JobContext,
    JobType,
)
from idol_agent.services.infrastructure.job_management.tasks.project_score_reconciler import (
    ProjectScoreReconcilerTask,
)


class FakeRegistry:
    """In-memory registry standing in for both the reader and the writer."""

    def __init__(self, scores: List[int]):
        self.projects = [self._project(i, score) for i, score in enumerate(scores)]
        self.commits: List[Tuple[int, int]] = []
        self.reads: List[int] = []
        self.failing_commits: Set[int] = set()
        # commits whose receipt wait times out while the transaction sits unmined
        self.stalled_commits: Set[int] = set()
        self.sent: List[str] = []
        self.resends: List[str] = []
        self.mempool: Dict[str, PendingCommit] = {}
        self.mined: Set[str] = set()
        self.count_error: Optional[Exception] = None
        self.read_errors: Dict[int, Exception] = {}

    @staticmethod
    def _project(project_id: int, ai_score: int) -> Project:
        return Project(
            id=project_id,
            creator="0x1111111111111111111111111111111111111111",
            name=f"project-{project_id}",
            description=f"description {project_id}",
            github_url=f"https://github.com/example/project-{project_id}",
            metadata_uri="",
            ai_score=ai_score,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )

    def submit(self, ai_score: int = 0) -> None:
        self.projects.append(self._project(len(self.projects), ai_score))

    async def count(self) -> int:
        if self.count_error:
            raise self.count_error
        return len(self.projects)

    async def get_project(self, project_id: int) -> Project:
        self.reads.append(project_id)
        if project_id in self.read_errors:
            raise self.read_errors[project_id]
        if project_id >= len(self.projects):
            raise ProjectNotFoundError(project_id)
        return self.projects[project_id]

    def _sign(self, project_id: int, score: int) -> PendingCommit:
        nonce = len(self.sent)
        commit = PendingCommit(
            project_id=project_id,
            score=score,
            nonce=nonce,
            tx_hash=f"0x{nonce:064x}",
            raw_transaction=b"signed",
        )
        self.sent.append(commit.tx_hash)
        return commit

    def _apply(self, commit: PendingCommit) -> str:
        self.commits.append((commit.project_id, commit.score))
        self.projects[commit.project_id].ai_score = commit.score
        self.mined.add(commit.tx_hash)
        return commit.tx_hash

    def mine(self) -> None:
        for commit in self.mempool.values():
            self._apply(commit)
        self.mempool.clear()

    def drop(self) -> None:
        self.mempool.clear()

    async def commit_score(self, project_id: int, score: int) -> str:
        if project_id in self.failing_commits:
            raise ChainWriteError("network timeout", project_id=project_id)
        if self.projects[project_id].is_scored:
            raise ChainWriteError("already scored", project_id=project_id)
        commit = self._sign(project_id, score)
        if project_id in self.stalled_commits:
            self.stalled_commits.discard(project_id)
            self.mempool[commit.tx_hash] = commit
            raise ChainWriteError(
                "receipt timeout", project_id=project_id, pending=commit
            )
        return self._apply(commit)

    async def commit_status(self, commit: PendingCommit) -> CommitStatus:
        if commit.tx_hash in self.mined:
            return CommitStatus.CONFIRMED
        if commit.tx_hash in self.mempool:
            return CommitStatus.PENDING
        return CommitStatus.DROPPED

    async def resend(self, commit: PendingCommit) -> str:
        self.resends.append(commit.tx_hash)
        if commit.tx_hash not in self.mempool:
            raise ChainWriteError("unknown transaction", pending=commit)
        return self._apply(self.mempool.pop(commit.tx_hash))


class FakeEvaluator:
    """Returns queued scores by project name and records every call."""

    def __init__(self, scores: Optional[Dict[str, int]] = None, default: int = 70):
        self.scores = scores or {}
        self.default = default
        self.calls: List[str] = []
        self.fail_for: Set[str] = set()

    async def evaluate(self, name: str, description: str, github_url: str) -> EvaluationResult:
        self.calls.append(name)
        if name in self.fail_for:
            return fallback_evaluation()
        return EvaluationResult(
            score=self.scores.get(name, self.default),
            reasoning=f"evaluated {name}",
            breakdown=EvaluationBreakdown(innovation=20, viability=20, impact=15, clarity=15),
        )


def make_task(registry: FakeRegistry, evaluator: FakeEvaluator) -> ProjectScoreReconcilerTask:
    return ProjectScoreReconcilerTask(
        reader=registry, evaluator=evaluator, writer=registry
    )


def make_context(**parameters) -> JobContext:
    return JobContext(
        job_type=JobType.get_or_create("project_score_reconciler"),
        parameters=parameters or None,
    )


class TestProjectScoreReconcilerTask:
    @pytest.mark.asyncio
    async def test_scores_all_new_projects_in_id_order(self):
        """Three unscored projects get three commits in id order."""
        registry = FakeRegistry([0, 0, 0])
        evaluator = FakeEvaluator({"project-0": 90, "project-1": 40, "project-2": 70})
        task = make_task(registry, evaluator)

        results = await task.execute(make_context())

        assert registry.commits == [(0, 90), (1, 40), (2, 70)]
        assert [r.state for r in results] == [ProjectState.COMMITTED] * 3
        assert [r.tx_hash for r in results] == [f"0x{i:064x}" for i in range(3)]
        assert task.cursor == 2

    @pytest.mark.asyncio
    async def test_already_scored_project_is_skipped(self):
        registry = FakeRegistry([0, 55, 0])
        evaluator = FakeEvaluator()
        task = make_task(registry, evaluator)

        results = await task.execute(make_context())

        assert evaluator.calls == ["project-0", "project-2"]
        assert [pid for pid, _ in registry.commits] == [0, 2]
        assert results[1].state == ProjectState.SKIPPED
        assert results[1].success
        assert results[1].score == 55
        assert task.cursor == 2

    @pytest.mark.asyncio
    async def test_evaluation_failure_commits_fallback(self):
        registry = FakeRegistry([0])
        evaluator = FakeEvaluator()
        evaluator.fail_for.add("project-0")
        task = make_task(registry, evaluator)

        results = await task.execute(make_context())

        assert registry.commits == [(0, 50)]
        assert results[0].success
        assert results[0].fallback
        assert task.cursor == 0

    @pytest.mark.asyncio
    async def test_commit_failure_keeps_cursor_and_retries_next_pass(self):
        registry = FakeRegistry([0, 0])
        registry.failing_commits.add(0)
        evaluator = FakeEvaluator()
        task = make_task(registry, evaluator)

        results = await task.execute(make_context())

        assert task.cursor == -1
        assert registry.commits == []
        assert len(results) == 1
        assert not results[0].success
        assert results[0].state == ProjectState.EVALUATED
        # project 1 must not be attempted while project 0 is pending
        assert evaluator.calls == ["project-0"]

        registry.failing_commits.clear()
        await task.execute(make_context())

        # project 0 is evaluated again from scratch
        assert evaluator.calls == ["project-0", "project-0", "project-1"]
        assert registry.commits == [(0, 70), (1, 70)]
        assert task.cursor == 1

    @pytest.mark.asyncio
    async def test_failure_midway_keeps_earlier_progress(self):
        registry = FakeRegistry([0, 0, 0])
        registry.failing_commits.add(1)
        task = make_task(registry, FakeEvaluator())

        await task.execute(make_context())

        assert [pid for pid, _ in registry.commits] == [0]
        assert task.cursor == 0

    @pytest.mark.asyncio
    async def test_each_project_committed_at_most_once(self):
        registry = FakeRegistry([0, 0])
        evaluator = FakeEvaluator()
        task = make_task(registry, evaluator)

        await task.execute(make_context())
        await task.execute(make_context())
        registry.submit()
        await task.execute(make_context())

        assert [pid for pid, _ in registry.commits] == [0, 1, 2]
        assert evaluator.calls == ["project-0", "project-1", "project-2"]
        assert task.cursor == 2

    @pytest.mark.asyncio
    async def test_restart_rescans_and_skips_scored_projects(self):
        registry = FakeRegistry([0, 0])
        await make_task(registry, FakeEvaluator()).execute(make_context())

        evaluator = FakeEvaluator()
        restarted = make_task(registry, evaluator)
        assert restarted.cursor == -1

        results = await restarted.execute(make_context())

        assert evaluator.calls == []
        assert [r.state for r in results] == [ProjectState.SKIPPED] * 2
        assert len(registry.commits) == 2
        assert restarted.cursor == 1

    @pytest.mark.asyncio
    async def test_no_new_projects_does_nothing(self):
        registry = FakeRegistry([])
        task = make_task(registry, FakeEvaluator())

        assert await task.execute(make_context()) == []
        assert registry.reads == []
        assert task.cursor == -1

    @pytest.mark.asyncio
    async def test_count_failure_is_reported_not_raised(self):
        registry = FakeRegistry([0])
        registry.count_error = ChainReadError("rpc unavailable")
        task = make_task(registry, FakeEvaluator())

        results = await task.execute(make_context())

        assert len(results) == 1
        assert not results[0].success
        assert task.cursor == -1

    @pytest.mark.asyncio
    async def test_read_failure_halts_pass(self):
        registry = FakeRegistry([0, 0, 0])
        registry.read_errors[1] = ChainReadError("rpc hiccup")
        evaluator = FakeEvaluator()
        task = make_task(registry, evaluator)

        results = await task.execute(make_context())

        assert [r.state for r in results] == [
            ProjectState.COMMITTED,
            ProjectState.DISCOVERED,
        ]
        assert evaluator.calls == ["project-0"]
        assert task.cursor == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_escape(self):
        registry = FakeRegistry([0])
        evaluator = FakeEvaluator()
        evaluator.evaluate = AsyncMock(side_effect=RuntimeError("bug"))
        task = make_task(registry, evaluator)

        results = await task.execute(make_context())

        assert not results[0].success
        assert task.cursor == -1

    @pytest.mark.asyncio
    async def test_cursor_never_moves_backwards(self):
        registry = FakeRegistry([0, 0, 0])
        task = make_task(registry, FakeEvaluator())
        observed = [task.cursor]

        for failing in ({2}, {0}, set()):
            registry.failing_commits = failing
            await task.execute(make_context())
            observed.append(task.cursor)

        assert observed == sorted(observed)
        assert observed[-1] == 2

    @pytest.mark.asyncio
    async def test_evaluation_delay_between_projects(self, monkeypatch):
        sleeps: List[float] = []

        async def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        monkeypatch.setattr(
            "idol_agent.services.infrastructure.job_management.tasks."
            "project_score_reconciler.asyncio.sleep",
            fake_sleep,
        )
        registry = FakeRegistry([0, 55, 0, 0])
        task = make_task(registry, FakeEvaluator())

        await task.execute(make_context(evaluation_delay_seconds=2))

        # no pause before the first evaluation; skips do not count
        assert sleeps == [2.0, 2.0]
        assert task.cursor == 3

    @pytest.mark.asyncio
    async def test_timed_out_commit_is_resent_not_signed_again(self):
        registry = FakeRegistry([0, 0])
        registry.stalled_commits.add(0)
        evaluator = FakeEvaluator({"project-0": 90})
        task = make_task(registry, evaluator)

        first = await task.execute(make_context())

        assert not first[0].success
        assert first[0].tx_hash == registry.sent[0]
        assert registry.commits == []
        assert task.cursor == -1

        results = await task.execute(make_context())

        # project 0 still reads as unscored, but its first transaction is reused
        assert evaluator.calls == ["project-0", "project-1"]
        assert registry.resends == [first[0].tx_hash]
        assert registry.commits == [(0, 90), (1, 70)]
        assert len(registry.sent) == 2
        assert results[0].state == ProjectState.COMMITTED
        assert results[0].tx_hash == first[0].tx_hash
        assert task.cursor == 1

    @pytest.mark.asyncio
    async def test_timed_out_commit_that_lands_is_skipped(self):
        registry = FakeRegistry([0])
        registry.stalled_commits.add(0)
        evaluator = FakeEvaluator({"project-0": 90})
        task = make_task(registry, evaluator)

        await task.execute(make_context())
        registry.mine()
        results = await task.execute(make_context())

        assert results[0].state == ProjectState.SKIPPED
        assert evaluator.calls == ["project-0"]
        assert registry.commits == [(0, 90)]
        assert registry.resends == []
        assert task.cursor == 0

    @pytest.mark.asyncio
    async def test_confirmed_commit_is_not_resent(self):
        registry = FakeRegistry([0])
        registry.stalled_commits.add(0)
        task = make_task(registry, FakeEvaluator({"project-0": 90}))
        await task.execute(make_context())

        # mined after the registry read, as seen by the receipt lookup
        commit = registry.mempool[registry.sent[0]]
        registry.mined.add(commit.tx_hash)
        registry.mempool.clear()

        results = await task.execute(make_context())

        assert results[0].state == ProjectState.COMMITTED
        assert results[0].tx_hash == commit.tx_hash
        assert registry.resends == []
        assert len(registry.sent) == 1
        assert task.cursor == 0

    @pytest.mark.asyncio
    async def test_dropped_commit_is_evaluated_again(self):
        registry = FakeRegistry([0])
        registry.stalled_commits.add(0)
        evaluator = FakeEvaluator({"project-0": 90})
        task = make_task(registry, evaluator)

        await task.execute(make_context())
        registry.drop()
        results = await task.execute(make_context())

        assert evaluator.calls == ["project-0", "project-0"]
        assert registry.commits == [(0, 90)]
        assert len(registry.sent) == 2
        assert results[0].tx_hash == registry.sent[1]
        assert task.cursor == 0

    @pytest.mark.asyncio
    async def test_continue_on_failure_tries_every_project(self):
        registry = FakeRegistry([0, 0, 0])
        registry.failing_commits.add(1)
        evaluator = FakeEvaluator()
        task = make_task(registry, evaluator)

        results = await task.execute(make_context(continue_on_failure=True))

        assert evaluator.calls == ["project-0", "project-1", "project-2"]
        assert [pid for pid, _ in registry.commits] == [0, 2]
        assert [r.success for r in results] == [True, False, True]
        # nothing past the failed project counts as handled
        assert task.cursor == 0

        registry.failing_commits.clear()
        results = await task.execute(make_context())

        assert [r.state for r in results] == [
            ProjectState.COMMITTED,
            ProjectState.SKIPPED,
        ]
        assert [pid for pid, _ in registry.commits] == [0, 2, 1]
        assert task.cursor == 2
