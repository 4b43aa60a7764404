from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel, Field, PrivateAttr, StrictInt, StrictStr


class Project(BaseModel):
    """A project as stored in the on-chain registry."""

    id: int = Field(ge=0)
    creator: str
    name: str
    description: str
    github_url: str
    metadata_uri: str
    ai_score: int = Field(ge=0)
    total_staked: int = 0
    created_at: datetime
    funded: bool = False
    active: bool = True

    @property
    def is_scored(self) -> bool:
        # 0 is the registry's "not yet scored" marker
        return self.ai_score != 0

    @classmethod
    def from_chain(cls, raw: Sequence[Any]) -> "Project":
        """Build a project from the tuple returned by ``getProject``."""
        (
            project_id,
            creator,
            name,
            description,
            github_url,
            metadata_uri,
            ai_score,
            total_staked,
            created_at,
            funded,
            active,
        ) = raw
        return cls(
            id=int(project_id),
            creator=str(creator),
            name=name,
            description=description,
            github_url=github_url,
            metadata_uri=metadata_uri,
            ai_score=int(ai_score),
            total_staked=int(total_staked),
            created_at=datetime.fromtimestamp(int(created_at), tz=timezone.utc),
            funded=bool(funded),
            active=bool(active),
        )


class EvaluationBreakdown(BaseModel):
    """Per-criterion points, bounded by the rubric maxima.

    Fields are strict: numeric strings, floats and booleans are rejected
    rather than coerced.
    """

    innovation: StrictInt = Field(ge=0, le=30)
    viability: StrictInt = Field(ge=0, le=30)
    impact: StrictInt = Field(ge=0, le=20)
    clarity: StrictInt = Field(ge=0, le=20)

    @property
    def total(self) -> int:
        return self.innovation + self.viability + self.impact + self.clarity


class EvaluationResult(BaseModel):
    """Score-bearing answer of the evaluation service.

    Only ``score`` is committed on-chain; ``reasoning`` and ``breakdown`` are
    informational.
    """

    score: StrictInt = Field(ge=0, le=100)
    reasoning: StrictStr
    breakdown: EvaluationBreakdown

    _fallback: bool = PrivateAttr(default=False)

    @property
    def is_fallback(self) -> bool:
        return self._fallback


FALLBACK_REASONING = "Error during evaluation, assigned default score"


def fallback_evaluation() -> EvaluationResult:
    """Return the fixed default evaluation used when the service fails."""
    result = EvaluationResult(
        score=50,
        reasoning=FALLBACK_REASONING,
        breakdown=EvaluationBreakdown(
            innovation=15, viability=15, impact=10, clarity=10
        ),
    )
    result._fallback = True
    return result


class ProjectState(str, Enum):
    """Where a project ended up within one reconciliation pass."""

    DISCOVERED = "discovered"
    SKIPPED = "skipped"
    EVALUATING = "evaluating"
    EVALUATED = "evaluated"
    COMMITTED = "committed"

    def __str__(self):
        return self.value


class PendingCommit(BaseModel):
    """A signed score transaction that was sent but not yet seen mined.

    Broadcasting ``raw_transaction`` again can never produce a second write:
    it carries the same nonce and hashes to the same ``tx_hash``.
    """

    project_id: int
    score: int
    nonce: int
    tx_hash: str
    raw_transaction: bytes


class CommitStatus(str, Enum):
    """What the chain says about a pending commit."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    DROPPED = "dropped"

    def __str__(self):
        return self.value
