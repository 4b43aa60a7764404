"""Exception hierarchy for the scoring agent."""

from typing import Any, Dict, List, Optional

from idol_agent.backend.models import PendingCommit


class IdolAgentError(Exception):
    """Base exception for all scoring agent errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(IdolAgentError):
    """Raised when required process configuration is missing or invalid."""

    def __init__(self, message: str, missing: Optional[List[str]] = None) -> None:
        details = {"missing": missing} if missing else None
        super().__init__(message, details)
        self.missing = missing or []


class ChainError(IdolAgentError):
    """Base exception for registry RPC failures."""

    pass


class ChainReadError(ChainError):
    """Raised when a registry read cannot be completed."""

    pass


class ProjectNotFoundError(ChainReadError):
    """Raised when the registry has no project with the requested id."""

    def __init__(self, project_id: int, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"Project {project_id} not found in registry",
            {"project_id": project_id},
        )
        self.project_id = project_id


class ChainWriteError(ChainError):
    """Raised when a score commit fails to submit or to confirm."""

    def __init__(
        self,
        message: str,
        project_id: Optional[int] = None,
        tx_hash: Optional[str] = None,
        pending: Optional[PendingCommit] = None,
    ) -> None:
        if tx_hash is None and pending is not None:
            tx_hash = pending.tx_hash
        details: Dict[str, Any] = {}
        if project_id is not None:
            details["project_id"] = project_id
        if tx_hash is not None:
            details["tx_hash"] = tx_hash
        super().__init__(message, details)
        self.project_id = project_id
        self.tx_hash = tx_hash
        # set when a signed transaction may still be mined
        self.pending = pending
