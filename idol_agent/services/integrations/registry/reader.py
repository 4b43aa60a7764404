"""Side-effect-free queries against the project registry."""

import asyncio
from typing import Optional

from web3.contract import AsyncContract
from web3.exceptions import ContractLogicError

from idol_agent.backend.models import Project
from idol_agent.lib.errors import ChainReadError, ProjectNotFoundError
from idol_agent.lib.logger import configure_logger

logger = configure_logger(__name__)


class RegistryReader:
    """Reads project count and per-project state from the registry."""

    def __init__(self, contract: AsyncContract, timeout_seconds: Optional[float] = 30):
        self.contract = contract
        self.timeout_seconds = timeout_seconds

    async def count(self) -> int:
        """Return the number of projects ever submitted."""
        try:
            value = await asyncio.wait_for(
                self.contract.functions.projectCount().call(),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            raise ChainReadError(f"Failed to read project count: {e!r}") from e

        return int(value)

    async def get_project(self, project_id: int) -> Project:
        """Return the registry record for ``project_id``.

        A project that is already scored is returned as-is; deciding what to
        do with it is up to the caller.

        Raises:
            ProjectNotFoundError: if the registry has no such project
            ChainReadError: on any other RPC failure
        """
        if project_id < 0:
            raise ProjectNotFoundError(project_id)

        try:
            raw = await asyncio.wait_for(
                self.contract.functions.getProject(project_id).call(),
                timeout=self.timeout_seconds,
            )
        except ContractLogicError as e:
            # the registry reverts for ids at or beyond projectCount
            raise ProjectNotFoundError(project_id) from e
        except Exception as e:
            raise ChainReadError(
                f"Failed to read project {project_id}: {e!r}",
                {"project_id": project_id},
            ) from e

        try:
            project = Project.from_chain(raw)
        except (TypeError, ValueError) as e:
            raise ChainReadError(
                f"Unexpected project record for {project_id}: {e}",
                {"project_id": project_id},
            ) from e

        logger.debug(
            f"Read project {project_id}",
            extra={"project_id": project_id, "ai_score": project.ai_score},
        )
        return project
