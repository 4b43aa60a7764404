"""Score commits against the project registry."""

import asyncio
from typing import Any, Optional

from eth_account.signers.local import LocalAccount
from web3 import AsyncWeb3
from web3.contract import AsyncContract
from web3.exceptions import TransactionNotFound

from idol_agent.backend.models import CommitStatus, PendingCommit
from idol_agent.lib.errors import ChainWriteError
from idol_agent.lib.logger import configure_logger

logger = configure_logger(__name__)

MIN_SCORE = 0
MAX_SCORE = 100


class RegistryWriter:
    """Submits ``updateAIScore`` transactions and waits for them to be mined.

    A transaction is signed before it is broadcast, so its hash and nonce are
    known even when the broadcast or the receipt wait fails. Such failures
    carry the signed transaction as ``ChainWriteError.pending``; the caller
    settles it with ``commit_status`` and ``resend`` instead of signing a new
    transaction for the same project.
    """

    def __init__(
        self,
        w3: AsyncWeb3,
        contract: AsyncContract,
        account: LocalAccount,
        submit_timeout_seconds: Optional[float] = 30,
        receipt_timeout_seconds: float = 120,
    ):
        self.w3 = w3
        self.contract = contract
        self.account = account
        self.submit_timeout_seconds = submit_timeout_seconds
        self.receipt_timeout_seconds = receipt_timeout_seconds

    async def _sign(self, project_id: int, score: int) -> PendingCommit:
        nonce = await self.w3.eth.get_transaction_count(
            self.account.address, "pending"
        )
        transaction = await self.contract.functions.updateAIScore(
            project_id, score
        ).build_transaction({"from": self.account.address, "nonce": nonce})
        signed = self.account.sign_transaction(transaction)
        return PendingCommit(
            project_id=project_id,
            score=score,
            nonce=nonce,
            tx_hash=AsyncWeb3.to_hex(signed.hash),
            raw_transaction=bytes(signed.raw_transaction),
        )

    async def commit_score(self, project_id: int, score: int) -> str:
        """Write ``score`` for ``project_id`` and return the transaction hash.

        Blocks until the transaction is mined.

        Raises:
            ChainWriteError: if the score is out of range, the transaction
                cannot be submitted, is not mined in time, or reverts
        """
        if not MIN_SCORE <= score <= MAX_SCORE:
            raise ChainWriteError(
                f"Refusing to commit out-of-range score {score}", project_id=project_id
            )

        logger.info(
            f"Updating score for project {project_id}: {score}",
            extra={"project_id": project_id, "score": score},
        )

        try:
            commit = await asyncio.wait_for(
                self._sign(project_id, score), timeout=self.submit_timeout_seconds
            )
        except Exception as e:
            raise ChainWriteError(
                f"Failed to prepare score transaction: {e!r}", project_id=project_id
            ) from e

        return await self._send_and_confirm(commit)

    async def resend(self, commit: PendingCommit) -> str:
        """Broadcast an outstanding commit again, unchanged, and wait for it."""
        logger.info(
            f"Resending score transaction {commit.tx_hash} for project {commit.project_id}",
            extra={
                "project_id": commit.project_id,
                "nonce": commit.nonce,
                "event_type": "commit_resend",
            },
        )
        return await self._send_and_confirm(commit)

    async def _send_and_confirm(self, commit: PendingCommit) -> str:
        try:
            await asyncio.wait_for(
                self.w3.eth.send_raw_transaction(commit.raw_transaction),
                timeout=self.submit_timeout_seconds,
            )
        except Exception as e:
            # the node may have accepted it before failing or timing out
            raise ChainWriteError(
                f"Failed to submit score transaction: {e!r}",
                project_id=commit.project_id,
                pending=commit,
            ) from e

        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                commit.tx_hash, timeout=self.receipt_timeout_seconds
            )
        except Exception as e:
            raise ChainWriteError(
                f"Score transaction was not confirmed: {e!r}",
                project_id=commit.project_id,
                pending=commit,
            ) from e

        if receipt.get("status") != 1:
            raise ChainWriteError(
                "Score transaction reverted",
                project_id=commit.project_id,
                tx_hash=commit.tx_hash,
            )

        logger.info(
            f"Score updated! Transaction: {commit.tx_hash}",
            extra={"project_id": commit.project_id, "tx_hash": commit.tx_hash},
        )
        return commit.tx_hash

    async def _find_receipt(self, tx_hash: str) -> Optional[Any]:
        try:
            return await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    async def commit_status(self, commit: PendingCommit) -> CommitStatus:
        """Report whether an outstanding commit was mined, can still be, or never will.

        The commit is ``DROPPED`` when it reverted, or when its nonce has been
        used by a transaction that is not this one.

        Raises:
            ChainWriteError: if the chain cannot be queried
        """
        try:
            receipt = await asyncio.wait_for(
                self._find_receipt(commit.tx_hash), timeout=self.submit_timeout_seconds
            )
            if receipt is None:
                confirmed_nonce = await asyncio.wait_for(
                    self.w3.eth.get_transaction_count(self.account.address, "latest"),
                    timeout=self.submit_timeout_seconds,
                )
                if confirmed_nonce <= commit.nonce:
                    return CommitStatus.PENDING
                # the nonce is spent; it may have been spent by this transaction
                receipt = await asyncio.wait_for(
                    self._find_receipt(commit.tx_hash),
                    timeout=self.submit_timeout_seconds,
                )
        except Exception as e:
            raise ChainWriteError(
                f"Could not check score transaction: {e!r}",
                project_id=commit.project_id,
                pending=commit,
            ) from e

        if receipt is not None and receipt.get("status") == 1:
            return CommitStatus.CONFIRMED
        return CommitStatus.DROPPED
