"""
Token Approval Manager.

Makes sure a spender may pull a given token amount from the member
before a transaction that transfers it.
"""

from dataclasses import dataclass

from loguru import logger

from cundina.config.constants import GAS_LIMIT_APPROVE, JOIN_RECEIPT_TIMEOUT
from cundina.services.blockchain.abis import ERC20_ABI
from cundina.services.blockchain.chain_client import ChainClient
from cundina.services.blockchain.contract_reads import ContractReader
from cundina.utils.exceptions import ContractReadError
from cundina.utils.security import mask_address


@dataclass
class ApprovalResult:
    """Outcome of ensure_allowance."""

    approved: bool  # an approve transaction was sent and confirmed
    tx_hash: str | None = None
    previous_allowance: int | None = None  # None when the read failed


class TokenApprovalManager:
    """Allowance checks and exact-amount approvals."""

    def __init__(self, chain: ChainClient, reader: ContractReader) -> None:
        self.chain = chain
        self.reader = reader

    async def ensure_allowance(
        self,
        owner: str,
        spender: str,
        required_amount: int,
    ) -> ApprovalResult:
        """
        Approve ``required_amount`` when the current allowance is lower.

        An unreadable allowance is treated as insufficient and approval is
        sent anyway. Approves the exact amount, never unlimited.

        Args:
            owner: Token holder (the member)
            spender: Contract that will pull the tokens
            required_amount: Raw token units

        Returns:
            ApprovalResult

        Raises:
            TransactionRevertedError: Approval mined with status 0
            TransactionTimeoutError: Approval not confirmed in time
        """
        if required_amount <= 0:
            return ApprovalResult(approved=False)

        current: int | None
        try:
            current = await self.reader.token_allowance(owner, spender)
        except ContractReadError as e:
            logger.warning(f"Allowance read failed, approving defensively: {e}")
            current = None

        if current is not None and current >= required_amount:
            logger.debug(
                f"Allowance {current} for {mask_address(spender)} covers {required_amount}"
            )
            return ApprovalResult(approved=False, previous_allowance=current)

        logger.info(f"Approving {required_amount} token units for {mask_address(spender)}")
        receipt = await self.chain.send_and_wait(
            self.reader.token_address,
            ERC20_ABI,
            "approve",
            spender,
            required_amount,
            timeout=JOIN_RECEIPT_TIMEOUT,
            gas_limit=GAS_LIMIT_APPROVE,
        )
        return ApprovalResult(approved=True, tx_hash=receipt.tx_hash, previous_allowance=current)
