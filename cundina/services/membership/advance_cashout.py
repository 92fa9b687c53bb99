"""
Advance / Cashout Orchestrator.

Settles a completed group owned by the connected account: either
advance into the next tier (payout reinvested, new group created) or
cash out. After an advance the member is also placed into the current
top-ranked group of the new tier when one exists, as a non-fatal step.
"""

from loguru import logger

from cundina.config.constants import (
    ADVANCE_RECEIPT_TIMEOUT,
    AUXILIARY_RECEIPT_TIMEOUT,
    GAS_LIMIT_JOIN,
    GAS_LIMIT_PAYOUT,
)
from cundina.config.levels import next_tier
from cundina.models.chain import BlockSnapshot, OnChainStatus, TxReceipt
from cundina.services.blockchain.abis import PAYOUT_MODULE_ABI, REGISTRY_ABI
from cundina.services.blockchain.chain_client import ChainClient
from cundina.services.blockchain.contract_reads import ContractReader
from cundina.services.blockchain.event_resolver import (
    advanced_group_resolver,
    cashout_payout,
    created_group_resolver,
    resolve_first,
)
from cundina.services.notification import NotificationService
from cundina.services.ranking.context import QueryContext
from cundina.utils.exceptions import (
    ContractReadError,
    GroupNotCompletedError,
    TierIneligibleError,
    WrongAccountError,
)
from cundina.utils.security import mask_address
from cundina.utils.validation import same_address

from .outcomes import MembershipOutcome, StepOutcome, run_auxiliary_step
from .revert_mapping import simulate_or_raise


class AdvanceCashoutOrchestrator:
    """Advance and cashout for group owners."""

    def __init__(
        self,
        chain: ChainClient,
        reader: ContractReader,
        payout_module_address: str,
        context: QueryContext | None = None,
        notifications: NotificationService | None = None,
    ) -> None:
        self.chain = chain
        self.reader = reader
        self.registry_address = reader.registry_address
        self.payout_module_address = payout_module_address.lower()
        self.context = context
        self.notifications = notifications

    async def advance(
        self,
        group: str,
        owner: str,
        payout_to: str | None = None,
    ) -> MembershipOutcome:
        """
        Advance a completed group into the next tier.

        Args:
            group: Completed group address
            owner: Group owner (center); must be the connected account
            payout_to: Payout recipient, defaults to the owner

        Returns:
            MembershipOutcome with ``new_group`` set to the next-tier group
            when the receipt reports it

        Raises:
            WrongAccountError: Caller is not the on-chain owner
            GroupNotCompletedError: Group still collecting members
            TierIneligibleError: Group is at the last tier
            TransactionError: The advance transaction failed
        """
        snapshot = await self._verify_owner(group, owner)
        target_tier = next_tier(snapshot.level)
        if target_tier is None:
            raise TierIneligibleError(f"Tier {snapshot.level} is the last tier, cash out instead")

        account = snapshot.owner
        payout_to = (payout_to or account).lower()
        args = (snapshot.address, account, payout_to)

        await simulate_or_raise(
            self.chain, self.payout_module_address, PAYOUT_MODULE_ABI, "advance", *args,
            sender=account,
        )
        receipt = await self.chain.send_and_wait(
            self.payout_module_address,
            PAYOUT_MODULE_ABI,
            "advance",
            *args,
            timeout=ADVANCE_RECEIPT_TIMEOUT,
            gas_limit=GAS_LIMIT_PAYOUT,
        )

        outcome = MembershipOutcome(
            action="advance", member=account, tx_hash=receipt.tx_hash, group=snapshot.address
        )
        outcome.new_group = resolve_first(
            receipt,
            advanced_group_resolver(self.payout_module_address, account),
            created_group_resolver(self.registry_address, account),
        )
        if outcome.new_group is None:
            logger.warning(
                f"Advance confirmed ({receipt.tx_hash}) but the next-tier group "
                f"was not found in the receipt"
            )
        logger.success(
            f"{mask_address(account)} advanced {mask_address(snapshot.address)} to tier {target_tier}"
        )

        outcome.auxiliary.append(await self._join_top_group(account, target_tier))
        await self._finish(outcome)
        return outcome

    async def cashout(
        self,
        group: str,
        owner: str,
        payout_to: str | None = None,
    ) -> MembershipOutcome:
        """
        Cash out a completed group.

        Raises:
            WrongAccountError: Caller is not the on-chain owner
            GroupNotCompletedError: Group still collecting members
            TransactionError: The cashout transaction failed
        """
        snapshot = await self._verify_owner(group, owner)
        account = snapshot.owner
        payout_to = (payout_to or account).lower()
        args = (snapshot.address, account, payout_to)

        await simulate_or_raise(
            self.chain, self.payout_module_address, PAYOUT_MODULE_ABI, "cashout", *args,
            sender=account,
        )
        receipt = await self.chain.send_and_wait(
            self.payout_module_address,
            PAYOUT_MODULE_ABI,
            "cashout",
            *args,
            timeout=ADVANCE_RECEIPT_TIMEOUT,
            gas_limit=GAS_LIMIT_PAYOUT,
        )

        outcome = MembershipOutcome(
            action="cashout", member=account, tx_hash=receipt.tx_hash, group=snapshot.address
        )
        outcome.payout = cashout_payout(receipt, self.payout_module_address, snapshot.address)
        logger.success(f"{mask_address(account)} cashed out {mask_address(snapshot.address)}")

        await self._finish(outcome)
        return outcome

    async def _verify_owner(self, group: str, owner: str) -> BlockSnapshot:
        account = self.chain.account_address
        if account is None or not same_address(account, owner):
            raise WrongAccountError(
                f"Connected account {mask_address(account)} is not {mask_address(owner)}"
            )

        snapshot = await self.reader.block_snapshot(group.lower())
        if not same_address(snapshot.owner, account):
            raise WrongAccountError(
                f"Group {mask_address(group)} is owned by {mask_address(snapshot.owner)}"
            )
        if snapshot.status != OnChainStatus.COMPLETED:
            raise GroupNotCompletedError(
                f"Group has {snapshot.member_count}/{snapshot.required_members} members"
            )
        return snapshot

    async def _join_top_group(self, account: str, tier: int) -> StepOutcome:
        """Join the top-ranked group of the tier just entered, if any."""

        async def step() -> TxReceipt | None:
            try:
                top = await self.reader.top_block_at_level(tier)
            except ContractReadError as e:
                logger.warning(f"findTopBlockAtLevel({tier}) unavailable: {e}")
                return None
            if top.block is None or top.creator is None or same_address(top.creator, account):
                logger.info(f"No top group to join at tier {tier}")
                return None

            logger.info(f"Joining top group {mask_address(top.block)} at tier {tier}")
            return await self.chain.send_and_wait(
                self.registry_address,
                REGISTRY_ABI,
                "joinTargetBlock",
                account,
                top.block,
                timeout=AUXILIARY_RECEIPT_TIMEOUT,
                gas_limit=GAS_LIMIT_JOIN,
            )

        return await run_auxiliary_step("joinTargetBlock", step)

    async def _finish(self, outcome: MembershipOutcome) -> None:
        if self.context is not None:
            self.context.invalidate()
        if self.notifications is not None:
            await self.notifications.notify_outcome(outcome)
