"""
Registration Orchestrator.

Drives a member into a group: referral routing, preflight checks,
registration with the fee, the join itself, and resolution of the
member's own group from receipt events. Every read-only check runs
before the first transaction is submitted.
"""

from loguru import logger

from cundina.config.constants import (
    AUXILIARY_RECEIPT_TIMEOUT,
    GAS_LIMIT_DISPERSE,
    GAS_LIMIT_JOIN,
    GAS_LIMIT_REGISTER,
    JOIN_RECEIPT_TIMEOUT,
)
from cundina.config.levels import get_tier, is_valid_tier, to_token_units
from cundina.models.chain import BlockSnapshot, TxReceipt
from cundina.services.blockchain.abis import PAYOUT_MODULE_ABI, REGISTRY_ABI
from cundina.services.blockchain.chain_client import ChainClient
from cundina.services.blockchain.contract_reads import ContractReader
from cundina.services.blockchain.event_resolver import created_group_resolver, resolve_first
from cundina.services.notification import NotificationService
from cundina.services.ranking.context import QueryContext
from cundina.utils.exceptions import (
    AlreadyMemberError,
    ContractReadError,
    EventNotFoundError,
    GroupFullError,
    GroupInactiveError,
    InsufficientBalanceError,
    MissingReferrerError,
    RegistryMismatchError,
    TierIneligibleError,
    WrongAccountError,
)
from cundina.utils.security import mask_address
from cundina.utils.validation import is_wallet_address, same_address

from .outcomes import MembershipOutcome, StepOutcome, run_auxiliary_step
from .referral import ReferralService
from .revert_mapping import simulate_or_raise
from .token_approval import TokenApprovalManager


class RegistrationOrchestrator:
    """
    Join and create flows for the connected account.

    Features:
    - Referral routing (join the referrer's level-1 group or create one)
    - Preflight snapshot checks (registry, status, capacity, tier)
    - Registration with balance and allowance checks
    - Simulation with revert translation before each join
    - Best-effort registration fee dispersal
    """

    def __init__(
        self,
        chain: ChainClient,
        reader: ContractReader,
        approvals: TokenApprovalManager,
        referrals: ReferralService,
        payout_module_address: str,
        context: QueryContext | None = None,
        notifications: NotificationService | None = None,
    ) -> None:
        self.chain = chain
        self.reader = reader
        self.approvals = approvals
        self.referrals = referrals
        self.registry_address = reader.registry_address
        self.payout_module_address = payout_module_address.lower()
        self.context = context
        self.notifications = notifications

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def join_or_create(self, member: str, reference: str, tier: int) -> MembershipOutcome:
        """
        Route a member by a group address or a referral reference.

        Args:
            member: Joining account; must be the connected account
            reference: Group address, referrer wallet or referral code
            tier: Target tier

        Returns:
            MembershipOutcome for the join or create that was performed

        Raises:
            MembershipError: A precondition failed (nothing was submitted)
            TransactionError: A submitted transaction failed
        """
        member = self._require_connected(member)
        self._require_tier(tier)

        if is_wallet_address(reference) and await self.chain.is_contract(reference):
            return await self.join_group(member, reference, tier)

        referrer = await self.referrals.resolve_referrer(reference)
        if same_address(referrer, member):
            raise MissingReferrerError("A member cannot refer themselves")

        referrer_level = await self.reader.user_level(referrer)
        if referrer_level == 0:
            raise MissingReferrerError(f"Referrer {mask_address(referrer)} is not registered")

        if tier == 1 and referrer_level == 1:
            group = await self.reader.my_block_at_level(referrer, 1)
            if group is None:
                raise MissingReferrerError(
                    f"Referrer {mask_address(referrer)} has no level-1 group to join"
                )
            logger.info(f"Routing {mask_address(member)} into referrer group {mask_address(group)}")
            return await self.join_group(member, group, 1, referrer=referrer)

        logger.info(
            f"Referrer {mask_address(referrer)} is level {referrer_level}, "
            f"creating own tier {tier} group for {mask_address(member)}"
        )
        return await self.create_group(member, tier, referrer=referrer)

    async def join_group(
        self,
        member: str,
        group: str,
        tier: int,
        referrer: str | None = None,
    ) -> MembershipOutcome:
        """
        Join a specific group.

        Tier 1 joins go through ``joinLevel1`` (the Registry routes by the
        member's referrer), higher tiers through ``joinTargetBlock``.

        Args:
            member: Joining account; must be the connected account
            group: Target group address
            tier: Tier of the target group
            referrer: Referrer for registration; defaults to the group owner

        Returns:
            MembershipOutcome with the member's new group when resolvable
        """
        member = self._require_connected(member)
        self._require_tier(tier)
        group = group.lower()

        snapshot = await self._preflight(group, tier)
        level = await self.reader.user_level(member)

        if tier == 1 and level > 1:
            raise TierIneligibleError(
                f"Account is level {level}, level-1 groups accept level-1 members only"
            )
        await self._ensure_not_member(member, snapshot, tier)

        referrer = referrer or snapshot.owner
        if level > 0 and tier == 1:
            on_chain_referrer = await self.reader.referrer_of(member)
            if on_chain_referrer is None:
                raise MissingReferrerError(
                    "Account has no referrer on-chain, register with a referral code first"
                )

        outcome = MembershipOutcome(action="join", member=member, tx_hash="", group=group)
        if level == 0:
            await self._register(outcome, referrer, tier)

        function_name, args = (
            ("joinLevel1", (member,)) if tier == 1 else ("joinTargetBlock", (member, group))
        )
        await simulate_or_raise(
            self.chain, self.registry_address, REGISTRY_ABI, function_name, *args, sender=member
        )
        receipt = await self.chain.send_and_wait(
            self.registry_address,
            REGISTRY_ABI,
            function_name,
            *args,
            timeout=JOIN_RECEIPT_TIMEOUT,
            gas_limit=GAS_LIMIT_JOIN,
        )
        outcome.tx_hash = receipt.tx_hash
        logger.success(f"{mask_address(member)} joined {mask_address(group)} at tier {tier}")

        outcome.new_group = await self._resolve_own_group(receipt, member, tier)
        await self._finish(outcome, tier)
        return outcome

    async def create_group(
        self,
        member: str,
        tier: int,
        referrer: str | None = None,
    ) -> MembershipOutcome:
        """
        Create the member's own group at a tier.

        Unregistered members register and create in one transaction;
        registered members may only create at their current level.

        Raises:
            EventNotFoundError: Created but the new group could not be resolved
        """
        member = self._require_connected(member)
        self._require_tier(tier)

        existing = await self.reader.my_block_at_level(member, tier)
        if existing is not None:
            raise AlreadyMemberError(f"Already owns group {existing} at tier {tier}")

        level = await self.reader.user_level(member)
        outcome = MembershipOutcome(action="create", member=member, tx_hash="")

        if level == 0:
            if referrer is None:
                raise MissingReferrerError()
            await self._check_referrer(referrer)
            fee = await self._registration_fee(tier)
            await self._check_balance(member, fee)
            approval = await self.approvals.ensure_allowance(member, self.registry_address, fee)
            outcome.approval_tx_hash = approval.tx_hash

            args = (member, referrer, tier)
            await simulate_or_raise(
                self.chain,
                self.registry_address,
                REGISTRY_ABI,
                "registerAndCreateBlock",
                *args,
                sender=member,
            )
            receipt = await self.chain.send_and_wait(
                self.registry_address,
                REGISTRY_ABI,
                "registerAndCreateBlock",
                *args,
                timeout=JOIN_RECEIPT_TIMEOUT,
                gas_limit=GAS_LIMIT_JOIN,
            )
            outcome.registered = True
            outcome.registration_tx_hash = receipt.tx_hash
        else:
            if level != tier:
                raise TierIneligibleError(
                    f"Account is level {level}, cannot create a tier {tier} group"
                )
            await simulate_or_raise(
                self.chain, self.registry_address, REGISTRY_ABI, "createMyBlock", member,
                sender=member,
            )
            receipt = await self.chain.send_and_wait(
                self.registry_address,
                REGISTRY_ABI,
                "createMyBlock",
                member,
                timeout=JOIN_RECEIPT_TIMEOUT,
                gas_limit=GAS_LIMIT_JOIN,
            )

        outcome.tx_hash = receipt.tx_hash
        outcome.new_group = resolve_first(
            receipt, created_group_resolver(self.registry_address, member)
        )
        if outcome.new_group is None:
            outcome.new_group = await self._safe_my_block(member, tier)
        if outcome.new_group is None:
            raise EventNotFoundError(
                f"Group creation confirmed ({receipt.tx_hash}) but the new group was not found"
            )
        outcome.group = outcome.new_group

        logger.success(f"{mask_address(member)} created group {mask_address(outcome.new_group)}")
        await self._finish(outcome, tier)
        return outcome

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _require_connected(self, member: str) -> str:
        account = self.chain.account_address
        if account is None or not same_address(account, member):
            raise WrongAccountError(
                f"Connected account {mask_address(account)} is not {mask_address(member)}"
            )
        return account

    @staticmethod
    def _require_tier(tier: int) -> None:
        if not is_valid_tier(tier):
            raise TierIneligibleError(f"Invalid tier: {tier}")

    async def _preflight(self, group: str, tier: int) -> BlockSnapshot:
        try:
            snapshot = await self.reader.block_snapshot(group)
        except ContractReadError as e:
            raise GroupInactiveError(f"Group {mask_address(group)} could not be read: {e}") from e

        if not same_address(snapshot.registry, self.registry_address):
            raise RegistryMismatchError(
                f"Group {mask_address(group)} belongs to registry {mask_address(snapshot.registry)}"
            )
        if not snapshot.is_active:
            raise GroupInactiveError()
        if snapshot.is_full:
            raise GroupFullError(
                f"Group has {snapshot.member_count}/{snapshot.required_members} members"
            )
        if snapshot.level != tier:
            raise TierIneligibleError(f"Group is tier {snapshot.level}, not tier {tier}")
        return snapshot

    async def _ensure_not_member(self, member: str, snapshot: BlockSnapshot, tier: int) -> None:
        """Duplicate checks; read failures here are not fatal."""
        try:
            members = await self.reader.block_members(snapshot.address)
        except ContractReadError as e:
            logger.warning(f"Member list unavailable, relying on simulation: {e}")
        else:
            if member in members:
                raise AlreadyMemberError(f"Already a member of {mask_address(snapshot.address)}")

        if same_address(snapshot.owner, member):
            raise AlreadyMemberError("Cannot join your own group")

        existing = await self._safe_my_block(member, tier)
        if existing is not None:
            raise AlreadyMemberError(f"Already owns group {existing} at tier {tier}")

    async def _check_referrer(self, referrer: str) -> None:
        if await self.reader.user_level(referrer) == 0:
            raise MissingReferrerError(f"Referrer {mask_address(referrer)} is not registered")

    async def _registration_fee(self, tier: int) -> int:
        try:
            return await self.reader.registration_fee(tier)
        except ContractReadError as e:
            fallback = to_token_units(get_tier(1).contribution) if tier == 1 else 0
            logger.warning(f"registrationFee read failed, using {fallback}: {e}")
            return fallback

    async def _check_balance(self, member: str, amount: int) -> None:
        balance = await self.reader.token_balance(member)
        if balance < amount:
            raise InsufficientBalanceError(f"Balance {balance} is below the required {amount}")

    async def _safe_my_block(self, member: str, tier: int) -> str | None:
        try:
            return await self.reader.my_block_at_level(member, tier)
        except ContractReadError as e:
            logger.warning(f"myBlockAtLevel read failed: {e}")
            return None

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _register(self, outcome: MembershipOutcome, referrer: str, tier: int) -> None:
        member = outcome.member
        await self._check_referrer(referrer)
        fee = await self._registration_fee(tier)
        await self._check_balance(member, fee)

        approval = await self.approvals.ensure_allowance(member, self.registry_address, fee)
        outcome.approval_tx_hash = approval.tx_hash

        await simulate_or_raise(
            self.chain,
            self.registry_address,
            REGISTRY_ABI,
            "registerUser",
            member,
            referrer,
            tier,
            sender=member,
        )

        receipt = await self.chain.send_and_wait(
            self.registry_address,
            REGISTRY_ABI,
            "registerUser",
            member,
            referrer,
            tier,
            timeout=JOIN_RECEIPT_TIMEOUT,
            gas_limit=GAS_LIMIT_REGISTER,
        )
        outcome.registered = True
        outcome.registration_tx_hash = receipt.tx_hash
        logger.info(f"Registered {mask_address(member)} at tier {tier}")

    async def _resolve_own_group(self, receipt: TxReceipt, member: str, tier: int) -> str | None:
        """
        Group the member received for joining.

        Order: ``MyBlockCreated`` in the join receipt, then
        ``myBlockAtLevel``, then an explicit ``createMyBlock`` for
        registries that do not create it during the join.
        """
        group = resolve_first(receipt, created_group_resolver(self.registry_address, member))
        if group:
            return group

        group = await self._safe_my_block(member, tier)
        if group:
            return group

        logger.info("Join did not create a group, calling createMyBlock")
        await simulate_or_raise(
            self.chain, self.registry_address, REGISTRY_ABI, "createMyBlock", member,
            sender=member,
        )
        create_receipt = await self.chain.send_and_wait(
            self.registry_address,
            REGISTRY_ABI,
            "createMyBlock",
            member,
            timeout=JOIN_RECEIPT_TIMEOUT,
            gas_limit=GAS_LIMIT_JOIN,
        )
        return resolve_first(create_receipt, created_group_resolver(self.registry_address, member))

    async def _disperse_fee(self, member: str, tier: int) -> StepOutcome:
        async def step() -> TxReceipt:
            return await self.chain.send_and_wait(
                self.payout_module_address,
                PAYOUT_MODULE_ABI,
                "disperseRegistrationFee",
                member,
                tier,
                timeout=AUXILIARY_RECEIPT_TIMEOUT,
                gas_limit=GAS_LIMIT_DISPERSE,
            )

        return await run_auxiliary_step("disperseRegistrationFee", step)

    async def _finish(self, outcome: MembershipOutcome, tier: int) -> None:
        if outcome.registered:
            outcome.auxiliary.append(await self._disperse_fee(outcome.member, tier))
        if self.context is not None:
            self.context.invalidate()
        if self.notifications is not None:
            await self.notifications.notify_outcome(outcome)
