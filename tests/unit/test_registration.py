"""
Unit tests for the registration orchestrator.

Tests cover:
- Preflight rejections before any transaction
- Join for registered and unregistered members
- Own-group resolution order
- Referral routing in join_or_create
- Group creation
- Best-effort fee dispersal
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cundina.models.chain import OnChainStatus
from cundina.services.blockchain.event_resolver import MY_BLOCK_CREATED
from cundina.services.membership.referral import ReferralService
from cundina.services.membership.registration import RegistrationOrchestrator
from cundina.services.membership.token_approval import TokenApprovalManager
from cundina.utils.exceptions import (
    AlreadyMemberError,
    ContractReadError,
    EventNotFoundError,
    GroupFullError,
    GroupInactiveError,
    InsufficientBalanceError,
    MissingReferrerError,
    RegistryMismatchError,
    SimulationRevertedError,
    TierIneligibleError,
    TransactionRevertedError,
    WrongAccountError,
)
from tests.helpers import (
    GROUP,
    MEMBER,
    NEW_GROUP,
    OTHER,
    PAYOUT_MODULE,
    REFERRER,
    REGISTRY,
    build_log,
    build_receipt,
    build_snapshot,
)

APPROVE_TX = "0x" + "01" * 32
REGISTER_TX = "0x" + "02" * 32
JOIN_TX = "0x" + "03" * 32
DISPERSE_TX = "0x" + "04" * 32


def created_receipt(tx_hash=JOIN_TX, center=MEMBER, level=1):
    log = build_log(
        MY_BLOCK_CREATED, REGISTRY, center=center, level=level, blockAddress=NEW_GROUP
    )
    return build_receipt(log, tx_hash=tx_hash)


def levels(**by_wallet):
    """user_level side effect keyed by wallet."""
    table = {MEMBER: by_wallet.get("member", 1), REFERRER: by_wallet.get("referrer", 1)}
    return lambda wallet: table.get(wallet.lower(), 0)


def called_functions(mock_chain):
    return [c.args[2] for c in mock_chain.send_and_wait.await_args_list]


@pytest.fixture
def context():
    return MagicMock()


@pytest.fixture
def notifications():
    return AsyncMock()


@pytest.fixture
def orchestrator(mock_chain, mock_reader, context, notifications):
    return RegistrationOrchestrator(
        chain=mock_chain,
        reader=mock_reader,
        approvals=TokenApprovalManager(mock_chain, mock_reader),
        referrals=ReferralService(mock_reader, "https://cundina.test"),
        payout_module_address=PAYOUT_MODULE,
        context=context,
        notifications=notifications,
    )


class TestJoinPreflight:
    """Rejections raised before any transaction is submitted."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "snapshot,error",
        [
            (build_snapshot(members=9), GroupFullError),
            (build_snapshot(status=OnChainStatus.COMPLETED), GroupInactiveError),
            (build_snapshot(registry=OTHER), RegistryMismatchError),
            (build_snapshot(level=2, required=8), TierIneligibleError),
            (build_snapshot(owner=MEMBER), AlreadyMemberError),
        ],
    )
    async def test_snapshot_rejections(
        self, orchestrator, mock_chain, mock_reader, snapshot, error
    ):
        """Test preflight rejections from the group snapshot."""
        mock_reader.block_snapshot.return_value = snapshot

        with pytest.raises(error):
            await orchestrator.join_group(MEMBER, GROUP, 1)

        mock_chain.send_and_wait.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_group(self, orchestrator, mock_reader):
        """Unreadable group should be treated as inactive."""
        mock_reader.block_snapshot.side_effect = ContractReadError("no code")

        with pytest.raises(GroupInactiveError):
            await orchestrator.join_group(MEMBER, GROUP, 1)

    @pytest.mark.asyncio
    async def test_already_in_member_list(self, orchestrator, mock_chain, mock_reader):
        """Test that an existing member cannot join again."""
        mock_reader.block_members.return_value = [REFERRER, MEMBER]

        with pytest.raises(AlreadyMemberError):
            await orchestrator.join_group(MEMBER, GROUP, 1)

        mock_chain.simulate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_owns_group_at_tier(self, orchestrator, mock_reader):
        """Test member with a group at the tier is rejected."""
        mock_reader.my_block_at_level.return_value = NEW_GROUP

        with pytest.raises(AlreadyMemberError):
            await orchestrator.join_group(MEMBER, GROUP, 1)

    @pytest.mark.asyncio
    async def test_higher_level_member_cannot_join_level1(self, orchestrator, mock_reader):
        """Members above level 1 cannot join a level 1 group."""
        mock_reader.user_level.side_effect = levels(member=2)

        with pytest.raises(TierIneligibleError):
            await orchestrator.join_group(MEMBER, GROUP, 1)

    @pytest.mark.asyncio
    async def test_registered_member_without_referrer(self, orchestrator, mock_reader):
        """Test level 1 join requires a referrer on record."""
        mock_reader.referrer_of.return_value = None

        with pytest.raises(MissingReferrerError):
            await orchestrator.join_group(MEMBER, GROUP, 1)

    @pytest.mark.asyncio
    async def test_wrong_account(self, orchestrator, mock_reader):
        """Member other than the signing account should be rejected."""
        with pytest.raises(WrongAccountError):
            await orchestrator.join_group(OTHER, GROUP, 1)

        mock_reader.block_snapshot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_tier(self, orchestrator):
        with pytest.raises(TierIneligibleError):
            await orchestrator.join_group(MEMBER, GROUP, 8)

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, orchestrator, mock_chain, mock_reader):
        """Test registration fails when balance is below the fee."""
        mock_reader.user_level.side_effect = levels(member=0)
        mock_reader.token_balance.return_value = 1

        with pytest.raises(InsufficientBalanceError):
            await orchestrator.join_group(MEMBER, GROUP, 1)

        mock_chain.send_and_wait.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_simulation_revert_is_translated(self, orchestrator, mock_chain):
        """Test simulation revert reason is mapped to a typed error."""
        mock_chain.simulate.side_effect = SimulationRevertedError("execution reverted: Block full")

        with pytest.raises(GroupFullError):
            await orchestrator.join_group(MEMBER, GROUP, 1)

        mock_chain.send_and_wait.assert_not_awaited()


class TestJoinGroup:
    """Successful joins."""

    @pytest.mark.asyncio
    async def test_registered_member_joins_level1(
        self, orchestrator, mock_chain, context, notifications
    ):
        """Test registered member joins level 1 without paying a fee."""
        mock_chain.send_and_wait.return_value = created_receipt()

        outcome = await orchestrator.join_group(MEMBER, GROUP, 1)

        assert outcome.action == "join"
        assert outcome.tx_hash == JOIN_TX
        assert outcome.group == GROUP
        assert outcome.new_group == NEW_GROUP
        assert outcome.registered is False
        assert outcome.auxiliary == []
        assert called_functions(mock_chain) == ["joinLevel1"]
        context.invalidate.assert_called_once()
        notifications.notify_outcome.assert_awaited_once_with(outcome)

    @pytest.mark.asyncio
    async def test_unregistered_member_registers_first(self, orchestrator, mock_chain, mock_reader):
        """Unregistered member should approve, register, join and disperse."""
        mock_reader.user_level.side_effect = levels(member=0)
        mock_chain.send_and_wait.side_effect = [
            build_receipt(tx_hash=APPROVE_TX),
            build_receipt(tx_hash=REGISTER_TX),
            created_receipt(),
            build_receipt(tx_hash=DISPERSE_TX),
        ]

        outcome = await orchestrator.join_group(MEMBER, GROUP, 1)

        assert called_functions(mock_chain) == [
            "approve",
            "registerUser",
            "joinLevel1",
            "disperseRegistrationFee",
        ]
        register_call = mock_chain.send_and_wait.await_args_list[1]
        assert register_call.args[3:] == (MEMBER, REFERRER, 1)
        assert outcome.registered is True
        assert outcome.approval_tx_hash == APPROVE_TX
        assert outcome.registration_tx_hash == REGISTER_TX
        assert outcome.tx_hash == JOIN_TX
        assert outcome.auxiliary[0].succeeded is True
        assert outcome.auxiliary[0].tx_hash == DISPERSE_TX

    @pytest.mark.asyncio
    async def test_registration_revert_stops_before_sending(
        self, orchestrator, mock_chain, mock_reader
    ):
        """Registration that would revert should not be submitted."""
        mock_reader.user_level.side_effect = levels(member=0)
        mock_reader.token_allowance.return_value = 50_000_000

        async def simulate(address, abi, function_name, *args, sender=None):
            if function_name == "registerUser":
                raise SimulationRevertedError("execution reverted: referrer not registered")

        mock_chain.simulate.side_effect = simulate

        with pytest.raises(MissingReferrerError):
            await orchestrator.join_group(MEMBER, GROUP, 1)

        simulate_call = mock_chain.simulate.await_args
        assert simulate_call.args[2:] == ("registerUser", MEMBER, REFERRER, 1)
        assert simulate_call.kwargs["sender"] == MEMBER
        mock_chain.send_and_wait.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dispersal_failure_is_not_fatal(self, orchestrator, mock_chain, mock_reader):
        """Test failed fee dispersal is only an auxiliary outcome."""
        mock_reader.user_level.side_effect = levels(member=0)
        mock_reader.token_allowance.return_value = 50_000_000
        mock_chain.send_and_wait.side_effect = [
            build_receipt(tx_hash=REGISTER_TX),
            created_receipt(),
            TransactionRevertedError("Already dispersed"),
        ]

        outcome = await orchestrator.join_group(MEMBER, GROUP, 1)

        assert outcome.tx_hash == JOIN_TX
        assert outcome.new_group == NEW_GROUP
        assert outcome.auxiliary_failed is True
        assert outcome.auxiliary[0].error == "Already dispersed"

    @pytest.mark.asyncio
    async def test_higher_tier_uses_target_join(self, orchestrator, mock_chain, mock_reader):
        """Test tiers above 1 use joinTargetBlock."""
        mock_reader.block_snapshot.return_value = build_snapshot(level=3, required=7)
        mock_reader.user_level.side_effect = levels(member=3)
        mock_chain.send_and_wait.return_value = created_receipt(level=3)

        outcome = await orchestrator.join_group(MEMBER, GROUP, 3)

        call = mock_chain.send_and_wait.await_args
        assert call.args[2:] == ("joinTargetBlock", MEMBER, GROUP)
        assert outcome.new_group == NEW_GROUP
        mock_reader.referrer_of.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_own_group_from_registry_read(self, orchestrator, mock_chain, mock_reader):
        """Own group should be read when the event is missing."""
        mock_reader.my_block_at_level.side_effect = [None, NEW_GROUP]

        outcome = await orchestrator.join_group(MEMBER, GROUP, 1)

        assert outcome.new_group == NEW_GROUP
        assert called_functions(mock_chain) == ["joinLevel1"]

    @pytest.mark.asyncio
    async def test_own_group_created_explicitly(self, orchestrator, mock_chain):
        """Test createMyBlock is sent when no group exists yet."""
        mock_chain.send_and_wait.side_effect = [
            build_receipt(tx_hash=JOIN_TX),
            created_receipt(tx_hash=REGISTER_TX),
        ]

        outcome = await orchestrator.join_group(MEMBER, GROUP, 1)

        assert called_functions(mock_chain) == ["joinLevel1", "createMyBlock"]
        assert outcome.tx_hash == JOIN_TX
        simulated = [c.args[2] for c in mock_chain.simulate.await_args_list]
        assert simulated == ["joinLevel1", "createMyBlock"]
        assert outcome.new_group == NEW_GROUP


class TestJoinOrCreate:
    """Referral routing."""

    @pytest.mark.asyncio
    async def test_group_address_joins_directly(self, orchestrator, mock_chain, mock_reader):
        """Test contract reference is joined directly."""
        mock_chain.is_contract.return_value = True

        outcome = await orchestrator.join_or_create(MEMBER, GROUP, 1)

        assert outcome.group == GROUP
        mock_reader.block_snapshot.assert_awaited_once_with(GROUP)

    @pytest.mark.asyncio
    async def test_level1_referrer_routes_into_their_group(
        self, orchestrator, mock_chain, mock_reader
    ):
        """Level 1 referrer should route into their own group."""
        mock_reader.my_block_at_level.side_effect = (
            lambda wallet, level: GROUP if wallet == REFERRER else None
        )
        mock_chain.send_and_wait.return_value = created_receipt()

        outcome = await orchestrator.join_or_create(MEMBER, REFERRER, 1)

        assert outcome.action == "join"
        assert outcome.group == GROUP

    @pytest.mark.asyncio
    async def test_level1_referrer_without_group(self, orchestrator, mock_reader):
        with pytest.raises(MissingReferrerError):
            await orchestrator.join_or_create(MEMBER, REFERRER, 1)

    @pytest.mark.asyncio
    async def test_higher_level_referrer_creates_own_group(
        self, orchestrator, mock_chain, mock_reader
    ):
        """Test higher level referrer leads to the create flow."""
        mock_reader.user_level.side_effect = levels(member=0, referrer=3)
        mock_chain.send_and_wait.side_effect = [
            build_receipt(tx_hash=APPROVE_TX),
            created_receipt(),
            build_receipt(tx_hash=DISPERSE_TX),
        ]

        outcome = await orchestrator.join_or_create(MEMBER, REFERRER, 1)

        assert outcome.action == "create"
        assert outcome.new_group == NEW_GROUP
        assert outcome.group == NEW_GROUP
        assert called_functions(mock_chain) == [
            "approve",
            "registerAndCreateBlock",
            "disperseRegistrationFee",
        ]

    @pytest.mark.asyncio
    async def test_self_referral(self, orchestrator):
        """Test that members cannot refer themselves."""
        with pytest.raises(MissingReferrerError):
            await orchestrator.join_or_create(MEMBER, MEMBER, 1)

    @pytest.mark.asyncio
    async def test_unregistered_referrer(self, orchestrator, mock_chain, mock_reader):
        mock_reader.user_level.side_effect = levels(referrer=0)

        with pytest.raises(MissingReferrerError):
            await orchestrator.join_or_create(MEMBER, REFERRER, 1)

        mock_chain.send_and_wait.assert_not_awaited()


class TestCreateGroup:
    """Group creation."""

    @pytest.mark.asyncio
    async def test_registered_member_creates_at_own_level(
        self, orchestrator, mock_chain, mock_reader, context
    ):
        """Test registered member creates a group at their level."""
        mock_reader.user_level.side_effect = levels(member=2)
        mock_chain.send_and_wait.return_value = created_receipt(level=2)

        outcome = await orchestrator.create_group(MEMBER, 2)

        assert called_functions(mock_chain) == ["createMyBlock"]
        assert outcome.new_group == NEW_GROUP
        assert outcome.registered is False
        context.invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_level_mismatch(self, orchestrator, mock_reader):
        """Create at another tier than the member level should fail."""
        mock_reader.user_level.side_effect = levels(member=2)

        with pytest.raises(TierIneligibleError):
            await orchestrator.create_group(MEMBER, 3)

    @pytest.mark.asyncio
    async def test_existing_group(self, orchestrator, mock_reader):
        mock_reader.my_block_at_level.return_value = GROUP

        with pytest.raises(AlreadyMemberError):
            await orchestrator.create_group(MEMBER, 1)

    @pytest.mark.asyncio
    async def test_unregistered_needs_referrer(self, orchestrator, mock_reader):
        """Test unregistered member needs a referrer to create."""
        mock_reader.user_level.side_effect = levels(member=0)

        with pytest.raises(MissingReferrerError):
            await orchestrator.create_group(MEMBER, 1)

    @pytest.mark.asyncio
    async def test_created_group_not_found(self, orchestrator, mock_chain, mock_reader):
        """Missing creation event should raise EventNotFoundError."""
        mock_reader.user_level.side_effect = levels(member=1)

        with pytest.raises(EventNotFoundError):
            await orchestrator.create_group(MEMBER, 1)

        mock_chain.send_and_wait.assert_awaited_once()
