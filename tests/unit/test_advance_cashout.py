"""
Unit tests for the advance / cashout orchestrator.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cundina.models.chain import OnChainStatus, TopBlock
from cundina.services.blockchain.event_resolver import (
    ADVANCE_EXECUTED,
    CASHOUT_EXECUTED,
    MY_BLOCK_CREATED,
)
from cundina.services.membership.advance_cashout import AdvanceCashoutOrchestrator
from cundina.utils.exceptions import (
    ContractReadError,
    GroupNotCompletedError,
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
    REGISTRY,
    TOP_GROUP,
    build_log,
    build_receipt,
    build_snapshot,
)

ADVANCE_TX = "0x" + "0a" * 32
TOP_JOIN_TX = "0x" + "0b" * 32


def completed_group(level=1, owner=MEMBER):
    required = 10 - level
    return build_snapshot(
        owner=owner,
        level=level,
        required=required,
        members=required,
        status=OnChainStatus.COMPLETED,
    )


def advance_receipt(next_block=NEW_GROUP):
    log = build_log(
        ADVANCE_EXECUTED,
        PAYOUT_MODULE,
        center=MEMBER,
        blockAddr=GROUP,
        payout=100_000_000,
        payoutTo=MEMBER,
        nextBlock=next_block,
    )
    return build_receipt(log, tx_hash=ADVANCE_TX)


@pytest.fixture
def context():
    return MagicMock()


@pytest.fixture
def settlement(mock_chain, mock_reader, context):
    mock_reader.block_snapshot.return_value = completed_group()
    mock_reader.top_block_at_level = AsyncMock(
        return_value=TopBlock(block=TOP_GROUP, creator=OTHER)
    )
    return AdvanceCashoutOrchestrator(
        mock_chain, mock_reader, PAYOUT_MODULE, context=context, notifications=AsyncMock()
    )


class TestOwnershipChecks:
    """Checks shared by advance and cashout."""

    @pytest.mark.asyncio
    async def test_caller_is_not_connected_account(self, settlement, mock_reader):
        """Owner other than the signing account should be rejected."""
        with pytest.raises(WrongAccountError):
            await settlement.advance(GROUP, OTHER)

        mock_reader.block_snapshot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_group_owned_by_someone_else(self, settlement, mock_chain, mock_reader):
        """Test that a group owned by another wallet cannot be settled."""
        mock_reader.block_snapshot.return_value = completed_group(owner=OTHER)

        with pytest.raises(WrongAccountError):
            await settlement.cashout(GROUP, MEMBER)

        mock_chain.send_and_wait.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_group_not_completed(self, settlement, mock_reader):
        """Active groups cannot advance."""
        mock_reader.block_snapshot.return_value = build_snapshot(owner=MEMBER)

        with pytest.raises(GroupNotCompletedError):
            await settlement.advance(GROUP, MEMBER)


class TestAdvance:
    """Test advance."""

    @pytest.mark.asyncio
    async def test_advance_and_join_top_group(self, settlement, mock_chain, context):
        """Test advance followed by a join of the top group at the next tier."""
        mock_chain.send_and_wait.side_effect = [
            advance_receipt(),
            build_receipt(tx_hash=TOP_JOIN_TX),
        ]

        outcome = await settlement.advance(GROUP, MEMBER)

        assert outcome.action == "advance"
        assert outcome.tx_hash == ADVANCE_TX
        assert outcome.group == GROUP
        assert outcome.new_group == NEW_GROUP
        advance_call, join_call = mock_chain.send_and_wait.await_args_list
        assert advance_call.args[2:] == ("advance", GROUP, MEMBER, MEMBER)
        assert join_call.args[2:] == ("joinTargetBlock", MEMBER, TOP_GROUP)
        assert outcome.auxiliary[0].succeeded is True
        assert outcome.auxiliary[0].tx_hash == TOP_JOIN_TX
        context.invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_top_group_looked_up_at_next_tier(self, settlement, mock_chain, mock_reader):
        """Top group lookup should use tier + 1."""
        mock_reader.block_snapshot.return_value = completed_group(level=3)
        mock_chain.send_and_wait.return_value = advance_receipt()

        await settlement.advance(GROUP, MEMBER)

        mock_reader.top_block_at_level.assert_awaited_once_with(4)

    @pytest.mark.asyncio
    async def test_new_group_from_creation_event(self, settlement, mock_chain):
        """Test that MyBlockCreated is used when AdvanceExecuted is absent."""
        created = build_log(
            MY_BLOCK_CREATED, REGISTRY, center=MEMBER, level=2, blockAddress=NEW_GROUP
        )
        mock_chain.send_and_wait.return_value = build_receipt(created, tx_hash=ADVANCE_TX)

        outcome = await settlement.advance(GROUP, MEMBER)

        assert outcome.new_group == NEW_GROUP

    @pytest.mark.asyncio
    async def test_new_group_missing_from_receipt(self, settlement, mock_chain):
        mock_chain.send_and_wait.return_value = build_receipt(tx_hash=ADVANCE_TX)

        outcome = await settlement.advance(GROUP, MEMBER)

        assert outcome.tx_hash == ADVANCE_TX
        assert outcome.new_group is None

    @pytest.mark.asyncio
    async def test_top_group_join_failure_is_not_fatal(self, settlement, mock_chain):
        """Failed top group join is reported as an auxiliary outcome."""
        mock_chain.send_and_wait.side_effect = [
            advance_receipt(),
            TransactionRevertedError("Block full", tx_hash=TOP_JOIN_TX),
        ]

        outcome = await settlement.advance(GROUP, MEMBER)

        assert outcome.new_group == NEW_GROUP
        assert outcome.auxiliary_failed is True
        assert outcome.auxiliary[0].name == "joinTargetBlock"
        assert outcome.auxiliary[0].tx_hash == TOP_JOIN_TX

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "top",
        [TopBlock(), TopBlock(block=TOP_GROUP, creator=MEMBER)],
    )
    async def test_nothing_to_join(self, settlement, mock_chain, mock_reader, top):
        """Test no join when there is no top group or it is our own."""
        mock_reader.top_block_at_level.return_value = top
        mock_chain.send_and_wait.return_value = advance_receipt()

        outcome = await settlement.advance(GROUP, MEMBER)

        assert mock_chain.send_and_wait.await_count == 1
        assert outcome.auxiliary[0].succeeded is True
        assert outcome.auxiliary[0].tx_hash is None

    @pytest.mark.asyncio
    async def test_top_group_unreadable(self, settlement, mock_chain, mock_reader):
        """Unreadable top group skips the join without failing advance."""
        mock_reader.top_block_at_level.side_effect = ContractReadError("reverted")
        mock_chain.send_and_wait.return_value = advance_receipt()

        outcome = await settlement.advance(GROUP, MEMBER)

        assert outcome.auxiliary_failed is False
        assert mock_chain.send_and_wait.await_count == 1

    @pytest.mark.asyncio
    async def test_last_tier_cannot_advance(self, settlement, mock_chain, mock_reader):
        """Test that tier 7 cannot advance."""
        mock_reader.block_snapshot.return_value = completed_group(level=7)

        with pytest.raises(TierIneligibleError):
            await settlement.advance(GROUP, MEMBER)

        mock_chain.simulate.assert_not_awaited()


class TestCashout:
    """Test cashout."""

    @pytest.mark.asyncio
    async def test_cashout_reports_payout(self, settlement, mock_chain, context):
        """Test cashout payout is read from CashoutExecuted."""
        log = build_log(
            CASHOUT_EXECUTED,
            PAYOUT_MODULE,
            center=MEMBER,
            blockAddr=GROUP,
            payout=180_000_000,
            payoutTo=OTHER,
        )
        mock_chain.send_and_wait.return_value = build_receipt(log)

        outcome = await settlement.cashout(GROUP, MEMBER, payout_to=OTHER)

        assert outcome.action == "cashout"
        assert outcome.payout == 180_000_000
        assert outcome.new_group is None
        assert mock_chain.send_and_wait.await_args.args[2:] == ("cashout", GROUP, MEMBER, OTHER)
        context.invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_cashout_at_last_tier(self, settlement, mock_chain, mock_reader):
        mock_reader.block_snapshot.return_value = completed_group(level=7)

        outcome = await settlement.cashout(GROUP, MEMBER)

        assert outcome.payout is None
        mock_reader.top_block_at_level.assert_not_awaited()
