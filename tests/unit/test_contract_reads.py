"""
Unit tests for typed contract reads.
"""

from unittest.mock import AsyncMock

import pytest

from cundina.config.constants import ZERO_ADDRESS
from cundina.models.chain import OnChainStatus
from cundina.services.blockchain.contract_reads import ContractReader
from cundina.utils.exceptions import ContractReadError
from tests.helpers import GROUP, MEMBER, OTHER, REFERRER, REGISTRY, TOKEN

UPPER_GROUP = "0x" + GROUP[2:].upper()

BLOCK_STATE = {
    "owner": REFERRER,
    "levelId": 1,
    "requiredMembers": 9,
    "membersCount": 4,
    "status": 0,
    "registry": REGISTRY.upper().replace("0X", "0x"),
    "createdAt": 1_700_000_000,
    "completedAt": 0,
    "contributionAmount": 20_000_000,
    "getMembers": [REFERRER, MEMBER],
}


def chain_with(registry=None, block=None):
    """Mock chain answering read_contract from lookup tables."""
    registry = registry or {}
    block = dict(BLOCK_STATE, **(block or {}))

    async def read_contract(address, abi, function_name, *args):
        table = registry if address == REGISTRY else block
        value = table[function_name]
        if isinstance(value, Exception):
            raise value
        return value

    chain = AsyncMock()
    chain.read_contract = AsyncMock(side_effect=read_contract)
    return chain


class TestRegistryReads:
    """Test Registry reads."""

    @pytest.mark.asyncio
    async def test_zero_address_means_none(self):
        """Zero address should be read as None."""
        reader = ContractReader(chain_with({"myBlockAtLevel": ZERO_ADDRESS}), REGISTRY, TOKEN)
        assert await reader.my_block_at_level(MEMBER, 1) is None

    @pytest.mark.asyncio
    async def test_address_lower_cased(self):
        reader = ContractReader(chain_with({"referrerOf": UPPER_GROUP}), REGISTRY, TOKEN)
        assert await reader.referrer_of(MEMBER) == GROUP

    @pytest.mark.asyncio
    async def test_unexpected_shape(self):
        """Test that a malformed value raises ContractReadError."""
        reader = ContractReader(chain_with({"userLevel": "one"}), REGISTRY, TOKEN)

        with pytest.raises(ContractReadError):
            await reader.user_level(MEMBER)

    @pytest.mark.asyncio
    async def test_top_block(self):
        """Test top block tuple is parsed."""
        reader = ContractReader(
            chain_with({"findTopBlockAtLevel": (GROUP, OTHER)}), REGISTRY, TOKEN
        )

        top = await reader.top_block_at_level(2)

        assert top.block == GROUP
        assert top.creator == OTHER

    @pytest.mark.asyncio
    async def test_no_top_block(self):
        reader = ContractReader(
            chain_with({"findTopBlockAtLevel": (ZERO_ADDRESS, ZERO_ADDRESS)}), REGISTRY, TOKEN
        )
        assert (await reader.top_block_at_level(2)).block is None

    @pytest.mark.asyncio
    async def test_referral_code_must_be_bytes32(self):
        """Referral code must decode to 32 bytes."""
        reader = ContractReader(chain_with({"getReferralCode": b"short"}), REGISTRY, TOKEN)

        with pytest.raises(ContractReadError):
            await reader.referral_code(MEMBER)


class TestBlockSnapshot:
    """Test block_snapshot."""

    @pytest.mark.asyncio
    async def test_snapshot(self):
        """Test that a full snapshot is read from the group."""
        snapshot = await ContractReader(chain_with(), REGISTRY, TOKEN).block_snapshot(GROUP)

        assert snapshot.address == GROUP
        assert snapshot.registry == REGISTRY
        assert snapshot.member_count == 4
        assert snapshot.status == OnChainStatus.ACTIVE
        assert snapshot.is_active is True
        assert snapshot.is_full is False

    @pytest.mark.asyncio
    async def test_member_list_when_count_missing(self):
        """Member count should fall back to the member list."""
        chain = chain_with(block={"membersCount": ContractReadError("no such function")})

        snapshot = await ContractReader(chain, REGISTRY, TOKEN).block_snapshot(GROUP)

        assert snapshot.member_count == 2

    @pytest.mark.asyncio
    async def test_unknown_status(self):
        chain = chain_with(block={"status": 5})

        with pytest.raises(ContractReadError):
            await ContractReader(chain, REGISTRY, TOKEN).block_snapshot(GROUP)

    @pytest.mark.asyncio
    async def test_required_field_unreadable(self):
        """Test snapshot read fails when a required field reverts."""
        chain = chain_with(block={"registry": ContractReadError("reverted")})

        with pytest.raises(ContractReadError):
            await ContractReader(chain, REGISTRY, TOKEN).block_snapshot(GROUP)
