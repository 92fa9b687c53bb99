"""
Contract Reads.

Typed read boundary over the Registry, Block clones and the token.
Raw call results are validated here; anything of unexpected shape raises
ContractReadError instead of travelling further.
"""

import asyncio
from typing import Any

from loguru import logger
from pydantic import ValidationError

from cundina.models.chain import BlockSnapshot, OnChainStatus, TopBlock
from cundina.utils.exceptions import ContractReadError
from cundina.utils.security import mask_address
from cundina.utils.validation import is_zero_address

from .abis import BLOCK_ABI, ERC20_ABI, REGISTRY_ABI
from .chain_client import ChainClient


def _as_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ContractReadError(f"{what}: expected integer, got {type(value).__name__}")
    if value < 0:
        raise ContractReadError(f"{what}: negative value {value}")
    return value


def _as_address(value: Any, what: str) -> str | None:
    """Lower-case address, None for the zero address."""
    if not isinstance(value, str) or len(value) != 42 or not value.startswith("0x"):
        raise ContractReadError(f"{what}: expected address, got {value!r}")
    return None if is_zero_address(value) else value.lower()


def _as_address_list(value: Any, what: str) -> list[str]:
    if not isinstance(value, list | tuple):
        raise ContractReadError(f"{what}: expected address list, got {type(value).__name__}")
    addresses = []
    for item in value:
        address = _as_address(item, what)
        if address:
            addresses.append(address)
    return addresses


class ContractReader:
    """Typed reads against the deployed contracts."""

    def __init__(
        self,
        chain: ChainClient,
        registry_address: str,
        token_address: str,
    ) -> None:
        self.chain = chain
        self.registry_address = registry_address.lower()
        self.token_address = token_address.lower()

    async def _registry(self, function_name: str, *args: Any) -> Any:
        return await self.chain.read_contract(
            self.registry_address, REGISTRY_ABI, function_name, *args
        )

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def user_level(self, user: str) -> int:
        """On-chain level, 0 when unregistered."""
        return _as_int(await self._registry("userLevel", user), "userLevel")

    async def my_block_at_level(self, user: str, level: int) -> str | None:
        return _as_address(await self._registry("myBlockAtLevel", user, level), "myBlockAtLevel")

    async def registration_fee(self, level: int) -> int:
        return _as_int(await self._registry("registrationFee", level), "registrationFee")

    async def referrer_of(self, user: str) -> str | None:
        return _as_address(await self._registry("referrerOf", user), "referrerOf")

    async def referral_code(self, user: str) -> bytes:
        value = await self._registry("getReferralCode", user)
        if not isinstance(value, bytes | bytearray) or len(value) != 32:
            raise ContractReadError(f"getReferralCode: expected bytes32, got {value!r}")
        return bytes(value)

    async def resolve_referral_code(self, code: bytes) -> str | None:
        return _as_address(await self._registry("resolveReferralCode", code), "resolveReferralCode")

    async def all_user_blocks(self, user: str) -> list[str]:
        return _as_address_list(await self._registry("getAllUserBlocks", user), "getAllUserBlocks")

    async def invited_count(self, block: str) -> int:
        return _as_int(await self._registry("getInvitedCount", block), "getInvitedCount")

    async def top_block_at_level(self, level: int) -> TopBlock:
        value = await self._registry("findTopBlockAtLevel", level)
        if not isinstance(value, list | tuple) or len(value) != 2:
            raise ContractReadError(f"findTopBlockAtLevel: expected pair, got {value!r}")
        return TopBlock(
            block=_as_address(value[0], "findTopBlockAtLevel.topBlock"),
            creator=_as_address(value[1], "findTopBlockAtLevel.topBlockCreator"),
        )

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    async def token_balance(self, owner: str) -> int:
        value = await self.chain.read_contract(self.token_address, ERC20_ABI, "balanceOf", owner)
        return _as_int(value, "balanceOf")

    async def token_allowance(self, owner: str, spender: str) -> int:
        value = await self.chain.read_contract(
            self.token_address, ERC20_ABI, "allowance", owner, spender
        )
        return _as_int(value, "allowance")

    # ------------------------------------------------------------------
    # Block clones
    # ------------------------------------------------------------------

    async def _block(self, block: str, function_name: str) -> Any:
        return await self.chain.read_contract(block, BLOCK_ABI, function_name)

    async def block_members(self, block: str) -> list[str]:
        return _as_address_list(await self._block(block, "getMembers"), "getMembers")

    async def block_snapshot(self, block: str) -> BlockSnapshot:
        """
        Read all state needed for preflight checks and rankings.

        ``membersCount`` is optional on older clones; the member list
        length is used instead.

        Raises:
            ContractReadError: If a required field cannot be read
        """
        names = (
            "owner",
            "levelId",
            "requiredMembers",
            "status",
            "registry",
            "createdAt",
            "completedAt",
            "contributionAmount",
        )
        values = await asyncio.gather(*(self._block(block, name) for name in names))
        raw = dict(zip(names, values, strict=True))

        try:
            member_count = _as_int(await self._block(block, "membersCount"), "membersCount")
        except ContractReadError:
            logger.debug(f"membersCount unavailable on {mask_address(block)}, using getMembers")
            member_count = len(await self.block_members(block))

        status = _as_int(raw["status"], "status")
        if status not in (OnChainStatus.ACTIVE, OnChainStatus.COMPLETED):
            raise ContractReadError(f"status: unknown value {status}")

        try:
            return BlockSnapshot(
                address=block,
                owner=raw["owner"],
                level=_as_int(raw["levelId"], "levelId"),
                required_members=_as_int(raw["requiredMembers"], "requiredMembers"),
                member_count=member_count,
                status=OnChainStatus(status),
                registry=raw["registry"],
                created_at=_as_int(raw["createdAt"], "createdAt"),
                completed_at=_as_int(raw["completedAt"], "completedAt"),
                contribution_amount=_as_int(raw["contributionAmount"], "contributionAmount"),
            )
        except ValidationError as e:
            raise ContractReadError(f"Block {mask_address(block)} snapshot invalid: {e}") from e
