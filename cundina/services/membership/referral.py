"""
Referral resolution and invite links.

A referral reference can be a wallet address, a raw bytes32 code, or a
short text code. Codes are stored on the Registry as bytes32 and shown
to users as 64 upper-case hex characters.
"""

from urllib.parse import quote

from loguru import logger

from cundina.services.blockchain.contract_reads import ContractReader
from cundina.utils.exceptions import InvalidReferralError
from cundina.utils.security import mask_address
from cundina.utils.validation import is_bytes32_hex, is_wallet_address


def encode_referral_code(code: str) -> bytes:
    """
    Encode a referral code as bytes32.

    - ``0x`` + 64 hex or bare 64 hex: taken as the raw bytes
    - anything else: UTF-8 text, right-padded with zero bytes

    Raises:
        InvalidReferralError: Empty code or text longer than 32 bytes
    """
    code = code.strip()
    if not code:
        raise InvalidReferralError("Referral code is empty")
    if is_bytes32_hex(code):
        return bytes.fromhex(code.removeprefix("0x"))

    encoded = code.encode("utf-8")
    if len(encoded) > 32:
        raise InvalidReferralError(f"Referral code too long: {code}")
    return encoded.ljust(32, b"\x00")


def format_referral_code(raw: bytes) -> str | None:
    """Display form of an on-chain code, None when unset."""
    if not any(raw):
        return None
    return raw.hex().upper()


def build_invite_link(base_url: str, entity: str, identifier: str, code: str) -> str:
    """``{base}/{entity}/{id}?ref={code}``"""
    return f"{base_url.rstrip('/')}/{entity}/{identifier}?ref={quote(code)}"


class ReferralService:
    """Referral code lookups against the Registry."""

    def __init__(self, reader: ContractReader, base_url: str) -> None:
        self.reader = reader
        self.base_url = base_url

    async def resolve_referrer(self, reference: str) -> str:
        """
        Resolve a reference to the referrer's wallet.

        Args:
            reference: Wallet address or referral code

        Returns:
            Referrer address (lower-case)

        Raises:
            InvalidReferralError: Code does not resolve to a member
        """
        if is_wallet_address(reference):
            return reference.lower()

        referrer = await self.reader.resolve_referral_code(encode_referral_code(reference))
        if referrer is None:
            raise InvalidReferralError(f"Referral code {reference} is not registered")

        logger.debug(f"Referral code resolved to {mask_address(referrer)}")
        return referrer

    async def referral_code_of(self, wallet: str) -> str | None:
        return format_referral_code(await self.reader.referral_code(wallet))

    async def invite_link(
        self,
        wallet: str,
        entity: str = "block",
        identifier: str | None = None,
    ) -> str:
        """
        Invite link carrying the wallet's referral code.

        Args:
            wallet: Inviting member
            entity: Path segment of the target page
            identifier: Target id; defaults to the member's level-1 group

        Raises:
            InvalidReferralError: Wallet has no code or nothing to invite to
        """
        code = await self.referral_code_of(wallet)
        if code is None:
            raise InvalidReferralError(f"{mask_address(wallet)} has no referral code")

        if identifier is None:
            identifier = await self.reader.my_block_at_level(wallet, 1)
            if identifier is None:
                raise InvalidReferralError(f"{mask_address(wallet)} has no level-1 group")
        return build_invite_link(self.base_url, entity, identifier, code)
