"""
Single source of truth for tier configuration.

Mirrors the deployed Registry: every tier has a fixed group size and a
fixed contribution per member. Amounts are expressed in whole token
units; use ``to_token_units`` to convert to the on-chain integer.
"""

from decimal import ROUND_DOWN, Decimal
from enum import IntEnum
from typing import NamedTuple

TOKEN_DECIMALS = 6


class Tier(IntEnum):
    """Tier numbers as stored on-chain in ``userLevel`` / ``levelId``."""

    CURIOSO = 1
    SONADOR = 2
    NOVATO = 3
    APRENDIZ = 4
    ASESOR = 5
    MAESTRO = 6
    LEYENDA = 7


class TierConfig(NamedTuple):
    """Static configuration of a tier."""

    tier: Tier
    name: str
    required_members: int  # Group size that completes the block
    contribution: Decimal  # Per-member contribution in token units
    total: Decimal  # Full block value in token units


TIERS: dict[int, TierConfig] = {
    1: TierConfig(Tier.CURIOSO, "Curioso", 9, Decimal("20"), Decimal("180")),
    2: TierConfig(Tier.SONADOR, "Soñador", 8, Decimal("50"), Decimal("400")),
    3: TierConfig(Tier.NOVATO, "Novato", 7, Decimal("100"), Decimal("700")),
    4: TierConfig(Tier.APRENDIZ, "Aprendiz", 6, Decimal("250"), Decimal("1500")),
    5: TierConfig(Tier.ASESOR, "Asesor", 5, Decimal("500"), Decimal("2500")),
    6: TierConfig(Tier.MAESTRO, "Maestro", 4, Decimal("1000"), Decimal("4000")),
    7: TierConfig(Tier.LEYENDA, "Leyenda", 3, Decimal("2500"), Decimal("7500")),
}

MIN_TIER = 1
MAX_TIER = 7


def get_tier(tier: int) -> TierConfig:
    """
    Get tier configuration.

    Raises:
        ValueError: If tier is outside 1..7
    """
    if tier not in TIERS:
        raise ValueError(f"Invalid tier: {tier}. Must be {MIN_TIER}-{MAX_TIER}")
    return TIERS[tier]


def is_valid_tier(tier: int) -> bool:
    return MIN_TIER <= tier <= MAX_TIER


def next_tier(tier: int) -> int | None:
    """Tier reached by advancing, None at the last tier."""
    return tier + 1 if tier < MAX_TIER else None


def to_token_units(amount: Decimal, decimals: int = TOKEN_DECIMALS) -> int:
    """Convert a whole-token amount to the integer used on-chain."""
    return int((Decimal(str(amount)) * Decimal(10 ** decimals)).to_integral_value(ROUND_DOWN))


def from_token_units(raw: int, decimals: int = TOKEN_DECIMALS) -> Decimal:
    return Decimal(raw) / Decimal(10 ** decimals)
