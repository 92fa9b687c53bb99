"""Pydantic models for values read from the ledger.

Every contract read and receipt is validated into one of these shapes at
the read boundary, so downstream code never handles raw call results.
"""

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _lower_hex(value: str) -> str:
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"Expected 0x-prefixed hex, got {value!r}")
    return value.lower()


class OnChainStatus(IntEnum):
    """Block ``status()`` values."""

    ACTIVE = 0
    COMPLETED = 1


class LogEntry(BaseModel):
    """Raw event log as returned by eth_getLogs or inside a receipt."""

    model_config = ConfigDict(frozen=True)

    address: str = Field(..., description="Emitting contract (lower-case)")
    topics: tuple[str, ...] = Field(..., description="0x-prefixed topics, topic0 first")
    data: str = Field(default="0x", description="0x-prefixed ABI-encoded data")
    block_number: int = Field(default=0, ge=0)
    log_index: int = Field(default=0, ge=0)
    transaction_hash: str | None = None

    @field_validator("address", "data")
    @classmethod
    def lower_hex(cls, v: str) -> str:
        return _lower_hex(v)

    @field_validator("topics")
    @classmethod
    def lower_topics(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(_lower_hex(t) for t in v)


class TxReceipt(BaseModel):
    """Mined transaction receipt."""

    model_config = ConfigDict(frozen=True)

    tx_hash: str
    status: int = Field(..., ge=0, le=1, description="1 success, 0 reverted")
    block_number: int = Field(..., ge=0)
    gas_used: int = Field(default=0, ge=0)
    logs: tuple[LogEntry, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class BlockSnapshot(BaseModel):
    """Point-in-time view of a Block clone."""

    model_config = ConfigDict(frozen=True)

    address: str
    owner: str
    level: int = Field(..., ge=1)
    required_members: int = Field(..., ge=1)
    member_count: int = Field(..., ge=0)
    status: OnChainStatus
    registry: str
    created_at: int = Field(default=0, ge=0)
    completed_at: int = Field(default=0, ge=0)
    contribution_amount: int = Field(default=0, ge=0)

    @field_validator("address", "owner", "registry")
    @classmethod
    def lower_address(cls, v: str) -> str:
        return _lower_hex(v)

    @property
    def is_full(self) -> bool:
        return self.member_count >= self.required_members

    @property
    def is_active(self) -> bool:
        return self.status == OnChainStatus.ACTIVE


class TopBlock(BaseModel):
    """Result of ``findTopBlockAtLevel``."""

    model_config = ConfigDict(frozen=True)

    block: str | None = None
    creator: str | None = None
