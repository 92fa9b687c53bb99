"""Ranking records exposed by the query engine."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class GroupStatus(str, Enum):
    """Status filter for rankings."""

    ACTIVE = "active"
    COMPLETED = "completed"  # completed, payout not taken yet
    CLAIMED = "claimed"  # completed and advanced or cashed out


class GroupRecord(BaseModel):
    """One group as shown in a ranking or detail view."""

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    address: str = Field(..., description="Block contract address (lower-case)")
    owner: str = Field(..., description="Group owner / center (lower-case)")
    level: int = Field(..., ge=1, le=7)
    status: GroupStatus
    member_count: int = Field(default=0, ge=0)
    required_members: int = Field(default=0, ge=0)
    invited_count: int = Field(default=0, ge=0, description="Referral credit used for ranking")
    created_at: int = Field(default=0, ge=0, description="Unix seconds")
    completed_at: int | None = None
    sequence_number: int | None = Field(default=None, ge=1)
    claimed: bool = False
