"""Pydantic models for wishes, pledges and users."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class WishStatus(str, Enum):
    """Lifecycle status of a wish.

    Moves forward only: active -> pending_verification -> verified | failed,
    or active -> cancelled before any proof is submitted.
    """

    ACTIVE = "active"
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({WishStatus.VERIFIED, WishStatus.FAILED, WishStatus.CANCELLED})

ALLOWED_TRANSITIONS: dict[WishStatus, frozenset[WishStatus]] = {
    WishStatus.ACTIVE: frozenset({WishStatus.PENDING_VERIFICATION, WishStatus.CANCELLED}),
    WishStatus.PENDING_VERIFICATION: frozenset({WishStatus.VERIFIED, WishStatus.FAILED}),
    WishStatus.VERIFIED: frozenset(),
    WishStatus.FAILED: frozenset(),
    WishStatus.CANCELLED: frozenset(),
}


def can_transition(current: WishStatus, target: WishStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class ProofMethod(str, Enum):
    """How a wish creator will prove completion."""

    MEDIA = "media"
    GEOLOCATION = "geolocation"
    EXTERNAL_ACTIVITY = "external_activity"
    REPOSITORY_COMMIT = "repository_commit"
    CUSTOM = "custom"


class User(BaseModel):
    """A participant: wish creator, supporter or voter."""

    user_id: str = Field(description="Opaque user identifier")
    display_name: Optional[str] = Field(default=None)

    model_config = {"frozen": True}


class Wish(BaseModel):
    """A staked, deadline-bound personal goal."""

    wish_id: str = Field(description="Unique wish identifier (uuid4)")
    creator_id: str
    title: str
    stake_amount: int = Field(ge=0, description="Creator stake in micro-units")
    pledge_total: int = Field(default=0, ge=0, description="Cumulative pledged amount")
    pledge_count: int = Field(default=0, ge=0)
    deadline: datetime
    proof_method: ProofMethod
    status: WishStatus = WishStatus.ACTIVE
    impact_on_fail_percent: int = Field(default=0, ge=0, le=100)
    impact_beneficiary: Optional[str] = Field(default=None)
    created_at: datetime
    updated_at: datetime

    model_config = {"frozen": True}

    @property
    def total_pot(self) -> int:
        return self.stake_amount + self.pledge_total

    def impact_amount(self) -> int:
        """Share of the pot routed to the impact treasury when the wish fails."""
        return (self.total_pot * self.impact_on_fail_percent) // 100


class Pledge(BaseModel):
    """A supporter's contribution earmarked for one wish."""

    pledge_id: str
    wish_id: str
    supporter_id: str
    amount: int = Field(gt=0)
    created_at: datetime

    model_config = {"frozen": True}
