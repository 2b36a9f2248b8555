"""Pydantic models for wish votes and verification outcomes."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from .wish import WishStatus


class VoteChoice(str, Enum):
    YES = "yes"
    NO = "no"


class Vote(BaseModel):
    """One voter's verdict on one wish. Created once, never mutated."""

    vote_id: str
    wish_id: str
    voter_id: str
    choice: VoteChoice
    weight: int = Field(ge=1, description="Advisory weight; decisions use raw counts")
    created_at: datetime

    model_config = {"frozen": True}


Decision = Literal["pending", "approved", "rejected"]


class VerificationResult(BaseModel):
    """Snapshot of a wish's vote tally and the decision it implies."""

    status: Decision
    total_votes: int
    yes_votes: int
    no_votes: int
    quorum_reached: bool
    time_expired: bool

    model_config = {"frozen": True}


class ProofReceipt(BaseModel):
    proof_id: str
    status: WishStatus

    model_config = {"frozen": True}


class VoteReceipt(BaseModel):
    vote_id: str
    status: Decision
    total_votes: int

    model_config = {"frozen": True}


class ResolutionOutcome(BaseModel):
    """Result of a resolve attempt.

    ``transitioned`` is True only for the caller that performed the
    pending_verification -> terminal transition and ran its effects.
    """

    wish_id: str
    status: WishStatus
    decision: Decision
    transitioned: bool
    impact_amount: int = 0

    model_config = {"frozen": True}
