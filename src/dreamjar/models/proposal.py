"""Pydantic models for the impact treasury and governance proposals."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ProposalStatus(str, Enum):
    ACTIVE = "active"
    PASSED = "passed"
    FAILED = "failed"
    EXECUTED = "executed"


class Proposal(BaseModel):
    """A request to disburse treasury funds, decided by vote."""

    proposal_id: int
    proposer_id: str
    title: str
    description: str = ""
    plan_ref: Optional[str] = None
    amount_requested: int = Field(gt=0)
    beneficiary: str
    status: ProposalStatus = ProposalStatus.ACTIVE
    votes_for: int = 0
    votes_against: int = 0
    total_votes: int = 0
    quorum_reached: bool = False
    deadline: datetime
    executed_at: Optional[datetime] = None
    executed_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"frozen": True}


class TreasuryCredit(BaseModel):
    """Funds routed from one failed wish. Keyed (and deduplicated) by wish id."""

    wish_id: str
    amount: int = Field(gt=0)
    beneficiary: Optional[str] = None
    created_at: datetime

    model_config = {"frozen": True}


class TreasuryStats(BaseModel):
    total_funds: int
    allocated_funds: int
    available_funds: int
    total_proposals: int
    active_proposals: int
    executed_proposals: int

    model_config = {"frozen": True}
