"""Pydantic models for DreamJar."""

from .ledger import AuditEvent
from .proof import (
    CustomProof,
    ExternalActivityProof,
    GeolocationProof,
    MediaProof,
    Proof,
    ProofPayload,
    RepositoryCommitProof,
)
from .proposal import Proposal, ProposalStatus, TreasuryCredit, TreasuryStats
from .ranking import CreatorEntry, LeaderboardEntry, TrendingWish
from .vote import (
    Decision,
    ProofReceipt,
    ResolutionOutcome,
    VerificationResult,
    Vote,
    VoteChoice,
    VoteReceipt,
)
from .wish import (
    TERMINAL_STATUSES,
    Pledge,
    ProofMethod,
    User,
    Wish,
    WishStatus,
    can_transition,
)

__all__ = [
    "AuditEvent",
    # Wishes
    "WishStatus",
    "TERMINAL_STATUSES",
    "ProofMethod",
    "User",
    "Wish",
    "Pledge",
    "can_transition",
    # Proofs
    "MediaProof",
    "GeolocationProof",
    "ExternalActivityProof",
    "RepositoryCommitProof",
    "CustomProof",
    "ProofPayload",
    "Proof",
    # Votes
    "VoteChoice",
    "Vote",
    "Decision",
    "VerificationResult",
    "ProofReceipt",
    "VoteReceipt",
    "ResolutionOutcome",
    # Treasury / governance
    "ProposalStatus",
    "Proposal",
    "TreasuryCredit",
    "TreasuryStats",
    # Rankings
    "LeaderboardEntry",
    "CreatorEntry",
    "TrendingWish",
]
