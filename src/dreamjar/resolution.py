"""Wish verification state machine.

    active --submit_proof--> pending_verification --resolve--> verified | failed
    active --cancel--> cancelled

A wish is decided once it has a quorum of raw votes or its deadline has
passed; the majority of raw yes/no counts decides (ties reject). Weights
recorded on votes do not take part in the decision.
"""

import logging
import uuid
from typing import Any, Optional, Union

from .bridge import ChainBridge, LoggingChainBridge
from .clock import Clock, utc_now
from .errors import AuthorizationError, ConflictError, NotFoundError, StateError
from .events import VOTE_CAST, WISH_RESOLVED, EventBus, InMemoryEventBus, LoggingNotifier, Monitor, Notifier
from .models import (
    Decision,
    Proof,
    ProofReceipt,
    ResolutionOutcome,
    VerificationResult,
    VoteChoice,
    VoteReceipt,
    Wish,
    WishStatus,
)
from .proofs import ProofValidator
from .store import DreamJarStore
from .treasury import ImpactTreasury
from .votes import VoteLedger

logger = logging.getLogger(__name__)

_STATUS_DECISION: dict[WishStatus, Decision] = {
    WishStatus.VERIFIED: "approved",
    WishStatus.FAILED: "rejected",
}


class ResolutionEngine:
    def __init__(
        self,
        store: DreamJarStore,
        treasury: ImpactTreasury,
        *,
        validator: Optional[ProofValidator] = None,
        votes: Optional[VoteLedger] = None,
        monitor: Optional[Monitor] = None,
        bridge: Optional[ChainBridge] = None,
        notifier: Optional[Notifier] = None,
        event_bus: Optional[EventBus] = None,
        quorum_threshold: int = 10,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.treasury = treasury
        self.validator = validator or ProofValidator()
        self.votes = votes or VoteLedger(store, clock=clock)
        self.monitor = monitor or Monitor()
        self.bridge = bridge or LoggingChainBridge()
        self.notifier = notifier or LoggingNotifier()
        self.event_bus = event_bus or InMemoryEventBus()
        self.quorum_threshold = quorum_threshold
        self.clock = clock

    def _require_wish(self, wish_id: str) -> Wish:
        wish = self.store.get_wish(wish_id)
        if wish is None:
            raise NotFoundError(f"Wish not found: {wish_id}")
        return wish

    def submit_proof(self, wish_id: str, submitter_id: str, payload: dict[str, Any]) -> ProofReceipt:
        """Attach proof to an active wish and open it for verification.

        ``payload`` may carry a ``method`` key; it defaults to the wish's
        declared proof method and must match it.

        Raises:
            NotFoundError: unknown wish
            AuthorizationError: submitter is not the creator
            StateError: wish is not active
            ValidationError: payload invalid for the method
        """
        wish = self._require_wish(wish_id)
        if wish.creator_id != submitter_id:
            raise AuthorizationError("Only creator can submit proof")
        if wish.status != WishStatus.ACTIVE:
            raise StateError(f"Wish {wish_id} is not in active state ({wish.status.value})")

        fields = {k: v for k, v in payload.items() if k != "method"}
        parsed = self.validator.validate_for_wish(
            wish.proof_method,
            payload.get("method", wish.proof_method),
            fields,
        )

        now = self.clock()
        proof = Proof(
            proof_id=str(uuid.uuid4()),
            wish_id=wish_id,
            submitter_id=submitter_id,
            payload=parsed,
            created_at=now,
        )
        if not self.store.insert_proof_and_transition(proof, now):
            raise StateError(f"Wish {wish_id} is no longer active")

        self.monitor.audit(
            "proof_submitted",
            {"wishId": wish_id, "userId": submitter_id, "proofMethod": proof.method},
            subject_id=wish_id,
        )
        logger.info(f"Proof {proof.proof_id} submitted for wish {wish_id}; awaiting verification")
        return ProofReceipt(proof_id=proof.proof_id, status=WishStatus.PENDING_VERIFICATION)

    def cast_vote(self, wish_id: str, voter_id: str, choice: Union[str, VoteChoice]) -> VoteReceipt:
        """Record a vote and resolve the wish if that vote decides it.

        Raises:
            NotFoundError: unknown wish
            StateError: wish is not pending verification
            ConflictError: voter already voted on this wish
        """
        wish = self._require_wish(wish_id)
        if wish.status != WishStatus.PENDING_VERIFICATION:
            raise StateError(f"Wish {wish_id} is not pending verification ({wish.status.value})")

        vote = self.votes.record(wish_id, voter_id, choice)

        event = {
            "wishId": wish_id,
            "userId": voter_id,
            "choice": vote.choice.value,
            "weight": vote.weight,
        }
        self.monitor.audit("vote_cast", event, subject_id=wish_id)
        self.monitor.guard("publish vote_cast", lambda: self.event_bus.publish(VOTE_CAST, event))

        result = self.check_status(wish_id)
        if result.status != "pending":
            self.resolve(wish_id)

        return VoteReceipt(vote_id=vote.vote_id, status=result.status, total_votes=result.total_votes)

    def check_status(self, wish_id: str) -> VerificationResult:
        """Compute the current decision for a wish. Read-only and idempotent."""
        wish = self._require_wish(wish_id)
        total, yes, no = self.votes.tally(wish_id)

        quorum_reached = total >= self.quorum_threshold
        time_expired = self.clock() > wish.deadline

        status: Decision = "pending"
        if quorum_reached or time_expired:
            status = "approved" if yes > no else "rejected"

        return VerificationResult(
            status=status,
            total_votes=total,
            yes_votes=yes,
            no_votes=no,
            quorum_reached=quorum_reached,
            time_expired=time_expired,
        )

    def resolve(self, wish_id: str) -> ResolutionOutcome:
        """Settle a decided wish.

        Only the caller whose conditional transition out of
        pending_verification succeeds runs the downstream effects; any
        other caller gets the observed status back with transitioned=False.
        """
        wish = self._require_wish(wish_id)
        if wish.status != WishStatus.PENDING_VERIFICATION:
            return ResolutionOutcome(
                wish_id=wish_id,
                status=wish.status,
                decision=_STATUS_DECISION.get(wish.status, "pending"),
                transitioned=False,
            )

        result = self.check_status(wish_id)
        if result.status == "pending":
            return ResolutionOutcome(wish_id=wish_id, status=wish.status, decision="pending", transitioned=False)

        target = WishStatus.VERIFIED if result.status == "approved" else WishStatus.FAILED
        if not self.store.transition_wish(wish_id, WishStatus.PENDING_VERIFICATION, target, self.clock()):
            observed = self._require_wish(wish_id)
            logger.debug(f"Wish {wish_id} already resolved as {observed.status.value}")
            return ResolutionOutcome(
                wish_id=wish_id,
                status=observed.status,
                decision=_STATUS_DECISION.get(observed.status, "pending"),
                transitioned=False,
            )

        # Totals are frozen from here on
        settled = self._require_wish(wish_id)
        impact_amount = 0
        if target == WishStatus.VERIFIED:
            self.monitor.guard("distribute rewards", lambda: self.bridge.distribute_rewards(wish_id))
        else:
            impact_amount = settled.impact_amount()
            if impact_amount > 0:
                try:
                    self.treasury.credit(wish_id, impact_amount, settled.impact_beneficiary)
                except ConflictError:
                    logger.debug(f"Wish {wish_id} already credited to treasury")
            else:
                logger.info(f"No impact allocation for wish {wish_id}")

        payload = {
            "wishId": wish_id,
            "status": result.status,
            "totalVotes": result.total_votes,
            "yesVotes": result.yes_votes,
            "noVotes": result.no_votes,
            "impactAmount": impact_amount,
        }
        self.monitor.audit("verification_resolved", payload, subject_id=wish_id)
        self.monitor.guard("publish wish_resolved", lambda: self.event_bus.publish(WISH_RESOLVED, payload))
        self.monitor.guard(
            "notify creator",
            lambda: self.notifier.notify(
                settled.creator_id,
                f"wish_{target.value}",
                f"Your wish '{settled.title}' was {target.value} "
                f"({result.yes_votes} yes / {result.no_votes} no)",
            ),
        )
        logger.info(f"Wish {wish_id} resolved as {target.value}")

        return ResolutionOutcome(
            wish_id=wish_id,
            status=target,
            decision=result.status,
            transitioned=True,
            impact_amount=impact_amount,
        )

    def get_verification_details(self, wish_id: str) -> dict[str, Any]:
        wish = self._require_wish(wish_id)
        return {
            "wish": wish,
            "proofs": self.store.list_proofs(wish_id),
            "votes": self.votes.list_votes(wish_id),
            "verification": self.check_status(wish_id),
        }
