"""Governance proposals spending from the impact treasury."""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from .bridge import ChainBridge, LoggingChainBridge
from .clock import Clock, utc_now
from .errors import InsufficientFundsError, NotFoundError, StateError, ValidationError
from .events import PROPOSAL_EXECUTED, EventBus, InMemoryEventBus, LoggingNotifier, Monitor, Notifier
from .models import Proposal, ProposalStatus
from .store import DreamJarStore
from .treasury import ImpactTreasury

logger = logging.getLogger(__name__)


class ProposalGovernor:
    """Proposal lifecycle: active -> passed | failed, passed -> executed.

    A proposal settles as soon as it reaches quorum. Execution is allowed
    only after the voting deadline, only from passed, only once, and only
    when the treasury's available balance covers the requested amount.
    """

    def __init__(
        self,
        store: DreamJarStore,
        treasury: ImpactTreasury,
        *,
        monitor: Optional[Monitor] = None,
        bridge: Optional[ChainBridge] = None,
        notifier: Optional[Notifier] = None,
        event_bus: Optional[EventBus] = None,
        quorum_threshold: int = 10,
        voting_days: int = 7,
        unique_voters: bool = True,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.treasury = treasury
        self.monitor = monitor or Monitor()
        self.bridge = bridge or LoggingChainBridge()
        self.notifier = notifier or LoggingNotifier()
        self.event_bus = event_bus or InMemoryEventBus()
        self.quorum_threshold = quorum_threshold
        self.voting_days = voting_days
        self.unique_voters = unique_voters
        self.clock = clock

    def _require(self, proposal_id: int) -> Proposal:
        proposal = self.store.get_proposal(proposal_id)
        if proposal is None:
            raise NotFoundError(f"Proposal not found: {proposal_id}")
        return proposal

    def get(self, proposal_id: int) -> Proposal:
        return self._require(proposal_id)

    def list_proposals(
        self,
        status: Optional[ProposalStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Proposal]:
        return self.store.list_proposals(status=status, limit=limit, offset=offset)

    def create(
        self,
        proposer_id: str,
        title: str,
        amount_requested: int,
        beneficiary: str,
        plan_ref: Optional[str] = None,
        description: str = "",
    ) -> Proposal:
        if not title or not title.strip():
            raise ValidationError("Proposal title is required", field="title")
        if amount_requested <= 0:
            raise ValidationError("Requested amount must be positive", field="amount_requested")
        if not beneficiary:
            raise ValidationError("Beneficiary is required", field="beneficiary")

        now = self.clock()
        proposal = self.store.insert_proposal(
            proposer_id=proposer_id,
            title=title.strip(),
            description=description,
            plan_ref=plan_ref,
            amount_requested=amount_requested,
            beneficiary=beneficiary,
            deadline=now + timedelta(days=self.voting_days),
            now=now,
        )

        ref = plan_ref or f"proposal-{proposal.proposal_id}"
        self.monitor.guard("submit proposal to settlement bridge", lambda: self.bridge.propose_on_chain(ref))

        self.monitor.audit(
            "proposal_created",
            {
                "proposalId": proposal.proposal_id,
                "proposerId": proposer_id,
                "amountRequested": amount_requested,
                "beneficiary": beneficiary,
            },
            subject_id=str(proposal.proposal_id),
        )
        return proposal

    def vote(self, proposal_id: int, voter_id: str, in_favor: bool) -> Proposal:
        """Count a vote and settle the proposal once quorum is reached.

        Raises:
            NotFoundError: unknown proposal
            StateError: proposal not active, or voting period over
            ConflictError: voter already voted (when unique voters are enforced)
        """
        proposal = self._require(proposal_id)
        now = self.clock()
        if proposal.status != ProposalStatus.ACTIVE:
            raise StateError(f"Proposal {proposal_id} is not active ({proposal.status.value})")
        if now > proposal.deadline:
            raise StateError(f"Voting period for proposal {proposal_id} has ended")

        ballot_key = f"{proposal_id}:{voter_id}" if self.unique_voters else str(uuid.uuid4())
        counted = self.store.record_proposal_vote(
            proposal_id=proposal_id,
            voter_id=voter_id,
            in_favor=in_favor,
            ballot_key=ballot_key,
            quorum_threshold=self.quorum_threshold,
            now=now,
        )
        if not counted:
            # Lost a race with settlement or the deadline
            current = self._require(proposal_id)
            if current.status != ProposalStatus.ACTIVE:
                raise StateError(f"Proposal {proposal_id} is not active ({current.status.value})")
            raise StateError(f"Voting period for proposal {proposal_id} has ended")

        updated = self._require(proposal_id)
        self.monitor.guard(
            "submit proposal vote to settlement bridge",
            lambda: self.bridge.vote_on_chain(proposal_id, in_favor),
        )
        self.monitor.audit(
            "proposal_voted",
            {
                "proposalId": proposal_id,
                "voterId": voter_id,
                "vote": in_favor,
                "totalVotes": updated.total_votes,
            },
            subject_id=str(proposal_id),
        )

        if proposal.status == ProposalStatus.ACTIVE and updated.status != ProposalStatus.ACTIVE:
            logger.info(f"Proposal {proposal_id} settled as {updated.status.value}")
            self.monitor.guard(
                "notify proposer",
                lambda: self.notifier.notify(
                    updated.proposer_id,
                    f"proposal_{updated.status.value}",
                    f"Proposal '{updated.title}' {updated.status.value} "
                    f"({updated.votes_for} for, {updated.votes_against} against)",
                ),
            )
        return updated

    def execute(self, proposal_id: int, executor_id: str) -> Proposal:
        """Execute a passed proposal after its deadline.

        Raises:
            NotFoundError: unknown proposal
            StateError: not passed (including already executed) or deadline not passed
            InsufficientFundsError: treasury available balance below the request
        """
        now = self.clock()
        if not self.store.execute_proposal(proposal_id, executor_id, now):
            proposal = self._require(proposal_id)
            if proposal.status != ProposalStatus.PASSED:
                raise StateError(f"Proposal {proposal_id} has not passed ({proposal.status.value})")
            if now <= proposal.deadline:
                raise StateError(f"Voting period for proposal {proposal_id} has not ended")
            available = self.treasury.get_stats().available_funds
            raise InsufficientFundsError(
                f"Insufficient funds in impact treasury: requested {proposal.amount_requested}, "
                f"available {available}",
                requested=proposal.amount_requested,
                available=available,
            )

        proposal = self._require(proposal_id)
        logger.info(f"Executed proposal {proposal_id} ({proposal.amount_requested} to {proposal.beneficiary})")

        self.monitor.guard(
            "execute proposal on settlement bridge",
            lambda: self.bridge.execute_on_chain(proposal_id),
        )
        payload = {
            "proposalId": proposal_id,
            "executorId": executor_id,
            "amountRequested": proposal.amount_requested,
            "beneficiary": proposal.beneficiary,
        }
        self.monitor.audit("proposal_executed", payload, subject_id=str(proposal_id))
        self.monitor.guard("publish proposal_executed", lambda: self.event_bus.publish(PROPOSAL_EXECUTED, payload))
        self.monitor.guard(
            "notify proposer",
            lambda: self.notifier.notify(
                proposal.proposer_id,
                "proposal_executed",
                f"Proposal '{proposal.title}' executed: {proposal.amount_requested} to {proposal.beneficiary}",
            ),
        )
        return proposal
