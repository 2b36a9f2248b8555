"""Core-facing API: wires the store, engine, treasury and governor together."""

from datetime import datetime
from typing import Any, Optional, Union

from .bridge import ChainBridge, HttpChainBridge, LoggingChainBridge
from .clock import Clock, utc_now
from .config import DreamJarConfig
from .events import EventBus, InMemoryEventBus, LoggingNotifier, Monitor, Notifier
from .governance import ProposalGovernor
from .ledger import AuditLedgerWriter
from .models import (
    CreatorEntry,
    LeaderboardEntry,
    Pledge,
    ProofMethod,
    ProofReceipt,
    Proposal,
    ResolutionOutcome,
    TreasuryStats,
    TrendingWish,
    User,
    VerificationResult,
    VoteChoice,
    VoteReceipt,
    Wish,
    WishStatus,
)
from .proofs import ProofValidator
from .ranking import build_leaderboard, top_creators, trending_wishes
from .reconcile import ReconcileReport, reconcile
from .resolution import ResolutionEngine
from .store import DreamJarStore
from .treasury import ImpactTreasury
from .votes import VoteLedger
from .wishes import WishRegistry


class DreamJarService:
    def __init__(
        self,
        store: DreamJarStore,
        config: Optional[DreamJarConfig] = None,
        *,
        monitor: Optional[Monitor] = None,
        bridge: Optional[ChainBridge] = None,
        notifier: Optional[Notifier] = None,
        event_bus: Optional[EventBus] = None,
        clock: Clock = utc_now,
    ):
        self.config = config or DreamJarConfig(db_path=store.db_path)
        self.store = store
        self.monitor = monitor or Monitor()
        self.bridge = bridge or LoggingChainBridge()
        self.notifier = notifier or LoggingNotifier()
        self.event_bus = event_bus or InMemoryEventBus()
        self.clock = clock

        self.wishes = WishRegistry(store, self.monitor, self.config.admin_user_ids, clock=clock)
        self.treasury = ImpactTreasury(store, self.monitor, clock=clock)
        self.engine = ResolutionEngine(
            store,
            self.treasury,
            validator=ProofValidator(self.config.recognized_repo_hosts),
            votes=VoteLedger(store, pledger_bonus=self.config.pledger_vote_bonus, clock=clock),
            monitor=self.monitor,
            bridge=self.bridge,
            notifier=self.notifier,
            event_bus=self.event_bus,
            quorum_threshold=self.config.quorum_threshold,
            clock=clock,
        )
        self.governor = ProposalGovernor(
            store,
            self.treasury,
            monitor=self.monitor,
            bridge=self.bridge,
            notifier=self.notifier,
            event_bus=self.event_bus,
            quorum_threshold=self.config.proposal_quorum_threshold,
            voting_days=self.config.proposal_voting_days,
            unique_voters=self.config.unique_proposal_voters,
            clock=clock,
        )

    @classmethod
    def from_config(cls, config: DreamJarConfig, **kwargs: Any) -> "DreamJarService":
        """Build a service backed by the configured database, audit log and bridge."""
        store = DreamJarStore(config.db_path, timeout=config.sqlite_timeout_seconds)
        if "monitor" not in kwargs:
            ledger = AuditLedgerWriter(config.audit_log_path) if config.audit_log_path else None
            kwargs["monitor"] = Monitor(ledger)
        if "bridge" not in kwargs and config.bridge.relayer_url:
            kwargs["bridge"] = HttpChainBridge(config.bridge.relayer_url, config.bridge.timeout_seconds)
        return cls(store, config, **kwargs)

    # -- wishes ------------------------------------------------------------

    def register_user(self, user_id: str, display_name: Optional[str] = None) -> User:
        return self.wishes.register_user(user_id, display_name)

    def create_wish(
        self,
        creator_id: str,
        title: str,
        stake_amount: int,
        deadline: datetime,
        proof_method: Union[str, ProofMethod],
        impact_on_fail_percent: int = 0,
        impact_beneficiary: Optional[str] = None,
    ) -> Wish:
        return self.wishes.create_wish(
            creator_id,
            title,
            stake_amount,
            deadline,
            proof_method,
            impact_on_fail_percent=impact_on_fail_percent,
            impact_beneficiary=impact_beneficiary,
        )

    def get_wish(self, wish_id: str) -> Wish:
        return self.wishes.get(wish_id)

    def pledge(self, wish_id: str, supporter_id: str, amount: int) -> Pledge:
        return self.wishes.pledge(wish_id, supporter_id, amount)

    def cancel_wish(self, wish_id: str, actor_id: str) -> Wish:
        return self.wishes.cancel(wish_id, actor_id)

    # -- verification ------------------------------------------------------

    def submit_proof(self, wish_id: str, user_id: str, proof_payload: dict[str, Any]) -> ProofReceipt:
        return self.engine.submit_proof(wish_id, user_id, proof_payload)

    def cast_vote(self, wish_id: str, user_id: str, choice: Union[str, VoteChoice]) -> VoteReceipt:
        return self.engine.cast_vote(wish_id, user_id, choice)

    def check_verification_status(self, wish_id: str) -> VerificationResult:
        return self.engine.check_status(wish_id)

    def resolve(self, wish_id: str) -> ResolutionOutcome:
        return self.engine.resolve(wish_id)

    def get_verification_details(self, wish_id: str) -> dict[str, Any]:
        return self.engine.get_verification_details(wish_id)

    # -- treasury & governance ---------------------------------------------

    def get_treasury_stats(self) -> TreasuryStats:
        return self.treasury.get_stats()

    def create_proposal(
        self,
        proposer_id: str,
        title: str,
        amount_requested: int,
        beneficiary: str,
        plan_ref: Optional[str] = None,
        description: str = "",
    ) -> int:
        proposal = self.governor.create(
            proposer_id,
            title,
            amount_requested,
            beneficiary,
            plan_ref=plan_ref,
            description=description,
        )
        return proposal.proposal_id

    def vote_on_proposal(self, proposal_id: int, voter_id: str, in_favor: bool) -> None:
        self.governor.vote(proposal_id, voter_id, in_favor)

    def execute_proposal(self, proposal_id: int, executor_id: str) -> None:
        self.governor.execute(proposal_id, executor_id)

    def get_proposal(self, proposal_id: int) -> Proposal:
        return self.governor.get(proposal_id)

    # -- rankings ----------------------------------------------------------

    def get_leaderboard(self) -> list[LeaderboardEntry]:
        return build_leaderboard(
            self.store.list_users(),
            self.store.list_wishes(),
            self.store.list_pledges(),
        )

    def get_top_creators(self, limit: int = 10) -> list[CreatorEntry]:
        return top_creators(self.store.list_users(), self.store.list_wishes(), limit=limit)

    def get_trending_wishes(self, limit: int = 10) -> list[TrendingWish]:
        return trending_wishes(self.store.list_wishes(WishStatus.ACTIVE), limit=limit)

    # -- maintenance -------------------------------------------------------

    def reconcile(self) -> ReconcileReport:
        return reconcile(self.engine, self.treasury)
