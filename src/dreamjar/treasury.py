"""Impact treasury: funds routed from failed wishes."""

import logging
from typing import Optional

from .clock import Clock, utc_now
from .errors import ConflictError, ValidationError
from .events import Monitor
from .models import TreasuryCredit, TreasuryStats
from .store import DreamJarStore

logger = logging.getLogger(__name__)


class ImpactTreasury:
    """Credit ledger for the shared impact pool.

    available = total credited - amounts of executed proposals. Credits are
    keyed on the originating wish id, so each failed wish funds the pool at
    most once no matter how many times it is resolved or swept.
    """

    def __init__(self, store: DreamJarStore, monitor: Optional[Monitor] = None, clock: Clock = utc_now):
        self.store = store
        self.monitor = monitor or Monitor()
        self.clock = clock

    def credit(self, wish_id: str, amount: int, beneficiary: Optional[str] = None) -> TreasuryCredit:
        """Credit the treasury for a failed wish.

        Raises:
            ValidationError: non-positive amount
            ConflictError: this wish was already credited
        """
        if amount <= 0:
            raise ValidationError(f"Treasury credit must be positive, got {amount}", field="amount")

        credit = TreasuryCredit(
            wish_id=wish_id,
            amount=amount,
            beneficiary=beneficiary,
            created_at=self.clock(),
        )
        self.store.insert_credit(credit)

        self.monitor.audit(
            "impact_funds_deposited",
            {"wishId": wish_id, "impactAmount": amount, "beneficiary": beneficiary},
            subject_id=wish_id,
        )
        logger.info(f"Deposited {amount} to impact treasury from failed wish {wish_id}")
        return credit

    def is_credited(self, wish_id: str) -> bool:
        return self.store.get_credit(wish_id) is not None

    def list_credits(self) -> list[TreasuryCredit]:
        return self.store.list_credits()

    def get_stats(self) -> TreasuryStats:
        totals = self.store.treasury_totals()
        return TreasuryStats(
            total_funds=totals["total_funds"],
            allocated_funds=totals["allocated_funds"],
            available_funds=totals["total_funds"] - totals["allocated_funds"],
            total_proposals=totals["total_proposals"],
            active_proposals=totals["active_proposals"],
            executed_proposals=totals["executed_proposals"],
        )

    def process_failed_wishes(self) -> list[TreasuryCredit]:
        """Credit every failed wish that has not been credited yet.

        Safe to run repeatedly and concurrently with resolution: a wish
        credited in between is skipped on the idempotency key.
        """
        credits: list[TreasuryCredit] = []
        for wish in self.store.list_failed_uncredited():
            amount = wish.impact_amount()
            if amount <= 0:
                logger.debug(f"No impact allocation for wish {wish.wish_id}")
                continue
            try:
                credits.append(self.credit(wish.wish_id, amount, wish.impact_beneficiary))
            except ConflictError:
                logger.debug(f"Wish {wish.wish_id} credited concurrently; skipping")
        return credits
