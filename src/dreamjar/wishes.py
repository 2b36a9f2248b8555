"""Wish registry: creation, pledges, cancellation."""

import logging
import uuid
from datetime import datetime
from typing import Optional, Union

from .clock import Clock, ensure_utc, utc_now
from .errors import AuthorizationError, NotFoundError, StateError, ValidationError
from .events import Monitor
from .models import Pledge, ProofMethod, User, Wish, WishStatus
from .proofs import normalize_method
from .store import DreamJarStore

logger = logging.getLogger(__name__)


class WishRegistry:
    def __init__(
        self,
        store: DreamJarStore,
        monitor: Optional[Monitor] = None,
        admin_user_ids: Optional[list[str]] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.monitor = monitor or Monitor()
        self.admin_user_ids = set(admin_user_ids or [])
        self.clock = clock

    def register_user(self, user_id: str, display_name: Optional[str] = None) -> User:
        if not user_id:
            raise ValidationError("User id is required", field="user_id")
        return self.store.upsert_user(user_id, display_name)

    def get(self, wish_id: str) -> Wish:
        wish = self.store.get_wish(wish_id)
        if wish is None:
            raise NotFoundError(f"Wish not found: {wish_id}")
        return wish

    def list_wishes(self, status: Optional[WishStatus] = None) -> list[Wish]:
        return self.store.list_wishes(status)

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
        if not title or not title.strip():
            raise ValidationError("Wish title is required", field="title")
        if stake_amount < 0:
            raise ValidationError("Stake amount cannot be negative", field="stake_amount")
        if not 0 <= impact_on_fail_percent <= 100:
            raise ValidationError("Impact percentage must be between 0 and 100", field="impact_on_fail_percent")

        now = self.clock()
        deadline = ensure_utc(deadline)
        if deadline <= now:
            raise ValidationError("Deadline must be in the future", field="deadline")

        self.register_user(creator_id)
        wish = Wish(
            wish_id=str(uuid.uuid4()),
            creator_id=creator_id,
            title=title.strip(),
            stake_amount=stake_amount,
            deadline=deadline,
            proof_method=normalize_method(proof_method),
            impact_on_fail_percent=impact_on_fail_percent,
            impact_beneficiary=impact_beneficiary,
            created_at=now,
            updated_at=now,
        )
        self.store.insert_wish(wish)

        self.monitor.audit("wish_created", {"wishId": wish.wish_id, "userId": creator_id}, subject_id=wish.wish_id)
        return wish

    def pledge(self, wish_id: str, supporter_id: str, amount: int) -> Pledge:
        """Pledge funds to a wish that has not reached a terminal state."""
        if amount <= 0:
            raise ValidationError("Pledge amount must be positive", field="amount")
        wish = self.get(wish_id)

        self.register_user(supporter_id)
        pledge = Pledge(
            pledge_id=str(uuid.uuid4()),
            wish_id=wish_id,
            supporter_id=supporter_id,
            amount=amount,
            created_at=self.clock(),
        )
        if not self.store.insert_pledge(pledge):
            current = self.store.get_wish(wish_id) or wish
            raise StateError(f"Wish {wish_id} no longer accepts pledges ({current.status.value})")

        self.monitor.audit(
            "pledge_created",
            {"pledgeId": pledge.pledge_id, "wishId": wish_id, "userId": supporter_id, "amount": amount},
            subject_id=wish_id,
        )
        return pledge

    def cancel(self, wish_id: str, actor_id: str) -> Wish:
        """Cancel an active wish. Only its creator or an admin may do so."""
        wish = self.get(wish_id)
        if actor_id != wish.creator_id and actor_id not in self.admin_user_ids:
            raise AuthorizationError("Only the creator or an admin can cancel a wish")
        if not self.store.transition_wish(wish_id, WishStatus.ACTIVE, WishStatus.CANCELLED, self.clock()):
            current = self.get(wish_id)
            raise StateError(f"Wish {wish_id} cannot be cancelled ({current.status.value})")

        self.monitor.audit("wish_cancelled", {"wishId": wish_id, "userId": actor_id}, subject_id=wish_id)
        logger.info(f"Wish {wish_id} cancelled by {actor_id}")
        return self.get(wish_id)
