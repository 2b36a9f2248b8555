"""Vote ledger: one vote per voter per wish, weights, raw tallies."""

import logging
import uuid
from typing import Union

from .clock import Clock, utc_now
from .errors import StateError, ValidationError
from .models import Vote, VoteChoice
from .store import DreamJarStore

logger = logging.getLogger(__name__)


def parse_choice(choice: Union[str, VoteChoice]) -> VoteChoice:
    if isinstance(choice, VoteChoice):
        return choice
    try:
        return VoteChoice(str(choice).strip().lower())
    except ValueError:
        raise ValidationError(f"Vote choice must be 'yes' or 'no', got {choice!r}", field="choice") from None


class VoteLedger:
    """Records wish votes.

    Uniqueness on (wish, voter) is enforced by the store's constraint at
    insert time; there is no separate existence check. Weights are stored
    for the record only: decisions are made on raw counts.
    """

    def __init__(self, store: DreamJarStore, pledger_bonus: int = 2, clock: Clock = utc_now):
        self.store = store
        self.pledger_bonus = pledger_bonus
        self.clock = clock

    def compute_weight(self, wish_id: str, voter_id: str) -> int:
        weight = 1
        if self.store.has_pledge(wish_id, voter_id):
            weight += self.pledger_bonus
        return weight

    def record(self, wish_id: str, voter_id: str, choice: Union[str, VoteChoice]) -> Vote:
        """Insert a vote.

        Raises:
            ValidationError: bad choice or voter id
            StateError: wish is not pending verification at insert time
            ConflictError: voter already voted on this wish
        """
        if not voter_id:
            raise ValidationError("Voter id is required", field="voter_id")
        vote = Vote(
            vote_id=str(uuid.uuid4()),
            wish_id=wish_id,
            voter_id=voter_id,
            choice=parse_choice(choice),
            weight=self.compute_weight(wish_id, voter_id),
            created_at=self.clock(),
        )
        if not self.store.insert_vote(vote):
            raise StateError(f"Wish {wish_id} is not pending verification")
        logger.debug(f"Recorded {vote.choice.value} vote on {wish_id} by {voter_id} (weight {vote.weight})")
        return vote

    def tally(self, wish_id: str) -> tuple[int, int, int]:
        """Raw (total, yes, no) counts."""
        return self.store.tally_votes(wish_id)

    def list_votes(self, wish_id: str) -> list[Vote]:
        return self.store.list_votes(wish_id)
