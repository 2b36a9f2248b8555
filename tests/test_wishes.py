"""Tests for wish creation, pledging and cancellation."""

from datetime import datetime, timedelta

import pytest

from dreamjar.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from dreamjar.models import ProofMethod, WishStatus, can_transition


def test_create_wish_defaults(service, make_wish, clock):
    wish = make_wish(impact_on_fail_percent=20, impact_beneficiary="library")

    stored = service.get_wish(wish.wish_id)
    assert stored == wish
    assert stored.status == WishStatus.ACTIVE
    assert stored.proof_method == ProofMethod.MEDIA
    assert stored.pledge_total == 0
    assert stored.deadline == clock() + timedelta(days=30)
    assert [u.user_id for u in service.store.list_users()] == ["alice"]


def test_create_wish_accepts_alias_and_naive_deadline(service, clock):
    """Test that naive deadlines are read as UTC and legacy method names work."""
    naive = (clock() + timedelta(days=1)).replace(tzinfo=None)

    wish = service.create_wish("alice", "Climb", 10, naive, "gps")

    assert wish.proof_method == ProofMethod.GEOLOCATION
    assert wish.deadline == clock() + timedelta(days=1)


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"title": "  "}, "title"),
        ({"stake_amount": -1}, "stake_amount"),
        ({"impact_on_fail_percent": 101}, "impact_on_fail_percent"),
        ({"proof_method": "telepathy"}, "method"),
    ],
)
def test_create_wish_validation(make_wish, overrides, field):
    with pytest.raises(ValidationError) as exc_info:
        make_wish(**overrides)
    assert exc_info.value.field == field


def test_create_wish_requires_future_deadline(make_wish, clock):
    with pytest.raises(ValidationError) as exc_info:
        make_wish(deadline=clock())
    assert exc_info.value.field == "deadline"


def test_pledges_accumulate(service, make_wish):
    wish = make_wish(stake_amount=1_000)

    service.pledge(wish.wish_id, "bob", 300)
    service.pledge(wish.wish_id, "carol", 200)

    stored = service.get_wish(wish.wish_id)
    assert (stored.pledge_total, stored.pledge_count) == (500, 2)
    assert stored.total_pot == 1_500
    assert [p.supporter_id for p in service.store.list_pledges(wish.wish_id)] == ["bob", "carol"]


def test_pledge_validation(service, make_wish):
    wish = make_wish()

    with pytest.raises(ValidationError):
        service.pledge(wish.wish_id, "bob", 0)
    with pytest.raises(NotFoundError):
        service.pledge("missing", "bob", 10)


def test_pledges_frozen_after_terminal_state(service, pending_wish):
    """Test that totals stop moving once a wish is verified."""
    wish_id = pending_wish()
    service.pledge(wish_id, "bob", 100)
    for voter in ("carol", "dave", "erin"):
        service.cast_vote(wish_id, voter, "yes")

    with pytest.raises(StateError):
        service.pledge(wish_id, "frank", 100)

    stored = service.get_wish(wish_id)
    assert (stored.pledge_total, stored.pledge_count) == (100, 1)


def test_creator_can_cancel_active_wish(service, make_wish):
    wish = make_wish()

    cancelled = service.cancel_wish(wish.wish_id, "alice")

    assert cancelled.status == WishStatus.CANCELLED
    with pytest.raises(StateError):
        service.pledge(wish.wish_id, "bob", 10)


def test_admin_can_cancel(service, make_wish):
    wish = make_wish()

    assert service.cancel_wish(wish.wish_id, "admin").status == WishStatus.CANCELLED


def test_others_cannot_cancel(service, make_wish):
    wish = make_wish()

    with pytest.raises(AuthorizationError):
        service.cancel_wish(wish.wish_id, "mallory")


def test_cannot_cancel_after_proof(service, pending_wish):
    """Test that cancellation is only possible before proof is submitted."""
    wish_id = pending_wish()

    with pytest.raises(StateError):
        service.cancel_wish(wish_id, "alice")

    outcome = service.resolve(wish_id)
    assert outcome.status == WishStatus.PENDING_VERIFICATION


def test_service_leaderboard(service, make_wish):
    first = make_wish("alice")
    second = make_wish("bob")
    service.pledge(first.wish_id, "bob", 300)
    service.pledge(second.wish_id, "carol", 50)
    service.pledge(first.wish_id, "carol", 400)

    board = service.get_leaderboard()

    assert [(e.user.user_id, e.total_pledged) for e in board] == [("carol", 450), ("bob", 300), ("alice", 0)]
    assert board[0].rank == 1
    assert board[2].dreams_created == 1


def test_service_top_creators_and_trending(service, make_wish, clock):
    quiet = make_wish("alice", title="Quiet")
    clock.advance(minutes=1)
    popular = make_wish("alice", title="Popular")
    other = make_wish("bob", title="Cancelled")
    service.pledge(popular.wish_id, "carol", 10)
    service.pledge(popular.wish_id, "dave", 10)
    service.cancel_wish(other.wish_id, "bob")

    creators = service.get_top_creators()
    trending = service.get_trending_wishes()

    assert [(c.user.user_id, c.dreams_created) for c in creators] == [("alice", 2), ("bob", 1)]
    assert [t.wish_id for t in trending] == [popular.wish_id, quiet.wish_id]


@pytest.mark.parametrize(
    "current, target, allowed",
    [
        (WishStatus.ACTIVE, WishStatus.PENDING_VERIFICATION, True),
        (WishStatus.ACTIVE, WishStatus.CANCELLED, True),
        (WishStatus.PENDING_VERIFICATION, WishStatus.VERIFIED, True),
        (WishStatus.PENDING_VERIFICATION, WishStatus.FAILED, True),
        (WishStatus.ACTIVE, WishStatus.VERIFIED, False),
        (WishStatus.PENDING_VERIFICATION, WishStatus.CANCELLED, False),
        (WishStatus.FAILED, WishStatus.ACTIVE, False),
        (WishStatus.VERIFIED, WishStatus.PENDING_VERIFICATION, False),
    ],
)
def test_wish_transitions(current, target, allowed):
    assert can_transition(current, target) is allowed
    if allowed:
        assert not current.is_terminal


def test_terminal_statuses():
    assert [s for s in WishStatus if s.is_terminal] == [WishStatus.VERIFIED, WishStatus.FAILED, WishStatus.CANCELLED]


def test_store_refuses_illegal_transition(service, make_wish, clock):
    """Test that the store rejects a status change outside the lifecycle before touching the row."""
    wish = make_wish()

    with pytest.raises(ValueError):
        service.store.transition_wish(wish.wish_id, WishStatus.ACTIVE, WishStatus.VERIFIED, clock())
    with pytest.raises(ValueError):
        service.store.transition_wish(wish.wish_id, WishStatus.FAILED, WishStatus.ACTIVE, clock())

    assert service.get_wish(wish.wish_id).status == WishStatus.ACTIVE
