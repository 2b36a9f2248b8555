"""Tests for leaderboard aggregation."""

from datetime import datetime, timedelta, timezone

from dreamjar.models import Pledge, User, Wish, WishStatus
from dreamjar.ranking import build_leaderboard, success_rate, top_creators, trending_wishes

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _wish(wish_id, creator_id, status=WishStatus.ACTIVE, pledge_count=0, created_offset=0):
    created = T0 + timedelta(hours=created_offset)
    return Wish(
        wish_id=wish_id,
        creator_id=creator_id,
        title=f"Wish {wish_id}",
        stake_amount=100,
        pledge_count=pledge_count,
        deadline=T0 + timedelta(days=30),
        proof_method="media",
        status=status,
        created_at=created,
        updated_at=created,
    )


def _pledge(pledge_id, supporter_id, amount, wish_id="w1"):
    return Pledge(pledge_id=pledge_id, wish_id=wish_id, supporter_id=supporter_id, amount=amount, created_at=T0)


def test_success_rate_rounding():
    assert success_rate(1, 3) == 33
    assert success_rate(2, 3) == 67
    assert success_rate(1, 8) == 13  # 12.5 rounds up
    assert success_rate(3, 3) == 100
    assert success_rate(0, 0) == 0


def test_leaderboard_orders_by_total_pledged():
    """Test that pledges are summed per supporter and ranked descending."""
    users = [User(user_id="a", display_name="A"), User(user_id="b", display_name="B")]
    pledges = [
        _pledge("p1", "b", 300_000_000),
        _pledge("p2", "b", 200_000_000),
        _pledge("p3", "a", 100_000_000),
    ]

    board = build_leaderboard(users, [], pledges)

    assert [(e.rank, e.user.user_id, e.total_pledged) for e in board] == [
        (1, "b", 500_000_000),
        (2, "a", 100_000_000),
    ]


def test_leaderboard_creator_stats():
    users = [User(user_id="c")]
    wishes = [
        _wish("w1", "c", WishStatus.VERIFIED),
        _wish("w2", "c", WishStatus.FAILED),
        _wish("w3", "c", WishStatus.ACTIVE),
    ]

    (entry,) = build_leaderboard(users, wishes, [])

    assert entry.total_pledged == 0
    assert entry.dreams_created == 3
    assert entry.successful_dreams == 1
    assert entry.success_rate == 33


def test_leaderboard_skips_inactive_users():
    users = [User(user_id="idle"), User(user_id="giver")]

    board = build_leaderboard(users, [], [_pledge("p1", "giver", 5)])

    assert [e.user.user_id for e in board] == ["giver"]


def test_leaderboard_ties_keep_input_order():
    """Test that equal totals keep user order and still get distinct ranks."""
    users = [User(user_id="x"), User(user_id="y"), User(user_id="z")]
    pledges = [_pledge("p1", "y", 10), _pledge("p2", "x", 10), _pledge("p3", "z", 20)]

    board = build_leaderboard(users, [], pledges)

    assert [(e.rank, e.user.user_id) for e in board] == [(1, "z"), (2, "x"), (3, "y")]


def test_top_creators():
    users = [User(user_id="a"), User(user_id="b"), User(user_id="c")]
    wishes = [_wish("w1", "b"), _wish("w2", "b"), _wish("w3", "a")]

    ranked = top_creators(users, wishes, limit=5)

    assert [(e.rank, e.user.user_id, e.dreams_created) for e in ranked] == [(1, "b", 2), (2, "a", 1)]


def test_trending_wishes_active_only():
    """Test that trending lists active wishes by pledge count, newest first on ties."""
    wishes = [
        _wish("old", "a", pledge_count=4, created_offset=0),
        _wish("new", "a", pledge_count=4, created_offset=5),
        _wish("hot", "b", pledge_count=9, created_offset=1),
        _wish("done", "b", WishStatus.VERIFIED, pledge_count=50),
    ]

    trending = trending_wishes(wishes, limit=2)

    assert [t.wish_id for t in trending] == ["hot", "new"]
    assert [t.rank for t in trending] == [1, 2]
