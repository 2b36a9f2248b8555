"""Leaderboards computed from a snapshot of users, wishes and pledges.

Everything here is a pure function of its inputs.
"""

from collections import defaultdict
from typing import Iterable

from .models import CreatorEntry, LeaderboardEntry, Pledge, TrendingWish, User, Wish, WishStatus

SUCCESS_STATUSES = frozenset({WishStatus.VERIFIED})


def success_rate(successful: int, created: int) -> int:
    """Percentage of successful wishes, rounded half-up to an integer (0 if none created)."""
    if created <= 0:
        return 0
    return (successful * 200 + created) // (2 * created)


def build_leaderboard(
    users: Iterable[User],
    wishes: Iterable[Wish],
    pledges: Iterable[Pledge],
) -> list[LeaderboardEntry]:
    """Rank users by total pledged, descending.

    Users with no pledges and no wishes are left out. Ties keep input
    order and still get distinct ranks.
    """
    pledged: dict[str, int] = defaultdict(int)
    for pledge in pledges:
        pledged[pledge.supporter_id] += pledge.amount

    created: dict[str, int] = defaultdict(int)
    successful: dict[str, int] = defaultdict(int)
    for wish in wishes:
        created[wish.creator_id] += 1
        if wish.status in SUCCESS_STATUSES:
            successful[wish.creator_id] += 1

    rows = []
    for user in users:
        total = pledged.get(user.user_id, 0)
        dreams = created.get(user.user_id, 0)
        if total == 0 and dreams == 0:
            continue
        rows.append((user, total, dreams, successful.get(user.user_id, 0)))

    # sorted() is stable, so ties keep input order
    rows = sorted(rows, key=lambda r: r[1], reverse=True)

    return [
        LeaderboardEntry(
            rank=i,
            user=user,
            total_pledged=total,
            dreams_created=dreams,
            successful_dreams=wins,
            success_rate=success_rate(wins, dreams),
        )
        for i, (user, total, dreams, wins) in enumerate(rows, 1)
    ]


def top_creators(users: Iterable[User], wishes: Iterable[Wish], limit: int = 10) -> list[CreatorEntry]:
    created: dict[str, int] = defaultdict(int)
    for wish in wishes:
        created[wish.creator_id] += 1

    ranked = sorted(
        (u for u in users if created.get(u.user_id, 0) > 0),
        key=lambda u: created[u.user_id],
        reverse=True,
    )
    return [
        CreatorEntry(rank=i, user=user, dreams_created=created[user.user_id])
        for i, user in enumerate(ranked[:limit], 1)
    ]


def trending_wishes(wishes: Iterable[Wish], limit: int = 10) -> list[TrendingWish]:
    """Active wishes with the most pledges; newer wishes first among equals."""
    active = [w for w in wishes if w.status == WishStatus.ACTIVE]
    active.sort(key=lambda w: w.created_at, reverse=True)
    active.sort(key=lambda w: w.pledge_count, reverse=True)
    return [
        TrendingWish(
            rank=i,
            wish_id=w.wish_id,
            title=w.title,
            creator_id=w.creator_id,
            pledge_count=w.pledge_count,
            pledge_total=w.pledge_total,
            created_at=w.created_at,
        )
        for i, w in enumerate(active[:limit], 1)
    ]
