"""Pydantic models for leaderboard output."""

from datetime import datetime

from pydantic import BaseModel

from .wish import User


class LeaderboardEntry(BaseModel):
    rank: int
    user: User
    total_pledged: int
    dreams_created: int
    successful_dreams: int
    success_rate: int

    model_config = {"frozen": True}


class CreatorEntry(BaseModel):
    rank: int
    user: User
    dreams_created: int

    model_config = {"frozen": True}


class TrendingWish(BaseModel):
    rank: int
    wish_id: str
    title: str
    creator_id: str
    pledge_count: int
    pledge_total: int
    created_at: datetime

    model_config = {"frozen": True}
