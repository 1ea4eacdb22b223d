from pydantic import Field
from typing import Optional, List
from datetime import datetime

from .game import CamelModel


class LeaderboardEntry(CamelModel):
    """Leaderboard entry."""
    user_id: str
    user_name: str
    score: int
    date: datetime

    class Config:
        frozen = True


class Leaderboard(CamelModel):
    """Daily and all-time top scores, each sorted by score descending."""
    daily: List[LeaderboardEntry] = []
    all_time: List[LeaderboardEntry] = []


class ScoreSubmission(CamelModel):
    """Request for submitting a final score."""
    score: int = Field(ge=0)
    is_daily_challenge: bool = False
    user_id: Optional[str] = Field(default=None, max_length=100)
    user_name: Optional[str] = Field(default=None, max_length=50)


class SessionScoreSubmission(CamelModel):
    """Request for submitting the score of a completed session."""
    user_id: Optional[str] = Field(default=None, max_length=100)
    user_name: Optional[str] = Field(default=None, max_length=50)


class ScoreResponse(CamelModel):
    """Response after submitting a score. Rank 0 means outside the top list."""
    success: bool
    rank: int
