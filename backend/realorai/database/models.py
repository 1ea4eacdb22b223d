from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from .session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeaderboardRecord(Base):
    """A score accepted onto the leaderboard, replayed into memory on startup."""
    __tablename__ = "leaderboard_entries"
    
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(100), nullable=False, index=True)
    user_name = Column(String(50), nullable=False)
    score = Column(Integer, nullable=False)
    is_daily_challenge = Column(Boolean, default=False, nullable=False)
    submitted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
