import logging
import threading
from datetime import datetime, timezone
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..database.models import LeaderboardRecord
from ..errors import CollaboratorUnavailable
from ..models.leaderboard import Leaderboard, LeaderboardEntry

logger = logging.getLogger(__name__)


class LeaderboardStore:
    """
    Bounded daily and all-time top-score lists.

    Every submission lands on the all-time list; daily-challenge results also
    land on the daily list. Each list is kept sorted by score descending, ties
    in submission order, and cut to ``size`` entries. The daily list is never
    reset, so it holds the best daily-challenge scores ever submitted.
    """

    def __init__(self, size: int = 10):
        self.size = size
        self._daily: List[LeaderboardEntry] = []
        self._all_time: List[LeaderboardEntry] = []
        self._lock = threading.Lock()

    def submit(self, entry: LeaderboardEntry, is_daily_challenge: bool = False) -> int:
        """
        Insert an entry.

        Returns:
            1-based position on the all-time list, or 0 if it did not make the cut
        """
        with self._lock:
            self._all_time = self._insert(self._all_time, entry)
            if is_daily_challenge:
                self._daily = self._insert(self._daily, entry)

            for position, ranked in enumerate(self._all_time, 1):
                if ranked is entry:
                    return position
            return 0

    def would_rank(self, entry: LeaderboardEntry, is_daily_challenge: bool = False) -> bool:
        """Whether ``entry`` would currently make the all-time list, or the daily one."""
        with self._lock:
            lists = [self._all_time, self._daily] if is_daily_challenge else [self._all_time]
            return any(len(entries) < self.size or entry.score > entries[-1].score for entries in lists)

    def holds(self, entry: LeaderboardEntry) -> bool:
        with self._lock:
            return any(ranked is entry for ranked in self._all_time + self._daily)

    def _insert(self, entries: List[LeaderboardEntry], entry: LeaderboardEntry) -> List[LeaderboardEntry]:
        ranked = sorted(entries + [entry], key=lambda e: e.score, reverse=True)
        return ranked[:self.size]

    def snapshot(self) -> Leaderboard:
        with self._lock:
            return Leaderboard(daily=list(self._daily), all_time=list(self._all_time))


class LeaderboardRepository:
    """Persists ranking submissions so the store survives restarts."""

    def __init__(self, sessionmaker: async_sessionmaker):
        self.sessionmaker = sessionmaker

    async def save(self, entry: LeaderboardEntry, is_daily_challenge: bool) -> None:
        try:
            async with self.sessionmaker() as db:
                db.add(LeaderboardRecord(
                    user_id=entry.user_id,
                    user_name=entry.user_name,
                    score=entry.score,
                    is_daily_challenge=is_daily_challenge,
                    submitted_at=entry.date,
                ))
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to persist leaderboard entry for %s: %s", entry.user_id, e)
            raise CollaboratorUnavailable("Leaderboard storage is unavailable.")

    async def load_into(self, store: LeaderboardStore) -> int:
        """
        Replay stored submissions into ``store`` in submission order.

        Rows whose entries no longer appear on either list are deleted.

        Returns:
            Number of rows replayed
        """
        try:
            async with self.sessionmaker() as db:
                result = await db.execute(select(LeaderboardRecord).order_by(LeaderboardRecord.id))
                records = result.scalars().all()

                replayed = []
                for record in records:
                    entry = LeaderboardEntry(
                        user_id=record.user_id,
                        user_name=record.user_name,
                        score=record.score,
                        date=_as_utc(record.submitted_at),
                    )
                    store.submit(entry, record.is_daily_challenge)
                    replayed.append((record.id, entry))

                stale = [record_id for record_id, entry in replayed if not store.holds(entry)]
                if stale:
                    await db.execute(delete(LeaderboardRecord).where(LeaderboardRecord.id.in_(stale)))
                    await db.commit()
                    logger.info("Pruned %d leaderboard rows outside the top lists", len(stale))
        except SQLAlchemyError as e:
            logger.error("Failed to load leaderboard: %s", e)
            raise CollaboratorUnavailable("Leaderboard storage is unavailable.")

        return len(replayed)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset on stored datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def record_score(
    store: LeaderboardStore,
    repository: LeaderboardRepository,
    entry: LeaderboardEntry,
    is_daily_challenge: bool,
) -> int:
    """
    Persist a score, then rank it. A storage failure leaves the store untouched.

    Scores that cannot make either list are ranked without being stored; lists
    only ever get harder to enter, so such a score can never rank later.
    """
    if store.would_rank(entry, is_daily_challenge):
        await repository.save(entry, is_daily_challenge)
    rank = store.submit(entry, is_daily_challenge)
    logger.info(
        "Recorded score %d for %s (daily=%s), all-time rank %d",
        entry.score, entry.user_id, is_daily_challenge, rank
    )
    return rank
