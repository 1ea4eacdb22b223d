import logging
import random
import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timezone
from typing import List, Optional

from ..config import get_settings
from ..errors import AlreadyCompleted, PoolExhausted, SessionNotFound
from ..models.game import GameImage, GameRound, GameSession, Guess, Prediction
from .scoring import score_round

logger = logging.getLogger(__name__)


def start_new_game(
    images: List[GameImage],
    is_daily_challenge: bool = False,
    rounds_per_game: Optional[int] = None,
) -> GameSession:
    """
    Wrap a selected image set into a fresh session.

    Raises:
        PoolExhausted: if the image set does not fill every round
    """
    if rounds_per_game is None:
        rounds_per_game = get_settings().ROUNDS_PER_GAME
    if len(images) != rounds_per_game:
        raise PoolExhausted(
            f"Need {rounds_per_game} images to start a game, got {len(images)}."
        )

    rounds = [
        GameRound(id=f"round-{uuid.uuid4()}", image=image, completed=False)
        for image in images
    ]
    return GameSession(
        id=str(uuid.uuid4()),
        rounds=rounds,
        current_round=0,
        total_score=0,
        start_time=datetime.now(timezone.utc),
        is_completed=False,
        is_daily_challenge=is_daily_challenge,
    )


def submit_guess(
    session: GameSession,
    guess: Guess,
    prediction: Prediction,
    max_distance_points: int = 5000,
    prediction_points: int = 2500,
) -> GameRound:
    """
    Score the current round and advance the session.

    The round record is replaced in place, its score added to the total and
    the session either moves to the next round or, after the last one, is
    marked completed with ``current_round`` left on the last index.

    Raises:
        AlreadyCompleted: if the session is finished or the current round was
            already scored. The session is left untouched.
    """
    if session.is_completed:
        raise AlreadyCompleted(f"Game {session.id} is already completed.")

    index = session.current_round
    current = session.rounds[index]
    if current.completed:
        raise AlreadyCompleted(f"Round {index + 1} of game {session.id} is already scored.")

    result = score_round(
        current.image, guess, prediction,
        max_distance_points=max_distance_points,
        prediction_points=prediction_points,
    )
    scored = current.model_copy(update={
        "user_guess": guess,
        "user_prediction": prediction,
        "score": result.score,
        "distance": result.distance,
        "completed": True,
    })
    session.rounds[index] = scored
    session.total_score += result.score

    if index == len(session.rounds) - 1:
        session.is_completed = True
    else:
        session.current_round = index + 1

    return scored


def submit_timeout(
    session: GameSession,
    rng: Optional[random.Random] = None,
    **scoring
) -> GameRound:
    """Force a submission for a round whose timer ran out, with a random answer."""
    rng = rng or random.Random()
    guess = Guess(lat=rng.uniform(-90, 90), lng=rng.uniform(-180, 180))
    prediction = rng.choice(("ai", "real"))
    return submit_guess(session, guess, prediction, **scoring)


class SessionRegistry:
    """In-memory owner of live game sessions, keyed by session id."""

    def __init__(self, max_sessions: int = 1000):
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, GameSession]" = OrderedDict()
        self._submitted = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def add(self, session: GameSession) -> GameSession:
        with self._lock:
            self._sessions[session.id] = session
            while len(self._sessions) > self.max_sessions:
                evicted, _ = self._sessions.popitem(last=False)
                self._submitted.discard(evicted)
                logger.info("Evicted game session %s", evicted)
        return session

    def get(self, session_id: str) -> GameSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Game session {session_id} not found.")
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                raise SessionNotFound(f"Game session {session_id} not found.")
            self._submitted.discard(session_id)

    def mark_submitted(self, session_id: str) -> None:
        """Record that a session's score went to the leaderboard; only allowed once."""
        with self._lock:
            if session_id not in self._sessions:
                raise SessionNotFound(f"Game session {session_id} not found.")
            if session_id in self._submitted:
                raise AlreadyCompleted(f"Score for game {session_id} was already submitted.")
            self._submitted.add(session_id)

    def unmark_submitted(self, session_id: str) -> None:
        with self._lock:
            self._submitted.discard(session_id)
