import logging
import uuid
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..config import Settings, get_settings
from ..dependencies import (
    get_image_provider, get_leaderboard_repository,
    get_leaderboard_store, get_session_registry
)
from ..errors import AlreadyCompleted
from ..models.game import (
    GameImage, GameSession, GameSummary, GuessRequest, GuessResponse, StartGameRequest
)
from ..models.leaderboard import (
    Leaderboard, LeaderboardEntry, ScoreResponse, ScoreSubmission, SessionScoreSubmission
)
from ..services.game import SessionRegistry, start_new_game, submit_guess, submit_timeout
from ..services.images import ImageProvider
from ..services.leaderboard import LeaderboardRepository, LeaderboardStore, record_score
from ..services.scoring import summarize

router = APIRouter(prefix="/game", tags=["Game"])
logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"


def _scoring(settings: Settings) -> dict:
    return {
        "max_distance_points": settings.MAX_DISTANCE_POINTS,
        "prediction_points": settings.PREDICTION_POINTS,
    }


def _entry(score: int, user_id, user_name) -> LeaderboardEntry:
    return LeaderboardEntry(
        user_id=user_id or f"user-{uuid.uuid4()}",
        user_name=user_name or ANONYMOUS_NAME,
        score=score,
        date=datetime.now(timezone.utc),
    )


@router.get("/images", response_model=List[GameImage])
async def get_images(
    daily: bool = False,
    provider: ImageProvider = Depends(get_image_provider)
):
    """Get a round set of images (3 real, 2 AI). Daily sets are fixed per UTC day."""
    return await provider.get_images(daily)


@router.post("/score", response_model=ScoreResponse)
async def submit_score(
    submission: ScoreSubmission,
    settings: Settings = Depends(get_settings),
    store: LeaderboardStore = Depends(get_leaderboard_store),
    repository: LeaderboardRepository = Depends(get_leaderboard_repository)
):
    """Submit a final score to the leaderboard."""
    max_score = settings.ROUNDS_PER_GAME * settings.max_round_score
    if submission.score > max_score:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Score cannot exceed {max_score}."
        )

    entry = _entry(submission.score, submission.user_id, submission.user_name)
    rank = await record_score(store, repository, entry, submission.is_daily_challenge)
    return ScoreResponse(success=True, rank=rank)


@router.get("/leaderboard", response_model=Leaderboard)
async def get_leaderboard(store: LeaderboardStore = Depends(get_leaderboard_store)):
    """Get the daily and all-time top scores."""
    return store.snapshot()


@router.post("/start", response_model=GameSession, status_code=status.HTTP_201_CREATED)
async def start_game(
    request: StartGameRequest,
    settings: Settings = Depends(get_settings),
    provider: ImageProvider = Depends(get_image_provider),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Start a new game session."""
    images = await provider.get_images(request.is_daily_challenge)
    session = start_new_game(images, request.is_daily_challenge, settings.ROUNDS_PER_GAME)
    sessions.add(session)
    logger.info("Started game %s (daily=%s)", session.id, session.is_daily_challenge)
    return session


@router.get("/{session_id}", response_model=GameSession)
async def get_game(
    session_id: str,
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Get a game session."""
    return sessions.get(session_id)


@router.post("/{session_id}/guess", response_model=GuessResponse)
async def guess(
    session_id: str,
    request: GuessRequest,
    settings: Settings = Depends(get_settings),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Submit a guess for the current round."""
    session = sessions.get(session_id)
    try:
        scored = submit_guess(session, request.guess, request.prediction, **_scoring(settings))
    except AlreadyCompleted as e:
        logger.info("Ignored guess for game %s: %s", session_id, e.message)
        raise
    return GuessResponse(round=scored, session=session)


@router.post("/{session_id}/timeout", response_model=GuessResponse)
async def timeout(
    session_id: str,
    settings: Settings = Depends(get_settings),
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Close the current round after its timer ran out, with a random answer."""
    session = sessions.get(session_id)
    scored = submit_timeout(session, **_scoring(settings))
    return GuessResponse(round=scored, session=session)


@router.get("/{session_id}/summary", response_model=GameSummary)
async def get_summary(
    session_id: str,
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Get end-of-game statistics."""
    return summarize(sessions.get(session_id))


@router.post("/{session_id}/submit", response_model=ScoreResponse)
async def submit_session_score(
    session_id: str,
    request: SessionScoreSubmission,
    sessions: SessionRegistry = Depends(get_session_registry),
    store: LeaderboardStore = Depends(get_leaderboard_store),
    repository: LeaderboardRepository = Depends(get_leaderboard_repository)
):
    """Submit the final score of a completed game to the leaderboard."""
    session = sessions.get(session_id)
    if not session.is_completed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Game is not finished yet."
        )

    sessions.mark_submitted(session_id)
    entry = _entry(session.total_score, request.user_id, request.user_name)
    try:
        rank = await record_score(store, repository, entry, session.is_daily_challenge)
    except Exception:
        sessions.unmark_submitted(session_id)
        raise
    return ScoreResponse(success=True, rank=rank)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(
    session_id: str,
    sessions: SessionRegistry = Depends(get_session_registry)
):
    """Delete a game session."""
    sessions.remove(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
