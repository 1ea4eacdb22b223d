from fastapi import Request

from .services.game import SessionRegistry
from .services.images import ImageProvider
from .services.leaderboard import LeaderboardRepository, LeaderboardStore


def get_image_provider(request: Request) -> ImageProvider:
    return request.app.state.image_provider


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def get_leaderboard_store(request: Request) -> LeaderboardStore:
    return request.app.state.leaderboard


def get_leaderboard_repository(request: Request) -> LeaderboardRepository:
    return request.app.state.leaderboard_repository
