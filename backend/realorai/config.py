from pydantic import model_validator
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    APP_NAME: str = "Real or AI Guesser"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./realorai.db"

    # External image service (falls back to the local pool when unset or unreachable)
    IMAGE_SERVICE_URL: Optional[str] = None
    IMAGE_SERVICE_TIMEOUT: float = 10.0
    IMAGE_POOL_PATH: Optional[str] = None

    # Game Configuration
    ROUNDS_PER_GAME: int = 5
    REAL_IMAGES_PER_GAME: int = 3
    AI_IMAGES_PER_GAME: int = 2
    MAX_DISTANCE_POINTS: int = 5000
    PREDICTION_POINTS: int = 2500
    ROUND_TIME_LIMIT_SECONDS: int = 60
    MAX_ACTIVE_SESSIONS: int = 1000

    # Leaderboard
    LEADERBOARD_SIZE: int = 10

    @model_validator(mode="after")
    def check_round_mix(self):
        if self.REAL_IMAGES_PER_GAME + self.AI_IMAGES_PER_GAME != self.ROUNDS_PER_GAME:
            raise ValueError(
                "REAL_IMAGES_PER_GAME + AI_IMAGES_PER_GAME must equal ROUNDS_PER_GAME"
            )
        return self

    @property
    def max_round_score(self) -> int:
        return self.MAX_DISTANCE_POINTS + self.PREDICTION_POINTS

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
