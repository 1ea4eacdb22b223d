from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Literal
from datetime import datetime


Prediction = Literal["ai", "real"]


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class Location(CamelModel):
    """Ground-truth location of a real photo."""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    address: Optional[str] = None

    class Config:
        frozen = True


class Guess(CamelModel):
    """A point picked by the player on the map."""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class GameImage(CamelModel):
    """An image shown in a round. Real photos carry a location, AI images a prompt."""
    id: str
    url: str
    is_ai: bool = Field(alias="isAI")
    location: Optional[Location] = None
    prompt: Optional[str] = None

    class Config:
        frozen = True

    @model_validator(mode="after")
    def check_location(self):
        if self.is_ai and self.location is not None:
            raise ValueError("AI images must not carry a location")
        if not self.is_ai and self.location is None:
            raise ValueError("real images must carry a location")
        return self


class GameRound(CamelModel):
    """One image of a session and the player's answer to it."""
    id: str
    image: GameImage
    user_guess: Optional[Guess] = None
    user_prediction: Optional[Prediction] = None
    score: Optional[int] = None
    distance: Optional[float] = None
    completed: bool = False


class GameSession(CamelModel):
    """A five-round game owned by a single player."""
    id: str
    rounds: List[GameRound]
    current_round: int = 0
    total_score: int = 0
    start_time: datetime
    is_completed: bool = False
    is_daily_challenge: bool = False


class GameSummary(CamelModel):
    """End-of-game statistics."""
    total_score: int
    grade: str
    correct_predictions: int
    rounds_played: int
    average_distance: Optional[float] = None


class StartGameRequest(CamelModel):
    """Request to create a new game session."""
    is_daily_challenge: bool = False


class GuessRequest(CamelModel):
    """Request for submitting a guess."""
    guess: Guess
    prediction: Prediction


class GuessResponse(CamelModel):
    """Response after submitting a guess."""
    round: GameRound
    session: GameSession
