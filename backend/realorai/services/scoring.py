import math
from math import radians, sin, cos, sqrt, atan2
from typing import NamedTuple, Optional

from ..models.game import GameImage, GameSession, GameSummary, Guess, Prediction


# Earth's radius in kilometers
EARTH_RADIUS_KM = 6371.0

# Minimum total score for each grade, best first
GRADES = (
    (30000, "S"),
    (25000, "A+"),
    (20000, "A"),
    (15000, "B"),
    (10000, "C"),
)


class RoundScore(NamedTuple):
    score: int
    distance: Optional[float]


def haversine_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Calculate the great circle distance between two points on Earth.

    Args:
        lat1, lng1: Coordinates of the first point (degrees)
        lat2, lng2: Coordinates of the second point (degrees)

    Returns:
        Distance in kilometers
    """
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    dlat = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)

    a = sin(dlat / 2)**2 + cos(lat1_rad) * cos(lat2_rad) * sin(dlng / 2)**2
    # Rounding can push a just past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def score_round(
    image: GameImage,
    guess: Guess,
    prediction: Prediction,
    max_distance_points: int = 5000,
    prediction_points: int = 2500,
) -> RoundScore:
    """
    Score a single answer.

    Real photos earn up to ``max_distance_points`` falling off linearly by one
    point per kilometer, AI images earn nothing for the map guess and have no
    distance. A correct real/AI prediction adds ``prediction_points``.

    Returns:
        RoundScore with the integer score and the distance in km (None for AI images)
    """
    distance = None
    distance_score = 0.0
    if not image.is_ai:
        distance = haversine_distance(
            guess.lat, guess.lng,
            image.location.lat, image.location.lng
        )
        distance_score = max(0.0, max_distance_points - distance)

    truth = "ai" if image.is_ai else "real"
    prediction_score = prediction_points if prediction == truth else 0

    return RoundScore(_round_half_up(distance_score + prediction_score), distance)


def grade_for(total_score: int) -> str:
    for threshold, grade in GRADES:
        if total_score >= threshold:
            return grade
    return "D"


def summarize(session: GameSession) -> GameSummary:
    """Build end-of-game statistics for a session."""
    played = [r for r in session.rounds if r.completed]
    correct = sum(
        1 for r in played
        if r.user_prediction == ("ai" if r.image.is_ai else "real")
    )
    distances = [r.distance for r in played if not r.image.is_ai and r.distance is not None]
    average = sum(distances) / len(distances) if distances else None

    return GameSummary(
        total_score=session.total_score,
        grade=grade_for(session.total_score),
        correct_predictions=correct,
        rounds_played=len(played),
        average_distance=average,
    )
