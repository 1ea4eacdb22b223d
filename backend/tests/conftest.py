import random
from datetime import date

import pytest
from fastapi.testclient import TestClient

from realorai.config import Settings
from realorai.main import create_app
from realorai.models.game import GameImage, Location
from realorai.services.images import FALLBACK_IMAGES, ImagePoolSelector


@pytest.fixture
def real_image():
    return GameImage(
        id="paris",
        url="https://example.com/paris.jpg",
        is_ai=False,
        location=Location(lat=48.8566, lng=2.3522, address="Paris, France"),
    )


@pytest.fixture
def ai_image():
    return GameImage(
        id="oasis",
        url="https://example.com/oasis.jpg",
        is_ai=True,
        prompt="A desert oasis with crystal formations",
    )


@pytest.fixture
def selector():
    return ImagePoolSelector(
        FALLBACK_IMAGES,
        rng=random.Random(1234),
        today=lambda: date(2024, 5, 1),
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client
