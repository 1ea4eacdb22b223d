import json
import logging
import random
import threading
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

import httpx
from pydantic import ValidationError

from ..errors import CollaboratorUnavailable, PoolExhausted
from ..models.game import GameImage, Location

logger = logging.getLogger(__name__)

_PEXELS = "https://images.pexels.com/photos/{0}/pexels-photo-{0}.jpeg?auto=compress&cs=tinysrgb&w=1260&h=750&dpr=1"


def _real(image_id: str, photo: int, lat: float, lng: float, address: str) -> GameImage:
    return GameImage(
        id=image_id,
        url=_PEXELS.format(photo),
        is_ai=False,
        location=Location(lat=lat, lng=lng, address=address),
    )


def _ai(image_id: str, photo: int, prompt: str) -> GameImage:
    return GameImage(id=image_id, url=_PEXELS.format(photo), is_ai=True, prompt=prompt)


# Local pool used when no image service is configured or it cannot be reached
FALLBACK_IMAGES: List[GameImage] = [
    _real("1", 1386604, 48.8566, 2.3522, "Paris, France"),
    _real("2", 1174732, 35.6762, 139.6503, "Tokyo, Japan"),
    _real("3", 1738986, 40.7589, -73.9851, "New York, USA"),
    _real("4", 2166711, 51.5074, -0.1278, "London, UK"),
    _real("5", 1388030, -33.8688, 151.2093, "Sydney, Australia"),
    _real("6", 1624496, 36.1069, -112.1129, "Grand Canyon, USA"),
    _real("7", 1287145, 46.5197, 7.4815, "Swiss Alps, Switzerland"),
    _ai("8", 460741, "A futuristic cyberpunk city with neon lights and flying cars"),
    _ai("9", 2166559, "An underwater city with coral buildings and bioluminescent streets"),
    _ai("10", 1484759, "A floating island city in the clouds with waterfalls"),
    _ai("11", 2166553, "A desert oasis with crystal formations and purple sand"),
    _ai("12", 1387174, "A magical forest with glowing trees and floating rocks"),
    _ai("13", 1323550, "An alien planet with multiple moons and purple vegetation"),
]


def load_pool(path: str) -> List[GameImage]:
    """Load an image pool from a JSON file holding a list of images."""
    with open(Path(path), encoding="utf-8") as fh:
        data = json.load(fh)
    return [GameImage.model_validate(item) for item in data]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ImagePoolSelector:
    """
    Picks a balanced set of real and AI images for a game.

    Regular games get an independent random draw each time. The daily
    challenge set is drawn once per UTC calendar day and handed out to every
    caller until the date changes.
    """

    def __init__(
        self,
        images: List[GameImage],
        real_count: int = 3,
        ai_count: int = 2,
        rng: Optional[random.Random] = None,
        today: Callable[[], date] = utc_today,
    ):
        self.real_pool = [image for image in images if not image.is_ai]
        self.ai_pool = [image for image in images if image.is_ai]
        self.real_count = real_count
        self.ai_count = ai_count
        self.rng = rng or random.Random()
        self.today = today

        self._daily_images: Optional[List[GameImage]] = None
        self._daily_date: Optional[date] = None
        self._lock = threading.Lock()

    @property
    def round_count(self) -> int:
        return self.real_count + self.ai_count

    def select_images(self, is_daily_challenge: bool = False) -> List[GameImage]:
        """
        Return ``real_count`` real plus ``ai_count`` AI images in random order.

        Raises:
            PoolExhausted: if either pool is too small
        """
        if not is_daily_challenge:
            return self._draw()

        today = self.today()
        with self._lock:
            if self._daily_date != today:
                self._daily_images = self._draw()
                self._daily_date = today
                logger.info("Drew daily challenge images for %s", today.isoformat())
            return list(self._daily_images)

    def _draw(self) -> List[GameImage]:
        if len(self.real_pool) < self.real_count or len(self.ai_pool) < self.ai_count:
            raise PoolExhausted(
                f"Not enough images in the pool. Found {len(self.real_pool)} real and "
                f"{len(self.ai_pool)} AI, need {self.real_count} and {self.ai_count}."
            )

        selected = (
            self.rng.sample(self.real_pool, self.real_count)
            + self.rng.sample(self.ai_pool, self.ai_count)
        )
        self.rng.shuffle(selected)
        return selected


class ImageServiceClient:
    """Client for an external image service exposing ``GET /api/game/images``."""

    def __init__(self, api_url: str, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport
        self.headers = {"Accept": "application/json"}

    async def fetch_images(self, is_daily_challenge: bool = False) -> List[GameImage]:
        """
        Fetch a round set from the image service.

        Raises:
            CollaboratorUnavailable: if the service cannot be reached, answers
                with an error status, or returns something that is not a list
                of images
        """
        params = {"daily": "true"} if is_daily_challenge else None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.get(
                    f"{self.api_url}/api/game/images",
                    headers=self.headers,
                    params=params
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                raise CollaboratorUnavailable(f"Image service returned an error: {str(e)}")
            except httpx.RequestError as e:
                raise CollaboratorUnavailable(f"Cannot reach image service: {str(e)}")
            except ValueError as e:
                raise CollaboratorUnavailable(f"Image service returned invalid JSON: {str(e)}")

        if not isinstance(data, list):
            raise CollaboratorUnavailable("Image service returned an unexpected payload.")
        try:
            return [GameImage.model_validate(item) for item in data]
        except ValidationError as e:
            raise CollaboratorUnavailable(f"Image service returned malformed images: {str(e)}")


class ImageProvider:
    """Serves round sets from the image service, falling back to the local pool."""

    def __init__(self, selector: ImagePoolSelector, client: Optional[ImageServiceClient] = None):
        self.selector = selector
        self.client = client

    async def get_images(self, is_daily_challenge: bool = False) -> List[GameImage]:
        if self.client is not None:
            try:
                images = await self.client.fetch_images(is_daily_challenge)
                self._check_composition(images)
                return images
            except CollaboratorUnavailable as e:
                logger.warning("Image service unavailable, using local pool: %s", e.message)

        return self.selector.select_images(is_daily_challenge)

    def _check_composition(self, images: List[GameImage]) -> None:
        if len({image.id for image in images}) != len(images):
            raise CollaboratorUnavailable("Image service returned duplicate images.")
        ai = sum(1 for image in images if image.is_ai)
        if ai != self.selector.ai_count or len(images) - ai != self.selector.real_count:
            raise CollaboratorUnavailable(
                f"Image service returned {len(images) - ai} real and {ai} AI images, "
                f"expected {self.selector.real_count} and {self.selector.ai_count}."
            )
