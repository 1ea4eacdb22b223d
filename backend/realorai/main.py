import logging
import random
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .database.session import build_engine, build_sessionmaker, init_db
from .errors import register_error_handlers
from .routers import game
from .services.game import SessionRegistry
from .services.images import (
    FALLBACK_IMAGES, ImagePoolSelector, ImageProvider, ImageServiceClient, load_pool
)
from .services.leaderboard import LeaderboardRepository, LeaderboardStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_image_provider(settings: Settings, rng: Optional[random.Random] = None) -> ImageProvider:
    pool = load_pool(settings.IMAGE_POOL_PATH) if settings.IMAGE_POOL_PATH else FALLBACK_IMAGES
    selector = ImagePoolSelector(
        pool,
        real_count=settings.REAL_IMAGES_PER_GAME,
        ai_count=settings.AI_IMAGES_PER_GAME,
        rng=rng,
    )
    client = None
    if settings.IMAGE_SERVICE_URL:
        client = ImageServiceClient(settings.IMAGE_SERVICE_URL, settings.IMAGE_SERVICE_TIMEOUT)
    return ImageProvider(selector, client)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifecycle events for the application."""
        engine = build_engine(settings.DATABASE_URL)
        await init_db(engine)

        repository = LeaderboardRepository(build_sessionmaker(engine))
        store = LeaderboardStore(settings.LEADERBOARD_SIZE)
        loaded = await repository.load_into(store)
        logger.info("Loaded %d leaderboard submissions", loaded)

        app.state.leaderboard = store
        app.state.leaderboard_repository = repository
        app.state.sessions = SessionRegistry(settings.MAX_ACTIVE_SESSIONS)
        app.state.image_provider = build_image_provider(settings)
        yield
        await engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Guess where real photos were taken and spot the AI-generated ones",
        version="1.0.0",
        lifespan=lifespan
    )
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(game.router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Welcome to Real or AI Guesser API",
            "docs": "/docs",
            "health": "ok"
        }

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
