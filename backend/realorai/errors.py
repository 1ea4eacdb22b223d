from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse


class GameError(Exception):
    """Base class for errors raised by the game core."""

    code = "GAME_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PoolExhausted(GameError):
    """Not enough images to build a full round set."""

    code = "POOL_EXHAUSTED"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class AlreadyCompleted(GameError):
    """Guess submitted against a finished session or an already scored round."""

    code = "ALREADY_COMPLETED"
    status_code = status.HTTP_409_CONFLICT


class CollaboratorUnavailable(GameError):
    """An external service (image service, database) could not be reached."""

    code = "COLLABORATOR_UNAVAILABLE"
    status_code = status.HTTP_502_BAD_GATEWAY


class SessionNotFound(GameError):
    code = "SESSION_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )
