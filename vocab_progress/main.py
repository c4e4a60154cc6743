"""FastAPI application factory."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vocab_progress import __version__
from vocab_progress.api.v1 import api_router
from vocab_progress.config import settings
from vocab_progress.db.session import init_local_store
from vocab_progress.utils.exceptions import (
    ProgressEngineException,
    SessionError,
    ValidationError,
    handle_session_error,
    handle_storage_error,
    handle_validation_error,
)


tags_metadata: List[dict[str, str]] = [
    {"name": "progress", "description": "Record answers and read mastery, stats and due words."},
    {"name": "sessions", "description": "Open and close learning sessions."},
    {"name": "achievements", "description": "XP, levels, streaks and achievements."},
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_local_store()
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Spaced-repetition progress tracking for vocabulary learners.",
        version=__version__,
        openapi_tags=tags_metadata,
        docs_url=f"{settings.API_V1_STR}/docs",
        redoc_url=f"{settings.API_V1_STR}/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.errors(), "message": "Validation failed"},
        )

    @app.exception_handler(ProgressEngineException)
    async def engine_exception_handler(
        request: Request, exc: ProgressEngineException
    ) -> JSONResponse:
        if isinstance(exc, ValidationError):
            http_exc = handle_validation_error(exc)
        elif isinstance(exc, SessionError):
            http_exc = handle_session_error(exc)
        else:
            http_exc = handle_storage_error(exc)
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})

    app.include_router(api_router, prefix=settings.API_V1_STR)
    return app


app = create_app()
