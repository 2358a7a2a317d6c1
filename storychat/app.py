"""
FastAPI application entry point for the storychat backend.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storychat.auth import AuthError
from storychat.config import get_settings
from storychat.dependencies import get_storage_client
from storychat.errors import StorychatError
from storychat.routes import router

logger = logging.getLogger(__name__)


def init_storage() -> None:
    """Create the avatar (public) and story (private) buckets if missing."""
    settings = get_settings()
    storage = get_storage_client()
    for bucket, public in (
        (settings.avatars_bucket, True),
        (settings.stories_bucket, False),
    ):
        try:
            if storage.ensure_bucket(bucket, public=public):
                logger.info("Created bucket: %s", bucket)
        except Exception:
            logger.exception("Could not ensure bucket %s", bucket)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_storage()
    yield


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else err.get("msg"))
    return "; ".join(parts) or "Invalid request"


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StorychatError)
    async def handle_storychat_error(request: Request, exc: StorychatError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        return _error(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return _error(400, _validation_message(exc))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("%s %s failed", request.method, request.url.path)
        return _error(500, "Internal server error")


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="storychat", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info("<-- %s %s", request.method, request.url.path)
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "--> %s %s %d %.0fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    register_error_handlers(app)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
