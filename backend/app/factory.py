from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from backend.app.api.auth import router as auth_router
from backend.app.api.messages import router as messages_router
from backend.app.responses import ApiError, api_error_handler, failure, unhandled_error_handler
from inbox_digest.config.settings import Settings, load_settings
from inbox_digest.errors import ConfigError

SESSION_MAX_AGE_SECONDS = 24 * 60 * 60


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    if not settings.session_secret:
        raise ConfigError("Missing required environment variable: SESSION_SECRET")

    app = FastAPI(title="inbox-digest API")
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        max_age=SESSION_MAX_AGE_SECONDS,
        https_only=settings.production,
        same_site="lax",
    )

    app.include_router(auth_router)
    app.include_router(messages_router, prefix="/api")
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return failure(404, "Endpoint not found")
        return failure(exc.status_code, str(exc.detail))

    @app.get("/health")
    def health() -> dict:
        return {
            "success": True,
            "message": "inbox-digest server is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app
