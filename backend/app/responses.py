from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised by routes; rendered as {"success": false, "error": ...}."""

    def __init__(self, status_code: int, error: str) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error


def ok(data: Optional[Any] = None, **extra: Any) -> dict:
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


async def api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return failure(exc.status_code, exc.error)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    return failure(500, "Internal server error")
