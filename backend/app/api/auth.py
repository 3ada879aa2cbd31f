from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from backend.app.deps import (
    SESSION_USER_KEY,
    TransportFactory,
    get_settings,
    get_transport_factory,
)
from backend.app.responses import ApiError, ok
from inbox_digest.config.settings import Settings
from inbox_digest.errors import ConfigError
from inbox_digest.gmail import oauth

logger = logging.getLogger(__name__)

router = APIRouter()

_STATE_KEY = "oauth_state"
_VERIFIER_KEY = "oauth_code_verifier"


@router.get("/auth")
def start_auth(request: Request, settings: Settings = Depends(get_settings)) -> RedirectResponse:
    try:
        auth_url, state, code_verifier = oauth.authorization_url(settings)
    except ConfigError as exc:
        logger.error("Cannot start OAuth: %s", exc)
        raise ApiError(500, "Failed to initiate authentication") from exc

    # Keep state + PKCE verifier so the callback can resume this flow.
    request.session[_STATE_KEY] = state
    if code_verifier:
        request.session[_VERIFIER_KEY] = code_verifier
    return RedirectResponse(auth_url)


@router.get("/auth/callback")
def auth_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    transport_factory: TransportFactory = Depends(get_transport_factory),
) -> RedirectResponse:
    if error:
        raise ApiError(400, f"Authentication failed: {error}")
    if not code:
        raise ApiError(400, "Missing authorization code")

    expected_state = request.session.pop(_STATE_KEY, None)
    code_verifier = request.session.pop(_VERIFIER_KEY, None)
    if expected_state and state != expected_state:
        raise ApiError(400, "Invalid OAuth state")

    try:
        credentials = oauth.exchange_code(
            settings,
            code,
            state=state,
            code_verifier=code_verifier,
        )
        email = transport_factory(credentials).get_profile_email()
    except Exception as exc:
        logger.error("Error in auth callback: %s", exc, exc_info=True)
        raise ApiError(500, "Authentication failed") from exc

    request.session[SESSION_USER_KEY] = {
        "email": email,
        "access_token": credentials.access_token,
        "refresh_token": credentials.refresh_token,
    }
    logger.info("OAuth completed for %s", email)
    return RedirectResponse(f"{settings.client_url}?auth=success")


@router.get("/auth/status")
def auth_status(request: Request) -> dict:
    user = request.session.get(SESSION_USER_KEY)
    return ok(
        {
            "authenticated": bool(user),
            "email": user.get("email") if user else None,
        }
    )


@router.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return ok({"message": "Logged out successfully"})
