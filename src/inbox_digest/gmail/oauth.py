from __future__ import annotations

import logging
from typing import Optional, Tuple

from google_auth_oauthlib.flow import Flow

from inbox_digest.config.settings import Settings
from inbox_digest.errors import AuthError
from inbox_digest.gmail.client import SCOPES
from inbox_digest.models import GmailCredentials

logger = logging.getLogger(__name__)

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"


def build_flow(
    settings: Settings,
    *,
    state: Optional[str] = None,
    code_verifier: Optional[str] = None,
) -> Flow:
    settings.require_oauth()
    client_config = {
        "web": {
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "auth_uri": AUTH_URI,
            "token_uri": TOKEN_URI,
            "redirect_uris": [settings.google_redirect_uri],
        }
    }
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        state=state,
        redirect_uri=settings.google_redirect_uri,
        code_verifier=code_verifier,
    )


def authorization_url(settings: Settings) -> Tuple[str, str, Optional[str]]:
    """
    Return (consent URL, state, PKCE code verifier).
    The caller keeps state + verifier (e.g. in the session) for the callback.
    """
    flow = build_flow(settings)
    url, state = flow.authorization_url(
        access_type="offline",
        include_granted_scopes="true",
        prompt="consent",
    )
    return url, state, getattr(flow, "code_verifier", None)


def exchange_code(
    settings: Settings,
    code: str,
    *,
    state: Optional[str] = None,
    code_verifier: Optional[str] = None,
) -> GmailCredentials:
    flow = build_flow(settings, state=state, code_verifier=code_verifier)
    try:
        flow.fetch_token(code=code)
    except Exception as exc:
        raise AuthError(f"Failed to exchange authorization code for tokens: {exc}") from exc

    creds = flow.credentials
    if not creds.token:
        raise AuthError("Token endpoint returned no access token")
    logger.info("OAuth code exchanged (refresh token: %s)", "yes" if creds.refresh_token else "no")
    return GmailCredentials(access_token=creds.token, refresh_token=creds.refresh_token)
