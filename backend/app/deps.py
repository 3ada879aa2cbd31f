from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends, Request

from backend.app.responses import ApiError
from inbox_digest.config.settings import Settings
from inbox_digest.gmail.client import GmailClient, MessageTransport
from inbox_digest.models import GmailCredentials
from inbox_digest.pipeline.enrichment import BatchEnricher

TransportFactory = Callable[[GmailCredentials], MessageTransport]
EnricherFactory = Callable[[], Optional[BatchEnricher]]

SESSION_USER_KEY = "user"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_transport_factory() -> TransportFactory:
    return GmailClient


def get_enricher_factory(settings: Settings = Depends(get_settings)) -> EnricherFactory:
    # The OpenAI client is only built once a request actually asks for enrichment.
    def build() -> Optional[BatchEnricher]:
        if not settings.enrichment_enabled:
            return None
        return BatchEnricher.from_settings(settings)

    return build


def require_credentials(request: Request) -> GmailCredentials:
    # Credentials travel from the session into the core explicitly, per request.
    user = request.session.get(SESSION_USER_KEY)
    if not user or not user.get("access_token"):
        raise ApiError(401, "Authentication required")
    return GmailCredentials(
        access_token=user["access_token"],
        refresh_token=user.get("refresh_token"),
    )
