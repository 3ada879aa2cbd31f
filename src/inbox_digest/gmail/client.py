from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from inbox_digest.errors import (
    ForbiddenError,
    NotFoundError,
    ProviderError,
    RateLimitedError,
    UnauthorizedError,
)
from inbox_digest.models import GmailCredentials, MessageEnvelope
from inbox_digest.parsing.parser import envelope_from_resource

logger = logging.getLogger(__name__)

# Readonly is all the digest needs.
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]

UNREAD_QUERY = "is:unread"


class MessageTransport(ABC):
    @abstractmethod
    def list_unread_ids(self, limit: int) -> List[str]:
        """Return up to `limit` unread message ids, newest first as the provider orders them."""
        ...

    @abstractmethod
    def get_envelope(self, message_id: str) -> MessageEnvelope:
        ...

    @abstractmethod
    def get_profile_email(self) -> str:
        ...


def translate_http_error(exc: HttpError) -> Exception:
    """Map a Google API HttpError onto the provider error taxonomy."""
    status = int(getattr(exc.resp, "status", 0) or 0)
    message = f"API request failed with status {status}"
    try:
        payload = json.loads(exc.content.decode("utf-8"))
        message = payload.get("error", {}).get("message") or message
    except (AttributeError, UnicodeDecodeError, ValueError):
        # Keep the generic message when the body is not Google's JSON error shape.
        pass

    if status == 401:
        return UnauthorizedError()
    if status == 403:
        return ForbiddenError()
    if status == 404:
        return NotFoundError()
    if status == 429:
        return RateLimitedError()
    return ProviderError(message, status=status or None)


class GmailClient(MessageTransport):
    """
    Gmail API access for a single user's credentials.

    The discovery service object (and its httplib2 connection) is not
    thread-safe, so each thread builds its own.
    """

    def __init__(self, credentials: GmailCredentials, user_id: str = "me"):
        self._creds = Credentials(
            token=credentials.access_token,
            refresh_token=credentials.refresh_token,
            scopes=SCOPES,
        )
        self._user_id = user_id
        self._local = threading.local()

    @property
    def service(self):
        service = getattr(self._local, "service", None)
        if service is None:
            service = build("gmail", "v1", credentials=self._creds, cache_discovery=False)
            self._local.service = service
        return service

    def _execute(self, request) -> Dict[str, Any]:
        try:
            return request.execute()
        except HttpError as exc:
            raise translate_http_error(exc) from exc

    def list_unread_ids(self, limit: int) -> List[str]:
        resp = self._execute(
            self.service.users()
            .messages()
            .list(userId=self._user_id, q=UNREAD_QUERY, maxResults=limit)
        )
        msgs = resp.get("messages", []) or []
        return [m["id"] for m in msgs][:limit]

    def get_envelope(self, message_id: str) -> MessageEnvelope:
        logger.debug("Fetching message %s", message_id)
        resource = self._execute(
            self.service.users()
            .messages()
            .get(userId=self._user_id, id=message_id, format="full")
        )
        return envelope_from_resource(resource)

    def get_profile_email(self) -> str:
        profile = self._execute(self.service.users().getProfile(userId=self._user_id))
        return str(profile.get("emailAddress") or "")
