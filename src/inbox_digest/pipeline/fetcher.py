from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import List, Optional

from inbox_digest.errors import AuthError, InboxDigestError, ProviderError
from inbox_digest.gmail.client import GmailClient, MessageTransport
from inbox_digest.models import GmailCredentials, MessageEnvelope, PlainMessage
from inbox_digest.parsing.parser import extract_body, extract_sender, get_header

logger = logging.getLogger(__name__)

NO_SUBJECT = "(No Subject)"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_message_date(date_header: str, internal_date_ms: Optional[int] = None) -> datetime:
    """
    Resolve a message timestamp (always timezone-aware).
    Date header first, then Gmail's internalDate, then the epoch.
    """
    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
        except (TypeError, ValueError, IndexError):
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed

    if internal_date_ms is not None:
        return datetime.fromtimestamp(internal_date_ms / 1000, tz=timezone.utc)

    return EPOCH


def build_message(envelope: MessageEnvelope) -> PlainMessage:
    headers = envelope.headers
    return PlainMessage(
        id=envelope.id,
        subject=get_header(headers, "Subject") or NO_SUBJECT,
        sender=extract_sender(get_header(headers, "From")),
        date=parse_message_date(get_header(headers, "Date"), envelope.internal_date_ms),
        snippet=extract_body(envelope.body) or envelope.snippet or "",
    )


def _fetch_envelope(transport: MessageTransport, message_id: str) -> MessageEnvelope:
    try:
        return transport.get_envelope(message_id)
    except InboxDigestError:
        raise
    except Exception as exc:
        raise ProviderError(f"Failed to fetch message {message_id}: {exc}") from exc


def fetch_unread(
    credentials: Optional[GmailCredentials],
    limit: int,
    *,
    transport: Optional[MessageTransport] = None,
    max_workers: int = 8,
) -> List[PlainMessage]:
    """
    Fetch up to `limit` unread messages, newest first.

    All-or-nothing: one failed envelope fetch aborts the whole call.

    Raises:
        AuthError: credentials missing or rejected by the provider.
        ProviderError: any other provider/transport failure.
    """
    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")
    if credentials is None or not credentials.access_token:
        raise AuthError("No access token available")

    if transport is None:
        transport = GmailClient(credentials)

    try:
        message_ids = transport.list_unread_ids(limit)
    except InboxDigestError:
        raise
    except Exception as exc:
        raise ProviderError(f"Failed to list unread messages: {exc}") from exc

    logger.info("Found %d unread messages", len(message_ids))
    if not message_ids:
        return []

    workers = max(1, min(max_workers, len(message_ids)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_fetch_envelope, transport, mid) for mid in message_ids]
        try:
            envelopes = [f.result() for f in futures]
        except BaseException:
            for f in futures:
                f.cancel()
            raise

    messages = [build_message(envelope) for envelope in envelopes]
    # sorted() is stable with reverse=True, so equal dates keep listing order.
    messages = sorted(messages, key=lambda m: m.date, reverse=True)
    logger.info("Built %d messages", len(messages))
    return messages
