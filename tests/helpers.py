from __future__ import annotations

import base64
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from inbox_digest.ai.assistant import GenerationTransport
from inbox_digest.gmail.client import MessageTransport
from inbox_digest.models import (
    BodyNode,
    JobHandle,
    MessageEnvelope,
    PlainMessage,
    RunStatus,
)


def b64url(text: str) -> str:
    # Gmail style: url-safe alphabet, no padding.
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def text_part(text: str, mime_type: str = "text/plain") -> BodyNode:
    return BodyNode(mime_type=mime_type, inline_data=b64url(text))


def multipart(*children: BodyNode, mime_type: str = "multipart/mixed") -> BodyNode:
    return BodyNode(mime_type=mime_type, children=tuple(children))


def make_envelope(
    message_id: str,
    *,
    subject: Optional[str] = "Hello",
    sender: str = "Jane Doe <jane@example.com>",
    date: Optional[str] = "Mon, 06 Jan 2025 10:00:00 +0000",
    body: Optional[BodyNode] = None,
    snippet: str = "",
    internal_date_ms: Optional[int] = None,
) -> MessageEnvelope:
    headers = [("From", sender)]
    if subject is not None:
        headers.append(("Subject", subject))
    if date is not None:
        headers.append(("Date", date))
    return MessageEnvelope(
        id=message_id,
        headers=tuple(headers),
        body=body or text_part(f"body of {message_id}"),
        snippet=snippet,
        internal_date_ms=internal_date_ms,
    )


def make_message(message_id: str, **kwargs: object) -> PlainMessage:
    defaults: Dict[str, object] = dict(
        id=message_id,
        subject=f"Subject {message_id}",
        sender="sender@example.com",
        date=datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc),
        snippet=f"Body of {message_id}",
    )
    return PlainMessage(**{**defaults, **kwargs})  # type: ignore[arg-type]


class FakeMessageTransport(MessageTransport):
    def __init__(
        self,
        envelopes: Iterable[MessageEnvelope] = (),
        *,
        failures: Optional[Dict[str, Exception]] = None,
        list_error: Optional[Exception] = None,
        profile_email: str = "me@example.com",
    ) -> None:
        self.envelopes = {e.id: e for e in envelopes}
        self.order = list(self.envelopes)
        self.failures = failures or {}
        self.list_error = list_error
        self.profile_email = profile_email
        self.list_calls: List[int] = []
        self.fetched: List[str] = []

    def list_unread_ids(self, limit: int) -> List[str]:
        self.list_calls.append(limit)
        if self.list_error is not None:
            raise self.list_error
        return self.order[:limit]

    def get_envelope(self, message_id: str) -> MessageEnvelope:
        self.fetched.append(message_id)
        if message_id in self.failures:
            raise self.failures[message_id]
        return self.envelopes[message_id]

    def get_profile_email(self) -> str:
        return self.profile_email


class FakeAssistant(GenerationTransport):
    """Scripted assistant: run statuses are returned in order, the last one repeats."""

    def __init__(
        self,
        *,
        statuses: Sequence[RunStatus] = (RunStatus("completed"),),
        replies: Sequence[str] = (),
        error: Optional[Exception] = None,
    ) -> None:
        self.statuses = list(statuses)
        self.replies = list(replies)
        self.error = error
        self.conversations: List[str] = []
        self.posted: List[str] = []
        self.status_calls = 0

    def create_conversation(self) -> str:
        if self.error is not None:
            raise self.error
        conversation_id = f"thread_{len(self.conversations) + 1}"
        self.conversations.append(conversation_id)
        return conversation_id

    def post_message(self, conversation_id: str, text: str) -> None:
        self.posted.append(text)

    def start_run(self, conversation_id: str) -> JobHandle:
        return JobHandle(conversation_id=conversation_id, run_id=f"run_{conversation_id}")

    def get_run_status(self, job: JobHandle) -> RunStatus:
        index = min(self.status_calls, len(self.statuses) - 1)
        self.status_calls += 1
        return self.statuses[index]

    def list_replies(self, conversation_id: str) -> List[str]:
        return list(self.replies)


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
