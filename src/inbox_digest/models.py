from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class BodyNode:
    mime_type: str
    # base64url payload as delivered by the provider (may lack padding).
    inline_data: Optional[str] = None
    children: Tuple["BodyNode", ...] = ()


@dataclass(frozen=True)
class MessageEnvelope:
    id: str
    # Ordered (name, value) pairs; lookups are case-insensitive, first match wins.
    headers: Tuple[Tuple[str, str], ...]
    body: BodyNode
    snippet: str = ""
    internal_date_ms: Optional[int] = None


@dataclass(frozen=True)
class PlainMessage:
    id: str
    subject: str
    sender: str
    date: datetime
    snippet: str


@dataclass(frozen=True)
class EnrichmentResult:
    summary: str
    translated_text: Optional[str] = None
    language: Optional[str] = None
    confidence: Optional[float] = None


@dataclass(frozen=True)
class EnrichmentFailure(EnrichmentResult):
    """Per-message degradation value; returned in place of a result, never raised."""

    summary: str = "AI processing failed"
    confidence: Optional[float] = 0.0
    reason: str = ""


@dataclass(frozen=True)
class GmailCredentials:
    access_token: str
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class JobHandle:
    conversation_id: str
    run_id: str


@dataclass(frozen=True)
class RunStatus:
    status: str
    error: Optional[str] = None


# --- Completion outcomes (terminal) ---


@dataclass(frozen=True)
class Completed:
    pass


@dataclass(frozen=True)
class Failed:
    reason: str


@dataclass(frozen=True)
class TimedOut:
    pass


CompletionOutcome = Union[Completed, Failed, TimedOut]


@dataclass(frozen=True)
class EnrichedMessage:
    message: PlainMessage
    enrichment: Optional[EnrichmentResult] = None
