from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from backend.app.deps import (
    EnricherFactory,
    TransportFactory,
    get_enricher_factory,
    get_settings,
    get_transport_factory,
    require_credentials,
)
from backend.app.responses import ApiError, ok
from inbox_digest.config.settings import Settings
from inbox_digest.errors import AuthError, ProviderError
from inbox_digest.models import (
    EnrichedMessage,
    EnrichmentFailure,
    EnrichmentResult,
    GmailCredentials,
    PlainMessage,
)
from inbox_digest.pipeline.enrichment import BatchEnricher
from inbox_digest.pipeline.fetcher import fetch_unread

logger = logging.getLogger(__name__)

router = APIRouter()


class MessageOut(BaseModel):
    id: str
    subject: str
    sender: str
    date: str
    snippet: str

    @classmethod
    def from_message(cls, message: PlainMessage) -> "MessageOut":
        return cls(
            id=message.id,
            subject=message.subject,
            sender=message.sender,
            date=message.date.isoformat(),
            snippet=message.snippet,
        )


class EnrichmentOut(BaseModel):
    summary: str
    translatedText: Optional[str] = None
    language: Optional[str] = None
    confidence: Optional[float] = None
    failed: bool = False

    @classmethod
    def from_result(cls, result: EnrichmentResult) -> "EnrichmentOut":
        return cls(
            summary=result.summary,
            translatedText=result.translated_text,
            language=result.language,
            confidence=result.confidence,
            failed=isinstance(result, EnrichmentFailure),
        )


def _pair(messages: List[PlainMessage], enricher: Optional[BatchEnricher], settings: Settings) -> List[EnrichedMessage]:
    if enricher is None:
        return [EnrichedMessage(message=m) for m in messages]
    results = enricher.enrich_in_batches(
        messages,
        batch_size=settings.batch_size,
        delay=settings.batch_delay_seconds,
    )
    return [EnrichedMessage(message=m, enrichment=r) for m, r in zip(messages, results)]


@router.get("/messages")
def list_messages(
    enrich: bool = False,
    credentials: GmailCredentials = Depends(require_credentials),
    settings: Settings = Depends(get_settings),
    transport_factory: TransportFactory = Depends(get_transport_factory),
    enricher_factory: EnricherFactory = Depends(get_enricher_factory),
) -> dict:
    try:
        messages = fetch_unread(
            credentials,
            settings.page_size,
            transport=transport_factory(credentials),
            max_workers=settings.fetch_workers,
        )
    except AuthError as exc:
        raise ApiError(401, str(exc)) from exc
    except ProviderError as exc:
        logger.error("Error fetching messages: %s", exc)
        raise ApiError(502, str(exc)) from exc

    if not enrich:
        items = [MessageOut.from_message(m).model_dump() for m in messages]
        return ok({"messages": items, "count": len(items)})

    enricher = enricher_factory()
    if enricher is None:
        logger.warning("Enrichment requested but OPENAI_API_KEY/OPENAI_ASSISTANT_ID are not set")

    items = [
        {
            "message": MessageOut.from_message(pair.message).model_dump(),
            "enrichment": (
                EnrichmentOut.from_result(pair.enrichment).model_dump()
                if pair.enrichment is not None
                else None
            ),
        }
        for pair in _pair(messages, enricher, settings)
    ]
    return ok({"messages": items, "count": len(items)})
