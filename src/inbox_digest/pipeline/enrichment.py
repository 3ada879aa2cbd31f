from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from inbox_digest.ai.assistant import GenerationTransport, OpenAIAssistant
from inbox_digest.ai.prompts import build_batch_prompt
from inbox_digest.config.settings import Settings
from inbox_digest.models import (
    EnrichmentFailure,
    EnrichmentResult,
    Failed,
    PlainMessage,
    TimedOut,
)
from inbox_digest.pipeline.waiter import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    await_completion,
)

logger = logging.getLogger(__name__)

NO_RESPONSE_SUMMARY = "No AI response available for this message"
NO_RESPONSE_CONFIDENCE = 0.5
STRUCTURED_DEFAULT_CONFIDENCE = 0.8
UNSTRUCTURED_CONFIDENCE = 0.7

_CODE_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n(.*?)\n?```$", re.DOTALL)


# --- Reply decoding ---


@dataclass(frozen=True)
class StructuredList:
    entries: Tuple[Dict[str, Any], ...]


@dataclass(frozen=True)
class StructuredSingle:
    data: Dict[str, Any]


@dataclass(frozen=True)
class Unstructured:
    text: str


DecodedReply = Union[StructuredList, StructuredSingle, Unstructured]


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match = _CODE_FENCE_RE.match(stripped)
    return match.group(1) if match else stripped


def decode_reply(text: str) -> DecodedReply:
    """
    Classify an assistant reply.

    A JSON array whose entries all carry `messageId` is a per-message list,
    a JSON object applies to every message, anything else is raw text.
    """
    try:
        parsed = json.loads(_strip_code_fence(text))
    except (ValueError, RecursionError):
        # Not JSON, or nested too deeply for the decoder.
        return Unstructured(text)

    if isinstance(parsed, list) and all(
        isinstance(entry, dict) and "messageId" in entry for entry in parsed
    ):
        return StructuredList(entries=tuple(parsed))
    if isinstance(parsed, dict):
        return StructuredSingle(data=parsed)
    return Unstructured(text)


def _optional_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _confidence(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value != value:  # NaN
        return default
    return min(1.0, max(0.0, float(value)))


def result_from_entry(entry: Dict[str, Any], fallback_summary: str = "") -> EnrichmentResult:
    return EnrichmentResult(
        summary=_optional_text(entry.get("summary")) or fallback_summary,
        translated_text=_optional_text(entry.get("translatedContent"))
        or _optional_text(entry.get("translatedText")),
        language=_optional_text(entry.get("detectedLanguage"))
        or _optional_text(entry.get("language")),
        confidence=_confidence(entry.get("confidence"), STRUCTURED_DEFAULT_CONFIDENCE),
    )


def no_response_result() -> EnrichmentResult:
    return EnrichmentResult(summary=NO_RESPONSE_SUMMARY, confidence=NO_RESPONSE_CONFIDENCE)


def find_entry(entries: Sequence[Dict[str, Any]], message_id: str) -> Optional[Dict[str, Any]]:
    # First match wins; duplicates further down are ignored.
    for entry in entries:
        if str(entry.get("messageId")) == message_id:
            return entry
    return None


def correlate(
    messages: Sequence[PlainMessage],
    reply_text: str,
    decoded: Optional[DecodedReply] = None,
) -> List[EnrichmentResult]:
    """Map a decoded reply back onto the input messages: one result per message, in order."""
    if decoded is None:
        decoded = decode_reply(reply_text)

    if isinstance(decoded, StructuredList):
        results: List[EnrichmentResult] = []
        missing: List[str] = []
        for message in messages:
            entry = find_entry(decoded.entries, message.id)
            if entry is not None and _optional_text(entry.get("summary")):
                results.append(result_from_entry(entry))
            else:
                missing.append(message.id)
                results.append(no_response_result())
        if missing:
            logger.warning("No usable AI entry for %d message(s): %s", len(missing), missing)
        return results

    if isinstance(decoded, StructuredSingle):
        shared = result_from_entry(decoded.data, fallback_summary=reply_text)
        return [shared for _ in messages]

    logger.warning("AI reply is not JSON; using raw text as summary")
    raw = EnrichmentResult(summary=decoded.text, confidence=UNSTRUCTURED_CONFIDENCE)
    return [raw for _ in messages]


# --- Batch enricher ---


class BatchEnricher:
    """
    Sends a batch of messages to the assistant in a single conversation and
    maps the reply back per message. Never raises for AI-side problems: a
    failed batch yields one EnrichmentFailure per message.
    """

    def __init__(
        self,
        transport: GenerationTransport,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._transport = transport
        self._timeout = timeout
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[GenerationTransport] = None,
    ) -> "BatchEnricher":
        return cls(
            transport or OpenAIAssistant.from_settings(settings),
            timeout=settings.ai_timeout_seconds,
            poll_interval=settings.poll_interval_seconds,
        )

    def enrich(self, messages: Sequence[PlainMessage]) -> List[EnrichmentResult]:
        if not messages:
            return []

        logger.info("Enriching batch of %d message(s)", len(messages))
        reply, failure_reason = self._request_reply(build_batch_prompt(messages))
        if reply is None:
            logger.warning("AI processing failed for batch of %d: %s", len(messages), failure_reason)
            failure = EnrichmentFailure(reason=failure_reason)
            return [failure for _ in messages]

        return correlate(messages, reply)

    def enrich_in_batches(
        self,
        messages: Sequence[PlainMessage],
        batch_size: int = 0,
        delay: float = 1.0,
    ) -> List[EnrichmentResult]:
        """Run `enrich` over consecutive batches, one at a time, pausing between them."""
        if batch_size <= 0:
            batch_size = max(1, len(messages))

        results: List[EnrichmentResult] = []
        for start in range(0, len(messages), batch_size):
            if start:
                # Fixed pause between batches to respect the provider rate limit.
                self._sleep(delay)
            results.extend(self.enrich(messages[start : start + batch_size]))
        return results

    def _request_reply(self, prompt: str) -> Tuple[Optional[str], str]:
        """Return (reply text, "") on success or (None, reason) on failure."""
        transport = self._transport
        logger.debug("Prompt size: %d chars", len(prompt))
        try:
            conversation_id = transport.create_conversation()
            transport.post_message(conversation_id, prompt)
            job = transport.start_run(conversation_id)

            outcome = await_completion(
                transport,
                job,
                self._timeout,
                poll_interval=self._poll_interval,
                clock=self._clock,
                sleep=self._sleep,
            )
            if isinstance(outcome, Failed):
                return None, outcome.reason
            if isinstance(outcome, TimedOut):
                return None, "AI processing timed out"

            replies = transport.list_replies(conversation_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("AI request failed: %s", exc, exc_info=True)
            return None, f"{type(exc).__name__}: {exc}"

        if not replies:
            return None, "No valid response from AI assistant"
        return replies[0], ""
