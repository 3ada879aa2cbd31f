from __future__ import annotations

import json

from inbox_digest.models import EnrichmentFailure, EnrichmentResult, RunStatus
from inbox_digest.pipeline.enrichment import (
    NO_RESPONSE_SUMMARY,
    BatchEnricher,
    StructuredList,
    StructuredSingle,
    Unstructured,
    correlate,
    decode_reply,
)
from tests.helpers import FakeAssistant, FakeClock, make_message


def _enricher(assistant: FakeAssistant, clock: FakeClock | None = None, timeout: float = 30.0) -> BatchEnricher:
    clock = clock or FakeClock()
    return BatchEnricher(assistant, timeout=timeout, poll_interval=1.0, clock=clock, sleep=clock.sleep)


# --- decode_reply ---


def test_decode_reply_recognizes_per_message_list() -> None:
    decoded = decode_reply('[{"messageId": "m1", "summary": "a"}]')
    assert isinstance(decoded, StructuredList)
    assert decoded.entries[0]["messageId"] == "m1"


def test_decode_reply_recognizes_single_object() -> None:
    assert isinstance(decode_reply('{"summary": "ok"}'), StructuredSingle)


def test_decode_reply_strips_markdown_fence() -> None:
    decoded = decode_reply('```json\n[{"messageId": "m1", "summary": "a"}]\n```')
    assert isinstance(decoded, StructuredList)


def test_decode_reply_falls_back_to_raw_text() -> None:
    assert decode_reply("Just a plain summary.") == Unstructured("Just a plain summary.")
    # Valid JSON, but neither an object nor a list of id-tagged entries.
    assert isinstance(decode_reply('"a string"'), Unstructured)
    assert isinstance(decode_reply('[{"summary": "no id"}]'), Unstructured)


# --- enrich ---


def test_decode_reply_deeply_nested_json_is_raw_text() -> None:
    text = "[" * 100000 + "]" * 100000
    assert decode_reply(text) == Unstructured(text)


def test_deeply_nested_reply_still_yields_one_result_per_message() -> None:
    messages = [make_message("m1"), make_message("m2")]
    reply = "[" * 100000 + "]" * 100000

    results = _enricher(FakeAssistant(replies=[reply])).enrich(messages)

    assert len(results) == 2
    assert all(r.summary == reply for r in results)


def test_empty_input_does_not_call_the_assistant() -> None:
    assistant = FakeAssistant(replies=["[]"])

    assert _enricher(assistant).enrich([]) == []
    assert assistant.conversations == []


def test_missing_ids_degrade_to_no_response() -> None:
    reply = json.dumps(
        [
            {"messageId": "m1", "summary": "First", "confidence": 0.95},
            {"messageId": "m3", "summary": "Third", "translatedContent": "Drei", "detectedLanguage": "de"},
        ]
    )
    messages = [make_message("m1"), make_message("m2"), make_message("m3")]

    results = _enricher(FakeAssistant(replies=[reply])).enrich(messages)

    assert results == [
        EnrichmentResult(summary="First", confidence=0.95),
        EnrichmentResult(summary=NO_RESPONSE_SUMMARY, confidence=0.5),
        EnrichmentResult(summary="Third", translated_text="Drei", language="de", confidence=0.8),
    ]


def test_single_object_reply_applies_to_every_message() -> None:
    results = _enricher(FakeAssistant(replies=['{"summary":"ok","confidence":0.9}'])).enrich(
        [make_message("m1")]
    )
    assert results == [EnrichmentResult(summary="ok", confidence=0.9)]


def test_unparseable_reply_becomes_summary_for_every_message() -> None:
    messages = [make_message("m1"), make_message("m2")]

    results = _enricher(FakeAssistant(replies=["These are two invoices."])).enrich(messages)

    assert results == [EnrichmentResult(summary="These are two invoices.", confidence=0.7)] * 2


def test_one_prompt_per_batch_with_every_identifier() -> None:
    assistant = FakeAssistant(replies=["plain"])
    messages = [make_message(f"id-{i}") for i in range(4)]

    _enricher(assistant).enrich(messages)

    assert len(assistant.conversations) == 1
    assert len(assistant.posted) == 1
    for message in messages:
        assert f"Message ID: {message.id}" in assistant.posted[0]


def test_failed_run_yields_failure_per_message() -> None:
    assistant = FakeAssistant(statuses=[RunStatus("failed", error="rate_limit_exceeded")])
    messages = [make_message("m1"), make_message("m2")]

    results = _enricher(assistant).enrich(messages)

    assert len(results) == 2
    for result in results:
        assert isinstance(result, EnrichmentFailure)
        assert result.summary == "AI processing failed"
        assert result.confidence == 0
        assert "rate_limit_exceeded" in result.reason


def test_timed_out_run_yields_failure_per_message() -> None:
    assistant = FakeAssistant(statuses=[RunStatus("in_progress")], replies=["late"])

    results = _enricher(assistant, timeout=3.0).enrich([make_message("m1")])

    assert isinstance(results[0], EnrichmentFailure)
    assert results[0].reason == "AI processing timed out"


def test_transport_exception_is_contained() -> None:
    assistant = FakeAssistant(error=RuntimeError("connection refused"))

    results = _enricher(assistant).enrich([make_message("m1"), make_message("m2")])

    assert [type(r) for r in results] == [EnrichmentFailure, EnrichmentFailure]
    assert "connection refused" in results[0].reason


def test_completed_run_without_reply_is_a_failure() -> None:
    results = _enricher(FakeAssistant(replies=[])).enrich([make_message("m1")])
    assert isinstance(results[0], EnrichmentFailure)
    assert results[0].reason == "No valid response from AI assistant"


def test_newest_reply_is_used() -> None:
    assistant = FakeAssistant(replies=['{"summary": "newest"}', '{"summary": "older"}'])
    assert _enricher(assistant).enrich([make_message("m1")])[0].summary == "newest"


# --- correlate ---


def test_duplicate_ids_first_match_wins() -> None:
    reply = json.dumps(
        [
            {"messageId": "m1", "summary": "first"},
            {"messageId": "m1", "summary": "second"},
        ]
    )
    assert correlate([make_message("m1")], reply)[0].summary == "first"


def test_entry_with_empty_summary_counts_as_missing() -> None:
    reply = json.dumps([{"messageId": "m1", "summary": ""}])
    assert correlate([make_message("m1")], reply)[0].summary == NO_RESPONSE_SUMMARY


def test_confidence_is_defaulted_and_clamped() -> None:
    reply = json.dumps(
        [
            {"messageId": "a", "summary": "x", "confidence": "high"},
            {"messageId": "b", "summary": "x", "confidence": 7},
            {"messageId": "c", "summary": "x", "confidence": 0},
        ]
    )
    results = correlate([make_message("a"), make_message("b"), make_message("c")], reply)
    assert [r.confidence for r in results] == [0.8, 1.0, 0.0]


def test_single_object_without_summary_uses_reply_text() -> None:
    reply = '{"detectedLanguage": "fr"}'
    result = correlate([make_message("m1")], reply)[0]
    assert result.summary == reply
    assert result.language == "fr"


def test_output_length_matches_input_for_every_reply_shape() -> None:
    messages = [make_message(f"m{i}") for i in range(5)]
    for reply in ["[]", "{}", "nonsense", '[{"messageId": "zzz", "summary": "?"}]']:
        assert len(correlate(messages, reply)) == len(messages)


# --- batching ---


def test_enrich_in_batches_runs_sequentially_with_delay_between() -> None:
    clock = FakeClock()
    assistant = FakeAssistant(replies=["summary text"])
    messages = [make_message(f"m{i}") for i in range(5)]

    results = _enricher(assistant, clock).enrich_in_batches(messages, batch_size=2, delay=1.5)

    assert len(results) == 5
    assert len(assistant.conversations) == 3
    # Two pauses between three batches; no status polling sleeps since runs complete at once.
    assert clock.sleeps == [1.5, 1.5]


def test_enrich_in_batches_zero_size_means_single_batch() -> None:
    assistant = FakeAssistant(replies=["ok"])
    messages = [make_message(f"m{i}") for i in range(3)]

    _enricher(assistant).enrich_in_batches(messages, batch_size=0)

    assert len(assistant.conversations) == 1


def test_enrich_in_batches_empty_input() -> None:
    assistant = FakeAssistant(replies=["ok"])
    assert _enricher(assistant).enrich_in_batches([], batch_size=3) == []
    assert assistant.conversations == []
