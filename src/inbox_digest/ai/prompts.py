"""Combined prompt for enriching a batch of messages in one assistant run."""

from typing import List, Sequence

from inbox_digest.models import PlainMessage

# Per-message body cap so one page of mail stays well inside the context window.
BODY_CHAR_LIMIT = 4_000

MESSAGE_DELIMITER = "-----"

TRUNCATION_MARKER = "[... truncated ...]"

INSTRUCTIONS = """\
Please process each of the following email messages and provide:
1. A summary of the content
2. If the content appears to be in a language other than English, a translation
3. The detected language if it is not English

Respond with a JSON array containing exactly one object per message, with:
- messageId: the Message ID exactly as given below
- summary: a brief summary of the email
- translatedContent: translation if needed (optional)
- detectedLanguage: the detected language code (optional)
- confidence: your confidence level (0-1) in the processing (optional)

Return only the JSON array."""


def format_message_block(message: PlainMessage) -> str:
    body = message.snippet
    lines = [
        f"Message ID: {message.id}",
        f"Subject: {message.subject}",
        f"From: {message.sender}",
        "Content:",
        body[:BODY_CHAR_LIMIT],
    ]
    if len(body) > BODY_CHAR_LIMIT:
        lines.append(TRUNCATION_MARKER)
    return "\n".join(lines)


def build_batch_prompt(messages: Sequence[PlainMessage]) -> str:
    """
    One prompt for the whole batch: instructions, then one labeled block per
    message in input order, separated by a delimiter line.
    """
    blocks: List[str] = [format_message_block(m) for m in messages]
    separator = f"\n{MESSAGE_DELIMITER}\n"
    return f"{INSTRUCTIONS}\n\nMessages ({len(messages)}):\n\n{separator.join(blocks)}\n"
