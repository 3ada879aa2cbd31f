import argparse
import os
import sys

from inbox_digest.config.logs import configure_logging
from inbox_digest.config.settings import load_settings
from inbox_digest.errors import InboxDigestError
from inbox_digest.models import GmailCredentials
from inbox_digest.pipeline.enrichment import BatchEnricher
from inbox_digest.pipeline.fetcher import fetch_unread


def main() -> int:
    parser = argparse.ArgumentParser(description="Print unread Gmail messages, optionally with AI summaries.")
    parser.add_argument("--limit", type=int, default=None, help="Number of unread messages (default: page size)")
    parser.add_argument("--enrich", action="store_true", help="Summarize/translate with the OpenAI assistant")
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(settings.log_level)
    if args.enrich and not settings.enrichment_enabled:
        print("[error] --enrich needs OPENAI_API_KEY and OPENAI_ASSISTANT_ID", file=sys.stderr)
        return 2

    # Access token from an OAuth playground / earlier login; refresh is out of scope here.
    token = os.getenv("GMAIL_ACCESS_TOKEN", "")
    credentials = GmailCredentials(access_token=token, refresh_token=os.getenv("GMAIL_REFRESH_TOKEN"))

    try:
        messages = fetch_unread(
            credentials,
            args.limit or settings.page_size,
            max_workers=settings.fetch_workers,
        )
    except InboxDigestError as exc:
        print(f"[error] {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1

    enrichments = [None] * len(messages)
    if args.enrich:
        enricher = BatchEnricher.from_settings(settings)
        enrichments = enricher.enrich_in_batches(
            messages,
            batch_size=settings.batch_size,
            delay=settings.batch_delay_seconds,
        )

    for message, enrichment in zip(messages, enrichments):
        print("----")
        print(f"Date:    {message.date.isoformat()}")
        print(f"From:    {message.sender}")
        print(f"Subject: {message.subject}")
        if enrichment is not None:
            print(f"Summary: {enrichment.summary} (confidence={enrichment.confidence})")
            if enrichment.translated_text:
                print(f"Translation [{enrichment.language or '?'}]: {enrichment.translated_text}")
        else:
            print(message.snippet[:200])

    print(f"[run] {len(messages)} unread message(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
