from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from inbox_digest.models import BodyNode, MessageEnvelope

logger = logging.getLogger(__name__)

TEXT_MIME_TYPES = ("text/plain", "text/html")

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_ANGLE_ADDRESS_RE = re.compile(r"<([^>]+)>")


def decode_base64url(data: str) -> str:
    # Gmail omits padding on some parts.
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def strip_html(content: str) -> str:
    """Drop anything between angle brackets and collapse whitespace."""
    text = _TAG_RE.sub(" ", content)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _decode_text(node: BodyNode) -> Optional[str]:
    # Malformed data counts as "no text" so the search moves on.
    try:
        content = decode_base64url(node.inline_data or "")
    except (binascii.Error, ValueError) as exc:
        logger.warning("Skipping undecodable %s part: %s", node.mime_type, exc)
        return None
    if node.mime_type == "text/html":
        return strip_html(content)
    return content


def extract_body(root: Optional[BodyNode]) -> str:
    """
    Recover a best-effort plain-text body from a (possibly nested) body tree.

    A node carrying data directly wins. Otherwise the first text/plain or
    text/html child of a level is used before descending into grandchildren,
    so a shallow plain-text alternative beats a deeply nested one.
    Parts whose data is not valid base64 are skipped.
    Returns "" when nothing text-like is found.
    """
    if root is None:
        return ""

    if root.inline_data:
        content = _decode_text(root)
        if content is not None:
            return content

    return _extract_from_children(root.children)


def _extract_from_children(children: Sequence[BodyNode]) -> str:
    # Pass 1: text parts at this level only.
    for child in children:
        if child.mime_type in TEXT_MIME_TYPES and child.inline_data:
            content = _decode_text(child)
            if content is not None:
                return content

    # Pass 2: depth-first into nested multiparts, left to right.
    for child in children:
        if child.children:
            found = _extract_from_children(child.children)
            if found:
                return found

    return ""


def extract_sender(from_header: str) -> str:
    """
    Pull the bare address out of "Name <mail@domain>".
    Not validated; treat the result as display text.
    """
    match = _ANGLE_ADDRESS_RE.search(from_header)
    if match:
        return match.group(1)
    return from_header.strip()


def get_header(headers: Iterable[Tuple[str, str]], name: str) -> str:
    wanted = name.lower()
    for header_name, value in headers:
        if header_name.lower() == wanted:
            return value
    return ""


def node_from_payload(part: Dict[str, Any]) -> BodyNode:
    body = part.get("body") or {}
    return BodyNode(
        mime_type=str(part.get("mimeType") or ""),
        inline_data=body.get("data") or None,
        children=tuple(node_from_payload(child) for child in part.get("parts") or []),
    )


def envelope_from_resource(resource: Dict[str, Any]) -> MessageEnvelope:
    """Map a users.messages.get(format="full") resource to a MessageEnvelope."""
    payload = resource.get("payload") or {}
    headers = tuple(
        (str(h.get("name") or ""), str(h.get("value") or ""))
        for h in payload.get("headers", []) or []
    )

    internal_date = resource.get("internalDate")
    return MessageEnvelope(
        id=str(resource["id"]),
        headers=headers,
        body=node_from_payload(payload),
        snippet=str(resource.get("snippet") or ""),
        internal_date_ms=int(internal_date) if internal_date else None,
    )
