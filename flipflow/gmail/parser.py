"""
Gmail adapter: converts Gmail API ``users.messages.get`` payloads into RawEmail.

Deterministic and side-effect free apart from telemetry. Parse failures are
reported without exposing message content (ids are hashed).
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterable
from datetime import UTC, datetime
from hashlib import sha256
from typing import Any

from pydantic import ValidationError

from flipflow.observability.telemetry import counter, log_event
from flipflow.orders.models import RawEmail

_TEXT_PLAIN = "text/plain"
_TEXT_HTML = "text/html"


class GmailParsingError(ValueError):
    """Raised when Gmail payload cannot be converted into a RawEmail."""


def _hash_id(value: Any) -> str:
    return sha256(str(value or "").encode()).hexdigest()[:12]


def _header_lookup(headers: Iterable[dict[str, str]], name: str) -> str | None:
    name_lower = name.lower()
    for header in headers:
        if header.get("name", "").lower() == name_lower:
            return header.get("value")
    return None


def _decode_base64(data: str) -> str:
    """Decode Gmail's URL-safe base64 payloads."""
    padding = "=" * (-len(data) % 4)
    try:
        decoded = base64.urlsafe_b64decode((data + padding).encode("utf-8"))
        return decoded.decode("utf-8", errors="replace")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise GmailParsingError("failed to decode message body") from exc


def _extract_body(payload: dict[str, Any]) -> dict[str, str | None]:
    """
    Extract the first text/plain and first text/html bodies.

    Walks nested multiparts depth-first (multipart/alternative inside
    multipart/mixed is the common marketplace layout).
    """
    bodies: dict[str, str | None] = {"text": None, "html": None}
    stack = [payload]

    while stack:
        part = stack.pop(0)
        mime_type = part.get("mimeType", "")
        data = (part.get("body") or {}).get("data")

        if data and mime_type == _TEXT_PLAIN and bodies["text"] is None:
            bodies["text"] = _decode_base64(data)
        elif data and mime_type == _TEXT_HTML and bodies["html"] is None:
            bodies["html"] = _decode_base64(data)

        if bodies["text"] is not None and bodies["html"] is not None:
            break

        stack[0:0] = part.get("parts") or []

    return bodies


def _internal_date(value: Any) -> datetime:
    """Gmail internalDate is epoch milliseconds (as a string)."""
    try:
        millis = int(value)
    except (TypeError, ValueError) as exc:
        raise GmailParsingError("internalDate missing or invalid") from exc
    return datetime.fromtimestamp(millis / 1000, tz=UTC)


def parse_message(message: dict[str, Any]) -> RawEmail:
    """
    Convert a Gmail API message into `RawEmail`.

    The returned object is fully validated; `GmailParsingError` is raised on failure.
    """
    if not isinstance(message, dict):
        raise GmailParsingError("message must be a dict")

    try:
        message_id = message["id"]
        payload = message["payload"]
    except KeyError as exc:
        raise GmailParsingError(f"missing field: {exc}") from exc

    headers = payload.get("headers") or []
    subject = _header_lookup(headers, "Subject") or ""

    bodies = _extract_body(payload)
    if bodies["text"] is None and bodies["html"] is None:
        raise GmailParsingError("message body missing")

    try:
        raw_email = RawEmail.model_validate(
            {
                "source_id": message_id,
                "subject": subject,
                "body_plain_text": bodies["text"],
                "body_html": bodies["html"],
                "internal_date": _internal_date(message.get("internalDate")),
            }
        )
    except ValidationError as exc:
        counter("schema_validation_failures")
        log_event(
            "gmail.raw_email.validation_failed",
            errors=exc.errors(),
            message_id_hash=_hash_id(message_id),
        )
        raise GmailParsingError("raw email validation failed") from exc

    log_event("gmail.parsed", message_id_hash=_hash_id(message_id))
    counter("gmail.parsed.count")
    return raw_email


def parse_message_strict(message: dict[str, Any]) -> RawEmail:
    """
    Wrapper that emits observability signals on failure.
    """
    try:
        return parse_message(message)
    except GmailParsingError as exc:
        log_event(
            "gmail.parse_failed",
            message_id_hash=_hash_id(message.get("id") if isinstance(message, dict) else None),
            error=str(exc),
        )
        counter("gmail.parse_failed.count")
        raise


def parse_messages(messages: Iterable[dict[str, Any]]) -> tuple[list[RawEmail], int]:
    """
    Parse a page of Gmail messages, skipping (and counting) unparseable ones.

    Returns:
        (parsed emails, number of messages skipped)
    """
    parsed: list[RawEmail] = []
    skipped = 0
    for message in messages:
        try:
            parsed.append(parse_message_strict(message))
        except GmailParsingError:
            skipped += 1
    return parsed, skipped
