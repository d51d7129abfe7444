from __future__ import annotations

import base64
from datetime import UTC, datetime

import pytest

from flipflow.gmail.parser import GmailParsingError, parse_message_strict, parse_messages


def _encode(body: str) -> str:
    return base64.urlsafe_b64encode(body.encode("utf-8")).decode("utf-8").rstrip("=")


def _sample_message(body: str = "Hello", mime_type: str = "text/plain"):
    return {
        "id": "17890abc",
        "threadId": "thread-1",
        "internalDate": "1700000000000",
        "payload": {
            "mimeType": mime_type,
            "body": {"data": _encode(body)},
            "headers": [
                {"name": "Subject", "value": "Order Shipped: Jordan 1"},
                {"name": "From", "value": "noreply@stockx.com"},
            ],
        },
    }


def test_parse_message_strict_success_text_plain():
    parsed = parse_message_strict(_sample_message())
    assert parsed.source_id == "17890abc"
    assert parsed.subject == "Order Shipped: Jordan 1"
    assert parsed.body_plain_text == "Hello"
    assert parsed.body_html is None
    assert parsed.internal_date == datetime.fromtimestamp(1700000000, tz=UTC)


def test_parse_message_strict_supports_html_body():
    parsed = parse_message_strict(_sample_message("<p>Hello</p>", mime_type="text/html"))
    assert parsed.body_plain_text is None
    assert parsed.body_html == "<p>Hello</p>"


def test_nested_multipart_bodies():
    message = _sample_message()
    message["payload"] = {
        "mimeType": "multipart/mixed",
        "headers": [{"name": "subject", "value": "Order Delivered: Dunk"}],
        "body": {},
        "parts": [
            {
                "mimeType": "multipart/alternative",
                "body": {},
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": _encode("plain text")}},
                    {"mimeType": "text/html", "body": {"data": _encode("<b>html</b>")}},
                ],
            },
            {"mimeType": "image/png", "body": {"attachmentId": "att-1"}},
        ],
    }
    parsed = parse_message_strict(message)
    assert parsed.subject == "Order Delivered: Dunk"
    assert parsed.body_plain_text == "plain text"
    assert parsed.body_html == "<b>html</b>"


@pytest.mark.parametrize("field", ["id", "payload"])
def test_missing_top_level_fields_raise(field):
    message = _sample_message()
    message.pop(field)
    with pytest.raises(GmailParsingError, match="missing field"):
        parse_message_strict(message)


def test_missing_body_raises():
    message = _sample_message()
    message["payload"]["body"] = {}
    with pytest.raises(GmailParsingError, match="message body missing"):
        parse_message_strict(message)


def test_invalid_internal_date_raises():
    message = _sample_message()
    message["internalDate"] = "not-a-number"
    with pytest.raises(GmailParsingError, match="internalDate"):
        parse_message_strict(message)


def test_blank_id_fails_validation():
    message = _sample_message()
    message["id"] = "   "
    with pytest.raises(GmailParsingError, match="raw email validation failed"):
        parse_message_strict(message)


def test_missing_subject_defaults_to_empty():
    message = _sample_message()
    message["payload"]["headers"] = []
    assert parse_message_strict(message).subject == ""


def test_parse_messages_skips_bad_messages():
    bad = _sample_message()
    bad.pop("payload")
    parsed, skipped = parse_messages([_sample_message(), bad])
    assert len(parsed) == 1
    assert skipped == 1
