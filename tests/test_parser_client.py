"""Tests for the expense parsing client."""

import asyncio
import base64
import json

import httpx
import pytest

from expense_tracker.config import ParserSettings
from expense_tracker.models.expense import AudioInput, ParseContext, TextInput
from expense_tracker.services.parser import (
    ParseRequestClient,
    TransportError,
    build_payload,
)


ENDPOINT = "https://parser.test/webhook"


def make_client(handler) -> ParseRequestClient:
    settings = ParserSettings(endpoint_url=ENDPOINT)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ParseRequestClient(settings=settings, http_client=http_client)


def context() -> ParseContext:
    return ParseContext(owner_id="user-1")


class TestBuildPayload:

    def test_text_payload(self):
        payload = asyncio.run(build_payload(TextInput(text="coffee 120"), context()))
        assert payload == {
            "text": "coffee 120",
            "user_id": "user-1",
            "source": "bolt",
            "device": "web",
            "meta": {"timezone": "Asia/Kolkata"},
        }

    def test_audio_payload(self):
        clip = b"\x1a\x45\xdf\xa3voice"
        payload = asyncio.run(build_payload(AudioInput(audio=clip), context()))
        assert base64.b64decode(payload["audio"]) == clip
        assert payload["audio_format"] == "webm"
        assert "text" not in payload
        assert payload["user_id"] == "user-1"

    def test_exactly_one_of_text_or_audio(self):
        for parse_input in (TextInput(text="rent 12000"), AudioInput(audio=b"\x00")):
            payload = asyncio.run(build_payload(parse_input, context()))
            assert ("text" in payload) != ("audio" in payload)


class TestBuildContext:

    def test_context_uses_settings(self):
        settings = ParserSettings(
            endpoint_url=ENDPOINT,
            source_tag="cli",
            device_tag="desktop",
            timezone="Europe/Berlin",
        )
        ctx = ParseRequestClient(settings=settings).build_context("user-9")
        assert ctx.owner_id == "user-9"
        assert ctx.source_tag == "cli"
        assert ctx.device_tag == "desktop"
        assert ctx.timezone == "Europe/Berlin"


class TestSubmit:

    def test_successful_parse(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "ok": True,
                "expense_id": "exp-1",
                "ai_confidence": 0.92,
                "parsed": {"amount": 120, "currency": "INR", "category": "Food"},
            })

        client = make_client(handler)
        response = asyncio.run(client.submit(TextInput(text="coffee 120"), context()))

        assert seen["url"] == ENDPOINT
        assert seen["body"]["text"] == "coffee 120"
        assert response.ok is True
        assert response.confidence == 0.92
        assert response.parsed.category == "Food"

    def test_bad_field_values_do_not_fail_the_response(self):
        def handler(request):
            return httpx.Response(200, json={
                "ok": True,
                "parsed": {"amount": "lots", "date": "someday", "category": "Food"},
            })

        response = asyncio.run(make_client(handler).submit(TextInput(text="x"), context()))
        assert response.parsed.amount is None
        assert response.parsed.date is None
        assert response.parsed.category == "Food"

    def test_server_error(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(client.submit(TextInput(text="coffee 120"), context()))
        assert exc_info.value.status_code == 500

    def test_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError):
            asyncio.run(make_client(handler).submit(TextInput(text="x"), context()))

    def test_body_is_not_json(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(TransportError, match="malformed"):
            asyncio.run(client.submit(TextInput(text="x"), context()))

    def test_body_is_not_an_object(self):
        client = make_client(lambda request: httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(TransportError, match="malformed"):
            asyncio.run(client.submit(TextInput(text="x"), context()))

    def test_missing_ok_flag(self):
        client = make_client(lambda request: httpx.Response(200, json={"parsed": {}}))
        with pytest.raises(TransportError, match="malformed"):
            asyncio.run(client.submit(TextInput(text="x"), context()))

    def test_parser_reports_failure(self):
        client = make_client(lambda request: httpx.Response(200, json={"ok": False}))
        with pytest.raises(TransportError, match="could not understand"):
            asyncio.run(client.submit(TextInput(text="x"), context()))


class TestUnconfigured:

    def test_missing_endpoint_is_a_transport_error(self, monkeypatch, tmp_path):
        monkeypatch.delenv("PARSER_ENDPOINT_URL", raising=False)
        monkeypatch.chdir(tmp_path)
        client = ParseRequestClient()
        with pytest.raises(TransportError, match="not configured"):
            client.build_context("user-1")
