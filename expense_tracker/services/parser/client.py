"""
Expense Parsing Client

Sends a typed phrase or a recorded voice clip to the external parsing
webhook and returns what it understood.

DESIGN DECISIONS:
1. The request payload is built from a discriminated union (text | audio),
   so a request can never carry both.
2. One request per user action. Failures are raised as TransportError and
   are NOT retried - the user resubmits.
3. The response is validated only structurally. Field values are untrusted
   and anything uninterpretable is dropped to None (see ParsedExpense).
"""

import asyncio
import base64
from typing import Any, Optional

import httpx
import structlog
from pydantic import ValidationError

from expense_tracker.config import ParserSettings, get_settings
from expense_tracker.models.expense import (
    AudioInput,
    ParseContext,
    ParseInput,
    ParseResponse,
    TextInput,
)


logger = structlog.get_logger(__name__)


class TransportError(Exception):
    """The parse request failed or its response could not be used."""
    
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


async def encode_audio(audio: bytes) -> str:
    """Base64-encode a clip off the event loop."""
    encoded = await asyncio.to_thread(base64.b64encode, audio)
    return encoded.decode("ascii")


async def build_payload(parse_input: ParseInput, context: ParseContext) -> dict[str, Any]:
    """
    Build the JSON body for one parse request.
    
    Shape:
        { text | audio+audio_format, user_id, source, device, meta: {timezone} }
    """
    payload: dict[str, Any]
    if isinstance(parse_input, TextInput):
        payload = {"text": parse_input.text}
    elif isinstance(parse_input, AudioInput):
        payload = {
            "audio": await encode_audio(parse_input.audio),
            "audio_format": parse_input.audio_format,
        }
    else:
        raise TypeError(f"Unsupported parse input: {type(parse_input).__name__}")
    
    payload.update(
        user_id=context.owner_id,
        source=context.source_tag,
        device=context.device_tag,
        meta={"timezone": context.timezone},
    )
    return payload


class ParseRequestClient:
    """
    Client for the expense-parsing webhook.
    
    An httpx.AsyncClient may be injected (tests pass one with a
    MockTransport); otherwise a short-lived client is opened per request.
    """
    
    def __init__(
        self,
        settings: Optional[ParserSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings
        self._http_client = http_client
    
    @property
    def settings(self) -> ParserSettings:
        """Parser settings, loaded on first use so the app can start unconfigured."""
        if self._settings is None:
            try:
                self._settings = get_settings().parser
            except ValidationError as e:
                raise TransportError(f"Expense parser is not configured: {e.error_count()} missing setting(s)")
        return self._settings
    
    def build_context(self, owner_id: str) -> ParseContext:
        """Context metadata for a request made on behalf of `owner_id`."""
        return ParseContext(
            owner_id=owner_id,
            source_tag=self.settings.source_tag,
            device_tag=self.settings.device_tag,
            timezone=self.settings.timezone,
        )
    
    async def submit(
        self,
        parse_input: ParseInput,
        context: ParseContext,
    ) -> ParseResponse:
        """
        Issue a single parse request and return the decoded response.
        
        Raises:
            TransportError: Network failure, non-2xx status, a body that is not
                a JSON object of the expected shape, or `ok: false`.
        """
        payload = await build_payload(parse_input, context)
        logger.debug(
            "parse_request",
            kind=parse_input.kind,
            owner_id=context.owner_id,
        )
        
        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, payload)
            else:
                async with httpx.AsyncClient(
                    timeout=self.settings.timeout_seconds
                ) as client:
                    response = await self._post(client, payload)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to process expense: {e}")
        
        return self._decode(response)
    
    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            self.settings.endpoint_url,
            json=payload,
            headers={"Content-Type": "application/json"},
        )
    
    def _decode(self, response: httpx.Response) -> ParseResponse:
        if not response.is_success:
            raise TransportError(
                "Failed to process expense",
                status_code=response.status_code,
            )
        
        try:
            body = response.json()
        except ValueError:
            raise TransportError(
                "Parser returned a malformed response",
                status_code=response.status_code,
            )
        
        if not isinstance(body, dict):
            raise TransportError(
                "Parser returned a malformed response",
                status_code=response.status_code,
            )
        
        try:
            parsed = ParseResponse.model_validate(body)
        except ValidationError as e:
            raise TransportError(
                f"Parser returned a malformed response: {e.error_count()} invalid field(s)",
                status_code=response.status_code,
            )
        
        if not parsed.ok:
            raise TransportError(
                "Parser could not understand the expense",
                status_code=response.status_code,
            )
        
        return parsed
