"""Expense parsing client package."""

from expense_tracker.services.parser.client import (
    ParseRequestClient,
    TransportError,
    build_payload,
    encode_audio,
)

__all__ = [
    "ParseRequestClient",
    "TransportError",
    "build_payload",
    "encode_audio",
]
