"""Shared helpers for JSON-tagged websocket frames."""

import base64
import binascii
import json
from typing import Any, Dict


class MalformedFrameError(ValueError):
    """Raised when an inbound frame cannot be interpreted."""


def decode_json_frame(raw: str | bytes) -> Dict[str, Any]:
    """Parse a text frame into a JSON object.

    Args:
        raw: Websocket message as received

    Returns:
        Decoded JSON object

    Raises:
        MalformedFrameError: If the frame is binary, not JSON, or not an object
    """
    if isinstance(raw, (bytes, bytearray, memoryview)):
        raise MalformedFrameError(f"Binary frame of {len(raw)} bytes")

    # Deep nesting raises RecursionError, oversized integers a plain ValueError
    try:
        data = json.loads(raw)
    except (ValueError, TypeError, RecursionError) as e:
        raise MalformedFrameError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedFrameError(f"Expected JSON object, got {type(data).__name__}")
    return data


def decode_audio(value: Any) -> bytes:
    """Decode a base64 audio field.

    Raises:
        MalformedFrameError: If the field is missing or not valid base64
    """
    if not isinstance(value, str) or not value:
        raise MalformedFrameError("Missing audio payload")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedFrameError(f"Invalid base64 audio: {e}") from e


def encode_audio(audio: bytes) -> str:
    return base64.b64encode(audio).decode("ascii")
