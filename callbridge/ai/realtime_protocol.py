"""Realtime AI session messages and event classification.

Client messages (bridge -> AI):
- session.update: opaque session configuration
- input_audio_buffer.append: base64 audio in the session's input encoding
- input_audio_buffer.commit: close the current utterance
- response.create: ask for a reply now

Server events (AI -> bridge) are reduced to the handful the bridge routes;
everything else is classified as OTHER and ignored.
"""

import json
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from callbridge.core.frames import MalformedFrameError, decode_audio, decode_json_frame, encode_audio


AUDIO_DELTA_EVENTS = frozenset({
    "response.output_audio.delta",
    "response.audio.delta",
})

TEXT_DELTA_EVENTS = frozenset({
    "response.output_text.delta",
    "response.text.delta",
    "response.output_audio_transcript.delta",
    "response.audio_transcript.delta",
})

COMPLETION_EVENTS = frozenset({
    "response.completed",
    "response.done",
})

AUDIO_CONTENT_TYPES = frozenset({"output_audio", "audio"})


class AiEventType(Enum):
    """Event classes the bridge routes."""

    AUDIO_DELTA = auto()
    TEXT_DELTA = auto()
    RESPONSE_COMPLETED = auto()
    SESSION_UPDATED = auto()
    ERROR = auto()
    OTHER = auto()


@dataclass
class AiEvent:
    """Classified AI session event."""

    type: AiEventType
    name: str
    audio: Optional[bytes] = None
    text: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def response_status(self) -> Optional[str]:
        response = self.data.get("response")
        if isinstance(response, dict):
            return response.get("status")
        return None

    def response_has_audio(self) -> bool:
        """Whether a completion event reports any audio output items."""
        response = self.data.get("response")
        if not isinstance(response, dict):
            return False

        output: List[Any] = response.get("output") or []
        for item in output:
            if not isinstance(item, dict):
                continue
            for part in item.get("content") or []:
                if isinstance(part, dict) and part.get("type") in AUDIO_CONTENT_TYPES:
                    return True
        return False


def classify_ai_event(raw: str | bytes) -> AiEvent:
    """Parse and classify an inbound AI leg event.

    Args:
        raw: Websocket message from the AI leg

    Returns:
        Classified event

    Raises:
        MalformedFrameError: If the frame is not JSON, has no type, or an audio
            delta carries no decodable audio
    """
    data = decode_json_frame(raw)

    name = data.get("type")
    if not isinstance(name, str):
        raise MalformedFrameError("Event has no type")

    if name in AUDIO_DELTA_EVENTS:
        return AiEvent(AiEventType.AUDIO_DELTA, name, audio=decode_audio(data.get("delta")))

    if name in TEXT_DELTA_EVENTS:
        delta = data.get("delta")
        return AiEvent(AiEventType.TEXT_DELTA, name, text=delta if isinstance(delta, str) else "")

    if name in COMPLETION_EVENTS:
        return AiEvent(AiEventType.RESPONSE_COMPLETED, name, data=data)

    if name == "session.updated":
        return AiEvent(AiEventType.SESSION_UPDATED, name, data=data)

    if name == "error":
        return AiEvent(AiEventType.ERROR, name, data=data)

    return AiEvent(AiEventType.OTHER, name, data=data)


def session_update(session: Dict[str, Any]) -> str:
    return json.dumps({"type": "session.update", "session": session})


def audio_append(audio: bytes) -> str:
    return json.dumps({"type": "input_audio_buffer.append", "audio": encode_audio(audio)})


def audio_commit() -> str:
    return json.dumps({"type": "input_audio_buffer.commit"})


def response_create(response: Optional[Dict[str, Any]] = None) -> str:
    message: Dict[str, Any] = {"type": "response.create"}
    if response:
        message["response"] = response
    return json.dumps(message)


def audio_format_spec(encoding: str, sample_rate: int) -> Dict[str, Any]:
    """Session-level audio format object for an encoding.

    Args:
        encoding: "g711_ulaw", "g711_alaw" or "pcm16"
        sample_rate: Sample rate for PCM16

    Returns:
        Format object as used in ``session.audio.{input,output}.format``
    """
    if encoding == "g711_ulaw":
        return {"type": "audio/pcmu"}
    if encoding == "g711_alaw":
        return {"type": "audio/pcma"}
    if encoding == "pcm16":
        return {"type": "audio/pcm", "rate": sample_rate}
    raise ValueError(f"Unsupported encoding: {encoding}")
