"""Call leg media stream framing.

Frames follow the Twilio Media Streams shape::

    {"event": "start", "start": {"streamSid": "MZ..."}}
    {"event": "media", "media": {"payload": "<base64 audio>"}}
    {"event": "stop"}

Outbound the bridge emits ``media`` frames with converted AI audio and
``mark`` frames as turn markers.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from callbridge.core.frames import MalformedFrameError, decode_audio, decode_json_frame, encode_audio


class CallEventType(Enum):
    """Call leg frame types the bridge distinguishes."""

    CONNECTED = "connected"
    START = "start"
    MEDIA = "media"
    MARK = "mark"
    DTMF = "dtmf"
    STOP = "stop"
    UNKNOWN = "unknown"


@dataclass
class CallEvent:
    """Parsed call leg frame."""

    type: CallEventType
    name: str
    audio: Optional[bytes] = None
    stream_sid: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


def parse_call_frame(raw: str | bytes) -> CallEvent:
    """Parse an inbound call leg frame.

    Args:
        raw: Websocket message from the call leg

    Returns:
        Parsed event; unrecognized events come back as ``UNKNOWN``

    Raises:
        MalformedFrameError: If the frame is not JSON or a media frame has no payload
    """
    data = decode_json_frame(raw)

    name = data.get("event")
    if not isinstance(name, str):
        raise MalformedFrameError("Frame has no event tag")

    try:
        event_type = CallEventType(name)
    except ValueError:
        event_type = CallEventType.UNKNOWN

    stream_sid = data.get("streamSid")

    if event_type is CallEventType.MEDIA:
        media = data.get("media")
        if not isinstance(media, dict):
            raise MalformedFrameError("Media frame without media object")
        return CallEvent(
            type=event_type,
            name=name,
            audio=decode_audio(media.get("payload")),
            stream_sid=stream_sid,
        )

    if event_type is CallEventType.START:
        start = data.get("start")
        if isinstance(start, dict):
            stream_sid = start.get("streamSid", stream_sid)

    return CallEvent(type=event_type, name=name, stream_sid=stream_sid, data=data)


def build_media_frame(audio: bytes, stream_sid: Optional[str] = None) -> str:
    """Build an outbound media frame carrying call leg audio."""
    frame: Dict[str, Any] = {"event": "media"}
    if stream_sid:
        frame["streamSid"] = stream_sid
    frame["media"] = {"payload": encode_audio(audio)}
    return json.dumps(frame)


def build_mark_frame(name: str, stream_sid: Optional[str] = None) -> str:
    """Build a turn marker frame."""
    frame: Dict[str, Any] = {"event": "mark"}
    if stream_sid:
        frame["streamSid"] = stream_sid
    frame["mark"] = {"name": name}
    return json.dumps(frame)
