"""Per-call session record."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from callbridge.core.readiness_buffer import ReadinessBuffer


class SessionState(Enum):
    """Bridge lifecycle states. Transitions only move forward."""

    CONNECTING = 1
    BUFFERING = 2
    ACTIVE = 3
    CLOSING = 4
    CLOSED = 5

    @property
    def is_closing(self) -> bool:
        return self.value >= SessionState.CLOSING.value


def new_session_id() -> str:
    return uuid.uuid4().hex


@dataclass
class CallSession:
    """State owned by one bridge for one call.

    The bridge holds the only reference; nothing here is attached to the
    transport objects.
    """

    call_leg: Any
    pending_outbound: ReadinessBuffer
    id: str = field(default_factory=new_session_id)
    state: SessionState = SessionState.CONNECTING
    ai_leg: Optional[Any] = None
    ai_ready: bool = False
    stream_sid: Optional[str] = None
    close_reason: Optional[str] = None
    created_at: float = field(default_factory=time.monotonic)

    # Counters
    frames_from_call: int = 0
    frames_to_ai: int = 0
    chunks_to_call: int = 0
    dropped_frames: int = 0
    audio_since_completion: int = 0

    def advance(self, new_state: SessionState) -> None:
        """Move to a later state.

        Raises:
            ValueError: If the transition would move backwards
        """
        if new_state.value < self.state.value:
            raise ValueError(f"Illegal transition {self.state.name} -> {new_state.name}")
        self.state = new_state

    def mark_ai_ready(self) -> None:
        """Flip ai_ready. Only valid once per session."""
        if self.ai_ready:
            raise RuntimeError("AI leg already marked ready")
        self.ai_ready = True

    def stats(self) -> Dict[str, Any]:
        return {
            "state": self.state.name,
            "duration_s": round(time.monotonic() - self.created_at, 1),
            "frames_from_call": self.frames_from_call,
            "frames_to_ai": self.frames_to_ai,
            "chunks_to_call": self.chunks_to_call,
            "dropped_frames": self.dropped_frames,
            "buffer_dropped": self.pending_outbound.dropped,
        }
