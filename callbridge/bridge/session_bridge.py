"""Session bridge: one call leg paired with one AI leg.

Data flow:
- Uplink: call leg media -> decode -> (readiness buffer | AI leg append)
- Downlink: AI audio delta -> encode -> call leg media
- Turn-taking: commit scheduler -> AI leg commit + response.create
- Completion: AI response completed -> call leg mark

Every handler that touches session state runs under the bridge lock, which
serializes the call leg reader, the AI leg reader and the commit timer.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog
from websockets.exceptions import ConnectionClosed

from callbridge.ai import realtime_protocol
from callbridge.ai.dialer import Dialer, dial_with_retry
from callbridge.ai.realtime_protocol import AiEvent, AiEventType, classify_ai_event
from callbridge.bridge.commit_scheduler import CommitScheduler, TurnPolicy
from callbridge.bridge.session import CallSession, SessionState
from callbridge.core.codec import CodecError
from callbridge.core.constants import AudioConstants, BridgeDefaults
from callbridge.core.frames import MalformedFrameError
from callbridge.core.readiness_buffer import ReadinessBuffer
from callbridge.core.transducer import AudioCodecTransducer, AudioFormat
from callbridge.telephony.media_stream import (
    CallEventType,
    build_mark_frame,
    build_media_frame,
    parse_call_frame,
)


@dataclass
class BridgeSettings:
    """Per-session bridge configuration, fixed for the life of a call."""

    call_format: AudioFormat
    ai_format: AudioFormat
    session_config: Dict[str, Any] = field(default_factory=dict)
    response_config: Optional[Dict[str, Any]] = None
    greeting_response: Optional[Dict[str, Any]] = None
    commit_interval: float = BridgeDefaults.COMMIT_INTERVAL_S
    turn_policy: Optional[TurnPolicy] = None
    readiness_capacity: int = BridgeDefaults.READINESS_CAPACITY
    max_call_duration: Optional[float] = BridgeDefaults.MAX_CALL_DURATION_S
    dial_retries: int = 0
    dial_backoff: float = 1.0
    dial_failure: str = "wait"
    mark_name: str = BridgeDefaults.MARK_NAME


class SessionBridge:
    """Bridges one call leg websocket to one realtime AI websocket."""

    def __init__(
        self,
        call_leg: Any,
        dial: Dialer,
        settings: BridgeSettings,
        session_id: Optional[str] = None
    ) -> None:
        """Initialize bridge.

        Args:
            call_leg: Accepted call leg connection (async send/close/iteration)
            dial: Zero-argument coroutine factory opening the AI leg
            settings: Bridge settings
            session_id: Optional explicit session id
        """
        buffer = ReadinessBuffer(settings.readiness_capacity)
        self._session = CallSession(call_leg=call_leg, pending_outbound=buffer)
        if session_id:
            self._session.id = session_id

        self._dial = dial
        self._settings = settings
        self._transducer = AudioCodecTransducer(settings.call_format, settings.ai_format)
        self._lock = asyncio.Lock()
        self._ai_task: Optional[asyncio.Task[None]] = None
        self._call_closed = False
        self._ai_closed = False

        self._logger = structlog.get_logger(__name__).bind(session_id=self._session.id)
        self._scheduler = CommitScheduler(
            send=self._send_ai,
            response=settings.response_config,
            policy=settings.turn_policy,
            logger=self._logger
        )

    @property
    def id(self) -> str:
        return self._session.id

    @property
    def session(self) -> CallSession:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    @property
    def scheduler(self) -> CommitScheduler:
        return self._scheduler

    async def run(self) -> None:
        """Run the bridge until both legs are closed."""
        self._logger.info(
            "Session bridge starting",
            call_encoding=self._settings.call_format.encoding,
            ai_encoding=self._settings.ai_format.encoding,
            commit_interval=self._settings.commit_interval
        )

        reason = "bridge_finished"
        try:
            async with asyncio.timeout(self._settings.max_call_duration):
                await self._run_legs()
        except TimeoutError:
            reason = "max_call_duration"
            self._logger.warning(
                "Maximum call duration reached",
                max_call_duration=self._settings.max_call_duration
            )
        finally:
            await self.close(self._session.close_reason or reason)

    async def close(self, reason: str = "closed") -> None:
        """Tear down both legs. Idempotent."""
        async with self._lock:
            await self._shutdown(reason)

    async def handle_call_message(self, raw: str | bytes) -> None:
        """Route one inbound call leg frame."""
        async with self._lock:
            if self._session.state.is_closing:
                return

            try:
                event = parse_call_frame(raw)
            except MalformedFrameError as e:
                self._logger.warning("Malformed call leg frame dropped", error=str(e))
                return

            if event.type is CallEventType.MEDIA:
                await self._forward_call_audio(event.audio or b"")
            elif event.type is CallEventType.START:
                self._session.stream_sid = event.stream_sid
                self._logger.info("Call stream started", stream_sid=event.stream_sid)
            elif event.type is CallEventType.STOP:
                self._logger.info("Call leg sent stop")
                await self._on_call_stop()
            elif event.type is CallEventType.UNKNOWN:
                self._logger.debug("Unrecognized call leg frame ignored", call_event=event.name)
            else:
                self._logger.debug("Call leg control frame", call_event=event.name)

    async def handle_ai_open(self, ai_leg: Any) -> None:
        """AI leg is open: configure the session, drain the buffer, go active."""
        async with self._lock:
            session = self._session
            if session.state is not SessionState.CONNECTING and not session.state.is_closing:
                self._logger.warning("Duplicate AI open ignored", state=session.state.name)
                return

            session.ai_leg = ai_leg
            if session.state.is_closing:
                self._logger.info("AI leg opened after teardown began, closing it")
                await self._close_ai_leg()
                return

            session.advance(SessionState.BUFFERING)
            self._logger.info("AI leg connected, sending session configuration")
            if not await self._send_ai(realtime_protocol.session_update(self._settings.session_config)):
                return

            try:
                sent = await session.pending_outbound.drain_to(ai_leg)
            except ConnectionClosed as e:
                self._logger.warning("AI leg closed while draining buffer", error=str(e))
                return
            session.frames_to_ai += sent

            session.mark_ai_ready()
            session.advance(SessionState.ACTIVE)
            self._scheduler.start(self._settings.commit_interval, self._on_commit_tick)
            self._logger.info("Session active", buffered_frames_sent=sent)

            if self._settings.greeting_response:
                await self._send_ai(realtime_protocol.response_create(self._settings.greeting_response))

    async def handle_ai_message(self, raw: str | bytes) -> None:
        """Route one inbound AI leg event."""
        async with self._lock:
            if self._session.state.is_closing:
                return

            try:
                event = classify_ai_event(raw)
            except MalformedFrameError as e:
                self._logger.warning("Malformed AI event dropped", error=str(e))
                return

            if event.type is AiEventType.AUDIO_DELTA:
                await self._forward_ai_audio(event.audio or b"")
            elif event.type is AiEventType.TEXT_DELTA:
                self._logger.debug("AI text delta", text=event.text)
            elif event.type is AiEventType.RESPONSE_COMPLETED:
                await self._on_response_completed(event)
            elif event.type is AiEventType.SESSION_UPDATED:
                self._logger.info("AI session configuration acknowledged")
            elif event.type is AiEventType.ERROR:
                self._logger.warning("AI session reported error", error=event.data.get("error"))
            else:
                self._logger.debug("AI event ignored", ai_event=event.name)

    async def _run_legs(self) -> None:
        try:
            async with asyncio.TaskGroup() as tg:
                tg.create_task(self._read_call_leg(), name=f"call-leg-{self.id}")
                self._ai_task = tg.create_task(self._connect_ai_leg(), name=f"ai-leg-{self.id}")
        except* Exception as eg:
            for exc in eg.exceptions:
                self._logger.error("Bridge task failed", error_type=type(exc).__name__, error=str(exc), exc_info=exc)
            self._session.close_reason = self._session.close_reason or "bridge_error"

    async def _read_call_leg(self) -> None:
        try:
            async for raw in self._session.call_leg:
                await self.handle_call_message(raw)
        except ConnectionClosed as e:
            self._logger.warning("Call leg connection lost", code=e.rcvd.code if e.rcvd else None)
        self._call_closed = True
        await self.close("call_leg_closed")

    async def _connect_ai_leg(self) -> None:
        try:
            ai_leg = await dial_with_retry(
                self._dial,
                retries=self._settings.dial_retries,
                backoff=self._settings.dial_backoff
            )
        except ConnectionError as e:
            self._logger.error("AI leg dial failed", error=str(e), policy=self._settings.dial_failure)
            if self._settings.dial_failure == "hangup":
                await self.close("ai_dial_failed")
            return

        # Owned from here on, so teardown can close it even before it is configured
        self._session.ai_leg = ai_leg
        await self.handle_ai_open(ai_leg)

        try:
            async for raw in ai_leg:
                await self.handle_ai_message(raw)
        except ConnectionClosed as e:
            self._logger.warning("AI leg connection lost", code=e.rcvd.code if e.rcvd else None)
        self._ai_closed = True
        await self.close("ai_leg_closed")

    async def _forward_call_audio(self, payload: bytes) -> None:
        session = self._session
        session.frames_from_call += 1

        try:
            audio = self._transducer.decode_inbound(payload)
        except (CodecError, ValueError) as e:
            session.dropped_frames += 1
            self._logger.warning("Inbound frame dropped", error=str(e), dropped=session.dropped_frames)
            return

        message = realtime_protocol.audio_append(audio)
        self._scheduler.note_audio(len(audio))

        if not session.pending_outbound.is_ready:
            session.pending_outbound.push(message)
        elif await self._send_ai(message):
            session.frames_to_ai += 1

        if session.frames_from_call % AudioConstants.LOG_INTERVAL_FRAMES == 0:
            self._logger.debug(
                "Uplink frames",
                count=session.frames_from_call,
                buffered=len(session.pending_outbound),
                direction="call -> AI"
            )

    async def _forward_ai_audio(self, audio: bytes) -> None:
        session = self._session

        try:
            encoded = self._transducer.encode_outbound(audio)
        except (CodecError, ValueError) as e:
            session.dropped_frames += 1
            self._logger.warning("Outbound chunk dropped", error=str(e), dropped=session.dropped_frames)
            return

        if await self._send_call(build_media_frame(encoded, session.stream_sid)):
            session.chunks_to_call += 1
            session.audio_since_completion += len(encoded)
            if session.chunks_to_call % AudioConstants.LOG_INTERVAL_CHUNKS == 0:
                self._logger.debug("Downlink chunks", count=session.chunks_to_call, direction="AI -> call")

    async def _on_response_completed(self, event: AiEvent) -> None:
        session = self._session
        if session.audio_since_completion == 0 and not event.response_has_audio():
            # Common when a commit lands on silence
            self._logger.info("Response completed without audio", status=event.response_status)
        session.audio_since_completion = 0
        await self._send_call(build_mark_frame(self._settings.mark_name, session.stream_sid))

    async def _on_call_stop(self) -> None:
        if self._session.ai_ready and self._session.state is SessionState.ACTIVE:
            await self._scheduler.commit(force=True)
        await self._shutdown("call_stop")

    async def _on_commit_tick(self) -> None:
        async with self._lock:
            if self._session.state is not SessionState.ACTIVE:
                return
            await self._scheduler.commit()

    async def _send_ai(self, message: str) -> bool:
        ai_leg = self._session.ai_leg
        if ai_leg is None or self._ai_closed or self._session.state.is_closing:
            return False
        try:
            await ai_leg.send(message)
            return True
        except ConnectionClosed as e:
            self._logger.debug("AI leg send dropped, connection closed", error=str(e))
            return False

    async def _send_call(self, message: str) -> bool:
        if self._call_closed or self._session.state.is_closing:
            return False
        try:
            await self._session.call_leg.send(message)
            return True
        except ConnectionClosed as e:
            self._logger.debug("Call leg send dropped, connection closed", error=str(e))
            return False

    async def _shutdown(self, reason: str) -> None:
        """Enter CLOSING, release everything, end in CLOSED. Caller holds the lock.

        A teardown interrupted by cancellation is finished by the next call.
        """
        session = self._session
        if session.state is SessionState.CLOSED:
            return

        if not session.state.is_closing:
            session.close_reason = reason
            session.advance(SessionState.CLOSING)
            self._logger.info("Session closing", reason=reason)

            self._scheduler.stop()
            discarded = session.pending_outbound.discard()
            if discarded:
                self._logger.info("Discarded buffered frames", count=discarded)

            if self._ai_task and not self._ai_task.done() and self._ai_task is not asyncio.current_task():
                self._ai_task.cancel()

        await self._close_call_leg()
        await self._close_ai_leg()

        session.advance(SessionState.CLOSED)
        self._logger.info("Session closed", reason=session.close_reason, **session.stats())

    async def _close_call_leg(self) -> None:
        if self._call_closed:
            return
        self._call_closed = True
        try:
            await self._session.call_leg.close()
        except Exception as e:
            self._logger.warning("Error closing call leg", error=str(e))

    async def _close_ai_leg(self) -> None:
        ai_leg = self._session.ai_leg
        if ai_leg is None or self._ai_closed:
            return
        self._ai_closed = True
        try:
            await ai_leg.close()
        except Exception as e:
            self._logger.warning("Error closing AI leg", error=str(e))
