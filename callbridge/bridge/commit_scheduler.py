"""Periodic commit/response cadence toward the AI leg.

The AI session runs without server-side turn detection, so the bridge
manufactures turn boundaries: every tick it commits the audio appended so far
and asks for a response. Whether a given tick commits is delegated to a
TurnPolicy so a speech-boundary detector can replace the fixed cadence.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import structlog

from callbridge.ai import realtime_protocol


SendFn = Callable[[str], Awaitable[bool]]
TickFn = Callable[[], Awaitable[None]]


class TurnPolicy(Protocol):
    """Decides whether a timed tick should close the current utterance."""

    def should_commit_now(self, audio_since_last_commit: int) -> bool:
        """Return True to commit.

        Args:
            audio_since_last_commit: Bytes of audio appended since the last commit
        """
        ...


class FixedCadencePolicy:
    """Commit on every tick."""

    def should_commit_now(self, audio_since_last_commit: int) -> bool:
        return True


class MinimumAudioPolicy:
    """Commit only once enough new audio has been appended."""

    def __init__(self, min_bytes: int) -> None:
        if min_bytes < 0:
            raise ValueError(f"min_bytes must be >= 0, got {min_bytes}")
        self.min_bytes = min_bytes

    def should_commit_now(self, audio_since_last_commit: int) -> bool:
        return audio_since_last_commit >= max(self.min_bytes, 1)


class CommitScheduler:
    """Single recurring timer emitting commit + response.create pairs."""

    def __init__(
        self,
        send: SendFn,
        response: Optional[Dict[str, Any]] = None,
        policy: Optional[TurnPolicy] = None,
        logger: Optional[structlog.BoundLogger] = None
    ) -> None:
        """Initialize scheduler.

        Args:
            send: Coroutine sending one message to the AI leg; returns False if dropped
            response: Opaque response configuration for response.create
            policy: Turn boundary policy (defaults to fixed cadence)
            logger: Bound logger of the owning session
        """
        self._send = send
        self._response = response
        self._policy: TurnPolicy = policy or FixedCadencePolicy()
        self._task: Optional[asyncio.Task[None]] = None
        self._interval = 0.0

        self._audio_since_commit = 0
        self._commits = 0
        self._skipped_ticks = 0

        self._logger = logger or structlog.get_logger(__name__)

    @property
    def is_running(self) -> bool:
        """True while a timer task is live."""
        return self._task is not None and not self._task.done()

    @property
    def commits(self) -> int:
        """Number of commit/response pairs sent."""
        return self._commits

    @property
    def audio_since_commit(self) -> int:
        return self._audio_since_commit

    def note_audio(self, nbytes: int) -> None:
        """Record audio appended to the AI leg since the last commit."""
        self._audio_since_commit += nbytes

    def start(self, interval: float, on_tick: TickFn) -> bool:
        """Arm the recurring timer.

        Args:
            interval: Seconds between ticks
            on_tick: Coroutine awaited on every tick

        Returns:
            True if armed, False if a timer was already running

        Raises:
            ValueError: If interval is not positive
        """
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        if self.is_running:
            self._logger.warning("Commit timer already running, start ignored")
            return False

        self._interval = interval
        self._task = asyncio.create_task(self._run(on_tick), name="commit-scheduler")
        self._logger.info("Commit timer started", interval=interval)
        return True

    def stop(self) -> None:
        """Cancel the timer. Safe to call when not started."""
        if self._task is None:
            return

        task, self._task = self._task, None
        if not task.done() and task is not asyncio.current_task():
            task.cancel()
        self._logger.info(
            "Commit timer stopped",
            commits=self._commits,
            skipped_ticks=self._skipped_ticks
        )

    async def commit(self, force: bool = False) -> bool:
        """Send a commit followed by a response request.

        Args:
            force: Skip the turn policy check

        Returns:
            True if both messages were sent
        """
        if not force and not self._policy.should_commit_now(self._audio_since_commit):
            self._skipped_ticks += 1
            self._logger.debug("Commit skipped by turn policy", audio_bytes=self._audio_since_commit)
            return False

        if not await self._send(realtime_protocol.audio_commit()):
            return False
        if not await self._send(realtime_protocol.response_create(self._response)):
            return False

        self._commits += 1
        self._logger.debug(
            "Committed audio and requested response",
            audio_bytes=self._audio_since_commit,
            commits=self._commits,
            forced=force
        )
        self._audio_since_commit = 0
        return True

    async def _run(self, on_tick: TickFn) -> None:
        try:
            # stop() from inside on_tick clears _task without cancelling us
            while self._task is asyncio.current_task():
                await asyncio.sleep(self._interval)
                try:
                    await on_tick()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    self._logger.error("Commit tick error", error=str(e), exc_info=True)
        except asyncio.CancelledError:
            self._logger.debug("Commit timer task cancelled")
            raise
