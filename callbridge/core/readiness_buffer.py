"""Bounded FIFO holding AI-bound messages until the AI leg is ready."""

from collections import deque
from typing import Awaitable, Protocol

import structlog


logger = structlog.get_logger(__name__)


class MessageSink(Protocol):
    """Anything with an async ``send`` for text messages."""

    def send(self, message: str) -> Awaitable[None]:
        ...


class ReadinessBuffer:
    """Queue of outbound messages produced before the AI session is ready.

    The buffer is drained exactly once. After :meth:`drain_to` the buffer is
    ready and refuses further pushes; callers check :attr:`is_ready` and send
    directly from then on.
    """

    def __init__(self, capacity: int) -> None:
        """Initialize readiness buffer.

        Args:
            capacity: Maximum number of messages held before the oldest is dropped

        Raises:
            ValueError: If capacity is <= 0
        """
        if capacity <= 0:
            raise ValueError(f"Capacity must be positive, got {capacity}")

        self._capacity = capacity
        self._buffer: deque[str] = deque()
        self._ready = False
        self._dropped = 0

    @property
    def capacity(self) -> int:
        """Maximum number of messages."""
        return self._capacity

    @property
    def is_ready(self) -> bool:
        """True once the buffer has been drained (or discarded)."""
        return self._ready

    @property
    def dropped(self) -> int:
        """Messages dropped because the buffer overflowed."""
        return self._dropped

    def __len__(self) -> int:
        return len(self._buffer)

    def push(self, message: str) -> bool:
        """Append a message to the tail.

        Drops the oldest message when full.

        Args:
            message: Serialized message destined for the AI leg

        Returns:
            True if buffered, False if the buffer was already drained
        """
        if self._ready:
            logger.warning("Push after drain ignored, send directly instead")
            return False

        if len(self._buffer) >= self._capacity:
            self._buffer.popleft()
            self._dropped += 1
            if self._dropped == 1 or self._dropped % 50 == 0:
                logger.warning(
                    "Readiness buffer full, dropping oldest frame",
                    capacity=self._capacity,
                    dropped=self._dropped
                )

        self._buffer.append(message)
        return True

    async def drain_to(self, target: MessageSink) -> int:
        """Send every buffered message to ``target`` in FIFO order.

        The buffer is marked ready and emptied even if a send fails; the
        failure propagates to the caller.

        Args:
            target: Connection to send buffered messages over

        Returns:
            Number of messages sent

        Raises:
            RuntimeError: If the buffer was already drained
        """
        if self._ready:
            raise RuntimeError("Readiness buffer already drained")

        self._ready = True
        sent = 0
        try:
            while self._buffer:
                await target.send(self._buffer.popleft())
                sent += 1
        finally:
            self._buffer.clear()

        logger.info("Readiness buffer drained", sent=sent, dropped=self._dropped)
        return sent

    def discard(self) -> int:
        """Drop everything and refuse further pushes.

        Returns:
            Number of messages discarded
        """
        count = len(self._buffer)
        self._buffer.clear()
        self._ready = True
        return count
